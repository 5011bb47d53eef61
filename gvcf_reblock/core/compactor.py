"""Reference-block compaction.

The compactor is an explicit fold over the classified record stream::

	state, emitted = step(state, item, ctx)

``state`` is an immutable :class:`CompactorState` whose ``acc`` is either
None (idle) or the open :class:`MergeAccumulator`. Variants are emitted as
they arrive; reference blocks are banded and merged with adjacent compatible
neighbours, and every emitted record passes the ordering and coverage checks
before it leaves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from ..config import ReblockConfig
from ..exceptions import LogicFault, RunCancelled
from .annotations import FieldNumbers, combine_dp, combine_min_dp, recalculate_variant
from .bands import QualityBand
from .filters import apply_filter_policy, constituent_filters, merge_filters
from .records import DroppedSite, RefBlock, SiteRecord, VariantSite, is_symbolic
from .subsetter import resolve_span_deletion

logger = logging.getLogger(__name__)

__all__ = [
	"CompactorContext",
	"MergeAccumulator",
	"CompactorState",
	"step",
	"finish",
	"compact",
]

Item = Union[SiteRecord, DroppedSite]


@dataclass(frozen=True)
class CompactorContext:
	"""Read-only collaborators of one compaction run.

	``reference`` is any object with a ``base(contig, pos)`` method; without
	one, moved block starts get an 'N' reference base.
	"""

	config: ReblockConfig
	numbers: FieldNumbers = field(default_factory=FieldNumbers)
	contig_lengths: Mapping[str, Optional[int]] = field(default_factory=dict)
	reference: Optional[object] = None

	def ref_base(self, contig: str, pos: int) -> str:
		if self.reference is None:
			return "N"
		return self.reference.base(contig, pos)


@dataclass(frozen=True)
class MergeAccumulator:
	"""The reference block being extended."""

	contig: str
	start: int
	end: int
	ref: str
	sample: str
	band: QualityBand
	dp: Optional[int]
	min_dp: Optional[int]
	ploidy: int
	no_call: bool
	filters: FrozenSet[str] = frozenset()

	@classmethod
	def open(cls, record: SiteRecord, band: QualityBand, filters: FrozenSet[str]) -> "MergeAccumulator":
		block = record.payload
		return cls(
			contig=record.contig,
			start=record.start,
			end=record.end,
			ref=record.ref[:1],
			sample=block.sample,
			band=band,
			dp=block.dp,
			min_dp=block.min_dp if block.min_dp is not None else block.dp,
			ploidy=block.ploidy,
			no_call=block.no_call,
			filters=filters,
		)

	def compatible(self, record: SiteRecord, band: QualityBand) -> bool:
		block = record.payload
		return (
			record.contig == self.contig
			and band == self.band
			and block.ploidy == self.ploidy
			and block.no_call == self.no_call
		)

	def extend(self, record: SiteRecord, filters: FrozenSet[str]) -> "MergeAccumulator":
		block = record.payload
		own_min = block.min_dp if block.min_dp is not None else block.dp
		return replace(
			self,
			end=record.end,
			dp=combine_dp(self.dp, block.dp),
			min_dp=combine_min_dp(self.min_dp, own_min),
			filters=merge_filters(self.filters, filters),
		)

	def to_record(self) -> SiteRecord:
		block = RefBlock(
			sample=self.sample,
			gq=self.band.representative,
			dp=self.dp,
			min_dp=self.min_dp,
			ploidy=self.ploidy,
			no_call=self.no_call,
		)
		return SiteRecord(self.contig, self.start, self.end, self.ref, block, self.filters)


@dataclass(frozen=True)
class CompactorState:
	"""Fold state between two records.

	``covered_end`` is the last position covered by an emitted record,
	``block_end`` the last position of an emitted reference block and
	``deletion_end`` the last position of an emitted deletion.
	"""

	contig: Optional[str] = None
	acc: Optional[MergeAccumulator] = None
	last_start: int = 0
	covered_end: int = 0
	block_end: int = 0
	deletion_end: int = 0
	bridge: Optional[DroppedSite] = None

	@property
	def idle(self) -> bool:
		return self.acc is None


def _is_deletion(site: VariantSite) -> bool:
	ref_len = len(site.alleles[0])
	return any(not is_symbolic(a) and len(a) < ref_len for a in site.alleles[1:])


def _emit(state: CompactorState, record: SiteRecord, ctx: CompactorContext) -> Tuple[CompactorState, SiteRecord]:
	if record.start <= state.last_start:
		raise LogicFault(f"output not strictly increasing: {record} after start {state.last_start}")
	if record.is_block:
		if record.start <= state.covered_end:
			raise LogicFault(f"{record} overlaps output covered up to {state.covered_end}")
		state = replace(state, block_end=record.end)
	else:
		if record.start <= state.block_end:
			raise LogicFault(f"{record} starts inside an emitted block ending at {state.block_end}")
		if _is_deletion(record.payload):
			state = replace(state, deletion_end=max(state.deletion_end, record.end))
	state = replace(state, last_start=record.start, covered_end=max(state.covered_end, record.end))
	return state, apply_filter_policy(record, ctx.config.filter_mode)


def _flush(state: CompactorState, ctx: CompactorContext) -> Tuple[CompactorState, List[SiteRecord]]:
	if state.acc is None:
		return state, []
	acc = state.acc
	state, out = _emit(replace(state, acc=None, bridge=None), acc.to_record(), ctx)
	return state, [out]


def _clamp(item: Item, ctx: CompactorContext) -> Optional[Item]:
	length = ctx.contig_lengths.get(item.contig)
	if length is not None and item.start > length:
		logger.debug("dropping %s:%d past the end of the contig (%d)", item.contig, item.start, length)
		return None
	start = max(item.start, 1)
	end = item.end if length is None else min(item.end, length)
	if (start, end) == (item.start, item.end):
		return item
	if isinstance(item, DroppedSite):
		return item._replace(start=start, end=end)
	if item.is_variant and start == item.start:
		return _truncate_variant(item, end)
	ref = item.ref if start == item.start else ctx.ref_base(item.contig, start)
	return replace(item, start=start, end=end, ref=ref)


def _truncate_variant(record: SiteRecord, end: int) -> SiteRecord:
	"""Cut the reference allele at ``end``; concrete alternates lose the same
	number of trailing bases, keeping at least one."""
	cut = record.end - end
	site = record.payload
	alleles = tuple(
		a if is_symbolic(a) else a[:max(len(a) - cut, 1)]
		for a in site.alleles
	)
	logger.debug("truncating %s at contig end %d", record, end)
	return replace(record, end=end, ref=alleles[0], payload=replace(site, alleles=alleles))


def _bridges(state: CompactorState, record: SiteRecord) -> bool:
	bridge = state.bridge
	return (
		bridge is not None
		and state.acc is not None
		and bridge.contig == record.contig
		and state.acc.end + 1 == bridge.start
		and bridge.start < record.start <= bridge.end + 1
	)


def _step_block(state: CompactorState, record: SiteRecord, ctx: CompactorContext) -> Tuple[CompactorState, List[SiteRecord]]:
	floor = state.covered_end
	if state.acc is not None:
		floor = max(floor, state.acc.end)
	if record.end <= floor:
		logger.debug("dropping %s: already covered", record)
		return state, []
	if record.start <= floor:
		record = replace(record, start=floor + 1, ref=ctx.ref_base(record.contig, floor + 1))

	config = ctx.config
	band = config.bands.band_for(record.payload.gq)
	filters = constituent_filters(record, config.filter_mode)
	acc = state.acc
	if acc is not None and acc.compatible(record, band):
		if acc.end + 1 == record.start or (config.allow_bridging and _bridges(state, record)):
			return replace(state, acc=acc.extend(record, filters), bridge=None), []
	state, out = _flush(state, ctx)
	return replace(state, acc=MergeAccumulator.open(record, band, filters), bridge=None), out


def _step_variant(state: CompactorState, record: SiteRecord, ctx: CompactorContext) -> Tuple[CompactorState, List[SiteRecord]]:
	site = record.payload
	if site.calls_span_deletion() and record.start > state.deletion_end:
		out: List[SiteRecord] = []
		for piece in resolve_span_deletion(record, ctx.numbers, ctx.config):
			if piece.is_variant:
				piece = recalculate_variant(piece, ctx.config)
			state, emitted = step(state, piece, ctx)
			out.extend(emitted)
		return state, out

	out = []
	acc = state.acc
	if acc is not None:
		if acc.end < record.start:
			state, out = _flush(state, ctx)
		else:
			head = replace(acc, end=record.start - 1) if acc.start < record.start else None
			tail_start = max(acc.start, record.end + 1)
			tail = None
			if tail_start <= acc.end:
				tail = replace(acc, start=tail_start, ref=acc.ref if tail_start == acc.start else ctx.ref_base(acc.contig, tail_start))
			state = replace(state, acc=head)
			state, out = _flush(state, ctx)
			state = replace(state, acc=tail)
	state, emitted = _emit(replace(state, bridge=None), record, ctx)
	out.append(emitted)
	return state, out


def step(state: CompactorState, item: Item, ctx: CompactorContext) -> Tuple[CompactorState, List[SiteRecord]]:
	"""Consume one classified item; return the new state and emitted records."""
	out: List[SiteRecord] = []
	if item.contig != state.contig:
		state, out = _flush(state, ctx)
		state = CompactorState(contig=item.contig)
	clamped = _clamp(item, ctx)
	if clamped is None:
		return state, out
	if isinstance(clamped, DroppedSite):
		return replace(state, bridge=clamped if ctx.config.allow_bridging else None), out
	if clamped.is_block:
		state, emitted = _step_block(state, clamped, ctx)
	else:
		state, emitted = _step_variant(state, clamped, ctx)
	return state, out + emitted


def finish(state: CompactorState, ctx: CompactorContext) -> List[SiteRecord]:
	"""Flush the open accumulator at end of input."""
	return _flush(state, ctx)[1]


def compact(
	items: Iterable[Item],
	ctx: CompactorContext,
	should_stop: Optional[Callable[[], bool]] = None,
) -> Iterator[SiteRecord]:
	"""Run the fold over ``items``.

	``should_stop`` is polled before each item. When it fires the open
	accumulator is discarded and :class:`RunCancelled` is raised, so no
	partially merged block is ever emitted.
	"""
	state = CompactorState()
	for item in items:
		if should_stop is not None and should_stop():
			raise RunCancelled(f"stopped before {item.contig}:{item.start}")
		state, out = step(state, item, ctx)
		yield from out
	yield from finish(state, ctx)
