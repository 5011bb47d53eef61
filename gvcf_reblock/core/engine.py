"""Reblocking pipeline.

``multiplex -> (restrict) -> classify -> subset -> recalculate -> compact``

:func:`reblock_records` runs the in-memory pipeline over already parsed
records; :func:`run` wires it to files.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Mapping, Optional, Sequence, Union

from ..config import ReblockConfig
from ..exceptions import ConfigError
from ..io.header import VcfHeader
from ..io.reference import FastaReference, SequenceDictionary, parse_regions
from ..io.vcf_reader import GVCFReader
from ..io.vcf_writer import GVCFWriter
from .annotations import FieldNumbers, build_output_header, recalculate_variant
from .classifier import Decision, classify
from .compactor import CompactorContext, compact
from .multiplexer import Shard, check_samples, multiplex, restrict_to_regions
from .records import DroppedSite, SiteRecord
from .subsetter import subset_site

logger = logging.getLogger(__name__)

__all__ = ["ReblockSummary", "prepare", "reblock_records", "check_tree_score_declared", "run"]

PROGRESS_EVERY = 100000


@dataclass
class ReblockSummary:
	"""Counters of one run."""

	records_in: int = 0
	records_out: int = 0
	variants_out: int = 0
	blocks_out: int = 0
	decisions: Counter = field(default_factory=Counter)

	@property
	def compression(self) -> float:
		return self.records_out / self.records_in if self.records_in else 0.0

	def as_dict(self) -> dict:
		out = {
			"records_in": self.records_in,
			"records_out": self.records_out,
			"variants_out": self.variants_out,
			"blocks_out": self.blocks_out,
		}
		for decision in Decision:
			out[decision.value] = self.decisions.get(decision, 0)
		return out

	def __str__(self) -> str:
		return (
			f"{self.records_in:,} records in, {self.records_out:,} out "
			f"({self.variants_out:,} variants, {self.blocks_out:,} blocks); "
			f"{self.decisions.get(Decision.DOWNGRADE, 0):,} downgraded, "
			f"{self.decisions.get(Decision.DROP, 0):,} dropped"
		)


def prepare(
	records: Iterable[SiteRecord],
	config: ReblockConfig,
	numbers: FieldNumbers,
	summary: Optional[ReblockSummary] = None,
) -> Iterator[Union[SiteRecord, DroppedSite]]:
	"""Per-record transforms ahead of the compactor."""
	for record in records:
		result = classify(record, config)
		if summary is not None:
			summary.records_in += 1
			summary.decisions[result.decision] += 1
		if result.decision is Decision.DROP:
			yield DroppedSite(record.contig, record.start, record.end)
		elif result.decision is Decision.KEEP_VARIANT:
			for piece in subset_site(result.record, numbers, config):
				yield recalculate_variant(piece, config) if piece.is_variant else piece
		else:
			yield result.record


def reblock_records(
	records: Iterable[SiteRecord],
	config: ReblockConfig,
	numbers: Optional[FieldNumbers] = None,
	contig_lengths: Optional[Mapping[str, Optional[int]]] = None,
	reference: Optional[FastaReference] = None,
	should_stop: Optional[Callable[[], bool]] = None,
	summary: Optional[ReblockSummary] = None,
) -> Iterator[SiteRecord]:
	"""Reblock one sorted single-sample record stream."""
	ctx = CompactorContext(
		config=config,
		numbers=numbers or FieldNumbers(),
		contig_lengths=dict(contig_lengths or {}),
		reference=reference,
	)
	for record in compact(prepare(records, config, ctx.numbers, summary), ctx, should_stop):
		if summary is not None:
			summary.records_out += 1
			if record.is_block:
				summary.blocks_out += 1
			else:
				summary.variants_out += 1
		yield record


def check_tree_score_declared(header: VcfHeader, config: ReblockConfig) -> None:
	if config.uses_tree_score and config.tree_score_key not in header.info:
		raise ConfigError(
			f"--tree-score-threshold is set but the input header does not declare INFO/{config.tree_score_key}"
		)


def run(
	inputs: Sequence[str],
	output: str,
	config: ReblockConfig,
	reference_path: Optional[str] = None,
	regions: Optional[Sequence[str]] = None,
	command_line: Optional[str] = None,
	should_stop: Optional[Callable[[], bool]] = None,
	progress_every: int = PROGRESS_EVERY,
) -> ReblockSummary:
	"""Reblock ``inputs`` (shards of one sample) into ``output``.

	Any error aborts the run and leaves no output file.
	"""
	readers = [GVCFReader(path) for path in inputs]
	headers = [r.read_header() for r in readers]
	shards = [Shard(r.path, r.sample, r.records()) for r in readers]
	sample = check_samples(shards)
	check_tree_score_declared(headers[0], config)

	reference = FastaReference(reference_path) if reference_path else None
	try:
		dictionary = reference.dictionary if reference else SequenceDictionary.from_headers(headers)
		stream: Iterable[SiteRecord] = multiplex(shards, dictionary.index)
		if regions:
			intervals = parse_regions(regions, dictionary)
			stream = restrict_to_regions(stream, intervals, reference.base if reference else None)

		logger.info("reblocking %s from %d shard(s) into %s", sample, len(shards), output)
		summary = ReblockSummary()
		out_header = build_output_header(headers[0], config, command_line)
		with GVCFWriter(output, out_header) as writer:
			for record in reblock_records(
				stream,
				config,
				numbers=FieldNumbers.from_header(headers[0]),
				contig_lengths=dictionary.lengths,
				reference=reference,
				should_stop=should_stop,
				summary=summary,
			):
				writer.write(record)
				if progress_every and writer.records_written % progress_every == 0:
					logger.info(
						"%s records written, at %s:%d",
						f"{writer.records_written:,}", record.contig, record.start,
					)
	finally:
		if reference is not None:
			reference.close()
	logger.info("%s", summary)
	return summary
