"""Shard multiplexing and region restriction.

Shards are position-sorted streams of one sample, split by region. They are
merged by dictionary order; a record repeated at a split point (same interval
and alleles in two shards) is kept once.
"""

from __future__ import annotations

import bisect
import heapq
import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from ..exceptions import InputError
from .records import GenomicInterval, SiteRecord

logger = logging.getLogger(__name__)

__all__ = ["Shard", "check_samples", "multiplex", "restrict_to_regions"]


@dataclass
class Shard:
	"""One input partition: a name for messages, its sample and its records."""

	name: str
	sample: str
	records: Iterable[SiteRecord]


def check_samples(shards: Sequence[Shard]) -> str:
	"""Return the shared sample name or raise InputError."""
	if not shards:
		raise InputError("no input shards")
	samples = {s.sample for s in shards}
	if len(samples) > 1:
		detail = ", ".join(f"{s.name}={s.sample}" for s in shards)
		raise InputError(f"shards belong to different samples: {detail}")
	return shards[0].sample


def _keyed(shard: Shard, idx: int, contig_index: Callable[[str], int]) -> Iterator[Tuple[int, int, int, int, SiteRecord]]:
	last: Optional[Tuple[int, int]] = None
	for seq, record in enumerate(shard.records):
		if record.sample != shard.sample:
			raise InputError(f"{shard.name}: record {record} belongs to sample {record.sample}")
		key = (contig_index(record.contig), record.start)
		if last is not None and key <= last:
			raise InputError(f"{shard.name}: records out of order at {record.contig}:{record.start}")
		last = key
		yield key[0], key[1], idx, seq, record


def multiplex(shards: Sequence[Shard], contig_index: Callable[[str], int]) -> Iterator[SiteRecord]:
	"""Merge shard streams into one sorted stream.

	Parameters
	----------
	shards : sequence of Shard
		Inputs of a single sample.
	contig_index : callable
		Maps a contig name to its dictionary rank; raises InputError for
		unknown contigs.

	Raises
	------
	InputError
		Mixed samples, unsorted shards, or shards overlapping beyond a single
		boundary duplicate.
	"""
	check_samples(shards)
	streams = [_keyed(s, i, contig_index) for i, s in enumerate(shards)]
	# shard index -> (contig, last covered position)
	covered: Dict[int, Tuple[str, int]] = {}
	here: Optional[Tuple[int, int]] = None
	seen_here: set = set()
	duplicates = 0
	for contig_rank, start, idx, _, record in heapq.merge(*streams):
		if (contig_rank, start) != here:
			here = (contig_rank, start)
			seen_here = set()
		if record.identity in seen_here:
			duplicates += 1
			logger.debug("skipping boundary duplicate %s from %s", record, shards[idx].name)
			continue
		seen_here.add(record.identity)
		for other, (contig, end) in covered.items():
			if other != idx and contig == record.contig and record.start <= end:
				raise InputError(
					f"{shards[idx].name} overlaps {shards[other].name} at {record.contig}:{record.start}"
				)
		reach = record.end if record.is_block else record.start
		prev = covered.get(idx)
		if prev is not None and prev[0] == record.contig:
			reach = max(reach, prev[1])
		covered[idx] = (record.contig, reach)
		yield record
	if duplicates:
		logger.info("dropped %d boundary duplicate record(s)", duplicates)


def _by_contig(regions: Iterable[GenomicInterval]) -> Dict[str, List[GenomicInterval]]:
	out: Dict[str, List[GenomicInterval]] = {}
	for region in regions:
		out.setdefault(region.contig, []).append(region)
	for contig in out:
		out[contig].sort(key=lambda r: r.start)
	return out


def restrict_to_regions(
	records: Iterable[SiteRecord],
	regions: Sequence[GenomicInterval],
	ref_base: Optional[Callable[[str, int], str]] = None,
) -> Iterator[SiteRecord]:
	"""Limit a sorted stream to ``regions`` (merged, non-overlapping).

	Reference blocks are clipped to each region they touch; a variant is kept
	when its reference allele overlaps a region, so a deletion running into a
	region still covers the positions it deletes.
	"""
	table = _by_contig(regions)
	starts = {c: [r.start for r in rs] for c, rs in table.items()}
	for record in records:
		intervals = table.get(record.contig)
		if not intervals:
			continue
		i = bisect.bisect_right(starts[record.contig], record.end)
		if record.is_variant:
			# regions are disjoint: only the last one starting by record.end can overlap
			if i > 0 and intervals[i - 1].end >= record.start:
				yield record
			continue
		hits = []
		for region in reversed(intervals[:i]):
			if region.end < record.start:
				break
			hits.append(region)
		for region in reversed(hits):
			start = max(record.start, region.start)
			end = min(record.end, region.end)
			if (start, end) == (record.start, record.end):
				yield record
				continue
			ref = record.ref
			if start != record.start:
				ref = ref_base(record.contig, start) if ref_base is not None else "N"
			yield replace(record, start=start, end=end, ref=ref)
