"""Reference collaborators: sequence dictionary, indexed FASTA and regions."""

from __future__ import annotations

import logging
import os
from collections import OrderedDict
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from pyfaidx import Fasta, FastaIndexingError

from ..core.records import GenomicInterval
from ..exceptions import InputError
from ..utils import normalize_chrom
from .header import VcfHeader

logger = logging.getLogger(__name__)

__all__ = ["SequenceDictionary", "FastaReference", "parse_region", "parse_regions"]

# end coordinate used for whole-contig regions of unknown length
UNBOUNDED = 2**31 - 1


class SequenceDictionary:
	"""Ordered contig names with (optional) lengths."""

	def __init__(self, contigs: Iterable[Tuple[str, Optional[int]]] = ()):
		self._lengths: "OrderedDict[str, Optional[int]]" = OrderedDict()
		for name, length in contigs:
			if name not in self._lengths or self._lengths[name] is None:
				self._lengths[name] = length
		self._rank = {name: i for i, name in enumerate(self._lengths)}

	@classmethod
	def from_headers(cls, headers: Sequence[VcfHeader]) -> "SequenceDictionary":
		"""Union of the contig lines of every header, first-seen order."""
		pairs: List[Tuple[str, Optional[int]]] = []
		for header in headers:
			pairs.extend(header.contigs.items())
		return cls(pairs)

	def __contains__(self, contig: str) -> bool:
		return contig in self._rank

	def __iter__(self) -> Iterator[str]:
		return iter(self._lengths)

	def __len__(self) -> int:
		return len(self._lengths)

	def resolve(self, contig: str) -> str:
		"""Exact name, or the single entry that matches ignoring a 'chr' prefix."""
		if contig in self._rank:
			return contig
		matches = [c for c in self._lengths if normalize_chrom(c) == normalize_chrom(contig)]
		if len(matches) == 1:
			return matches[0]
		raise InputError(f"contig {contig!r} is not in the sequence dictionary")

	def index(self, contig: str) -> int:
		try:
			return self._rank[contig]
		except KeyError:
			raise InputError(f"contig {contig!r} is not in the sequence dictionary") from None

	def length(self, contig: str) -> Optional[int]:
		return self._lengths.get(contig)

	@property
	def lengths(self) -> Dict[str, Optional[int]]:
		return dict(self._lengths)


class FastaReference:
	"""Random base access to a FASTA file through pyfaidx.

	A missing ``.fai`` index is built next to the FASTA on open.
	"""

	def __init__(self, path: str):
		self.path = path
		if not os.path.exists(path):
			raise InputError(f"reference {path} not found")
		try:
			self._fasta = Fasta(path, as_raw=True, sequence_always_upper=True)
		except FastaIndexingError as exc:
			raise InputError(f"cannot index reference {path}: {exc}") from exc
		self.dictionary = SequenceDictionary((name, len(self._fasta[name])) for name in self._fasta.keys())

	def base(self, contig: str, pos: int) -> str:
		"""Upper-case base at 1-based ``pos``; 'N' outside the contig."""
		if contig not in self.dictionary:
			raise InputError(f"contig {contig!r} is not in reference {self.path}")
		if pos < 1 or pos > self.dictionary.length(contig):
			return "N"
		return self._fasta[contig][pos - 1]

	def close(self) -> None:
		self._fasta.close()

	def __enter__(self) -> "FastaReference":
		return self

	def __exit__(self, *exc) -> None:
		self.close()


def _to_int(text: str, spec: str) -> int:
	try:
		return int(text.replace(",", ""))
	except ValueError:
		raise InputError(f"bad coordinate {text!r} in region {spec!r}") from None


def parse_region(spec: str, dictionary: SequenceDictionary) -> GenomicInterval:
	"""``contig``, ``contig:pos`` or ``contig:start-end`` (1-based, inclusive)."""
	spec = spec.strip()
	if spec in dictionary or ":" not in spec:
		contig = dictionary.resolve(spec)
		return GenomicInterval(contig, 1, dictionary.length(contig) or UNBOUNDED)
	name, _, span = spec.rpartition(":")
	contig = dictionary.resolve(name)
	if "-" in span:
		lo, _, hi = span.partition("-")
		start, end = _to_int(lo, spec), _to_int(hi, spec)
	else:
		start = end = _to_int(span, spec)
	if start < 1 or end < start:
		raise InputError(f"empty or invalid region {spec!r}")
	length = dictionary.length(contig)
	if length is not None:
		end = min(end, length)
	return GenomicInterval(contig, start, end)


def _read_region_file(path: str, dictionary: SequenceDictionary) -> List[GenomicInterval]:
	bed = path.endswith(".bed")
	out = []
	with open(path, "rt") as fh:
		for line in fh:
			line = line.strip()
			if not line or line.startswith(("#", "@", "track", "browser")):
				continue
			cols = line.split("\t")
			if len(cols) >= 3:
				contig = dictionary.resolve(cols[0])
				start, end = _to_int(cols[1], line), _to_int(cols[2], line)
				# BED is 0-based half-open, interval lists 1-based inclusive
				if bed:
					start += 1
				if end >= start:
					out.append(GenomicInterval(contig, start, end))
			else:
				out.append(parse_region(line, dictionary))
	return out


def parse_regions(specs: Iterable[str], dictionary: SequenceDictionary) -> List[GenomicInterval]:
	"""Parse region strings / files and merge them into sorted disjoint intervals."""
	raw: List[GenomicInterval] = []
	for spec in specs:
		if os.path.isfile(spec):
			raw.extend(_read_region_file(spec, dictionary))
		else:
			raw.append(parse_region(spec, dictionary))
	raw.sort(key=lambda r: (dictionary.index(r.contig), r.start, r.end))
	merged: List[GenomicInterval] = []
	for region in raw:
		if merged and merged[-1].contig == region.contig and region.start <= merged[-1].end + 1:
			last = merged[-1]
			merged[-1] = GenomicInterval(last.contig, last.start, max(last.end, region.end))
		else:
			merged.append(region)
	logger.debug("restricting to %d interval(s)", len(merged))
	return merged
