"""GQ quantisation bands.

Band boundaries ``b1 < b2 < ... < bn`` partition ``[0, inf)`` into
``[0, b1), [b1, b2), ..., [bn, inf)``. Every reference block written by the
engine carries the representative value of its band rather than a raw GQ.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass
from functools import cached_property
from typing import Iterable, List, Optional, Tuple

from ..exceptions import ConfigError
from ..utils import MAX_GENOTYPE_QUALITY

__all__ = ["DEFAULT_GQ_BANDS", "MAX_BAND_BOUNDARY", "QualityBand", "BandSet"]

DEFAULT_GQ_BANDS: Tuple[int, ...] = (20, 100)
MAX_BAND_BOUNDARY = 100

_BLOCK_LINE = re.compile(r"^##GVCFBlock(\d+)-(\d+)=")


@dataclass(frozen=True)
class QualityBand:
	"""Half-open GQ range ``[lo, hi)``; ``hi`` is None for the open top band."""

	lo: int
	hi: Optional[int]
	representative: int

	def contains(self, gq: int) -> bool:
		return gq >= self.lo and (self.hi is None or gq < self.hi)

	@property
	def label(self) -> str:
		return f"{self.lo}-{'inf' if self.hi is None else self.hi}"


@dataclass(frozen=True)
class BandSet:
	"""Ascending, de-duplicated band boundaries plus the representative policy.

	Parameters
	----------
	boundaries : tuple of int
		Strictly ascending positive boundaries.
	floor : bool
		True -> blocks report the band floor (conservative);
		False -> blocks report the band ceiling (largest GQ inside the band).
	"""

	boundaries: Tuple[int, ...]
	floor: bool = True

	@classmethod
	def from_boundaries(cls, values: Iterable[int], floor: bool = True) -> "BandSet":
		cleaned: List[int] = []
		for v in values:
			try:
				iv = int(v)
			except (TypeError, ValueError):
				raise ConfigError(f"GQ band boundary is not an integer: {v!r}") from None
			if iv != v and not isinstance(v, str):
				raise ConfigError(f"GQ band boundary is not an integer: {v!r}")
			if iv < 1 or iv > MAX_BAND_BOUNDARY:
				raise ConfigError(
					f"GQ band boundary {iv} outside 1..{MAX_BAND_BOUNDARY}"
				)
			cleaned.append(iv)
		return cls(tuple(sorted(set(cleaned))), floor)

	@classmethod
	def from_header_lines(cls, lines: Iterable[str]) -> "BandSet":
		"""Recover the band set a reblocked file was written with."""
		edges = set()
		floor = True
		for line in lines:
			m = _BLOCK_LINE.match(line)
			if m:
				edges.update(int(v) for v in m.groups())
			elif line.startswith("##GVCFBlockRepresentative="):
				floor = line.split("=", 1)[1].strip() != "ceiling"
		edges.discard(0)
		if not edges:
			return cls.from_boundaries(DEFAULT_GQ_BANDS, floor)
		return cls.from_boundaries(edges, floor)

	@cached_property
	def bands(self) -> Tuple[QualityBand, ...]:
		edges = (0,) + self.boundaries
		out = []
		for i, lo in enumerate(edges):
			hi = edges[i + 1] if i + 1 < len(edges) else None
			out.append(QualityBand(lo, hi, self._representative(lo, hi)))
		return tuple(out)

	def _representative(self, lo: int, hi: Optional[int]) -> int:
		if self.floor or hi is None:
			return lo
		return max(lo, min(hi - 1, MAX_GENOTYPE_QUALITY))

	def band_for(self, gq: int) -> QualityBand:
		if gq < 0:
			gq = 0
		idx = bisect.bisect_right(self.boundaries, gq)
		return self.bands[idx]

	def quantize(self, gq: int) -> int:
		return self.band_for(gq).representative

	@property
	def policy(self) -> str:
		return "floor" if self.floor else "ceiling"

	def header_lines(self) -> List[str]:
		"""GVCFBlock meta lines describing each band, top band excluded when
		it cannot hold a legal GQ."""
		lines = []
		for band in self.bands:
			if band.lo > MAX_GENOTYPE_QUALITY:
				continue
			hi = band.hi if band.hi is not None else MAX_BAND_BOUNDARY
			lines.append(
				f"##GVCFBlock{band.lo}-{hi}=minGQ={band.lo}(inclusive),maxGQ={hi}(exclusive)"
			)
		lines.append(f"##GVCFBlockRepresentative={self.policy}")
		return lines
