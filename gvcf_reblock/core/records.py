"""Record model for a single-sample reference-confidence stream.

A :class:`SiteRecord` shares one header (contig, span, reference bases,
site filters) between two payload shapes:

	VariantSite – alleles, one genotype call, QUAL and INFO annotations
	RefBlock    – a hom-ref (or no-call) span summarised by GQ / DP / MIN_DP

Only variant payloads can carry allele-specific data, so a block with
alt-allele annotations cannot be built.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import FrozenSet, Mapping, NamedTuple, Optional, Tuple, Union

from ..utils import format_gt

__all__ = [
	"NON_REF",
	"NON_REF_ALIASES",
	"SPAN_DEL",
	"GenomicInterval",
	"Genotype",
	"VariantSite",
	"RefBlock",
	"SiteRecord",
	"DroppedSite",
	"is_symbolic",
]

NON_REF = "<NON_REF>"
NON_REF_ALIASES = (NON_REF, "<*>")
SPAN_DEL = "*"


def is_symbolic(allele: str) -> bool:
	return allele == SPAN_DEL or allele.startswith("<")


class GenomicInterval(NamedTuple):
	"""Inclusive 1-based ``[start, end]`` on one contig."""

	contig: str
	start: int
	end: int

	def adjacent_to(self, other: "GenomicInterval") -> bool:
		return self.contig == other.contig and self.end + 1 == other.start

	def overlaps(self, other: "GenomicInterval") -> bool:
		return self.contig == other.contig and self.start <= other.end and other.start <= self.end

	@property
	def length(self) -> int:
		return self.end - self.start + 1

	def __str__(self) -> str:
		return f"{self.contig}:{self.start}-{self.end}"


@dataclass(frozen=True)
class Genotype:
	"""One sample's call at a variant site.

	``calls`` holds allele indices (None for '.'); ``attributes`` keeps every
	other FORMAT value as its raw string, and ``format_keys`` the input order.
	"""

	sample: str
	calls: Tuple[Optional[int], ...]
	phased: bool = False
	gq: Optional[int] = None
	dp: Optional[int] = None
	ad: Optional[Tuple[int, ...]] = None
	pl: Optional[Tuple[int, ...]] = None
	attributes: Mapping[str, str] = field(default_factory=dict)
	format_keys: Tuple[str, ...] = ("GT", "AD", "DP", "GQ", "PL")

	@property
	def ploidy(self) -> int:
		return len(self.calls)

	@property
	def is_no_call(self) -> bool:
		return all(c is None for c in self.calls)

	@property
	def is_hom_ref(self) -> bool:
		return all(c == 0 for c in self.calls)

	@property
	def called_alleles(self) -> FrozenSet[int]:
		return frozenset(c for c in self.calls if c is not None)

	@property
	def gt(self) -> str:
		return format_gt(self.calls, self.phased)

	def with_calls(self, calls: Tuple[Optional[int], ...]) -> "Genotype":
		return replace(self, calls=tuple(calls))


@dataclass(frozen=True)
class VariantSite:
	alleles: Tuple[str, ...]
	genotype: Genotype
	qual: Optional[float] = None
	info: Mapping[str, Optional[str]] = field(default_factory=dict)
	id: str = "."

	@property
	def non_ref_index(self) -> Optional[int]:
		for i, a in enumerate(self.alleles):
			if a in NON_REF_ALIASES:
				return i
		return None

	@property
	def n_alleles(self) -> int:
		return len(self.alleles)

	def calls_non_reference(self) -> bool:
		"""True when the genotype carries a real alternate allele.

		The NON_REF symbol itself does not count as a variant call.
		"""
		nr = self.non_ref_index
		return any(c not in (0, nr) for c in self.genotype.called_alleles)

	def calls_span_deletion(self) -> bool:
		return any(
			c is not None and self.alleles[c] == SPAN_DEL for c in self.genotype.calls
		)


@dataclass(frozen=True)
class RefBlock:
	sample: str
	gq: int
	dp: Optional[int] = None
	min_dp: Optional[int] = None
	ploidy: int = 2
	no_call: bool = False
	genotype_filters: FrozenSet[str] = frozenset()

	@property
	def gt(self) -> str:
		return format_gt([None if self.no_call else 0] * self.ploidy)


@dataclass(frozen=True)
class SiteRecord:
	"""A position-sorted record of the stream.

	For variants ``end`` is the last base of the reference allele; for blocks
	it is the block END.
	"""

	contig: str
	start: int
	end: int
	ref: str
	payload: Union[VariantSite, RefBlock]
	filters: FrozenSet[str] = frozenset()

	@property
	def is_block(self) -> bool:
		return isinstance(self.payload, RefBlock)

	@property
	def is_variant(self) -> bool:
		return isinstance(self.payload, VariantSite)

	@property
	def interval(self) -> GenomicInterval:
		return GenomicInterval(self.contig, self.start, self.end)

	@property
	def alleles(self) -> Tuple[str, ...]:
		if isinstance(self.payload, VariantSite):
			return self.payload.alleles
		return (self.ref[:1], NON_REF)

	@property
	def sample(self) -> str:
		if isinstance(self.payload, VariantSite):
			return self.payload.genotype.sample
		return self.payload.sample

	@property
	def identity(self) -> Tuple[str, int, int, Tuple[str, ...]]:
		"""Interval + allele identity used to spot boundary duplicates."""
		return (self.contig, self.start, self.end, self.alleles)

	def __str__(self) -> str:
		kind = "block" if self.is_block else "variant"
		return f"{kind} {self.interval} {','.join(self.alleles)}"


class DroppedSite(NamedTuple):
	"""Placeholder left in the stream where a site was dropped."""

	contig: str
	start: int
	end: int

	@property
	def interval(self) -> GenomicInterval:
		return GenomicInterval(self.contig, self.start, self.end)
