"""Streaming GVCF reader.

Plain-text (optionally gzipped) parsing without pysam / cyvcf2: the engine
only ever needs one forward pass over a single-sample file, so each line is
split and turned into a :class:`~gvcf_reblock.core.records.SiteRecord`.
"""

from __future__ import annotations

import gzip
import logging
from typing import Iterator, List, Optional

from ..core.filters import parse_filters
from ..core.records import NON_REF_ALIASES, Genotype, RefBlock, SiteRecord, VariantSite
from ..exceptions import FormatError, InputError
from ..utils import (
	parse_float,
	parse_format_sample,
	parse_gt,
	parse_info_field,
	parse_int,
	parse_int_list,
	pl_to_gq,
)
from .header import VcfHeader

logger = logging.getLogger(__name__)

__all__ = ["GVCFReader", "open_text"]

# FORMAT keys held in dedicated Genotype fields
_TYPED_KEYS = ("GT", "GQ", "DP", "AD", "PL")


def open_text(path: str, mode: str = "rt"):
	if path.endswith(".gz"):
		return gzip.open(path, mode)
	return open(path, mode)


class GVCFReader:
	"""Single-sample GVCF reader.

	Parameters
	----------
	path : str
		Path to a (optionally gzipped) GVCF.
	max_records : int | None
		Optional limit for testing / faster prototyping.
	"""

	def __init__(self, path: str, max_records: Optional[int] = None):
		self.path = path
		self.max_records = max_records
		self._header: Optional[VcfHeader] = None

	# -- header -----------------------------------------------------------
	def read_header(self) -> VcfHeader:
		if self._header is not None:
			return self._header
		meta: List[str] = []
		with open_text(self.path) as fh:
			for line in fh:
				line = line.rstrip("\r\n")
				if line.startswith("##"):
					meta.append(line)
					continue
				if line.startswith("#CHROM"):
					cols = line.split("\t")
					header = VcfHeader(meta, cols[9:])
					if not header.declares_reference_confidence:
						raise FormatError(f"{self.path}: not a GVCF (no NON_REF allele or GVCFBlock lines in the header)")
					self._header = header
					return header
				break
		raise FormatError(f"{self.path}: no #CHROM header line")

	@property
	def sample(self) -> str:
		samples = self.read_header().samples
		if len(samples) != 1:
			raise InputError(
				f"{self.path}: expected exactly one sample, found {len(samples)}"
			)
		return samples[0]

	# -- records ----------------------------------------------------------
	def records(self) -> Iterator[SiteRecord]:
		sample = self.sample
		count = 0
		with open_text(self.path) as fh:
			for lineno, line in enumerate(fh, 1):
				if not line.strip() or line.startswith("#"):
					continue
				yield self._parse(line.rstrip("\r\n").split("\t"), sample, lineno)
				count += 1
				if self.max_records and count >= self.max_records:
					break
		logger.debug("%s: read %d records", self.path, count)

	def _parse(self, parts: List[str], sample: str, lineno: int) -> SiteRecord:
		where = f"{self.path}:{lineno}"
		if len(parts) != 10:
			raise InputError(f"{where}: expected 10 columns, found {len(parts)}")
		chrom, pos, vid, ref, alt, qual, flt, info_raw, fmt, values = parts
		alts = [] if alt == "." else alt.split(",")
		if not any(a in NON_REF_ALIASES for a in alts):
			raise FormatError(
				f"{where}: record has no <NON_REF> allele; input is not a GVCF reference-confidence stream"
			)
		try:
			start = int(pos)
			fields = parse_format_sample(fmt, values)
			calls, phased = parse_gt(fields.get("GT"))
		except ValueError as exc:
			raise FormatError(f"{where}: {exc}") from None
		info = parse_info_field(info_raw)
		filters = parse_filters(flt)
		gq = parse_int(fields.get("GQ"))
		dp = parse_int(fields.get("DP"))
		pl = parse_int_list(fields.get("PL"))

		if all(a in NON_REF_ALIASES for a in alts) and all(c in (0, None) for c in calls):
			end = parse_int(info.get("END")) or start
			if end < start:
				raise FormatError(f"{where}: END {end} before POS {start}")
			if gq is None:
				gq = pl_to_gq(pl) or 0
			block = RefBlock(
				sample=sample,
				gq=gq,
				dp=dp,
				min_dp=parse_int(fields.get("MIN_DP")),
				ploidy=len(calls),
				no_call=all(c is None for c in calls),
				genotype_filters=parse_filters(fields.get("FT") or ""),
			)
			return SiteRecord(chrom, start, end, ref, block, filters)

		genotype = Genotype(
			sample=sample,
			calls=calls,
			phased=phased,
			gq=gq,
			dp=dp,
			ad=parse_int_list(fields.get("AD")),
			pl=pl,
			attributes={k: v for k, v in fields.items() if k not in _TYPED_KEYS and v is not None},
			format_keys=tuple(fields),
		)
		for c in calls:
			if c is not None and c > len(alts):
				raise FormatError(f"{where}: GT {genotype.gt} references allele {c} of {len(alts) + 1}")
		site = VariantSite(
			alleles=(ref, *alts),
			genotype=genotype,
			qual=parse_float(qual),
			info=info,
			id=vid,
		)
		return SiteRecord(chrom, start, start + len(ref) - 1, ref, site, filters)
