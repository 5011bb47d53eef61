"""Annotation recalculation.

Covers three jobs:

* re-indexing per-allele INFO / FORMAT values after allele subsetting,
  strictly from the surviving alleles' raw values;
* recomputing site summaries (QUALapprox family, RAW_MQandDP from the
  deprecated mapping-quality fields) and pruning keys that do not survive
  reblocking;
* combining depth summaries when reference blocks merge, and describing all
  written keys in the output header.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Optional, Sequence

from ..config import FilterMode, ReblockConfig
from ..io.header import VcfHeader
from ..utils import join_values, parse_float, parse_int
from . import genotypes as gl
from .records import Genotype, SiteRecord, VariantSite

logger = logging.getLogger(__name__)

__all__ = [
	"FieldNumbers",
	"POPULATION_KEYS",
	"DEFAULT_INFO_KEYS",
	"subset_values",
	"subset_info",
	"subset_format",
	"rewrite_deprecated",
	"qual_approx_annotations",
	"recalculate_variant",
	"combine_dp",
	"combine_min_dp",
	"build_output_header",
]

RAW_MQ_AND_DP = "RAW_MQandDP"
RAW_MQ_DEPRECATED = "RAW_MQ"
MQ_DP_DEPRECATED = "MQ_DP"

QUAL_APPROX_KEYS = ("QUALapprox", "AS_QUALapprox", "VarDP", "AS_VarDP", "RAW_GT_COUNT")

# allele-frequency style annotations with no meaning in a single-sample stream
POPULATION_KEYS = frozenset(
	{"MLEAC", "MLEAF", "AC", "AF", "AN", "ExcessHet", "InbreedingCoeff"}
)

DEFAULT_INFO_KEYS = frozenset(
	{
		"DP",
		"MQ",
		"MQRankSum",
		"ReadPosRankSum",
		"BaseQRankSum",
		"ClippingRankSum",
		"FS",
		"SOR",
		"QD",
		"DS",
		RAW_MQ_AND_DP,
		"AS_RAW_MQ",
		"AS_RAW_MQRankSum",
		"AS_RAW_ReadPosRankSum",
		"AS_RAW_BaseQRankSum",
		"AS_SB_TABLE",
		"AS_MQ",
		"AS_MQRankSum",
		"AS_ReadPosRankSum",
		"AS_BaseQRankSum",
		"AS_FS",
		"AS_SOR",
	}
	| set(QUAL_APPROX_KEYS)
)

# FORMAT keys whose values are re-indexed by the dedicated Genotype fields
_TYPED_FORMAT_KEYS = ("GT", "GQ", "DP", "AD", "PL")


@dataclass(frozen=True)
class FieldNumbers:
	"""Declared VCF ``Number`` of every INFO / FORMAT key."""

	info: Mapping[str, str] = field(default_factory=dict)
	format: Mapping[str, str] = field(default_factory=dict)

	@classmethod
	def from_header(cls, header: VcfHeader) -> "FieldNumbers":
		return cls(
			{k: v.get("Number", ".") for k, v in header.info.items()},
			{k: v.get("Number", ".") for k, v in header.format.items()},
		)


# -- per-allele re-indexing ------------------------------------------------
def _count_kind(declared: Optional[str], n_values: int, n_alleles: int, ploidy: int) -> Optional[str]:
	if declared in ("A", "R", "G"):
		return declared
	if declared != ".":
		# undeclared keys and fixed counts pass through unchanged
		return None
	# Number=.: infer from the value count
	if n_values == n_alleles:
		return "R"
	if n_values == n_alleles - 1:
		return "A"
	if n_values == gl.genotype_count(n_alleles, ploidy):
		return "G"
	return None


def subset_values(
	values: Sequence[str],
	kind: str,
	keep: Sequence[int],
	n_alleles: int,
	ploidy: int = 2,
) -> Optional[List[str]]:
	"""Re-index an A/R/G list to ``keep``; None when the length does not fit."""
	if kind == "R":
		if len(values) != n_alleles:
			return None
		return [values[k] for k in keep]
	if kind == "A":
		if len(values) != n_alleles - 1:
			return None
		return [values[k - 1] for k in keep if k > 0]
	if kind == "G":
		if len(values) != gl.genotype_count(n_alleles, ploidy):
			return None
		return gl.subset_genotype_values(values, n_alleles, ploidy, keep)
	return list(values)


def _subset_raw(
	raw: str,
	declared: Optional[str],
	keep: Sequence[int],
	n_alleles: int,
	ploidy: int,
	sep: str,
) -> Optional[str]:
	values = raw.split(sep)
	kind = _count_kind(declared, len(values), n_alleles, ploidy)
	if kind is None:
		# fixed or variable length value that is not per-allele
		return raw
	subset = subset_values(values, kind, keep, n_alleles, ploidy)
	return None if subset is None else sep.join(subset)


def subset_info(
	info: Mapping[str, Optional[str]],
	keep: Sequence[int],
	n_alleles: int,
	numbers: FieldNumbers,
	ploidy: int = 2,
) -> Dict[str, Optional[str]]:
	"""Re-index per-allele INFO values to the surviving alleles.

	Allele-specific raw annotations (``AS_*`` with '|' separated entries)
	must hold one entry per allele (or per alt); anything else cannot be
	re-indexed and is dropped rather than copied through.
	"""
	out: Dict[str, Optional[str]] = {}
	for key, raw in info.items():
		if raw is None:
			out[key] = None
			continue
		if key.startswith("AS_") and "|" in raw:
			entries = raw.split("|")
			if len(entries) == n_alleles:
				kind = "R"
			elif len(entries) == n_alleles - 1:
				kind = "A"
			else:
				logger.debug("dropping %s=%s: %d entries for %d alleles", key, raw, len(entries), n_alleles)
				continue
			subset = subset_values(entries, kind, keep, n_alleles, ploidy)
			if subset is not None:
				out[key] = "|".join(subset)
			continue
		value = _subset_raw(raw, numbers.info.get(key), keep, n_alleles, ploidy, ",")
		if value is None:
			logger.debug("dropping %s=%s: length does not match %d alleles", key, raw, n_alleles)
			continue
		out[key] = value
	return out


def subset_format(
	genotype: Genotype,
	keep: Sequence[int],
	n_alleles: int,
	numbers: FieldNumbers,
) -> Genotype:
	"""Re-index AD, PL and every per-allele extended FORMAT value."""
	ploidy = genotype.ploidy
	ad = genotype.ad
	if ad is not None:
		sub = subset_values(list(ad), "R", keep, n_alleles, ploidy)
		ad = tuple(int(v) for v in sub) if sub is not None else None
	pl = genotype.pl
	if pl is not None:
		sub = subset_values(list(pl), "G", keep, n_alleles, ploidy)
		pl = tuple(int(v) for v in sub) if sub is not None else None
	attrs: Dict[str, str] = {}
	keys = []
	for key in genotype.format_keys:
		if key in _TYPED_FORMAT_KEYS:
			keys.append(key)
			continue
		raw = genotype.attributes.get(key)
		if raw is None:
			keys.append(key)
			continue
		value = _subset_raw(raw, numbers.format.get(key), keep, n_alleles, ploidy, ",")
		if value is None:
			logger.debug("dropping FORMAT %s=%s after subsetting", key, raw)
			continue
		attrs[key] = value
		keys.append(key)
	return replace(genotype, ad=ad, pl=pl, attributes=attrs, format_keys=tuple(keys))


# -- site summaries --------------------------------------------------------
def rewrite_deprecated(info: Mapping[str, Optional[str]]) -> Dict[str, Optional[str]]:
	"""Replace RAW_MQ / MQ_DP (or a bare mean MQ) with RAW_MQandDP."""
	out = dict(info)
	if RAW_MQ_AND_DP in out:
		out.pop(RAW_MQ_DEPRECATED, None)
		out.pop(MQ_DP_DEPRECATED, None)
		return out
	raw_mq = parse_float(out.get(RAW_MQ_DEPRECATED))
	depth = parse_int(out.get(MQ_DP_DEPRECATED))
	if depth is None:
		depth = parse_int(out.get("DP"))
	if raw_mq is None:
		mean_mq = parse_float(out.get("MQ"))
		if mean_mq is not None and depth is not None:
			raw_mq = mean_mq * mean_mq * depth
	if raw_mq is not None and depth is not None:
		out[RAW_MQ_AND_DP] = f"{int(round(raw_mq))},{depth}"
	out.pop(RAW_MQ_DEPRECATED, None)
	out.pop(MQ_DP_DEPRECATED, None)
	return out


def qual_approx_annotations(site: VariantSite) -> Dict[str, str]:
	"""QUALapprox family computed from the (already subset) genotype."""
	gt = site.genotype
	out: Dict[str, str] = {}
	n = site.n_alleles
	if gt.pl is not None and len(gt.pl) == gl.genotype_count(n, gt.ploidy):
		norm = gl.normalize(gt.pl)
		out["QUALapprox"] = str(norm[0])
		per_allele = ["0"] + [
			str(gl.allele_specific_qual(gt.pl, n, gt.ploidy, a)) for a in range(1, n)
		]
		out["AS_QUALapprox"] = "|".join(per_allele)
	if gt.ad is not None and len(gt.ad) == n:
		nr = site.non_ref_index
		out["VarDP"] = str(sum(v for i, v in enumerate(gt.ad) if i != nr))
		out["AS_VarDP"] = "|".join(str(v) for v in gt.ad)
	called = [c for c in gt.calls if c is not None]
	if called:
		counts = [0, 0, 0]
		if all(c == 0 for c in called):
			counts[0] = 1
		elif len(set(called)) > 1:
			counts[1] = 1
		else:
			counts[2] = 1
		out["RAW_GT_COUNT"] = join_values(counts)
	return out


def _kept_info_keys(config: ReblockConfig) -> frozenset:
	keep = set(DEFAULT_INFO_KEYS)
	if not config.do_qual_approx:
		keep -= set(QUAL_APPROX_KEYS)
	keep |= config.annotations_to_keep
	if config.uses_tree_score:
		keep.add(config.tree_score_key)
	return frozenset(keep - config.annotations_to_remove)


def recalculate_variant(record: SiteRecord, config: ReblockConfig) -> SiteRecord:
	"""Recompute summary annotations of a kept (already subset) variant."""
	site = record.payload
	assert isinstance(site, VariantSite)
	info = rewrite_deprecated(site.info)
	info.pop("END", None)
	if config.do_qual_approx:
		info.update(qual_approx_annotations(site))
	kept = _kept_info_keys(config)
	info = {k: v for k, v in info.items() if k in kept}
	genotype = site.genotype
	removed = [k for k in genotype.format_keys if k in config.annotations_to_remove and k != "GT"]
	if removed:
		attrs = {k: v for k, v in genotype.attributes.items() if k not in removed}
		keys = tuple(k for k in genotype.format_keys if k not in removed)
		genotype = replace(genotype, attributes=attrs, format_keys=keys)
		if "PL" in removed:
			genotype = replace(genotype, pl=None)
		if "AD" in removed:
			genotype = replace(genotype, ad=None)
	return replace(record, payload=replace(site, info=info, genotype=genotype))


# -- block summaries -------------------------------------------------------
def combine_dp(a: Optional[int], b: Optional[int]) -> Optional[int]:
	"""Merged block DP: minimum, absent if any constituent lacks DP."""
	if a is None or b is None:
		return None
	return min(a, b)


def combine_min_dp(a: Optional[int], b: Optional[int]) -> Optional[int]:
	if a is None:
		return b
	if b is None:
		return a
	return min(a, b)


# -- header ----------------------------------------------------------------
_INFO_LINES = {
	"END": ("1", "Integer", "Stop position of the interval"),
	RAW_MQ_AND_DP: (
		"2",
		"Integer",
		"Raw data (sum of squared MQ and total depth) for improved RMS Mapping Quality calculation. Incompatible with deprecated RAW_MQ formulation.",
	),
	"QUALapprox": ("1", "Integer", "Sum of PL[0] values; used to approximate the QUAL score"),
	"AS_QUALapprox": ("1", "String", "Allele-specific QUAL approximations"),
	"VarDP": ("1", "Integer", "(informative) depth over variant genotypes"),
	"AS_VarDP": ("1", "String", "Allele-specific (informative) depth over variant genotypes -- including ref, RAW format"),
	"RAW_GT_COUNT": ("3", "Integer", "Counts of genotypes w.r.t. the reference allele in the following order: 0/0, 0/1, 1/1"),
}

_FORMAT_LINES = {
	"GT": ("1", "String", "Genotype"),
	"GQ": ("1", "Integer", "Genotype Quality"),
	"DP": ("1", "Integer", "Approximate read depth (reads with MQ=255 or with bad mates are filtered)"),
	"MIN_DP": ("1", "Integer", "Minimum DP observed within the GVCF block"),
	"FT": ("1", "String", "Genotype-level filter"),
}

_DEPRECATED_LINES = {
	RAW_MQ_DEPRECATED: ("1", "Float", "Raw data for RMS Mapping Quality (deprecated)"),
	MQ_DP_DEPRECATED: ("1", "Integer", "Depth over variant samples for better MQ calculation (deprecated -- use RAW_MQandDP instead.)"),
}


def _define(header: VcfHeader, kind: str, key: str, spec) -> None:
	number, typ, desc = spec
	header.set_line(kind, {"ID": key, "Number": number, "Type": typ, "Description": desc})


def build_output_header(
	header: VcfHeader,
	config: ReblockConfig,
	command_line: Optional[str] = None,
) -> VcfHeader:
	"""Describe every key the engine writes, including deprecated rewrites."""
	out = header.copy()
	out.remove_prefix("##GVCFBlock")
	for line in config.bands.header_lines():
		out.add_meta(line)
	for key in ("END", RAW_MQ_AND_DP):
		_define(out, "INFO", key, _INFO_LINES[key])
	if config.do_qual_approx:
		for key in QUAL_APPROX_KEYS:
			_define(out, "INFO", key, _INFO_LINES[key])
	for key, spec in _DEPRECATED_LINES.items():
		if key in out.info:
			_define(out, "INFO", key, spec)
	for key in ("GT", "GQ", "DP", "MIN_DP"):
		_define(out, "FORMAT", key, _FORMAT_LINES[key])
	if config.filter_mode is FilterMode.ADD_TO_GENOTYPE:
		_define(out, "FORMAT", "FT", _FORMAT_LINES["FT"])
	if "NON_REF" not in out.alts:
		out.set_line("ALT", {"ID": "NON_REF", "Description": "Represents any possible alternative allele not already represented at this location by REF and ALT"})
	for key in POPULATION_KEYS - set(config.annotations_to_keep):
		out.remove_line("INFO", key)
	for key in config.annotations_to_remove:
		out.remove_line("INFO", key)
		out.remove_line("FORMAT", key)
	if command_line:
		out.remove_prefix("##reblockCommandLine=")
		out.add_meta(f"##reblockCommandLine={command_line}")
	return out
