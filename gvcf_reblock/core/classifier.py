"""Site classification: keep a variant, downgrade it to a reference block,
pass a reference block through, or drop the site.

Every function here is a pure per-record transform.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from ..config import ReblockConfig
from ..exceptions import ConfigError
from ..utils import parse_float, parse_int, parse_int_list
from . import genotypes as gl
from .records import Genotype, RefBlock, SiteRecord, VariantSite

logger = logging.getLogger(__name__)

__all__ = [
	"Decision",
	"Classified",
	"likelihoods",
	"block_depth",
	"to_reference_block",
	"effective_score",
	"classify",
]


class Decision(enum.Enum):
	REFERENCE_BLOCK = "reference-block"
	KEEP_VARIANT = "keep-variant"
	DOWNGRADE = "downgrade"
	DROP = "drop"


@dataclass(frozen=True)
class Classified:
	"""Classification result.

	For REFERENCE_BLOCK and DOWNGRADE ``record`` is already a block; for
	KEEP_VARIANT and DROP it is the input record.
	"""

	decision: Decision
	record: SiteRecord


def likelihoods(genotype: Genotype, posteriors_key: Optional[str] = None) -> Optional[Tuple[int, ...]]:
	"""Phred-scaled genotype values, posteriors preferred when configured."""
	if posteriors_key:
		posteriors = parse_int_list(genotype.attributes.get(posteriors_key))
		if posteriors is not None:
			return posteriors
	return genotype.pl


def block_depth(genotype: Genotype) -> Optional[int]:
	if genotype.dp is not None:
		return genotype.dp
	if genotype.ad is not None:
		return sum(genotype.ad)
	return None


def to_reference_block(record: SiteRecord, gq: int, no_call: bool = False) -> SiteRecord:
	"""Rewrite a variant-site record as a reference block over its reference span.

	Variant-specific annotations and site filters are stripped.
	"""
	site = record.payload
	assert isinstance(site, VariantSite)
	gt = site.genotype
	dp = block_depth(gt)
	min_dp = parse_int(gt.attributes.get("MIN_DP"))
	block = RefBlock(
		sample=gt.sample,
		gq=max(0, int(gq)),
		dp=dp,
		min_dp=min_dp if min_dp is not None else dp,
		ploidy=gt.ploidy,
		no_call=no_call,
	)
	return SiteRecord(record.contig, record.start, record.end, record.ref, block, frozenset())


def effective_score(record: SiteRecord, config: ReblockConfig) -> Tuple[Optional[float], float]:
	"""Return ``(score, cutoff)`` for a variant site.

	With a tree-score threshold configured the tree score replaces QUAL.
	A required tree score that is absent raises ConfigError; an optional one
	that is absent yields ``None`` (the site counts as low quality).
	"""
	site = record.payload
	assert isinstance(site, VariantSite)
	if config.uses_tree_score:
		score = parse_float(site.info.get(config.tree_score_key))
		if score is None and config.tree_score_required:
			raise ConfigError(
				f"{config.tree_score_key} is required but missing at {record.contig}:{record.start}"
			)
		return score, float(config.tree_score_threshold)
	score = site.qual
	if score is None:
		lik = likelihoods(site.genotype, config.posteriors_key)
		if lik is not None and len(lik) > 1:
			score = float(gl.normalize(lik)[0])
	return score, config.low_qual_cutoff


def _regenotype(record: SiteRecord, lik: Tuple[int, ...]) -> SiteRecord:
	site = record.payload
	assert isinstance(site, VariantSite)
	gt = site.genotype
	if len(lik) != gl.genotype_count(site.n_alleles, gt.ploidy):
		return record
	calls = gl.best_genotype(lik, site.n_alleles, gt.ploidy)
	new_gt = replace(gt, calls=calls, gq=gl.gq_for_genotype(lik, calls, site.n_alleles))
	logger.debug("re-called no-call genotype at %s:%d as %s", record.contig, record.start, new_gt.gt)
	return replace(record, payload=replace(site, genotype=new_gt))


def classify(record: SiteRecord, config: ReblockConfig) -> Classified:
	if isinstance(record.payload, RefBlock):
		if config.drop_low_quals and record.payload.gq == 0:
			return Classified(Decision.DROP, record)
		return Classified(Decision.REFERENCE_BLOCK, record)

	site = record.payload
	lik = likelihoods(site.genotype, config.posteriors_key)
	if site.genotype.is_no_call:
		if config.regenotype_no_calls and lik is not None:
			record = _regenotype(record, lik)
			site = record.payload
		if site.genotype.is_no_call:
			gq = site.genotype.gq if site.genotype.gq is not None else gl.hom_ref_quality(lik)
			return Classified(Decision.REFERENCE_BLOCK, to_reference_block(record, gq, no_call=True))

	if not site.calls_non_reference():
		if lik is not None:
			gq = gl.hom_ref_quality(lik)
		elif site.genotype.is_hom_ref and site.genotype.gq is not None:
			gq = site.genotype.gq
		else:
			gq = 0
		if config.drop_low_quals and gq == 0:
			return Classified(Decision.DROP, record)
		return Classified(Decision.REFERENCE_BLOCK, to_reference_block(record, gq))

	score, cutoff = effective_score(record, config)
	low = score is None or score < cutoff
	if not low and config.rgq_threshold > 0 and lik is not None and len(lik) > 1:
		low = gl.normalize(lik)[0] < config.rgq_threshold
	if low:
		if config.drop_low_quals:
			return Classified(Decision.DROP, record)
		return Classified(Decision.DOWNGRADE, to_reference_block(record, gl.hom_ref_quality(lik)))
	return Classified(Decision.KEEP_VARIANT, record)
