"""Allele subsetting for kept variant sites.

A kept site is reduced to the reference allele, the alternates its genotype
calls and the NON_REF symbol. Per-allele values are re-indexed to the survivors,
the alleles are trimmed to a minimal representation and any reference positions
the trimmed site no longer covers are returned as filler reference blocks.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from ..config import ReblockConfig
from ..exceptions import LogicFault
from . import genotypes as gl
from .annotations import FieldNumbers, subset_format, subset_info
from .classifier import block_depth, likelihoods, to_reference_block
from .records import SPAN_DEL, RefBlock, SiteRecord, VariantSite, is_symbolic

logger = logging.getLogger(__name__)

__all__ = [
	"reconcile_genotype",
	"alleles_to_keep",
	"subset_alleles",
	"trim_alleles",
	"subset_site",
	"resolve_span_deletion",
]


def _valid_likelihoods(site: VariantSite, posteriors_key: Optional[str]) -> Optional[Tuple[int, ...]]:
	lik = likelihoods(site.genotype, posteriors_key)
	if lik is None or len(lik) != gl.genotype_count(site.n_alleles, site.genotype.ploidy):
		return None
	return lik


def reconcile_genotype(record: SiteRecord, posteriors_key: Optional[str] = None) -> SiteRecord:
	"""Replace a hard call that is not the most likely genotype.

	Calls and likelihoods from upstream callers can disagree; the likelihoods
	win. Partial no-calls are left alone.
	"""
	site = record.payload
	assert isinstance(site, VariantSite)
	gt = site.genotype
	if any(c is None for c in gt.calls):
		return record
	lik = _valid_likelihoods(site, posteriors_key)
	if lik is None:
		return record
	norm = gl.normalize(lik)
	if norm[gl.genotype_index(gt.calls, site.n_alleles)] == 0:
		return record
	best = gl.best_genotype(lik, site.n_alleles, gt.ploidy)
	logger.debug(
		"%s:%d: called %s disagrees with likelihoods, using %s",
		record.contig, record.start, gt.gt, "/".join(map(str, best)),
	)
	new_gt = replace(gt, calls=best, phased=False, gq=gl.gq_for_genotype(lik, best, site.n_alleles))
	return replace(record, payload=replace(site, genotype=new_gt))


def alleles_to_keep(site: VariantSite) -> List[int]:
	"""Reference, the called alternates in allele order, then NON_REF."""
	nr = site.non_ref_index
	called = sorted(c for c in site.genotype.called_alleles if c not in (0, nr))
	keep = [0] + called
	if nr is not None:
		keep.append(nr)
	return keep


def subset_alleles(
	record: SiteRecord,
	keep: Sequence[int],
	numbers: FieldNumbers,
	posteriors_key: Optional[str] = None,
) -> SiteRecord:
	"""Restrict a variant to the alleles ``keep`` (old indices, new order)."""
	site = record.payload
	assert isinstance(site, VariantSite)
	n = site.n_alleles
	if list(keep) == list(range(n)):
		return record
	remap = {old: new for new, old in enumerate(keep)}
	alleles = tuple(site.alleles[k] for k in keep)
	genotype = subset_format(site.genotype, keep, n, numbers)
	calls = tuple(None if c is None else remap.get(c, -1) for c in genotype.calls)
	sub_site = replace(
		site,
		alleles=alleles,
		genotype=genotype,
		info=subset_info(site.info, keep, n, numbers, genotype.ploidy),
	)
	lik = _valid_likelihoods(sub_site, posteriors_key)
	if -1 in calls:
		if lik is None:
			raise LogicFault(
				f"{record.contig}:{record.start}: genotype {site.genotype.gt} calls an allele "
				f"removed by subsetting and no likelihoods are left to re-call it"
			)
		calls = gl.best_genotype(lik, len(alleles), genotype.ploidy)
		genotype = replace(genotype, phased=False)
	genotype = replace(genotype, calls=calls)
	if lik is not None and not genotype.is_no_call and None not in calls:
		genotype = replace(genotype, gq=gl.gq_for_genotype(lik, calls, len(alleles)))
	return replace(record, payload=replace(sub_site, genotype=genotype))


def _filler(record: SiteRecord, start: int, end: int) -> SiteRecord:
	site = record.payload
	gt = site.genotype
	dp = block_depth(gt)
	block = RefBlock(sample=gt.sample, gq=gt.gq or 0, dp=dp, min_dp=dp, ploidy=gt.ploidy)
	base = record.ref[start - record.start] if start - record.start < len(record.ref) else "N"
	return SiteRecord(record.contig, start, end, base, block)


def trim_alleles(record: SiteRecord) -> List[SiteRecord]:
	"""Trim shared trailing then leading bases from the concrete alleles.

	Symbolic alleles (NON_REF, '*') take no part. Reference positions dropped
	by trimming come back as filler blocks around the variant.
	"""
	site = record.payload
	assert isinstance(site, VariantSite)
	concrete = [i for i, a in enumerate(site.alleles) if not is_symbolic(a)]
	seqs = [site.alleles[i] for i in concrete]
	lead = 0
	if len(seqs) == 1:
		seqs = [seqs[0][:1]]
	else:
		tail = 0
		while all(len(s) - tail > 1 for s in seqs) and len({s[-1 - tail] for s in seqs}) == 1:
			tail += 1
		if tail:
			seqs = [s[:-tail] for s in seqs]
		while all(len(s) - lead > 1 for s in seqs) and len({s[lead] for s in seqs}) == 1:
			lead += 1
		seqs = [s[lead:] for s in seqs]
	start = record.start + lead
	end = start + len(seqs[0]) - 1
	if start == record.start and end >= record.end:
		return [record]

	alleles = list(site.alleles)
	for i, seq in zip(concrete, seqs):
		alleles[i] = seq
	trimmed = replace(
		record,
		start=start,
		end=end,
		ref=seqs[0],
		payload=replace(site, alleles=tuple(alleles)),
	)
	pieces = []
	if start > record.start:
		pieces.append(_filler(record, record.start, start - 1))
	pieces.append(trimmed)
	if end < record.end:
		pieces.append(_filler(record, end + 1, record.end))
	logger.debug("trimmed %s to %s", record, trimmed.interval)
	return pieces


def _finish(record: SiteRecord, numbers: FieldNumbers, config: ReblockConfig) -> List[SiteRecord]:
	site = record.payload
	record = subset_alleles(record, alleles_to_keep(site), numbers, config.posteriors_key)
	site = record.payload
	if not site.calls_non_reference():
		lik = _valid_likelihoods(site, config.posteriors_key)
		if lik is not None:
			gq = gl.hom_ref_quality(lik)
		else:
			gq = site.genotype.gq if site.genotype.gq is not None else 0
		return [to_reference_block(record, gq)]
	return trim_alleles(record)


def subset_site(record: SiteRecord, numbers: FieldNumbers, config: ReblockConfig) -> List[SiteRecord]:
	"""Subset and trim a kept variant site.

	Returns the pieces in position order: the variant plus any filler blocks,
	or a single reference block when the surviving genotype is hom-ref.
	"""
	return _finish(reconcile_genotype(record, config.posteriors_key), numbers, config)


def resolve_span_deletion(record: SiteRecord, numbers: FieldNumbers, config: ReblockConfig) -> List[SiteRecord]:
	"""Drop spanning-deletion calls that no kept upstream deletion supports.

	Calls to '*' become reference calls and the '*' allele is subset away.
	"""
	site = record.payload
	assert isinstance(site, VariantSite)
	span = {i for i, a in enumerate(site.alleles) if a == SPAN_DEL}
	calls = tuple(0 if c in span else c for c in site.genotype.calls)
	logger.debug("%s:%d: unsupported spanning deletion call %s", record.contig, record.start, site.genotype.gt)
	record = replace(record, payload=replace(site, genotype=site.genotype.with_calls(calls)))
	return _finish(record, numbers, config)
