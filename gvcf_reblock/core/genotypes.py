"""Genotype-likelihood arithmetic.

G-count fields (PL, posteriors, priors) store one value per unordered
genotype in VCF order: for ploidy 2 the genotype ``j/k`` (j <= k) sits at
``k*(k+1)/2 + j``. The general ordering sorts allele multisets by their
largest allele first, which reduces to the diploid formula.
"""

from __future__ import annotations

from functools import lru_cache
from itertools import combinations_with_replacement
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from ..utils import MAX_GENOTYPE_QUALITY, pl_to_gq

__all__ = [
	"genotype_tuples",
	"genotype_count",
	"genotype_index",
	"subset_genotype_values",
	"best_genotype",
	"normalize",
	"hom_ref_quality",
	"gq_for_genotype",
	"allele_specific_qual",
]


@lru_cache(maxsize=256)
def genotype_tuples(n_alleles: int, ploidy: int) -> Tuple[Tuple[int, ...], ...]:
	"""All genotypes (sorted allele tuples) for ``n_alleles`` in VCF order."""
	combos = combinations_with_replacement(range(n_alleles), ploidy)
	return tuple(sorted(combos, key=lambda t: tuple(reversed(t))))


@lru_cache(maxsize=256)
def _index_table(n_alleles: int, ploidy: int) -> Dict[Tuple[int, ...], int]:
	return {g: i for i, g in enumerate(genotype_tuples(n_alleles, ploidy))}


def genotype_count(n_alleles: int, ploidy: int) -> int:
	return len(genotype_tuples(n_alleles, ploidy))


def genotype_index(calls: Sequence[int], n_alleles: int) -> int:
	return _index_table(n_alleles, len(calls))[tuple(sorted(calls))]


def subset_genotype_values(
	values: Sequence,
	n_alleles: int,
	ploidy: int,
	keep: Sequence[int],
) -> list:
	"""Re-index a G-count list to the allele subset ``keep``.

	``keep`` lists the old allele indices in their new order. Values of
	genotypes that involve removed alleles are discarded, never renormalised.
	"""
	table = _index_table(n_alleles, ploidy)
	idx = [
		table[tuple(sorted(keep[a] for a in g))]
		for g in genotype_tuples(len(keep), ploidy)
	]
	arr = np.asarray(values, dtype=object)
	return arr[np.asarray(idx, dtype=int)].tolist()


def best_genotype(pls: Sequence[int], n_alleles: int, ploidy: int) -> Tuple[int, ...]:
	"""Most likely genotype (lowest phred value); ties go to the earliest index."""
	i = int(np.argmin(np.asarray(pls)))
	return genotype_tuples(n_alleles, ploidy)[i]


def normalize(pls: Sequence[int]) -> Tuple[int, ...]:
	arr = np.asarray(pls, dtype=int)
	return tuple(int(v) for v in arr - arr.min())


def hom_ref_quality(pls: Optional[Sequence[int]]) -> int:
	"""Confidence that the sample is hom-ref, from its own likelihoods.

	0 when hom-ref is not the best genotype, otherwise the gap to the best
	alternative genotype, capped at 99.
	"""
	if pls is None or len(pls) < 2:
		return 0
	norm = np.asarray(normalize(pls))
	if norm[0] > 0:
		return 0
	return int(min(norm[1:].min(), MAX_GENOTYPE_QUALITY))


def gq_for_genotype(pls: Sequence[int], calls: Sequence[int], n_alleles: int) -> int:
	"""GQ of a specific call: 0 unless it is the best genotype."""
	norm = np.asarray(normalize(pls))
	if norm[genotype_index(calls, n_alleles)] > 0:
		return 0
	gq = pl_to_gq(norm.tolist())
	return 0 if gq is None else gq


def allele_specific_qual(pls: Sequence[int], n_alleles: int, ploidy: int, allele: int) -> int:
	"""Phred confidence that ``allele`` is present, from the ref/allele sub-model."""
	sub = subset_genotype_values(pls, n_alleles, ploidy, [0, allele])
	return int(normalize(sub)[0])
