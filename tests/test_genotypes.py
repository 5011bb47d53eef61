from gvcf_reblock.core import genotypes as gl
from gvcf_reblock.utils import pl_to_gq


def test_diploid_vcf_order():
    assert gl.genotype_tuples(3, 2) == ((0, 0), (0, 1), (1, 1), (0, 2), (1, 2), (2, 2))
    assert gl.genotype_index((1, 0), 3) == 1
    assert gl.genotype_index((2, 2), 3) == 5


def test_haploid_and_triploid_counts():
    assert gl.genotype_tuples(3, 1) == ((0,), (1,), (2,))
    assert gl.genotype_count(2, 3) == 4
    assert gl.genotype_count(4, 2) == 10


def test_subset_genotype_values_drops_removed_alleles():
    pls = [0, 10, 20, 30, 40, 50]
    assert gl.subset_genotype_values(pls, 3, 2, [0, 2]) == [0, 30, 50]


def test_subset_genotype_values_reorders():
    pls = [0, 10, 20, 30, 40, 50]
    assert gl.subset_genotype_values(pls, 3, 2, [0, 2, 1]) == [0, 30, 50, 10, 40, 20]


def test_best_genotype_and_gq():
    assert gl.best_genotype([30, 0, 40], 2, 2) == (0, 1)
    assert gl.gq_for_genotype([40, 0, 30], (0, 1), 2) == 30
    # a call that is not the most likely genotype gets no confidence
    assert gl.gq_for_genotype([40, 0, 30], (1, 1), 2) == 0


def test_hom_ref_quality():
    assert gl.hom_ref_quality([0, 25, 60]) == 25
    assert gl.hom_ref_quality([10, 0, 40]) == 0
    assert gl.hom_ref_quality([0, 200, 300]) == 99
    assert gl.hom_ref_quality(None) == 0


def test_allele_specific_qual():
    pls = [50, 0, 40, 60, 45, 70]
    assert gl.allele_specific_qual(pls, 3, 2, 1) == 50
    assert gl.allele_specific_qual(pls, 3, 2, 2) == 0


def test_pl_to_gq_caps_at_99():
    assert pl_to_gq([0, 150, 300]) == 99
    assert pl_to_gq([12, 0, 40]) == 12
    assert pl_to_gq([5]) is None
