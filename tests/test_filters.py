import pytest
from conftest import block, variant

from gvcf_reblock.config import FilterMode
from gvcf_reblock.core.filters import apply_filter_policy, constituent_filters, merge_filters, parse_filters
from gvcf_reblock.exceptions import ConfigError


def test_parse_filters():
    assert parse_filters(".") == frozenset()
    assert parse_filters("PASS") == frozenset()
    assert parse_filters("LowQual;VQSRTrancheSNP99.00to100.00") == {"LowQual", "VQSRTrancheSNP99.00to100.00"}


def test_conflicting_modes_rejected():
    with pytest.raises(ConfigError):
        FilterMode.from_flags(True, True)
    assert FilterMode.from_flags(False, False) is FilterMode.DROP


def test_unfiltered_constituent_wins():
    assert merge_filters(frozenset({"LowQual"}), frozenset()) == frozenset()
    assert merge_filters(frozenset({"LowQual"}), frozenset({"LowQual", "X"})) == {"LowQual"}


def test_default_mode_drops_filters():
    rec = variant(100, filters={"LowQual"})
    assert apply_filter_policy(rec, FilterMode.DROP).filters == frozenset()
    assert constituent_filters(block(1, 10, filters={"LowQual"}), FilterMode.DROP) == frozenset()


def test_keep_site_filters_leaves_record_alone():
    rec = variant(100, filters={"LowQual"})
    assert apply_filter_policy(rec, FilterMode.KEEP_SITE_FILTERS) is rec


def test_add_to_genotype_moves_variant_filters_to_ft():
    rec = variant(100, filters={"LowQual", "AB"})
    out = apply_filter_policy(rec, FilterMode.ADD_TO_GENOTYPE)
    assert out.filters == frozenset()
    gt = out.payload.genotype
    assert gt.attributes["FT"] == "AB;LowQual"
    assert gt.format_keys[-1] == "FT"


def test_add_to_genotype_moves_block_filters():
    rec = block(1, 10, filters={"LowQual"})
    out = apply_filter_policy(rec, FilterMode.ADD_TO_GENOTYPE)
    assert out.filters == frozenset()
    assert out.payload.genotype_filters == {"LowQual"}
