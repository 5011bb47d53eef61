import pytest

from gvcf_reblock.config import ReblockConfig
from gvcf_reblock.core.bands import DEFAULT_GQ_BANDS, BandSet
from gvcf_reblock.exceptions import ConfigError


def test_default_bands_floor():
    bands = BandSet.from_boundaries(DEFAULT_GQ_BANDS)
    assert bands.boundaries == (20, 100)
    assert [bands.quantize(g) for g in (0, 19, 20, 45, 99)] == [0, 0, 20, 20, 20]
    assert bands.quantize(150) == 100


def test_boundaries_sorted_and_deduplicated():
    bands = BandSet.from_boundaries((20, 100, 10, 30, 10))
    assert bands.boundaries == (10, 20, 30, 100)
    assert [b.label for b in bands.bands] == ["0-10", "10-20", "20-30", "30-100", "100-inf"]


def test_ceiling_representative_is_last_value_in_band():
    bands = BandSet.from_boundaries((20, 100), floor=False)
    assert bands.quantize(5) == 19
    assert bands.quantize(50) == 99
    assert bands.quantize(120) == 100
    assert bands.policy == "ceiling"


@pytest.mark.parametrize("bad", [0, 101, -5, "x", 2.5])
def test_invalid_boundaries_rejected(bad):
    with pytest.raises(ConfigError):
        BandSet.from_boundaries((20, bad))


def test_every_quantized_value_is_a_representative():
    bands = BandSet.from_boundaries((5, 10, 20, 30, 40, 50, 60, 100), floor=False)
    reps = {b.representative for b in bands.bands}
    for gq in range(0, 100):
        q = bands.quantize(gq)
        assert q in reps
        # quantizing is stable: a representative maps to itself
        assert bands.quantize(q) == q


def test_header_lines_describe_bands_and_policy():
    lines = BandSet.from_boundaries(DEFAULT_GQ_BANDS).header_lines()
    assert lines == [
        "##GVCFBlock0-20=minGQ=0(inclusive),maxGQ=20(exclusive)",
        "##GVCFBlock20-100=minGQ=20(inclusive),maxGQ=100(exclusive)",
        "##GVCFBlockRepresentative=floor",
    ]


def test_band_set_recovered_from_header_lines():
    original = BandSet.from_boundaries((10, 20, 30, 100), floor=False)
    recovered = BandSet.from_header_lines(original.header_lines())
    assert recovered == original


def test_config_adds_custom_bands_to_defaults():
    cfg = ReblockConfig(gq_bands=(10,))
    assert cfg.bands.boundaries == (10, 20, 100)
    assert cfg.bands.quantize(15) == 10


def test_config_rejects_bad_band_at_construction():
    with pytest.raises(ConfigError):
        ReblockConfig(gq_bands=(0,))
