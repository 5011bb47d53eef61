import itertools
import random

import pytest
from conftest import block, variant

from gvcf_reblock.config import FilterMode, ReblockConfig
from gvcf_reblock.core.compactor import CompactorContext, compact
from gvcf_reblock.core.engine import reblock_records
from gvcf_reblock.core.records import NON_REF, DroppedSite
from gvcf_reblock.exceptions import LogicFault, RunCancelled
from gvcf_reblock.io.vcf_writer import format_record


def run(items, config=None, **kwargs):
    return list(compact(items, CompactorContext(config or ReblockConfig(), **kwargs)))


def spans(records):
    return [(r.start, r.end) for r in records]


def test_adjacent_blocks_in_one_band_merge():
    out = run([block(1, 10, gq=25, dp=10), block(11, 20, gq=30, dp=8, min_dp=6)])
    assert spans(out) == [(1, 20)]
    merged = out[0].payload
    assert merged.gq == 20
    assert merged.dp == 8
    assert merged.min_dp == 6


def test_blocks_in_different_bands_stay_apart():
    cfg = ReblockConfig(gq_bands=(30, 40))
    out = run([block(1, 10, gq=22), block(11, 20, gq=32)], cfg)
    assert spans(out) == [(1, 10), (11, 20)]
    assert [r.payload.gq for r in out] == [20, 30]


def test_gap_between_blocks_prevents_merge():
    out = run([block(1, 10), block(12, 20)])
    assert spans(out) == [(1, 10), (12, 20)]


def test_variant_inside_open_block_splits_it():
    out = run([block(1, 20), variant(10)])
    assert spans(out) == [(1, 9), (10, 10), (11, 20)]
    assert out[1].is_variant
    # no reference attached: the moved block start gets an unknown base
    assert out[2].ref == "N"


def test_block_after_deletion_is_trimmed():
    out = run([variant(10, ref="ACG", alts=("A",)), block(11, 20)])
    assert spans(out) == [(10, 12), (13, 20)]


def test_unsorted_output_is_a_logic_fault():
    with pytest.raises(LogicFault):
        run([variant(10), variant(5)])


def test_variant_inside_emitted_block_is_a_logic_fault():
    with pytest.raises(LogicFault):
        run([block(1, 10, gq=50), block(11, 20, gq=5), variant(5)])


def test_contig_change_flushes_block():
    out = run([block(1, 10), block(1, 10, contig="chr2")])
    assert [(r.contig, r.start, r.end) for r in out] == [("chr1", 1, 10), ("chr2", 1, 10)]


def test_records_clamped_to_contig():
    out = run([block(0, 5), block(8, 20), block(16, 30)], contig_lengths={"chr1": 15})
    assert spans(out) == [(1, 5), (8, 15)]


def test_variant_past_contig_end_truncated():
    out = run([variant(9, ref="ACG", alts=("A",))], contig_lengths={"chr1": 10})
    assert spans(out) == [(9, 10)]
    assert out[0].ref == "AC"
    assert out[0].payload.alleles == ("AC", "A", NON_REF)
    assert format_record(out[0]).startswith("chr1\t9\t.\tAC\tA,<NON_REF>\t")


def test_bridging_over_single_dropped_site():
    items = [block(1, 10), DroppedSite("chr1", 11, 11), block(12, 20)]
    assert spans(run(items, ReblockConfig(allow_bridging=True))) == [(1, 20)]
    assert spans(run(items)) == [(1, 10), (12, 20)]


def test_cancellation_discards_open_block():
    calls = itertools.count()
    items = [block(1, 10), block(11, 20), block(21, 30)]
    emitted = []
    with pytest.raises(RunCancelled):
        for record in compact(items, CompactorContext(ReblockConfig()), lambda: next(calls) >= 2):
            emitted.append(record)
    assert emitted == []


def test_unsupported_spanning_deletion_becomes_block():
    out = run([variant(10, alts=("*",), pl=(40, 0, 50, 45, 55, 90))])
    assert len(out) == 1
    assert out[0].is_block
    assert out[0].payload.gq == 0


def test_spanning_deletion_under_upstream_deletion_kept():
    upstream = variant(9, ref="AC", alts=("A",))
    spanning = variant(10, alts=("*",), pl=(40, 0, 50, 45, 55, 90))
    out = run([upstream, spanning])
    assert spans(out) == [(9, 10), (10, 10)]
    assert all(r.is_variant for r in out)


def test_keep_site_filters_intersects_constituents():
    cfg = ReblockConfig(filter_mode=FilterMode.KEEP_SITE_FILTERS)
    out = run([block(1, 10, filters={"LowQual", "X"}), block(11, 20, filters={"LowQual"})], cfg)
    assert out[0].filters == {"LowQual"}
    out = run([block(1, 10, filters={"LowQual"}), block(11, 20)], cfg)
    assert out[0].filters == frozenset()


def test_add_filters_to_genotype_writes_block_ft():
    cfg = ReblockConfig(filter_mode=FilterMode.ADD_TO_GENOTYPE)
    out = run([block(1, 10, genotype_filters={"LowQual"}), block(11, 20, genotype_filters={"LowQual"})], cfg)
    assert out[0].filters == frozenset()
    assert out[0].payload.genotype_filters == {"LowQual"}


def test_random_contiguous_blocks():
    rng = random.Random(7)
    items, pos = [], 1
    for _ in range(200):
        length = rng.randint(1, 20)
        items.append(block(pos, pos + length - 1, gq=rng.randint(0, 60), dp=rng.randint(1, 30)))
        pos += length
    out = run(items)

    assert out[0].start == 1
    assert out[-1].end == pos - 1
    for prev, cur in zip(out, out[1:]):
        assert prev.end + 1 == cur.start
        assert prev.payload.gq != cur.payload.gq
    for rec in out:
        assert rec.payload.gq in (0, 20)
        inside = [i.payload.dp for i in items if rec.start <= i.start and i.end <= rec.end]
        assert rec.payload.dp == min(inside)

    # reblocking reblocked output changes nothing
    assert run(out) == out


def test_low_quality_variant_folded_into_surrounding_blocks():
    records = [block(1, 99, gq=0), variant(100, qual=10.0), block(101, 200, gq=0)]
    out = list(reblock_records(records, ReblockConfig()))
    assert spans(out) == [(1, 200)]
    assert out[0].payload.gq == 0
    assert out[0].payload.dp == 10
