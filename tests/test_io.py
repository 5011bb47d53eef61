import os

import pytest
from conftest import HEADER_LINES, SAMPLE, block, block_line, variant, variant_line, write_gvcf

from gvcf_reblock.core.records import NON_REF
from gvcf_reblock.exceptions import FormatError, InputError
from gvcf_reblock.io import FastaReference, GVCFReader, GVCFWriter, SequenceDictionary, VcfHeader, format_record, parse_regions
from gvcf_reblock.io.header import parse_structured_line
from gvcf_reblock.utils import format_info_field, parse_format_sample, parse_gt, parse_info_field


def test_parse_info_field():
    assert parse_info_field("DP=10;DB;MQ=60.00") == {"DP": "10", "DB": None, "MQ": "60.00"}
    assert parse_info_field(".") == {}
    assert format_info_field({"DP": "10", "DB": None}) == "DP=10;DB"
    assert format_info_field({}) == "."


def test_parse_format_sample_and_gt():
    assert parse_format_sample("GT:AD:DP", "0/1:10,5:.") == {"GT": "0/1", "AD": "10,5", "DP": None}
    assert parse_gt("1|0") == ((1, 0), True)
    assert parse_gt("./.") == ((None, None), False)


def test_structured_line_with_quoted_commas():
    line = '##FORMAT=<ID=AD,Number=R,Type=Integer,Description="Allelic depths, ref first">'
    parsed = parse_structured_line(line)
    assert parsed["ID"] == "AD"
    assert parsed["Number"] == "R"
    assert parsed["Description"] == "Allelic depths, ref first"


def test_read_header(gvcf_dir):
    path = write_gvcf(gvcf_dir / "in.g.vcf", [])
    header = GVCFReader(path).read_header()
    assert header.samples == [SAMPLE]
    assert header.contigs == {"chr1": 5000, "chr2": 3000}
    assert header.number_of("FORMAT", "PL") == "G"
    assert header.declares_reference_confidence


def test_read_block_and_variant(gvcf_dir):
    path = write_gvcf(gvcf_dir / "in.g.vcf", [block_line(1, 100, gq=30, dp=10), variant_line(101)])
    blk, var = list(GVCFReader(path).records())

    assert blk.is_block
    assert (blk.start, blk.end) == (1, 100)
    assert (blk.payload.gq, blk.payload.dp, blk.payload.min_dp) == (30, 10, 10)

    assert var.is_variant
    site = var.payload
    assert site.alleles == ("A", "G", NON_REF)
    assert site.qual == 50.0
    assert site.info == {"DP": "18", "MQ": "60.00"}
    gt = site.genotype
    assert gt.calls == (0, 1)
    assert gt.ad == (10, 8, 0)
    assert gt.pl == (50, 0, 60, 55, 65, 110)
    assert gt.format_keys == ("GT", "AD", "DP", "GQ", "PL")


def test_max_records(gvcf_dir):
    path = write_gvcf(gvcf_dir / "in.g.vcf", [block_line(1, 10), block_line(11, 20), block_line(21, 30)])
    assert len(list(GVCFReader(path, max_records=2).records())) == 2


def test_plain_vcf_is_a_format_error(gvcf_dir):
    line = "chr1\t5\t.\tA\tG\t50\t.\t.\tGT:PL\t0/1:10,0,20"
    path = write_gvcf(gvcf_dir / "in.vcf", [line])
    with pytest.raises(FormatError):
        list(GVCFReader(path).records())


def test_header_without_reference_confidence_rejected(tmp_path):
    path = tmp_path / "in.vcf"
    path.write_text(
        "##fileformat=VCFv4.2\n"
        "##contig=<ID=chr1,length=5000>\n"
        f"#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\tFORMAT\t{SAMPLE}\n"
    )
    with pytest.raises(FormatError):
        GVCFReader(str(path)).read_header()


def test_multi_sample_input_rejected(gvcf_dir):
    path = write_gvcf(gvcf_dir / "in.g.vcf", [], samples=("A", "B"))
    with pytest.raises(InputError):
        GVCFReader(path).sample


def test_format_block_record():
    rec = block(1, 10, gq=20, dp=8, min_dp=6, genotype_filters={"LowQual"})
    assert format_record(rec) == "chr1\t1\t.\tA\t<NON_REF>\t.\t.\tEND=10\tGT:DP:GQ:MIN_DP:FT\t0/0:8:20:6:LowQual"


def test_format_variant_record():
    rec = variant(100, gq=50, ad=(10, 8, 0), info={"DP": "18"}, filters={"LowQual"})
    assert format_record(rec) == (
        "chr1\t100\t.\tA\tG,<NON_REF>\t50.00\tLowQual\tDP=18\t"
        "GT:AD:DP:GQ:PL\t0/1:10,8,0:18:50:50,0,60,55,65,110"
    )


def test_writer_commits_on_close(tmp_path):
    path = str(tmp_path / "out.g.vcf")
    with GVCFWriter(path, VcfHeader(HEADER_LINES, [SAMPLE])) as writer:
        writer.write(block(1, 10))
    assert writer.records_written == 1
    assert os.listdir(tmp_path) == ["out.g.vcf"]
    with open(path) as fh:
        lines = fh.read().splitlines()
    assert lines[0] == "##fileformat=VCFv4.2"
    assert lines[-2].startswith("#CHROM")
    assert lines[-1] == format_record(block(1, 10))


def test_writer_abort_leaves_nothing(tmp_path):
    writer = GVCFWriter(str(tmp_path / "out.g.vcf"), VcfHeader(HEADER_LINES, [SAMPLE])).open()
    writer.write(block(1, 10))
    writer.abort()
    assert os.listdir(tmp_path) == []


def test_writer_exception_leaves_nothing(tmp_path):
    with pytest.raises(RuntimeError):
        with GVCFWriter(str(tmp_path / "out.g.vcf"), VcfHeader(HEADER_LINES, [SAMPLE])) as writer:
            writer.write(block(1, 10))
            raise RuntimeError("boom")
    assert os.listdir(tmp_path) == []


def test_gzip_output_reads_back(tmp_path):
    path = str(tmp_path / "out.g.vcf.gz")
    rec = block(1, 10, gq=20, dp=8, min_dp=6)
    with GVCFWriter(path, VcfHeader(HEADER_LINES, [SAMPLE])) as writer:
        writer.write(rec)
    assert list(GVCFReader(path).records()) == [rec]


@pytest.fixture
def fasta(tmp_path):
    path = tmp_path / "ref.fa"
    path.write_text(">chr1\nACGTACGTAC\nGTAC\n")
    (tmp_path / "ref.fa.fai").write_text("chr1\t14\t6\t10\t11\n")
    return str(path)


def test_fasta_base_lookup(fasta):
    with FastaReference(fasta) as ref:
        assert ref.base("chr1", 1) == "A"
        assert ref.base("chr1", 11) == "G"
        assert ref.base("chr1", 14) == "C"
        assert ref.base("chr1", 15) == "N"
        assert ref.dictionary.lengths == {"chr1": 14}
        with pytest.raises(InputError):
            ref.base("chr9", 1)


def test_fasta_index_built_when_missing(tmp_path):
    path = tmp_path / "ref.fa"
    path.write_text(">chr1\nACGTAC\nGT\n>chr2\nttag\n")
    with FastaReference(str(path)) as ref:
        assert ref.base("chr1", 7) == "G"
        assert ref.base("chr2", 1) == "T"
        assert ref.dictionary.lengths == {"chr1": 8, "chr2": 4}
    assert (tmp_path / "ref.fa.fai").exists()


def test_missing_fasta_rejected(tmp_path):
    with pytest.raises(InputError):
        FastaReference(str(tmp_path / "absent.fa"))


@pytest.fixture
def dictionary():
    return SequenceDictionary([("chr1", 5000), ("chr2", 3000)])


def test_regions_sorted_and_merged(dictionary):
    regions = parse_regions(["chr2", "chr1:100-200", "chr1:150-300", "chr1:301-400"], dictionary)
    assert [str(r) for r in regions] == ["chr1:100-400", "chr2:1-3000"]


def test_region_contig_prefix_resolved(dictionary):
    assert [str(r) for r in parse_regions(["1:5-10"], dictionary)] == ["chr1:5-10"]


def test_unknown_region_contig_rejected(dictionary):
    with pytest.raises(InputError):
        parse_regions(["chrX:1-10"], dictionary)


def test_bed_regions_are_zero_based(tmp_path, dictionary):
    bed = tmp_path / "targets.bed"
    bed.write_text("track name=targets\nchr1\t0\t10\nchr1\t20\t30\n")
    assert [str(r) for r in parse_regions([str(bed)], dictionary)] == ["chr1:1-10", "chr1:21-30"]
