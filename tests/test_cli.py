import pandas as pd
from conftest import block_line, variant_line, write_gvcf

from gvcf_reblock.cli import build_parser, config_from_args, main
from gvcf_reblock.config import FilterMode


def test_parser_builds_config():
    args = build_parser().parse_args([
        "reblock", "-V", "in.g.vcf", "-O", "out.g.vcf",
        "-GQB", "10", "-GQB", "30", "--no-floor-blocks",
        "--annotations-to-keep", "FOO,BAR", "--add-filters-to-genotype",
    ])
    cfg = config_from_args(args)
    assert cfg.bands.boundaries == (10, 20, 30, 100)
    assert not cfg.floor_blocks
    assert cfg.annotations_to_keep == {"FOO", "BAR"}
    assert cfg.filter_mode is FilterMode.ADD_TO_GENOTYPE


def test_reblock_command(gvcf_dir, tmp_path):
    path = write_gvcf(gvcf_dir / "in.g.vcf", [block_line(1, 100), variant_line(101), block_line(102, 200)])
    output = tmp_path / "out.g.vcf"
    summary = tmp_path / "summary.tsv"
    assert main(["reblock", "-V", path, "-O", str(output), "--summary", str(summary)]) == 0
    assert output.exists()
    table = pd.read_csv(summary, sep="\t")
    assert table.loc[0, "RecordsIn"] == 3
    assert table.loc[0, "RecordsOut"] == 3


def test_conflicting_filter_flags_fail(gvcf_dir, tmp_path):
    path = write_gvcf(gvcf_dir / "in.g.vcf", [block_line(1, 100)])
    argv = ["reblock", "-V", path, "-O", str(tmp_path / "out.g.vcf"), "--keep-site-filters", "--add-filters-to-genotype"]
    assert main(argv) == 1
    assert not (tmp_path / "out.g.vcf").exists()


def test_no_command():
    assert main([]) == 1


def test_report_command(gvcf_dir, tmp_path):
    path = write_gvcf(gvcf_dir / "in.g.vcf", [block_line(1, 100, gq=10), block_line(101, 400, gq=40), variant_line(401)])
    out = tmp_path / "report"
    assert main(["report", "--vcf", path, "--out", str(out)]) == 0
    bands = pd.read_csv(out / "band_summary.tsv", sep="\t")
    assert list(bands["Band"]) == ["0-20", "20-100"]
    assert list(bands["Bases"]) == [100, 300]
    assert (out / "band_coverage.png").exists()
    assert (out / "block_length_distribution.png").exists()
