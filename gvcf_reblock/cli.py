"""Command line interface for gvcf_reblock.

Subcommands:
	reblock – compact one sample's GVCF shard(s) into a single banded GVCF
	report  – band summaries and QC plots for a reblocked GVCF

Example:
	python -m gvcf_reblock.cli reblock -V shard1.g.vcf.gz -V shard2.g.vcf.gz -O out.g.vcf.gz -GQB 10 -GQB 30
"""

from __future__ import annotations

import argparse
import logging
import shlex
import sys
from pathlib import Path

from .config import FilterMode, ReblockConfig
from .core.bands import BandSet
from .core.engine import run
from .exceptions import ReblockError
from .io import GVCFReader
from .metrics import compression_summary, records_table, summarize_bands
from .plot import (
	plot_band_block_counts,
	plot_band_coverage,
	plot_block_length_distribution,
	plot_block_min_dp_distribution,
)

logger = logging.getLogger("gvcf_reblock")


def _split_keys(values) -> frozenset:
	keys = set()
	for v in values or []:
		keys.update(k.strip() for k in v.split(",") if k.strip())
	return frozenset(keys)


def config_from_args(args: argparse.Namespace) -> ReblockConfig:
	return ReblockConfig(
		low_qual_cutoff=args.call_confidence,
		drop_low_quals=args.drop_low_quals,
		rgq_threshold=args.rgq_threshold,
		gq_bands=tuple(args.gq_band or ()),
		floor_blocks=args.floor_blocks,
		tree_score_key=args.tree_score_key,
		tree_score_threshold=args.tree_score_threshold,
		tree_score_required=args.require_tree_score,
		filter_mode=FilterMode.from_flags(args.keep_site_filters, args.add_filters_to_genotype),
		annotations_to_keep=_split_keys(args.annotations_to_keep),
		annotations_to_remove=_split_keys(args.annotations_to_remove),
		allow_bridging=args.bridge_dropped_sites,
		do_qual_approx=args.do_qual_approx,
		posteriors_key=args.posteriors_key,
		regenotype_no_calls=args.regenotype_no_calls,
	)


def cmd_reblock(args: argparse.Namespace) -> int:
	config = config_from_args(args)
	command_line = " ".join(shlex.quote(a) for a in ["gvcf-reblock"] + list(args.argv))
	summary = run(
		args.variant,
		args.output,
		config,
		reference_path=args.reference,
		regions=args.intervals,
		command_line=command_line,
	)
	if args.summary:
		summary_path = Path(args.summary)
		summary_path.parent.mkdir(parents=True, exist_ok=True)
		compression_summary(summary.records_in, summary.records_out).assign(
			**{k: v for k, v in summary.as_dict().items() if k not in ("records_in", "records_out")}
		).to_csv(summary_path, sep="\t", index=False)
	print(f"Reblocked GVCF written to {args.output}: {summary}")
	return 0


def cmd_report(args: argparse.Namespace) -> int:
	outdir = Path(args.out)
	outdir.mkdir(parents=True, exist_ok=True)

	reader = GVCFReader(args.vcf, max_records=args.max_records)
	header = reader.read_header()
	bands = BandSet.from_header_lines(header.meta_lines)
	df = records_table(reader.records(), bands)
	if df.empty:
		print("No records found.")
		return 0
	df.to_csv(outdir / "records.tsv", sep="\t", index=False)
	band_df = summarize_bands(df)
	band_df.to_csv(outdir / "band_summary.tsv", sep="\t", index=False)

	plot_band_coverage(band_df, output_path=str(outdir / "band_coverage.png"))
	plot_band_block_counts(band_df, output_path=str(outdir / "band_block_counts.png"))
	plot_block_length_distribution(df, output_path=str(outdir / "block_length_distribution.png"))
	if df["MIN_DP"].notna().any():
		plot_block_min_dp_distribution(df, output_path=str(outdir / "block_min_dp_distribution.png"))
	print(f"Reblocking report written to {outdir}")
	return 0


def build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(prog="gvcf-reblock", description="Compact single-sample GVCFs into GQ-banded reference blocks")
	p.add_argument("--verbose", action="store_true", help="Debug logging")
	sub = p.add_subparsers(dest="command")

	sp = sub.add_parser("reblock", help="Reblock one sample's GVCF shard(s)")
	sp.add_argument("-V", "--variant", action="append", required=True, help="Input GVCF (repeat for shards of the same sample)")
	sp.add_argument("-O", "--output", required=True, help="Output GVCF (.gz for gzip)")
	sp.add_argument("-R", "--reference", default=None, help="Reference FASTA, indexed on first use (contig lengths and block REF bases)")
	sp.add_argument("-L", "--intervals", action="append", default=None, help="Region(s) or interval file(s) to restrict to")
	sp.add_argument("--call-confidence", type=float, default=30.0, help="QUAL below which variants are downgraded (default: 30)")
	sp.add_argument("--drop-low-quals", action="store_true", help="Drop low-quality variants and GQ-0 blocks instead of keeping them as blocks")
	sp.add_argument("--rgq-threshold", type=float, default=0.0, help="Downgrade variants whose hom-ref likelihood (normalised PL[0]) is below this value")
	sp.add_argument("-GQB", "--gq-band", type=int, action="append", default=None, help="Extra GQ band boundary in 1..100 (repeatable)")
	sp.add_argument("--floor-blocks", dest="floor_blocks", action="store_true", default=True, help="Report each band by its floor (default)")
	sp.add_argument("--no-floor-blocks", dest="floor_blocks", action="store_false", help="Report each band by its ceiling")
	sp.add_argument("--tree-score-key", default="TREE_SCORE", help="INFO key of the secondary confidence score")
	sp.add_argument("--tree-score-threshold", type=float, default=None, help="Use the tree score instead of QUAL, with this cutoff")
	sp.add_argument("--require-tree-score", action="store_true", help="Fail when a variant lacks the tree score")
	sp.add_argument("--keep-site-filters", action="store_true", help="Keep site-level FILTER values")
	sp.add_argument("--add-filters-to-genotype", action="store_true", help="Move site filters to FORMAT/FT")
	sp.add_argument("--annotations-to-keep", action="append", default=None, help="INFO/FORMAT keys to force-keep (comma separated, repeatable)")
	sp.add_argument("--annotations-to-remove", action="append", default=None, help="INFO/FORMAT keys to force-remove (comma separated, repeatable)")
	sp.add_argument("--bridge-dropped-sites", action="store_true", help="Let a block merge across a single dropped site")
	sp.add_argument("--do-qual-approx", action="store_true", help="Add QUALapprox, AS_QUALapprox, VarDP, AS_VarDP and RAW_GT_COUNT")
	sp.add_argument("--posteriors-key", default=None, help="FORMAT key of phred-scaled posteriors to prefer over PL")
	sp.add_argument("--regenotype-no-calls", action="store_true", help="Re-call no-call variant genotypes from likelihoods")
	sp.add_argument("--summary", default=None, help="Optional TSV with run counters")
	sp.set_defaults(func=cmd_reblock)

	sp2 = sub.add_parser("report", help="Band summaries and QC plots for a reblocked GVCF")
	sp2.add_argument("--vcf", required=True, help="Reblocked GVCF")
	sp2.add_argument("--out", required=True, help="Output directory for tables and plots")
	sp2.add_argument("--max-records", type=int, default=None, help="Limit number of records parsed (debug)")
	sp2.set_defaults(func=cmd_report)
	return p


def main(argv=None):
	argv = list(sys.argv[1:] if argv is None else argv)
	parser = build_parser()
	args = parser.parse_args(argv)
	logging.basicConfig(
		level=logging.DEBUG if args.verbose else logging.INFO,
		format="[%(levelname)s] %(message)s",
	)
	if not hasattr(args, "func"):
		parser.print_help()
		return 1
	args.argv = argv
	try:
		return args.func(args)
	except ReblockError as exc:
		logger.error("%s: %s", type(exc).__name__, exc)
		return 1


if __name__ == "__main__":  # pragma: no cover
	sys.exit(main())
