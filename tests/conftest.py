"""Shared builders for in-memory records and small GVCF files."""

import os

import matplotlib

matplotlib.use("Agg")

import pytest  # noqa: E402

from gvcf_reblock.config import ReblockConfig  # noqa: E402
from gvcf_reblock.core.records import NON_REF, Genotype, RefBlock, SiteRecord, VariantSite  # noqa: E402

SAMPLE = "NA12878"

# diploid PLs over (A, G, <NON_REF>) with 0/1 clearly best
HET_PL = (50, 0, 60, 55, 65, 110)


def block(start, end, gq=30, dp=10, min_dp=None, contig="chr1", ref="A", ploidy=2,
          no_call=False, filters=(), genotype_filters=(), sample=SAMPLE):
    payload = RefBlock(
        sample=sample,
        gq=gq,
        dp=dp,
        min_dp=min_dp,
        ploidy=ploidy,
        no_call=no_call,
        genotype_filters=frozenset(genotype_filters),
    )
    return SiteRecord(contig, start, end, ref, payload, frozenset(filters))


def variant(start, ref="A", alts=("G",), calls=(0, 1), pl=HET_PL, qual=50.0, gq=None, dp=18,
            ad=None, info=None, contig="chr1", filters=(), attributes=None, phased=False, sample=SAMPLE):
    alleles = (ref,) + tuple(alts)
    if NON_REF not in alleles:
        alleles += (NON_REF,)
    attributes = dict(attributes or {})
    keys = ["GT"] + (["AD"] if ad else []) + ["DP", "GQ"] + (["PL"] if pl else []) + list(attributes)
    genotype = Genotype(
        sample=sample,
        calls=tuple(calls),
        phased=phased,
        gq=gq,
        dp=dp,
        ad=tuple(ad) if ad else None,
        pl=tuple(pl) if pl else None,
        attributes=attributes,
        format_keys=tuple(keys),
    )
    site = VariantSite(alleles=alleles, genotype=genotype, qual=qual, info=dict(info or {}))
    return SiteRecord(contig, start, start + len(ref) - 1, ref, site, frozenset(filters))


# -- GVCF text -----------------------------------------------------------
HEADER_LINES = [
    "##fileformat=VCFv4.2",
    '##ALT=<ID=NON_REF,Description="Represents any possible alternative allele at this location">',
    '##FILTER=<ID=LowQual,Description="Low quality">',
    '##INFO=<ID=END,Number=1,Type=Integer,Description="Stop position of the interval">',
    '##INFO=<ID=DP,Number=1,Type=Integer,Description="Approximate read depth">',
    '##INFO=<ID=MQ,Number=1,Type=Float,Description="RMS Mapping Quality">',
    '##INFO=<ID=MLEAC,Number=A,Type=Integer,Description="Maximum likelihood expectation (MLE) for the allele counts">',
    '##FORMAT=<ID=GT,Number=1,Type=String,Description="Genotype">',
    '##FORMAT=<ID=AD,Number=R,Type=Integer,Description="Allelic depths">',
    '##FORMAT=<ID=DP,Number=1,Type=Integer,Description="Approximate read depth">',
    '##FORMAT=<ID=GQ,Number=1,Type=Integer,Description="Genotype Quality">',
    '##FORMAT=<ID=MIN_DP,Number=1,Type=Integer,Description="Minimum DP observed within the GVCF block">',
    '##FORMAT=<ID=PL,Number=G,Type=Integer,Description="Normalized, Phred-scaled likelihoods">',
    "##contig=<ID=chr1,length=5000>",
    "##contig=<ID=chr2,length=3000>",
]


def block_line(start, end, gq=30, dp=10, contig="chr1", ref="A", min_dp=None):
    min_dp = dp if min_dp is None else min_dp
    return (
        f"{contig}\t{start}\t.\t{ref}\t<NON_REF>\t.\t.\tEND={end}\t"
        f"GT:DP:GQ:MIN_DP:PL\t0/0:{dp}:{gq}:{min_dp}:0,{gq},{gq * 2}"
    )


def variant_line(pos, ref="A", alt="G", gt="0/1", qual="50", pl="50,0,60,55,65,110", ad="10,8,0",
                 dp=18, gq=50, contig="chr1", info="DP=18;MQ=60.00", filt="."):
    return (
        f"{contig}\t{pos}\t.\t{ref}\t{alt},<NON_REF>\t{qual}\t{filt}\t{info}\t"
        f"GT:AD:DP:GQ:PL\t{gt}:{ad}:{dp}:{gq}:{pl}"
    )


def write_gvcf(path, lines, samples=(SAMPLE,), extra_header=()):
    cols = ["#CHROM", "POS", "ID", "REF", "ALT", "QUAL", "FILTER", "INFO", "FORMAT"] + list(samples)
    with open(path, "wt") as fh:
        for line in HEADER_LINES + list(extra_header):
            fh.write(line + "\n")
        fh.write("\t".join(cols) + "\n")
        for line in lines:
            fh.write(line + "\n")
    return str(path)


@pytest.fixture
def config():
    return ReblockConfig()


@pytest.fixture
def gvcf_dir(tmp_path):
    d = tmp_path / "gvcfs"
    os.makedirs(d)
    return d
