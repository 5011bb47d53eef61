"""Reblocking QC metrics.

Turns a reblocked record stream into a DataFrame and summarises how the
genome is partitioned into GQ bands.
"""
from __future__ import annotations

from typing import Iterable, Optional

import numpy as np
import pandas as pd

from ..core.bands import DEFAULT_GQ_BANDS, BandSet
from ..core.records import RefBlock, SiteRecord

__all__ = ["records_table", "summarize_bands", "compression_summary"]

COLUMNS = ["Chrom", "Start", "End", "Length", "Kind", "GQ", "DP", "MIN_DP", "Band"]


def records_table(records: Iterable[SiteRecord], bands: Optional[BandSet] = None) -> pd.DataFrame:
    """Return DataFrame with columns: Chrom, Start, End, Length, Kind, GQ, DP, MIN_DP, Band.

    Variants get Kind='variant' and an empty Band.
    """
    bands = bands or BandSet.from_boundaries(DEFAULT_GQ_BANDS)
    rows = []
    for rec in records:
        payload = rec.payload
        if isinstance(payload, RefBlock):
            kind, gq, dp, min_dp = "block", payload.gq, payload.dp, payload.min_dp
            band = bands.band_for(gq).label
        else:
            gt = payload.genotype
            kind, gq, dp, min_dp, band = "variant", gt.gq, gt.dp, None, None
        rows.append({
            "Chrom": rec.contig,
            "Start": rec.start,
            "End": rec.end,
            "Length": rec.end - rec.start + 1,
            "Kind": kind,
            "GQ": gq,
            "DP": dp,
            "MIN_DP": min_dp,
            "Band": band,
        })
    df = pd.DataFrame(rows, columns=COLUMNS)
    for col in ["Start", "End", "Length", "GQ", "DP", "MIN_DP"]:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def summarize_bands(df: pd.DataFrame) -> pd.DataFrame:
    """Per-band record count, covered bases and mean block length (blocks only)."""
    blocks = df[df["Kind"] == "block"]
    if blocks.empty:
        return pd.DataFrame(columns=["Band", "Blocks", "Bases", "MeanLength", "BaseFraction"])
    out = (
        blocks.groupby("Band", sort=False)
        .agg(Blocks=("Length", "size"), Bases=("Length", "sum"), MeanLength=("Length", "mean"))
        .reset_index()
    )
    out["BaseFraction"] = out["Bases"] / out["Bases"].sum()
    # order bands by their lower bound
    lo = out["Band"].str.split("-").str[0].astype(int)
    return out.iloc[np.argsort(lo.to_numpy(), kind="stable")].reset_index(drop=True)


def compression_summary(n_in: int, n_out: int) -> pd.DataFrame:
    """Single-row table of input / output record counts and their ratio."""
    ratio = n_out / n_in if n_in else float("nan")
    return pd.DataFrame([{"RecordsIn": n_in, "RecordsOut": n_out, "Ratio": ratio}])
