"""Reference-block QC plots.

Inputs are the DataFrames built by :mod:`gvcf_reblock.metrics.block_metrics`.
"""

from __future__ import annotations

from typing import Optional

import matplotlib.pyplot as plt
import pandas as pd

from .base import bar_plot, hist_plot

__all__ = [
	"plot_band_coverage",
	"plot_band_block_counts",
	"plot_block_length_distribution",
	"plot_block_min_dp_distribution",
]


def plot_band_coverage(band_summary: pd.DataFrame, output_path: Optional[str] = None) -> Optional[plt.Figure]:
	"""Fraction of block-covered bases falling in each GQ band."""
	return bar_plot(
		band_summary,
		"Band",
		"BaseFraction",
		output_path=output_path,
		title="Reference bases per GQ band",
		xlabel="GQ band",
		ylabel="Fraction of block bases",
		order=list(band_summary["Band"]) if not band_summary.empty else None,
	)


def plot_band_block_counts(band_summary: pd.DataFrame, output_path: Optional[str] = None) -> Optional[plt.Figure]:
	return bar_plot(
		band_summary,
		"Band",
		"Blocks",
		output_path=output_path,
		title="Reference blocks per GQ band",
		xlabel="GQ band",
		ylabel="Blocks",
		order=list(band_summary["Band"]) if not band_summary.empty else None,
		color="#78909C",
	)


def plot_block_length_distribution(records: pd.DataFrame, output_path: Optional[str] = None) -> Optional[plt.Figure]:
	"""Block lengths on a log axis; lengths span several orders of magnitude."""
	blocks = records[records["Kind"] == "block"]
	return hist_plot(
		blocks["Length"],
		output_path=output_path,
		title="Reference block length",
		xlabel="Block length (bp)",
		log_scale=True,
	)


def plot_block_min_dp_distribution(records: pd.DataFrame, output_path: Optional[str] = None) -> Optional[plt.Figure]:
	blocks = records[records["Kind"] == "block"]
	return hist_plot(
		blocks["MIN_DP"],
		output_path=output_path,
		title="Reference block MIN_DP",
		xlabel="MIN_DP",
		color="darkorange",
	)
