"""Shared plotting helpers.

Every helper saves and closes the figure when ``output_path`` is given and
returns ``None``; otherwise the open Figure is returned to the caller.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

__all__ = ["set_plot_style", "save_figure", "hist_plot", "bar_plot"]


def set_plot_style() -> None:
	sns.set_theme(style="whitegrid")
	plt.rcParams.update({
		"axes.titlesize": 13,
		"axes.labelsize": 11,
		"font.size": 10,
		"figure.dpi": 100,
	})


def save_figure(fig: plt.Figure, output_path: Optional[str]) -> Optional[plt.Figure]:
	"""Save and close ``fig`` when a path is given, else hand it back open."""
	if output_path:
		fig.savefig(output_path, bbox_inches="tight")
		plt.close(fig)
		return None
	return fig


def hist_plot(
	values: Union[pd.Series, np.ndarray, list],
	*,
	output_path: Optional[str] = None,
	title: str = "",
	xlabel: str = "",
	bins: int = 50,
	color: str = "steelblue",
	log_scale: bool = False,
	figsize: Tuple[int, int] = (8, 5),
) -> Optional[plt.Figure]:
	"""Histogram of ``values`` (NaN dropped); ``log_scale`` bins on a log10 axis."""
	set_plot_style()
	arr = np.asarray(values, dtype=float)
	arr = arr[~np.isnan(arr)]
	fig, ax = plt.subplots(figsize=figsize)
	if arr.size:
		sns.histplot(arr, bins=bins, color=color, log_scale=log_scale, ax=ax)
		title = f"{title}\n(n={arr.size:,}, range {arr.min():g}-{arr.max():g})"
	ax.set_title(title)
	ax.set_xlabel(xlabel)
	ax.set_ylabel("Count")
	fig.tight_layout()
	return save_figure(fig, output_path)


def bar_plot(
	data: pd.DataFrame,
	x: str,
	y: str,
	*,
	output_path: Optional[str] = None,
	title: str = "",
	xlabel: Optional[str] = None,
	ylabel: Optional[str] = None,
	order: Optional[Sequence[str]] = None,
	color: str = "steelblue",
	figsize: Tuple[int, int] = (8, 5),
) -> Optional[plt.Figure]:
	set_plot_style()
	fig, ax = plt.subplots(figsize=figsize)
	if not data.empty:
		sns.barplot(data=data, x=x, y=y, order=order, color=color, ax=ax)
	ax.set_title(title)
	ax.set_xlabel(xlabel or x)
	ax.set_ylabel(ylabel or y)
	fig.tight_layout()
	return save_figure(fig, output_path)
