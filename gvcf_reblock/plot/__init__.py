"""Plotting API for reblocking QC reports.

Import convenience: ``from gvcf_reblock.plot import plot_band_coverage``.
"""

from .block_plots import *  # noqa: F401,F403
from .block_plots import __all__  # noqa: F401
