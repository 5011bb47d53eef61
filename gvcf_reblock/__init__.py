"""gvcf_reblock – compact single-sample GVCFs into banded reference blocks.

Subpackages:
	io        – GVCF reading / writing, reference dictionary and regions
	core      – classification, allele subsetting and block compaction
	metrics   – per-band summaries of a reblocked file
	plot      – QC figures for those summaries

Run ``gvcf-reblock reblock --help`` for the command line, or call
:func:`gvcf_reblock.core.engine.run` directly.
"""

from .config import FilterMode, ReblockConfig  # noqa: F401
from .exceptions import (  # noqa: F401
	ConfigError,
	FormatError,
	InputError,
	LogicFault,
	ReblockError,
	RunCancelled,
)

__version__ = "0.1.0"
__all__ = [
	"ReblockConfig",
	"FilterMode",
	"ReblockError",
	"InputError",
	"FormatError",
	"ConfigError",
	"LogicFault",
	"RunCancelled",
	"__version__",
]
