"""Run configuration for the reblocking engine.

A single frozen :class:`ReblockConfig` is built once per run (normally by the
CLI) and threaded explicitly through every component. Nothing in the engine
reads process-wide settings, so independent runs can proceed side by side.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from functools import cached_property
from typing import FrozenSet, Optional, Tuple

from .core.bands import DEFAULT_GQ_BANDS, BandSet
from .exceptions import ConfigError

__all__ = ["FilterMode", "ReblockConfig", "DEFAULT_CALL_CONFIDENCE", "DEFAULT_TREE_SCORE_KEY"]

DEFAULT_CALL_CONFIDENCE = 30.0
DEFAULT_TREE_SCORE_KEY = "TREE_SCORE"


class FilterMode(enum.Enum):
    """How site filters survive reblocking."""

    DROP = "drop"
    KEEP_SITE_FILTERS = "keep-site-filters"
    ADD_TO_GENOTYPE = "add-filters-to-genotype"

    @classmethod
    def from_flags(cls, keep_site_filters: bool, add_filters_to_genotype: bool) -> "FilterMode":
        if keep_site_filters and add_filters_to_genotype:
            raise ConfigError(
                "--keep-site-filters and --add-filters-to-genotype are mutually exclusive"
            )
        if keep_site_filters:
            return cls.KEEP_SITE_FILTERS
        if add_filters_to_genotype:
            return cls.ADD_TO_GENOTYPE
        return cls.DROP


@dataclass(frozen=True)
class ReblockConfig:
    """Immutable option set consumed by the core.

    Attributes
    ----------
    low_qual_cutoff : float
        Variant sites whose QUAL is below this value are low quality.
        Equality passes.
    drop_low_quals : bool
        Drop low-quality variant sites and GQ-0 reference blocks instead of
        downgrading / keeping them.
    rgq_threshold : float
        Variant sites whose normalised hom-ref likelihood (PL[0]) is below
        this value are downgraded to GQ-0 reference blocks.
    gq_bands : tuple of int
        Custom band boundaries, added to :data:`DEFAULT_GQ_BANDS`.
    floor_blocks : bool
        Represent each band by its floor (True) or its ceiling (False).
    tree_score_key, tree_score_threshold, tree_score_required
        Secondary confidence score used instead of QUAL when a threshold is
        set. A required score that is absent on a variant site is fatal.
    filter_mode : FilterMode
        Site filter propagation policy.
    annotations_to_keep, annotations_to_remove : frozenset of str
        INFO / FORMAT keys forced into or out of the output.
    allow_bridging : bool
        Let a reference block extend across a single dropped site.
    do_qual_approx : bool
        Emit QUALapprox, AS_QUALapprox, VarDP, AS_VarDP and RAW_GT_COUNT.
    posteriors_key : str | None
        FORMAT key with phred-scaled posteriors preferred over PL.
    regenotype_no_calls : bool
        Re-call all-no-call variant genotypes from likelihoods instead of
        treating them as hom-ref.
    """

    low_qual_cutoff: float = DEFAULT_CALL_CONFIDENCE
    drop_low_quals: bool = False
    rgq_threshold: float = 0.0
    gq_bands: Tuple[int, ...] = ()
    floor_blocks: bool = True
    tree_score_key: str = DEFAULT_TREE_SCORE_KEY
    tree_score_threshold: Optional[float] = None
    tree_score_required: bool = False
    filter_mode: FilterMode = FilterMode.DROP
    annotations_to_keep: FrozenSet[str] = field(default_factory=frozenset)
    annotations_to_remove: FrozenSet[str] = field(default_factory=frozenset)
    allow_bridging: bool = False
    do_qual_approx: bool = False
    posteriors_key: Optional[str] = None
    regenotype_no_calls: bool = False

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.low_qual_cutoff < 0:
            raise ConfigError(f"call confidence must be >= 0, got {self.low_qual_cutoff}")
        if self.rgq_threshold < 0:
            raise ConfigError(f"rgq threshold must be >= 0, got {self.rgq_threshold}")
        if self.tree_score_required and self.tree_score_threshold is None:
            raise ConfigError("a required tree score needs --tree-score-threshold")
        both = self.annotations_to_keep & self.annotations_to_remove
        if both:
            raise ConfigError(
                f"annotations both kept and removed: {', '.join(sorted(both))}"
            )
        # building the bands validates the boundaries
        _ = self.bands

    @cached_property
    def bands(self) -> BandSet:
        return BandSet.from_boundaries(
            tuple(DEFAULT_GQ_BANDS) + tuple(self.gq_bands), floor=self.floor_blocks
        )

    @property
    def uses_tree_score(self) -> bool:
        return self.tree_score_threshold is not None
