"""Error taxonomy for reblocking runs.

Every error aborts the run; there is no partial-success mode and nothing is
retried. The transform is deterministic, so the fix is always to correct the
input or configuration and run again.
"""

__all__ = [
    "ReblockError",
    "InputError",
    "FormatError",
    "ConfigError",
    "LogicFault",
    "RunCancelled",
]


class ReblockError(Exception):
    """Base class for all errors raised by gvcf_reblock."""


class InputError(ReblockError):
    """The input files are inconsistent (mixed samples, overlapping shards,
    unsorted records, unknown contigs)."""


class FormatError(ReblockError):
    """The input is not a reference-confidence (GVCF) stream at all."""


class ConfigError(ReblockError):
    """Contradictory options, or a required annotation is absent."""


class LogicFault(ReblockError):
    """An internal invariant was violated. Never swallowed."""


class RunCancelled(ReblockError):
    """The caller's stop condition fired at a record boundary."""
