"""Metric computation subpackage."""

from .block_metrics import compression_summary, records_table, summarize_bands  # noqa: F401

__all__ = ["records_table", "summarize_bands", "compression_summary"]
