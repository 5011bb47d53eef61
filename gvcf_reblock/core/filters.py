"""Filter propagation.

Filters are tracked on reference-block accumulators as the set shared by
all constituents (an unfiltered constituent wins) and resolved into site or
genotype filters only when a record is emitted.
"""

from __future__ import annotations

from dataclasses import replace
from typing import FrozenSet, Iterable

from ..config import FilterMode
from .records import RefBlock, SiteRecord, VariantSite

__all__ = ["PASS", "parse_filters", "constituent_filters", "merge_filters", "apply_filter_policy"]

PASS = "PASS"


def parse_filters(value: str) -> FrozenSet[str]:
	"""FILTER / FT column -> set of failing filter names ('PASS' and '.' -> empty)."""
	if not value or value in (".", PASS):
		return frozenset()
	return frozenset(f for f in value.split(";") if f and f != PASS)


def constituent_filters(record: SiteRecord, mode: FilterMode) -> FrozenSet[str]:
	"""Filters a record contributes to a block accumulator under ``mode``."""
	if mode is FilterMode.DROP:
		return frozenset()
	if mode is FilterMode.ADD_TO_GENOTYPE and isinstance(record.payload, RefBlock):
		return record.filters | record.payload.genotype_filters
	return record.filters


def merge_filters(a: FrozenSet[str], b: FrozenSet[str]) -> FrozenSet[str]:
	return a & b


def _format_filters(filters: Iterable[str]) -> str:
	return ";".join(sorted(filters))


def apply_filter_policy(record: SiteRecord, mode: FilterMode) -> SiteRecord:
	"""Resolve a record's filters for output."""
	payload = record.payload
	if mode is FilterMode.DROP:
		if isinstance(payload, RefBlock) and payload.genotype_filters:
			payload = replace(payload, genotype_filters=frozenset())
		return replace(record, payload=payload, filters=frozenset())
	if mode is FilterMode.KEEP_SITE_FILTERS:
		return record
	# add-filters-to-genotype: site filters move onto the sample
	if isinstance(payload, RefBlock):
		payload = replace(payload, genotype_filters=record.filters | payload.genotype_filters)
		return replace(record, payload=payload, filters=frozenset())
	assert isinstance(payload, VariantSite)
	genotype = payload.genotype
	if record.filters:
		attrs = dict(genotype.attributes)
		attrs["FT"] = _format_filters(record.filters)
		keys = genotype.format_keys if "FT" in genotype.format_keys else genotype.format_keys + ("FT",)
		genotype = replace(genotype, attributes=attrs, format_keys=keys)
	return replace(record, payload=replace(payload, genotype=genotype), filters=frozenset())
