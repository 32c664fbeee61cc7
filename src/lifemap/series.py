"""Reconciled series store: canonical key -> year -> value."""

from __future__ import annotations

import logging
from typing import Mapping

import pandas as pd

from lifemap.config import MergePolicy
from lifemap.preprocess.names import AliasTable, add_canonical_keys

LOGGER = logging.getLogger(__name__)

SeriesEntry = dict[int, float | None]
SeriesStore = dict[str, SeriesEntry]


def copy_store(store: Mapping[str, Mapping[int, float | None]]) -> SeriesStore:
    return {key: dict(series) for key, series in store.items()}


def records_to_store(records: pd.DataFrame, aliases: AliasTable) -> SeriesStore:
    """Group raw records by canonical key, keeping numeric values only."""
    if records.empty:
        return {}

    working = add_canonical_keys(records, aliases)
    working["year"] = pd.to_numeric(working["year"], errors="coerce")
    working["value"] = pd.to_numeric(working["value"], errors="coerce")
    dropped = int(working["value"].isna().sum())
    working = working.dropna(subset=["year", "value"])
    working = working[working["canonical_key"] != ""]

    store: SeriesStore = {}
    # Later rows win when two display names collapse onto one key.
    for key, year, value in zip(working["canonical_key"], working["year"], working["value"]):
        store.setdefault(key, {})[int(year)] = float(value)

    LOGGER.debug(
        "Built series for %d keys from %d records (%d empty or non-numeric cells dropped)",
        len(store),
        len(records),
        dropped,
    )
    return store


def merge_override(
    base: Mapping[str, Mapping[int, float | None]],
    override: Mapping[str, Mapping[int, float | None]] | None,
    policy: MergePolicy = "replace",
) -> SeriesStore:
    # `{}` is a real edit buffer with every country deleted.
    if override is None:
        return copy_store(base)
    if policy == "replace":
        return copy_store(override)
    if policy == "per_country":
        merged = copy_store(base)
        merged.update(copy_store(override))
        return merged
    if policy == "per_year":
        merged = copy_store(base)
        for key, series in override.items():
            merged.setdefault(key, {}).update(series)
        return merged
    raise ValueError(f"Unsupported merge policy: {policy}")


def build_series_store(
    records: pd.DataFrame,
    aliases: AliasTable,
    override: Mapping[str, Mapping[int, float | None]] | None = None,
    policy: MergePolicy = "replace",
) -> SeriesStore:
    return merge_override(records_to_store(records, aliases), override, policy=policy)


def store_years(store: Mapping[str, Mapping[int, float | None]]) -> list[int]:
    years: set[int] = set()
    for series in store.values():
        years.update(series.keys())
    return sorted(years)
