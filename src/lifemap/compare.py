from __future__ import annotations

import re
from typing import Iterable, Literal, Mapping

import pandas as pd

from lifemap.preprocess.names import normalize_key
from lifemap.stats import StatsSummary, summarize_series

ChartRange = Literal["all", "before2000", "after2000"]
CHART_RANGE_SPLIT_YEAR = 2000
DEFAULT_SUGGESTION_LIMIT = 30
SUMMARY_COLUMNS = ["count", "mean", "median", "min", "max", "std", "q1", "q3"]

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def display_name_from_key(key: str) -> str:
    """Best-effort readable label for a canonical key."""
    if not key:
        return ""
    words = [word for word in _NON_ALNUM_RE.split(key) if word]
    return " ".join(word[:1].upper() + word[1:] for word in words)


def search_keys(
    query: str,
    keys: Iterable[str],
    limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> list[str]:
    key_list = list(keys)
    needle = normalize_key(query.strip() if query else "")
    if not needle:
        return key_list[:limit]
    return [key for key in key_list if needle in key][:limit]


def match_key(query: str, keys: Iterable[str]) -> str | None:
    """Exact key match first, then the first key containing the query."""
    needle = normalize_key(query.strip() if query else "")
    if not needle:
        return None
    key_list = list(keys)
    if needle in key_list:
        return needle
    for key in key_list:
        if needle in key:
            return key
    return None


def series_points(
    series: Mapping[int, float | None] | None,
    chart_range: ChartRange = "all",
) -> list[tuple[int, float]]:
    if not series:
        return []
    points = [(int(year), float(value)) for year, value in series.items() if value is not None]
    if chart_range == "before2000":
        points = [point for point in points if point[0] < CHART_RANGE_SPLIT_YEAR]
    elif chart_range == "after2000":
        points = [point for point in points if point[0] >= CHART_RANGE_SPLIT_YEAR]
    elif chart_range != "all":
        raise ValueError(f"Unsupported chart range: {chart_range}")
    return sorted(points)


def compare_countries(
    store: Mapping[str, Mapping[int, float | None]],
    keys: Iterable[str],
    start: int | None = None,
    end: int | None = None,
) -> pd.DataFrame:
    rows: list[dict[str, object]] = []
    for key in keys:
        summary: StatsSummary | None = summarize_series(store.get(key), start=start, end=end)
        row: dict[str, object] = {"key": key, "name": display_name_from_key(key)}
        if summary is None:
            row.update({column: None for column in SUMMARY_COLUMNS})
            row["count"] = 0
        else:
            row.update(summary.to_dict())
        rows.append(row)
    return pd.DataFrame(rows, columns=["key", "name", *SUMMARY_COLUMNS])
