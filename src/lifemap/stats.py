from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping

import numpy as np
import pandas as pd

DEFAULT_DEGENERATE_MARGIN = 5.0
DEFAULT_DOMAIN_FLOOR = 0.0


@dataclass(frozen=True)
class StatsSummary:
    count: int
    mean: float
    median: float
    min: float
    max: float
    std: float
    q1: float
    q3: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ColorDomain:
    min: float
    mean: float
    max: float

    def as_tuple(self) -> tuple[float, float, float]:
        return self.min, self.mean, self.max


def _finite_sorted(values: Iterable[float | None]) -> np.ndarray:
    series = pd.Series(list(values), dtype=object)
    array = pd.to_numeric(series, errors="coerce").to_numpy(dtype=float)
    return np.sort(array[np.isfinite(array)])


def summarize(values: Iterable[float | None]) -> StatsSummary | None:
    """Descriptive statistics, or ``None`` when nothing numeric is left."""
    ordered = _finite_sorted(values)
    if ordered.size == 0:
        return None
    return StatsSummary(
        count=int(ordered.size),
        mean=float(ordered.mean()),
        median=float(np.median(ordered)),
        min=float(ordered[0]),
        max=float(ordered[-1]),
        # Population standard deviation (divide by n).
        std=float(ordered.std(ddof=0)),
        q1=float(np.quantile(ordered, 0.25, method="linear")),
        q3=float(np.quantile(ordered, 0.75, method="linear")),
    )


def _values_in_range(
    series: Mapping[int, float | None],
    start: int | None,
    end: int | None,
) -> list[float | None]:
    return [
        value
        for year, value in sorted(series.items())
        if (start is None or year >= start) and (end is None or year <= end)
    ]


def summarize_series(
    series: Mapping[int, float | None] | None,
    start: int | None = None,
    end: int | None = None,
) -> StatsSummary | None:
    if not series:
        return None
    return summarize(_values_in_range(series, start, end))


def summarize_range(
    store: Mapping[str, Mapping[int, float | None]],
    start: int | None = None,
    end: int | None = None,
) -> StatsSummary | None:
    values: list[float | None] = []
    for series in store.values():
        values.extend(_values_in_range(series, start, end))
    return summarize(values)


def color_domain(
    values: Iterable[float | None],
    margin: float = DEFAULT_DEGENERATE_MARGIN,
    floor: float = DEFAULT_DOMAIN_FLOOR,
) -> ColorDomain | None:
    ordered = _finite_sorted(values)
    if ordered.size == 0:
        return None
    low = float(ordered[0])
    high = float(ordered[-1])
    mean = float(ordered.mean())
    if low == high:
        low = max(floor, low - margin)
        high = high + margin
    return ColorDomain(min=low, mean=mean, max=high)
