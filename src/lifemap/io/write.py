from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Iterable, Mapping

import numpy as np

WIDE_HEADER_NAME = "Country Name"


def _format_value(value: float | None, float_format: str) -> str:
    """Format one cell with printf-style rounding (``"%.2f"`` turns 52.456 into ``52.46``).

    Missing, cleared and non-finite cells become empty strings.
    """
    if value is None:
        return ""
    number = float(value)
    if not math.isfinite(number):
        return ""
    return float_format % number


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def store_to_csv_text(
    store: Mapping[str, Mapping[int, float | None]],
    years: Iterable[int],
    float_format: str = "%.2f",
) -> str:
    """Render a series store as ``Country Name,<year>...`` CSV text."""
    year_list = [int(year) for year in years]
    lines = [",".join([WIDE_HEADER_NAME, *[str(year) for year in year_list]])]
    for key, series in store.items():
        cells = [_quote(key)]
        cells.extend(_format_value(series.get(year), float_format) for year in year_list)
        lines.append(",".join(cells))
    return "\n".join(lines)


def write_wide_csv(
    store: Mapping[str, Mapping[int, float | None]],
    path: Path,
    years: Iterable[int],
    float_format: str = "%.2f",
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(store_to_csv_text(store, years, float_format) + "\n", encoding="utf-8")
    return path


def _json_default(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def write_summary(data: dict[str, Any], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(data, indent=2, sort_keys=True, default=_json_default),
        encoding="utf-8",
    )
    return path
