from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from lifemap.config import ColumnsConfig


@dataclass(frozen=True)
class CanonicalColumns:
    country_name: str = "country_name"
    country_code: str = "country_code"
    year: str = "year"
    value: str = "value"


RAW_RECORD_COLUMNS = [
    CanonicalColumns.country_name,
    CanonicalColumns.country_code,
    CanonicalColumns.year,
    CanonicalColumns.value,
]


def empty_raw_records() -> pd.DataFrame:
    return pd.DataFrame(columns=RAW_RECORD_COLUMNS)


def normalize_columns(df: pd.DataFrame, columns: ColumnsConfig) -> pd.DataFrame:
    """Rename source columns to the canonical raw-record columns."""
    rename_map = {
        columns.country_name: CanonicalColumns.country_name,
        columns.year: CanonicalColumns.year,
        columns.value: CanonicalColumns.value,
    }
    missing = [source for source in rename_map if source not in df.columns]
    if missing:
        missing_str = ", ".join(missing)
        raise ValueError(f"Missing required columns in CSV: {missing_str}")
    if columns.country_code in df.columns:
        rename_map[columns.country_code] = CanonicalColumns.country_code

    renamed = df.rename(columns=rename_map)
    if CanonicalColumns.country_code not in renamed.columns:
        renamed[CanonicalColumns.country_code] = ""
    return renamed[RAW_RECORD_COLUMNS]
