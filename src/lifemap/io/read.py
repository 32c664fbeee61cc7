from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Iterable

import pandas as pd

from lifemap.config import AppConfig
from lifemap.io.postgres import load_raw_records_from_postgres
from lifemap.io.schema import RAW_RECORD_COLUMNS, empty_raw_records, normalize_columns

WIDE_NAME_COLUMN = "Country Name"
WIDE_CODE_COLUMN = "Country Code"
HEADER_PROBE_LINES = 10


def _find_wide_header_row(lines: list[str]) -> int:
    # World Bank exports carry a few metadata lines above the real header.
    for index, line in enumerate(lines[:HEADER_PROBE_LINES]):
        cells = next(csv.reader([line]), [])
        if cells and cells[0].strip() == WIDE_NAME_COLUMN:
            return index
    return 0


def _is_year_column(column: object) -> bool:
    return str(column).strip().isdigit()


def wide_frame_to_records(frame: pd.DataFrame, years: Iterable[int] | None = None) -> pd.DataFrame:
    """Melt a ``Country Name, <year>...`` table into long raw records."""
    if WIDE_NAME_COLUMN not in frame.columns:
        raise ValueError(f"Wide CSV is missing the '{WIDE_NAME_COLUMN}' column")

    year_columns = [column for column in frame.columns if _is_year_column(column)]
    if years is not None:
        wanted = {int(year) for year in years}
        year_columns = [column for column in year_columns if int(str(column).strip()) in wanted]

    working = frame.copy()
    if WIDE_CODE_COLUMN not in working.columns:
        working[WIDE_CODE_COLUMN] = ""
    if not year_columns:
        return empty_raw_records()

    long = working.melt(
        id_vars=[WIDE_NAME_COLUMN, WIDE_CODE_COLUMN],
        value_vars=year_columns,
        var_name="year",
        value_name="value",
    ).rename(columns={WIDE_NAME_COLUMN: "country_name", WIDE_CODE_COLUMN: "country_code"})

    long["country_name"] = long["country_name"].fillna("").astype(str).str.strip()
    long = long[long["country_name"] != ""].copy()
    long["year"] = long["year"].astype(str).str.strip().astype(int)
    # Blank and non-numeric cells become NaN and are dropped when the store is built.
    long["value"] = pd.to_numeric(long["value"], errors="coerce")
    return long[RAW_RECORD_COLUMNS].reset_index(drop=True)


def load_wide_csv(path: Path, years: Iterable[int] | None = None) -> pd.DataFrame:
    # utf-8-sig strips BOM-prefixed headers commonly found in exported CSV files.
    lines = path.read_text(encoding="utf-8-sig").splitlines()
    header_row = _find_wide_header_row(lines)
    frame = pd.read_csv(
        io.StringIO("\n".join(lines[header_row:])),
        dtype=str,
        keep_default_na=False,
    )
    return wide_frame_to_records(frame, years=years)


def load_long_csv(path: Path, config: AppConfig) -> pd.DataFrame:
    frame = pd.read_csv(path, encoding="utf-8-sig", dtype=str, keep_default_na=False)
    normalized = normalize_columns(frame, columns=config.columns).copy()
    normalized["year"] = pd.to_numeric(normalized["year"], errors="coerce")
    normalized = normalized.dropna(subset=["year"]).copy()
    normalized["year"] = normalized["year"].astype(int)
    normalized["value"] = pd.to_numeric(normalized["value"], errors="coerce")
    return normalized.reset_index(drop=True)


def load_raw_records(path: Path | None, config: AppConfig) -> pd.DataFrame:
    """Load raw records from the configured source and return canonical columns."""
    if config.input.mode == "postgres":
        if not config.input.db_url:
            raise ValueError("input.db_url must be set when input.mode is 'postgres'")
        return load_raw_records_from_postgres(
            db_url=config.input.db_url,
            table_name=config.input.table_name,
            start_year=config.dataset.start_year,
            end_year=config.dataset.end_year,
        )

    source = path or (Path(config.input.source_path) if config.input.source_path else None)
    if source is None:
        raise ValueError(f"a source path is required when input.mode is '{config.input.mode}'")
    if config.input.mode == "long_csv":
        return load_long_csv(source, config)
    return load_wide_csv(source, years=config.dataset.years())


def load_indicator_description(path: Path | None, indicator_code: str) -> str:
    if path is None or not path.exists():
        return ""
    frame = pd.read_csv(path, encoding="utf-8-sig", dtype=str, keep_default_na=False)
    if "INDICATOR_CODE" not in frame.columns or "INDICATOR_NAME" not in frame.columns:
        return ""
    matches = frame[frame["INDICATOR_CODE"] == indicator_code]
    if matches.empty:
        return ""
    return str(matches.iloc[0]["INDICATOR_NAME"]).strip()
