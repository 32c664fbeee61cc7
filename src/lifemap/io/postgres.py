from __future__ import annotations

import logging

import pandas as pd

from lifemap.io.schema import RAW_RECORD_COLUMNS, empty_raw_records

LOGGER = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = "life_expectancy"


def _load_psycopg():
    try:
        import psycopg
        from psycopg import sql
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError(
            "psycopg is required for PostgreSQL operations. "
            "Install with: pip install 'psycopg[binary]'"
        ) from exc
    return psycopg, sql


def load_raw_records_from_postgres(
    db_url: str,
    table_name: str = DEFAULT_TABLE_NAME,
    start_year: int | None = None,
    end_year: int | None = None,
) -> pd.DataFrame:
    psycopg, sql = _load_psycopg()
    with psycopg.connect(db_url) as conn:
        with conn.cursor() as cursor:
            conditions = []
            params: list[object] = []
            if start_year is not None:
                conditions.append(sql.SQL("year >= %s"))
                params.append(int(start_year))
            if end_year is not None:
                conditions.append(sql.SQL("year <= %s"))
                params.append(int(end_year))
            where_sql = sql.SQL("")
            if conditions:
                where_sql = sql.SQL(" WHERE ") + sql.SQL(" AND ").join(conditions)

            query = sql.SQL(
                """
                SELECT
                  country_name,
                  COALESCE(country_code, '') AS country_code,
                  year,
                  value
                FROM {table_name}
                {where_sql}
                ORDER BY country_name, year
                """
            ).format(
                table_name=sql.Identifier(table_name),
                where_sql=where_sql,
            )
            cursor.execute(query, params)
            rows = cursor.fetchall()

    if not rows:
        LOGGER.warning("No rows found in %s", table_name)
        return empty_raw_records()
    frame = pd.DataFrame(rows, columns=RAW_RECORD_COLUMNS)
    frame["value"] = pd.to_numeric(frame["value"], errors="coerce")
    return frame
