"""Country-name keys shared by boundary names, indicator rows, overrides and user input.

Every name source goes through :func:`canonical_key`: the normalizer strips case,
diacritics and punctuation, then the alias table maps boundary-dataset spellings
onto indicator-dataset spellings in a single hop.
"""

from __future__ import annotations

import csv
import logging
import re
import unicodedata
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Mapping

import pandas as pd

from lifemap.config import NamesConfig

LOGGER = logging.getLogger(__name__)

NON_KEY_RE = re.compile(r"[^a-z0-9]")

# Boundary (TopoJSON) spelling -> World Bank spelling.
DEFAULT_ALIASES: tuple[tuple[str, str], ...] = (
    ("United States of America", "United States"),
    ("Russia", "Russian Federation"),
    ("Dem. Rep. Congo", "Congo, Dem. Rep."),
    ("Dominican Rep.", "Dominican Republic"),
    ("Bahamas", "Bahamas, The"),
    ("Central African Rep.", "Central African Republic"),
    ("Congo", "Congo, Rep."),
    ("Eq. Guinea", "Equatorial Guinea"),
    ("Gambia", "Gambia, The"),
    ("Laos", "Lao PDR"),
    ("North Korea", "Korea, Dem. People's Rep."),
    ("South Korea", "Korea, Rep."),
    ("Kyrgyzstan", "Kyrgyz Republic"),
    ("Iran", "Iran, Islamic Rep."),
    ("Syria", "Syrian Arab Republic"),
    ("Turkey", "Türkiye"),
    ("Solomon Is.", "Solomon Islands"),
    ("Brunei", "Brunei Darussalam"),
    ("Slovakia", "Slovak Republic"),
    ("Yemen", "Yemen, Rep."),
    ("Bosnia and Herz.", "Bosnia and Herzegovina"),
    ("Macedonia", "North Macedonia"),
    ("S. Sudan", "South Sudan"),
    ("Egypt", "Egypt, Arab Rep."),
    ("Venezuela", "Venezuela, RB"),
    ("Puerto Rico", "Puerto Rico"),
)


def normalize_key(value: object) -> str:
    """Lower-case, strip diacritics and keep only ASCII letters and digits.

    Total and idempotent: ``None``/NaN map to ``""`` and a normalized key
    normalizes to itself.
    """
    if not isinstance(value, str):
        if value is None or (pd.api.types.is_scalar(value) and pd.isna(value)):
            return ""
        value = str(value)
    text = unicodedata.normalize("NFD", value.lower())
    text = "".join(char for char in text if not unicodedata.combining(char))
    return NON_KEY_RE.sub("", text)


@dataclass(frozen=True)
class AliasTable:
    mapping: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str]]) -> AliasTable:
        mapping: dict[str, str] = {}
        for source, target in pairs:
            source_key = normalize_key(source)
            target_key = normalize_key(target)
            if source_key and target_key:
                mapping[source_key] = target_key
        return cls(mapping=mapping)

    def resolve(self, key: str) -> str:
        # Single hop: A->B->C chains are not followed.
        return self.mapping.get(key, key)

    def __len__(self) -> int:
        return len(self.mapping)


@lru_cache(maxsize=8)
def _load_alias_pairs(path: str) -> tuple[tuple[str, str], ...]:
    file_path = Path(path)
    if not path or not file_path.exists():
        return ()

    pairs: list[tuple[str, str]] = []
    with file_path.open("r", encoding="utf-8-sig") as handle:
        reader = csv.DictReader(handle)
        for row in reader:
            alias = (row.get("alias") or "").strip()
            canonical = (row.get("canonical") or "").strip()
            if alias and canonical:
                pairs.append((alias, canonical))
    return tuple(pairs)


def build_alias_table(config: NamesConfig) -> AliasTable:
    pairs: list[tuple[str, str]] = []
    if config.use_default_aliases:
        pairs.extend(DEFAULT_ALIASES)
    extra = _load_alias_pairs(config.alias_map_path)
    pairs.extend(extra)
    table = AliasTable.from_pairs(pairs)
    LOGGER.debug("Alias table built with %d entries (%d from file)", len(table), len(extra))
    return table


def canonical_key(name: object, aliases: AliasTable) -> str:
    return aliases.resolve(normalize_key(name))


def add_canonical_keys(
    df: pd.DataFrame,
    aliases: AliasTable,
    name_column: str = "country_name",
) -> pd.DataFrame:
    working = df.copy()
    keys = working[name_column].map(normalize_key)
    working["canonical_key"] = keys.map(aliases.resolve)
    return working


def unmatched_names(
    names: Iterable[str],
    year_slice: Mapping[str, float],
    aliases: AliasTable,
) -> list[str]:
    """Boundary names that render as "no data" for the given slice."""
    missing = {name for name in names if canonical_key(name, aliases) not in year_slice}
    LOGGER.debug("%d boundary names have no value in the slice", len(missing))
    return sorted(missing)
