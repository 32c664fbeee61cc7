"""Persisted edit snapshot (the override blob) and the undo/redo journal."""

from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from lifemap.preprocess.names import AliasTable, canonical_key
from lifemap.series import SeriesStore

LOGGER = logging.getLogger(__name__)


def _coerce_cell(value: Any) -> tuple[bool, float | None]:
    """Return ``(keep, value)``; ``None`` is a kept, explicitly cleared cell."""
    if value is None:
        return True, None
    if isinstance(value, bool):
        return False, None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False, None
    if not math.isfinite(number):
        return False, None
    return True, number


def store_from_payload(payload: Any, aliases: AliasTable | None = None) -> SeriesStore | None:
    if not isinstance(payload, Mapping):
        return None
    resolver = aliases or AliasTable()
    store: SeriesStore = {}
    for raw_key, raw_series in payload.items():
        if not isinstance(raw_series, Mapping):
            return None
        key = canonical_key(raw_key, resolver)
        if not key:
            continue
        entry = store.setdefault(key, {})
        for raw_year, raw_value in raw_series.items():
            try:
                year = int(str(raw_year).strip())
            except ValueError:
                continue
            keep, value = _coerce_cell(raw_value)
            if keep:
                entry[year] = value
    return store


def parse_override(text: str | None, aliases: AliasTable | None = None) -> SeriesStore | None:
    """Parse an override blob; anything unreadable is treated as no override."""
    if not text or not text.strip():
        return None
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        LOGGER.warning("Ignoring override data that is not valid JSON")
        return None
    store = store_from_payload(payload, aliases=aliases)
    if store is None:
        LOGGER.warning("Ignoring override data with an unexpected shape")
    return store


def load_override(path: Path, aliases: AliasTable | None = None) -> SeriesStore | None:
    if not path.exists():
        return None
    return parse_override(path.read_text(encoding="utf-8"), aliases=aliases)


def dump_override(store: Mapping[str, Mapping[int, float | None]]) -> str:
    payload = {
        key: {str(year): value for year, value in sorted(series.items())}
        for key, series in store.items()
    }
    return json.dumps(payload, sort_keys=True)


def _write_text_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with tmp.open("w", encoding="utf-8", newline="\n") as handle:
        handle.write(text)
    os.replace(tmp, path)


@dataclass(frozen=True)
class EditJournal:
    snapshots: list[SeriesStore]
    position: int


@dataclass(frozen=True)
class OverrideRepository:
    override_path: Path
    history_path: Path | None = None

    def load(self, aliases: AliasTable | None = None) -> SeriesStore | None:
        return load_override(self.override_path, aliases=aliases)

    def save(self, store: Mapping[str, Mapping[int, float | None]]) -> None:
        _write_text_atomic(self.override_path, dump_override(store))

    def load_journal(self, aliases: AliasTable | None = None) -> EditJournal | None:
        if self.history_path is None or not self.history_path.exists():
            return None
        try:
            payload = json.loads(self.history_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            LOGGER.warning("Ignoring unreadable edit history at %s", self.history_path)
            return None
        if not isinstance(payload, Mapping):
            return None

        raw_snapshots = payload.get("snapshots")
        position = payload.get("position")
        if not isinstance(raw_snapshots, list) or not isinstance(position, int):
            return None
        snapshots = [store_from_payload(item, aliases=aliases) for item in raw_snapshots]
        if not snapshots or any(snapshot is None for snapshot in snapshots):
            return None
        if not 0 <= position < len(snapshots):
            return None
        return EditJournal(snapshots=snapshots, position=position)

    def save_journal(self, snapshots: list[SeriesStore], position: int) -> None:
        if self.history_path is None:
            return
        payload = {
            "position": position,
            "snapshots": [json.loads(dump_override(snapshot)) for snapshot in snapshots],
        }
        _write_text_atomic(self.history_path, json.dumps(payload, sort_keys=True))

    def clear(self) -> None:
        for path in (self.override_path, self.history_path):
            if path is not None and path.exists():
                path.unlink()
