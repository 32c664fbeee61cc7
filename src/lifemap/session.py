"""Editing session: owns the working series store and its linear undo history."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Union

import pandas as pd

from lifemap.color import DivergingColorScale
from lifemap.config import AppConfig, ColorConfig, MergePolicy
from lifemap.io.overrides import OverrideRepository, store_from_payload
from lifemap.preprocess.names import AliasTable, build_alias_table, canonical_key
from lifemap.series import SeriesEntry, SeriesStore, copy_store, merge_override, records_to_store
from lifemap.slices import YearSliceIndex
from lifemap.stats import ColorDomain, StatsSummary, color_domain, summarize, summarize_range

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddCountry:
    name: str


@dataclass(frozen=True)
class DeleteCountry:
    key: str


@dataclass(frozen=True)
class SetValue:
    key: str
    year: int
    value: float | str | None = None


@dataclass(frozen=True)
class ReplaceDataset:
    store: Mapping[str, Mapping[int, float | None]] = field(default_factory=dict)


EditCommand = Union[AddCountry, DeleteCountry, SetValue, ReplaceDataset]


def _coerce_edit_value(value: float | str | None) -> tuple[bool, float | None]:
    """Blank input clears a cell; unparseable input is rejected."""
    if value is None:
        return True, None
    if isinstance(value, str):
        if not value.strip():
            return True, None
        try:
            number = float(value)
        except ValueError:
            return False, None
    else:
        number = float(value)
    if not math.isfinite(number):
        return False, None
    return True, number


class Session:
    def __init__(
        self,
        base: Mapping[str, Mapping[int, float | None]],
        aliases: AliasTable,
        *,
        override: Mapping[str, Mapping[int, float | None]] | None = None,
        policy: MergePolicy = "replace",
        color: ColorConfig | None = None,
        eager_years: Iterable[int] = (),
        repository: OverrideRepository | None = None,
    ) -> None:
        self.aliases = aliases
        self.policy = policy
        self.color_config = color or ColorConfig()
        self.repository = repository
        self._base = copy_store(base)

        history = [copy_store(self._base)]
        if override is not None:
            history.append(merge_override(self._base, override, policy=policy))
        self._history: list[SeriesStore] = history
        self._position = len(history) - 1
        self._index = YearSliceIndex(self._history[self._position], eager_years=eager_years)

    @classmethod
    def from_config(cls, config: AppConfig, records: pd.DataFrame) -> Session:
        aliases = build_alias_table(config.names)
        repository = OverrideRepository(
            override_path=Path(config.edits.override_path),
            history_path=Path(config.edits.history_path) if config.edits.history_path else None,
        )
        base = records_to_store(records, aliases)
        session = cls(
            base,
            aliases,
            override=repository.load(aliases=aliases),
            policy=config.merge.policy,
            color=config.color,
            eager_years=config.dataset.color_years(),
            repository=repository,
        )
        journal = repository.load_journal(aliases=aliases)
        if journal is not None and len(journal.snapshots) > 1:
            # The freshly loaded base always anchors the history.
            session._restore([session._base, *journal.snapshots[1:]], journal.position)
        return session

    @property
    def store(self) -> SeriesStore:
        """The current snapshot. Treat as read-only; edits go through apply_edit."""
        return self._history[self._position]

    @property
    def base(self) -> SeriesStore:
        return self._base

    @property
    def position(self) -> int:
        return self._position

    @property
    def history(self) -> tuple[SeriesStore, ...]:
        return tuple(self._history)

    @property
    def can_undo(self) -> bool:
        return self._position > 0

    @property
    def can_redo(self) -> bool:
        return self._position < len(self._history) - 1

    def key_for(self, name: str) -> str:
        return canonical_key(name, self.aliases)

    def _restore(self, snapshots: list[SeriesStore], position: int) -> None:
        self._history = snapshots
        self._position = position
        self._index.rebuild(self.store)

    def _activate(self) -> None:
        self._index.rebuild(self.store)
        if self.repository is not None:
            self.repository.save(self.store)
            self.repository.save_journal(self._history, self._position)

    def _build_snapshot(self, command: EditCommand) -> SeriesStore | None:
        current = self.store
        if isinstance(command, AddCountry):
            key = self.key_for(command.name)
            if not key or key in current:
                return None
            updated = copy_store(current)
            updated[key] = {}
            return updated
        if isinstance(command, DeleteCountry):
            key = self.key_for(command.key)
            if key not in current:
                return None
            updated = copy_store(current)
            del updated[key]
            return updated
        if isinstance(command, SetValue):
            key = self.key_for(command.key)
            keep, value = _coerce_edit_value(command.value)
            if not key or not keep:
                LOGGER.warning(
                    "Ignoring edit for %r/%s: value %r",
                    command.key,
                    command.year,
                    command.value,
                )
                return None
            updated = copy_store(current)
            updated.setdefault(key, {})[int(command.year)] = value
            return updated
        if isinstance(command, ReplaceDataset):
            replacement = store_from_payload(command.store, aliases=self.aliases)
            if replacement is None:
                LOGGER.warning("Ignoring dataset replacement with an unexpected shape")
            return replacement
        raise TypeError(f"Unsupported edit command: {type(command).__name__}")

    def apply_edit(self, command: EditCommand) -> SeriesStore:
        snapshot = self._build_snapshot(command)
        if snapshot is None:
            return self.store
        del self._history[self._position + 1 :]
        self._history.append(snapshot)
        self._position = len(self._history) - 1
        self._activate()
        LOGGER.info(
            "Applied %s (history %d/%d)",
            type(command).__name__,
            self._position,
            len(self._history) - 1,
        )
        return snapshot

    def undo(self) -> SeriesStore | None:
        if not self.can_undo:
            return None
        self._position -= 1
        self._activate()
        return self.store

    def redo(self) -> SeriesStore | None:
        if not self.can_redo:
            return None
        self._position += 1
        self._activate()
        return self.store

    def reset(self) -> SeriesStore:
        self._history = [copy_store(self._base)]
        self._position = 0
        self._index.rebuild(self.store)
        if self.repository is not None:
            self.repository.clear()
        return self.store

    def get_slice(self, year: int) -> dict[str, float]:
        return self._index.slice(year)

    def get_summary(
        self,
        year: int | None = None,
        start: int | None = None,
        end: int | None = None,
    ) -> StatsSummary | None:
        if year is not None:
            return summarize(self._index.values_for(year))
        return summarize_range(self.store, start=start, end=end)

    def color_domain(self, year: int) -> ColorDomain | None:
        return color_domain(
            self._index.values_for(year),
            margin=self.color_config.degenerate_margin,
            floor=self.color_config.domain_floor,
        )

    def color_scale(self, year: int) -> DivergingColorScale:
        return DivergingColorScale(
            self.color_domain(year),
            colormap=self.color_config.colormap,
            no_data_color=self.color_config.no_data_color,
        )

    def color_for(self, value: float | None, year: int) -> str:
        return self.color_scale(year)(value)

    def series(self, name: str) -> SeriesEntry | None:
        entry = self.store.get(self.key_for(name))
        return dict(entry) if entry is not None else None

    def value_for(self, name: str, year: int) -> float | None:
        return self.get_slice(year).get(self.key_for(name))
