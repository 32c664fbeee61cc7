from __future__ import annotations

import logging
from typing import Iterable, Mapping

from lifemap.series import SeriesStore

LOGGER = logging.getLogger(__name__)


def slice_for(store: Mapping[str, Mapping[int, float | None]], year: int) -> dict[str, float]:
    """Every key with a value for ``year``; cleared cells are left out."""
    year_slice: dict[str, float] = {}
    for key, series in store.items():
        value = series.get(year)
        if value is not None:
            year_slice[key] = value
    return year_slice


class YearSliceIndex:
    """Per-year projections of one store, cached by ``(version, year)``.

    The eager window is computed up front; any other year is computed the
    first time it is asked for.
    """

    def __init__(self, store: SeriesStore, eager_years: Iterable[int] = ()) -> None:
        self._store = store
        self._eager_years = tuple(int(year) for year in eager_years)
        self._version = 0
        self._cache: dict[tuple[int, int], dict[str, float]] = {}
        self._prime()

    @property
    def version(self) -> int:
        return self._version

    @property
    def store(self) -> SeriesStore:
        return self._store

    def _prime(self) -> None:
        for year in self._eager_years:
            self._cache[(self._version, year)] = slice_for(self._store, year)

    def rebuild(self, store: SeriesStore) -> None:
        self._store = store
        self._version += 1
        self._cache.clear()
        self._prime()
        LOGGER.debug("Year slices rebuilt (version %d)", self._version)

    def slice(self, year: int) -> dict[str, float]:
        cache_key = (self._version, int(year))
        if cache_key not in self._cache:
            self._cache[cache_key] = slice_for(self._store, int(year))
        return dict(self._cache[cache_key])

    def values_for(self, year: int) -> list[float]:
        return list(self.slice(year).values())

    def cached_years(self) -> list[int]:
        return sorted(year for version, year in self._cache if version == self._version)
