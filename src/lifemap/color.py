from __future__ import annotations

import math
from typing import Iterable

from matplotlib import colormaps
from matplotlib.colors import Normalize, TwoSlopeNorm, to_hex

from lifemap.config import ColorConfig
from lifemap.stats import ColorDomain, color_domain


class DivergingColorScale:
    """Maps values to colors with the midpoint pinned to the slice mean.

    ``min`` takes one end of the colormap, ``mean`` the neutral center and
    ``max`` the other end. Values outside the domain are clamped.
    """

    def __init__(
        self,
        domain: ColorDomain | None,
        colormap: str = "RdYlGn",
        no_data_color: str = "#dcdcdc",
    ) -> None:
        self.domain = domain
        self.no_data_color = no_data_color
        self._cmap = colormaps[colormap]
        self._norm = self._build_norm(domain)

    @classmethod
    def from_values(
        cls,
        values: Iterable[float | None],
        config: ColorConfig,
    ) -> DivergingColorScale:
        domain = color_domain(
            values,
            margin=config.degenerate_margin,
            floor=config.domain_floor,
        )
        return cls(domain, colormap=config.colormap, no_data_color=config.no_data_color)

    @staticmethod
    def _build_norm(domain: ColorDomain | None) -> Normalize | None:
        if domain is None:
            return None
        if domain.min < domain.mean < domain.max:
            return TwoSlopeNorm(vcenter=domain.mean, vmin=domain.min, vmax=domain.max)
        # Mean sits on an edge (e.g. a widened domain clamped at the floor).
        return Normalize(vmin=domain.min, vmax=domain.max)

    def position(self, value: float) -> float:
        """Where ``value`` lands on the colormap, in ``[0, 1]``."""
        if self._norm is None or self.domain is None:
            return 0.5
        clamped = min(max(float(value), self.domain.min), self.domain.max)
        if self.domain.min == self.domain.max:
            return 0.5
        return min(max(float(self._norm(clamped)), 0.0), 1.0)

    def __call__(self, value: float | None) -> str:
        if self._norm is None or value is None:
            return self.no_data_color
        number = float(value)
        if not math.isfinite(number):
            return self.no_data_color
        return to_hex(self._cmap(self.position(number)))

    def legend_stops(self, steps: int = 9) -> list[str]:
        if self.domain is None:
            return [self.no_data_color, self.no_data_color]
        low, high = self.domain.min, self.domain.max
        if steps < 2 or low == high:
            color = self(low)
            return [color, color]
        return [self(low + (high - low) * index / (steps - 1)) for index in range(steps)]

    def mean_marker(self) -> float | None:
        """Linear position of the mean along the legend bar."""
        if self.domain is None:
            return None
        span = self.domain.max - self.domain.min
        if span == 0:
            return 0.5
        return (self.domain.mean - self.domain.min) / span
