from __future__ import annotations

import pytest
from matplotlib import colormaps
from matplotlib.colors import to_hex

from lifemap.color import DivergingColorScale
from lifemap.config import ColorConfig
from lifemap.stats import ColorDomain


def _expected(position: float) -> str:
    return to_hex(colormaps["RdYlGn"](position))


def test_mean_maps_to_neutral_and_ends_to_colormap_extremes() -> None:
    scale = DivergingColorScale(ColorDomain(min=50.0, mean=60.0, max=80.0))

    assert scale(60.0) == _expected(0.5)
    assert scale(50.0) == _expected(0.0)
    assert scale(80.0) == _expected(1.0)


def test_each_half_of_the_domain_is_scaled_separately() -> None:
    scale = DivergingColorScale(ColorDomain(min=50.0, mean=60.0, max=80.0))

    assert scale.position(55.0) == pytest.approx(0.25)
    assert scale.position(70.0) == pytest.approx(0.75)


def test_out_of_range_values_are_clamped() -> None:
    scale = DivergingColorScale(ColorDomain(min=50.0, mean=60.0, max=80.0))

    assert scale(10.0) == scale(50.0)
    assert scale(120.0) == scale(80.0)


def test_missing_values_use_no_data_color() -> None:
    scale = DivergingColorScale(ColorDomain(min=50.0, mean=60.0, max=80.0))

    assert scale(None) == "#dcdcdc"
    assert scale(float("nan")) == "#dcdcdc"


def test_scale_without_domain_only_returns_no_data() -> None:
    scale = DivergingColorScale(None, no_data_color="#eeeeee")

    assert scale(70.0) == "#eeeeee"
    assert scale.legend_stops() == ["#eeeeee", "#eeeeee"]
    assert scale.mean_marker() is None


def test_mean_on_domain_edge_falls_back_to_linear_scale() -> None:
    scale = DivergingColorScale(ColorDomain(min=0.0, mean=0.0, max=5.0))

    assert scale.position(0.0) == pytest.approx(0.0)
    assert scale.position(2.5) == pytest.approx(0.5)
    assert scale.position(5.0) == pytest.approx(1.0)


def test_legend_stops_span_the_domain() -> None:
    scale = DivergingColorScale(ColorDomain(min=50.0, mean=60.0, max=80.0))

    stops = scale.legend_stops(9)

    assert len(stops) == 9
    assert stops[0] == scale(50.0)
    assert stops[-1] == scale(80.0)
    assert scale.mean_marker() == pytest.approx(10.0 / 30.0)


def test_from_values_widens_a_single_value_domain() -> None:
    scale = DivergingColorScale.from_values([70.0, 70.0, None], ColorConfig())

    assert scale.domain is not None
    assert scale.domain.as_tuple() == (65.0, 70.0, 75.0)
    assert scale(70.0) == _expected(0.5)
