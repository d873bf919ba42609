from __future__ import annotations

import numpy as np
import pytest

from curtain_volcano.bridge_protocol import DimensionsReport
from curtain_volcano.errors import DegenerateAxisRange
from curtain_volcano.volcano_settings import VolcanoAxis
from curtain_volcano.volcano_transform import (
    FALLBACK_MARGINS,
    AxisRange,
    CoordinateTransform,
    Margins,
    PlotViewport,
    Point,
    annotation_offset,
    text_position,
)


def _default_transform() -> CoordinateTransform:
    return CoordinateTransform(AxisRange(-3, 3, 0, 5), PlotViewport.fallback(800, 600))


def _reported_viewport() -> PlotViewport:
    # Renderer sits at (10, 20) in the host; margins L80 R70 T50 B150.
    report = DimensionsReport(
        plot_left=90.0,
        plot_top=70.0,
        plot_right=740.0,
        plot_bottom=470.0,
        full_width=800.0,
        full_height=600.0,
        renderer_origin=Point(10.0, 20.0),
    )
    return PlotViewport.from_dimensions(report)


def test_example_point_maps_to_documented_pixel() -> None:
    t = _default_transform()

    assert t.plot_to_pixel(1.5, 2.0) == pytest.approx((587.5, 312.0))
    assert t.pixel_to_plot(587.5, 312.0) == pytest.approx((1.5, 2.0))


def test_fallback_margins_are_used_until_reported() -> None:
    vp = PlotViewport.fallback(800, 600)

    assert vp.margins == FALLBACK_MARGINS == Margins(70, 40, 60, 120)
    assert vp.is_estimated
    assert vp.origin == (0.0, 0.0)


def test_reported_margins_are_computed_in_renderer_local_space() -> None:
    vp = _reported_viewport()

    assert vp.margins == Margins(left=80.0, right=70.0, top=50.0, bottom=150.0)
    assert vp.origin == (10.0, 20.0)
    assert not vp.is_estimated


def test_reported_margins_change_the_mapping() -> None:
    t = _default_transform()
    before = t.plot_to_pixel(1.5, 2.0)

    after = t.with_viewport(_reported_viewport()).plot_to_pixel(1.5, 2.0)

    assert after != before
    assert after == pytest.approx((567.5, 290.0))


def test_host_and_renderer_spaces_differ_by_origin() -> None:
    t = _default_transform().with_viewport(_reported_viewport())

    assert t.host_to_renderer((100.0, 100.0)) == (90.0, 80.0)
    assert t.renderer_to_host((90.0, 80.0)) == (100.0, 100.0)
    assert t.plot_to_host(1.5, 2.0) == pytest.approx((577.5, 310.0))
    assert t.host_to_plot(577.5, 310.0) == pytest.approx((1.5, 2.0))


def test_dimensions_without_size_use_measured_host_size() -> None:
    report = DimensionsReport(plot_left=70, plot_top=60, plot_right=760, plot_bottom=480)

    vp = PlotViewport.from_dimensions(report, width=800, height=600)

    assert vp.margins == FALLBACK_MARGINS


def test_dimensions_without_any_size_are_rejected() -> None:
    report = DimensionsReport(plot_left=70, plot_top=60, plot_right=760, plot_bottom=480)

    with pytest.raises(ValueError):
        PlotViewport.from_dimensions(report)


@pytest.mark.parametrize(
    "bounds",
    [(1, 1, 0, 5), (-3, 3, 2, 2), (3, -3, 0, 5), (float("nan"), 3, 0, 5), (-3, float("inf"), 0, 5)],
)
def test_degenerate_axis_range_is_rejected(bounds) -> None:
    with pytest.raises(DegenerateAxisRange):
        AxisRange(*bounds)


def test_degenerate_axis_range_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        CoordinateTransform.from_ranges((0, 0), (0, 5), PlotViewport.fallback(800, 600))


def test_empty_plot_area_is_rejected() -> None:
    with pytest.raises(DegenerateAxisRange):
        CoordinateTransform(AxisRange(-3, 3, 0, 5), PlotViewport.fallback(100, 600))


def test_axis_defaults_fill_missing_limits() -> None:
    rng = AxisRange.from_volcano_axis(VolcanoAxis(max_y=8.0))

    assert (rng.min_x, rng.max_x, rng.min_y, rng.max_y) == (-3.0, 3.0, 0.0, 8.0)
    assert AxisRange.from_volcano_axis(None) == AxisRange(-3, 3, 0, 5)


def test_transform_is_vectorized() -> None:
    t = _default_transform()
    xs = np.array([-3.0, 0.0, 3.0])
    ys = np.array([0.0, 2.5, 5.0])

    px, py = t.plot_to_pixel(xs, ys)

    np.testing.assert_allclose(px, [70.0, 415.0, 760.0])
    np.testing.assert_allclose(py, [480.0, 270.0, 60.0])
    back = t.pixel_to_plot(px, py)
    np.testing.assert_allclose(back.x, xs)
    np.testing.assert_allclose(back.y, ys)


def test_contains_host_checks_the_plot_area() -> None:
    t = _default_transform()

    assert t.contains_host((400.0, 300.0))
    assert not t.contains_host((10.0, 300.0))
    assert not t.contains_host((400.0, 590.0))


def test_offset_helpers_are_inverse() -> None:
    anchor = Point(587.5, 312.0)

    offset = annotation_offset(anchor, (567.5, 292.0))

    assert offset == (-20.0, -20.0)
    assert text_position(anchor, offset) == (567.5, 292.0)


def test_resized_keeps_margins_and_origin() -> None:
    vp = _reported_viewport().resized(1000, 700)

    assert (vp.width, vp.height) == (1000.0, 700.0)
    assert vp.margins == Margins(80.0, 70.0, 50.0, 150.0)
    assert vp.origin == (10.0, 20.0)
