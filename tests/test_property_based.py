"""Property-based checks for the transform and the positioning session.

These exercise the round-trip and exact-revert guarantees over generated
inputs instead of a handful of hand-picked examples.
"""

from __future__ import annotations

import math

import pytest

from curtain_volcano.volcano_annotations import AnnotationStore
from curtain_volcano.volcano_positioning import PositioningController
from curtain_volcano.volcano_transform import AxisRange, CoordinateTransform, Margins, PlotViewport, Point

try:
    from hypothesis import given
    from hypothesis import strategies as st
except ModuleNotFoundError:  # pragma: no cover - environment-specific fallback
    pytest.skip("hypothesis is required for property-based tests", allow_module_level=True)


UNIT = st.floats(min_value=0.0, max_value=1.0, allow_nan=False, allow_infinity=False)
SPAN = st.floats(min_value=1e-3, max_value=1e3, allow_nan=False, allow_infinity=False)
LOW = st.floats(min_value=-1e3, max_value=1e3, allow_nan=False, allow_infinity=False)
PIXELS = st.floats(min_value=-2000.0, max_value=2000.0, allow_nan=False, allow_infinity=False)


@given(
    min_x=LOW,
    span_x=SPAN,
    min_y=LOW,
    span_y=SPAN,
    fx=UNIT,
    fy=UNIT,
    width=st.integers(min_value=200, max_value=2000),
    height=st.integers(min_value=250, max_value=2000),
    origin_x=st.floats(min_value=-500, max_value=500),
    origin_y=st.floats(min_value=-500, max_value=500),
)
def test_plot_host_round_trip(min_x, span_x, min_y, span_y, fx, fy, width, height, origin_x, origin_y) -> None:
    """Mapping a plot point to host pixels and back returns the point."""
    axis = AxisRange(min_x, min_x + span_x, min_y, min_y + span_y)
    viewport = PlotViewport(width, height, Margins(70, 40, 60, 120), Point(origin_x, origin_y), False)
    t = CoordinateTransform(axis, viewport)
    x = axis.min_x + fx * axis.x_span
    y = axis.min_y + fy * axis.y_span

    back = t.host_to_plot(*t.plot_to_host(x, y))

    assert math.isclose(back.x, x, rel_tol=1e-9, abs_tol=1e-6 * axis.x_span)
    assert math.isclose(back.y, y, rel_tol=1e-9, abs_tol=1e-6 * axis.y_span)


class _NullBridge:
    def set_annotation_offset(self, title, ax, ay) -> bool:
        return True


@given(ox=PIXELS, oy=PIXELS, moves=st.lists(st.tuples(PIXELS, PIXELS), min_size=1, max_size=8))
def test_reject_restores_offset_bit_for_bit(ox, oy, moves) -> None:
    """Any sequence of drags followed by reject leaves the stored offset unchanged."""
    store = AnnotationStore()
    store.add_annotation("P1", 0.5, 1.5)
    store.update_offset("P1", ox, oy)
    before = store["P1"].offset
    controller = PositioningController(store, _NullBridge(), lambda _a: (123.25, 456.75))

    controller.start("P1")
    for point in moves:
        controller.drag_move(point)
    controller.reject()

    after = store["P1"].offset
    assert after == before
    assert [math.copysign(1.0, v) for v in after] == [math.copysign(1.0, v) for v in before]


@given(moves=st.lists(st.tuples(PIXELS, PIXELS), min_size=1, max_size=8))
def test_accept_commits_last_preview(moves) -> None:
    store = AnnotationStore()
    store.add_annotation("P1", 0.5, 1.5)
    controller = PositioningController(store, _NullBridge(), lambda _a: (100.0, 200.0))

    controller.start("P1")
    previews = [controller.drag_move(point) for point in moves]
    controller.accept()

    assert store["P1"].offset == previews[-1]
    assert controller.session is None
