"""Plot-space / pixel-space coordinate transforms for the volcano plot.

Purpose
-------
Annotation positioning needs three coordinate systems:

- **plot space**: the data coordinates of the volcano plot
  (log2 fold change on x, -log10(p-value) on y),
- **renderer-local pixel space**: pixels inside the embedded Plotly element,
  origin at its top-left corner, y growing downwards,
- **host-view pixel space**: pixels inside the notebook container that hosts
  the renderer. Gestures and renderer ``annotationCoordinates`` reports are
  expressed here.

Renderer-local and host-view pixels differ by the renderer origin (the
position of the Plotly element inside its host). The two conversions
:meth:`CoordinateTransform.host_to_renderer` and
:meth:`CoordinateTransform.renderer_to_host` are the only places where that
offset is applied.

Margins
-------
Until the renderer reports its real plot area, the transform uses
``FALLBACK_MARGINS`` (70/40/60/120 px, left/right/top/bottom), the typical
Plotly margins with a horizontal legend below the plot. A ``dimensions``
report replaces them through :meth:`PlotViewport.from_dimensions`.

Examples
--------
>>> t = CoordinateTransform(AxisRange(-3, 3, 0, 5), PlotViewport.fallback(800, 600))
>>> t.plot_to_pixel(1.5, 2.0)
Point(x=587.5, y=312.0)
>>> t.pixel_to_plot(587.5, 312.0)
Point(x=1.5, y=2.0)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, NamedTuple, Optional, Tuple, Union

import numpy as np

from .errors import DegenerateAxisRange

if TYPE_CHECKING:
    from .bridge_protocol import DimensionsReport
    from .volcano_settings import VolcanoAxis


ArrayLike = Union[float, np.ndarray]

DEFAULT_X_RANGE: Tuple[float, float] = (-3.0, 3.0)
DEFAULT_Y_RANGE: Tuple[float, float] = (0.0, 5.0)


class Point(NamedTuple):
    """A 2D coordinate. Which space it lives in is up to the caller."""

    x: Any
    y: Any

    def __add__(self, other: Any) -> "Point":  # type: ignore[override]
        return Point(self.x + other[0], self.y + other[1])

    def __sub__(self, other: Any) -> "Point":
        return Point(self.x - other[0], self.y - other[1])


@dataclass(frozen=True)
class AxisRange:
    """Data-space viewport of the plot.

    Raises
    ------
    DegenerateAxisRange
        If either axis has ``min >= max`` or a non-finite bound.
    """

    min_x: float
    max_x: float
    min_y: float
    max_y: float

    def __post_init__(self) -> None:
        for name in ("min_x", "max_x", "min_y", "max_y"):
            value = float(getattr(self, name))
            if not math.isfinite(value):
                raise DegenerateAxisRange(f"{name} must be finite, got {value!r}")
            object.__setattr__(self, name, value)
        if not self.max_x > self.min_x:
            raise DegenerateAxisRange(
                f"x range must satisfy min < max, got ({self.min_x}, {self.max_x})"
            )
        if not self.max_y > self.min_y:
            raise DegenerateAxisRange(
                f"y range must satisfy min < max, got ({self.min_y}, {self.max_y})"
            )

    @property
    def x_span(self) -> float:
        return self.max_x - self.min_x

    @property
    def y_span(self) -> float:
        return self.max_y - self.min_y

    @classmethod
    def from_volcano_axis(cls, axis: Optional["VolcanoAxis"]) -> "AxisRange":
        """Build a range from settings, defaulting absent limits to -3..3 / 0..5."""
        if axis is None:
            return cls(DEFAULT_X_RANGE[0], DEFAULT_X_RANGE[1], DEFAULT_Y_RANGE[0], DEFAULT_Y_RANGE[1])

        def _or(value: Optional[float], default: float) -> float:
            return default if value is None else value

        return cls(
            _or(axis.min_x, DEFAULT_X_RANGE[0]),
            _or(axis.max_x, DEFAULT_X_RANGE[1]),
            _or(axis.min_y, DEFAULT_Y_RANGE[0]),
            _or(axis.max_y, DEFAULT_Y_RANGE[1]),
        )


@dataclass(frozen=True)
class Margins:
    """Pixel margins between the renderer edge and the plot area."""

    left: float
    right: float
    top: float
    bottom: float


FALLBACK_MARGINS = Margins(left=70.0, right=40.0, top=60.0, bottom=120.0)


@dataclass(frozen=True)
class PlotViewport:
    """Renderer geometry in pixels.

    Parameters
    ----------
    width, height : float
        Size of the renderer element.
    margins : Margins
        Plot-area margins inside the renderer element.
    origin : Point
        Position of the renderer element inside the host view.
    is_estimated : bool
        ``True`` while ``margins`` are the fallback estimate rather than
        values reported by the renderer.
    """

    width: float
    height: float
    margins: Margins = FALLBACK_MARGINS
    origin: Point = Point(0.0, 0.0)
    is_estimated: bool = True

    @property
    def plot_width(self) -> float:
        return self.width - self.margins.left - self.margins.right

    @property
    def plot_height(self) -> float:
        return self.height - self.margins.top - self.margins.bottom

    @classmethod
    def fallback(cls, width: float, height: float) -> "PlotViewport":
        """Viewport for a host of ``width`` x ``height`` using estimated margins."""
        return cls(width=float(width), height=float(height))

    @classmethod
    def from_dimensions(
        cls,
        report: "DimensionsReport",
        *,
        width: Optional[float] = None,
        height: Optional[float] = None,
    ) -> "PlotViewport":
        """Derive the viewport from a renderer ``dimensions`` report.

        ``plotLeft/Top/Right/Bottom`` arrive in host-view pixels, so they are
        moved into renderer-local space before margins are computed. When the
        report has no ``fullWidth``/``fullHeight``, ``width``/``height`` (the
        measured host size) are used instead.
        """
        origin = Point(float(report.renderer_origin.x), float(report.renderer_origin.y))
        full_w = report.full_width if report.full_width is not None else width
        full_h = report.full_height if report.full_height is not None else height
        if full_w is None or full_h is None:
            raise ValueError("dimensions report has no size and no fallback size was given")

        top_left = Point(report.plot_left, report.plot_top) - origin
        bottom_right = Point(report.plot_right, report.plot_bottom) - origin
        margins = Margins(
            left=float(top_left.x),
            right=float(full_w) - float(bottom_right.x),
            top=float(top_left.y),
            bottom=float(full_h) - float(bottom_right.y),
        )
        return cls(
            width=float(full_w),
            height=float(full_h),
            margins=margins,
            origin=origin,
            is_estimated=False,
        )

    def resized(self, width: float, height: float) -> "PlotViewport":
        """Return a copy with a new size and the same margins and origin."""
        return replace(self, width=float(width), height=float(height))


class CoordinateTransform:
    """Bidirectional plot <-> pixel mapping for one axis range and viewport.

    Instances are immutable; use :meth:`with_viewport` / :meth:`with_axis_range`
    when geometry changes.

    All ``*_pixel`` methods work in renderer-local space and all ``*_host``
    methods in host-view space. Inputs may be scalars or numpy arrays; scalar
    inputs return a :class:`Point` of floats.
    """

    __slots__ = ("_axis", "_viewport")

    def __init__(self, axis_range: AxisRange, viewport: PlotViewport) -> None:
        if not viewport.plot_width > 0 or not viewport.plot_height > 0:
            raise DegenerateAxisRange(
                f"plot area is empty: {viewport.plot_width} x {viewport.plot_height} px "
                f"for a {viewport.width} x {viewport.height} viewport"
            )
        self._axis = axis_range
        self._viewport = viewport

    @classmethod
    def from_ranges(
        cls,
        x_range: Tuple[float, float],
        y_range: Tuple[float, float],
        viewport: PlotViewport,
    ) -> "CoordinateTransform":
        return cls(AxisRange(x_range[0], x_range[1], y_range[0], y_range[1]), viewport)

    @property
    def axis_range(self) -> AxisRange:
        return self._axis

    @property
    def viewport(self) -> PlotViewport:
        return self._viewport

    def with_viewport(self, viewport: PlotViewport) -> "CoordinateTransform":
        return CoordinateTransform(self._axis, viewport)

    def with_axis_range(self, axis_range: AxisRange) -> "CoordinateTransform":
        return CoordinateTransform(axis_range, self._viewport)

    # --- plot <-> renderer-local pixels ---

    def plot_to_pixel(self, x: ArrayLike, y: ArrayLike) -> Point:
        """Map plot coordinates to renderer-local pixels (y axis inverted)."""
        ax, vp, m = self._axis, self._viewport, self._viewport.margins
        xs = np.asarray(x, dtype=float)
        ys = np.asarray(y, dtype=float)
        px = m.left + ((xs - ax.min_x) / ax.x_span) * vp.plot_width
        py = vp.height - m.bottom - ((ys - ax.min_y) / ax.y_span) * vp.plot_height
        return _pack(px, py)

    def pixel_to_plot(self, px: ArrayLike, py: ArrayLike) -> Point:
        """Inverse of :meth:`plot_to_pixel`."""
        ax, vp, m = self._axis, self._viewport, self._viewport.margins
        pxs = np.asarray(px, dtype=float)
        pys = np.asarray(py, dtype=float)
        x = ax.min_x + ((pxs - m.left) / vp.plot_width) * ax.x_span
        y = ax.min_y + ((vp.height - m.bottom - pys) / vp.plot_height) * ax.y_span
        return _pack(x, y)

    # --- host-view <-> renderer-local pixels ---

    def host_to_renderer(self, point: Tuple[ArrayLike, ArrayLike]) -> Point:
        """``rendererLocal = hostView - rendererOrigin``."""
        origin = self._viewport.origin
        return _pack(np.asarray(point[0], dtype=float) - origin.x, np.asarray(point[1], dtype=float) - origin.y)

    def renderer_to_host(self, point: Tuple[ArrayLike, ArrayLike]) -> Point:
        """``hostView = rendererLocal + rendererOrigin``."""
        origin = self._viewport.origin
        return _pack(np.asarray(point[0], dtype=float) + origin.x, np.asarray(point[1], dtype=float) + origin.y)

    # --- plot <-> host-view pixels ---

    def plot_to_host(self, x: ArrayLike, y: ArrayLike) -> Point:
        return self.renderer_to_host(self.plot_to_pixel(x, y))

    def host_to_plot(self, hx: ArrayLike, hy: ArrayLike) -> Point:
        local = self.host_to_renderer((hx, hy))
        return self.pixel_to_plot(local.x, local.y)

    def contains_host(self, point: Tuple[float, float]) -> bool:
        """Whether a host-view point falls inside the plot area."""
        local = self.host_to_renderer(point)
        m, vp = self._viewport.margins, self._viewport
        return (m.left <= local.x <= vp.width - m.right) and (m.top <= local.y <= vp.height - m.bottom)

    def __repr__(self) -> str:
        return f"CoordinateTransform(axis_range={self._axis!r}, viewport={self._viewport!r})"


def annotation_offset(anchor: Tuple[float, float], text_position: Tuple[float, float]) -> Point:
    """Pixel offset ``(ax, ay)`` of a label at ``text_position`` from ``anchor``.

    Both points must be in the same pixel space.
    """
    return Point(float(text_position[0]) - float(anchor[0]), float(text_position[1]) - float(anchor[1]))


def text_position(anchor: Tuple[float, float], offset: Tuple[float, float]) -> Point:
    """Where a label with pixel ``offset`` is drawn relative to ``anchor``."""
    return Point(float(anchor[0]) + float(offset[0]), float(anchor[1]) + float(offset[1]))


def _pack(a: np.ndarray, b: np.ndarray) -> Point:
    if np.ndim(a) == 0 and np.ndim(b) == 0:
        return Point(float(a), float(b))
    return Point(a, b)


__all__ = [
    "AxisRange",
    "CoordinateTransform",
    "DEFAULT_X_RANGE",
    "DEFAULT_Y_RANGE",
    "FALLBACK_MARGINS",
    "Margins",
    "PlotViewport",
    "Point",
    "annotation_offset",
    "text_position",
]
