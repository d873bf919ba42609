"""Volcano annotation editor.

``VolcanoAnnotationEditor`` is the composition root of the package: it owns
the settings record, the annotation store, the current coordinate transform
and the positioning controller, and it is handed its chart bridge explicitly.

Error policy
------------
Library layers raise; the editor absorbs. Duplicate creates, updates of
missing annotations, illegal positioning transitions and degenerate
geometry are logged and turned into no-ops (methods return ``None`` or
``False``). Renderer errors are the only user-visible failures: they are kept
in :attr:`VolcanoAnnotationEditor.last_error` and handed to ``on_error``
listeners.

Examples
--------
>>> editor = VolcanoAnnotationEditor(CurtainSettings())  # doctest: +SKIP
>>> editor.add_annotation("P12345", 1.5, 2.0)  # doctest: +SKIP
>>> editor  # doctest: +SKIP
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import plotly.graph_objects as go
from IPython.display import display

from .bridge_protocol import CoordinateReport, DimensionsReport, PointClicked
from .chart_bridge import ChartBridge
from .errors import (
    AnnotationNotFound,
    DegenerateAxisRange,
    DuplicateAnnotation,
    PositioningStateError,
    RendererReportedError,
)
from .volcano_annotations import (
    HIT_RADIUS_PX,
    MATCH_TOLERANCE,
    Annotation,
    AnnotationStore,
    DisplayNameResolver,
    EditCandidate,
)
from .volcano_figure import apply_annotations, volcano_layout
from .volcano_positioning import PositioningController, PositioningState
from .volcano_settings import CurtainSettings
from .volcano_transform import CoordinateTransform, PlotViewport, Point

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


# Renderer offsets within this many pixels of the expected one count as equal.
OFFSET_TOLERANCE_PX = 0.5


@dataclass(frozen=True)
class OverlayPosition:
    """Host-view pixel positions of one annotation's anchor and label."""

    key: str
    anchor: Point
    text: Point


class VolcanoAnnotationEditor:
    """Annotation editing for one volcano plot.

    Parameters
    ----------
    settings : CurtainSettings
        Initial settings; :attr:`settings` always holds the latest record.
    bridge : ChartBridge, optional
        Renderer channel. A transport-less bridge is created when omitted; it
        becomes live once :meth:`pane` connects a driver.
    resolver : callable, optional
        Gene-name resolver used to derive annotation titles.
    view_size : tuple of float
        Initial host size, used with fallback margins until the renderer
        reports its geometry.
    tolerance : float
        Plot-space tolerance for matching renderer coordinate reports.
    hit_radius_px : float
        Radius used by :meth:`annotations_near`.
    """

    def __init__(
        self,
        settings: CurtainSettings,
        *,
        bridge: Optional[ChartBridge] = None,
        resolver: Optional[DisplayNameResolver] = None,
        view_size: Tuple[float, float] = (800, 600),
        tolerance: float = MATCH_TOLERANCE,
        hit_radius_px: float = HIT_RADIUS_PX,
    ) -> None:
        self._settings = settings
        self._store = AnnotationStore.from_text_annotation(settings.text_annotation, resolver=resolver)
        self._transform = CoordinateTransform(
            settings.axis_range(), PlotViewport.fallback(view_size[0], view_size[1])
        )
        self._tolerance = float(tolerance)
        self._hit_radius_px = float(hit_radius_px)
        self._reported_anchors: Dict[str, Point] = {}
        self._bridge = bridge if bridge is not None else ChartBridge()
        self._controller = PositioningController(self._store, self._bridge, self._anchor_screen)

        self.last_error: Optional[RendererReportedError] = None
        self._figure: Optional[go.FigureWidget] = None
        self._pane: Any = None

        self._settings_listeners: List[Callable[[CurtainSettings], None]] = []
        self._overlay_listeners: List[Callable[[Dict[str, OverlayPosition]], None]] = []
        self._error_listeners: List[Callable[[RendererReportedError], None]] = []
        self._click_listeners: List[Callable[[PointClicked], None]] = []

        self._unsubscribe = [
            self._bridge.on_dimensions(self._on_dimensions),
            self._bridge.on_coordinates(self._on_coordinates),
            self._bridge.on_error(self._on_renderer_error),
            self._bridge.on_point_clicked(self._on_point_clicked),
        ]

    # --- read-only views ---

    @property
    def settings(self) -> CurtainSettings:
        return self._settings

    @property
    def store(self) -> AnnotationStore:
        return self._store

    @property
    def transform(self) -> CoordinateTransform:
        return self._transform

    @property
    def bridge(self) -> ChartBridge:
        return self._bridge

    @property
    def controller(self) -> PositioningController:
        return self._controller

    @property
    def positioning_state(self) -> PositioningState:
        return self._controller.state

    # --- listeners ---

    def on_settings_changed(self, callback: Callable[[CurtainSettings], None]) -> Callable[[], None]:
        """Call ``callback(settings)`` after every committed change."""
        return _subscribe(self._settings_listeners, callback)

    def on_overlay_changed(
        self, callback: Callable[[Dict[str, OverlayPosition]], None]
    ) -> Callable[[], None]:
        """Call ``callback(positions)`` whenever geometry changes."""
        return _subscribe(self._overlay_listeners, callback)

    def on_error(self, callback: Callable[[RendererReportedError], None]) -> Callable[[], None]:
        return _subscribe(self._error_listeners, callback)

    def on_point_clicked(self, callback: Callable[[PointClicked], None]) -> Callable[[], None]:
        return _subscribe(self._click_listeners, callback)

    # --- annotation CRUD ---

    def add_annotation(
        self,
        data_point_id: str,
        anchor_x: float,
        anchor_y: float,
        text: Optional[str] = None,
    ) -> Optional[Annotation]:
        """Annotate a data point; an existing annotation is returned unchanged."""
        try:
            annotation = self._store.add_annotation(data_point_id, anchor_x, anchor_y, text)
        except DuplicateAnnotation as e:
            logger.info("Annotation %r already exists", e.title)
            return self._store.get(e.title)
        self._commit()
        return annotation

    def remove_annotation(self, key: str) -> None:
        if key not in self._store:
            return
        if self._controller.session is not None and self._controller.session.key == key:
            self._controller.cancel()
        self._store.remove_annotation(key)
        self._reported_anchors.pop(key, None)
        self._commit()

    def update_text(self, key: str, text: str) -> Optional[Annotation]:
        try:
            annotation = self._store.update_text(key, text)
        except AnnotationNotFound as e:
            logger.info("update_text ignored: %s", e)
            return None
        self._commit()
        return annotation

    def update_offset(self, key: str, ax: float, ay: float) -> Optional[Annotation]:
        """Set an offset directly (slider editing) and push it to the renderer."""
        try:
            annotation = self._store.update_offset(key, ax, ay)
        except AnnotationNotFound as e:
            logger.info("update_offset ignored: %s", e)
            return None
        self._bridge.set_annotation_offset(annotation.title, annotation.offset_x, annotation.offset_y)
        self._commit()
        return annotation

    # --- geometry ---

    def resize(self, width: float, height: float) -> bool:
        """The host view changed size. Returns ``False`` if the size is unusable."""
        viewport = self._transform.viewport.resized(width, height)
        if self._set_viewport(viewport):
            self._bridge.request_dimensions()
            return True
        return False

    def overlay_positions(self) -> Dict[str, OverlayPosition]:
        """Host-view anchor and label positions of every annotation."""
        out: Dict[str, OverlayPosition] = {}
        for annotation in self._store:
            offset = self._controller.expected_offset(annotation.key) or annotation.offset
            anchor = self._anchor_screen(annotation)
            out[annotation.key] = OverlayPosition(annotation.key, anchor, anchor + offset)
        return out

    def annotations_near(self, point: Tuple[float, float]) -> List[EditCandidate]:
        """Annotations whose label is within the hit radius of host-view ``point``."""
        return self._store.find_near(point, self._transform, self._hit_radius_px)

    # --- positioning ---

    def start_positioning(self, key: str) -> bool:
        try:
            self._controller.start(key)
        except (PositioningStateError, AnnotationNotFound) as e:
            logger.info("start_positioning ignored: %s", e)
            return False
        return True

    def drag(self, point: Tuple[float, float]) -> Optional[Point]:
        """Move the label being positioned to host-view ``point``."""
        try:
            offset = self._controller.drag_move(point)
        except PositioningStateError as e:
            logger.info("drag ignored: %s", e)
            return None
        self._notify_overlay()
        return offset

    def end_drag(self) -> bool:
        try:
            self._controller.drag_end()
        except PositioningStateError as e:
            logger.info("end_drag ignored: %s", e)
            return False
        return True

    def accept(self) -> Optional[Annotation]:
        try:
            annotation = self._controller.accept()
        except (PositioningStateError, AnnotationNotFound) as e:
            logger.info("accept ignored: %s", e)
            return None
        self._commit()
        return annotation

    def reject(self) -> bool:
        try:
            self._controller.reject()
        except PositioningStateError as e:
            logger.info("reject ignored: %s", e)
            return False
        self._notify_overlay()
        return True

    def cancel(self) -> None:
        self._controller.cancel()
        self._notify_overlay()

    # --- figure / display ---

    def build_figure(self, traces: Iterable[Any] = ()) -> go.FigureWidget:
        """FigureWidget laid out from the current settings and annotations."""
        self._figure = go.FigureWidget(data=list(traces), layout=volcano_layout(self._settings, self._store))
        return self._figure

    def pane(self, **pane_kwargs: Any) -> Any:
        """The displayable :class:`~curtain_volcano.PlotlyBridge.VolcanoPane` (built once)."""
        if self._pane is None:
            from .PlotlyBridge import VolcanoPane

            figure = self._figure if self._figure is not None else self.build_figure()
            self._pane = VolcanoPane(figure, bridge=self._bridge, **pane_kwargs)
        return self._pane

    def _ipython_display_(self, **kwargs: Any) -> None:
        """Display the volcano pane."""
        display(self.pane().widget)

    def close(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        self._controller.cancel()
        if self._pane is not None:
            self._pane.close()

    # --- bridge callbacks ---

    def _on_dimensions(self, report: DimensionsReport) -> None:
        current = self._transform.viewport
        try:
            viewport = PlotViewport.from_dimensions(report, width=current.width, height=current.height)
        except ValueError as e:
            logger.warning("Ignoring dimensions report: %s", e)
            return
        self._set_viewport(viewport)

    def _on_coordinates(self, report: CoordinateReport) -> None:
        newest_push = self._bridge.last_offset_request_id
        superseded = (
            report.request_id is not None and newest_push is not None and report.request_id < newest_push
        )
        in_sync = True
        for coordinate in report.coordinates:
            annotation = self._store.match_report(coordinate, self._tolerance)
            if annotation is None:
                logger.debug("Unmatched coordinate report at (%s, %s)", coordinate.plot_x, coordinate.plot_y)
                continue
            self._reported_anchors[annotation.key] = coordinate.screen
            if superseded:
                continue
            expected = self._controller.expected_offset(annotation.key)
            if expected is None:
                continue
            if (
                abs(coordinate.ax - expected.x) > OFFSET_TOLERANCE_PX
                or abs(coordinate.ay - expected.y) > OFFSET_TOLERANCE_PX
            ):
                in_sync = False
                logger.debug(
                    "Renderer shows %r at (%s, %s), expected %s; re-pushing",
                    annotation.key, coordinate.ax, coordinate.ay, expected,
                )
                self._bridge.set_annotation_offset(annotation.title, expected.x, expected.y)
        if superseded:
            logger.debug("Coordinate report %d predates offset push %d", report.request_id, newest_push)
        elif in_sync and self._controller.needs_reconcile:
            self._controller.mark_reconciled()

    def _on_renderer_error(self, error: RendererReportedError) -> None:
        self.last_error = error
        _emit(self._error_listeners, error, "error")

    def _on_point_clicked(self, event: PointClicked) -> None:
        _emit(self._click_listeners, event, "point click")

    # --- internals ---

    def _anchor_screen(self, annotation: Annotation) -> Point:
        """Anchor position the renderer last reported, else the computed one."""
        reported = self._reported_anchors.get(annotation.key)
        if reported is not None:
            return reported
        return self._transform.plot_to_host(annotation.anchor_x, annotation.anchor_y)

    def _set_viewport(self, viewport: PlotViewport) -> bool:
        try:
            self._transform = self._transform.with_viewport(viewport)
        except DegenerateAxisRange as e:
            logger.warning("Keeping previous geometry: %s", e)
            return False
        self._reported_anchors.clear()
        self._notify_overlay()
        return True

    def _commit(self) -> None:
        self._settings = self._settings.with_annotation_store(self._store)
        if self._figure is not None:
            apply_annotations(self._figure, self._store)
        self._notify_overlay()
        _emit(self._settings_listeners, self._settings, "settings")

    def _notify_overlay(self) -> None:
        if not self._overlay_listeners:
            return
        _emit(self._overlay_listeners, self.overlay_positions(), "overlay")

    def __repr__(self) -> str:
        return (
            f"VolcanoAnnotationEditor(annotations={len(self._store)}, "
            f"state={self._controller.state.name}, estimated={self._transform.viewport.is_estimated})"
        )


def _subscribe(listeners: List[Callable[..., None]], callback: Callable[..., None]) -> Callable[[], None]:
    listeners.append(callback)

    def _unsubscribe() -> None:
        if callback in listeners:
            listeners.remove(callback)

    return _unsubscribe


def _emit(listeners: List[Callable[..., None]], payload: Any, kind: str) -> None:
    for callback in list(listeners):
        try:
            callback(payload)
        except Exception:
            logger.exception("Editor %s listener failed", kind)


__all__ = ["OFFSET_TOLERANCE_PX", "OverlayPosition", "VolcanoAnnotationEditor"]
