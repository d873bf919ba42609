"""Annotation positioning for Curtain volcano plots in Jupyter.

The package keeps text annotations of a Plotly volcano plot in sync between
Python and the browser renderer:

- :mod:`~curtain_volcano.volcano_settings`: the Curtain settings record,
- :mod:`~curtain_volcano.volcano_transform`: plot <-> pixel transforms,
- :mod:`~curtain_volcano.volcano_annotations`: the annotation store,
- :mod:`~curtain_volcano.bridge_protocol` and :mod:`~curtain_volcano.chart_bridge`:
  the renderer message channel,
- :mod:`~curtain_volcano.PlotlyBridge`: the anywidget renderer endpoint,
- :mod:`~curtain_volcano.volcano_positioning`: drag / preview / accept flow,
- :mod:`~curtain_volcano.volcano_editor`: the facade tying them together.
"""

from .errors import (
    AnnotationNotFound,
    BridgeProtocolError,
    BridgeUnavailable,
    CurtainVolcanoError,
    DegenerateAxisRange,
    DuplicateAnnotation,
    PositioningStateError,
    RendererReportedError,
)
from .InputConvert import InputConvert, OptionalConvert
from .retry import RetryBudget
from .debouncing import QueuedDebouncer
from .volcano_transform import (
    FALLBACK_MARGINS,
    AxisRange,
    CoordinateTransform,
    Margins,
    PlotViewport,
    Point,
    annotation_offset,
    text_position,
)
from .volcano_settings import CurtainSettings, VolcanoAxis
from .volcano_annotations import (
    Annotation,
    AnnotationStore,
    DataPoint,
    EditCandidate,
    NearbyPoint,
    annotation_title,
    find_nearby_points,
)
from .bridge_protocol import (
    AnnotationCoordinate,
    CoordinateReport,
    DimensionsReport,
    PointClicked,
    RendererError,
    RendererReady,
    RendererUpdated,
    RequestDimensions,
    SetAnnotationOffset,
    decode_message,
    encode_message,
)
from .chart_bridge import ChartBridge
from .volcano_positioning import PositioningController, PositioningSession, PositioningState
from .volcano_figure import annotation_layout, apply_annotations, threshold_shapes, volcano_layout, volcano_trace
from .volcano_editor import OverlayPosition, VolcanoAnnotationEditor
from .PlotlyBridge import VolcanoBridgeDriver, VolcanoPane, VolcanoPaneStyle

__all__ = [
    "Annotation",
    "AnnotationCoordinate",
    "AnnotationNotFound",
    "AnnotationStore",
    "AxisRange",
    "BridgeProtocolError",
    "BridgeUnavailable",
    "ChartBridge",
    "CoordinateReport",
    "CoordinateTransform",
    "CurtainSettings",
    "CurtainVolcanoError",
    "DataPoint",
    "DegenerateAxisRange",
    "DimensionsReport",
    "DuplicateAnnotation",
    "EditCandidate",
    "FALLBACK_MARGINS",
    "InputConvert",
    "Margins",
    "NearbyPoint",
    "OptionalConvert",
    "OverlayPosition",
    "PlotViewport",
    "Point",
    "PointClicked",
    "PositioningController",
    "PositioningSession",
    "PositioningState",
    "PositioningStateError",
    "QueuedDebouncer",
    "RendererError",
    "RendererReady",
    "RendererReportedError",
    "RendererUpdated",
    "RequestDimensions",
    "RetryBudget",
    "SetAnnotationOffset",
    "VolcanoAnnotationEditor",
    "VolcanoAxis",
    "VolcanoBridgeDriver",
    "VolcanoPane",
    "VolcanoPaneStyle",
    "annotation_layout",
    "annotation_offset",
    "annotation_title",
    "apply_annotations",
    "decode_message",
    "encode_message",
    "find_nearby_points",
    "text_position",
    "threshold_shapes",
    "volcano_layout",
    "volcano_trace",
]
