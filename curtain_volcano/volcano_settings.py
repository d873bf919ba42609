"""Curtain settings record.

Purpose
-------
``CurtainSettings`` is the large, flat, immutable configuration record that a
Curtain session is loaded from. It describes cutoffs, plot appearance and, for
this package most importantly, the volcano axis limits and the text
annotations placed on the volcano plot.

The record is a frozen dataclass. Edits never rebuild it field by field;
they go through :meth:`CurtainSettings.replace` or one of the targeted patch
builders (:meth:`with_volcano_axis`, :meth:`with_text_annotation`,
:meth:`with_annotation_store`), which copy every other field structurally.

Wire format
-----------
Curtain settings are exchanged as JSON with camelCase keys
(``pCutoff``, ``volcanoAxis``, ``textAnnotation``, ...). Keys this module does
not model are kept verbatim in ``extra`` and written back by :meth:`to_dict`,
so a load/dump cycle is lossless.

Validation
----------
The volcano axis range is validated when the record is loaded:
:meth:`CurtainSettings.from_dict` raises
:class:`~curtain_volcano.errors.DegenerateAxisRange` for a configured
``min >= max`` so a bad file fails once, at load time, instead of on every
gesture.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field, fields, replace as _dc_replace
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from .InputConvert import InputConvert, OptionalConvert
from .volcano_transform import AxisRange

if TYPE_CHECKING:
    from .volcano_annotations import AnnotationStore

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


DEFAULT_COLOR_LIST: Tuple[str, ...] = (
    "#fd7f6f", "#7eb0d5", "#b2e061", "#bd7ebe", "#ffb55a",
    "#ffee65", "#beb9db", "#fdcce5", "#8bd3c7",
)


@dataclass(frozen=True)
class VolcanoAxis:
    """Volcano axis settings; ``None`` limits mean "use the default range"."""

    min_x: Optional[float] = None
    max_x: Optional[float] = None
    min_y: Optional[float] = None
    max_y: Optional[float] = None
    x_title: str = "Log2FC"
    y_title: str = "-log10(p-value)"
    dtick_x: Optional[float] = None
    dtick_y: Optional[float] = None
    ticklen_x: int = 5
    ticklen_y: int = 5

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "VolcanoAxis":
        if not data:
            return cls()
        return cls(
            min_x=OptionalConvert(data.get("minX")),
            max_x=OptionalConvert(data.get("maxX")),
            min_y=OptionalConvert(data.get("minY")),
            max_y=OptionalConvert(data.get("maxY")),
            x_title=str(data.get("x", "Log2FC")),
            y_title=str(data.get("y", "-log10(p-value)")),
            dtick_x=OptionalConvert(data.get("dtickX")),
            dtick_y=OptionalConvert(data.get("dtickY")),
            ticklen_x=InputConvert(data.get("ticklenX", 5), int),
            ticklen_y=InputConvert(data.get("ticklenY", 5), int),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "minX": self.min_x,
            "maxX": self.max_x,
            "minY": self.min_y,
            "maxY": self.max_y,
            "x": self.x_title,
            "y": self.y_title,
            "dtickX": self.dtick_x,
            "dtickY": self.dtick_y,
            "ticklenX": self.ticklen_x,
            "ticklenY": self.ticklen_y,
        }

    def axis_range(self) -> AxisRange:
        """Validated data-space range with -3..3 / 0..5 defaults."""
        return AxisRange.from_volcano_axis(self)


# Field kinds drive JSON conversion in from_dict/to_dict.
_FLOAT = "float"
_OPT_FLOAT = "optional_float"
_BOOL = "bool"
_STR = "str"
_MAP = "map"
_SEQ = "seq"


def _key(name: str, kind: str) -> Dict[str, str]:
    return {"key": name, "kind": kind}


@dataclass(frozen=True)
class CurtainSettings:
    """Immutable Curtain settings record.

    Only the fields the volcano annotation core reads are documented here;
    the remaining fields mirror the Curtain JSON schema one-to-one (see each
    field's JSON key in the dataclass metadata).

    Parameters
    ----------
    volcano_axis : VolcanoAxis
        Axis limits and titles of the volcano plot.
    text_annotation : dict[str, dict]
        Annotations keyed by title. Each value is the Curtain annotation
        record ``{"primary_id", "title", "data": {x, y, text, ax, ay, ...}}``
        where ``data`` is a Plotly annotation.
    extra : dict[str, Any]
        JSON keys not modelled by this class, preserved for round-tripping.
    """

    fetch_uniprot: bool = field(default=True, metadata=_key("fetchUniprot", _BOOL))
    input_data_cols: Dict[str, Any] = field(default_factory=dict, metadata=_key("inputDataCols", _MAP))
    probability_filter_map: Dict[str, Any] = field(default_factory=dict, metadata=_key("probabilityFilterMap", _MAP))
    barchart_color_map: Dict[str, Any] = field(default_factory=dict, metadata=_key("barchartColorMap", _MAP))
    p_cutoff: float = field(default=0.05, metadata=_key("pCutoff", _FLOAT))
    log2fc_cutoff: float = field(default=0.6, metadata=_key("log2FCCutoff", _FLOAT))
    description: str = field(default="", metadata=_key("description", _STR))
    uniprot: bool = field(default=True, metadata=_key("uniprot", _BOOL))
    color_map: Dict[str, str] = field(default_factory=dict, metadata=_key("colorMap", _MAP))
    academic: bool = field(default=True, metadata=_key("academic", _BOOL))
    background_color_grey: bool = field(default=False, metadata=_key("backGroundColorGrey", _BOOL))
    current_comparison: str = field(default="", metadata=_key("currentComparison", _STR))
    version: float = field(default=2.0, metadata=_key("version", _FLOAT))
    current_id: str = field(default="", metadata=_key("currentId", _STR))
    fdr_curve_text: str = field(default="", metadata=_key("fdrCurveText", _STR))
    fdr_curve_text_enable: bool = field(default=False, metadata=_key("fdrCurveTextEnable", _BOOL))
    pride_accession: str = field(default="", metadata=_key("prideAccession", _STR))
    project: Dict[str, Any] = field(default_factory=dict, metadata=_key("project", _MAP))
    sample_order: Dict[str, Any] = field(default_factory=dict, metadata=_key("sampleOrder", _MAP))
    sample_visible: Dict[str, Any] = field(default_factory=dict, metadata=_key("sampleVisible", _MAP))
    condition_order: Tuple[str, ...] = field(default=(), metadata=_key("conditionOrder", _SEQ))
    sample_map: Dict[str, Any] = field(default_factory=dict, metadata=_key("sampleMap", _MAP))
    volcano_axis: VolcanoAxis = field(default_factory=VolcanoAxis, metadata=_key("volcanoAxis", "axis"))
    text_annotation: Dict[str, Any] = field(default_factory=dict, metadata=_key("textAnnotation", _MAP))
    volcano_plot_title: str = field(default="", metadata=_key("volcanoPlotTitle", _STR))
    visible: Dict[str, Any] = field(default_factory=dict, metadata=_key("visible", _MAP))
    volcano_plot_grid: Dict[str, bool] = field(
        default_factory=lambda: {"x": True, "y": True}, metadata=_key("volcanoPlotGrid", _MAP)
    )
    volcano_plot_dimension: Dict[str, Any] = field(
        default_factory=lambda: {"width": 800, "height": 1000, "margin": {}},
        metadata=_key("volcanoPlotDimension", _MAP),
    )
    volcano_additional_shapes: Tuple[Any, ...] = field(default=(), metadata=_key("volcanoAdditionalShapes", _SEQ))
    volcano_plot_legend_x: Optional[float] = field(default=None, metadata=_key("volcanoPlotLegendX", _OPT_FLOAT))
    volcano_plot_legend_y: Optional[float] = field(default=None, metadata=_key("volcanoPlotLegendY", _OPT_FLOAT))
    default_color_list: Tuple[str, ...] = field(default=DEFAULT_COLOR_LIST, metadata=_key("defaultColorList", _SEQ))
    scatter_plot_marker_size: float = field(default=10.0, metadata=_key("scatterPlotMarkerSize", _FLOAT))
    plot_font_family: str = field(default="Arial", metadata=_key("plotFontFamily", _STR))
    legend_status: Dict[str, Any] = field(default_factory=dict, metadata=_key("legendStatus", _MAP))
    selected_comparison: Tuple[str, ...] = field(default=(), metadata=_key("selectedComparison", _SEQ))
    volcano_condition_labels: Dict[str, Any] = field(default_factory=dict, metadata=_key("volcanoConditionLabels", _MAP))
    volcano_trace_order: Tuple[str, ...] = field(default=(), metadata=_key("volcanoTraceOrder", _SEQ))
    volcano_plot_yaxis_position: Tuple[str, ...] = field(
        default=("middle",), metadata=_key("volcanoPlotYaxisPosition", _SEQ)
    )
    custom_volcano_text_col: str = field(default="", metadata=_key("customVolcanoTextCol", _STR))
    marker_size_map: Dict[str, Any] = field(default_factory=dict, metadata=_key("markerSizeMap", _MAP))
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Degenerate configured ranges fail here, at load time.
        self.volcano_axis.axis_range()

    # --- JSON ---

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CurtainSettings":
        """Build a record from Curtain settings JSON (already decoded).

        Raises
        ------
        DegenerateAxisRange
            If ``volcanoAxis`` configures an empty range.
        ValueError
            If a numeric field cannot be converted.
        """
        kwargs: Dict[str, Any] = {}
        known = set()
        for f in fields(cls):
            key = f.metadata.get("key")
            if key is None:
                continue
            known.add(key)
            if key not in data:
                continue
            kwargs[f.name] = _from_json(f.metadata["kind"], data[key], key)
        kwargs["extra"] = {k: copy.deepcopy(v) for k, v in data.items() if k not in known}
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to Curtain settings JSON (camelCase keys)."""
        out: Dict[str, Any] = copy.deepcopy(dict(self.extra))
        for f in fields(self):
            key = f.metadata.get("key")
            if key is None:
                continue
            out[key] = _to_json(f.metadata["kind"], getattr(self, f.name))
        return out

    @classmethod
    def from_json(cls, text: str) -> "CurtainSettings":
        return cls.from_dict(json.loads(text))

    def to_json(self, **dumps_kwargs: Any) -> str:
        return json.dumps(self.to_dict(), **dumps_kwargs)

    # --- patch builders ---

    def replace(self, **changes: Any) -> "CurtainSettings":
        """Return a copy with only ``changes`` applied."""
        return _dc_replace(self, **changes)

    def with_volcano_axis(self, axis: VolcanoAxis) -> "CurtainSettings":
        return self.replace(volcano_axis=axis)

    def with_text_annotation(self, text_annotation: Mapping[str, Any]) -> "CurtainSettings":
        return self.replace(text_annotation=copy.deepcopy(dict(text_annotation)))

    def with_annotation_store(self, store: "AnnotationStore") -> "CurtainSettings":
        """Return a copy whose ``text_annotation`` is the contents of ``store``."""
        return self.replace(text_annotation=store.to_text_annotation())

    # --- derived ---

    def axis_range(self) -> AxisRange:
        return self.volcano_axis.axis_range()


def _from_json(kind: str, value: Any, key: str) -> Any:
    if kind == _FLOAT:
        return InputConvert(value, float)
    if kind == _OPT_FLOAT:
        return OptionalConvert(value, float)
    if kind == _BOOL:
        return _parse_bool(value, key)
    if kind == _STR:
        return "" if value is None else str(value)
    if kind == _MAP:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ValueError(f"{key} must be an object, got {type(value).__name__}")
        return copy.deepcopy(dict(value))
    if kind == _SEQ:
        if value is None:
            return ()
        if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
            raise ValueError(f"{key} must be a list, got {type(value).__name__}")
        return tuple(copy.deepcopy(list(value)))
    if kind == "axis":
        return VolcanoAxis.from_dict(value)
    raise AssertionError(f"unknown field kind {kind!r}")


_TRUE_STRINGS = ("true", "1", "yes")
_FALSE_STRINGS = ("false", "0", "no")


def _parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ValueError(f"{key} must be a boolean, got {value!r}")


def _to_json(kind: str, value: Any) -> Any:
    if kind == "axis":
        return value.to_dict()
    if kind == _SEQ:
        return list(copy.deepcopy(value))
    if kind == _MAP:
        return copy.deepcopy(dict(value))
    return value


__all__ = ["CurtainSettings", "DEFAULT_COLOR_LIST", "VolcanoAxis"]
