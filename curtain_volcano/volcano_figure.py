"""Plotly figure construction for the volcano plot.

Builds layout, traces and annotations from a
:class:`~curtain_volcano.volcano_settings.CurtainSettings` record and an
:class:`~curtain_volcano.volcano_annotations.AnnotationStore`. Each annotation
carries ``name=title`` so the renderer can find it again when the bridge asks
to move it.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Sequence

import plotly.graph_objects as go

from .volcano_annotations import Annotation, AnnotationStore, DataPoint, annotation_title
from .volcano_settings import CurtainSettings
from .volcano_transform import FALLBACK_MARGINS

THRESHOLD_LINE = {"color": "rgb(21,4,4)", "width": 1, "dash": "dash"}
GRID_COLOR = "#e0e0e0"

# Curtain bookkeeping keys that are not Plotly annotation attributes.
_CURTAIN_ONLY_KEYS = ("annotationID", "showannotation")


def annotation_layout(annotation: Annotation) -> go.layout.Annotation:
    """Plotly annotation for ``annotation``, named by its title."""
    data = annotation.plotly_data()
    visible = data.pop("showannotation", True)
    for key in _CURTAIN_ONLY_KEYS:
        data.pop(key, None)
    data.setdefault("xref", "x")
    data.setdefault("yref", "y")
    data.setdefault("showarrow", True)
    data["name"] = annotation.title
    data["visible"] = bool(visible)
    return go.layout.Annotation(data, skip_invalid=True)


def threshold_shapes(settings: CurtainSettings) -> List[Dict[str, Any]]:
    """Dashed cutoff lines at +/-log2FC and -log10(p) cutoffs."""
    axis = settings.axis_range()
    shapes: List[Dict[str, Any]] = []
    for x in (-settings.log2fc_cutoff, settings.log2fc_cutoff):
        shapes.append(
            dict(type="line", xref="x", yref="y", x0=x, x1=x, y0=0, y1=axis.max_y, line=dict(THRESHOLD_LINE))
        )
    if settings.p_cutoff > 0:
        y = -math.log10(settings.p_cutoff)
        shapes.append(
            dict(type="line", xref="x", yref="y", x0=axis.min_x, x1=axis.max_x, y0=y, y1=y, line=dict(THRESHOLD_LINE))
        )
    return shapes


def _margin(settings: CurtainSettings) -> Dict[str, float]:
    configured = (settings.volcano_plot_dimension or {}).get("margin") or {}
    fallback = {"l": FALLBACK_MARGINS.left, "r": FALLBACK_MARGINS.right, "t": FALLBACK_MARGINS.top, "b": FALLBACK_MARGINS.bottom}
    names = {"l": "left", "r": "right", "t": "top", "b": "bottom"}
    out = {}
    for short, default in fallback.items():
        value = configured.get(names[short])
        out[short] = default if value is None else float(value)
    return out


def volcano_layout(settings: CurtainSettings, store: Optional[AnnotationStore] = None) -> Dict[str, Any]:
    """Layout dict for the volcano plot described by ``settings``.

    Annotations come from ``store`` when given, else from the settings'
    ``text_annotation``.
    """
    if store is None:
        store = AnnotationStore.from_text_annotation(settings.text_annotation)
    axis = settings.volcano_axis
    rng = settings.axis_range()
    family = settings.plot_font_family
    grid = settings.volcano_plot_grid or {}
    dimension = settings.volcano_plot_dimension or {}

    xaxis: Dict[str, Any] = dict(
        title=dict(text=axis.x_title, font=dict(family=family, size=12)),
        range=[rng.min_x, rng.max_x],
        zeroline=True,
        zerolinecolor="#000000",
        gridcolor=GRID_COLOR,
        showgrid=bool(grid.get("x", True)),
        ticklen=axis.ticklen_x,
        tickfont=dict(family=family, size=10),
    )
    yaxis: Dict[str, Any] = dict(
        title=dict(text=axis.y_title, font=dict(family=family, size=12)),
        range=[rng.min_y, rng.max_y],
        zeroline=False,
        gridcolor=GRID_COLOR,
        showgrid=bool(grid.get("y", True)),
        ticklen=axis.ticklen_y,
        tickfont=dict(family=family, size=10),
    )
    if axis.dtick_x is not None:
        xaxis["dtick"] = axis.dtick_x
    if axis.dtick_y is not None:
        yaxis["dtick"] = axis.dtick_y

    legend: Dict[str, Any] = dict(orientation="h", x=0.5, xanchor="center", y=-0.1, yanchor="top")
    if settings.volcano_plot_legend_x is not None:
        legend["x"] = settings.volcano_plot_legend_x
    if settings.volcano_plot_legend_y is not None:
        legend["y"] = settings.volcano_plot_legend_y

    layout: Dict[str, Any] = dict(
        title=dict(text=settings.volcano_plot_title, font=dict(family=family, size=16)),
        xaxis=xaxis,
        yaxis=yaxis,
        hovermode="closest",
        showlegend=True,
        plot_bgcolor="rgba(0,0,0,0)",
        paper_bgcolor="rgba(0,0,0,0)",
        font=dict(family=family, size=12),
        margin=_margin(settings),
        legend=legend,
        shapes=threshold_shapes(settings) + [dict(s) for s in settings.volcano_additional_shapes],
        annotations=[annotation_layout(a) for a in sorted(store, key=lambda a: a.key)],
    )
    if dimension.get("width"):
        layout["width"] = dimension["width"]
    if dimension.get("height"):
        layout["height"] = dimension["height"]
    return layout


def volcano_trace(
    points: Sequence[DataPoint],
    *,
    name: str,
    color: str,
    marker_size: float = 10,
) -> go.Scatter:
    """Marker trace for one group of data points.

    ``customdata`` rows are ``[id, gene]``; the renderer reads them to report
    ``pointClicked``.
    """
    return go.Scatter(
        x=[p.x for p in points],
        y=[p.y for p in points],
        mode="markers",
        name=name,
        text=[annotation_title(p.id.strip(), p.gene) for p in points],
        customdata=[[p.id, p.gene or ""] for p in points],
        marker=dict(color=color, size=marker_size, symbol="circle", line=dict(color="white", width=0.5)),
        hovertemplate="<b>%{text}</b><br>Log2FC: %{x:.3f}<br>-Log10(p-value): %{y:.3f}<extra></extra>",
    )


def apply_annotations(figure: go.Figure, store: AnnotationStore) -> None:
    """Replace ``figure``'s annotations with the contents of ``store``."""
    annotations = [annotation_layout(a) for a in sorted(store, key=lambda a: a.key)]
    if isinstance(figure, go.FigureWidget):
        with figure.batch_update():
            figure.layout.annotations = annotations
    else:
        figure.layout.annotations = annotations


__all__ = [
    "annotation_layout",
    "apply_annotations",
    "threshold_shapes",
    "volcano_layout",
    "volcano_trace",
]
