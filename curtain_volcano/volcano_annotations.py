"""Annotation store for the volcano plot.

Purpose
-------
Holds the text annotations of a volcano plot, keyed by their display title.
Each annotation decorates one data point (its *anchor*, in plot space) and
draws its label at a pixel *offset* ``(ax, ay)`` from the anchor's rendered
position, exactly as Plotly's ``ax``/``ay`` annotation attributes do.

The store is owned by the UI thread. It is the working copy of the
``textAnnotation`` mapping of :class:`~curtain_volcano.volcano_settings.CurtainSettings`;
:meth:`AnnotationStore.from_text_annotation` and
:meth:`AnnotationStore.to_text_annotation` convert between the two.

Titles
------
Titles are derived by :func:`annotation_title`, which is the single rule
used both when an annotation is created and when the store is asked whether
one already exists for a data point.
"""

from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .errors import AnnotationNotFound, DuplicateAnnotation
from .volcano_transform import CoordinateTransform, Point

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


DisplayNameResolver = Callable[[str], Optional[str]]

DEFAULT_OFFSET: Tuple[float, float] = (-20.0, -20.0)
MATCH_TOLERANCE = 1e-4
HIT_RADIUS_PX = 150.0

# Plotly attributes every new Curtain annotation starts with.
_NEW_ANNOTATION_STYLE: Dict[str, Any] = {
    "xref": "x",
    "yref": "y",
    "showarrow": True,
    "arrowhead": 1,
    "arrowsize": 1,
    "arrowwidth": 1,
    "arrowcolor": "#000000",
    "xanchor": "center",
    "yanchor": "bottom",
    "font": {"size": 15, "color": "#000000", "family": "Arial, sans-serif"},
    "showannotation": True,
}

# Keys of the Plotly annotation that Annotation models as fields.
_MODELLED_KEYS = frozenset({"x", "y", "text", "ax", "ay"})


def annotation_title(primary_id: str, gene_name: Optional[str] = None) -> str:
    """Display title of the annotation for a data point.

    ``"{gene}({primary_id})"`` when a gene name is known and differs from the
    identifier, else the identifier itself.

    >>> annotation_title("P12345", "ACTB")
    'ACTB(P12345)'
    >>> annotation_title("P12345", "")
    'P12345'
    """
    gene = (gene_name or "").strip()
    if gene and gene != primary_id:
        return f"{gene}({primary_id})"
    return primary_id


@dataclass(frozen=True)
class Annotation:
    """One text annotation.

    Parameters
    ----------
    key : str
        Store key; equal to ``title`` for annotations created here.
    title : str
        Display title, also the Plotly annotation ``name`` used by the
        renderer to find it.
    anchor_x, anchor_y : float
        Plot-space position of the decorated data point.
    text : str
        Label text (may contain Plotly HTML such as ``<b>``).
    offset_x, offset_y : float
        Pixel displacement of the label from the anchor (Plotly ``ax``/``ay``).
    primary_id : str
        Identifier of the decorated data point.
    extra : dict
        Remaining Plotly annotation attributes, carried through untouched.
    """

    key: str
    title: str
    anchor_x: float
    anchor_y: float
    text: str
    offset_x: float = DEFAULT_OFFSET[0]
    offset_y: float = DEFAULT_OFFSET[1]
    primary_id: str = ""
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def anchor(self) -> Point:
        return Point(self.anchor_x, self.anchor_y)

    @property
    def offset(self) -> Point:
        return Point(self.offset_x, self.offset_y)

    def plotly_data(self) -> Dict[str, Any]:
        """The Plotly annotation dict (``data`` section of the settings record)."""
        data = copy.deepcopy(self.extra)
        data.update(
            x=self.anchor_x,
            y=self.anchor_y,
            text=self.text,
            ax=self.offset_x,
            ay=self.offset_y,
        )
        return data

    def to_record(self) -> Dict[str, Any]:
        return {"primary_id": self.primary_id, "title": self.title, "data": self.plotly_data()}

    @classmethod
    def from_record(cls, key: str, record: Mapping[str, Any]) -> "Annotation":
        """Parse one ``textAnnotation`` entry.

        Raises
        ------
        KeyError, TypeError, ValueError
            If the entry lacks ``data.x``/``data.y`` or holds non-numeric values.
        """
        data = record["data"]
        if not isinstance(data, Mapping):
            raise TypeError(f"data must be a mapping, got {type(data).__name__}")
        title = str(record.get("title") or key)
        x = float(data["x"])
        y = float(data["y"])
        ax = data.get("ax")
        ay = data.get("ay")
        return cls(
            key=key,
            title=title,
            anchor_x=x,
            anchor_y=y,
            text=str(data.get("text", f"<b>{title}</b>")),
            offset_x=DEFAULT_OFFSET[0] if ax is None else float(ax),
            offset_y=DEFAULT_OFFSET[1] if ay is None else float(ay),
            primary_id=str(record.get("primary_id") or ""),
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in _MODELLED_KEYS},
        )


@dataclass(frozen=True)
class EditCandidate:
    """An annotation whose label lies close to a tapped host-view point."""

    key: str
    title: str
    text: str
    anchor: Point
    text_position: Point
    distance: float


@dataclass(frozen=True)
class DataPoint:
    """A volcano plot data point (log2 fold change, -log10 p-value)."""

    id: str
    x: float
    y: float
    gene: Optional[str] = None


@dataclass(frozen=True)
class NearbyPoint:
    point: DataPoint
    distance: float
    delta_x: float
    delta_y: float


class AnnotationStore:
    """Mutable mapping of annotation key -> :class:`Annotation`.

    Parameters
    ----------
    resolver : callable, optional
        Maps a data point identifier to its gene name (or ``None``). Used to
        derive titles. Without one, titles are the raw identifiers.
    """

    def __init__(self, resolver: Optional[DisplayNameResolver] = None) -> None:
        self._resolver = resolver
        self._items: Dict[str, Annotation] = {}

    # --- container protocol ---

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Annotation]:
        return iter(list(self._items.values()))

    def keys(self) -> List[str]:
        return list(self._items)

    def get(self, key: str) -> Optional[Annotation]:
        return self._items.get(key)

    def __getitem__(self, key: str) -> Annotation:
        try:
            return self._items[key]
        except KeyError:
            raise AnnotationNotFound(key) from None

    def __repr__(self) -> str:
        return f"AnnotationStore({sorted(self._items)!r})"

    # --- titles ---

    def title_for(self, data_point_id: str) -> str:
        gene = self._resolver(data_point_id) if self._resolver is not None else None
        return annotation_title(data_point_id, gene)

    def has_annotation_for(self, data_point_id: str) -> bool:
        return self.title_for(data_point_id) in self._items

    def key_for_title(self, title: str) -> Optional[str]:
        """Store key of the annotation the renderer knows as ``title``."""
        if title in self._items and self._items[title].title == title:
            return title
        for key, annotation in self._items.items():
            if annotation.title == title:
                return key
        return None

    # --- mutation ---

    def add_annotation(
        self,
        data_point_id: str,
        anchor_x: float,
        anchor_y: float,
        text: Optional[str] = None,
    ) -> Annotation:
        """Create the annotation for a data point.

        Raises
        ------
        DuplicateAnnotation
            If an annotation with the derived title already exists.
        """
        title = self.title_for(data_point_id)
        if title in self._items:
            raise DuplicateAnnotation(title)
        style = copy.deepcopy(_NEW_ANNOTATION_STYLE)
        style["annotationID"] = title
        annotation = Annotation(
            key=title,
            title=title,
            anchor_x=float(anchor_x),
            anchor_y=float(anchor_y),
            text=f"<b>{title}</b>" if text is None else text,
            primary_id=data_point_id,
            extra=style,
        )
        self._items[title] = annotation
        logger.debug("Added annotation %r at (%s, %s)", title, anchor_x, anchor_y)
        return annotation

    def remove_annotation(self, key: str) -> None:
        """Remove an annotation; absent keys are ignored."""
        if self._items.pop(key, None) is not None:
            logger.debug("Removed annotation %r", key)

    def update_text(self, key: str, text: str) -> Annotation:
        """Replace the label text. Raises :class:`AnnotationNotFound`."""
        return self._update(key, text=text)

    def update_offset(self, key: str, ax: float, ay: float) -> Annotation:
        """Replace the pixel offset. Offsets are not bounded.

        Raises :class:`AnnotationNotFound`.
        """
        return self._update(key, offset_x=float(ax), offset_y=float(ay))

    def _update(self, key: str, **changes: Any) -> Annotation:
        current = self[key]
        updated = replace(current, **changes)
        self._items[key] = updated
        return updated

    # --- settings record conversion ---

    @classmethod
    def from_text_annotation(
        cls,
        text_annotation: Mapping[str, Any],
        resolver: Optional[DisplayNameResolver] = None,
    ) -> "AnnotationStore":
        """Build a store from a settings ``textAnnotation`` mapping.

        Malformed entries are skipped with a warning.
        """
        store = cls(resolver=resolver)
        for key, record in (text_annotation or {}).items():
            if not isinstance(record, Mapping):
                logger.warning("Skipping annotation %r: expected an object, got %s", key, type(record).__name__)
                continue
            try:
                annotation = Annotation.from_record(str(key), record)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed annotation %r: %s", key, e)
                continue
            store._items[annotation.key] = annotation
        return store

    def to_text_annotation(self) -> Dict[str, Any]:
        return {key: annotation.to_record() for key, annotation in self._items.items()}

    # --- lookups against the renderer ---

    def match_report(self, coordinate: Any, tolerance: float = MATCH_TOLERANCE) -> Optional[Annotation]:
        """Find the annotation a renderer coordinate report refers to.

        ``coordinate`` needs ``plot_x``/``plot_y`` and may carry an ``id``.
        An echoed id (the renderer names annotations by title) that resolves
        to a stored annotation anchored at the reported position wins;
        otherwise the anchor closest to the reported plot coordinate within
        ``tolerance`` (per axis) is returned. Ties are
        broken by key so the result never depends on insertion order.
        """
        px, py = float(coordinate.plot_x), float(coordinate.plot_y)

        def _within(a: Annotation) -> bool:
            return abs(a.anchor_x - px) <= tolerance and abs(a.anchor_y - py) <= tolerance

        ident = getattr(coordinate, "id", None)
        if ident is not None:
            key = self.key_for_title(ident)
            hit = None if key is None else self._items.get(key)
            if hit is not None and _within(hit):
                return hit

        matches = [a for a in self._items.values() if _within(a)]
        if not matches:
            return None
        return min(matches, key=lambda a: (math.hypot(a.anchor_x - px, a.anchor_y - py), a.key))

    def find_near(
        self,
        point: Tuple[float, float],
        transform: CoordinateTransform,
        max_distance: float = HIT_RADIUS_PX,
    ) -> List[EditCandidate]:
        """Annotations whose label lies within ``max_distance`` px of ``point``.

        ``point`` is in host-view pixels. Results are sorted closest first.
        """
        items = list(self._items.values())
        if not items:
            return []
        xs = np.array([a.anchor_x for a in items])
        ys = np.array([a.anchor_y for a in items])
        anchors = transform.plot_to_host(xs, ys)
        tx = anchors.x + np.array([a.offset_x for a in items])
        ty = anchors.y + np.array([a.offset_y for a in items])
        dist = np.hypot(tx - float(point[0]), ty - float(point[1]))

        out = [
            EditCandidate(
                key=a.key,
                title=a.title,
                text=a.text,
                anchor=a.anchor,
                text_position=Point(float(tx[i]), float(ty[i])),
                distance=float(dist[i]),
            )
            for i, a in enumerate(items)
            if dist[i] <= max_distance
        ]
        out.sort(key=lambda c: (c.distance, c.key))
        return out


def find_nearby_points(
    center: DataPoint,
    points: Iterable[DataPoint],
    cutoff: float = 1.0,
) -> List[NearbyPoint]:
    """Data points within Euclidean plot-space ``cutoff`` of ``center``.

    The center itself (same ``id``) is excluded. Sorted closest first.
    """
    others: Sequence[DataPoint] = [p for p in points if p.id != center.id]
    if not others:
        return []
    dx = np.array([p.x for p in others], dtype=float) - center.x
    dy = np.array([p.y for p in others], dtype=float) - center.y
    dist = np.hypot(dx, dy)
    keep = np.flatnonzero(dist <= cutoff)
    nearby = [NearbyPoint(others[i], float(dist[i]), float(dx[i]), float(dy[i])) for i in keep]
    nearby.sort(key=lambda n: n.distance)
    return nearby


__all__ = [
    "Annotation",
    "AnnotationStore",
    "DataPoint",
    "DisplayNameResolver",
    "EditCandidate",
    "NearbyPoint",
    "annotation_title",
    "find_nearby_points",
]
