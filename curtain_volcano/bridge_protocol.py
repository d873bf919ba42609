"""Wire format of the native <-> renderer chart bridge.

Every message is a JSON object serialized to a string, with a ``type``
discriminator. Field names are shared with the renderer script and must not
change: ``plotLeft``, ``plotTop``, ``plotRight``, ``plotBottom``, ``ax``,
``ay``, ``screenX``, ``screenY``, ``plotX``, ``plotY``.

Native -> renderer
------------------
``requestDimensions``
    ``{"type": "requestDimensions", "requestId": 7}``
``setAnnotationOffset``
    ``{"type": "setAnnotationOffset", "requestId": 8, "title": "...", "ax": -20, "ay": -20}``

Renderer -> native
------------------
``ready``, ``updated``
    No payload.
``dimensions``
    ``fullWidth``, ``fullHeight``, ``plotLeft``, ``plotTop``, ``plotRight``,
    ``plotBottom`` (host-view pixels) and ``rendererOrigin: {x, y}``.
``annotationCoordinates``
    ``coordinates``: list of ``{id?, plotX, plotY, screenX, screenY, ax, ay}``.
``pointClicked``
    ``{id, gene?, x, y, screenX?, screenY?}``.
``error``
    ``{message}``.

Renderer replies may echo the ``requestId`` of the request they answer.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .errors import BridgeProtocolError
from .volcano_transform import Point


# --- native -> renderer ---


@dataclass(frozen=True)
class RequestDimensions:
    request_id: int

    type = "requestDimensions"

    def to_wire(self) -> Dict[str, Any]:
        return {"type": self.type, "requestId": self.request_id}


@dataclass(frozen=True)
class SetAnnotationOffset:
    request_id: int
    title: str
    ax: float
    ay: float

    type = "setAnnotationOffset"

    def to_wire(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "requestId": self.request_id,
            "title": self.title,
            "ax": self.ax,
            "ay": self.ay,
        }


OutboundMessage = Union[RequestDimensions, SetAnnotationOffset]


# --- renderer -> native ---


@dataclass(frozen=True)
class RendererReady:
    type = "ready"


@dataclass(frozen=True)
class RendererUpdated:
    type = "updated"


@dataclass(frozen=True)
class DimensionsReport:
    """Plot-area geometry snapshot reported by the renderer."""

    plot_left: float
    plot_top: float
    plot_right: float
    plot_bottom: float
    full_width: Optional[float] = None
    full_height: Optional[float] = None
    renderer_origin: Point = Point(0.0, 0.0)
    request_id: Optional[int] = None

    type = "dimensions"


@dataclass(frozen=True)
class AnnotationCoordinate:
    """Resolved screen position of one annotation anchor (host-view pixels)."""

    plot_x: float
    plot_y: float
    screen_x: float
    screen_y: float
    ax: float = 0.0
    ay: float = 0.0
    id: Optional[str] = None

    @property
    def screen(self) -> Point:
        return Point(self.screen_x, self.screen_y)


@dataclass(frozen=True)
class CoordinateReport:
    coordinates: Tuple[AnnotationCoordinate, ...]
    request_id: Optional[int] = None

    type = "annotationCoordinates"


@dataclass(frozen=True)
class PointClicked:
    """A data point was clicked in the renderer."""

    id: str
    x: float
    y: float
    gene: Optional[str] = None
    screen_x: Optional[float] = None
    screen_y: Optional[float] = None

    type = "pointClicked"


@dataclass(frozen=True)
class RendererError:
    message: str

    type = "error"


InboundMessage = Union[
    RendererReady,
    RendererUpdated,
    DimensionsReport,
    CoordinateReport,
    PointClicked,
    RendererError,
]


def encode_message(message: OutboundMessage) -> str:
    """Serialize an outbound message to its JSON wire form."""
    payload = message.to_wire()
    for key in ("ax", "ay"):
        if key in payload and not math.isfinite(payload[key]):
            raise BridgeProtocolError(f"{key} must be finite, got {payload[key]!r}")
    return json.dumps(payload, separators=(",", ":"))


def decode_message(raw: Union[str, bytes, Mapping[str, Any]]) -> InboundMessage:
    """Parse a renderer message.

    ``raw`` is normally the JSON string posted by the renderer; an already
    decoded mapping is accepted too.

    Raises
    ------
    BridgeProtocolError
        If the payload is not valid JSON, has an unknown ``type``, or lacks
        required fields.
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise BridgeProtocolError(f"Bridge message is not valid JSON: {raw!r}") from e
    else:
        data = raw
    if not isinstance(data, Mapping):
        raise BridgeProtocolError(f"Bridge message must be a JSON object, got {type(data).__name__}")

    kind = data.get("type")
    decoder = _DECODERS.get(kind)  # type: ignore[arg-type]
    if decoder is None:
        raise BridgeProtocolError(f"Unknown bridge message type: {kind!r}")
    try:
        return decoder(data)
    except (KeyError, TypeError, ValueError) as e:
        raise BridgeProtocolError(f"Malformed {kind!r} message: {e}") from e


def _float(data: Mapping[str, Any], key: str) -> float:
    value = data[key]
    if value is None or isinstance(value, bool):
        raise ValueError(f"{key} is {value!r}")
    return float(value)


def _opt_float(data: Mapping[str, Any], key: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    return float(value)


def _opt_int(data: Mapping[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    return int(value)


def _decode_dimensions(data: Mapping[str, Any]) -> DimensionsReport:
    origin = data.get("rendererOrigin") or {}
    return DimensionsReport(
        plot_left=_float(data, "plotLeft"),
        plot_top=_float(data, "plotTop"),
        plot_right=_float(data, "plotRight"),
        plot_bottom=_float(data, "plotBottom"),
        full_width=_opt_float(data, "fullWidth"),
        full_height=_opt_float(data, "fullHeight"),
        renderer_origin=Point(float(origin.get("x", 0.0)), float(origin.get("y", 0.0))),
        request_id=_opt_int(data, "requestId"),
    )


def _decode_coordinate(item: Mapping[str, Any]) -> AnnotationCoordinate:
    ident = item.get("id")
    return AnnotationCoordinate(
        plot_x=_float(item, "plotX"),
        plot_y=_float(item, "plotY"),
        screen_x=_float(item, "screenX"),
        screen_y=_float(item, "screenY"),
        ax=float(item.get("ax") or 0.0),
        ay=float(item.get("ay") or 0.0),
        id=None if ident is None else str(ident),
    )


def _decode_coordinates(data: Mapping[str, Any]) -> CoordinateReport:
    items = data.get("coordinates", [])
    if not isinstance(items, list):
        raise TypeError("coordinates must be a list")
    return CoordinateReport(
        coordinates=tuple(_decode_coordinate(item) for item in items),
        request_id=_opt_int(data, "requestId"),
    )


def _decode_point_clicked(data: Mapping[str, Any]) -> PointClicked:
    gene = data.get("gene")
    return PointClicked(
        id=str(data["id"]),
        x=_float(data, "x"),
        y=_float(data, "y"),
        gene=None if gene is None else str(gene),
        screen_x=_opt_float(data, "screenX"),
        screen_y=_opt_float(data, "screenY"),
    )


def _decode_error(data: Mapping[str, Any]) -> RendererError:
    message = data.get("message")
    return RendererError(message="Unknown plot error" if message in (None, "") else str(message))


_DECODERS = {
    "ready": lambda _data: RendererReady(),
    "updated": lambda _data: RendererUpdated(),
    "dimensions": _decode_dimensions,
    "annotationCoordinates": _decode_coordinates,
    "pointClicked": _decode_point_clicked,
    "error": _decode_error,
}


__all__ = [
    "AnnotationCoordinate",
    "CoordinateReport",
    "DimensionsReport",
    "InboundMessage",
    "OutboundMessage",
    "PointClicked",
    "RendererError",
    "RendererReady",
    "RendererUpdated",
    "RequestDimensions",
    "SetAnnotationOffset",
    "decode_message",
    "encode_message",
]
