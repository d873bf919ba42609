from __future__ import annotations

import json

import pytest

from curtain_volcano.bridge_protocol import (
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
from curtain_volcano.errors import BridgeProtocolError


def test_outbound_messages_use_renderer_field_names() -> None:
    assert json.loads(encode_message(RequestDimensions(request_id=3))) == {
        "type": "requestDimensions",
        "requestId": 3,
    }
    assert json.loads(encode_message(SetAnnotationOffset(4, "ACTB(P12345)", -20.0, 35.5))) == {
        "type": "setAnnotationOffset",
        "requestId": 4,
        "title": "ACTB(P12345)",
        "ax": -20.0,
        "ay": 35.5,
    }


def test_non_finite_offsets_are_not_encoded() -> None:
    with pytest.raises(BridgeProtocolError):
        encode_message(SetAnnotationOffset(1, "a", float("nan"), 0.0))


def test_decode_simple_notifications() -> None:
    assert decode_message('{"type": "ready"}') == RendererReady()
    assert decode_message(b'{"type": "updated"}') == RendererUpdated()


def test_decode_dimensions() -> None:
    msg = decode_message(
        json.dumps(
            {
                "type": "dimensions",
                "requestId": 9,
                "fullWidth": 800,
                "fullHeight": 600,
                "plotLeft": 90,
                "plotTop": 70,
                "plotRight": 740,
                "plotBottom": 470,
                "rendererOrigin": {"x": 10, "y": 20},
            }
        )
    )

    assert isinstance(msg, DimensionsReport)
    assert (msg.plot_left, msg.plot_top, msg.plot_right, msg.plot_bottom) == (90.0, 70.0, 740.0, 470.0)
    assert (msg.full_width, msg.full_height) == (800.0, 600.0)
    assert msg.renderer_origin == (10.0, 20.0)
    assert msg.request_id == 9


def test_decode_dimensions_defaults_origin_and_size() -> None:
    msg = decode_message({"type": "dimensions", "plotLeft": 1, "plotTop": 2, "plotRight": 3, "plotBottom": 4})

    assert msg.renderer_origin == (0.0, 0.0)
    assert msg.full_width is None and msg.request_id is None


def test_decode_annotation_coordinates() -> None:
    msg = decode_message(
        {
            "type": "annotationCoordinates",
            "coordinates": [
                {"id": "a", "plotX": 1.5, "plotY": 2, "screenX": 587.5, "screenY": 312, "ax": -20, "ay": -20},
                {"plotX": 0, "plotY": 0, "screenX": 70, "screenY": 480},
            ],
        }
    )

    assert isinstance(msg, CoordinateReport)
    first, second = msg.coordinates
    assert first.id == "a" and first.screen == (587.5, 312.0) and (first.ax, first.ay) == (-20.0, -20.0)
    assert second.id is None and (second.ax, second.ay) == (0.0, 0.0)


def test_decode_point_clicked() -> None:
    msg = decode_message({"type": "pointClicked", "id": "P12345", "gene": "ACTB", "x": 1.5, "y": 2.0})

    assert msg == PointClicked(id="P12345", x=1.5, y=2.0, gene="ACTB")


@pytest.mark.parametrize("payload, expected", [({"message": "boom"}, "boom"), ({}, "Unknown plot error")])
def test_decode_error(payload, expected) -> None:
    assert decode_message({"type": "error", **payload}) == RendererError(expected)


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2]",
        '{"type": "teleport"}',
        '{"no": "type"}',
        '{"type": "dimensions", "plotLeft": 1}',
        '{"type": "dimensions", "plotLeft": null, "plotTop": 2, "plotRight": 3, "plotBottom": 4}',
        '{"type": "annotationCoordinates", "coordinates": {"plotX": 1}}',
        '{"type": "pointClicked", "x": 1, "y": 2}',
    ],
)
def test_malformed_messages_raise_protocol_error(raw) -> None:
    with pytest.raises(BridgeProtocolError):
        decode_message(raw)
