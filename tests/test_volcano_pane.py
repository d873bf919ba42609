from __future__ import annotations

import json

import ipywidgets as widgets

from curtain_volcano.chart_bridge import ChartBridge
from curtain_volcano.PlotlyBridge import VolcanoPane, VolcanoPaneStyle


def test_volcanopane_reflow_delegates_to_driver() -> None:
    pane = VolcanoPane(widgets.Label("x"))
    called = []
    pane.driver.reflow = lambda: called.append(True)

    pane.reflow()

    assert called == [True]


def test_volcanopane_applies_style_to_wrapper() -> None:
    pane = VolcanoPane(
        widgets.Label("x"), style=VolcanoPaneStyle(padding_px=7, border="1px solid red", height="400px")
    )
    assert pane.widget.layout.padding == "7px"
    assert pane.widget.layout.border == "1px solid red"
    assert pane.widget.layout.height == "400px"


def test_driver_routes_messages_through_the_bridge() -> None:
    pane = VolcanoPane(widgets.Label("x"), dimension_delay_ms=0)
    sent = []
    pane.driver.send = lambda content, buffers=None: sent.append(content)

    pane.driver._handle_custom_msg(pane.driver, {"type": "bridge", "payload": '{"type": "ready"}'}, [])

    assert pane.bridge.is_ready
    assert len(sent) == 1 and sent[0]["type"] == "bridge"
    assert json.loads(sent[0]["payload"]) == {"type": "requestDimensions", "requestId": 1}


def test_driver_ignores_foreign_messages() -> None:
    pane = VolcanoPane(widgets.Label("x"), dimension_delay_ms=0)

    pane.driver._handle_custom_msg(pane.driver, {"type": "something-else"}, [])
    pane.driver._handle_custom_msg(pane.driver, "not a dict", [])

    assert not pane.bridge.is_ready


def test_pane_uses_given_bridge() -> None:
    bridge = ChartBridge(dimension_delay_ms=0)

    pane = VolcanoPane(widgets.Label("x"), bridge=bridge)

    assert pane.bridge is bridge
    pane.close()
    assert bridge.is_closed
