"""
PlotlyBridge.py — anywidget renderer side of the volcano chart bridge

This module hosts the volcano plot's Plotly `FigureWidget` in an ipywidgets
layout together with a hidden driver widget that speaks the chart bridge
protocol (see `curtain_volcano.bridge_protocol`) from inside the browser.

Public API
----------

- `VolcanoBridgeDriver`
    An `anywidget.AnyWidget` whose frontend JavaScript locates the Plotly
    element under a host container and implements the renderer side of the
    bridge:

      * announces `ready` once Plotly has drawn, and `updated` after every
        redraw (`plotly_afterplot`),
      * answers `requestDimensions` with the plot-area geometry read from
        `_fullLayout._size`, followed by `annotationCoordinates` computed with
        the axes' `l2p` conversions,
      * applies `setAnnotationOffset` through `Plotly.relayout`,
      * forwards `plotly_click` as `pointClicked`,
      * reports failures as `error`.

    All geometry is expressed in host-view pixels: the position of the Plotly
    element inside the host is sent along as `rendererOrigin`.

- `VolcanoPaneStyle`
    Frozen dataclass with the wrapper styling (padding/border/radius/overflow).

- `VolcanoPane`
    Python-side wrapper assembling the figure widget, the driver and a
    `ChartBridge`. Exposes `.widget`, `.bridge` and `.reflow()`.

Typical usage
-------------

    import plotly.graph_objects as go
    figw = go.FigureWidget(...)
    pane = VolcanoPane(figw, style=VolcanoPaneStyle(padding_px=8))
    pane.bridge.on_dimensions(print)
    display(pane.widget)

Message transport
-----------------

Both directions use anywidget custom messages of the form
`{"type": "bridge", "payload": "<json string>"}`; the payload is exactly the
wire message of `bridge_protocol`. A separate `{"type": "reflow"}` message
asks the frontend to resize Plotly to its host.

Key contract / expectation
--------------------------

As with any Plotly pane, some ancestor must give `pane.widget` a real pixel
height. The driver assumes Plotly renders a `.js-plotly-plot` element under
the host and reads Plotly internals (`_fullLayout`, axis `l2p`); if those
change, the driver reports `error` and the Python side keeps its fallback
margins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import anywidget
import traitlets
import ipywidgets as W

from .chart_bridge import ChartBridge

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


__all__ = ["VolcanoBridgeDriver", "VolcanoPaneStyle", "VolcanoPane"]


class VolcanoBridgeDriver(anywidget.AnyWidget):
    """
    Frontend bridge endpoint for a Plotly volcano plot.

    The widget is meant to be included as a hidden child of the container that
    hosts the volcano `FigureWidget`. Its Python side forwards bridge payloads
    to a connected `ChartBridge` (see `connect`).

    Traitlets (synced to frontend)
    ------------------------------

    host_selector:
        Optional CSS selector. If non-empty, the driver uses
        `document.querySelector(host_selector)` as the host container.
        If empty, the host is `el.parentElement`.

    debounce_ms:
        Debounce delay for resize handling (milliseconds).

    debug_js:
        If True, enables console logging from the frontend driver.
    """

    host_selector = traitlets.Unicode("").tag(sync=True)
    debounce_ms = traitlets.Int(60).tag(sync=True)
    debug_js = traitlets.Bool(False).tag(sync=True)

    _esm = r"""
    function safeLog(enabled, ...args) {
      if (enabled) console.log("[VolcanoBridgeDriver]", ...args);
    }

    function findPlotEl(host) {
      if (!host) return null;
      return host.querySelector(".js-plotly-plot");
    }

    function rendererOrigin(host, plotEl) {
      const h = host.getBoundingClientRect();
      const p = plotEl.getBoundingClientRect();
      return { x: p.left - h.left, y: p.top - h.top };
    }

    function annotationIndex(plotEl, title) {
      const anns = (plotEl.layout && plotEl.layout.annotations) || [];
      for (let i = 0; i < anns.length; i++) {
        const a = anns[i] || {};
        if (a.name === title || a.annotationID === title) return i;
      }
      return -1;
    }

    export default {
      render({ model, el }) {
        el.style.display = "none";

        let debug = !!model.get("debug_js");
        let plotEl = null;
        let announced = false;
        let resizeTimer = null;
        let ro = null;
        let mo = null;

        function resolveHost() {
          const sel = model.get("host_selector");
          if (sel && typeof sel === "string" && sel.trim()) {
            return document.querySelector(sel.trim());
          }
          return el.parentElement;
        }

        let host = resolveHost();
        if (!host) {
          safeLog(debug, "No host found; driver inactive.");
          return;
        }

        function post(msg) {
          model.send({ type: "bridge", payload: JSON.stringify(msg) });
        }

        function postError(e) {
          const message = (e && e.message) ? e.message : String(e || "");
          post({ type: "error", message: message });
        }

        function geometry() {
          const fl = plotEl && plotEl._fullLayout;
          if (!fl || !fl._size) throw new Error("Plotly layout is not available");
          return { fl: fl, size: fl._size, origin: rendererOrigin(host, plotEl) };
        }

        function reportDimensions(requestId) {
          const g = geometry();
          const left = g.origin.x + g.size.l;
          const top = g.origin.y + g.size.t;
          const msg = {
            type: "dimensions",
            fullWidth: g.fl.width,
            fullHeight: g.fl.height,
            plotLeft: left,
            plotTop: top,
            plotRight: left + g.size.w,
            plotBottom: top + g.size.h,
            rendererOrigin: g.origin,
          };
          if (requestId !== undefined && requestId !== null) msg.requestId = requestId;
          post(msg);
        }

        function reportCoordinates(requestId) {
          const g = geometry();
          const xa = g.fl.xaxis;
          const ya = g.fl.yaxis;
          const anns = (plotEl.layout && plotEl.layout.annotations) || [];
          const coordinates = [];
          for (const a of anns) {
            if (!a || a.x === undefined || a.y === undefined) continue;
            const c = {
              plotX: Number(a.x),
              plotY: Number(a.y),
              screenX: g.origin.x + g.size.l + xa.l2p(Number(a.x)),
              screenY: g.origin.y + g.size.t + ya.l2p(Number(a.y)),
              ax: Number(a.ax || 0),
              ay: Number(a.ay || 0),
            };
            if (a.name) c.id = a.name;
            coordinates.push(c);
          }
          const msg = { type: "annotationCoordinates", coordinates: coordinates };
          if (requestId !== undefined && requestId !== null) msg.requestId = requestId;
          post(msg);
        }

        async function setOffset(msg) {
          const P = window.Plotly;
          if (!P || typeof P.relayout !== "function") {
            throw new Error("window.Plotly.relayout unavailable");
          }
          const i = annotationIndex(plotEl, msg.title);
          if (i < 0) throw new Error(`No annotation named ${msg.title}`);
          const upd = {};
          upd[`annotations[${i}].ax`] = msg.ax;
          upd[`annotations[${i}].ay`] = msg.ay;
          await P.relayout(plotEl, upd);
          reportCoordinates(msg.requestId);
        }

        function onClick(ev) {
          const pt = ev && ev.points && ev.points[0];
          if (!pt) return;
          const cd = Array.isArray(pt.customdata) ? pt.customdata : [pt.customdata];
          const id = cd[0] !== undefined && cd[0] !== null ? cd[0] : pt.text;
          if (id === undefined || id === null) return;
          const msg = { type: "pointClicked", id: String(id), x: pt.x, y: pt.y };
          if (cd.length > 1 && cd[1]) msg.gene = String(cd[1]);
          try {
            const g = geometry();
            msg.screenX = g.origin.x + g.size.l + g.fl.xaxis.l2p(pt.x);
            msg.screenY = g.origin.y + g.size.t + g.fl.yaxis.l2p(pt.y);
          } catch (e) {}
          post(msg);
        }

        function onAfterPlot() {
          post({ type: "updated" });
        }

        function attach() {
          const found = findPlotEl(resolveHost());
          if (!found || !found._fullLayout || typeof found.on !== "function") return false;
          if (found === plotEl) return true;
          plotEl = found;
          plotEl.on("plotly_afterplot", onAfterPlot);
          plotEl.on("plotly_click", onClick);
          if (!announced) {
            announced = true;
            post({ type: "ready" });
          }
          safeLog(debug, "attached to plot element");
          return true;
        }

        function scheduleResize() {
          if (resizeTimer) clearTimeout(resizeTimer);
          const wait = Number(model.get("debounce_ms")) || 60;
          resizeTimer = setTimeout(async () => {
            resizeTimer = null;
            if (!attach()) return;
            try {
              const P = window.Plotly;
              if (P && P.Plots && typeof P.Plots.resize === "function") {
                await P.Plots.resize(plotEl);
              } else {
                window.dispatchEvent(new Event("resize"));
              }
            } catch (e) {
              safeLog(debug, "resize failed:", e);
            }
          }, wait);
        }

        const onMsg = async (msg) => {
          if (!msg) return;
          if (msg.type === "reflow") {
            scheduleResize();
            return;
          }
          if (msg.type !== "bridge") return;
          let data = null;
          try {
            data = JSON.parse(msg.payload);
            if (!attach()) throw new Error("Plot element not found");
            if (data.type === "requestDimensions") {
              reportDimensions(data.requestId);
              reportCoordinates(data.requestId);
            } else if (data.type === "setAnnotationOffset") {
              await setOffset(data);
            }
          } catch (e) {
            safeLog(debug, "bridge message failed:", data, e);
            postError(e);
          }
        };
        model.on("msg:custom", onMsg);

        const onDebugChange = () => { debug = !!model.get("debug_js"); };
        model.on("change:debug_js", onDebugChange);

        ro = new ResizeObserver(() => scheduleResize());
        ro.observe(host);

        // Plotly inserts its DOM asynchronously.
        mo = new MutationObserver(() => { if (!plotEl) scheduleResize(); });
        mo.observe(host, { childList: true, subtree: true });

        scheduleResize();

        return () => {
          try { if (resizeTimer) clearTimeout(resizeTimer); } catch (e) {}
          try { if (ro) ro.disconnect(); } catch (e) {}
          try { if (mo) mo.disconnect(); } catch (e) {}
          try { if (plotEl && plotEl.removeListener) plotEl.removeListener("plotly_afterplot", onAfterPlot); } catch (e) {}
          try { if (plotEl && plotEl.removeListener) plotEl.removeListener("plotly_click", onClick); } catch (e) {}
          try { model.off("msg:custom", onMsg); } catch (e) {}
          try { model.off("change:debug_js", onDebugChange); } catch (e) {}
        };
      }
    };
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._bridge: Optional[ChartBridge] = None
        self.on_msg(self._handle_custom_msg)

    def connect(self, bridge: ChartBridge) -> None:
        """Route renderer messages into ``bridge`` and its outbound calls here."""
        self._bridge = bridge
        bridge.attach(self.post)

    def post(self, payload: str) -> None:
        """Send one bridge wire message (JSON text) to the frontend."""
        self.send({"type": "bridge", "payload": payload})

    def reflow(self) -> None:
        """Ask the frontend to resize Plotly to its host."""
        self.send({"type": "reflow"})

    def _handle_custom_msg(self, _widget: Any, content: Any, _buffers: Any = None) -> None:
        if not isinstance(content, dict) or content.get("type") != "bridge":
            return
        if self._bridge is None:
            logger.debug("Renderer message dropped: no bridge connected")
            return
        self._bridge.receive(content.get("payload", ""))


@dataclass(frozen=True)
class VolcanoPaneStyle:
    """
    Visual styling options for `VolcanoPane`.

    Parameters
    ----------
    padding_px:
        Inner padding (in pixels) applied around the host container.

    border:
        CSS border string (e.g. "1px solid #ddd").

    border_radius_px:
        Corner radius in pixels.

    overflow:
        Overflow policy for the wrapper.

    height:
        CSS height of the wrapper. The driver needs a real pixel height.
    """

    padding_px: int = 0
    border: str = "1px solid #ddd"
    border_radius_px: int = 8
    overflow: str = "hidden"
    height: str = "600px"


class VolcanoPane:
    """
    Styled volcano plot area with a connected chart bridge.

    Parameters
    ----------
    figw:
        The widget that renders the Plotly figure, normally a
        `plotly.graph_objects.FigureWidget`.

    bridge:
        Bridge to connect. A new `ChartBridge` is created when omitted.

    style:
        `VolcanoPaneStyle` for the outer wrapper.

    dimension_delay_ms:
        Passed to a newly created `ChartBridge`.

    debug_js:
        Enable frontend console logs.

    Attributes
    ----------
    driver:
        The underlying `VolcanoBridgeDriver` instance.
    """

    def __init__(
        self,
        figw: W.Widget,
        *,
        bridge: Optional[ChartBridge] = None,
        style: VolcanoPaneStyle = VolcanoPaneStyle(),
        dimension_delay_ms: int = 500,
        debug_js: bool = False,
    ):
        self._bridge = bridge if bridge is not None else ChartBridge(dimension_delay_ms=dimension_delay_ms)
        self.driver = VolcanoBridgeDriver(debug_js=debug_js)
        self.driver.connect(self._bridge)

        self._host = W.Box(
            [figw, self.driver],
            layout=W.Layout(
                width="100%",
                height="100%",
                min_width="0",
                min_height="0",
                display="flex",
                flex_flow="column",
                overflow="hidden",
            ),
        )

        self._wrap = W.Box(
            [self._host],
            layout=W.Layout(
                width="100%",
                height=style.height,
                min_width="0",
                min_height="0",
                padding=f"{int(style.padding_px)}px",
                border=style.border,
                border_radius=f"{int(style.border_radius_px)}px",
                overflow=style.overflow,
                box_sizing="border-box",
            ),
        )

    @property
    def widget(self) -> W.Widget:
        """The widget to embed in an outer ipywidgets layout."""
        return self._wrap

    @property
    def bridge(self) -> ChartBridge:
        return self._bridge

    def reflow(self) -> None:
        """Trigger a frontend resize; Plotly's redraw then re-requests dimensions."""
        self.driver.reflow()

    def close(self) -> None:
        self._bridge.close()
        self.driver.close()
