"""Native side of the chart bridge.

Purpose
-------
``ChartBridge`` owns the message channel between Python and the embedded
Plotly renderer. It knows nothing about widgets: outbound JSON strings are
handed to a ``transport`` callable and inbound JSON strings are fed to
:meth:`ChartBridge.receive`. :class:`~curtain_volcano.PlotlyBridge.VolcanoBridgeDriver`
wires both ends to an anywidget comm.

Contract
--------
- Outbound calls are fire-and-forget. When the renderer has not announced
  ``ready``, the transport is missing, or the bridge is closed, the call is
  dropped, logged, and reported as ``False``. Nothing is queued.
- Every outbound message carries a monotonically increasing ``requestId``.
  Replies that echo an id older than the newest accepted reply of the same
  kind are stale and discarded. Replies without an id are accepted in
  arrival order.
- Inbound messages are queued and processed strictly in arrival order. When
  a ``dispatch`` callable is given, processing is handed to it (for example
  to marshal onto the UI thread); otherwise it runs inline.
- ``ready`` and ``updated`` schedule a ``requestDimensions`` after
  ``dimension_delay_ms`` (Plotly needs time to settle its layout). Requests
  that go unanswered are counted by a :class:`~curtain_volcano.retry.RetryBudget`;
  once it trips, no more requests are sent and consumers keep their fallback
  margins. A ``dimensions`` reply or a fresh ``ready`` resets the budget.
- Renderer ``error`` messages and malformed payloads never raise out of
  :meth:`receive`. Errors are delivered to ``on_error`` listeners as
  :class:`~curtain_volcano.errors.RendererReportedError`.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Union

from .bridge_protocol import (
    CoordinateReport,
    DimensionsReport,
    InboundMessage,
    OutboundMessage,
    PointClicked,
    RendererError,
    RendererReady,
    RendererUpdated,
    RequestDimensions,
    SetAnnotationOffset,
    decode_message,
    encode_message,
)
from .debouncing import QueuedDebouncer
from .errors import BridgeProtocolError, BridgeUnavailable, RendererReportedError
from .retry import RetryBudget

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


Transport = Callable[[str], None]
Dispatch = Callable[[Callable[[], None]], None]
Listener = Callable[[Any], None]


class ChartBridge:
    """Bidirectional, transport-agnostic renderer channel.

    Parameters
    ----------
    transport : callable, optional
        Sends one JSON string to the renderer. May be attached later with
        :meth:`attach`.
    dispatch : callable, optional
        Receives a zero-argument callable and must run it on the thread that
        owns the annotation state. Defaults to running inline.
    dimension_delay_ms : int
        Delay between ``ready``/``updated`` and the dimensions request.
        ``0`` requests immediately.
    max_dimension_attempts : int
        Unanswered dimension requests tolerated before giving up.

    Examples
    --------
    >>> sent = []
    >>> bridge = ChartBridge(sent.append, dimension_delay_ms=0)
    >>> bridge.receive('{"type": "ready"}')
    >>> sent
    ['{"type":"requestDimensions","requestId":1}']
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        *,
        dispatch: Optional[Dispatch] = None,
        dimension_delay_ms: int = 500,
        max_dimension_attempts: int = 3,
    ) -> None:
        if dimension_delay_ms < 0:
            raise ValueError("dimension_delay_ms must be >= 0")
        self._transport = transport
        self._dispatch = dispatch
        self._ready = False
        self._closed = False

        self._id_lock = threading.Lock()
        self._last_request_id = 0
        self._last_offset_request_id: Optional[int] = None
        self._newest_reply: Dict[str, int] = {}

        self._inbox: Deque[InboundMessage] = deque()
        self._inbox_lock = threading.Lock()
        self._draining = False

        self._budget = RetryBudget(max_attempts=max_dimension_attempts)
        self._debouncer: Optional[QueuedDebouncer] = None
        if dimension_delay_ms > 0:
            self._debouncer = QueuedDebouncer(
                self._on_dimension_tick, execute_every_ms=dimension_delay_ms
            )

        self._listeners: Dict[str, List[Listener]] = {
            "dimensions": [],
            "coordinates": [],
            "error": [],
            "ready": [],
            "point_clicked": [],
        }

    # --- state ---

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_available(self) -> bool:
        return self._transport is not None and self._ready and not self._closed

    @property
    def dimension_budget(self) -> RetryBudget:
        return self._budget

    @property
    def last_request_id(self) -> int:
        return self._last_request_id

    @property
    def last_offset_request_id(self) -> Optional[int]:
        """``requestId`` of the newest delivered ``setAnnotationOffset``."""
        return self._last_offset_request_id

    def attach(self, transport: Transport) -> None:
        """Install (or replace) the outbound transport."""
        self._transport = transport
        self._closed = False

    def close(self) -> None:
        """Tear the channel down; later calls are dropped."""
        self._closed = True
        self._ready = False
        self._transport = None
        if self._debouncer is not None:
            self._debouncer.cancel()
        with self._inbox_lock:
            self._inbox.clear()
        logger.debug("Chart bridge closed")

    # --- listeners ---

    def on_dimensions(self, callback: Callable[[DimensionsReport], None]) -> Callable[[], None]:
        return self._subscribe("dimensions", callback)

    def on_coordinates(self, callback: Callable[[CoordinateReport], None]) -> Callable[[], None]:
        return self._subscribe("coordinates", callback)

    def on_error(self, callback: Callable[[RendererReportedError], None]) -> Callable[[], None]:
        return self._subscribe("error", callback)

    def on_ready(self, callback: Callable[[RendererReady], None]) -> Callable[[], None]:
        return self._subscribe("ready", callback)

    def on_point_clicked(self, callback: Callable[[PointClicked], None]) -> Callable[[], None]:
        return self._subscribe("point_clicked", callback)

    def _subscribe(self, kind: str, callback: Listener) -> Callable[[], None]:
        """Register ``callback``; return a function that unregisters it."""
        listeners = self._listeners[kind]
        listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in listeners:
                listeners.remove(callback)

        return _unsubscribe

    def _emit(self, kind: str, payload: Any) -> None:
        for callback in list(self._listeners[kind]):
            try:
                callback(payload)
            except Exception:
                logger.exception("Chart bridge %s listener failed", kind)

    # --- outbound ---

    def request_dimensions(self) -> bool:
        """Ask the renderer for its plot geometry.

        Returns ``False`` when the call was dropped, either because the
        bridge is unavailable or because the retry budget is exhausted.
        """
        if not self.is_available:
            logger.debug("requestDimensions dropped: bridge unavailable")
            return False
        if not self._budget.attempt():
            logger.warning(
                "requestDimensions dropped: %d requests went unanswered; using fallback margins",
                self._budget.max_attempts,
            )
            return False
        return self._send(RequestDimensions(request_id=self._next_request_id()))

    def set_annotation_offset(self, title: str, ax: float, ay: float) -> bool:
        """Move annotation ``title`` to pixel offset ``(ax, ay)`` from its anchor."""
        try:
            message = SetAnnotationOffset(
                request_id=self._next_request_id(), title=title, ax=float(ax), ay=float(ay)
            )
        except (TypeError, ValueError) as e:
            logger.warning("setAnnotationOffset dropped for %r: %s", title, e)
            return False
        if not self._send(message):
            return False
        self._last_offset_request_id = message.request_id
        return True

    def _next_request_id(self) -> int:
        with self._id_lock:
            self._last_request_id += 1
            return self._last_request_id

    def _send(self, message: OutboundMessage) -> bool:
        try:
            transport = self._require_available()
            transport(encode_message(message))
        except BridgeUnavailable as e:
            logger.debug("%s dropped: %s", message.type, e)
            return False
        except BridgeProtocolError as e:
            logger.warning("%s dropped: %s", message.type, e)
            return False
        except Exception:
            logger.exception("Chart bridge transport failed sending %s", message.type)
            return False
        return True

    def _require_available(self) -> Transport:
        if self._closed:
            raise BridgeUnavailable("bridge is closed")
        if self._transport is None:
            raise BridgeUnavailable("no transport attached")
        if not self._ready:
            raise BridgeUnavailable("renderer is not ready")
        return self._transport

    # --- inbound ---

    def receive(self, raw: Union[str, bytes, Dict[str, Any]]) -> None:
        """Accept one renderer message (JSON text).

        Malformed messages are logged and dropped.
        """
        if self._closed:
            logger.debug("Inbound message ignored: bridge is closed")
            return
        try:
            message = decode_message(raw)
        except BridgeProtocolError as e:
            logger.warning("Dropping renderer message: %s", e)
            return
        with self._inbox_lock:
            self._inbox.append(message)
        if self._dispatch is not None:
            self._dispatch(self._drain)
        else:
            self._drain()

    def _drain(self) -> None:
        with self._inbox_lock:
            if self._draining:
                return
            self._draining = True
        try:
            while True:
                with self._inbox_lock:
                    if not self._inbox:
                        break
                    message = self._inbox.popleft()
                self._handle(message)
        finally:
            with self._inbox_lock:
                self._draining = False

    def _handle(self, message: InboundMessage) -> None:
        if isinstance(message, RendererReady):
            self._ready = True
            self._budget.reset()
            self._emit("ready", message)
            self._schedule_dimensions()
        elif isinstance(message, RendererUpdated):
            self._ready = True
            self._schedule_dimensions()
        elif isinstance(message, DimensionsReport):
            if self._is_stale("dimensions", message.request_id):
                return
            self._budget.succeed()
            self._emit("dimensions", message)
        elif isinstance(message, CoordinateReport):
            if self._is_stale("coordinates", message.request_id):
                return
            self._emit("coordinates", message)
        elif isinstance(message, PointClicked):
            self._emit("point_clicked", message)
        elif isinstance(message, RendererError):
            logger.warning("Renderer reported an error: %s", message.message)
            self._emit("error", RendererReportedError(message.message))

    def _is_stale(self, kind: str, request_id: Optional[int]) -> bool:
        if request_id is None:
            return False
        newest = self._newest_reply.get(kind)
        if newest is not None and request_id < newest:
            logger.debug("Discarding stale %s report (requestId %d < %d)", kind, request_id, newest)
            return True
        self._newest_reply[kind] = request_id
        return False

    # --- scheduling ---

    def _schedule_dimensions(self) -> None:
        if self._debouncer is None:
            self.request_dimensions()
        else:
            self._debouncer()

    def _on_dimension_tick(self) -> None:
        if self._dispatch is not None:
            self._dispatch(self.request_dimensions)
        else:
            self.request_dimensions()


__all__ = ["ChartBridge", "Dispatch", "Transport"]
