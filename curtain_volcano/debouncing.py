"""Queued debouncing used to delay renderer round-trips.

The renderer announces ``ready`` / ``updated`` before Plotly has settled its
layout, so dimension requests are deferred and collapsed: a burst of
notifications produces a single request once the cadence elapses.

Ticks run on the active asyncio loop when there is one (the kernel's loop in
Jupyter) and on a daemon ``threading.Timer`` otherwise.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Callable, Deque, Dict, Optional, Tuple
import asyncio
import logging
import threading

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


_Call = Tuple[Tuple[Any, ...], Dict[str, Any]]


class QueuedDebouncer:
    """Run queued calls of ``callback`` no faster than one per cadence.

    Parameters
    ----------
    callback:
        Invoked with the arguments of a queued call.
    execute_every_ms:
        Cadence in milliseconds; the first call runs one cadence after it
        was queued.
    drop_overflow:
        If ``True`` (default), a tick runs only the newest queued call and
        discards the rest. If ``False``, every call runs, one per tick.

    Notes
    -----
    Exceptions raised by ``callback`` are logged and do not stop later ticks.
    """

    def __init__(
        self,
        callback: Callable[..., Any],
        *,
        execute_every_ms: int,
        drop_overflow: bool = True,
    ) -> None:
        if execute_every_ms <= 0:
            raise ValueError("execute_every_ms must be > 0")
        self._callback = callback
        self._delay_s = execute_every_ms / 1000.0
        self._coalesce = bool(drop_overflow)

        self._calls: Deque[_Call] = deque()
        self._lock = threading.Lock()
        self._handle: Optional[Any] = None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            self._calls.append((args, dict(kwargs)))
            if self._handle is None:
                self._handle = self._arm()

    @property
    def pending(self) -> int:
        """Number of queued calls not yet executed."""
        with self._lock:
            return len(self._calls)

    def cancel(self) -> None:
        """Drop queued calls and stop the pending tick, if any."""
        with self._lock:
            self._calls.clear()
            handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()

    def _arm(self) -> Any:
        # Caller holds the lock.
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            timer = threading.Timer(self._delay_s, self._tick)
            timer.daemon = True
            timer.start()
            return timer
        return loop.call_later(self._delay_s, self._tick)

    def _tick(self) -> None:
        with self._lock:
            self._handle = None
            if not self._calls:
                return
            if self._coalesce:
                args, kwargs = self._calls.pop()
                self._calls.clear()
            else:
                args, kwargs = self._calls.popleft()
                if self._calls:
                    self._handle = self._arm()

        try:
            self._callback(*args, **kwargs)
        except Exception:
            logger.exception("QueuedDebouncer callback failed for %r", self._callback)
