from __future__ import annotations

import logging
from unittest.mock import patch

from curtain_volcano.debouncing import QueuedDebouncer


class _FakeThreadTimer:
    created: list["_FakeThreadTimer"] = []

    def __init__(self, delay: float, callback):
        self.delay = delay
        self.callback = callback
        self.daemon = False
        self.started = False
        self.cancelled = False
        _FakeThreadTimer.created.append(self)

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True


class _FakeLoopHandle:
    def __init__(self, callback):
        self._callback = callback
        self.cancelled = False

    def fire(self) -> None:
        self._callback()

    def cancel(self) -> None:
        self.cancelled = True


class _FakeAsyncLoop:
    def __init__(self) -> None:
        self.handles: list[_FakeLoopHandle] = []

    def call_later(self, _delay: float, callback):
        handle = _FakeLoopHandle(callback)
        self.handles.append(handle)
        return handle


def test_debouncer_logs_and_keeps_processing_after_callback_error_threading(caplog) -> None:
    state = {"n": 0}

    def _callback(_payload):
        state["n"] += 1
        if state["n"] == 1:
            raise RuntimeError("boom")

    _FakeThreadTimer.created.clear()

    with patch("curtain_volcano.debouncing.threading.Timer", _FakeThreadTimer):
        debouncer = QueuedDebouncer(_callback, execute_every_ms=1, drop_overflow=False)
        with caplog.at_level(logging.ERROR, logger="curtain_volcano.debouncing"):
            debouncer("first")
            debouncer("second")
            assert len(_FakeThreadTimer.created) == 1

            _FakeThreadTimer.created[0].callback()
            assert len(_FakeThreadTimer.created) == 2
            _FakeThreadTimer.created[1].callback()

    assert state["n"] == 2
    assert "QueuedDebouncer callback failed" in caplog.text


def test_debouncer_logs_and_keeps_processing_after_callback_error_asyncio(caplog) -> None:
    state = {"n": 0}

    def _callback(_payload):
        state["n"] += 1
        if state["n"] == 1:
            raise RuntimeError("boom")

    fake_loop = _FakeAsyncLoop()

    with patch("curtain_volcano.debouncing.asyncio.get_running_loop", return_value=fake_loop):
        debouncer = QueuedDebouncer(_callback, execute_every_ms=1, drop_overflow=False)
        with caplog.at_level(logging.ERROR, logger="curtain_volcano.debouncing"):
            debouncer("first")
            debouncer("second")
            assert len(fake_loop.handles) == 1

            fake_loop.handles[0].fire()
            assert len(fake_loop.handles) == 2
            fake_loop.handles[1].fire()

    assert state["n"] == 2
    assert "QueuedDebouncer callback failed" in caplog.text


def test_debouncer_drop_overflow_runs_only_the_latest_call() -> None:
    seen = []
    fake_loop = _FakeAsyncLoop()

    with patch("curtain_volcano.debouncing.asyncio.get_running_loop", return_value=fake_loop):
        debouncer = QueuedDebouncer(seen.append, execute_every_ms=500)
        debouncer("a")
        debouncer("b")
        debouncer("c")
        assert debouncer.pending == 3

        fake_loop.handles[0].fire()

    assert seen == ["c"]
    assert debouncer.pending == 0
    assert len(fake_loop.handles) == 1


def test_debouncer_cancel_drops_queued_calls() -> None:
    seen = []
    _FakeThreadTimer.created.clear()

    with patch("curtain_volcano.debouncing.threading.Timer", _FakeThreadTimer):
        debouncer = QueuedDebouncer(seen.append, execute_every_ms=10)
        debouncer("a")
        debouncer.cancel()
        assert _FakeThreadTimer.created[0].cancelled

        _FakeThreadTimer.created[0].callback()

    assert seen == []
    assert debouncer.pending == 0
