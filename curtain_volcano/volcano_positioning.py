"""Drag-to-reposition flow for annotation labels.

States and transitions::

    IDLE --start--> POSITIONING --drag_begin--> DRAGGING --drag_end--> PREVIEWING
    DRAGGING --drag_move--> DRAGGING
    PREVIEWING --accept--> COMMITTED -> IDLE
    POSITIONING | DRAGGING | PREVIEWING --reject--> REVERTED -> IDLE
    any --cancel--> IDLE

``COMMITTED`` and ``REVERTED`` are outcomes: the controller reports them via
:attr:`PositioningController.last_outcome` and rests in ``IDLE``.

The session's local state is authoritative. Bridge pushes are best effort; a
failed push never blocks a transition but raises
:attr:`PositioningController.needs_reconcile`, and
:meth:`PositioningController.expected_offset` tells the reconciler what the
renderer ought to display.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Callable, Optional, Tuple

from .errors import PositioningStateError
from .volcano_annotations import Annotation, AnnotationStore
from .volcano_transform import Point, annotation_offset

if TYPE_CHECKING:
    from .chart_bridge import ChartBridge

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


AnchorLocator = Callable[[Annotation], Tuple[float, float]]


class PositioningState(enum.Enum):
    IDLE = "idle"
    POSITIONING = "positioning"
    DRAGGING = "dragging"
    PREVIEWING = "previewing"
    COMMITTED = "committed"
    REVERTED = "reverted"


_LIVE = (PositioningState.POSITIONING, PositioningState.DRAGGING, PositioningState.PREVIEWING)


@dataclass(frozen=True)
class PositioningSession:
    """Transient state of one repositioning gesture.

    ``original_offset`` is fixed when the session starts, which is what makes
    a reject restore the store bit-for-bit.
    """

    candidate: Annotation
    original_offset: Point
    preview_offset: Optional[Point] = None
    is_dragging: bool = False
    is_previewing: bool = False
    anchor_screen: Optional[Point] = None
    preview_pushed: bool = False

    @property
    def key(self) -> str:
        return self.candidate.key


class PositioningController:
    """State machine driving one annotation's interactive repositioning.

    Parameters
    ----------
    store : AnnotationStore
        Where accepted offsets are written.
    bridge : ChartBridge or None
        Receives live ``setAnnotationOffset`` pushes. ``None`` makes every
        push fail, which is handled like an unavailable renderer.
    anchor_locator : callable
        Maps an annotation to its anchor's host-view pixel position. Called
        at most once per session.
    """

    def __init__(
        self,
        store: AnnotationStore,
        bridge: Optional["ChartBridge"],
        anchor_locator: AnchorLocator,
    ) -> None:
        self._store = store
        self._bridge = bridge
        self._locate_anchor = anchor_locator
        self._state = PositioningState.IDLE
        self._session: Optional[PositioningSession] = None
        self._last_outcome: Optional[PositioningState] = None
        self._needs_reconcile = False

    @property
    def state(self) -> PositioningState:
        return self._state

    @property
    def session(self) -> Optional[PositioningSession]:
        return self._session

    @property
    def last_outcome(self) -> Optional[PositioningState]:
        return self._last_outcome

    @property
    def needs_reconcile(self) -> bool:
        return self._needs_reconcile

    def mark_reconciled(self) -> None:
        self._needs_reconcile = False

    # --- transitions ---

    def start(self, key: str) -> PositioningSession:
        """Begin repositioning annotation ``key``.

        Raises
        ------
        PositioningStateError
            If a session is already live.
        AnnotationNotFound
            If ``key`` is not in the store.
        """
        self._require(PositioningState.IDLE, action="start")
        annotation = self._store[key]
        self._session = PositioningSession(candidate=annotation, original_offset=annotation.offset)
        self._state = PositioningState.POSITIONING
        logger.debug("Positioning %r from offset %s", key, annotation.offset)
        return self._session

    def drag_begin(self, point: Tuple[float, float]) -> PositioningSession:
        """Start a drag at host-view ``point``.

        Allowed from ``POSITIONING`` and from ``PREVIEWING`` (dragging again
        before deciding).
        """
        self._require(PositioningState.POSITIONING, PositioningState.PREVIEWING, action="drag_begin")
        session = self._live_session()
        if session.anchor_screen is None:
            anchor = self._locate_anchor(session.candidate)
            session = replace(session, anchor_screen=Point(float(anchor[0]), float(anchor[1])))
        self._session = replace(session, is_dragging=True, is_previewing=False)
        self._state = PositioningState.DRAGGING
        return self._session

    def drag_move(self, point: Tuple[float, float]) -> Point:
        """Move the label so it sits at host-view ``point``; return the preview offset."""
        if self._state is PositioningState.POSITIONING:
            self.drag_begin(point)
        self._require(PositioningState.DRAGGING, action="drag_move")
        session = self._live_session()
        if session.anchor_screen is None:
            raise PositioningStateError("drag has no anchor position")
        preview = annotation_offset(session.anchor_screen, point)
        self._push(session.candidate.title, preview)
        # An undelivered push may still land; cancel restores it.
        self._session = replace(session, preview_offset=preview, preview_pushed=True)
        return preview

    def drag_end(self) -> PositioningSession:
        """Freeze the preview; the user now accepts or rejects it."""
        self._require(PositioningState.DRAGGING, action="drag_end")
        self._session = replace(self._live_session(), is_dragging=False, is_previewing=True)
        self._state = PositioningState.PREVIEWING
        return self._session

    def accept(self) -> Annotation:
        """Write the preview offset into the store and end the session.

        From ``DRAGGING`` the drag is ended implicitly first.

        Raises
        ------
        PositioningStateError
            If there is no preview to accept.
        AnnotationNotFound
            If the annotation was removed during the session. The session is
            still ended.
        """
        if self._state is PositioningState.DRAGGING:
            self.drag_end()
        self._require(PositioningState.PREVIEWING, action="accept")
        session = self._live_session()
        offset = session.preview_offset if session.preview_offset is not None else session.original_offset
        try:
            committed = self._store.update_offset(session.key, offset.x, offset.y)
        finally:
            self._finish(PositioningState.COMMITTED)
        logger.debug("Committed offset %s for %r", offset, session.key)
        return committed

    def reject(self) -> None:
        """Restore the original offset on the renderer and end the session."""
        self._require(*_LIVE, action="reject")
        session = self._live_session()
        self._push(session.candidate.title, session.original_offset)
        self._finish(PositioningState.REVERTED)

    def cancel(self) -> None:
        """Abandon any live session without committing. No-op when idle."""
        session = self._session
        if session is None:
            self._state = PositioningState.IDLE
            return
        if session.preview_pushed:
            self._push(session.candidate.title, session.original_offset)
        self._finish(PositioningState.REVERTED)

    # --- reconciliation ---

    def expected_offset(self, key: str) -> Optional[Point]:
        """Offset the renderer should currently show for ``key``."""
        session = self._session
        if session is not None and session.key == key and session.preview_offset is not None:
            return session.preview_offset
        annotation = self._store.get(key)
        return None if annotation is None else annotation.offset

    # --- internals ---

    def _require(self, *allowed: PositioningState, action: str) -> None:
        if self._state not in allowed:
            names = ", ".join(s.name for s in allowed)
            raise PositioningStateError(f"cannot {action} from {self._state.name} (allowed: {names})")

    def _live_session(self) -> PositioningSession:
        if self._session is None:
            raise PositioningStateError("no positioning session")
        return self._session

    def _finish(self, outcome: PositioningState) -> None:
        self._session = None
        self._last_outcome = outcome
        self._state = PositioningState.IDLE

    def _push(self, title: str, offset: Point) -> bool:
        ok = self._bridge is not None and self._bridge.set_annotation_offset(title, offset.x, offset.y)
        if not ok:
            self._needs_reconcile = True
            logger.debug("Offset push for %r not delivered; reconcile pending", title)
        return bool(ok)


__all__ = [
    "AnchorLocator",
    "PositioningController",
    "PositioningSession",
    "PositioningState",
]
