"""Error taxonomy for the volcano annotation core.

Each error subclasses the builtin exception that plain Python code would
raise for the same situation, so callers that only know ``ValueError`` or
``KeyError`` still catch them.

Propagation policy
------------------
Library layers (transform, store, bridge protocol, positioning controller)
raise these errors. The :class:`~curtain_volcano.volcano_editor.VolcanoAnnotationEditor`
facade absorbs all of them at the point of occurrence; only
:class:`RendererReportedError` is surfaced to the user, through error
listeners rather than by raising.
"""

from __future__ import annotations


class CurtainVolcanoError(Exception):
    """Base class for every error raised by ``curtain_volcano``."""


class DegenerateAxisRange(CurtainVolcanoError, ValueError):
    """An axis range (or plot area) has zero or negative extent."""


class AnnotationNotFound(CurtainVolcanoError, KeyError):
    """An update targeted an annotation key that is not in the store."""

    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"No annotation with key {self.key!r}"


class DuplicateAnnotation(CurtainVolcanoError, ValueError):
    """An annotation with the same derived title already exists."""

    def __init__(self, title: str) -> None:
        super().__init__(f"Annotation {title!r} already exists")
        self.title = title


class BridgeUnavailable(CurtainVolcanoError, RuntimeError):
    """The renderer is not ready or the message channel is closed."""


class BridgeProtocolError(CurtainVolcanoError, ValueError):
    """A bridge message could not be encoded or decoded."""


class RendererReportedError(CurtainVolcanoError, RuntimeError):
    """The embedded renderer reported a rendering failure."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PositioningStateError(CurtainVolcanoError, RuntimeError):
    """A positioning transition was requested from a state that forbids it."""


__all__ = [
    "CurtainVolcanoError",
    "DegenerateAxisRange",
    "AnnotationNotFound",
    "DuplicateAnnotation",
    "BridgeUnavailable",
    "BridgeProtocolError",
    "RendererReportedError",
    "PositioningStateError",
]
