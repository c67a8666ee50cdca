"""
Exceptions raised by the tracer.
"""

from __future__ import annotations
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .model import CodeLocation


class TracerError(RuntimeError):
    """Base class for every tracer failure."""


class AlreadyActive(TracerError):
    """A hook or session is already installed. Recoverable: stop the other one first."""


class NotActive(TracerError):
    """Stop/detach was requested but nothing is running."""


class StackMismatch(TracerError):
    """
    The shadow stack no longer mirrors the real call stack.

    Fatal for the session that raised it. ``expected`` is the location on top
    of the shadow stack (None when the stack was empty), ``actual`` the
    location the event came from.
    """

    def __init__(self, expected: Optional[CodeLocation], actual: CodeLocation) -> None:
        self.expected = expected
        self.actual = actual
        if expected is None:
            message = f"Return from {actual} with an empty frame stack"
        else:
            message = f"Expected to close frame '{expected}', but got '{actual}'"
        super().__init__(message)


class ExportError(TracerError):
    """Writing an export failed; nothing was left at ``path``."""

    def __init__(self, path: str, cause: BaseException) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to write {path}: {cause}")
