"""
Event source: the process-wide interpreter hook.

The hook is installed with ``sys.settrace`` for the attaching thread and
``threading.settrace`` for threads started while attached. Raw interpreter
events are turned into :class:`TraceEvent` values and handed to a single
handler.
"""

from __future__ import annotations
from dataclasses import dataclass
import enum
import logging
import os
import sys
import threading
from types import CodeType, FrameType
from typing import Any, Callable, Dict, Optional

from .config import TracerConfig
from .errors import AlreadyActive, NotActive, TracerError
from .model import CodeLocation

logger = logging.getLogger(__name__)

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__)) + os.sep
_PACKAGE_NAME = __name__.partition(".")[0]


class EventKind(enum.Enum):
    CALL = "call"
    LINE = "line"
    RETURN = "return"
    EXCEPTION = "exception"


@dataclass(frozen=True)
class TraceEvent:
    """
    One interpreter event.

    ``arg`` depends on ``kind``: the executed line number for LINE, the
    exception type name for EXCEPTION, None otherwise.
    """
    kind: EventKind
    location: CodeLocation
    timestamp: float
    arg: Any = None
    thread_id: int = 0


# sentinels cached per code object in place of a CodeLocation
_INTERNAL = object()
_IGNORED = object()


class EventSource:
    """Installs and removes the trace hook. Single use: attach once, detach once."""

    _attached_source: Optional[EventSource] = None
    _attach_lock = threading.Lock()

    def __init__(self, handler: Callable[[TraceEvent], None], config: Optional[TracerConfig] = None) -> None:
        self.config = config or TracerConfig()
        self._handler = handler
        self._clock = self.config.clock
        self._attached = False
        self._used = False
        self._locations: Dict[CodeType, Any] = {}
        self._local = threading.local()
        self._previous_trace: Optional[Callable] = None
        self._previous_thread_trace: Optional[Callable] = None

    @property
    def attached(self) -> bool:
        return self._attached

    @classmethod
    def current(cls) -> Optional[EventSource]:
        return cls._attached_source

    def attach(self) -> None:
        with EventSource._attach_lock:
            if self._attached:
                raise AlreadyActive("Event source is already attached")
            if EventSource._attached_source is not None:
                raise AlreadyActive("Another event source is attached to this process")
            if self._used:
                raise TracerError("Event source was already detached; create a new session to trace again")

            self._previous_trace = sys.gettrace()
            if self._previous_trace is not None:
                logger.warning("Replacing existing trace function %r until detach", self._previous_trace)
            self._used = True
            self._attached = True
            EventSource._attached_source = self
            if self.config.trace_threads:
                self._previous_thread_trace = threading.gettrace()
                threading.settrace(self._global_trace)
            # must stay last: every Python call after this point is traced
            sys.settrace(self._global_trace)

    def detach(self) -> None:
        # 先关闭开关, 其他线程中残留的 hook 随即失效
        if not self._attached:
            raise NotActive("Event source is not attached")
        self._attached = False
        sys.settrace(self._previous_trace)
        if self.config.trace_threads:
            threading.settrace(self._previous_thread_trace)
        with EventSource._attach_lock:
            if EventSource._attached_source is self:
                EventSource._attached_source = None

    def _locate(self, frame: FrameType) -> Any:
        code = frame.f_code
        location = self._locations.get(code)
        if location is None:
            module = frame.f_globals.get("__name__") or ""
            # generated code (dataclass __init__ etc.) has no real filename, so check the module too
            if code.co_filename.startswith(_PACKAGE_DIR) or module.partition(".")[0] == _PACKAGE_NAME:
                location = _INTERNAL
            else:
                location = CodeLocation.from_frame(frame)
                if self.config.is_ignored(location.module):
                    location = _IGNORED
            self._locations[code] = location
        return location

    def _suppressed(self) -> int:
        return getattr(self._local, "suppressed", 0)

    def _emit(self, kind: EventKind, location: CodeLocation, arg: Any = None) -> None:
        self._handler(TraceEvent(kind, location, self._clock(), arg, threading.get_ident()))

    def _global_trace(self, frame: FrameType, event: str, arg: Any) -> Optional[Callable]:
        if event != "call" or not self._attached or self._suppressed():
            return None
        location = self._locate(frame)
        if location is _INTERNAL:
            # the tracer's own frames and everything beneath them are invisible
            self._local.suppressed = self._suppressed() + 1
            frame.f_trace_lines = False
            return self._suppressed_trace
        if location is _IGNORED:
            return None
        if not self.config.trace_lines:
            frame.f_trace_lines = False
        self._emit(EventKind.CALL, location)
        return self._local_trace

    def _local_trace(self, frame: FrameType, event: str, arg: Any) -> Optional[Callable]:
        if not self._attached:
            return None
        if event == "line":
            self._emit(EventKind.LINE, self._locate(frame), frame.f_lineno)
        elif event == "return":
            self._emit(EventKind.RETURN, self._locate(frame))
        elif event == "exception":
            self._emit(EventKind.EXCEPTION, self._locate(frame), arg[0].__name__)
        return self._local_trace

    def _suppressed_trace(self, frame: FrameType, event: str, arg: Any) -> Optional[Callable]:
        if event == "return":
            self._local.suppressed = max(self._suppressed() - 1, 0)
        return self._suppressed_trace
