"""
TraceSession: lifecycle owner of one tracing run.
"""

from __future__ import annotations
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .aggregator import StatTable
from .config import TracerConfig
from .errors import AlreadyActive, NotActive, StackMismatch, TracerError
from .events import EventKind, EventSource, TraceEvent
from .exporter import Exporter
from .model import ExceptionRecord
from .stack import StackRecorder
from .timeline import PerfettoTimeline

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TraceSession:
    """
    One tracing run: Event Source -> Stack Recorder -> Aggregator.

    Only one session may be active per process; ``TraceSession.get_active()``
    returns it. A session is single use: once stopped (or aborted) it keeps its
    results but cannot be started again.

    Usage::

        with TraceSession() as session:
            work()
        for line in session.exporter().iter_summary():
            print(line)
    """

    _active: Optional[TraceSession] = None
    _lock = threading.Lock()

    def __init__(self, config: Optional[TracerConfig] = None) -> None:
        self.config = config or TracerConfig()
        self.stats = StatTable()
        self.timeline: Optional[PerfettoTimeline] = None
        self.error: Optional[TracerError] = None
        self.started_at: Optional[float] = None
        self.stopped_at: Optional[float] = None
        self._source: Optional[EventSource] = None
        self._recorders: Dict[int, StackRecorder] = {}
        # serialises event handling against stop() so no thread sees a half-unwound stack
        self._events_lock = threading.Lock()
        self._finished = False
        self._dispatch: Dict[EventKind, Callable[[StackRecorder, TraceEvent], Any]] = {
            EventKind.CALL: lambda recorder, event: recorder.on_call(event.location, event.timestamp),
            EventKind.LINE: lambda recorder, event: recorder.on_line(event.location, event.arg, event.timestamp),
            EventKind.RETURN: lambda recorder, event: recorder.on_return(event.location, event.timestamp),
            EventKind.EXCEPTION: lambda recorder, event: recorder.on_exception(event.location, event.timestamp, event.arg),
        }
        missing = set(EventKind) - set(self._dispatch)
        if missing:
            raise TracerError(f"No handler for event kinds: {sorted(kind.value for kind in missing)}")

    @classmethod
    def get_active(cls) -> Optional[TraceSession]:
        return cls._active

    @property
    def active(self) -> bool:
        return TraceSession._active is self

    @property
    def aborted(self) -> bool:
        return self.error is not None

    @property
    def exceptions(self) -> List[ExceptionRecord]:
        records: List[ExceptionRecord] = []
        for recorder in list(self._recorders.values()):
            records.extend(recorder.exceptions)
        return sorted(records, key=lambda record: record.timestamp)

    @property
    def duration(self) -> Optional[float]:
        if self.started_at is None or self.stopped_at is None:
            return None
        return (self.stopped_at - self.started_at) * self.config.seconds_per_tick

    def open_frames(self) -> int:
        return sum(recorder.depth for recorder in list(self._recorders.values()))

    def start(self) -> TraceSession:
        with TraceSession._lock:
            if TraceSession._active is not None:
                raise AlreadyActive("A trace session is already active; stop it first")
            if self._finished:
                raise TracerError("This session has already run; create a new TraceSession")

            # StatRecords are only ever reset here
            self.stats.reset()
            self._recorders.clear()
            self.started_at = self.config.clock()
            if self.config.record_timeline:
                self.timeline = PerfettoTimeline(
                    ns_per_tick=self.config.ns_per_tick,
                    process_name=self.config.process_name,
                    origin_ticks=self.started_at,
                )
            self._source = EventSource(self._handle, self.config)
            logger.debug(
                "Starting trace session (lines=%s, threads=%s, timeline=%s)",
                self.config.trace_lines, self.config.trace_threads, self.config.record_timeline,
            )
            TraceSession._active = self
            try:
                self._source.attach()
            except TracerError:
                TraceSession._active = None
                raise
        return self

    def stop(self) -> StatTable:
        """Detach the hook, close frames still open, and return the collected stats."""
        with TraceSession._lock:
            if TraceSession._active is not self:
                raise NotActive("Trace session is not active")
            self._source.detach()
            TraceSession._active = None
            self._finished = True
        with self._events_lock:
            self.stopped_at = self.config.clock()
            for recorder in self._recorders.values():
                unwound = recorder.unwind(self.stopped_at)
                if unwound:
                    logger.debug("Closed %d open frame(s) at stop", len(unwound))
        logger.info(
            "Trace session stopped: %d locations, %d calls",
            len(self.stats), self.stats.total_calls,
        )
        return self.stats

    def exporter(self) -> Exporter:
        return Exporter(self.stats, self.timeline)

    def __enter__(self) -> TraceSession:
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.active:
            self.stop()

    def _recorder(self, thread_id: int) -> StackRecorder:
        # caller holds _events_lock
        recorder = self._recorders.get(thread_id)
        if recorder is None:
            track = None
            if self.timeline is not None:
                track = self.timeline.register_thread(thread_id, threading.current_thread().name)
            recorder = StackRecorder(
                self.stats,
                seconds_per_tick=self.config.seconds_per_tick,
                timeline=self.timeline,
                track=track,
                origin=self.started_at or 0.0,
            )
            self._recorders[thread_id] = recorder
        return recorder

    def _handle(self, event: TraceEvent) -> None:
        with self._events_lock:
            # events still in flight on other threads when stop() ran are dropped
            if self._finished:
                return
            recorder = self._recorder(event.thread_id)
            try:
                self._dispatch[event.kind](recorder, event)
            except StackMismatch as exc:
                self._abort(exc)
                raise

    def _abort(self, error: TracerError) -> None:
        self.error = error
        with TraceSession._lock:
            if self._source is not None and self._source.attached:
                self._source.detach()
            if TraceSession._active is self:
                TraceSession._active = None
            self._finished = True
        self.stopped_at = self.config.clock()
        logger.error("Trace session aborted: %s", error)


def start(config: Optional[TracerConfig] = None) -> TraceSession:
    """Start a new process-wide session."""
    return TraceSession(config).start()


def stop() -> TraceSession:
    """Stop the active session and return it."""
    session = TraceSession.get_active()
    if session is None:
        raise NotActive("No trace session is active")
    session.stop()
    return session


def runcall(func: Callable[..., T], *args: Any, config: Optional[TracerConfig] = None, **kwargs: Any) -> T:
    """Call ``func`` under a fresh session; the session is available via ``last_session()``."""
    global _last_session
    session = TraceSession(config)
    _last_session = session
    session.start()
    try:
        return func(*args, **kwargs)
    finally:
        if session.active:
            session.stop()


_last_session: Optional[TraceSession] = None


def last_session() -> Optional[TraceSession]:
    return _last_session
