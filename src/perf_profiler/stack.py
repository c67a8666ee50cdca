"""
Per-thread shadow call stack.
"""

from __future__ import annotations
from collections import Counter
from typing import List, Optional

from .aggregator import StatTable
from .errors import StackMismatch
from .model import CodeLocation, ExceptionRecord, Frame
from .timeline import PerfettoTimeline, TrackInfo


class StackRecorder:
    """
    Mirrors the call stack of one thread and feeds popped frames to a StatTable.

    Timestamps are raw clock ticks; ``seconds_per_tick`` converts them when
    frames are aggregated. ``origin`` is the session start, used to stamp
    exception records relative to it.
    """

    def __init__(
        self,
        table: StatTable,
        seconds_per_tick: float = 1e-9,
        timeline: Optional[PerfettoTimeline] = None,
        track: Optional[TrackInfo] = None,
        origin: float = 0.0,
    ) -> None:
        if (timeline is None) != (track is None):
            raise ValueError("timeline and track must be given together")
        self.table = table
        self.seconds_per_tick = seconds_per_tick
        self.timeline = timeline
        self.track = track
        self.origin = origin
        self.exceptions: List[ExceptionRecord] = []
        self._stack: List[Frame] = []
        self._active: Counter = Counter()

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def top(self) -> Optional[Frame]:
        return self._stack[-1] if self._stack else None

    def frames(self) -> List[Frame]:
        return list(self._stack)

    def on_call(self, location: CodeLocation, ts: float) -> Frame:
        frame = Frame(
            location=location,
            entry_ts=ts,
            parent=self.top,
            recursive=self._active[location] > 0,
        )
        self._active[location] += 1
        self._stack.append(frame)
        if self.timeline is not None:
            self.timeline.begin(self.track, ts, location)
        return frame

    def on_return(self, location: CodeLocation, ts: float) -> Frame:
        top = self.top
        if top is None:
            raise StackMismatch(None, location)
        if top.location != location:
            raise StackMismatch(top.location, location)
        return self._pop(ts)

    def on_line(self, location: CodeLocation, lineno: int, ts: float) -> None:
        top = self.top
        if top is None:
            raise StackMismatch(None, location)
        if top.location != location:
            raise StackMismatch(top.location, location)
        self._close_line(top, ts)
        top.line = location.at_line(lineno)
        top.line_ts = ts

    def on_exception(self, location: CodeLocation, ts: float, type_name: str) -> ExceptionRecord:
        # 不 pop: 栈展开会通过后续的 return 事件体现
        record = ExceptionRecord(
            location=location,
            timestamp=(ts - self.origin) * self.seconds_per_tick,
            type_name=type_name,
        )
        self.exceptions.append(record)
        if self.timeline is not None:
            self.timeline.instant(self.track, ts, type_name, location)
        return record

    def unwind(self, ts: float) -> List[Frame]:
        """Pop every open frame at ``ts``; used when tracing stops mid-call."""
        popped = []
        while self._stack:
            popped.append(self._pop(ts))
        return popped

    def _pop(self, ts: float) -> Frame:
        frame = self._stack.pop()
        self._active[frame.location] -= 1
        if not self._active[frame.location]:
            del self._active[frame.location]
        self._close_line(frame, ts)

        elapsed_ticks = ts - frame.entry_ts
        exclusive_ticks = elapsed_ticks - frame.child_ticks
        if frame.parent is not None:
            frame.parent.child_ticks += elapsed_ticks

        self.table.record_call(
            frame.location,
            elapsed_ticks * self.seconds_per_tick,
            exclusive_ticks * self.seconds_per_tick,
            frame.recursive,
        )
        if self.timeline is not None:
            self.timeline.end(self.track, ts, frame.location)
        return frame

    def _close_line(self, frame: Frame, ts: float) -> None:
        if frame.line is not None:
            self.table.record_line(frame.line, (ts - frame.line_ts) * self.seconds_per_tick)
            frame.line = None
