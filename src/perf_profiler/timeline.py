"""
Timeline store for Perfetto-compatible trace events.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import os
import threading
from typing import Any, Dict, Iterator, List, Optional

from .errors import StackMismatch
from .model import CodeLocation


@dataclass
class _OpenEvent:
    """Represents a frame that has been pushed but not yet popped."""
    location: CodeLocation
    ts_us: float


@dataclass(frozen=True, eq=True)
class ProcessInfo:
    pid: int = 1
    process_name: str = 'python'


@dataclass(frozen=True, eq=True)
class TrackInfo:
    process_info: ProcessInfo = field(default_factory=ProcessInfo)
    tid: int = -1
    thread_name: str = ''

    @property
    def pid(self) -> int:
        return self.process_info.pid

    @property
    def process_name(self) -> str:
        return self.process_info.process_name


class PerfettoTimeline:
    """
    PerfettoTimeline keeps the Chrome Trace Event records of one session.

    说明:
    - 被追踪的进程对应 perfetto 中的 process, 每个被追踪的线程对应一个 track (thread)
    - 传入的时间戳是 clock ticks, 按 ticks * ns_per_tick / 1000.0 -> 微秒(us) 存储
    - 每次 frame push/pop 产生一对 B/E 事件, exception 产生 instant (i) 事件
    - 事件数量没有上限, 只能通过重新运行 session 重新生成
    """

    def __init__(
        self,
        ns_per_tick: float = 1.0,
        process_name: str = "python",
        pid: Optional[int] = None,
        origin_ticks: Optional[float] = None,
    ) -> None:
        self.ns_per_tick = float(ns_per_tick)
        # us = ticks * ns_per_tick / 1000
        self._tick_to_us = self.ns_per_tick / 1000.0
        # 未指定时以第一个事件为 0 点
        self._origin_ticks = origin_ticks

        self._next_tid = 1000
        self._lock = threading.Lock()

        self.process = ProcessInfo(pid=os.getpid() if pid is None else pid, process_name=process_name)
        # 记录 thread ident -> track, 防止重复注册
        self._tracks: Dict[int, TrackInfo] = {}
        self._open_events: Dict[TrackInfo, List[_OpenEvent]] = {}
        self._events: List[Dict[str, Any]] = [{
            "ph": "M",
            "pid": self.process.pid,
            "name": "process_name",
            "args": {"name": process_name},
        }]

    def _ticks_to_us(self, ticks: float) -> float:
        """把 ticks 换算为相对于第一个事件的微秒(us)."""
        if self._origin_ticks is None:
            self._origin_ticks = ticks
        return (float(ticks) - self._origin_ticks) * self._tick_to_us

    def register_thread(self, thread_id: int, thread_name: str) -> TrackInfo:
        """为一个线程创建 track, 返回 TrackInfo; 同一线程重复注册返回同一个 track."""
        with self._lock:
            if thread_id in self._tracks:
                return self._tracks[thread_id]

            tid = self._next_tid
            self._next_tid += 1

            track_info = TrackInfo(process_info=self.process, tid=tid, thread_name=thread_name)
            self._tracks[thread_id] = track_info
            self._open_events[track_info] = []

            # 添加线程元数据
            self._events.append({
                "ph": "M",
                "pid": self.process.pid,
                "tid": tid,
                "name": "thread_name",
                "args": {"name": thread_name},
            })
            return track_info

    def begin(self, track_info: TrackInfo, ts_ticks: float, location: CodeLocation) -> None:
        """开始一个 frame 事件 (B), 必须与 end() 在同一 track 上栈式配对."""
        ts_us = self._ticks_to_us(ts_ticks)
        self._events.append({
            "ph": "B",
            "pid": track_info.pid,
            "tid": track_info.tid,
            "ts": ts_us,
            "name": location.function,
            "cat": location.module,
            "args": {"line": location.lineno},
        })
        self._open_events[track_info].append(_OpenEvent(location=location, ts_us=ts_us))

    def end(self, track_info: TrackInfo, ts_ticks: float, location: Optional[CodeLocation] = None) -> None:
        """
        结束最近打开的 frame 事件 (E).
        如果提供 location, 会检查和栈顶事件是否一致, 不一致抛出 StackMismatch.
        """
        open_events = self._open_events.get(track_info)
        if not open_events:
            if location is None:
                raise ValueError(f"No open events for track {track_info.thread_name}")
            raise StackMismatch(None, location)

        open_event = open_events[-1]
        if location is not None and open_event.location != location:
            raise StackMismatch(open_event.location, location)

        self._events.append({
            "ph": "E",
            "pid": track_info.pid,
            "tid": track_info.tid,
            "ts": self._ticks_to_us(ts_ticks),
            "cat": open_event.location.module,
        })
        open_events.pop()

    def instant(self, track_info: TrackInfo, ts_ticks: float, name: str, location: CodeLocation) -> None:
        """插入一个 thread 范围的 instant 事件 (i), 用于 exception."""
        self._events.append({
            "ph": "i",
            "s": "t",
            "pid": track_info.pid,
            "tid": track_info.tid,
            "ts": self._ticks_to_us(ts_ticks),
            "name": name,
            "cat": location.module,
            "args": {"location": str(location)},
        })

    def open_depth(self, track_info: TrackInfo) -> int:
        return len(self._open_events.get(track_info, ()))

    def get_track(self, thread_id: int) -> Optional[TrackInfo]:
        """获取已注册的 track"""
        return self._tracks.get(thread_id)

    def list_tracks(self) -> List[str]:
        """列出所有已注册的 track 名称"""
        return [track.thread_name for track in self._tracks.values()]

    def iter_events(self) -> Iterator[Dict[str, Any]]:
        """按记录顺序惰性产出事件."""
        for index in range(len(self._events)):
            yield self._events[index]

    def __len__(self) -> int:
        return len(self._events)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ns_per_tick": self.ns_per_tick,
            "process_name": self.process.process_name,
            "pid": self.process.pid,
            "traceEvents": list(self._events),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PerfettoTimeline:
        """从保存的 session 状态恢复; 恢复后的 timeline 只用于导出."""
        timeline = cls(
            ns_per_tick=data.get("ns_per_tick", 1.0),
            process_name=data.get("process_name", "python"),
            pid=data.get("pid"),
        )
        timeline._events = list(data.get("traceEvents", []))
        return timeline
