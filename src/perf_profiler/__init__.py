"""
PerfProfiler: a deterministic tracer and profiler core for Python programs.

Call/line/return/exception events are mirrored on a per-thread shadow stack,
aggregated into pstats-style statistics, and exported either as a text table
or as a timeline that can be imported and analyzed using Perfetto
(ui.perfetto.dev).
"""

from .aggregator import StatTable
from .config import TracerConfig
from .errors import AlreadyActive, ExportError, NotActive, StackMismatch, TracerError
from .events import EventKind, EventSource, TraceEvent
from .exporter import Exporter
from .model import CodeLocation, ExceptionRecord, Frame, LineRecord, StatRecord
from .session import TraceSession, last_session, runcall, start, stop
from .stack import StackRecorder
from .timeline import PerfettoTimeline

__version__ = "0.1.0"
__all__ = [
    "AlreadyActive",
    "CodeLocation",
    "EventKind",
    "EventSource",
    "ExceptionRecord",
    "ExportError",
    "Exporter",
    "Frame",
    "LineRecord",
    "NotActive",
    "PerfettoTimeline",
    "StackMismatch",
    "StackRecorder",
    "StatRecord",
    "StatTable",
    "TraceEvent",
    "TraceSession",
    "TracerConfig",
    "TracerError",
    "last_session",
    "runcall",
    "start",
    "stop",
]
