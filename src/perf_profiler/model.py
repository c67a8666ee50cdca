"""
Core records shared by the recorder, aggregator and exporter.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from types import FrameType
from typing import Any, Dict, Optional


@dataclass(frozen=True, eq=True, order=True)
class CodeLocation:
    """Identity of a traceable unit of code, used as the aggregation key."""
    module: str
    function: str
    lineno: int = 0

    @classmethod
    def from_frame(cls, frame: FrameType) -> CodeLocation:
        code = frame.f_code
        module = frame.f_globals.get("__name__") or code.co_filename
        # co_qualname only exists on 3.11+
        function = getattr(code, "co_qualname", code.co_name)
        return cls(module=module, function=function, lineno=code.co_firstlineno)

    def at_line(self, lineno: int) -> CodeLocation:
        return CodeLocation(self.module, self.function, lineno)

    def __str__(self) -> str:
        return f"{self.module}:{self.lineno}({self.function})"

    def to_dict(self) -> Dict[str, Any]:
        return {"module": self.module, "function": self.function, "lineno": self.lineno}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CodeLocation:
        return cls(module=data["module"], function=data["function"], lineno=int(data["lineno"]))


@dataclass
class Frame:
    """A live invocation on a shadow stack. Timestamps are raw clock ticks."""
    location: CodeLocation
    entry_ts: float
    parent: Optional[Frame] = field(default=None, repr=False, compare=False)
    child_ticks: float = 0.0
    recursive: bool = False
    line: Optional[CodeLocation] = None
    line_ts: float = 0.0


@dataclass
class StatRecord:
    """
    Counters for one CodeLocation.

    ``ncalls`` counts every return, ``primitive_calls`` only those that were
    not re-entries of an already active location (the ``3/1`` form pstats
    prints for recursive functions). Times are in seconds.
    """
    location: CodeLocation
    ncalls: int = 0
    primitive_calls: int = 0
    cumulative: float = 0.0
    exclusive: float = 0.0

    def add(self, elapsed: float, exclusive: float, recursive: bool = False) -> None:
        self.ncalls += 1
        self.exclusive += exclusive
        if not recursive:
            self.primitive_calls += 1
            self.cumulative += elapsed

    def merge(self, other: StatRecord) -> StatRecord:
        if other.location != self.location:
            raise ValueError(f"Cannot merge stats for {other.location} into {self.location}")
        return StatRecord(
            location=self.location,
            ncalls=self.ncalls + other.ncalls,
            primitive_calls=self.primitive_calls + other.primitive_calls,
            cumulative=self.cumulative + other.cumulative,
            exclusive=self.exclusive + other.exclusive,
        )

    def copy(self) -> StatRecord:
        return StatRecord(self.location, self.ncalls, self.primitive_calls, self.cumulative, self.exclusive)

    @property
    def exclusive_per_call(self) -> float:
        return self.exclusive / self.ncalls if self.ncalls else 0.0

    @property
    def cumulative_per_call(self) -> float:
        return self.cumulative / self.primitive_calls if self.primitive_calls else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "location": self.location.to_dict(),
            "ncalls": self.ncalls,
            "primitive_calls": self.primitive_calls,
            "cumulative": self.cumulative,
            "exclusive": self.exclusive,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> StatRecord:
        return cls(
            location=CodeLocation.from_dict(data["location"]),
            ncalls=int(data["ncalls"]),
            primitive_calls=int(data["primitive_calls"]),
            cumulative=float(data["cumulative"]),
            exclusive=float(data["exclusive"]),
        )


@dataclass
class LineRecord:
    """Hit count and wall time of a single source line (sub-calls included)."""
    location: CodeLocation
    hits: int = 0
    total: float = 0.0

    def merge(self, other: LineRecord) -> LineRecord:
        if other.location != self.location:
            raise ValueError(f"Cannot merge line stats for {other.location} into {self.location}")
        return LineRecord(self.location, self.hits + other.hits, self.total + other.total)

    def copy(self) -> LineRecord:
        return LineRecord(self.location, self.hits, self.total)

    def to_dict(self) -> Dict[str, Any]:
        return {"location": self.location.to_dict(), "hits": self.hits, "total": self.total}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> LineRecord:
        return cls(CodeLocation.from_dict(data["location"]), int(data["hits"]), float(data["total"]))


@dataclass(frozen=True)
class ExceptionRecord:
    location: CodeLocation
    timestamp: float
    type_name: str
