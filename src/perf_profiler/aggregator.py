"""
Aggregation of per-function and per-line statistics.
"""

from __future__ import annotations
import threading
from typing import Any, Dict, Iterable, List, Optional

from .model import CodeLocation, LineRecord, StatRecord


class StatTable:
    """
    Thread-safe table of StatRecord / LineRecord keyed by CodeLocation.

    All threads of a session share one table; every mutation takes the lock.
    Readers get copies so they never observe a half-updated record.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stats: Dict[CodeLocation, StatRecord] = {}
        self._lines: Dict[CodeLocation, LineRecord] = {}

    def record_call(self, location: CodeLocation, elapsed: float, exclusive: float, recursive: bool = False) -> None:
        with self._lock:
            record = self._stats.get(location)
            if record is None:
                record = self._stats[location] = StatRecord(location)
            record.add(elapsed, exclusive, recursive)

    def record_line(self, location: CodeLocation, elapsed: float) -> None:
        with self._lock:
            record = self._lines.get(location)
            if record is None:
                record = self._lines[location] = LineRecord(location)
            record.hits += 1
            record.total += elapsed

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()
            self._lines.clear()

    def get(self, location: CodeLocation) -> Optional[StatRecord]:
        with self._lock:
            record = self._stats.get(location)
            return record.copy() if record is not None else None

    def records(self) -> List[StatRecord]:
        with self._lock:
            return [record.copy() for record in self._stats.values()]

    def lines(self) -> List[LineRecord]:
        with self._lock:
            return [record.copy() for record in self._lines.values()]

    def __len__(self) -> int:
        return len(self._stats)

    def __contains__(self, location: object) -> bool:
        return location in self._stats

    @property
    def total_calls(self) -> int:
        return sum(record.ncalls for record in self.records())

    @property
    def primitive_calls(self) -> int:
        return sum(record.primitive_calls for record in self.records())

    @property
    def total_time(self) -> float:
        # exclusive times partition the traced wall time
        return sum(record.exclusive for record in self.records())

    def merge(self, other: StatTable) -> StatTable:
        """Return a new table holding the sum of both; neither input changes."""
        return StatTable.combine([self, other])

    __add__ = merge

    @classmethod
    def combine(cls, tables: Iterable[StatTable]) -> StatTable:
        merged = cls()
        for table in tables:
            for record in table.records():
                current = merged._stats.get(record.location)
                merged._stats[record.location] = record if current is None else current.merge(record)
            for line in table.lines():
                current_line = merged._lines.get(line.location)
                merged._lines[line.location] = line if current_line is None else current_line.merge(line)
        return merged

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stats": [record.to_dict() for record in self.records()],
            "lines": [record.to_dict() for record in self.lines()],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> StatTable:
        table = cls()
        for raw in data.get("stats", []):
            record = StatRecord.from_dict(raw)
            table._stats[record.location] = record
        for raw in data.get("lines", []):
            line = LineRecord.from_dict(raw)
            table._lines[line.location] = line
        return table
