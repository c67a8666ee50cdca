"""
Exporter: summary tables, Perfetto timelines and saved session state.
"""

from __future__ import annotations
import json
import logging
import os
import tempfile
from typing import Any, Callable, Dict, Iterable, Iterator, Optional

from .aggregator import StatTable
from .errors import ExportError
from .model import LineRecord, StatRecord
from .timeline import PerfettoTimeline

logger = logging.getLogger(__name__)

STATE_VERSION = 1

SORT_KEYS: Dict[str, Callable[[StatRecord], float]] = {
    "cumulative": lambda record: record.cumulative,
    "exclusive": lambda record: record.exclusive,
    "calls": lambda record: record.ncalls,
}

_SORT_TITLES = {
    "cumulative": "cumulative time",
    "exclusive": "internal time",
    "calls": "call count",
}

DISPLAY_TIME_UNITS = ("ns", "us", "ms", "s")


def _atomic_write(path: str, chunks: Iterable[str]) -> None:
    """
    Write ``chunks`` to a temporary file beside ``path`` and move it into place.
    On any failure the temporary file is removed, so no partial output remains.
    """
    directory = os.path.dirname(os.path.abspath(path))
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=".perf_profiler-", suffix=".tmp", dir=directory)
    except OSError as exc:
        raise ExportError(path, exc) from exc
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            for chunk in chunks:
                fh.write(chunk)
        # mkstemp creates 0600; give the export the mode a plain open() would
        os.chmod(tmp_path, 0o666 & ~_current_umask())
        os.replace(tmp_path, path)
    except OSError as exc:
        _discard(tmp_path)
        raise ExportError(path, exc) from exc
    except BaseException:
        _discard(tmp_path)
        raise
    logger.info("Wrote %s", path)


def _current_umask() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return umask


def _discard(tmp_path: str) -> None:
    try:
        os.unlink(tmp_path)
    except FileNotFoundError:
        pass


def _sort_key(sort: str) -> Callable[[StatRecord], float]:
    try:
        return SORT_KEYS[sort]
    except KeyError:
        raise ValueError(f"Unknown sort key {sort!r}; expected one of {sorted(SORT_KEYS)}") from None


def _format_ncalls(record: StatRecord) -> str:
    if record.ncalls != record.primitive_calls:
        return f"{record.ncalls}/{record.primitive_calls}"
    return str(record.ncalls)


class Exporter:
    """
    Serializes a StatTable (and optionally a timeline).

    Every ``iter_*`` method is lazy. The timeline is only as complete as the
    session that produced it; re-run the session to regenerate it.
    """

    def __init__(self, stats: StatTable, timeline: Optional[PerfettoTimeline] = None) -> None:
        self.stats = stats
        self.timeline = timeline

    def iter_records(self, sort: str = "cumulative") -> Iterator[StatRecord]:
        """Records by descending ``sort`` key, ties broken by location order."""
        key = _sort_key(sort)
        records = sorted(self.stats.records(), key=lambda record: (-key(record), record.location))
        yield from records

    def iter_lines(self) -> Iterator[LineRecord]:
        yield from sorted(self.stats.lines(), key=lambda record: (-record.total, record.location))

    def iter_summary(self, sort: str = "cumulative", limit: Optional[int] = None) -> Iterator[str]:
        """pstats-style text table, one line per yielded string (no newlines)."""
        _sort_key(sort)
        records = self.iter_records(sort)
        yield (
            f"{self.stats.total_calls} function calls ({self.stats.primitive_calls} primitive calls)"
            f" in {self.stats.total_time:.3f} seconds"
        )
        yield ""
        yield f"Ordered by: {_SORT_TITLES[sort]}"
        yield ""
        yield "   ncalls  tottime  percall  cumtime  percall location"
        for index, record in enumerate(records):
            if limit is not None and index >= limit:
                break
            yield (
                f"{_format_ncalls(record):>9} "
                f"{record.exclusive:8.3f} "
                f"{record.exclusive_per_call:8.3f} "
                f"{record.cumulative:8.3f} "
                f"{record.cumulative_per_call:8.3f} "
                f"{record.location}"
            )

    def iter_line_summary(self, limit: Optional[int] = None) -> Iterator[str]:
        yield "     hits     time  perhit location"
        for index, record in enumerate(self.iter_lines()):
            if limit is not None and index >= limit:
                break
            per_hit = record.total / record.hits if record.hits else 0.0
            yield f"{record.hits:>9} {record.total:8.3f} {per_hit:7.3f} {record.location}"

    def iter_timeline(self) -> Iterator[Dict[str, Any]]:
        if self.timeline is None:
            raise ValueError("No timeline was recorded for this session")
        return self.timeline.iter_events()

    def write_summary(self, path: str, sort: str = "cumulative", limit: Optional[int] = None) -> None:
        _atomic_write(path, (line + "\n" for line in self.iter_summary(sort, limit)))

    def write_timeline(self, path: str, display_time_unit: str = "ns") -> None:
        """
        写出 Chrome Trace Event JSON (Perfetto / chrome://tracing 可直接打开).
        display_time_unit 仅影响 UI 展示, 数据本身 ts 以 us 存储.
        """
        if display_time_unit not in DISPLAY_TIME_UNITS:
            raise ValueError(f"display_time_unit must be one of {DISPLAY_TIME_UNITS}")
        events = self.iter_timeline()

        def chunks() -> Iterator[str]:
            yield '{"traceEvents":['
            for index, event in enumerate(events):
                if index:
                    yield ","
                yield json.dumps(event, ensure_ascii=False, separators=(",", ":"))
            yield f'],"displayTimeUnit":{json.dumps(display_time_unit)}}}'

        _atomic_write(path, chunks())

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"version": STATE_VERSION}
        data.update(self.stats.to_dict())
        data["timeline"] = self.timeline.to_dict() if self.timeline is not None else None
        return data

    def write_stats(self, path: str) -> None:
        """Save stats, line stats and timeline so ``Exporter.load`` can restore them."""
        _atomic_write(path, [json.dumps(self.to_dict(), ensure_ascii=False)])

    @classmethod
    def load(cls, path: str) -> Exporter:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"Session state in {path} is not a JSON object")
        version = data.get("version")
        if version != STATE_VERSION:
            raise ValueError(f"Unsupported session state version {version!r} in {path}")
        stats = StatTable.from_dict(data)
        timeline = PerfettoTimeline.from_dict(data["timeline"]) if data.get("timeline") else None
        return cls(stats, timeline)
