"""Tests for the PerfettoTimeline event store."""

from __future__ import annotations

import pytest

from perf_profiler import CodeLocation, PerfettoTimeline, StackMismatch

OUTER = CodeLocation("app", "outer", 1)
INNER = CodeLocation("app", "inner", 5)


def test_register_thread_metadata() -> None:
    timeline = PerfettoTimeline(process_name="demo", pid=42)

    track = timeline.register_thread(thread_id=123, thread_name="worker")

    assert track.pid == 42
    assert track.process_name == "demo"
    assert track.tid >= 1000
    assert timeline.list_tracks() == ["worker"]
    assert timeline.get_track(123) == track

    process_event, thread_event = list(timeline.iter_events())[:2]
    assert process_event == {
        "ph": "M",
        "pid": 42,
        "name": "process_name",
        "args": {"name": "demo"},
    }
    assert thread_event == {
        "ph": "M",
        "pid": 42,
        "tid": track.tid,
        "name": "thread_name",
        "args": {"name": "worker"},
    }

    # Should return same track when registering again
    assert timeline.register_thread(123, "renamed") == track
    assert len(timeline) == 2


def test_begin_and_end_nested_stack() -> None:
    timeline = PerfettoTimeline(ns_per_tick=50.0, origin_ticks=0)
    track = timeline.register_thread(1, "main")

    timeline.begin(track, 10.0, OUTER)
    timeline.begin(track, 20.0, INNER)
    timeline.end(track, 40.0, INNER)
    timeline.end(track, 60.0, OUTER)

    assert timeline.open_depth(track) == 0

    b1, b2, e1, e2 = list(timeline.iter_events())[-4:]
    assert [event["ph"] for event in (b1, b2, e1, e2)] == ["B", "B", "E", "E"]
    assert b1["name"] == "outer"
    assert b1["cat"] == "app"
    assert b2["args"] == {"line": 5}
    assert b1["ts"] == pytest.approx(0.5)
    assert b2["ts"] == pytest.approx(1.0)
    assert e1["ts"] == pytest.approx(2.0)
    assert e2["ts"] == pytest.approx(3.0)


def test_first_event_is_origin_by_default() -> None:
    timeline = PerfettoTimeline(ns_per_tick=1000.0)
    track = timeline.register_thread(1, "main")

    timeline.begin(track, 5000.0, OUTER)
    timeline.end(track, 7000.0)

    begin, end = list(timeline.iter_events())[-2:]
    assert begin["ts"] == pytest.approx(0.0)
    assert end["ts"] == pytest.approx(2000.0)


def test_end_location_mismatch_raises() -> None:
    timeline = PerfettoTimeline()
    track = timeline.register_thread(1, "main")
    timeline.begin(track, 1.0, OUTER)

    with pytest.raises(StackMismatch):
        timeline.end(track, 2.0, INNER)

    assert timeline.open_depth(track) == 1


def test_end_without_open_events() -> None:
    timeline = PerfettoTimeline()
    track = timeline.register_thread(1, "main")

    with pytest.raises(ValueError):
        timeline.end(track, 1.0)
    with pytest.raises(StackMismatch):
        timeline.end(track, 1.0, OUTER)


def test_instant_event_for_exception() -> None:
    timeline = PerfettoTimeline(origin_ticks=0)
    track = timeline.register_thread(1, "main")

    timeline.instant(track, 3000.0, "ZeroDivisionError", INNER)

    event = list(timeline.iter_events())[-1]
    assert event["ph"] == "i"
    assert event["s"] == "t"
    assert event["name"] == "ZeroDivisionError"
    assert event["args"] == {"location": "app:5(inner)"}
    assert event["ts"] == pytest.approx(3.0)


def test_dict_round_trip() -> None:
    timeline = PerfettoTimeline(ns_per_tick=2.0, process_name="proc", pid=9, origin_ticks=0)
    track = timeline.register_thread(1, "main")
    timeline.begin(track, 0.0, OUTER)
    timeline.end(track, 10.0, OUTER)

    restored = PerfettoTimeline.from_dict(timeline.to_dict())

    assert restored.ns_per_tick == 2.0
    assert restored.process.pid == 9
    assert list(restored.iter_events()) == list(timeline.iter_events())
