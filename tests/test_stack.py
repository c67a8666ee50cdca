"""Tests for the per-thread shadow stack."""

from __future__ import annotations

import pytest

from perf_profiler import CodeLocation, PerfettoTimeline, StackMismatch, StackRecorder, StatTable


def loc(function: str, lineno: int = 1, module: str = "app") -> CodeLocation:
    return CodeLocation(module, function, lineno)


def make_recorder() -> StackRecorder:
    # 1 tick == 1 second keeps the arithmetic readable
    return StackRecorder(StatTable(), seconds_per_tick=1.0)


def test_nested_frames_split_exclusive_and_cumulative() -> None:
    recorder = make_recorder()
    outer, inner = loc("outer"), loc("inner", 10)

    recorder.on_call(outer, 0)
    recorder.on_call(inner, 2)
    recorder.on_return(inner, 5)
    recorder.on_return(outer, 10)

    assert recorder.depth == 0
    outer_stats = recorder.table.get(outer)
    inner_stats = recorder.table.get(inner)
    assert outer_stats.ncalls == 1
    assert outer_stats.cumulative == pytest.approx(10.0)
    assert outer_stats.exclusive == pytest.approx(7.0)
    assert inner_stats.cumulative == pytest.approx(3.0)
    assert inner_stats.exclusive == pytest.approx(3.0)


def test_frame_keeps_parent_reference() -> None:
    recorder = make_recorder()
    outer = recorder.on_call(loc("outer"), 0)
    inner = recorder.on_call(loc("inner"), 1)

    assert inner.parent is outer
    assert outer.parent is None
    assert recorder.top is inner


def test_sequential_calls_accumulate() -> None:
    recorder = make_recorder()
    work = loc("work")

    ts = 0
    for duration in (1, 2, 3):
        recorder.on_call(work, ts)
        ts += duration
        recorder.on_return(work, ts)

    stats = recorder.table.get(work)
    assert stats.ncalls == 3
    assert stats.primitive_calls == 3
    assert stats.cumulative == pytest.approx(6.0)
    assert stats.cumulative_per_call == pytest.approx(2.0)


def test_return_for_other_location_raises_stack_mismatch() -> None:
    recorder = make_recorder()
    outer, inner = loc("outer"), loc("inner")
    recorder.on_call(outer, 0)

    with pytest.raises(StackMismatch) as excinfo:
        recorder.on_return(inner, 1)

    assert excinfo.value.expected == outer
    assert excinfo.value.actual == inner
    assert recorder.depth == 1


def test_return_on_empty_stack_raises_stack_mismatch() -> None:
    recorder = make_recorder()

    with pytest.raises(StackMismatch) as excinfo:
        recorder.on_return(loc("orphan"), 1)

    assert excinfo.value.expected is None


def test_exception_is_recorded_without_popping() -> None:
    recorder = StackRecorder(StatTable(), seconds_per_tick=1.0, origin=100)
    failing = loc("failing")

    recorder.on_call(failing, 100)
    record = recorder.on_exception(failing, 102, "ValueError")

    assert recorder.depth == 1
    assert record.type_name == "ValueError"
    assert record.timestamp == pytest.approx(2.0)
    assert recorder.exceptions == [record]

    recorder.on_return(failing, 103)
    assert recorder.depth == 0


def test_recursion_counts_primitive_calls_once() -> None:
    recorder = make_recorder()
    fact = loc("fact")

    recorder.on_call(fact, 0)
    recorder.on_call(fact, 1)
    recorder.on_call(fact, 2)
    recorder.on_return(fact, 3)
    recorder.on_return(fact, 4)
    recorder.on_return(fact, 5)

    stats = recorder.table.get(fact)
    assert stats.ncalls == 3
    assert stats.primitive_calls == 1
    # only the outermost invocation contributes cumulative time
    assert stats.cumulative == pytest.approx(5.0)
    assert stats.exclusive == pytest.approx(5.0)
    assert stats.exclusive <= stats.cumulative


def test_line_events_attribute_time_to_previous_line() -> None:
    recorder = make_recorder()
    func = loc("func", 4)

    recorder.on_call(func, 0)
    recorder.on_line(func, 5, 1)
    recorder.on_line(func, 6, 4)
    recorder.on_line(func, 5, 5)
    recorder.on_return(func, 10)

    lines = {record.location.lineno: record for record in recorder.table.lines()}
    assert lines[5].hits == 2
    assert lines[5].total == pytest.approx(3.0 + 5.0)
    assert lines[6].hits == 1
    assert lines[6].total == pytest.approx(1.0)
    assert lines[5].location == CodeLocation("app", "func", 5)


def test_line_event_for_frame_not_on_top_raises() -> None:
    recorder = make_recorder()
    recorder.on_call(loc("outer"), 0)
    recorder.on_call(loc("inner"), 1)

    with pytest.raises(StackMismatch):
        recorder.on_line(loc("outer"), 3, 2)


def test_unwind_closes_open_frames() -> None:
    recorder = make_recorder()
    recorder.on_call(loc("outer"), 0)
    recorder.on_call(loc("inner"), 4)

    popped = recorder.unwind(10)

    assert [frame.location.function for frame in popped] == ["inner", "outer"]
    assert recorder.depth == 0
    assert recorder.table.get(loc("outer")).cumulative == pytest.approx(10.0)
    assert recorder.table.get(loc("outer")).exclusive == pytest.approx(4.0)


def test_recorder_emits_timeline_events() -> None:
    timeline = PerfettoTimeline(ns_per_tick=1000.0, pid=7, origin_ticks=0)
    track = timeline.register_thread(1, "main")
    recorder = StackRecorder(StatTable(), timeline=timeline, track=track)

    recorder.on_call(loc("outer"), 0)
    recorder.on_call(loc("inner"), 1)
    recorder.on_exception(loc("inner"), 2, "KeyError")
    recorder.on_return(loc("inner"), 3)
    recorder.on_return(loc("outer"), 4)

    phases = [event["ph"] for event in timeline.iter_events()]
    assert phases == ["M", "M", "B", "B", "i", "E", "E"]
    assert timeline.open_depth(track) == 0


def test_timeline_requires_track() -> None:
    with pytest.raises(ValueError):
        StackRecorder(StatTable(), timeline=PerfettoTimeline())
