"""Tests for TracerConfig."""

from __future__ import annotations

import pytest

from perf_profiler import TracerConfig


def test_defaults() -> None:
    config = TracerConfig()

    assert config.ns_per_tick == 1.0
    assert config.seconds_per_tick == pytest.approx(1e-9)
    assert config.trace_lines is False
    assert config.trace_threads is True
    assert config.record_timeline is True
    assert config.ignore_modules == ()


def test_from_env_reads_variables() -> None:
    config = TracerConfig.from_env({
        "PERF_PROFILER_TRACE_LINES": "yes",
        "PERF_PROFILER_TRACE_THREADS": "0",
        "PERF_PROFILER_TIMELINE": "false",
        "PERF_PROFILER_IGNORE": "json, logging ,",
        "PERF_PROFILER_NS_PER_TICK": "0.5",
    })

    assert config.trace_lines is True
    assert config.trace_threads is False
    assert config.record_timeline is False
    assert config.ignore_modules == ("json", "logging")
    assert config.ns_per_tick == 0.5


def test_from_env_overrides_win() -> None:
    config = TracerConfig.from_env({"PERF_PROFILER_TRACE_LINES": "1"}, trace_lines=False, process_name="x")

    assert config.trace_lines is False
    assert config.process_name == "x"


def test_invalid_values_raise() -> None:
    with pytest.raises(ValueError):
        TracerConfig.from_env({"PERF_PROFILER_TRACE_LINES": "maybe"})
    with pytest.raises(ValueError):
        TracerConfig(ns_per_tick=0)


def test_ignore_matches_module_prefixes() -> None:
    config = TracerConfig(ignore_modules=["json"])

    assert config.is_ignored("json")
    assert config.is_ignored("json.encoder")
    assert not config.is_ignored("jsonschema")
