#!/usr/bin/env python3
"""Trace worker threads and per-line timings with real sleeps."""

from __future__ import annotations

import threading
import time
from pathlib import Path

from perf_profiler import TraceSession, TracerConfig


def sleepy(seconds: float) -> None:
    time.sleep(seconds)
    time.sleep(seconds / 2)


def worker(seconds: float) -> None:
    for _ in range(3):
        sleepy(seconds)


def main() -> None:
    session = TraceSession(TracerConfig(trace_lines=True, process_name="threads-demo"))
    print("Recording worker threads ...")

    session.start()
    threads = [threading.Thread(target=worker, args=(0.05 * (i + 1),), name=f"worker-{i}") for i in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    session.stop()

    exporter = session.exporter()
    for line in exporter.iter_summary(sort="exclusive", limit=8):
        print(line)
    print()
    for line in exporter.iter_line_summary(limit=8):
        print(line)

    output_path = Path(__file__).with_name("threads_trace.json")
    exporter.write_timeline(output_path.as_posix(), display_time_unit="ms")
    print(f"Trace saved to {output_path}. Load it in https://ui.perfetto.dev to inspect the threads.")


if __name__ == "__main__":
    main()
