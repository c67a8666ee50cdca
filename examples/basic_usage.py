"""Basic usage: profile a small workload and save a Perfetto timeline."""

from __future__ import annotations

from pathlib import Path

from perf_profiler import TraceSession, TracerConfig


def fib(n: int) -> int:
    return n if n < 2 else fib(n - 1) + fib(n - 2)


def workload() -> int:
    return sum(fib(n) for n in range(15))


def main() -> None:
    with TraceSession(TracerConfig(process_name="basic-usage")) as session:
        workload()

    exporter = session.exporter()
    for line in exporter.iter_summary(sort="cumulative", limit=10):
        print(line)

    trace_path = Path(__file__).with_name("basic_trace.json")
    exporter.write_timeline(trace_path.as_posix())
    print(f"Trace saved to {trace_path}. Import it at https://ui.perfetto.dev")


if __name__ == "__main__":
    main()
