"""
Tracer configuration.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import os
import time
from typing import Callable, Mapping, Optional, Tuple


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_flag(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")


@dataclass
class TracerConfig:
    """
    Settings for a TraceSession.

    Args:
        clock: 返回当前时间 (ticks) 的函数, 默认 time.perf_counter_ns.
        ns_per_tick: 1 个 tick 等于多少纳秒.
        trace_lines: 是否请求 line 事件 (per-line 统计).
        trace_threads: 是否追踪 session 启动之后创建的线程.
        record_timeline: 是否记录 Perfetto timeline.
        ignore_modules: 模块名前缀, 匹配的函数不计入统计.
        process_name: timeline 中显示的进程名.
    """
    clock: Callable[[], float] = time.perf_counter_ns
    ns_per_tick: float = 1.0
    trace_lines: bool = False
    trace_threads: bool = True
    record_timeline: bool = True
    ignore_modules: Tuple[str, ...] = field(default_factory=tuple)
    process_name: str = "python"

    def __post_init__(self) -> None:
        self.ns_per_tick = float(self.ns_per_tick)
        if self.ns_per_tick <= 0:
            raise ValueError("ns_per_tick must be positive")
        self.ignore_modules = tuple(self.ignore_modules)

    @property
    def seconds_per_tick(self) -> float:
        return self.ns_per_tick / 1e9

    def is_ignored(self, module: str) -> bool:
        return any(module == prefix or module.startswith(prefix + ".") for prefix in self.ignore_modules)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> TracerConfig:
        """Build a config from PERF_PROFILER_* variables; keyword overrides win."""
        env = os.environ if environ is None else environ
        ignore = tuple(
            piece.strip() for piece in env.get("PERF_PROFILER_IGNORE", "").split(",") if piece.strip()
        )
        values = {
            "trace_lines": _env_flag(env, "PERF_PROFILER_TRACE_LINES", False),
            "trace_threads": _env_flag(env, "PERF_PROFILER_TRACE_THREADS", True),
            "record_timeline": _env_flag(env, "PERF_PROFILER_TIMELINE", True),
            "ignore_modules": ignore,
        }
        if env.get("PERF_PROFILER_NS_PER_TICK"):
            values["ns_per_tick"] = float(env["PERF_PROFILER_NS_PER_TICK"])
        values.update(overrides)
        return cls(**values)
