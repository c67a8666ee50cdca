"""Run a script under a trace session."""

from __future__ import annotations

import builtins
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Sequence, Tuple

import click

from perf_profiler.config import TracerConfig
from perf_profiler.errors import TracerError
from perf_profiler.session import TraceSession

from ._state import state_option

logger = logging.getLogger(__name__)


def _exit_status(code: Any) -> int:
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    click.echo(str(code), err=True)
    return 1


def run_script(script: str, args: Sequence[str], config: TracerConfig) -> Tuple[TraceSession, int]:
    """Execute ``script`` as ``__main__`` while a session records it."""
    path = os.path.abspath(script)
    with open(path, "rb") as fh:
        code = compile(fh.read(), path, "exec")
    namespace: Dict[str, Any] = {
        "__file__": path,
        "__name__": "__main__",
        "__package__": None,
        "__cached__": None,
        "__builtins__": builtins,
    }

    saved_argv = sys.argv
    sys.argv = [path, *args]
    sys.path.insert(0, os.path.dirname(path))
    session = TraceSession(config)
    exit_code: Any = None
    failure: BaseException | None = None
    try:
        session.start()
        # nothing but the script may run between start and stop
        try:
            exec(code, namespace)
        except SystemExit as exc:
            exit_code = exc.code
        except Exception as exc:
            failure = exc
        finally:
            if session.active:
                session.stop()
    finally:
        sys.argv = saved_argv
        sys.path.remove(os.path.dirname(path))

    if failure is not None:
        logger.error("Traced script %s raised", script, exc_info=failure)
        return session, 1
    return session, _exit_status(exit_code)


@click.command(
    help="Run SCRIPT under a trace session and save the results.",
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)
@click.option("--lines/--no-lines", default=None, help="Collect per-line statistics")
@click.option("--timeline/--no-timeline", default=None, help="Record the Perfetto timeline")
@click.option("--threads/--no-threads", default=None, help="Trace threads started by the script")
@click.option("--ignore", multiple=True, help="Module prefix to leave out (repeatable)")
@click.option("--force", is_flag=True, help="Replace an existing saved session")
@state_option
@click.argument("script", type=click.Path(exists=True, dir_okay=False))
@click.argument("script_args", nargs=-1, type=click.UNPROCESSED)
def start(
    lines: bool | None,
    timeline: bool | None,
    threads: bool | None,
    ignore: Tuple[str, ...],
    force: bool,
    state_path: Path,
    script: str,
    script_args: Tuple[str, ...],
) -> None:
    """Trace the script, then persist stats and timeline to the state file."""
    if state_path.exists() and not force:
        raise click.ClickException(
            f"A trace session is already active ({state_path}); run 'stop' first or pass --force"
        )

    overrides: Dict[str, Any] = {"process_name": Path(script).name}
    if lines is not None:
        overrides["trace_lines"] = lines
    if timeline is not None:
        overrides["record_timeline"] = timeline
    if threads is not None:
        overrides["trace_threads"] = threads
    if ignore:
        overrides["ignore_modules"] = ignore
    try:
        config = TracerConfig.from_env(**overrides)
        session, status = run_script(script, script_args, config)
    except (TracerError, ValueError, SyntaxError, OSError) as exc:
        raise click.ClickException(str(exc)) from exc

    if session.aborted:
        raise click.ClickException(f"Trace session aborted: {session.error}")

    try:
        state_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise click.ClickException(f"Cannot create {state_path.parent}: {exc}") from exc
    try:
        session.exporter().write_stats(str(state_path))
    except TracerError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(
        f"Recorded {session.stats.total_calls} calls over {len(session.stats)} locations; "
        f"session saved to {state_path}"
    )
    if status:
        sys.exit(status)


__all__ = ["run_script", "start"]
