"""Location and loading of the saved session state shared by the commands."""

from __future__ import annotations

from pathlib import Path

import click

from perf_profiler.exporter import Exporter

DEFAULT_STATE_PATH = Path(".perf_profiler") / "session.json"

state_option = click.option(
    "--state",
    "state_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_STATE_PATH,
    envvar="PERF_PROFILER_STATE",
    show_default=True,
    help="Saved session state file",
)

sort_option = click.option(
    "--sort",
    type=click.Choice(["cumulative", "exclusive", "calls"]),
    default="cumulative",
    show_default=True,
    help="Sort key for the summary table",
)


def load_state(state_path: Path) -> Exporter:
    if not state_path.exists():
        raise click.ClickException(f"No trace session recorded at {state_path}; run 'start' first")
    try:
        return Exporter.load(str(state_path))
    except (OSError, ValueError, KeyError) as exc:
        raise click.ClickException(f"Cannot read session state {state_path}: {exc}") from exc


__all__ = ["DEFAULT_STATE_PATH", "load_state", "sort_option", "state_option"]
