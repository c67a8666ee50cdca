"""Export the saved session to a file."""

from __future__ import annotations

from pathlib import Path

import click

from perf_profiler.errors import TracerError
from perf_profiler.exporter import DISPLAY_TIME_UNITS

from ._state import load_state, sort_option, state_option


@click.command(help="Write the saved session to PATH.")
@click.argument("path", type=click.Path(dir_okay=False))
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["timeline", "summary", "stats"]),
    default="timeline",
    show_default=True,
    help="timeline: Chrome Trace Event JSON for Perfetto; summary: text table; stats: JSON state",
)
@sort_option
@click.option("--limit", type=click.IntRange(min=1), help="Rows in a summary export")
@click.option(
    "--display-time-unit",
    type=click.Choice(list(DISPLAY_TIME_UNITS)),
    default="ns",
    show_default=True,
    help="Time unit Perfetto displays for timeline exports",
)
@state_option
def export(
    path: str,
    fmt: str,
    sort: str,
    limit: int | None,
    display_time_unit: str,
    state_path: Path,
) -> None:
    exporter = load_state(state_path)
    try:
        if fmt == "timeline":
            if exporter.timeline is None:
                raise click.ClickException("Session was recorded without a timeline (--no-timeline)")
            exporter.write_timeline(path, display_time_unit=display_time_unit)
        elif fmt == "summary":
            exporter.write_summary(path, sort=sort, limit=limit)
        else:
            exporter.write_stats(path)
    except TracerError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Exported {fmt} to {path}")


__all__ = ["export"]
