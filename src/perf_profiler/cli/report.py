"""Print the summary table of the saved session."""

from __future__ import annotations

from pathlib import Path

import click

from ._state import load_state, sort_option, state_option


@click.command(help="Print the profile summary of the saved session.")
@sort_option
@click.option("--limit", type=click.IntRange(min=1), help="Show at most this many rows")
@click.option("--lines", "show_lines", is_flag=True, help="Also print per-line statistics")
@state_option
def report(sort: str, limit: int | None, show_lines: bool, state_path: Path) -> None:
    exporter = load_state(state_path)
    for line in exporter.iter_summary(sort=sort, limit=limit):
        click.echo(line)

    if show_lines:
        click.echo("")
        if not exporter.stats.lines():
            click.echo("No line statistics recorded (start with --lines)")
            return
        for line in exporter.iter_line_summary(limit=limit):
            click.echo(line)


__all__ = ["report"]
