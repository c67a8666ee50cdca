"""Command-line interface for PerfProfiler (Click-based)."""

from __future__ import annotations

import logging

import click

from ._group import OrderedGroup
from .export import export
from .report import report
from .start import start
from .stop import stop


@click.group(cls=OrderedGroup, help="Trace and profile Python scripts")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Top-level CLI group."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


cli.add_command(start, "start")
cli.add_command(stop, "stop")
cli.add_command(report, "report")
cli.add_command(export, "export")


def main() -> None:
    """CLI entry point for console scripts."""
    cli()


__all__ = ["cli", "main"]
