"""Tear down the saved trace session."""

from __future__ import annotations

from pathlib import Path

import click

from ._state import state_option


@click.command(help="Discard the saved trace session.")
@state_option
def stop(state_path: Path) -> None:
    if not state_path.exists():
        raise click.ClickException(f"No trace session is active ({state_path})")
    try:
        state_path.unlink()
    except OSError as exc:
        raise click.ClickException(f"Cannot remove {state_path}: {exc}") from exc
    click.echo(f"Trace session at {state_path} stopped")


__all__ = ["stop"]
