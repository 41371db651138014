"""Typer CLI root application."""

import typer

from ph_locator.core.config import get_settings
from ph_locator.core.logging import setup_logging

app = typer.Typer(name="ph-locator", help="Philippine address location resolution CLI")


@app.callback()
def _main_callback() -> None:
    """Initialize logging for all CLI commands."""
    settings = get_settings()
    setup_logging(settings.log_level, log_dir=settings.log_dir, json_logs=settings.log_json)


def _register_subcommands() -> None:
    """Register all CLI commands."""
    from ph_locator.cli.resolve_cmd import center, nearest_street, resolve, street_geometry

    app.command("resolve")(resolve)
    app.command("center")(center)
    app.command("nearest-street")(nearest_street)
    app.command("street-geometry")(street_geometry)


_register_subcommands()
