"""Main CLI entry point for stateform."""

import os
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape

from .. import __version__
from ..core.config import config_manager
from ..core.exceptions import StateformError
from .apply import apply, destroy, plan
from .inspect import graph, show, validate
from .utils import configure_logging, console

app = typer.Typer(
    name="stateform",
    help="stateform - reconcile declarative cloud resources against applied state.",
    add_completion=False,
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
)

app.command()(plan)
app.command()(apply)
app.command()(destroy)
app.command()(validate)
app.command()(graph)
app.command()(show)


def _version_callback(value: bool):
    if value:
        console.print(f"stateform version {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
        version: Optional[bool] = typer.Option(
            None, "--version", "-v",
            help="Show stateform version",
            callback=_version_callback,
            is_eager=True
        ),
        config_file: Optional[Path] = typer.Option(
            None, "--config", "-c",
            help="Configuration file (TOML or JSON)"
        ),
        debug: bool = typer.Option(
            False, "--debug", "-d",
            help="Enable debug logging"
        )
):
    """
    Plan and apply desired-state documents.
    """
    if debug:
        os.environ["STATEFORM_LOG_LEVEL"] = "DEBUG"

    try:
        cfg = config_manager.load_config(config_file)
    except StateformError as e:
        console.print(f"[red]Error:[/red] {escape(e.message)}")
        raise typer.Exit(1)

    configure_logging(cfg, debug=debug)


def main():
    """Main entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise SystemExit(130)
    except StateformError as e:
        if os.getenv("STATEFORM_LOG_LEVEL") == "DEBUG":
            raise
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        console.print("[dim]Run with --debug for more details[/dim]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
