"""Utility functions for the stateform CLI."""

import logging
from pathlib import Path
from typing import Optional, Tuple

import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..core.config import config_manager, StateformConfig
from ..core.exceptions import StateformError, handle_stateform_error
from ..core.executor import ApplyReport, NodeStatus
from ..core.graph import ResourceGraph, load_graph
from ..core.models import Action
from ..core.planner import Plan
from ..core.state import StateStore, create_state_store
from ..providers import CloudProvider, create_provider

console = Console()
logger = logging.getLogger(__name__)

ACTION_STYLES = {
    Action.CREATE: "green",
    Action.UPDATE: "yellow",
    Action.REPLACE: "magenta",
    Action.DELETE: "red",
    Action.NOOP: "dim",
}

STATUS_STYLES = {
    NodeStatus.SUCCEEDED: "green",
    NodeStatus.FAILED: "red",
    NodeStatus.BLOCKED: "yellow",
    NodeStatus.CANCELLED: "dim",
}


def configure_logging(cfg: StateformConfig, debug: bool = False) -> None:
    """Apply the configured log level and format to the root logger"""
    level = "DEBUG" if debug else cfg.logging.log_level.upper()
    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(cfg.logging.log_format)
    for handler in root.handlers:
        handler.setFormatter(formatter)


def print_error(message: str) -> None:
    console.print(f"[red]Error:[/red] {escape(message)}")


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def print_info(message: str) -> None:
    console.print(f"[blue]ℹ[/blue] {message}")


def fail(error: StateformError, exit_code: int = 1) -> None:
    """Report a stateform error and exit"""
    handle_stateform_error(error, logger)
    print_error(error.message)
    if error.guidance:
        console.print(f"[dim]{escape(error.guidance)}[/dim]")
    raise typer.Exit(exit_code)


def load_document_graph(document: Path) -> ResourceGraph:
    try:
        return load_graph(document)
    except StateformError as e:
        fail(e)


def build_runtime(
        state_path: Optional[Path] = None,
        workspace: Optional[Path] = None
) -> Tuple[StateStore, CloudProvider]:
    """State store and provider from configuration plus CLI overrides"""
    cfg = config_manager.config
    if state_path:
        cfg.state.state_path = str(state_path)
        cfg.state.backend = "local"
    if workspace:
        cfg.provider.workspace = str(workspace)

    try:
        return create_state_store(cfg.state), create_provider(cfg.provider)
    except StateformError as e:
        fail(e)


def _format_value(value) -> str:
    text = repr(value)
    return text if len(text) <= 60 else text[:57] + "..."


def render_plan(plan: Plan, show_unchanged: bool = False) -> Table:
    """Plan as a table of actions, one row per resource"""
    table = Table(title="Execution Plan", box=box.ROUNDED, show_header=True, header_style="bold magenta")
    table.add_column("Rank", justify="right", style="dim")
    table.add_column("Action", no_wrap=True)
    table.add_column("Resource", style="cyan")
    table.add_column("Kind")
    table.add_column("Details", style="dim")

    for name in plan.order:
        change = plan[name]
        if change.action is Action.NOOP and not show_unchanged:
            continue

        style = ACTION_STYLES[change.action]
        details = [str(c) if c.forces_replacement else f"{c.path}: {_format_value(c.old)} => {_format_value(c.new)}"
                   for c in change.changes[:5]]
        if len(change.changes) > 5:
            details.append(f"... {len(change.changes) - 5} more")
        if change.reason and change.action in (Action.REPLACE, Action.DELETE):
            details.insert(0, change.reason)

        table.add_row(
            str(change.rank),
            f"[{style}]{change.action.symbol} {change.action.value}[/{style}]",
            name,
            change.kind,
            escape("\n".join(details)),
        )

    return table


def render_summary(plan: Plan) -> str:
    counts = plan.summary()
    return (
        f"Plan: [green]{counts['create']} to create[/green], "
        f"[yellow]{counts['update']} to update[/yellow], "
        f"[magenta]{counts['replace']} to replace[/magenta], "
        f"[red]{counts['delete']} to delete[/red], "
        f"{counts['no-op']} unchanged."
    )


def render_report(report: ApplyReport) -> Table:
    """Apply report as a table of outcomes"""
    table = Table(title="Apply Results", box=box.ROUNDED, show_header=True, header_style="bold magenta")
    table.add_column("Resource", style="cyan")
    table.add_column("Action")
    table.add_column("Status", justify="center")
    table.add_column("Attempts", justify="right")
    table.add_column("Details", style="dim")

    for name, outcome in report.outcomes.items():
        style = STATUS_STYLES[outcome.status]
        details = outcome.provider_id or ""
        if outcome.error is not None:
            details = escape(getattr(outcome.error, "message", str(outcome.error)))
        table.add_row(
            name,
            outcome.action.value,
            f"[{style}]{outcome.status.value}[/{style}]",
            str(outcome.attempts),
            details,
        )

    return table
