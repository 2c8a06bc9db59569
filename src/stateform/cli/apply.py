"""plan, apply and destroy commands for stateform."""

from pathlib import Path
from typing import Optional

import typer

from ..core.exceptions import StateformError
from ..core.executor import PlanExecutor
from ..core.planner import Plan, Planner
from .utils import (
    build_runtime,
    console,
    fail,
    load_document_graph,
    print_error,
    print_success,
    render_plan,
    render_report,
    render_summary,
)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CHANGES_PENDING = 2


def _concurrency_option():
    return typer.Option(None, "--concurrency", "-n", min=1, help="Maximum parallel provider calls")


def _state_option():
    return typer.Option(None, "--state-path", help="Directory holding applied state")


def _workspace_option():
    return typer.Option(None, "--workspace", help="Local provider workspace directory")


def plan(
        document: Path = typer.Argument(..., help="Desired-state document (YAML or JSON)"),
        state_path: Optional[Path] = _state_option(),
        workspace: Optional[Path] = _workspace_option(),
        show_unchanged: bool = typer.Option(False, "--show-unchanged", help="List resources with no changes"),
):
    """
    Show the actions needed to reach the desired state.

    Exits 0 when nothing would change, 2 when changes are pending.
    """
    graph = load_document_graph(document)
    state_store, _ = build_runtime(state_path, workspace)

    try:
        result = Planner(state_store).plan(graph)
    except StateformError as e:
        fail(e)

    if not result.has_changes:
        print_success("No changes. Infrastructure matches the desired state.")
        raise typer.Exit(EXIT_OK)

    console.print(render_plan(result, show_unchanged=show_unchanged))
    console.print(render_summary(result))
    raise typer.Exit(EXIT_CHANGES_PENDING)


def _execute(result: Plan, state_store, provider, concurrency: Optional[int]) -> None:
    console.print(render_plan(result))
    console.print(render_summary(result))

    executor = PlanExecutor(provider, state_store, max_workers=concurrency)
    try:
        report = executor.execute(result)
    except StateformError as e:
        fail(e)

    console.print(render_report(report))

    if report.success:
        print_success(f"Apply complete in {report.execution_time:.2f}s.")
        raise typer.Exit(EXIT_OK)

    counts = report.counts()
    print_error(
        f"{counts['failed']} failed, {counts['blocked']} blocked, "
        f"{counts['cancelled']} cancelled."
    )
    raise typer.Exit(EXIT_ERROR)


def apply(
        document: Path = typer.Argument(..., help="Desired-state document (YAML or JSON)"),
        concurrency: Optional[int] = _concurrency_option(),
        state_path: Optional[Path] = _state_option(),
        workspace: Optional[Path] = _workspace_option(),
):
    """
    Apply the desired state.

    Exits 0 when every resource succeeded, 1 on any failure.
    """
    graph = load_document_graph(document)
    state_store, provider = build_runtime(state_path, workspace)

    try:
        result = Planner(state_store).plan(graph)
    except StateformError as e:
        fail(e)

    if not result.has_changes:
        print_success("No changes. Infrastructure matches the desired state.")
        raise typer.Exit(EXIT_OK)

    _execute(result, state_store, provider, concurrency)


def destroy(
        concurrency: Optional[int] = _concurrency_option(),
        state_path: Optional[Path] = _state_option(),
        workspace: Optional[Path] = _workspace_option(),
        yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
):
    """
    Delete every resource recorded in state.
    """
    state_store, provider = build_runtime(state_path, workspace)
    result = Planner(state_store).plan_destroy()

    if not result.has_changes:
        print_success("Nothing to destroy.")
        raise typer.Exit(EXIT_OK)

    if not yes and not typer.confirm(f"Destroy {len(result)} resources?"):
        raise typer.Exit(EXIT_ERROR)

    _execute(result, state_store, provider, concurrency)
