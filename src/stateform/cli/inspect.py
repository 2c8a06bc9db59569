"""validate, graph and show commands for stateform."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich import box
from rich.table import Table

from .utils import build_runtime, console, load_document_graph, print_info, print_success


def validate(
        document: Path = typer.Argument(..., help="Desired-state document (YAML or JSON)"),
):
    """
    Check a document without touching state or the provider.
    """
    graph = load_document_graph(document)
    print_success(f"Document is valid: {len(graph)} resources in {graph.depth} ranks.")


def graph(
        document: Path = typer.Argument(..., help="Desired-state document (YAML or JSON)"),
        as_json: bool = typer.Option(False, "--json", help="Print the graph as JSON"),
):
    """
    Show resources grouped by rank with their edges.
    """
    resource_graph = load_document_graph(document)

    if as_json:
        console.print_json(json.dumps(resource_graph.to_dict()))
        return

    table = Table(title="Resource Graph", box=box.ROUNDED, header_style="bold magenta")
    table.add_column("Rank", justify="right")
    table.add_column("Resource", style="cyan")
    table.add_column("Kind")
    table.add_column("Depends on")
    table.add_column("After", style="dim")

    for rank, batch in enumerate(resource_graph.get_parallel_groups()):
        for name in batch:
            node = resource_graph.node(name)
            table.add_row(
                str(rank), name, node.kind,
                ", ".join(sorted(node.dependencies)),
                ", ".join(sorted(node.after)),
            )

    console.print(table)


def show(
        name: Optional[str] = typer.Argument(None, help="Show the full state of one resource"),
        state_path: Optional[Path] = typer.Option(None, "--state-path", help="Directory holding applied state"),
):
    """
    List the applied state.
    """
    state_store, _ = build_runtime(state_path)

    if name:
        state = state_store.get(name)
        if state is None:
            console.print(f"[red]Error:[/red] No state for '{name}'")
            raise typer.Exit(1)
        console.print_json(json.dumps(state.to_dict()))
        return

    states = state_store.all()
    if not states:
        print_info("State is empty.")
        return

    table = Table(title="Applied State", box=box.ROUNDED, header_style="bold magenta")
    table.add_column("Resource", style="cyan")
    table.add_column("Kind")
    table.add_column("Provider ID")
    table.add_column("Updated", style="dim")

    for state in states.values():
        table.add_row(state.name, state.kind, state.provider_id, state.updated_at)

    console.print(table)
