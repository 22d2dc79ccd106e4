"""Chatbot Flow Builder CLI - Main entry point."""

import json
import logging
import sys
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from . import __version__
from .canvas import FlowValidator, check_integrity
from .config import get_settings
from .exceptions import FlowBuilderError
from .models import GraphSnapshot
from .nodes import get_node_registry

console = Console()


def load_flow_file(path: str) -> GraphSnapshot:
    """Read a saved flow ({nodes, links|edges, ...}) from a JSON file."""
    with open(path, "r", encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as e:
            raise click.ClickException(f"{path}: invalid JSON ({e})")

    if not isinstance(data, dict):
        raise click.ClickException(f"{path}: expected a JSON object with 'nodes'")

    try:
        return GraphSnapshot.from_dict(data)
    except (KeyError, TypeError, ValueError, FlowBuilderError) as e:
        raise click.ClickException(f"{path}: malformed flow ({e})")


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    json_str = json.dumps(data, indent=2, default=str)
    console.print(Syntax(json_str, "json", theme="monokai", line_numbers=False))


@click.group()
@click.version_option(version=__version__, prog_name="chatflow")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, debug: bool):
    """Chatbot Flow Builder CLI - Validate and serve chatbot flows.

    \b
    Examples:
      chatflow validate flow.json
      chatflow nodes
      chatflow serve --port 8092
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug

    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if debug else settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@cli.command("validate")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Choice(["table", "json"]), default="table",
              help="Output format")
@click.option("--strict", is_flag=True, help="Also check link integrity")
def validate(path: str, output: str, strict: bool):
    """Check whether a saved flow may be saved again.

    Exits with status 1 when the flow is invalid.
    """
    snapshot = load_flow_file(path)
    result = FlowValidator().validate(snapshot)

    integrity_error: Optional[str] = None
    if strict:
        try:
            check_integrity(snapshot)
        except FlowBuilderError as e:
            integrity_error = str(e)

    valid = result.valid and integrity_error is None

    if output == "json":
        data: Dict[str, Any] = result.to_dict()
        data["valid"] = valid
        if strict:
            data["integrity_error"] = integrity_error
        print_json(data)
    else:
        table = Table(title=path, show_header=True, header_style="bold cyan")
        table.add_column("Check")
        table.add_column("Result")
        table.add_row("Nodes", str(len(snapshot.nodes)))
        table.add_row("Links", str(len(snapshot.links)))
        table.add_row("Entry points", ", ".join(result.entry_node_ids) or "-")
        if strict:
            table.add_row("Integrity", integrity_error or "ok")
        console.print(table)

        if valid:
            console.print("[green]✓[/green] Flow can be saved")
        else:
            console.print(f"[red]✗[/red] {result.reason or integrity_error}")

    if not valid:
        sys.exit(1)


@cli.command("nodes")
def nodes():
    """List available node kinds."""
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Kind")
    table.add_column("Name")
    table.add_column("Inputs")
    table.add_column("Outputs")
    table.add_column("Description")

    for node_def in get_node_registry().list_all():
        table.add_row(
            node_def.kind.value,
            node_def.name,
            ", ".join(p.id for p in node_def.inputs),
            ", ".join(p.id for p in node_def.outputs),
            node_def.description,
        )

    console.print(table)


@cli.command("serve")
@click.option("--host", default=None, help="Host to bind")
@click.option("--port", type=int, default=None, help="Port to bind")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the flow builder service."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "chatflow.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    cli()
