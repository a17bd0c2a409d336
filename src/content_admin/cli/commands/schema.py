"""Schema CLI commands.

Registered as a subcommand group: `content-admin schema list`,
`content-admin schema show NAME`.
"""

import json
from dataclasses import asdict
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from content_admin.cli.app import schema_app
from content_admin.cli.commands.command_utils import load_project, run_async
from content_admin.schema.cache import load_schemas
from content_admin.schema.enrichment import enrich_schema_with_block_types
from content_admin.schema.errors import SchemaEngineError

console = Console()


def _load_or_exit():
    try:
        return run_async(load_schemas())
    except SchemaEngineError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)


# --- List ---


@schema_app.command("list")
def list_schemas() -> None:
    """List compiled collection schemas."""
    load_project()
    schemas = _load_or_exit()

    if not schemas:
        console.print("[yellow]No collections declared.[/yellow]")
        return

    table = Table(title="Collections")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("Fields", justify="right")
    table.add_column("Block unions", justify="right")

    for compiled in schemas.values():
        table.add_row(
            compiled.name,
            compiled.type,
            str(len(compiled.schema.get("properties", {}))),
            str(len(compiled.discriminated_unions)),
        )

    console.print(table)


# --- Show ---


@schema_app.command()
def show(
    name: Annotated[str, typer.Argument(help="Collection name")],
    raw: bool = typer.Option(False, "--raw", help="Show the schema without block types"),
) -> None:
    """Show the JSON Schema of one collection.

    By default the form schema is shown, with block types attached to every
    array that holds a discriminated union.
    """
    load_project()
    schemas = _load_or_exit()

    compiled = schemas.get(name)
    if compiled is None:
        available = ", ".join(schemas) or "none"
        console.print(f"[red]No collection named {name!r} (available: {available})[/red]")
        raise typer.Exit(1)

    schema = compiled.schema
    if not raw:
        schema = enrich_schema_with_block_types(schema, compiled.discriminated_unions)

    document = {
        "name": compiled.name,
        "type": compiled.type,
        "schema": schema,
        "discriminatedUnions": [asdict(union) for union in compiled.discriminated_unions],
    }
    console.print_json(json.dumps(document, default=str))
