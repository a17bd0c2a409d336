"""Check command - verify that a project can be administered."""

import typer
from rich.console import Console
from rich.markup import escape

from content_admin.cli.app import app
from content_admin.cli.commands.command_utils import load_project, run_async
from content_admin.config import validate_project
from content_admin.schema.cache import load_schemas
from content_admin.schema.errors import SchemaEngineError

console = Console()


@app.command()
def check(
    compile_schemas: bool = typer.Option(
        True, "--compile/--no-compile", help="Also compile the schema definitions"
    ),
) -> None:
    """Check the project layout and schema definitions.

    Exits with code 1 if the project is missing its content directory or
    schema-definition file, or if the schema definitions fail to compile.
    """
    config = load_project()
    result = validate_project(config)

    if not result.valid:
        console.print(f"[red]Project at {escape(str(config.project_root))} is not ready:[/red]")
        for problem in result.problems:
            console.print(f"  [red]✗[/red] {escape(problem.message)}")
            if problem.hint:
                console.print(f"    [dim]{escape(problem.hint)}[/dim]")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Project layout OK ({escape(str(config.project_root))})")
    if not compile_schemas:
        return

    try:
        schemas = run_async(load_schemas())
    except SchemaEngineError as e:
        console.print(f"[red]✗ Schema compilation failed: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Compiled {len(schemas)} collection schema(s)")
