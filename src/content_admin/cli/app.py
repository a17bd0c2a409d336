import os
from pathlib import Path

import typer

from content_admin.config import PROJECT_ROOT_ENV


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:  # pragma: no cover
        import content_admin

        typer.echo(f"content-admin version: {content_admin.__version__}")
        raise typer.Exit()


app = typer.Typer(name="content-admin", no_args_is_help=True)


@app.callback()
def app_callback(
    project: Path | None = typer.Option(
        None,
        "--project",
        "-p",
        help="Root of the site project (defaults to the current directory)",
        envvar=PROJECT_ROOT_ENV,
    ),
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """content-admin - schema-driven admin for static site content."""

    # The config layer reads the project root from the environment
    if project:
        os.environ[PROJECT_ROOT_ENV] = str(project.resolve())


# Register sub-command groups
schema_app = typer.Typer(help="Inspect compiled collection schemas")
app.add_typer(schema_app, name="schema")
