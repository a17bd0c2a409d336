"""Watch command - keep schemas compiled while the definitions change."""

import asyncio
import signal

import typer
from loguru import logger

from content_admin.cli.app import app
from content_admin.cli.commands.command_utils import load_project, run_async
from content_admin.schema.cache import (
    load_schemas,
    stop_watching_schema_config,
    watch_schema_config,
)
from content_admin.schema.errors import SchemaEngineError


async def run_watch() -> None:
    """Compile schemas, then recompile on every change until interrupted.

    1. Loads the schemas once so errors are reported up front
    2. Starts the schema watcher
    3. Blocks until SIGINT/SIGTERM, then stops the watcher
    """
    # --- Initial load ---
    try:
        schemas = await load_schemas()
        logger.info(f"Loaded {len(schemas)} collection schema(s)")
    except SchemaEngineError as e:
        logger.warning(f"Initial schema load failed, waiting for changes: {e}")

    # --- Signal handling ---
    shutdown_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Shutdown signal received")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    # --- Run ---
    watcher = watch_schema_config()
    if watcher is None or not watcher.running:
        typer.echo("Nothing to watch", err=True)
        raise typer.Exit(1)

    try:
        logger.info("Schema watcher running, press Ctrl+C to stop")
        await shutdown_event.wait()
    finally:
        await stop_watching_schema_config()


@app.command()
def watch() -> None:
    """Watch the schema definitions and recompile them on change."""
    load_project()
    run_async(run_watch())
