"""Utility functions for commands."""

import asyncio
import sys
from collections.abc import Coroutine
from typing import TypeVar

from rich.console import Console

from content_admin.config import ConfigManager, ContentAdminConfig
from content_admin.schema.cache import SchemaCache, set_schema_cache
from content_admin.utils import setup_logging

console = Console()

T = TypeVar("T")


def load_project(log_level: str | None = None) -> ContentAdminConfig:
    """Load the project configuration and point the schema cache at it."""
    config = ConfigManager().load_config()
    setup_logging(log_level or config.log_level)
    set_schema_cache(SchemaCache.for_config(config))
    return config


def run_async(coro: Coroutine[None, None, T]) -> T:
    """Run a coroutine to completion from a synchronous command."""
    if sys.platform == "win32":  # pragma: no cover
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    return asyncio.run(coro)
