"""CLI commands for content-admin."""

from . import check, schema, watch

__all__ = ["check", "schema", "watch"]
