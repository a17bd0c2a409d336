"""Main CLI entry point for content-admin."""  # pragma: no cover

from content_admin.cli.app import app  # pragma: no cover

# Register commands
from content_admin.cli.commands import check, schema, watch  # noqa: F401  # pragma: no cover

if __name__ == "__main__":  # pragma: no cover
    app()
