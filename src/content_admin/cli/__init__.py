"""Command-line interface for content-admin."""
