"""
Exceptions raised by the schema compilation pipeline.
"""

from pathlib import Path


class SchemaEngineError(Exception):
    """Base exception for all schema engine errors."""

    pass


class BundleError(SchemaEngineError):
    """Raised when the schema-definition module cannot be bundled.

    Covers missing or unreadable files, syntax errors, and imports that are
    neither local, installed, nor the host virtual module.
    """

    def __init__(self, message: str, path: Path | None = None, lineno: int | None = None):
        self.path = path
        self.lineno = lineno
        location = ""
        if path is not None:
            location = f" ({path}"
            if lineno is not None:
                location += f", line {lineno}"
            location += ")"
        super().__init__(f"{message}{location}")


class SchemaSourceNotFoundError(BundleError):
    """Raised when none of the candidate schema-definition files exist."""

    def __init__(self, checked_paths: list[Path]):
        self.checked_paths = list(checked_paths)
        listing = "\n".join(f"  - {p}" for p in self.checked_paths)
        super().__init__(f"No content config found. Checked:\n{listing}")


class ConfigShapeError(SchemaEngineError):
    """Raised when the loaded module does not declare collections correctly."""

    pass


class LoadError(SchemaEngineError):
    """Raised when user code fails while the bundled module is executed."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


class SchemaConversionError(SchemaEngineError):
    """Raised when a schema node cannot be converted to JSON Schema.

    Always recovered inside the walker; never surfaces to callers.
    """

    pass
