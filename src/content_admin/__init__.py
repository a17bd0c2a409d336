"""content-admin - schema engine for editing structured content collections."""

__version__ = "0.1.0"
