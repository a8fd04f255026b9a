"""Read-only local HTTP API for the VideoArchive catalog."""

__version__ = "1.0.0"
