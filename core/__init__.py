"""Shared infrastructure: SQLite helpers, paths, settings and logging setup."""
