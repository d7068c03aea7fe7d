"""CLI commands for File Archiver."""

from .core import app


def main() -> None:
    """Console entry point for the File Archiver CLI."""
    app()


__all__ = ["app", "main"]
