"""Command line interface for identity group sync."""

from idsync.cli.app import app

__all__ = ["app"]
