"""Command-line interface for filecache."""

from filecache.cli.main import cli

__all__ = ["cli"]
