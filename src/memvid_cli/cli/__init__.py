"""memvid command-line interface."""

from memvid_cli.cli.main import cli, main

__all__ = ["cli", "main"]
