"""Command line interface for gitscout."""

from gitscout.cli.main import main

__all__ = ["main"]
