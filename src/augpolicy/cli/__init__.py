"""Command line interface."""

from augpolicy.cli.main import cli

__all__ = ["cli"]
