"""
Command-line interface for huiben.

This package contains CLI implementations using Click.
"""

from huiben.cli.commands import cli, main

__all__ = ["cli", "main"]
