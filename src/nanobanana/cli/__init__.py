"""
Command-line interface for nanobanana.

This package contains CLI implementations using Click.
Commands use the public API: from nanobanana import ...
"""

from nanobanana.cli.commands import cli, main

__all__ = ["cli", "main"]
