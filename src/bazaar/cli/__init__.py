"""
CLI module for Bazaar.

Provides the command-line interface using Click.
"""

from bazaar.cli.main import cli, main

__all__ = ["main", "cli"]
