"""CLI package for Git Portal

This package provides the interactive menus that select a provider, run the
token and OAuth portals, and browse repositories and issues.
"""

from cli.cli_app import GitPortalCLI
from cli.main import main

__all__ = [
    "GitPortalCLI",
    "main",
]
