"""Command-line interface for confusable_vision.

This module provides the CLI using Typer with rich output for
user-friendly feedback and progress reporting.

Key features:
- Progress bars for batch scoring
- Font registry and coverage listing
- Validation gates on installed fonts
- Debug renders of a single pair
"""

from confusable_vision.cli.app import cli, main

__all__ = ["cli", "main"]
