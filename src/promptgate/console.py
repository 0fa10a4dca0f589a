"""Shared rich consoles for CLI output and log records."""

from rich.console import Console

console = Console()
err_console = Console(stderr=True)
