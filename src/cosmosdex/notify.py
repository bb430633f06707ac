"""
Console notifications shown after user actions.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.markup import escape

from .errors import friendly_error_message

logger = logging.getLogger(__name__)


class Notifier:
    """Prints one-line success/error/info notices to the console."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def success(self, message: str):
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def info(self, message: str):
        self.console.print(f"[cyan]ℹ[/cyan] {escape(message)}")

    def warning(self, message: str):
        self.console.print(f"[yellow]⚠[/yellow] {escape(message)}")

    def error(self, message: str):
        self.console.print(f"[red]✗[/red] {escape(message)}")

    def failure(self, action: str, error: BaseException):
        """Report a failed action with its rewritten error message."""
        logger.debug(f"{action} failed: {error!r}")
        label = action[:1].upper() + action[1:]
        self.error(f"{label} failed: {friendly_error_message(error, action)}")
