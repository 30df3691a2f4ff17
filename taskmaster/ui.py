"""Console output, progress indicators and logging setup."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.status import Status

# Global console instances
console = Console()
err_console = Console(stderr=True)


class ConsoleProgress:
    """Progress reporter backed by a rich status spinner."""

    def __init__(self, output: Optional[Console] = None):
        self.console = output or err_console

    def start(self, label: str) -> Status:
        status = self.console.status(f"[cyan]{label}", spinner="dots")
        status.start()
        return status

    def update(self, handle: Optional[Status], text: str) -> None:
        if handle is not None:
            handle.update(f"[cyan]{text}")

    def stop(self, handle: Optional[Status]) -> None:
        if handle is not None:
            handle.stop()


class NullProgress:
    """Progress reporter for non-interactive use."""

    def start(self, label: str) -> None:
        return None

    def update(self, handle: None, text: str) -> None:
        pass

    def stop(self, handle: None) -> None:
        pass


def setup_logging(level: str = "INFO") -> None:
    """Route the package loggers through a RichHandler on stderr."""
    handler = RichHandler(console=err_console, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger("taskmaster")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False


def print_error(message: str) -> None:
    err_console.print(f"[red]✗[/red] {escape(message)}", highlight=False)


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {escape(message)}")
