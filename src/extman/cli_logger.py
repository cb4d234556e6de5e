"""Console output for extman.

Listings and hints go to stdout. Errors, including extension validation
reports, go to stderr.
"""

from rich.console import Console
from rich.markup import escape

_console = Console()
_err_console = Console(stderr=True)


def error(message: str) -> None:
    """Print an error message with red X to stderr.

    The message is printed literally; validation reports embed raw
    manifest values that may contain markup characters.
    """
    _err_console.print(f"[red]✗[/red] {escape(message)}")


def info(message: str) -> None:
    """Print an info message (no prefix)."""
    _console.print(message)


def dim(message: str) -> None:
    """Print a dimmed message (for secondary info)."""
    _console.print(f"[dim]{message}[/dim]")
