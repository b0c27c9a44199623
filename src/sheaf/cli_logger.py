"""CLI output utilities for consistent messaging.

Everything goes to stderr: `sheaf source` owns stdout for the generated script.
"""

import threading
from enum import IntEnum

from rich.console import Console

STATUS_WIDTH = 12


class Verbosity(IntEnum):
    """Requested amount of output."""

    QUIET = 0
    NORMAL = 1
    VERBOSE = 2


_console = Console(stderr=True, highlight=False)
_verbosity = Verbosity.NORMAL
_write_lock = threading.Lock()


def configure(verbosity: Verbosity = Verbosity.NORMAL, no_color: bool = False) -> None:
    """Set the process-wide verbosity and color mode."""
    global _console, _verbosity
    _verbosity = verbosity
    _console = Console(stderr=True, highlight=False, no_color=no_color)


def _print(message: str, minimum: Verbosity = Verbosity.NORMAL) -> None:
    if _verbosity < minimum:
        return
    with _write_lock:
        _console.print(message)


def error(message: str) -> None:
    """Print an error message with red X. Never silenced by --quiet."""
    _print(f"[red]✗[/red] {message}", Verbosity.QUIET)


def warning(message: str) -> None:
    """Print a warning message with yellow exclamation."""
    _print(f"[yellow]![/yellow] {message}", Verbosity.QUIET)


def info(message: str) -> None:
    """Print an info message (no prefix)."""
    _print(message)


def status(verb: str, subject: object, *, verbose: bool = False) -> None:
    """Print a right-aligned progress line, e.g. ``     Cloned https://...``.

    Args:
        verb: Short past-tense verb.
        subject: What the verb applies to (URL, path, plugin name).
        verbose: Only show this line with --verbose.
    """
    minimum = Verbosity.VERBOSE if verbose else Verbosity.NORMAL
    _print(f"[bold green]{verb:>{STATUS_WIDTH}}[/bold green] {subject}", minimum)


def header(verb: str, subject: object) -> None:
    """Print a bold section header for a file-level action (Loaded, Locked)."""
    _print(f"[bold]{verb:>{STATUS_WIDTH}}[/bold] [dim]{subject}[/dim]")
