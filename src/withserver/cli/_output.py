"""Console output for withserver runs.

Progress lines go to stdout, warnings and errors to stderr. The lifecycle
core never prints directly; it calls the ``log``/``warn`` callbacks of a
:class:`ConsoleReporter`.
"""
from __future__ import annotations

import sys
from typing import IO, Optional


class ConsoleReporter:
    """Line-oriented reporter backing the core's log/warn callbacks."""

    def __init__(self, out: Optional[IO[str]] = None, err: Optional[IO[str]] = None):
        """Initialize reporter.

        Args:
            out: Stream for progress output (default: sys.stdout at call time)
            err: Stream for warnings and errors (default: sys.stderr at call time)
        """
        self._out = out
        self._err = err

    def log(self, message: str) -> None:
        print(message, file=self._out or sys.stdout, flush=True)

    def warn(self, message: str) -> None:
        print(message, file=self._err or sys.stderr, flush=True)


def print_error(message: str) -> None:
    """Print error message to stderr."""
    print(f"Error: {message}", file=sys.stderr)


__all__ = ["ConsoleReporter", "print_error"]
