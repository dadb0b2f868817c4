"""
CLI entry point for withserver.

withserver has a single command, so the dispatcher builds one flat parser
from the ``run`` command's ``register_args`` and forwards to its ``main``.
"""

from __future__ import annotations

import argparse
import signal
import sys

from withserver.cli import run as run_command
from withserver.cli._output import print_error
from withserver.core.exceptions import SignalInterrupt, exit_code_for_signal


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="withserver",
        description=run_command.SUMMARY,
        epilog=(
            "Exit status is the test command's own exit code; 1 when the server\n"
            "could not be started or never became ready; 130/143 when interrupted."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )
    run_command.register_args(parser)
    parser.set_defaults(_func=run_command.main)
    return parser


def _get_version() -> str:
    """Get withserver version string."""
    from withserver import __version__

    return __version__


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the withserver CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()
    args = parser.parse_args(list(argv))

    if not args.test_command:
        parser.print_usage(sys.stderr)
        print_error("a test command is required")
        return 1

    try:
        return int(args._func(args))
    except SignalInterrupt as exc:
        return exc.exit_code
    except KeyboardInterrupt:
        # Interrupted before the lifecycle installed its own handlers.
        return exit_code_for_signal(signal.SIGINT)


if __name__ == "__main__":
    sys.exit(main())
