"""
withserver CLI package.

Framework utilities for the command:
- _output: Console reporter (stdout progress, stderr warnings)
- _args: Argument registration helpers
"""
from ._output import ConsoleReporter, print_error
from ._args import (
    add_repo_root_flag,
    add_server_flags,
    add_verbose_flag,
    config_overrides_from_args,
)


def main(argv=None) -> int:
    from ._dispatcher import main as _main

    return _main(argv)


__all__ = [
    "ConsoleReporter",
    "print_error",
    "add_repo_root_flag",
    "add_server_flags",
    "add_verbose_flag",
    "config_overrides_from_args",
    "main",
]
