"""Argument registration helpers for the withserver CLI."""
from __future__ import annotations

import argparse
from typing import Any, Dict


def add_repo_root_flag(parser: argparse.ArgumentParser) -> None:
    """Add --repo-root flag for project root override.

    Args:
        parser: ArgumentParser to add the flag to
    """
    parser.add_argument(
        "--repo-root",
        type=str,
        help="Project root to serve and read .withserver/ config from (default: cwd)",
    )


def add_verbose_flag(parser: argparse.ArgumentParser) -> None:
    """Add -v/--verbose flag."""
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Emit debug logging on stderr",
    )


def add_server_flags(parser: argparse.ArgumentParser) -> None:
    """Add flags that override the ``server`` and ``readiness`` config sections."""
    parser.add_argument("--port", type=int, help="Port the server listens on (default: 8080)")
    parser.add_argument("--host", type=str, help="Host to probe (default: 127.0.0.1)")
    parser.add_argument(
        "--server-command",
        type=str,
        help="Shell command that starts the server (default: 'npx http-server')",
    )
    parser.add_argument(
        "--path",
        type=str,
        help="URL path to probe; skips index detection (e.g. /index.html)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Overall readiness timeout in seconds (default: 30)",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        help="Maximum readiness probes (default: 60)",
    )
    parser.add_argument("--log-file", type=str, help="Also write logs to this file")


def config_overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Translate CLI flags into a config overlay (only flags actually given)."""
    pairs = (
        ("server", "port", getattr(args, "port", None)),
        ("server", "host", getattr(args, "host", None)),
        ("server", "command", getattr(args, "server_command", None)),
        ("readiness", "timeout_seconds", getattr(args, "timeout", None)),
        ("readiness", "max_attempts", getattr(args, "max_attempts", None)),
        ("logging", "file", getattr(args, "log_file", None)),
    )
    overrides: Dict[str, Any] = {}
    for section, key, value in pairs:
        if value is None:
            continue
        overrides.setdefault(section, {})[key] = value
    if getattr(args, "verbose", False):
        overrides.setdefault("logging", {})["level"] = "DEBUG"
    return overrides


__all__ = [
    "add_repo_root_flag",
    "add_verbose_flag",
    "add_server_flags",
    "config_overrides_from_args",
]
