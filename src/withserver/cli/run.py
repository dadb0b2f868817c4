"""
withserver run command.

SUMMARY: Start a local server, run a test command against it, stop the server

Loads layered configuration, resolves the index page to probe, then hands
over to the lifecycle controller. The controller's exit code is returned
unchanged: the test command's own code, 1 for setup failures, 130/143 when
interrupted.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict

from withserver.cli._args import (
    add_repo_root_flag,
    add_server_flags,
    add_verbose_flag,
    config_overrides_from_args,
)
from withserver.cli._output import ConsoleReporter, print_error
from withserver.core.config import ConfigManager, LayoutConfig, LoggingConfig, ReadinessConfig, ServerConfig
from withserver.core.exceptions import ConfigError, LayoutError
from withserver.core.layout import detect_index_path
from withserver.core.lifecycle import LifecycleController, ServerSupervisor, TestRunner
from withserver.core.stdlib_logging import configure_logging

SUMMARY = "Start a local server, run a test command against it, stop the server"

logger = logging.getLogger(__name__)


def register_args(parser: argparse.ArgumentParser) -> None:
    """Register command-specific arguments."""
    parser.add_argument(
        "test_command",
        nargs="?",
        help='Test command to run once the server is up (e.g. "npx playwright test")',
    )
    add_server_flags(parser)
    add_repo_root_flag(parser)
    add_verbose_flag(parser)


def _normalize_path(path: str) -> str:
    return path if path.startswith("/") else "/" + path


def _resolve_log_file(cfg: Dict[str, Any], repo_root: Path) -> Path | None:
    log_file = LoggingConfig(cfg).file
    if log_file is not None and not log_file.is_absolute():
        log_file = repo_root / log_file
    return log_file


def main(args: argparse.Namespace) -> int:
    """Run the server lifecycle around ``args.test_command``."""
    reporter = ConsoleReporter()
    repo_root = Path(args.repo_root or Path.cwd()).resolve()

    try:
        cfg = ConfigManager(repo_root).load_config(overrides=config_overrides_from_args(args))
    except ConfigError as exc:
        print_error(str(exc))
        return 1

    configure_logging(
        level=LoggingConfig(cfg).level,
        log_path=_resolve_log_file(cfg, repo_root),
        verbose=bool(getattr(args, "verbose", False)),
    )

    if args.path:
        index_path = _normalize_path(args.path)
    else:
        try:
            index_path = detect_index_path(
                repo_root,
                LayoutConfig(cfg),
                log=reporter.log,
                warn=reporter.warn,
            )
        except LayoutError as exc:
            print_error(str(exc))
            return 1

    server = ServerConfig(cfg)
    try:
        server_args = server.formatted_args()
    except ConfigError as exc:
        print_error(str(exc))
        return 1
    readiness = ReadinessConfig(cfg)
    url = f"http://{server.host}:{server.port}{index_path}"
    logger.info("probing %s", url)

    supervisor = ServerSupervisor.from_config(
        cfg,
        cwd=repo_root,
        log=reporter.log,
        warn=reporter.warn,
    )
    runner = TestRunner(
        cwd=repo_root,
        server_url=url,
        server_port=server.port,
        warn=reporter.warn,
    )
    controller = LifecycleController(
        supervisor,
        runner,
        url=url,
        server_command=server.command,
        server_args=server_args,
        timeout_seconds=readiness.timeout_seconds,
        max_attempts=readiness.max_attempts,
        log=reporter.log,
        warn=reporter.warn,
    )
    return controller.run(args.test_command)


__all__ = ["SUMMARY", "register_args", "main"]
