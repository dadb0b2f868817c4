from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_CONFIGURED_LOG_PATH: str | None = None
_FILE_HANDLER: logging.Handler | None = None
_STDERR_HANDLER: logging.Handler | None = None


def _level_from_name(name: str) -> int:
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(
    *,
    level: str = "INFO",
    log_path: Optional[Path] = None,
    verbose: bool = False,
) -> None:
    """Configure stdlib logging for a withserver run.

    - stderr handler: WARNING and above, or DEBUG when ``verbose``
    - optional file handler at ``level`` when ``log_path`` is given

    Idempotent per-process: calling again swaps the handlers installed by a
    previous call instead of stacking new ones.
    """
    global _CONFIGURED_LOG_PATH, _FILE_HANDLER, _STDERR_HANDLER

    root = logging.getLogger()
    file_level = _level_from_name(level)
    stderr_level = logging.DEBUG if verbose else logging.WARNING
    root.setLevel(min(file_level, stderr_level) if log_path is not None else stderr_level)

    if _STDERR_HANDLER is not None:
        root.removeHandler(_STDERR_HANDLER)
        _STDERR_HANDLER.close()
    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(stderr_level)
    sh.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(sh)
    _STDERR_HANDLER = sh

    if log_path is None:
        return

    resolved = str(Path(log_path).resolve())
    if _CONFIGURED_LOG_PATH == resolved and _FILE_HANDLER is not None:
        _FILE_HANDLER.setLevel(file_level)
        return

    # Replace the previously installed file handler when switching paths.
    if _FILE_HANDLER is not None:
        root.removeHandler(_FILE_HANDLER)
        _FILE_HANDLER.close()
        _FILE_HANDLER = None

    Path(resolved).parent.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(resolved, encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(fh)

    _FILE_HANDLER = fh
    _CONFIGURED_LOG_PATH = resolved


def reset_logging_for_tests() -> None:
    """Test-only: remove the handlers installed by :func:`configure_logging`."""
    global _CONFIGURED_LOG_PATH, _FILE_HANDLER, _STDERR_HANDLER
    root = logging.getLogger()
    for h in (_FILE_HANDLER, _STDERR_HANDLER):
        if h is None:
            continue
        root.removeHandler(h)
        h.close()
    _CONFIGURED_LOG_PATH = None
    _FILE_HANDLER = None
    _STDERR_HANDLER = None


__all__ = ["configure_logging", "reset_logging_for_tests"]
