"""Platform-specific process-tree termination.

Two variants, selected once by :func:`select_terminator`:

- :class:`PosixGroupTerminator` spawns the server in its own session and
  signals the whole process group (SIGTERM, then SIGKILL).
- :class:`TreeKillTerminator` spawns the server in a new process group and
  uses ``taskkill /T /F`` to take down the process tree.

Escalation timing and idempotence live in the supervisor, not here.
"""
from __future__ import annotations

import logging
import os
import signal
import subprocess
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .models import PlatformTag, ServerHandle

logger = logging.getLogger(__name__)

TASKKILL_TIMEOUT_SECONDS = 10.0


class ProcessTerminator(ABC):
    platform: PlatformTag

    def __init__(self, *, settle_seconds: float) -> None:
        self.settle_seconds = max(0.0, float(settle_seconds))

    @abstractmethod
    def popen_kwargs(self) -> Dict[str, Any]:
        """Extra ``subprocess.Popen`` kwargs that detach the server into its own group."""

    def process_group_of(self, process: subprocess.Popen[Any]) -> Optional[int]:
        return None

    def is_running(self, handle: ServerHandle) -> bool:
        return not handle.has_exited()

    @abstractmethod
    def request_stop(self, handle: ServerHandle) -> None:
        """Ask the server tree to exit."""

    @abstractmethod
    def force_stop(self, handle: ServerHandle) -> None:
        """Kill whatever is left of the server tree."""


class PosixGroupTerminator(ProcessTerminator):
    platform: PlatformTag = "posix"

    def popen_kwargs(self) -> Dict[str, Any]:
        return {"start_new_session": True}

    def process_group_of(self, process: subprocess.Popen[Any]) -> Optional[int]:
        try:
            return os.getpgid(process.pid)
        except OSError:
            # Already gone; a new session leader's pgid equals its pid.
            return process.pid

    def is_running(self, handle: ServerHandle) -> bool:
        """True while the leader or any other member of its group is alive."""
        if not handle.has_exited():
            return True
        if handle.pgid is None:
            return False
        try:
            os.killpg(handle.pgid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            # The group exists but a member changed credentials.
            return True
        except OSError as exc:
            logger.debug("killpg(%s, 0) failed: %s", handle.pgid, exc)
            return False
        return True

    def _signal_group(self, handle: ServerHandle, sig: signal.Signals) -> None:
        if handle.pgid is not None:
            try:
                os.killpg(handle.pgid, sig)
                return
            except OSError as exc:
                logger.debug("killpg(%s, %s) failed: %s; signalling pid %s", handle.pgid, sig.name, exc, handle.pid)
        try:
            handle.process.send_signal(sig)
        except ProcessLookupError:
            pass

    def request_stop(self, handle: ServerHandle) -> None:
        self._signal_group(handle, signal.SIGTERM)

    def force_stop(self, handle: ServerHandle) -> None:
        self._signal_group(handle, signal.SIGKILL)


class TreeKillTerminator(ProcessTerminator):
    platform: PlatformTag = "windows"

    def popen_kwargs(self) -> Dict[str, Any]:
        creationflags = getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", None)
        if isinstance(creationflags, int):
            return {"creationflags": creationflags}
        return {}

    def request_stop(self, handle: ServerHandle) -> None:
        # Synchronous on purpose: the tree must be gone before the port is reused.
        try:
            result = subprocess.run(  # noqa: S603,S607
                ["taskkill", "/pid", str(handle.pid), "/T", "/F"],
                capture_output=True,
                text=True,
                timeout=TASKKILL_TIMEOUT_SECONDS,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.warning("Failed to kill server process tree %s: %s", handle.pid, exc)
            return
        if result.returncode != 0:
            logger.warning(
                "taskkill exited with %s for pid %s: %s",
                result.returncode,
                handle.pid,
                (result.stderr or result.stdout or "").strip(),
            )

    def force_stop(self, handle: ServerHandle) -> None:
        try:
            handle.process.kill()
        except OSError as exc:
            logger.debug("kill(%s) failed: %s", handle.pid, exc)


def select_terminator(
    *,
    settle_seconds: float = 0.5,
    tree_kill_settle_seconds: float = 1.0,
    os_name: Optional[str] = None,
) -> ProcessTerminator:
    """Pick the terminator for the running platform."""
    name = os_name or os.name
    if name == "nt":
        return TreeKillTerminator(settle_seconds=tree_kill_settle_seconds)
    return PosixGroupTerminator(settle_seconds=settle_seconds)


__all__ = [
    "ProcessTerminator",
    "PosixGroupTerminator",
    "TreeKillTerminator",
    "select_terminator",
]
