from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, Optional

if TYPE_CHECKING:
    from .watcher import OutputWatcher

PlatformTag = Literal["posix", "windows"]


class ProbeStatus(str, Enum):
    READY = "ready"
    NOT_READY = "not_ready"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a single readiness probe."""

    status: ProbeStatus
    error_code: Optional[str] = None
    http_status: Optional[int] = None

    @property
    def counts_as_ready(self) -> bool:
        # A non-refused transport error usually means a socket is listening
        # but the request itself failed.
        return self.status in (ProbeStatus.READY, ProbeStatus.AMBIGUOUS)

    @classmethod
    def ready(cls, http_status: Optional[int] = None) -> ProbeResult:
        return cls(ProbeStatus.READY, http_status=http_status)

    @classmethod
    def not_ready(cls, error_code: Optional[str] = None) -> ProbeResult:
        return cls(ProbeStatus.NOT_READY, error_code=error_code)

    @classmethod
    def ambiguous(cls, error_code: str) -> ProbeResult:
        return cls(ProbeStatus.AMBIGUOUS, error_code=error_code)


@dataclass(frozen=True)
class RunOutcome:
    exit_code: int
    signaled: bool = False


class LifecycleState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    AWAITING_READY = "awaiting_ready"
    RUNNING = "running"
    STOPPING = "stopping"
    DONE = "done"

    @property
    def order(self) -> int:
        return _STATE_ORDER[self]


_STATE_ORDER = {state: idx for idx, state in enumerate(LifecycleState)}


@dataclass
class ServerHandle:
    """A spawned server process, owned by :class:`ServerSupervisor`.

    ``pgid`` is None on platforms without POSIX process groups. ``alive``
    flips to False exactly once, when termination is confirmed.
    """

    pid: int
    pgid: Optional[int]
    platform: PlatformTag
    command: str
    process: subprocess.Popen[Any] = field(repr=False)
    watcher: Optional[OutputWatcher] = field(default=None, repr=False)
    alive: bool = True
    stopping: bool = False

    def has_exited(self) -> bool:
        return self.process.poll() is not None


__all__ = [
    "PlatformTag",
    "ProbeStatus",
    "ProbeResult",
    "RunOutcome",
    "LifecycleState",
    "ServerHandle",
]
