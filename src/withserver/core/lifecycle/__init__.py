"""Server lifecycle: spawn, readiness, test run and teardown."""
from __future__ import annotations

from .controller import LifecycleController
from .models import (
    LifecycleState,
    PlatformTag,
    ProbeResult,
    ProbeStatus,
    RunOutcome,
    ServerHandle,
)
from .runner import TestRunner
from .supervisor import ServerSupervisor, SupervisorSettings
from .terminator import (
    PosixGroupTerminator,
    ProcessTerminator,
    TreeKillTerminator,
    select_terminator,
)
from .watcher import OutputWatcher

__all__ = [
    "LifecycleController",
    "LifecycleState",
    "PlatformTag",
    "ProbeResult",
    "ProbeStatus",
    "RunOutcome",
    "ServerHandle",
    "TestRunner",
    "ServerSupervisor",
    "SupervisorSettings",
    "ProcessTerminator",
    "PosixGroupTerminator",
    "TreeKillTerminator",
    "select_terminator",
    "OutputWatcher",
]
