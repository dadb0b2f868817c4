from __future__ import annotations

import signal
from typing import Any, Dict, Mapping


class WithServerError(Exception):
    """Base exception for withserver."""

    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        if context is not None:
            # Store a shallow copy to avoid accidental mutation.
            self.context = dict(context)
        else:
            self.context = {}

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "message": str(self),
            "code": self.__class__.__name__,
            "context": self.context,
        }


class ConfigError(WithServerError, ValueError):
    """Raised when configuration cannot be loaded or fails validation."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        WithServerError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class LayoutError(WithServerError):
    """Raised when the served project layout cannot be resolved."""


class IndexNotFoundError(LayoutError, FileNotFoundError):
    """Raised when no index page can be found in any expected location."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        WithServerError.__init__(self, message, context=context)
        FileNotFoundError.__init__(self, message)


class BuildNotFoundError(LayoutError, FileNotFoundError):
    """Raised when sources exist but the built index page is missing."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        WithServerError.__init__(self, message, context=context)
        FileNotFoundError.__init__(self, message)


class LifecycleError(WithServerError, RuntimeError):
    """Raised on an illegal lifecycle state transition."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        WithServerError.__init__(self, message, context=context)
        RuntimeError.__init__(self, message)


class PortInUseError(WithServerError):
    """Raised when the server reports that its port is already bound."""

    def __init__(self, port: int | None, message: str | None = None) -> None:
        msg = message or f"Port {port} already in use"
        super().__init__(msg, context={"port": port})
        self.port = port


class SpawnFailureError(WithServerError):
    """Raised when a process cannot be spawned or dies during startup."""

    def __init__(
        self,
        message: str,
        *,
        command: str | None = None,
        exit_code: int | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if command:
            ctx["command"] = command
        if exit_code is not None:
            ctx["exit_code"] = exit_code
        super().__init__(message, context=ctx)
        self.command = command
        self.exit_code = exit_code


class ReadinessTimeoutError(WithServerError):
    """Raised when the server never answered within the readiness budget."""


class TestProcessError(WithServerError):
    """Raised when the test command cannot be run."""

    __test__ = False


_SIGNAL_EXIT_CODES = {
    signal.SIGINT: 130,
    signal.SIGTERM: 143,
}


class SignalInterrupt(WithServerError):
    """Raised inside the control flow when SIGINT/SIGTERM is delivered."""

    def __init__(self, signum: int) -> None:
        self.signum = int(signum)
        try:
            self.signal_name = signal.Signals(self.signum).name
        except ValueError:
            self.signal_name = f"signal {self.signum}"
        self.exit_code = exit_code_for_signal(self.signum)
        super().__init__(
            f"Received {self.signal_name}",
            context={"signal": self.signal_name, "exit_code": self.exit_code},
        )


def exit_code_for_signal(signum: int) -> int:
    """Conventional process exit status for an interrupt/termination signal."""
    return _SIGNAL_EXIT_CODES.get(signum, 128 + int(signum))


__all__ = [
    "WithServerError",
    "ConfigError",
    "LayoutError",
    "IndexNotFoundError",
    "BuildNotFoundError",
    "LifecycleError",
    "PortInUseError",
    "SpawnFailureError",
    "ReadinessTimeoutError",
    "TestProcessError",
    "SignalInterrupt",
    "exit_code_for_signal",
]
