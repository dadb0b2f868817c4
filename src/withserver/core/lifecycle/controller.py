"""Top-level start → wait → run → stop → exit state machine.

The controller is the only place that turns failures into exit codes.
Signal handlers never exit the process themselves. Inside a blocking stage
they raise :class:`SignalInterrupt` into the main flow; anywhere else they
only record the signal. Either way the same stop path every other outcome
uses runs exactly once.
"""
from __future__ import annotations

import logging
import signal
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional, Sequence

from withserver.core.exceptions import (
    LifecycleError,
    PortInUseError,
    ReadinessTimeoutError,
    SignalInterrupt,
    SpawnFailureError,
    exit_code_for_signal,
)

from .models import LifecycleState
from .runner import TestRunner
from .supervisor import ServerSupervisor

logger = logging.getLogger(__name__)

Callback = Callable[[str], None]

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _noop(_: str) -> None:
    return None


class LifecycleController:
    def __init__(
        self,
        supervisor: ServerSupervisor,
        runner: TestRunner,
        *,
        url: str,
        server_command: str,
        server_args: Sequence[str] = (),
        timeout_seconds: float = 30.0,
        max_attempts: int = 60,
        log: Callback = _noop,
        warn: Callback = _noop,
    ) -> None:
        self.supervisor = supervisor
        self.runner = runner
        self.url = url
        self.server_command = server_command
        self.server_args = list(server_args)
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self._log = log
        self._warn = warn
        self.state = LifecycleState.IDLE
        self.exit_code: Optional[int] = None
        self.signal_exit_code: Optional[int] = None
        self._pending_signal: Optional[int] = None
        self._interruptible = False
        self._announced = False

    def _transition(self, new: LifecycleState) -> None:
        if new is LifecycleState.STOPPING:
            if self.state is LifecycleState.DONE:
                raise LifecycleError("Cannot stop after completion", context={"state": self.state.value})
        elif new.order <= self.state.order:
            raise LifecycleError(
                f"Illegal transition {self.state.value} -> {new.value}",
                context={"from": self.state.value, "to": new.value},
            )
        logger.debug("lifecycle %s -> %s", self.state.value, new.value)
        self.state = new

    # ---------- signals ----------

    def _handle_signal(self, signum: int, frame: Any) -> None:
        self.signal_exit_code = exit_code_for_signal(signum)
        self._pending_signal = signum
        if not self._interruptible or self.state in (LifecycleState.STOPPING, LifecycleState.DONE):
            # Outside a blocking stage, or stop already underway: just
            # remember the request for the main flow.
            logger.info("signal %s received during %s", signum, self.state.value)
            return
        self._interrupt()

    def _interrupt(self) -> None:
        self._interruptible = False
        self._announced = True
        self._transition(LifecycleState.STOPPING)
        raise SignalInterrupt(self._pending_signal)

    @contextmanager
    def _interruptible_stage(self) -> Iterator[None]:
        """Let the signal handler unwind the blocking call inside this block.

        A signal recorded while no stage was running is delivered on entry.
        """
        if self._pending_signal is not None:
            self._interrupt()
        self._interruptible = True
        try:
            yield
        finally:
            self._interruptible = False

    @contextmanager
    def signal_handlers(self) -> Iterator[None]:
        """Install SIGINT/SIGTERM handlers for the duration of the block."""
        previous: Dict[int, Any] = {}
        for sig in HANDLED_SIGNALS:
            try:
                previous[sig] = signal.signal(sig, self._handle_signal)
            except (ValueError, OSError) as exc:
                # Not the main thread, or unsupported on this platform.
                logger.debug("cannot install handler for %s: %s", sig, exc)
        try:
            yield
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

    # ---------- run ----------

    def run(self, test_command: str) -> int:
        """Run the whole lifecycle and return the process exit code."""
        with self.signal_handlers():
            code = self._run(test_command)
        return code

    def _run(self, test_command: str) -> int:
        code = 1
        try:
            self._transition(LifecycleState.STARTING)
            with self._interruptible_stage():
                handle = self.supervisor.start(self.server_command, self.server_args)

            self._transition(LifecycleState.AWAITING_READY)
            with self._interruptible_stage():
                ready = self.supervisor.wait_until_ready(
                    handle,
                    self.url,
                    overall_timeout_seconds=self.timeout_seconds,
                    max_attempts=self.max_attempts,
                )
            if not ready:
                raise ReadinessTimeoutError(
                    "Server failed to start within timeout period",
                    context={"url": self.url},
                )

            self._transition(LifecycleState.RUNNING)
            self._log(f"Running tests: {test_command}")
            with self._interruptible_stage():
                outcome = self.runner.run(test_command)
            code = outcome.exit_code
        except SignalInterrupt as exc:
            self._warn(f"\nReceived {exc.signal_name}, cleaning up...")
            code = exc.exit_code
        except ReadinessTimeoutError as exc:
            self._warn(str(exc))
        except (PortInUseError, SpawnFailureError) as exc:
            logger.info("server start failed: %s", exc.to_json_error())
            self._warn(f"Error: {exc}")
        except Exception as exc:
            logger.exception("unexpected lifecycle failure")
            self._warn(f"Error: {exc}")
        finally:
            self._shutdown()

        if self.signal_exit_code is not None:
            code = self.signal_exit_code
        self.exit_code = code
        return code

    def _shutdown(self) -> None:
        if self.state is not LifecycleState.STOPPING:
            self._transition(LifecycleState.STOPPING)
        if self._pending_signal is not None and not self._announced:
            self._announced = True
            self._warn(f"\nReceived {SignalInterrupt(self._pending_signal).signal_name}, cleaning up...")
        self.supervisor.stop()
        self._transition(LifecycleState.DONE)


__all__ = ["LifecycleController", "HANDLED_SIGNALS"]
