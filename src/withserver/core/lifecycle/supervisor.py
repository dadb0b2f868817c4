from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from withserver.core.config.domains import ReadinessConfig, ServerConfig, ShutdownConfig
from withserver.core.exceptions import LifecycleError, PortInUseError, SpawnFailureError

from .models import ProbeResult, ProbeStatus, ServerHandle
from .probe import probe as http_probe
from .terminator import ProcessTerminator, select_terminator
from .watcher import OutputWatcher

logger = logging.getLogger(__name__)

Callback = Callable[[str], None]
ProbeFn = Callable[[str, float], ProbeResult]

_EXIT_POLL_SECONDS = 0.05


def _noop(_: str) -> None:
    return None


@dataclass(frozen=True)
class SupervisorSettings:
    host: str = "127.0.0.1"
    port: int = 8080
    grace_seconds: float = 1.5
    success_exit_codes: List[int] = field(default_factory=lambda: [0])
    ready_markers: List[str] = field(default_factory=lambda: ["Starting up", "Available on"])
    port_in_use_markers: List[str] = field(
        default_factory=lambda: ["EADDRINUSE", "address already in use"]
    )
    poll_interval_seconds: float = 0.25
    probe_timeout_seconds: float = 0.5
    progress_every: int = 10
    escalation_seconds: float = 2.0
    force_wait_seconds: float = 1.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> SupervisorSettings:
        server = ServerConfig(config)
        readiness = ReadinessConfig(config)
        shutdown = ShutdownConfig(config)
        return cls(
            host=server.host,
            port=server.port,
            grace_seconds=server.grace_seconds,
            success_exit_codes=server.success_exit_codes,
            ready_markers=server.ready_markers,
            port_in_use_markers=server.port_in_use_markers,
            poll_interval_seconds=readiness.poll_interval_seconds,
            probe_timeout_seconds=readiness.probe_timeout_seconds,
            progress_every=readiness.progress_every,
            escalation_seconds=shutdown.escalation_seconds,
            force_wait_seconds=shutdown.force_wait_seconds,
        )


def build_command(command: str, args: Sequence[str] = ()) -> str:
    """Join a shell command and its (quoted) arguments into one shell line."""
    parts = [command.strip()]
    parts.extend(shlex.quote(str(a)) if os.name != "nt" else str(a) for a in args)
    return " ".join(p for p in parts if p)


class ServerSupervisor:
    """Own the server process: spawn, readiness polling and teardown.

    The supervisor is the only writer of :class:`ServerHandle` state. Probe,
    clock and sleep are injectable so the polling loop can be driven
    deterministically.
    """

    def __init__(
        self,
        settings: Optional[SupervisorSettings] = None,
        *,
        terminator: Optional[ProcessTerminator] = None,
        probe: ProbeFn = http_probe,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        log: Callback = _noop,
        warn: Callback = _noop,
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> None:
        self.settings = settings or SupervisorSettings()
        self.terminator = terminator or select_terminator()
        self._probe = probe
        self._clock = clock
        self._sleep = sleep
        self._log = log
        self._warn = warn
        self._cwd = cwd
        self._env = env
        self.handle: Optional[ServerHandle] = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any], **kwargs: Any) -> ServerSupervisor:
        if "terminator" not in kwargs:
            shutdown = ShutdownConfig(config)
            kwargs["terminator"] = select_terminator(
                settle_seconds=shutdown.settle_seconds,
                tree_kill_settle_seconds=shutdown.tree_kill_settle_seconds,
            )
        return cls(SupervisorSettings.from_config(config), **kwargs)

    # ---------- start ----------

    def start(self, command: str, args: Sequence[str] = ()) -> ServerHandle:
        """Spawn the server and give it a short grace period to bind.

        Raises:
            PortInUseError: the server reported its port is taken
            SpawnFailureError: the command could not be spawned, or exited
                early with a code outside ``success_exit_codes``
        """
        if self.handle is not None and self.handle.alive:
            raise LifecycleError("Server already started", context={"pid": self.handle.pid})

        full_command = build_command(command, args)
        self._log("Starting server...")
        logger.info("spawning server: %s", full_command)
        try:
            proc = subprocess.Popen(  # noqa: S602
                full_command,
                shell=True,
                cwd=str(self._cwd) if self._cwd else None,
                env=self._env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                **self.terminator.popen_kwargs(),
            )
        except OSError as exc:
            raise SpawnFailureError(
                f"Failed to start server: {exc}", command=full_command
            ) from exc

        watcher = OutputWatcher(
            proc.stdout,
            proc.stderr,
            ready_markers=self.settings.ready_markers,
            port_in_use_markers=self.settings.port_in_use_markers,
            on_ready=lambda _line: self._log("Server process started"),
            on_error_output=lambda line: self._warn(f"Server error: {line}"),
        )
        handle = ServerHandle(
            pid=proc.pid,
            pgid=self.terminator.process_group_of(proc),
            platform=self.terminator.platform,
            command=full_command,
            process=proc,
            watcher=watcher,
        )
        self.handle = handle
        watcher.start()

        self._await_grace(handle)
        return handle

    def _await_grace(self, handle: ServerHandle) -> None:
        watcher = handle.watcher
        assert watcher is not None
        deadline = self._clock() + max(0.0, self.settings.grace_seconds)
        while True:
            if watcher.port_in_use.is_set():
                self._report_port_in_use()
                raise PortInUseError(self.settings.port)

            code = handle.process.poll()
            if code is not None:
                # Let the readers drain the final output before judging it.
                watcher.join(0.5)
                if watcher.port_in_use.is_set():
                    self._report_port_in_use()
                    raise PortInUseError(self.settings.port)
                if code not in self.settings.success_exit_codes:
                    raise SpawnFailureError(
                        f"Server command exited early with code {code}",
                        command=handle.command,
                        exit_code=code,
                        context={"stderr": watcher.stderr_tail},
                    )
                logger.info("server launcher exited with %s; continuing to poll", code)
                return

            remaining = deadline - self._clock()
            if remaining <= 0:
                return
            watcher.port_in_use.wait(min(_EXIT_POLL_SECONDS, remaining))

    def _report_port_in_use(self) -> None:
        port = self.settings.port
        self._warn("")
        self._warn(f"Error: Port {port} is already in use.")
        self._warn("Please close any running server instances or other applications using this port.")
        if self.terminator.platform == "windows":
            self._warn(f"Find the process with: netstat -ano | findstr :{port}")
            self._warn("Then kill it with: taskkill /PID <process-id> /F")
        else:
            self._warn(f"Find the process with: lsof -i :{port}")
            self._warn("Then kill it with: kill <process-id>")
        self._warn("")

    # ---------- readiness ----------

    def wait_until_ready(
        self,
        handle: ServerHandle,
        url: str,
        overall_timeout_seconds: float = 30.0,
        max_attempts: int = 60,
    ) -> bool:
        """Poll ``url`` until it answers, the attempt cap, or the deadline.

        Never raises for probe failures; exhaustion is reported by returning
        False. Probe timeout and sleeps are clamped to the remaining budget
        so the deadline is overshot by at most one polling interval.
        """
        s = self.settings
        deadline = self._clock() + max(0.0, float(overall_timeout_seconds))
        attempts = 0

        while attempts < max_attempts and self._clock() < deadline:
            if handle.watcher is not None and handle.watcher.port_in_use.is_set():
                self._report_port_in_use()
                return False
            code = handle.process.poll()
            if code is not None and code not in s.success_exit_codes:
                self._warn(f"Server process exited with code {code} before becoming ready")
                return False

            attempts += 1
            remaining = deadline - self._clock()
            timeout = min(s.probe_timeout_seconds, max(remaining, 0.01))
            try:
                result = self._probe(url, timeout)
            except (OSError, ValueError) as exc:
                logger.debug("probe raised %s", exc)
                result = ProbeResult.not_ready(type(exc).__name__)

            if result.counts_as_ready:
                if result.status is ProbeStatus.AMBIGUOUS:
                    logger.info("treating probe error %s as ready", result.error_code)
                self._log(f"Server is ready on port {s.port} (attempt {attempts})")
                return True

            if attempts % s.progress_every == 0:
                self._log(f"Still waiting for server... (attempt {attempts})")

            remaining = deadline - self._clock()
            if attempts >= max_attempts or remaining <= 0:
                break
            self._sleep(min(s.poll_interval_seconds, remaining))

        self._warn(f"Server did not respond after {attempts} attempts")
        self._warn(f"Try manually accessing {url} in a browser to debug")
        return False

    # ---------- stop ----------

    def stop(self, handle: Optional[ServerHandle] = None) -> None:
        """Terminate the server's whole process tree. Idempotent.

        Errors during teardown are logged and swallowed; the call is bounded
        by the escalation window, the forced-kill wait and the settle delay.
        """
        handle = handle or self.handle
        if handle is None or not handle.alive or handle.stopping:
            return
        handle.stopping = True

        self._log("Stopping server...")
        try:
            self._terminate(handle)
        except Exception as exc:
            logger.warning("server teardown failed for pid %s: %s", handle.pid, exc)
            self._warn(f"Failed to kill server process: {exc}")
        finally:
            handle.alive = False
            if handle.watcher is not None:
                handle.watcher.close(timeout=1.0)
            if self.handle is handle:
                self.handle = None

    def _terminate(self, handle: ServerHandle) -> None:
        s = self.settings
        term = self.terminator

        term.request_stop(handle)
        if self._wait_stopped(handle, s.escalation_seconds):
            self._log("Server stopped")
        else:
            logger.info("server pid %s still running after %.1fs; forcing", handle.pid, s.escalation_seconds)
            term.force_stop(handle)
            if not self._wait_stopped(handle, s.force_wait_seconds):
                logger.warning("server pid %s did not exit after forced kill", handle.pid)
            self._log("Server force-stopped")

        # Give the OS a moment to release the port.
        self._sleep(term.settle_seconds)

    def _wait_stopped(self, handle: ServerHandle, timeout_seconds: float) -> bool:
        deadline = self._clock() + max(0.0, float(timeout_seconds))
        while self.terminator.is_running(handle):
            remaining = deadline - self._clock()
            if remaining <= 0:
                return False
            self._sleep(min(_EXIT_POLL_SECONDS, remaining))
        return True


__all__ = ["ServerSupervisor", "SupervisorSettings", "build_command"]
