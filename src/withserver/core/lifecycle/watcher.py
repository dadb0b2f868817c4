"""Background readers for the server's captured stdout/stderr.

The pipes must be drained continuously or a chatty server blocks once the
OS pipe buffer fills. The readers only set flags and forward lines; they
never touch the server handle.
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from typing import IO, Callable, Deque, Iterable, List, Optional

logger = logging.getLogger(__name__)

LineCallback = Callable[[str], None]


def _matches(line: str, markers: Iterable[str]) -> bool:
    low = line.lower()
    return any(m.lower() in low for m in markers if m)


class OutputWatcher:
    """Scan server output for readiness and port-in-use markers.

    ``ready_seen`` is advisory (logging only). ``port_in_use`` is what the
    supervisor uses to fail fast.
    """

    def __init__(
        self,
        stdout: Optional[IO[str]],
        stderr: Optional[IO[str]],
        *,
        ready_markers: Iterable[str] = (),
        port_in_use_markers: Iterable[str] = (),
        on_ready: Optional[LineCallback] = None,
        on_error_output: Optional[LineCallback] = None,
        tail_lines: int = 20,
    ) -> None:
        self._stdout = stdout
        self._stderr = stderr
        self._ready_markers = list(ready_markers)
        self._port_markers = list(port_in_use_markers)
        self._on_ready = on_ready
        self._on_error_output = on_error_output
        self.ready_seen = threading.Event()
        self.port_in_use = threading.Event()
        self._stderr_tail: Deque[str] = deque(maxlen=tail_lines)
        self._threads: List[threading.Thread] = []

    def start(self) -> None:
        for name, stream, handler in (
            ("stdout", self._stdout, self._handle_stdout),
            ("stderr", self._stderr, self._handle_stderr),
        ):
            if stream is None:
                continue
            t = threading.Thread(
                target=self._pump,
                args=(stream, handler),
                name=f"withserver-{name}",
                daemon=True,
            )
            t.start()
            self._threads.append(t)

    def _pump(self, stream: IO[str], handler: LineCallback) -> None:
        try:
            for raw in iter(stream.readline, ""):
                line = raw.rstrip("\r\n")
                if line:
                    handler(line)
        except (OSError, ValueError) as exc:
            # ValueError: stream closed underneath us during teardown.
            logger.debug("output reader stopped: %s", exc)

    def _handle_stdout(self, line: str) -> None:
        logger.debug("server stdout: %s", line)
        if not self.ready_seen.is_set() and _matches(line, self._ready_markers):
            self.ready_seen.set()
            if self._on_ready is not None:
                self._on_ready(line)

    def _handle_stderr(self, line: str) -> None:
        logger.debug("server stderr: %s", line)
        self._stderr_tail.append(line)
        if _matches(line, self._port_markers):
            self.port_in_use.set()
            return
        if self._on_error_output is not None:
            self._on_error_output(line)

    @property
    def stderr_tail(self) -> List[str]:
        return list(self._stderr_tail)

    def is_alive(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def join(self, timeout: float) -> bool:
        """Wait for both readers to hit EOF; True when they did."""
        per_thread = max(0.0, float(timeout)) / max(1, len(self._threads))
        for t in self._threads:
            t.join(per_thread)
        return not self.is_alive()

    def close(self, timeout: float = 1.0) -> None:
        # Closing a pipe while a reader blocks on it can deadlock on the
        # buffer lock, so only close once the readers are done.
        if not self.join(timeout):
            logger.debug("output readers still running; leaving pipes open")
            return
        for stream in (self._stdout, self._stderr):
            if stream is not None:
                try:
                    stream.close()
                except OSError:
                    pass


__all__ = ["OutputWatcher"]
