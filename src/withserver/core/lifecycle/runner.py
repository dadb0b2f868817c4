"""Run the user's test command against the live server."""
from __future__ import annotations

import logging
import os
import signal
import subprocess
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

from withserver.core.exceptions import TestProcessError

from .models import RunOutcome

logger = logging.getLogger(__name__)

Callback = Callable[[str], None]

URL_ENV_VAR = "TEST_SERVER_URL"
PORT_ENV_VAR = "TEST_SERVER_PORT"


def _noop(_: str) -> None:
    return None


def outcome_from_returncode(returncode: int) -> RunOutcome:
    """Map a ``Popen.returncode`` to a :class:`RunOutcome`.

    A negative return code means the child was killed by a signal; it is
    reported the way a shell would, as ``128 + signum``.
    """
    if returncode < 0:
        return RunOutcome(exit_code=128 + (-returncode), signaled=True)
    return RunOutcome(exit_code=returncode)


class TestRunner:
    """Spawn the test command with inherited stdio and wait for it."""

    __test__ = False

    def __init__(
        self,
        *,
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        server_url: Optional[str] = None,
        server_port: Optional[int] = None,
        warn: Callback = _noop,
    ) -> None:
        self.cwd = cwd
        self._base_env = env
        self.server_url = server_url
        self.server_port = server_port
        self._warn = warn

    def build_env(self) -> Dict[str, str]:
        env = dict(os.environ if self._base_env is None else self._base_env)
        if self.server_url:
            env[URL_ENV_VAR] = self.server_url
        if self.server_port is not None:
            env[PORT_ENV_VAR] = str(self.server_port)
        return env

    def run(self, command: str) -> RunOutcome:
        """Run ``command`` through the shell; never raises for spawn failures."""
        logger.info("running test command: %s", command)
        try:
            proc = subprocess.Popen(  # noqa: S602
                command,
                shell=True,
                cwd=str(self.cwd) if self.cwd else None,
                env=self.build_env(),
            )
        except OSError as exc:
            err = TestProcessError(
                f"Test process error: {exc}",
                context={"command": command, "cwd": str(self.cwd) if self.cwd else None},
            )
            logger.warning("test command failed to spawn: %s", err.to_json_error())
            self._warn(str(err))
            return RunOutcome(exit_code=1)

        returncode = proc.wait()
        outcome = outcome_from_returncode(returncode)
        if outcome.signaled:
            try:
                name = signal.Signals(-returncode).name
            except ValueError:
                name = str(-returncode)
            logger.info("test command killed by %s", name)
        else:
            logger.info("test command exited with %s", returncode)
        return outcome


__all__ = ["TestRunner", "outcome_from_returncode", "URL_ENV_VAR", "PORT_ENV_VAR"]
