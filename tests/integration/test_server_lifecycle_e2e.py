"""Real-process lifecycle runs against a tiny stdlib HTTP server."""
from __future__ import annotations

import os
import shlex
import signal
import socket
import sys
from pathlib import Path

import pytest

from withserver.core.exceptions import PortInUseError
from withserver.core.lifecycle import LifecycleController, ServerSupervisor, SupervisorSettings, TestRunner
from withserver.core.lifecycle.models import ProbeStatus
from withserver.core.lifecycle.probe import probe
from withserver.core.lifecycle.terminator import select_terminator

from helpers.processes import pid_gone, read_pid_file

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(os.name == "nt", reason="POSIX process groups"),
]

PYTHON = shlex.quote(sys.executable)


def _supervisor(port: int, **kwargs) -> ServerSupervisor:
    return ServerSupervisor(
        SupervisorSettings(port=port, grace_seconds=0.3),
        terminator=select_terminator(settle_seconds=0.1),
        **kwargs,
    )


def _port_is_free(port: int) -> bool:
    sock = socket.socket()
    # Like real servers: lingering TIME_WAIT connections must not count as "in use".
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind(("127.0.0.1", port))
    except OSError:
        return False
    finally:
        sock.close()
    return True


def test_server_becomes_ready_and_port_is_released_after_stop(http_server_script: Path, free_port: int) -> None:
    sup = _supervisor(free_port)
    url = f"http://127.0.0.1:{free_port}/"

    handle = sup.start(PYTHON, [str(http_server_script), "-p", str(free_port)])
    try:
        assert sup.wait_until_ready(handle, url, overall_timeout_seconds=15, max_attempts=100) is True
        assert probe(url, 1.0).status is ProbeStatus.READY
    finally:
        sup.stop(handle)

    assert handle.alive is False
    assert handle.process.poll() is not None
    assert probe(url, 0.5).status is ProbeStatus.NOT_READY
    assert _port_is_free(free_port)


def test_second_server_on_taken_port_fails_fast(http_server_script: Path, free_port: int) -> None:
    first = _supervisor(free_port)
    handle = first.start(PYTHON, [str(http_server_script), "-p", str(free_port)])
    try:
        assert first.wait_until_ready(handle, f"http://127.0.0.1:{free_port}/", 15, 100)

        warns: list = []
        second = ServerSupervisor(
            SupervisorSettings(port=free_port, grace_seconds=10.0),
            terminator=select_terminator(settle_seconds=0.1),
            warn=warns.append,
        )
        with pytest.raises(PortInUseError):
            second.start(PYTHON, [str(http_server_script), "-p", str(free_port)])
        second.stop()
        assert f"Error: Port {free_port} is already in use." in warns
    finally:
        first.stop(handle)


def test_controller_runs_tests_and_cleans_up(http_server_script: Path, free_port: int, tmp_path: Path) -> None:
    url = f"http://127.0.0.1:{free_port}/"
    sup = _supervisor(free_port)
    marker = tmp_path / "ran.txt"
    controller = LifecycleController(
        sup,
        TestRunner(cwd=tmp_path, server_url=url, server_port=free_port),
        url=url,
        server_command=PYTHON,
        server_args=[str(http_server_script), "-p", str(free_port)],
        timeout_seconds=15,
        max_attempts=100,
    )

    code = controller.run(f'echo "$TEST_SERVER_URL" > {shlex.quote(str(marker))}; exit 3')

    assert code == 3
    assert marker.read_text().strip() == url
    assert sup.handle is None
    assert _port_is_free(free_port)


def test_readiness_timeout_when_nothing_listens(free_port: int) -> None:
    sup = _supervisor(free_port)
    warns: list = []
    controller = LifecycleController(
        sup,
        TestRunner(),
        url=f"http://127.0.0.1:{free_port}/",
        server_command=PYTHON,
        server_args=["-c", "import time; time.sleep(30)"],
        timeout_seconds=0.6,
        max_attempts=100,
        warn=warns.append,
    )

    assert controller.run("exit 0") == 1
    assert "Server failed to start within timeout period" in warns
    assert sup.handle is None


def test_group_member_ignoring_sigterm_is_killed_after_launcher_exits(free_port: int, tmp_path: Path) -> None:
    pid_file = tmp_path / "stubborn.pid"
    logs: list = []
    sup = ServerSupervisor(
        SupervisorSettings(port=free_port, grace_seconds=0.5, escalation_seconds=0.5),
        terminator=select_terminator(settle_seconds=0.0),
        log=logs.append,
    )
    # The launcher exits cleanly and leaves a TERM-ignoring member in the group.
    launcher = (
        f"sh -c 'trap \"\" TERM; echo $$ > \"{pid_file}\"; exec sleep 30' & "
        "sleep 0.2; exit 0"
    )

    handle = sup.start(launcher)
    stubborn = read_pid_file(pid_file)
    try:
        assert handle.process.wait(timeout=5) == 0
        assert not pid_gone(stubborn)

        sup.stop(handle)

        assert pid_gone(stubborn)
        assert "Server force-stopped" in logs
        assert "Server stopped" not in logs
    finally:
        if not pid_gone(stubborn):
            os.kill(stubborn, signal.SIGKILL)
