from __future__ import annotations

import argparse
import os
import shlex
import signal
import sys
from pathlib import Path

import pytest

from withserver import __version__
from withserver.cli import config_overrides_from_args
from withserver.cli import run as run_command
from withserver.cli._dispatcher import build_parser, main
from withserver.core.exceptions import SignalInterrupt

posix_only = pytest.mark.skipif(os.name == "nt", reason="POSIX process groups")


def test_missing_test_command_prints_usage_and_exits_one(capsys) -> None:
    assert main([]) == 1

    err = capsys.readouterr().err
    assert err.startswith("usage: withserver")
    assert "Error: a test command is required" in err


def test_version_flag(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--version"])

    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_flags_become_config_overrides() -> None:
    args = build_parser().parse_args(
        ["--port", "9000", "--host", "localhost", "--timeout", "5", "--max-attempts", "3", "-v", "npm test"]
    )

    assert args.test_command == "npm test"
    assert config_overrides_from_args(args) == {
        "server": {"port": 9000, "host": "localhost"},
        "readiness": {"timeout_seconds": 5.0, "max_attempts": 3},
        "logging": {"level": "DEBUG"},
    }


def test_no_flags_no_overrides() -> None:
    assert config_overrides_from_args(argparse.Namespace()) == {}


def test_missing_index_exits_one(isolated_project_env: Path, capsys) -> None:
    assert main(["--repo-root", str(isolated_project_env), "exit 0"]) == 1

    assert "Could not find www/index.html" in capsys.readouterr().err


def test_invalid_config_exits_one(isolated_project_env: Path, capsys) -> None:
    assert main(["--repo-root", str(isolated_project_env), "--port", "70000", "exit 0"]) == 1

    assert "Invalid configuration" in capsys.readouterr().err


@posix_only
def test_full_run_propagates_test_exit_code(
    isolated_project_env: Path, http_server_script: Path, free_port: int, capsys
) -> None:
    server_command = f"{shlex.quote(sys.executable)} {shlex.quote(str(http_server_script))}"

    code = main(
        [
            "--repo-root",
            str(isolated_project_env),
            "--port",
            str(free_port),
            "--server-command",
            server_command,
            "--path",
            "/",
            "--timeout",
            "15",
            'test "$TEST_SERVER_PORT" = "%d" && exit 5' % free_port,
        ]
    )

    assert code == 5
    out = capsys.readouterr().out
    assert f"Server is ready on port {free_port}" in out
    assert "Server stopped" in out or "Server force-stopped" in out


@posix_only
def test_log_file_written(isolated_project_env: Path, http_server_script: Path, free_port: int) -> None:
    server_command = f"{shlex.quote(sys.executable)} {shlex.quote(str(http_server_script))}"
    log_file = isolated_project_env / "logs" / "withserver.log"

    code = main(
        [
            "--repo-root",
            str(isolated_project_env),
            "--port",
            str(free_port),
            "--server-command",
            server_command,
            "--path",
            "index.html",
            "--log-file",
            "logs/withserver.log",
            "exit 0",
        ]
    )

    assert code == 0
    text = log_file.read_text(encoding="utf-8")
    assert f"http://127.0.0.1:{free_port}/index.html" in text


def test_unformattable_server_args_exit_one(isolated_project_env: Path, capsys) -> None:
    cfg_dir = isolated_project_env / ".withserver" / "config"
    cfg_dir.mkdir(parents=True)
    (cfg_dir / "server.yaml").write_text("server:\n  args: ['--headers', '{\"X-Test\": 1}']\n", encoding="utf-8")

    assert main(["--repo-root", str(isolated_project_env), "--path", "/", "exit 0"]) == 1

    err = capsys.readouterr().err
    assert "Invalid server argument" in err
    assert "Traceback" not in err


def test_signal_interrupt_escaping_the_command_maps_to_exit_code(monkeypatch) -> None:
    def interrupted(_args: argparse.Namespace) -> int:
        raise SignalInterrupt(signal.SIGTERM)

    monkeypatch.setattr(run_command, "main", interrupted)

    assert main(["exit 0"]) == 143
