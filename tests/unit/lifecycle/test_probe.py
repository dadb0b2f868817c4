from __future__ import annotations

import errno
import socket
from urllib.error import URLError

import pytest

from withserver.core.lifecycle import probe as probe_module
from withserver.core.lifecycle.models import ProbeStatus
from withserver.core.lifecycle.probe import probe


def test_probe_ready_on_200(local_http_server) -> None:
    url = local_http_server(200)

    result = probe(url, timeout_seconds=2.0)

    assert result.status is ProbeStatus.READY
    assert result.http_status == 200
    assert result.counts_as_ready


def test_probe_ready_on_server_error_status(local_http_server) -> None:
    """Any HTTP answer means a socket is serving, even a 500."""
    url = local_http_server(500)

    result = probe(url, timeout_seconds=2.0)

    assert result.status is ProbeStatus.READY
    assert result.http_status == 500


def test_probe_ready_on_404(local_http_server) -> None:
    url = local_http_server(404)

    assert probe(url, timeout_seconds=2.0).status is ProbeStatus.READY


def test_probe_not_ready_when_connection_refused(free_port: int) -> None:
    result = probe(f"http://127.0.0.1:{free_port}/", timeout_seconds=0.5)

    assert result.status is ProbeStatus.NOT_READY
    assert result.error_code == "ECONNREFUSED"
    assert not result.counts_as_ready


def test_probe_not_ready_when_server_never_answers() -> None:
    # Listening socket that never accepts: the TCP handshake completes in the
    # kernel backlog but no HTTP response ever arrives.
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    sock.listen(5)
    port = sock.getsockname()[1]
    try:
        result = probe(f"http://127.0.0.1:{port}/", timeout_seconds=0.2)
    finally:
        sock.close()

    assert result.status is ProbeStatus.NOT_READY
    assert result.error_code == "ETIMEDOUT"


class _RaisingOpener:
    def __init__(self, exc: BaseException) -> None:
        self.exc = exc

    def open(self, req, timeout=None):
        raise self.exc


@pytest.mark.parametrize(
    "exc, status, code",
    [
        (URLError(ConnectionRefusedError(111, "refused")), ProbeStatus.NOT_READY, "ECONNREFUSED"),
        (URLError(socket.timeout("timed out")), ProbeStatus.NOT_READY, "ETIMEDOUT"),
        (TimeoutError("timed out"), ProbeStatus.NOT_READY, "ETIMEDOUT"),
        (ConnectionResetError(errno.ECONNRESET, "reset"), ProbeStatus.AMBIGUOUS, "ECONNRESET"),
        (URLError("unknown url type"), ProbeStatus.AMBIGUOUS, "unknown url type"),
    ],
)
def test_probe_classifies_transport_errors(monkeypatch, exc, status, code) -> None:
    monkeypatch.setattr(probe_module, "_OPENER", _RaisingOpener(exc))

    result = probe("http://127.0.0.1:1/", timeout_seconds=0.1)

    assert result.status is status
    assert result.error_code == code


def test_ambiguous_result_counts_as_ready(monkeypatch) -> None:
    import http.client

    monkeypatch.setattr(probe_module, "_OPENER", _RaisingOpener(http.client.RemoteDisconnected("closed")))

    result = probe("http://127.0.0.1:1/", timeout_seconds=0.1)

    assert result.status is ProbeStatus.AMBIGUOUS
    assert result.error_code == "RemoteDisconnected"
    assert result.counts_as_ready
