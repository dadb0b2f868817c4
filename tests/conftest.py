import os
import socket
import sys
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

# Keep the repository free of Python bytecode and __pycache__ artifacts during tests.
sys.dont_write_bytecode = True

TESTS_ROOT = Path(__file__).resolve().parent
REPO_ROOT = TESTS_ROOT.parent
SRC_ROOT = REPO_ROOT / "src"

# Make src/ importable as 'withserver'
for p in (SRC_ROOT, TESTS_ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))


from withserver.core.stdlib_logging import reset_logging_for_tests
from withserver.data import clear_caches
from helpers.fakes import FakeClock


@pytest.fixture(autouse=True)
def _isolate_withserver_env(monkeypatch):
    """Drop WITHSERVER_* overrides leaking in from the developer's shell."""
    for key in list(os.environ):
        if key.startswith("WITHSERVER_"):
            monkeypatch.delenv(key, raising=False)
    clear_caches()
    yield
    reset_logging_for_tests()
    clear_caches()


@pytest.fixture
def isolated_project_env(tmp_path, monkeypatch):
    """Empty project root, used as cwd for the duration of the test."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def free_port() -> int:
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    _host, port = sock.getsockname()
    sock.close()
    return int(port)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


_TEST_SERVER_SOURCE = "\n".join(
    [
        "from __future__ import annotations",
        "",
        "import argparse",
        "import signal",
        "import sys",
        "from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer",
        "",
        "",
        "class Handler(BaseHTTPRequestHandler):",
        "    def do_GET(self):",
        "        body = b\"ok\"",
        "        self.send_response(200)",
        "        self.send_header(\"Content-Type\", \"text/plain\")",
        "        self.send_header(\"Content-Length\", str(len(body)))",
        "        self.end_headers()",
        "        self.wfile.write(body)",
        "",
        "    def log_message(self, format, *args):",
        "        return",
        "",
        "",
        "def main() -> int:",
        "    ap = argparse.ArgumentParser()",
        "    ap.add_argument(\"-p\", \"--port\", type=int, required=True)",
        "    args = ap.parse_args()",
        "",
        "    try:",
        "        httpd = ThreadingHTTPServer((\"127.0.0.1\", args.port), Handler)",
        "    except OSError as exc:",
        "        sys.stderr.write(f\"Error: listen EADDRINUSE: {exc}\\n\")",
        "        sys.stderr.flush()",
        "        return 1",
        "",
        "    def _stop(*_):",
        "        raise SystemExit(0)",
        "",
        "    signal.signal(signal.SIGTERM, _stop)",
        "    print(f\"Available on: http://127.0.0.1:{args.port}\", flush=True)",
        "    httpd.serve_forever()",
        "    return 0",
        "",
        "",
        "if __name__ == \"__main__\":",
        "    raise SystemExit(main())",
        "",
    ]
)


@pytest.fixture
def http_server_script(tmp_path) -> Path:
    """A tiny stdlib HTTP server taking ``-p PORT``; prints EADDRINUSE if the port is taken."""
    server_path = tmp_path / "test_server_app.py"
    server_path.write_text(_TEST_SERVER_SOURCE, encoding="utf-8")
    return server_path


class _StatusHandler(BaseHTTPRequestHandler):
    status = 200

    def do_GET(self):  # noqa: N802
        body = b"ok"
        self.send_response(self.status)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):  # noqa: A002
        return


@pytest.fixture
def local_http_server():
    """Start an in-process HTTP server; call with the status it should answer."""
    servers = []

    def _start(status: int = 200) -> str:
        handler = type("Handler", (_StatusHandler,), {"status": status})
        httpd = ThreadingHTTPServer(("127.0.0.1", 0), handler)
        t = threading.Thread(target=httpd.serve_forever, daemon=True)
        t.start()
        servers.append(httpd)
        host, port = httpd.server_address[:2]
        return f"http://{host}:{port}/"

    yield _start

    for httpd in servers:
        httpd.shutdown()
        httpd.server_close()
