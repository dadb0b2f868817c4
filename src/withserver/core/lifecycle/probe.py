"""Single-shot HTTP readiness probe.

Readiness means "a socket is accepting and answering", not "the content is
correct", so any HTTP response counts, whatever its status code.
"""
from __future__ import annotations

import errno
import http.client
import logging
import socket
from urllib.error import HTTPError, URLError
from urllib.request import ProxyHandler, Request, build_opener

from .models import ProbeResult

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_SECONDS = 0.5

# Local servers only: never route probes through an HTTP(S)_PROXY.
_OPENER = build_opener(ProxyHandler({}))


def _error_code(exc: BaseException) -> str:
    code = getattr(exc, "errno", None)
    if isinstance(code, int) and code in errno.errorcode:
        return errno.errorcode[code]
    return type(exc).__name__


def _classify_transport_error(exc: BaseException) -> ProbeResult:
    if isinstance(exc, ConnectionRefusedError):
        return ProbeResult.not_ready("ECONNREFUSED")
    if isinstance(exc, (TimeoutError, socket.timeout)):
        return ProbeResult.not_ready("ETIMEDOUT")
    return ProbeResult.ambiguous(_error_code(exc))


def probe(url: str, timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS) -> ProbeResult:
    """Issue one GET to ``url`` and classify the outcome.

    - any HTTP response ⇒ READY
    - connection refused or timeout ⇒ NOT_READY
    - any other transport error ⇒ AMBIGUOUS (callers treat it as up)
    """
    req = Request(url, method="GET")
    try:
        with _OPENER.open(req, timeout=max(0.01, float(timeout_seconds))) as resp:
            result = ProbeResult.ready(http_status=resp.status)
    except HTTPError as exc:
        exc.close()
        result = ProbeResult.ready(http_status=exc.code)
    except URLError as exc:
        reason = exc.reason
        if isinstance(reason, BaseException):
            result = _classify_transport_error(reason)
        else:
            result = ProbeResult.ambiguous(str(reason) or "URLError")
    except (OSError, http.client.HTTPException) as exc:
        result = _classify_transport_error(exc)

    logger.debug("probe %s -> %s (%s)", url, result.status.value, result.error_code or result.http_status)
    return result


__all__ = ["probe", "DEFAULT_PROBE_TIMEOUT_SECONDS"]
