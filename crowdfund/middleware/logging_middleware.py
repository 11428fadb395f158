"""
HTTP request logging middleware.

One structured line per request, tagged with a request id that is also
echoed back in the ``x-request-id`` response header. Wallet routes also
bind the lowercased wallet so Trails calls made while serving the request
carry it.
"""

import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.stdlib.get_logger("http")

_WALLET_PATH = re.compile(r"^/trail/wallets/(0x[0-9a-fA-F]{40})(/|$)")
_QUIET_PATHS = frozenset({"/healthz", "/api/manifest", "/.well-known/farcaster.json"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests with timing, status and wallet."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]
        path = request.url.path

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        match = _WALLET_PATH.match(path)
        if match:
            structlog.contextvars.bind_contextvars(wallet=match.group(1).lower())

        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["x-request-id"] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 1)

            if status_code >= 500:
                log = logger.error
            elif status_code >= 400:
                log = logger.warning
            elif path in _QUIET_PATHS:
                # polled by the host and load balancer
                log = logger.debug
            else:
                log = logger.info

            log(
                "http_request",
                method=request.method,
                path=path,
                status=status_code,
                duration_ms=duration_ms,
            )
