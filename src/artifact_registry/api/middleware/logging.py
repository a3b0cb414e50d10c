"""
Request logging middleware.

Writes one line per request once its response is ready: method, path,
status, duration and request id. Upload requests also get a line up front
with their declared body size, so slow transfers show up before they finish.
Static file downloads and health checks log at DEBUG only.
"""

import logging
import time
import uuid
from collections.abc import Iterable
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from artifact_registry.config import format_size

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def client_address(request: Request) -> str:
    """First forwarded hop, then X-Real-IP, then the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.headers.get("x-real-ip"):
        return request.headers["x-real-ip"]
    return request.client.host if request.client else "unknown"


def declared_size(request: Request) -> int | None:
    """Content-Length as sent by the client, if it is a number."""
    value = request.headers.get("content-length")
    if value is None or not value.strip().isdigit():
        return None
    return int(value)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request with a request id and echoes the id back.

    The id comes from the incoming X-Request-ID header or is generated, so
    a pipeline can correlate its own logs with the registry's. Responses
    carry X-Request-ID and X-Process-Time (milliseconds). No header value
    other than the request id is ever logged.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        quiet_prefixes: Iterable[str] = (),
        quiet_paths: Iterable[str] = ("/health",),
    ) -> None:
        """
        Initialize the logging middleware.

        Args:
            app: ASGI application
            quiet_prefixes: Mount points (e.g. the static files prefix) whose
                requests log at DEBUG without request ids
            quiet_paths: Exact paths treated the same way
        """
        super().__init__(app)
        self._quiet_prefixes = tuple(prefix.rstrip("/") + "/" for prefix in quiet_prefixes)
        self._quiet_paths = frozenset(quiet_paths)

    def _is_quiet(self, path: str) -> bool:
        return path in self._quiet_paths or path.startswith(self._quiet_prefixes)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        method = request.method
        path = request.url.path

        if self._is_quiet(path):
            response = await call_next(request)
            logger.debug("%s %s -> %d", method, path, response.status_code)
            return response

        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        context = {
            "request_id": request_id,
            "method": method,
            "path": path,
            "client_ip": client_address(request),
        }

        size = declared_size(request)
        if method == "POST" and size is not None:
            context["content_length"] = size
            logger.info(
                "Upload %s receiving %s from %s",
                request_id,
                format_size(size),
                context["client_ip"],
                extra=context,
            )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - started) * 1000
            logger.exception(
                "%s %s failed after %.1f ms [%s]",
                method,
                path,
                duration_ms,
                request_id,
                extra={**context, "duration_ms": round(duration_ms, 2)},
            )
            raise

        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s %s -> %d in %.1f ms [%s]",
            method,
            path,
            response.status_code,
            duration_ms,
            request_id,
            extra={
                **context,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

        response.headers["X-Process-Time"] = f"{duration_ms:.2f}"
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
