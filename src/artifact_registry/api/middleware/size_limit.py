"""
Request size limit middleware.

Rejects upload requests whose declared Content-Length already exceeds the
hard payload ceiling plus a multipart overhead allowance, before the body is
read. Requests without a Content-Length pass through; the upload path checks
the actual payload size again.
"""

import logging
from typing import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from artifact_registry.api.middleware.logging import client_address
from artifact_registry.api.schemas.exceptions import PayloadTooLargeAPIError
from artifact_registry.config import DEFAULT_HARD_MAX_SIZE, MIB, format_size

logger = logging.getLogger(__name__)

# Room for multipart boundaries and the non-file form fields
MULTIPART_OVERHEAD = 1 * MIB


class SizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware to enforce request size limits.

    Features:
    - Rejects requests exceeding max size with 413 status
    - Logs oversized requests for security monitoring
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        hard_max_size: int = DEFAULT_HARD_MAX_SIZE,
        overhead: int = MULTIPART_OVERHEAD,
        skip_paths: set[str] | None = None,
    ) -> None:
        """
        Initialize the size limit middleware.

        Args:
            app: ASGI application
            hard_max_size: Largest payload accepted
            overhead: Allowance for multipart framing on top of the payload
            skip_paths: Paths to skip size checking for
        """
        super().__init__(app)
        self._hard_max_size = hard_max_size
        self._max_request_size = hard_max_size + overhead
        self._skip_paths = skip_paths or {
            "/health",
            "/docs",
            "/redoc",
            "/openapi.json",
        }

        logger.info(
            "SizeLimitMiddleware initialized",
            extra={
                "max_request_size": self._max_request_size,
                "max_request_size_formatted": format_size(self._max_request_size),
            },
        )

    @property
    def max_request_size(self) -> int:
        return self._max_request_size

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        path = request.url.path
        if path in self._skip_paths:
            return await call_next(request)

        content_length = request.headers.get("content-length")
        if content_length:
            try:
                request_size = int(content_length)
            except ValueError:
                # Let the server reject the malformed header
                return await call_next(request)

            if request_size > self._max_request_size:
                logger.warning(
                    "Request size limit exceeded",
                    extra={
                        "event": "request_size_exceeded",
                        "path": path,
                        "method": request.method,
                        "client_ip": client_address(request),
                        "content_length": request_size,
                        "content_length_formatted": format_size(request_size),
                        "max_size": self._max_request_size,
                    },
                )
                error = PayloadTooLargeAPIError(
                    f"File size exceeds maximum allowed size of {format_size(self._hard_max_size)}"
                )
                return JSONResponse(status_code=error.status_code, content=error.to_content())

        return await call_next(request)
