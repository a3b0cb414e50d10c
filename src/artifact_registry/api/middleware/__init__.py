"""
Middleware for the Artifact Registry API.
"""

from artifact_registry.api.middleware.logging import RequestLoggingMiddleware, client_address
from artifact_registry.api.middleware.size_limit import MULTIPART_OVERHEAD, SizeLimitMiddleware

__all__ = [
    "MULTIPART_OVERHEAD",
    "RequestLoggingMiddleware",
    "SizeLimitMiddleware",
    "client_address",
]
