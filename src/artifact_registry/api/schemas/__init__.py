"""
Pydantic schemas for API responses and errors.
"""

from artifact_registry.api.schemas.exceptions import (
    APIException,
    BadRequestError,
    ConflictError,
    InternalError,
    PayloadTooLargeAPIError,
    UnauthorizedError,
    api_error_for,
)
from artifact_registry.api.schemas.responses import (
    ArtifactListResponse,
    ErrorResponse,
    HealthResponse,
    UploadData,
    UploadResponse,
)

__all__ = [
    # Exceptions
    "APIException",
    "BadRequestError",
    "UnauthorizedError",
    "ConflictError",
    "PayloadTooLargeAPIError",
    "InternalError",
    "api_error_for",
    # Responses
    "ArtifactListResponse",
    "ErrorResponse",
    "HealthResponse",
    "UploadData",
    "UploadResponse",
]
