"""
Exception classes for API error handling.

Every failure leaves the API as
``{"success": false, "error": <category>, "message": <text>[, "field": <name>]}``.
"""

import logging
from typing import Any

from artifact_registry.core.exceptions import (
    ArtifactRegistryError,
    CatalogError,
    InvalidCredentialError,
    PayloadTooLargeError,
    StorageError,
    UploadCancelledError,
    UploadValidationError,
    VersionConflictError,
)

logger = logging.getLogger(__name__)

DEFAULT_INTERNAL_MESSAGE = "An error occurred while processing your request"


class APIException(Exception):
    """
    Base exception for API errors.

    All API exceptions should inherit from this class to ensure
    consistent error response formatting.
    """

    status_code: int = 500
    error_type: str = "Internal Server Error"
    message: str = DEFAULT_INTERNAL_MESSAGE
    field: str | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        field: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.message = message or self.message
        self.field = field
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_content(self) -> dict[str, Any]:
        """Render the error body."""
        content: dict[str, Any] = {
            "success": False,
            "error": self.error_type,
            "message": self.message,
        }
        if self.field:
            content["field"] = self.field
        return content


class BadRequestError(APIException):
    """Malformed or missing request field."""

    status_code = 400
    error_type = "Bad Request"
    message = "Invalid request"


class UnauthorizedError(APIException):
    """Missing, unknown or revoked credential."""

    status_code = 401
    error_type = "Unauthorized"
    message = "Invalid or inactive API key"


class ConflictError(APIException):
    """Version already registered."""

    status_code = 409
    error_type = "Conflict"
    message = "Version already exists"


class PayloadTooLargeAPIError(APIException):
    """Payload above the hard size ceiling."""

    status_code = 413
    error_type = "Payload Too Large"
    message = "Request body exceeds maximum allowed size"


class InternalError(APIException):
    """Backend or catalog failure."""

    status_code = 500
    error_type = "Internal Server Error"
    message = DEFAULT_INTERNAL_MESSAGE


def api_error_for(error: ArtifactRegistryError) -> APIException:
    """
    Translate a domain error into its API error.

    Storage, catalog and other unclassified failures become a generic
    internal error; their details are logged, never returned.
    """
    if isinstance(error, InvalidCredentialError):
        return UnauthorizedError(error.message)
    if isinstance(error, UploadValidationError):
        return BadRequestError(error.message, field=error.field)
    if isinstance(error, PayloadTooLargeError):
        return PayloadTooLargeAPIError(error.message)
    if isinstance(error, VersionConflictError):
        return ConflictError(error.message)
    if isinstance(error, UploadCancelledError):
        return BadRequestError(error.message)

    logger.error("Request failed: %s", error, exc_info=error)
    if isinstance(error, StorageError):
        return InternalError("Failed to upload file to storage")
    if isinstance(error, CatalogError) and error.operation == "commit_version":
        return InternalError("Failed to create version record")
    return InternalError()
