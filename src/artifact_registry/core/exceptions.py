"""
Artifact Registry Exception Hierarchy.

Defines the domain exceptions raised by the credential, catalog, storage and
upload layers. The API layer translates them into HTTP responses.
"""

from enum import Enum
from typing import Any


class ArtifactRegistryError(Exception):
    """
    Base exception for all Artifact Registry errors.

    All custom exceptions inherit from this class, allowing
    generic catch blocks and consistent error handling.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        """
        Initialize an ArtifactRegistryError.

        Args:
            message: Human-readable error message
            details: Optional structured data for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation with details."""
        base = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{base} ({details_str})"
        return base


class ConfigurationError(ArtifactRegistryError):
    """
    Errors in configuration loading or validation.

    Raised when:
    - Required environment variables are not set
    - Configuration values are invalid or contradict each other
    """

    def __init__(
        self,
        message: str,
        *,
        env_var: str | None = None,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize a ConfigurationError.

        Args:
            message: Human-readable error message
            env_var: Environment variable name if applicable
            config_key: Configuration key if applicable
            details: Optional structured data for debugging
        """
        details = details or {}
        if env_var:
            details["env_var"] = env_var
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, details=details)
        self.env_var = env_var
        self.config_key = config_key


class InvalidCredentialError(ArtifactRegistryError):
    """
    Raised when a bearer credential is missing, unknown or revoked.

    The message never reveals which of those cases applied.
    """

    def __init__(self, message: str = "Invalid or inactive API key"):
        super().__init__(message)


class CredentialExistsError(ArtifactRegistryError):
    """Raised when creating an API key whose name or secret is already taken."""

    def __init__(self, message: str = "API key already exists", *, name: str | None = None):
        details = {"key_name": name} if name else {}
        super().__init__(message, details=details)
        self.name = name


class UploadValidationError(ArtifactRegistryError):
    """Raised when an upload field fails format or schema validation."""

    def __init__(
        self,
        message: str,
        *,
        field: str,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize an UploadValidationError.

        Args:
            message: Human-readable error message
            field: Name of the offending request field
            details: Optional structured data for debugging
        """
        details = details or {}
        details["field"] = field

        super().__init__(message, details=details)
        self.field = field


class PayloadTooLargeError(ArtifactRegistryError):
    """Raised when a payload exceeds the hard size ceiling."""

    def __init__(
        self,
        message: str,
        *,
        size_bytes: int | None = None,
        max_size_bytes: int | None = None,
    ):
        details: dict[str, Any] = {}
        if size_bytes is not None:
            details["size_bytes"] = size_bytes
        if max_size_bytes is not None:
            details["max_size_bytes"] = max_size_bytes
        super().__init__(message, details=details)
        self.size_bytes = size_bytes
        self.max_size_bytes = max_size_bytes


class CatalogError(ArtifactRegistryError):
    """
    Errors in catalog persistence.

    Raised when the relational store fails for a reason other than a
    uniqueness conflict: connection failures, locked databases, schema errors.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if operation:
            details["operation"] = operation
        super().__init__(message, details=details)
        self.operation = operation


class VersionConflictError(ArtifactRegistryError):
    """Raised when a (name, version) pair is already registered."""

    def __init__(
        self,
        message: str | None = None,
        *,
        artifact_name: str | None = None,
        version: str | None = None,
        at_commit: bool = False,
    ):
        if message is None:
            message = f"Version {version} already exists for file {artifact_name}"
        details: dict[str, Any] = {"at_commit": at_commit}
        if artifact_name:
            details["artifact_name"] = artifact_name
        if version:
            details["version"] = version
        super().__init__(message, details=details)
        self.artifact_name = artifact_name
        self.version = version
        self.at_commit = at_commit


class StorageErrorKind(Enum):
    """Failure classes reported by object store backends."""

    UNAVAILABLE = "unavailable"
    TOO_LARGE = "too_large"
    EXISTS = "exists"


class StorageError(ArtifactRegistryError):
    """
    Errors from object store backends.

    Raised when:
    - A backend is unreachable or answers with a server error
    - A backend refuses the object (already exists, rejected)
    - A payload is too large for the backend it was routed to
    """

    def __init__(
        self,
        message: str,
        *,
        kind: StorageErrorKind = StorageErrorKind.UNAVAILABLE,
        backend: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize a StorageError.

        Args:
            message: Human-readable error message
            kind: Failure class
            backend: Name of the backend that failed
            status_code: HTTP status code if applicable
            details: Optional structured data for debugging
        """
        details = details or {}
        details["kind"] = kind.value
        if backend:
            details["backend"] = backend
        if status_code:
            details["status_code"] = status_code

        super().__init__(message, details=details)
        self.kind = kind
        self.backend = backend
        self.status_code = status_code


class UploadCancelledError(ArtifactRegistryError):
    """Raised when the client went away before the upload was committed."""

    def __init__(self, message: str = "Upload cancelled by client"):
        super().__init__(message)


def format_exception(error: Exception) -> str:
    """
    Format an exception for user-friendly display.

    Args:
        error: The exception to format

    Returns:
        Formatted error message string
    """
    if isinstance(error, ArtifactRegistryError):
        return str(error)
    return f"{error.__class__.__name__}: {error}"
