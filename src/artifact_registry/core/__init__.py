"""
Artifact Registry Core Module.

Provides foundational types and the exception hierarchy.
"""

__all__ = [
    "ApiCredential",
    "Artifact",
    "ArtifactVersions",
    "CamelModel",
    "CredentialIdentity",
    "OverflowLocation",
    "PrimaryLocation",
    "StorageBackend",
    "StorageLocation",
    "Version",
    "iso_timestamp",
    "location_from_row",
    # Exceptions
    "ArtifactRegistryError",
    "CatalogError",
    "ConfigurationError",
    "CredentialExistsError",
    "InvalidCredentialError",
    "PayloadTooLargeError",
    "StorageError",
    "StorageErrorKind",
    "UploadCancelledError",
    "UploadValidationError",
    "VersionConflictError",
]

from artifact_registry.core.exceptions import (
    ArtifactRegistryError,
    CatalogError,
    ConfigurationError,
    CredentialExistsError,
    InvalidCredentialError,
    PayloadTooLargeError,
    StorageError,
    StorageErrorKind,
    UploadCancelledError,
    UploadValidationError,
    VersionConflictError,
)
from artifact_registry.core.models import (
    ApiCredential,
    Artifact,
    ArtifactVersions,
    CamelModel,
    CredentialIdentity,
    OverflowLocation,
    PrimaryLocation,
    StorageBackend,
    StorageLocation,
    Version,
    iso_timestamp,
    location_from_row,
)
