"""
Artifact catalog.

Tracks artifacts, their versions, and which version is the latest.
"""

from artifact_registry.catalog.catalog import (
    MAX_NAME_LENGTH,
    MAX_VERSION_LENGTH,
    NAME_PATTERN,
    VERSION_PATTERN,
    Catalog,
    validate_artifact_name,
    validate_version_string,
)

__all__ = [
    "Catalog",
    "MAX_NAME_LENGTH",
    "MAX_VERSION_LENGTH",
    "NAME_PATTERN",
    "VERSION_PATTERN",
    "validate_artifact_name",
    "validate_version_string",
]
