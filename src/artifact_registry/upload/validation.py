"""
Upload request validation.

Checks the multipart fields of an upload and normalizes them into a
``ValidatedUpload``. Every failure names the offending field.
"""

import json
from dataclasses import dataclass, field
from typing import Any

from artifact_registry.catalog import validate_artifact_name, validate_version_string
from artifact_registry.config import format_size
from artifact_registry.core.exceptions import PayloadTooLargeError, UploadValidationError

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class UploadRequest:
    """Raw fields of one upload request, as received."""

    authorization: str | None = None
    name: str | None = None
    version: str | None = None
    metadata: str | None = None
    payload: bytes | None = None
    original_file_name: str | None = None
    content_type: str | None = None


@dataclass
class ValidatedUpload:
    """An upload whose fields passed validation."""

    name: str
    version: str
    payload: bytes
    file_name: str
    content_type: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def size_bytes(self) -> int:
        return len(self.payload)


def _reject_constant(token: str) -> Any:
    # NaN, Infinity and -Infinity are not valid JSON
    raise UploadValidationError("Invalid metadata JSON", field="metadata")


def parse_metadata(raw: str | None) -> dict[str, Any]:
    """
    Parse the optional metadata field.

    Blank or missing metadata yields an empty mapping.

    Raises:
        UploadValidationError: If the value is not JSON or not a JSON object
    """
    if raw is None or not raw.strip():
        return {}
    try:
        value = json.loads(raw, parse_constant=_reject_constant)
    except ValueError as e:
        raise UploadValidationError("Invalid metadata JSON", field="metadata") from e
    if not isinstance(value, dict):
        raise UploadValidationError("metadata must be a JSON object", field="metadata")
    return value


def sanitize_file_name(original: str | None, name: str, version: str) -> str:
    """
    Reduce a client-supplied file name to its base name.

    Falls back to ``{name}-{version}`` when nothing usable remains.
    """
    if original:
        base = original.replace("\\", "/").rsplit("/", 1)[-1].strip()
        if base and base not in (".", "..") and base.isprintable():
            return base
    return f"{name}-{version}"


def validate_upload(request: UploadRequest, *, hard_max_size: int) -> ValidatedUpload:
    """
    Validate an upload request.

    Args:
        request: Raw request fields
        hard_max_size: Largest payload accepted

    Returns:
        Normalized upload

    Raises:
        UploadValidationError: If a field is missing or malformed
        PayloadTooLargeError: If the payload exceeds the hard maximum
    """
    if request.payload is None:
        raise UploadValidationError("Missing required file field: file", field="file")

    if request.name is None or not request.name.strip():
        raise UploadValidationError("Missing required field: fileName", field="fileName")
    name = validate_artifact_name(request.name.strip())

    if request.version is None or not request.version.strip():
        raise UploadValidationError("Missing required field: version", field="version")
    version = validate_version_string(request.version.strip())

    size_bytes = len(request.payload)
    if size_bytes <= 0:
        raise UploadValidationError("File is empty or has invalid size.", field="file")
    if size_bytes > hard_max_size:
        raise PayloadTooLargeError(
            f"File size exceeds maximum allowed size of {format_size(hard_max_size)}",
            size_bytes=size_bytes,
            max_size_bytes=hard_max_size,
        )

    metadata = parse_metadata(request.metadata)

    return ValidatedUpload(
        name=name,
        version=version,
        payload=request.payload,
        file_name=sanitize_file_name(request.original_file_name, name, version),
        content_type=request.content_type or DEFAULT_CONTENT_TYPE,
        metadata=metadata,
    )
