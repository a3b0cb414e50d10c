"""
Upload pipeline.

Validates upload fields and runs the accept/reject protocol that registers a
new artifact version.
"""

from artifact_registry.upload.orchestrator import (
    UploadOrchestrator,
    UploadOutcome,
    UploadState,
)
from artifact_registry.upload.validation import (
    DEFAULT_CONTENT_TYPE,
    UploadRequest,
    ValidatedUpload,
    parse_metadata,
    sanitize_file_name,
    validate_upload,
)

__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "UploadOrchestrator",
    "UploadOutcome",
    "UploadRequest",
    "UploadState",
    "ValidatedUpload",
    "parse_metadata",
    "sanitize_file_name",
    "validate_upload",
]
