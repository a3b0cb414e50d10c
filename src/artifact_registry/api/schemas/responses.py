"""
Pydantic response schemas for API endpoints.

All API responses conform to these schemas; keys are camelCase on the wire.
"""

from pydantic import Field

from artifact_registry.core.models import CamelModel, StorageBackend
from artifact_registry.listing import ArtifactEntry


class UploadData(CamelModel):
    """Details of a committed upload."""

    artifact_id: str = Field(..., description="Artifact ID")
    version_id: str = Field(..., description="Version ID")
    file_name: str = Field(..., description="Logical artifact name")
    version: str = Field(..., description="Version string")
    original_file_name: str = Field(..., description="Base name of the uploaded file")
    storage_backend: StorageBackend = Field(..., description="Backend holding the object")
    storage_path: str = Field(..., description="Object key or external link")
    file_size: int = Field(..., description="Payload size in bytes")
    file_type: str = Field(..., description="Payload content type")
    download_url: str = Field(..., description="Public download URL")
    uploaded_at: str = Field(..., description="Commit timestamp")
    uploaded_by: str = Field(..., description="Name of the API key used")
    is_latest: bool = Field(..., description="Whether this is the artifact's latest version")


class UploadResponse(CamelModel):
    """Response model for a successful upload."""

    success: bool = True
    message: str = "File uploaded successfully"
    data: UploadData


class ArtifactListResponse(CamelModel):
    """Response model for the artifact listing."""

    success: bool = True
    message: str = "Artifacts retrieved successfully"
    data: list[ArtifactEntry] = Field(default_factory=list)


class HealthResponse(CamelModel):
    """Response model for health check."""

    status: str = Field(..., description="Health status")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="Check timestamp")
    components: dict[str, str] = Field(default_factory=dict, description="Component statuses")


class ErrorResponse(CamelModel):
    """Standard error response format."""

    success: bool = False
    error: str = Field(..., description="Error category")
    message: str = Field(..., description="Human-readable error message")
    field: str | None = Field(None, description="Offending request field")
