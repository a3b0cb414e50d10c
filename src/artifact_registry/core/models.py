"""
Core data models for Artifact Registry.

Records shared by the credential store, catalog and storage router.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


def iso_timestamp() -> str:
    """Return current UTC time as a fixed-width ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class StorageBackend(str, Enum):
    """Object store backends an upload can be routed to."""

    PRIMARY = "primary"
    OVERFLOW = "overflow"


class PrimaryLocation(BaseModel):
    """Object stored in the size-capped primary store, addressed by key."""

    backend: Literal[StorageBackend.PRIMARY] = StorageBackend.PRIMARY
    object_key: str

    model_config = {"frozen": True}

    @property
    def reference(self) -> str:
        return self.object_key


class OverflowLocation(BaseModel):
    """Object stored in the overflow store, addressed by a resolved public link."""

    backend: Literal[StorageBackend.OVERFLOW] = StorageBackend.OVERFLOW
    external_link: str

    model_config = {"frozen": True}

    @property
    def reference(self) -> str:
        return self.external_link


StorageLocation = Annotated[
    Union[PrimaryLocation, OverflowLocation],
    Field(discriminator="backend"),
]


def location_from_row(backend: str, reference: str) -> PrimaryLocation | OverflowLocation:
    """Rebuild a storage location from its persisted (backend, reference) pair."""
    if StorageBackend(backend) is StorageBackend.PRIMARY:
        return PrimaryLocation(object_key=reference)
    return OverflowLocation(external_link=reference)


class ApiCredential(BaseModel):
    """A named, revocable API key used by CI pipelines to upload."""

    id: str
    name: str
    secret: str = Field(repr=False)
    active: bool = True
    created_at: str = Field(default_factory=iso_timestamp)
    last_used_at: str | None = None


class CredentialIdentity(BaseModel):
    """Identity established by a successful credential validation."""

    credential_id: str
    name: str

    model_config = {"frozen": True}


class Artifact(BaseModel):
    """A logical, named build product."""

    id: str
    name: str
    created_at: str
    updated_at: str


class Version(BaseModel):
    """One immutable upload of an artifact."""

    id: str
    artifact_id: str
    version: str
    location: StorageLocation
    size_bytes: int
    content_type: str
    file_name: str
    uploaded_at: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    is_latest: bool = False
    uploaded_by: str | None = None


class ArtifactVersions(BaseModel):
    """An artifact together with its versions, newest first."""

    artifact: Artifact
    versions: list[Version] = Field(default_factory=list)

    @property
    def latest(self) -> Version | None:
        for version in self.versions:
            if version.is_latest:
                return version
        return None


class CamelModel(BaseModel):
    """Base for records serialized with camelCase keys on the wire."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True}
