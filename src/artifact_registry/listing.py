"""
Artifact listing - the read path.

Joins the catalog's artifacts and versions with the storage router's URL
resolution to produce download listings. Resolution never touches the
network: overflow links are returned verbatim, primary keys go through the
primary store's public URL rule.
"""

from typing import Any

from pydantic import Field

from artifact_registry.catalog import Catalog
from artifact_registry.core.models import CamelModel, StorageBackend, Version
from artifact_registry.storage import StorageRouter


class VersionEntry(CamelModel):
    """One downloadable version in a listing."""

    id: str
    version: str
    file_name: str
    file_size: int
    file_type: str
    storage_backend: StorageBackend
    storage_path: str
    download_url: str
    uploaded_at: str
    uploaded_by: str | None = None
    is_latest: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)


class ArtifactEntry(CamelModel):
    """One artifact with its versions, newest first."""

    id: str
    name: str
    created_at: str
    updated_at: str
    latest_version: str | None = None
    versions: list[VersionEntry] = Field(default_factory=list)


def version_entry(version: Version, router: StorageRouter) -> VersionEntry:
    return VersionEntry(
        id=version.id,
        version=version.version,
        file_name=version.file_name,
        file_size=version.size_bytes,
        file_type=version.content_type,
        storage_backend=version.location.backend,
        storage_path=version.location.reference,
        download_url=router.download_url(version.location),
        uploaded_at=version.uploaded_at,
        uploaded_by=version.uploaded_by,
        is_latest=version.is_latest,
        metadata=version.metadata,
    )


def build_listing(catalog: Catalog, router: StorageRouter) -> list[ArtifactEntry]:
    """
    Build the download listing for every artifact.

    Artifacts come most recently updated first; each carries its versions
    most recently uploaded first. With no intervening writes, repeated calls
    return identical results.
    """
    entries = []
    for item in catalog.list_artifacts_with_versions():
        latest = item.latest
        entries.append(
            ArtifactEntry(
                id=item.artifact.id,
                name=item.artifact.name,
                created_at=item.artifact.created_at,
                updated_at=item.artifact.updated_at,
                latest_version=latest.version if latest else None,
                versions=[version_entry(v, router) for v in item.versions],
            )
        )
    return entries
