"""
Artifact catalog - artifacts, their versions, and the latest-version flag.

Invariants maintained here:
- An artifact name maps to exactly one artifact row (UNIQUE name).
- A (artifact, version string) pair is registered at most once.
- Every artifact with at least one version has exactly one version flagged
  latest, and it is the most recently committed one.

The latest flag is maintained by ``commit_version`` inside the same write
transaction that inserts the version, so concurrent commits to one artifact
are serialized by the database write lock.
"""

import json
import logging
import re
import sqlite3
import uuid
from typing import Any

from artifact_registry.core.exceptions import (
    CatalogError,
    UploadValidationError,
    VersionConflictError,
)
from artifact_registry.core.models import (
    Artifact,
    ArtifactVersions,
    OverflowLocation,
    PrimaryLocation,
    Version,
    iso_timestamp,
    location_from_row,
)
from artifact_registry.db import Database

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
VERSION_PATTERN = re.compile(r"[A-Za-z0-9._-]+")

MAX_NAME_LENGTH = 255
MAX_VERSION_LENGTH = 50


def validate_artifact_name(name: str) -> str:
    """
    Check an artifact name against the allowed charset.

    Raises:
        UploadValidationError: If the name is empty, too long or has other characters
    """
    if not name or len(name) > MAX_NAME_LENGTH or not NAME_PATTERN.fullmatch(name):
        raise UploadValidationError(
            "Invalid fileName format. Use only letters, numbers, dash, and underscore.",
            field="fileName",
        )
    return name


def validate_version_string(version: str) -> str:
    """
    Check a version string against the allowed charset (name charset plus dots).

    Raises:
        UploadValidationError: If the version is empty, too long or has other characters
    """
    if not version or len(version) > MAX_VERSION_LENGTH or not VERSION_PATTERN.fullmatch(version):
        raise UploadValidationError(
            "Invalid version format. Use only letters, numbers, dots, dash, and underscore.",
            field="version",
        )
    return version


def _row_to_artifact(row: sqlite3.Row) -> Artifact:
    return Artifact(
        id=row["id"],
        name=row["name"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_version(row: sqlite3.Row) -> Version:
    return Version(
        id=row["id"],
        artifact_id=row["artifact_id"],
        version=row["version"],
        location=location_from_row(row["storage_backend"], row["storage_ref"]),
        size_bytes=row["size_bytes"],
        content_type=row["content_type"],
        file_name=row["file_name"],
        uploaded_at=row["uploaded_at"],
        metadata=json.loads(row["metadata"]) if row["metadata"] else {},
        is_latest=bool(row["is_latest"]),
        uploaded_by=row["uploaded_by"],
    )


class Catalog:
    """
    Catalog of artifacts and versions on top of the shared SQLite database.

    No in-process locks are used: uniqueness and serialization come from
    table constraints and database transactions, so several processes may
    share one catalog file.
    """

    def __init__(self, db: Database):
        self._db = db

    def get_or_create_artifact(self, name: str) -> Artifact:
        """
        Resolve an artifact by name, creating it on first use.

        Concurrent first uploads of the same name race on the UNIQUE
        constraint; the loser reads back the winner's row.

        Args:
            name: Logical artifact name

        Returns:
            The existing or newly created artifact

        Raises:
            UploadValidationError: If the name has invalid characters
            CatalogError: If the database fails
        """
        validate_artifact_name(name)
        conn = self._db.connection()
        try:
            existing = self._find_artifact(conn, name)
            if existing is not None:
                return existing

            now = iso_timestamp()
            artifact = Artifact(id=str(uuid.uuid4()), name=name, created_at=now, updated_at=now)
            try:
                conn.execute(
                    "INSERT INTO artifacts (id, name, created_at, updated_at) VALUES (?, ?, ?, ?)",
                    (artifact.id, artifact.name, artifact.created_at, artifact.updated_at),
                )
            except sqlite3.IntegrityError:
                winner = self._find_artifact(conn, name)
                if winner is None:
                    raise CatalogError(
                        "Artifact insert conflicted but no row was found",
                        operation="get_or_create_artifact",
                    )
                logger.debug("Lost artifact creation race", extra={"artifact_name": name})
                return winner

            logger.info("Artifact created", extra={"artifact_name": name, "artifact_id": artifact.id})
            return artifact
        except sqlite3.Error as e:
            raise CatalogError(
                "Failed to resolve artifact", operation="get_or_create_artifact"
            ) from e

    def _find_artifact(self, conn: sqlite3.Connection, name: str) -> Artifact | None:
        row = conn.execute("SELECT * FROM artifacts WHERE name = ?", (name,)).fetchone()
        return _row_to_artifact(row) if row else None

    def get_artifact(self, name: str) -> Artifact | None:
        """Return the artifact with the given name, if any."""
        try:
            return self._find_artifact(self._db.connection(), name)
        except sqlite3.Error as e:
            raise CatalogError("Failed to read artifact", operation="get_artifact") from e

    def version_exists(self, artifact_id: str, version: str) -> bool:
        """
        Cheap duplicate pre-check run before any storage write.

        Not authoritative: ``commit_version`` re-checks atomically.
        """
        try:
            row = self._db.connection().execute(
                "SELECT 1 FROM versions WHERE artifact_id = ? AND version = ? LIMIT 1",
                (artifact_id, version),
            ).fetchone()
        except sqlite3.Error as e:
            raise CatalogError("Failed to check existing versions", operation="version_exists") from e
        return row is not None

    def get_version(self, artifact_id: str, version: str) -> Version | None:
        """Return a committed version, if any."""
        try:
            row = self._db.connection().execute(
                "SELECT * FROM versions WHERE artifact_id = ? AND version = ?",
                (artifact_id, version),
            ).fetchone()
        except sqlite3.Error as e:
            raise CatalogError("Failed to read version", operation="get_version") from e
        return _row_to_version(row) if row else None

    def is_referenced(self, location: PrimaryLocation | OverflowLocation) -> bool:
        """Whether any committed version points at this storage location."""
        try:
            row = self._db.connection().execute(
                "SELECT 1 FROM versions WHERE storage_backend = ? AND storage_ref = ? LIMIT 1",
                (location.backend.value, location.reference),
            ).fetchone()
        except sqlite3.Error as e:
            raise CatalogError("Failed to check object references", operation="is_referenced") from e
        return row is not None

    def commit_version(
        self,
        artifact_id: str,
        version: str,
        location: PrimaryLocation | OverflowLocation,
        size_bytes: int,
        content_type: str,
        file_name: str,
        metadata: dict[str, Any] | None = None,
        uploaded_by: str | None = None,
    ) -> Version:
        """
        Register a stored object as a new version and make it the latest.

        Runs as a single write transaction:
        (a) re-check the pair is unregistered, (b) insert the version row,
        (c) clear the latest flag on sibling versions, (d) set it on the new
        row, (e) bump the artifact's updated_at.

        Returns:
            The committed version

        Raises:
            VersionConflictError: If the pair was registered concurrently
            CatalogError: If the database fails for any other reason
        """
        validate_version_string(version)
        version_id = str(uuid.uuid4())
        try:
            with self._db.transaction(immediate=True) as conn:
                taken = conn.execute(
                    "SELECT 1 FROM versions WHERE artifact_id = ? AND version = ? LIMIT 1",
                    (artifact_id, version),
                ).fetchone()
                if taken:
                    raise VersionConflictError(
                        artifact_name=self._artifact_name(conn, artifact_id),
                        version=version,
                        at_commit=True,
                    )

                uploaded_at = iso_timestamp()
                try:
                    conn.execute(
                        """
                        INSERT INTO versions (
                            id, artifact_id, version, storage_backend, storage_ref,
                            size_bytes, content_type, file_name, uploaded_at,
                            metadata, is_latest, uploaded_by
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?)
                        """,
                        (
                            version_id,
                            artifact_id,
                            version,
                            location.backend.value,
                            location.reference,
                            size_bytes,
                            content_type,
                            file_name,
                            uploaded_at,
                            json.dumps(metadata or {}),
                            uploaded_by,
                        ),
                    )
                except sqlite3.IntegrityError as e:
                    if "UNIQUE" in str(e):
                        raise VersionConflictError(
                            artifact_name=self._artifact_name(conn, artifact_id),
                            version=version,
                            at_commit=True,
                        ) from e
                    raise

                conn.execute(
                    "UPDATE versions SET is_latest = 0 WHERE artifact_id = ? AND id != ? AND is_latest = 1",
                    (artifact_id, version_id),
                )
                conn.execute("UPDATE versions SET is_latest = 1 WHERE id = ?", (version_id,))
                updated = conn.execute(
                    "UPDATE artifacts SET updated_at = ? WHERE id = ?",
                    (uploaded_at, artifact_id),
                )
                if updated.rowcount != 1:
                    raise CatalogError(
                        "Artifact does not exist",
                        operation="commit_version",
                        details={"artifact_id": artifact_id},
                    )

                row = conn.execute("SELECT * FROM versions WHERE id = ?", (version_id,)).fetchone()
        except sqlite3.Error as e:
            raise CatalogError("Failed to commit version", operation="commit_version") from e

        committed = _row_to_version(row)
        logger.info(
            "Version committed",
            extra={
                "artifact_id": artifact_id,
                "version": version,
                "version_id": version_id,
                "storage_backend": location.backend.value,
            },
        )
        return committed

    def _artifact_name(self, conn: sqlite3.Connection, artifact_id: str) -> str | None:
        row = conn.execute("SELECT name FROM artifacts WHERE id = ?", (artifact_id,)).fetchone()
        return row["name"] if row else None

    def list_artifacts_with_versions(self) -> list[ArtifactVersions]:
        """
        Return every artifact with its versions.

        Artifacts are ordered by updated_at descending and versions by
        uploaded_at descending. Ties fall back to insertion order, newest
        first, so repeated reads return the same order.
        """
        try:
            with self._db.transaction() as conn:
                artifact_rows = conn.execute(
                    "SELECT * FROM artifacts ORDER BY updated_at DESC, rowid DESC"
                ).fetchall()
                version_rows = conn.execute(
                    "SELECT * FROM versions ORDER BY uploaded_at DESC, rowid DESC"
                ).fetchall()
        except sqlite3.Error as e:
            raise CatalogError(
                "Failed to list artifacts", operation="list_artifacts_with_versions"
            ) from e

        grouped: dict[str, list[Version]] = {}
        for row in version_rows:
            grouped.setdefault(row["artifact_id"], []).append(_row_to_version(row))

        return [
            ArtifactVersions(
                artifact=_row_to_artifact(row),
                versions=grouped.get(row["id"], []),
            )
            for row in artifact_rows
        ]
