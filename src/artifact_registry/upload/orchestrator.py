"""
Upload orchestrator - the end-to-end accept/reject protocol for one upload.

States:

    RECEIVED -> AUTHENTICATED -> VALIDATED -> DUPLICATE_CHECKED
             -> STORED -> COMMITTED

Any state may exit to REJECTED. Once an object has been stored, a failure
passes through ROLLED_BACK first: the stored object is removed (primary) or
logged as orphaned (overflow) before the original error is re-raised.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from artifact_registry.catalog import Catalog
from artifact_registry.core.exceptions import (
    StorageError,
    StorageErrorKind,
    UploadCancelledError,
    VersionConflictError,
)
from artifact_registry.core.models import (
    Artifact,
    CredentialIdentity,
    OverflowLocation,
    PrimaryLocation,
    Version,
)
from artifact_registry.credentials import CredentialValidator
from artifact_registry.storage import StorageRouter, build_object_key
from artifact_registry.upload.validation import UploadRequest, validate_upload

logger = logging.getLogger(__name__)


class UploadState(Enum):
    """Stages an upload passes through."""

    RECEIVED = "received"
    AUTHENTICATED = "authenticated"
    VALIDATED = "validated"
    DUPLICATE_CHECKED = "duplicate_checked"
    STORED = "stored"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    REJECTED = "rejected"


@dataclass
class UploadOutcome:
    """Result of a committed upload."""

    artifact: Artifact
    version: Version
    download_url: str
    identity: CredentialIdentity
    states: list[UploadState] = field(default_factory=list)


@dataclass
class _UploadTrace:
    """State history of one upload, logged as it advances."""

    upload_id: str
    states: list[UploadState] = field(default_factory=lambda: [UploadState.RECEIVED])

    @property
    def current(self) -> UploadState:
        return self.states[-1]

    def advance(self, state: UploadState, **context) -> None:
        previous = self.current
        self.states.append(state)
        logger.debug(
            "Upload state transition",
            extra={
                "upload_id": self.upload_id,
                "from_state": previous.value,
                "to_state": state.value,
                **context,
            },
        )


class UploadOrchestrator:
    """
    Composes credential validation, the catalog and the storage router.

    One instance serves all requests; it holds no per-upload state and no
    locks, so uploads run concurrently.
    """

    def __init__(
        self,
        validator: CredentialValidator,
        catalog: Catalog,
        router: StorageRouter,
    ):
        self._validator = validator
        self._catalog = catalog
        self._router = router

    def handle(
        self,
        request: UploadRequest,
        *,
        is_cancelled: Callable[[], bool] | None = None,
    ) -> UploadOutcome:
        """
        Run one upload to completion.

        Args:
            request: Raw upload fields
            is_cancelled: Callable reporting whether the client has gone away;
                consulted after the storage write, before commit

        Returns:
            Outcome of the committed upload

        Raises:
            InvalidCredentialError: Missing, unknown or revoked credential
            UploadValidationError: Malformed field (names the field)
            PayloadTooLargeError: Payload above the hard maximum
            VersionConflictError: Pair already registered (pre-check, occupied
                object key, or commit)
            StorageError: Backend failure while storing
            CatalogError: Catalog failure
            UploadCancelledError: Client went away before commit
        """
        trace = _UploadTrace(upload_id=uuid.uuid4().hex[:12])
        try:
            return self._run(request, trace, is_cancelled)
        except Exception as e:
            logger.info(
                "Upload rejected",
                extra={
                    "upload_id": trace.upload_id,
                    "failed_state": trace.current.value,
                    "error_type": e.__class__.__name__,
                },
            )
            trace.advance(UploadState.REJECTED)
            raise

    def _run(
        self,
        request: UploadRequest,
        trace: _UploadTrace,
        is_cancelled: Callable[[], bool] | None,
    ) -> UploadOutcome:
        identity = self._validator.validate_header(request.authorization)
        trace.advance(UploadState.AUTHENTICATED, uploaded_by=identity.name)

        upload = validate_upload(request, hard_max_size=self._router.hard_max_size)
        trace.advance(
            UploadState.VALIDATED,
            artifact_name=upload.name,
            version=upload.version,
            size_bytes=upload.size_bytes,
        )

        artifact = self._catalog.get_or_create_artifact(upload.name)
        if self._catalog.version_exists(artifact.id, upload.version):
            raise VersionConflictError(artifact_name=upload.name, version=upload.version)
        trace.advance(UploadState.DUPLICATE_CHECKED, artifact_id=artifact.id)

        key = build_object_key(upload.name, upload.version, upload.file_name)
        try:
            location = self._router.store(
                upload.payload,
                upload.size_bytes,
                key,
                upload.content_type,
            )
        except StorageError as e:
            if e.kind is StorageErrorKind.EXISTS:
                raise self._occupied_key_conflict(artifact, upload.name, upload.version, key) from e
            raise
        trace.advance(UploadState.STORED, storage_backend=location.backend.value)

        try:
            if self._client_gone(is_cancelled):
                raise UploadCancelledError()
            version = self._catalog.commit_version(
                artifact.id,
                upload.version,
                location,
                size_bytes=upload.size_bytes,
                content_type=upload.content_type,
                file_name=upload.file_name,
                metadata=upload.metadata,
                uploaded_by=identity.name,
            )
        except Exception as e:
            self._compensate(location, trace, e)
            raise

        trace.advance(UploadState.COMMITTED, version_id=version.id)
        logger.info(
            "Upload committed",
            extra={
                "upload_id": trace.upload_id,
                "artifact_name": upload.name,
                "version": upload.version,
                "storage_backend": location.backend.value,
                "uploaded_by": identity.name,
            },
        )
        return UploadOutcome(
            artifact=artifact,
            version=version,
            download_url=self._router.download_url(version.location),
            identity=identity,
            states=list(trace.states),
        )

    def _client_gone(self, is_cancelled: Callable[[], bool] | None) -> bool:
        if is_cancelled is None:
            return False
        try:
            return bool(is_cancelled())
        except Exception:
            logger.debug("Cancellation check failed; assuming client is connected", exc_info=True)
            return False

    def _compensate(
        self,
        location: PrimaryLocation | OverflowLocation,
        trace: _UploadTrace,
        error: Exception,
    ) -> None:
        """Undo a storage write after a failure; the caller re-raises the error."""
        logger.warning(
            "Upload failed after storage write; rolling back",
            extra={
                "upload_id": trace.upload_id,
                "storage_backend": location.backend.value,
                "error_type": error.__class__.__name__,
            },
        )
        removed = self._router.rollback(location)
        trace.advance(UploadState.ROLLED_BACK, removed=removed)

    def _occupied_key_conflict(
        self,
        artifact: Artifact,
        name: str,
        version: str,
        key: str,
    ) -> VersionConflictError:
        """
        Classify a refused storage write.

        The object under ``key`` belongs to another upload of the same pair:
        either a racing upload that will commit, or one whose rollback failed.
        It is not ours, so nothing is rolled back.
        """
        if self._catalog.version_exists(artifact.id, version):
            return VersionConflictError(artifact_name=name, version=version, at_commit=True)
        logger.warning(
            "Storage key occupied by an uncommitted object",
            extra={"artifact_name": name, "version": version, "key": key},
        )
        return VersionConflictError(
            f"Version {version} of file {name} is being uploaded, or a failed upload "
            f"left an object behind; retry later or run 'artifact-registry prune-object {key}'",
            artifact_name=name,
            version=version,
            at_commit=True,
        )
