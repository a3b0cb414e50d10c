"""
Storage router - picks a backend per upload and hides the difference.

Routing rule for a payload of ``size`` bytes:
- size > hard_max_size            -> rejected, no backend contacted
- size <= primary_object_limit    -> primary store, located by object key
- otherwise                       -> overflow store, located by external link

Rollback of a primary object deletes it. Overflow objects cannot be deleted;
rolling one back only logs the orphaned link.
"""

import logging
import posixpath

from artifact_registry.config import PrimaryBackendKind, RegistryConfig, format_size
from artifact_registry.core.exceptions import (
    PayloadTooLargeError,
    StorageError,
    StorageErrorKind,
)
from artifact_registry.core.models import (
    OverflowLocation,
    PrimaryLocation,
    StorageBackend,
)
from artifact_registry.storage.base import OverflowObjectStore, PrimaryObjectStore
from artifact_registry.storage.filesystem import FilesystemObjectStore
from artifact_registry.storage.overflow import HttpOverflowStore
from artifact_registry.storage.supabase import SupabaseObjectStore

logger = logging.getLogger(__name__)


def build_object_key(name: str, version: str, file_name: str) -> str:
    """Return the destination key ``{name}/{version}/{file_name}``."""
    return posixpath.join(name, version, file_name)


class StorageRouter:
    """Routes uploads between the primary and overflow object stores."""

    def __init__(
        self,
        primary: PrimaryObjectStore,
        overflow: OverflowObjectStore | None,
        *,
        primary_object_limit: int,
        hard_max_size: int,
    ):
        """
        Initialize the router.

        Args:
            primary: Size-capped primary store
            overflow: Large-object store, or None if not configured
            primary_object_limit: Largest payload sent to the primary store
            hard_max_size: Largest payload accepted at all
        """
        if primary_object_limit > hard_max_size:
            raise ValueError("primary_object_limit must not exceed hard_max_size")
        self._primary = primary
        self._overflow = overflow
        self._primary_object_limit = primary_object_limit
        self._hard_max_size = hard_max_size

    @property
    def primary(self) -> PrimaryObjectStore:
        return self._primary

    @property
    def overflow(self) -> OverflowObjectStore | None:
        return self._overflow

    @property
    def primary_object_limit(self) -> int:
        return self._primary_object_limit

    @property
    def hard_max_size(self) -> int:
        return self._hard_max_size

    def check_size(self, size_bytes: int) -> None:
        """
        Enforce the hard ceiling.

        Raises:
            PayloadTooLargeError: If the payload exceeds the hard maximum
        """
        if size_bytes > self._hard_max_size:
            raise PayloadTooLargeError(
                f"File size exceeds maximum allowed size of {format_size(self._hard_max_size)}",
                size_bytes=size_bytes,
                max_size_bytes=self._hard_max_size,
            )

    def route(self, size_bytes: int) -> StorageBackend:
        """
        Choose the backend for a payload size.

        Raises:
            PayloadTooLargeError: If the payload exceeds the hard maximum
        """
        self.check_size(size_bytes)
        if size_bytes <= self._primary_object_limit:
            return StorageBackend.PRIMARY
        return StorageBackend.OVERFLOW

    def store(
        self,
        payload: bytes,
        size_bytes: int,
        destination_key: str,
        content_type: str = "application/octet-stream",
    ) -> PrimaryLocation | OverflowLocation:
        """
        Write a payload to the backend its size routes to.

        A failed call leaves no object behind, so callers may retry.

        Args:
            payload: Object bytes
            size_bytes: Payload size used for routing
            destination_key: ``{name}/{version}/{file_name}`` key
            content_type: MIME type recorded with the object

        Returns:
            Location of the stored object

        Raises:
            PayloadTooLargeError: If the payload exceeds the hard maximum
            StorageError: If the backend failed or is not configured
        """
        backend = self.route(size_bytes)

        if backend is StorageBackend.PRIMARY:
            self._primary.put(destination_key, payload, content_type)
            location: PrimaryLocation | OverflowLocation = PrimaryLocation(
                object_key=destination_key
            )
        else:
            if self._overflow is None:
                raise StorageError(
                    "Overflow backend is not configured",
                    kind=StorageErrorKind.UNAVAILABLE,
                    backend=StorageBackend.OVERFLOW.value,
                    details={"size_bytes": size_bytes},
                )
            link = self._overflow.upload(destination_key, payload, content_type)
            location = OverflowLocation(external_link=link)

        logger.info(
            "Payload stored",
            extra={
                "storage_backend": backend.value,
                "key": destination_key,
                "size_bytes": size_bytes,
                "size_formatted": format_size(size_bytes),
            },
        )
        return location

    def rollback(self, location: PrimaryLocation | OverflowLocation) -> bool:
        """
        Best-effort removal of a stored object. Never raises.

        Returns:
            True if the object was removed
        """
        if isinstance(location, OverflowLocation):
            logger.warning(
                "Overflow object orphaned; backend does not support deletion",
                extra={"external_link": location.external_link},
            )
            return False

        try:
            self._primary.delete(location.object_key)
        except Exception:
            logger.error(
                "Failed to roll back stored object; remove it with artifact-registry prune-object",
                extra={"key": location.object_key},
                exc_info=True,
            )
            return False

        logger.info("Stored object rolled back", extra={"key": location.object_key})
        return True

    def download_url(self, location: PrimaryLocation | OverflowLocation) -> str:
        """Resolve a location to a public download URL without network access."""
        if isinstance(location, OverflowLocation):
            return location.external_link
        return self._primary.public_url(location.object_key)

    def close(self) -> None:
        self._primary.close()
        if self._overflow is not None:
            self._overflow.close()


def create_storage_router(config: RegistryConfig) -> StorageRouter:
    """Build the storage router described by a configuration."""
    primary: PrimaryObjectStore
    if config.primary_backend is PrimaryBackendKind.SUPABASE:
        primary = SupabaseObjectStore(
            config.supabase_url or "",
            config.supabase_service_key or "",
            config.storage_bucket,
            timeout_seconds=config.backend_timeout_seconds,
        )
    else:
        primary = FilesystemObjectStore(
            config.filesystem_root,
            config.public_base_url,
            config.public_path_prefix,
        )

    overflow: OverflowObjectStore | None = None
    if config.overflow_url:
        overflow = HttpOverflowStore(
            config.overflow_url,
            config.overflow_token,
            timeout_seconds=config.backend_timeout_seconds,
        )
    else:
        logger.warning(
            "No overflow backend configured; uploads above the primary limit will fail",
            extra={"primary_object_limit": config.primary_object_limit},
        )

    return StorageRouter(
        primary,
        overflow,
        primary_object_limit=config.primary_object_limit,
        hard_max_size=config.hard_max_size,
    )
