"""
HTTP overflow store for objects above the primary store's size cap.

The upload endpoint receives a multipart ``file`` plus ``name`` and answers,
once the object is durably stored, with JSON carrying a public ``link``.
Objects cannot be deleted with the credentials this service holds.
"""

import logging

import httpx

from artifact_registry.core.exceptions import StorageError, StorageErrorKind
from artifact_registry.storage.base import OverflowObjectStore

logger = logging.getLogger(__name__)


class HttpOverflowStore(OverflowObjectStore):
    """Overflow store reached over HTTP."""

    backend_name = "overflow"

    def __init__(
        self,
        upload_url: str,
        token: str | None = None,
        *,
        timeout_seconds: float = 120.0,
        client: httpx.Client | None = None,
    ):
        """
        Initialize the overflow store.

        Args:
            upload_url: Endpoint accepting multipart uploads
            token: Bearer token for the endpoint
            timeout_seconds: Per-request timeout
            client: Preconfigured HTTP client (tests inject a mock transport)
        """
        self._upload_url = upload_url
        self._client = client or httpx.Client(timeout=timeout_seconds)
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}

    def upload(self, name: str, payload: bytes, content_type: str) -> str:
        try:
            response = self._client.post(
                self._upload_url,
                files={"file": (name, payload, content_type)},
                data={"name": name},
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            raise StorageError(
                f"Overflow backend unreachable: {e}",
                kind=StorageErrorKind.UNAVAILABLE,
                backend=self.backend_name,
            ) from e

        if response.status_code == 413:
            raise StorageError(
                "Object too large for overflow backend",
                kind=StorageErrorKind.TOO_LARGE,
                backend=self.backend_name,
                status_code=response.status_code,
            )
        if response.is_error:
            raise StorageError(
                "Overflow backend rejected upload",
                backend=self.backend_name,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise StorageError(
                "Overflow backend returned a malformed completion response",
                backend=self.backend_name,
            ) from e

        link = body.get("link") if isinstance(body, dict) else None
        if not isinstance(link, str) or not link.startswith(("http://", "https://")):
            raise StorageError(
                "Overflow upload completed without a public link",
                backend=self.backend_name,
            )

        logger.info("Object uploaded to overflow backend", extra={"object_name": name, "size_bytes": len(payload)})
        return link

    def close(self) -> None:
        self._client.close()
