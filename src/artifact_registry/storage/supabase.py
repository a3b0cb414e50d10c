"""
Supabase Storage primary store.

Talks to the Supabase Storage REST API of one bucket with a service role key.
Public URLs follow the fixed ``/storage/v1/object/public/{bucket}/{key}``
convention and are built locally.
"""

import logging
from urllib.parse import quote

import httpx

from artifact_registry.core.exceptions import StorageError, StorageErrorKind
from artifact_registry.storage.base import PrimaryObjectStore

logger = logging.getLogger(__name__)

PUBLIC_OBJECT_PATH = "/storage/v1/object/public"
OBJECT_PATH = "/storage/v1/object"


class SupabaseObjectStore(PrimaryObjectStore):
    """Primary store backed by a Supabase Storage bucket."""

    backend_name = "supabase"

    def __init__(
        self,
        url: str,
        service_key: str,
        bucket: str = "files",
        *,
        timeout_seconds: float = 120.0,
        client: httpx.Client | None = None,
    ):
        """
        Initialize the Supabase store.

        Args:
            url: Supabase project URL
            service_key: Service role key used for writes and deletes
            bucket: Public bucket objects are stored in
            timeout_seconds: Per-request timeout
            client: Preconfigured HTTP client (tests inject a mock transport)
        """
        self._base_url = url.rstrip("/")
        self._bucket = bucket
        self._client = client or httpx.Client(timeout=timeout_seconds)
        self._auth_headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }

    def _object_url(self, key: str) -> str:
        return f"{self._base_url}{OBJECT_PATH}/{self._bucket}/{quote(key, safe='/')}"

    def put(self, key: str, payload: bytes, content_type: str) -> None:
        try:
            response = self._client.post(
                self._object_url(key),
                content=payload,
                headers={
                    **self._auth_headers,
                    "Content-Type": content_type,
                    "cache-control": "3600",
                    "x-upsert": "false",
                },
            )
        except httpx.HTTPError as e:
            raise StorageError(
                f"Storage backend unreachable: {e}",
                kind=StorageErrorKind.UNAVAILABLE,
                backend=self.backend_name,
            ) from e

        if response.status_code == 413:
            raise StorageError(
                "Object too large for storage backend",
                kind=StorageErrorKind.TOO_LARGE,
                backend=self.backend_name,
                status_code=response.status_code,
            )
        if _is_duplicate(response):
            raise StorageError(
                "Object already exists",
                kind=StorageErrorKind.EXISTS,
                backend=self.backend_name,
                status_code=response.status_code,
                details={"key": key},
            )
        if response.is_error:
            raise StorageError(
                "Storage backend rejected upload",
                kind=StorageErrorKind.UNAVAILABLE,
                backend=self.backend_name,
                status_code=response.status_code,
                details={"key": key, "body": response.text[:200]},
            )

        logger.debug("Object uploaded to Supabase", extra={"key": key, "bucket": self._bucket})

    def delete(self, key: str) -> None:
        try:
            response = self._client.request(
                "DELETE",
                f"{self._base_url}{OBJECT_PATH}/{self._bucket}",
                json={"prefixes": [key]},
                headers=self._auth_headers,
            )
        except httpx.HTTPError as e:
            raise StorageError(
                f"Storage backend unreachable: {e}",
                backend=self.backend_name,
            ) from e

        if response.is_error:
            raise StorageError(
                "Storage backend rejected delete",
                backend=self.backend_name,
                status_code=response.status_code,
                details={"key": key},
            )

    def public_url(self, key: str) -> str:
        return f"{self._base_url}{PUBLIC_OBJECT_PATH}/{self._bucket}/{quote(key, safe='/')}"

    def close(self) -> None:
        self._client.close()


def _is_duplicate(response: httpx.Response) -> bool:
    """Storage answers a refused overwrite with 409, or 400 wrapping a 409 body."""
    if response.status_code == 409:
        return True
    if response.status_code != 400:
        return False
    try:
        body = response.json()
    except ValueError:
        return False
    return isinstance(body, dict) and (
        str(body.get("statusCode")) == "409" or body.get("error") == "Duplicate"
    )
