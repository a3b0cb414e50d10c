"""
Base classes for object store backends.

Primary stores hold small objects under a key and expose a deterministic
public URL for each key. Overflow stores accept large objects and hand back
an already-resolved public link; they cannot delete.
"""

from abc import ABC, abstractmethod


class PrimaryObjectStore(ABC):
    """Size-capped object store addressed by key."""

    backend_name: str = "primary"

    @abstractmethod
    def put(self, key: str, payload: bytes, content_type: str) -> None:
        """
        Store an object under a key. All-or-nothing per call.

        Raises:
            StorageError: If the object could not be stored
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """
        Remove the object stored under a key.

        Raises:
            StorageError: If the backend refused or could not be reached
        """

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Return the public download URL for a key without network access."""

    def close(self) -> None:
        """Release backend resources."""


class OverflowObjectStore(ABC):
    """External large-object store that returns durable public links."""

    backend_name: str = "overflow"

    @abstractmethod
    def upload(self, name: str, payload: bytes, content_type: str) -> str:
        """
        Upload an object and wait for completion.

        Returns:
            Durable, publicly resolvable link to the object

        Raises:
            StorageError: If the upload did not complete with a link
        """

    def close(self) -> None:
        """Release backend resources."""
