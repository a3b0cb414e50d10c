"""
Filesystem primary store.

Stores objects under a root directory, one file per key. The API serves the
root as static files under the public path prefix, so links built by
``public_url`` resolve against the running service.
"""

import logging
import os
import tempfile
from pathlib import Path
from urllib.parse import quote

from artifact_registry.core.exceptions import StorageError, StorageErrorKind
from artifact_registry.storage.base import PrimaryObjectStore

logger = logging.getLogger(__name__)


class FilesystemObjectStore(PrimaryObjectStore):
    """
    Primary store backed by a local directory.

    Layout: {root}/{name}/{version}/{file_name}

    Writes go to a temporary file in the target directory and are linked
    into place, so a key is either absent or holds the complete object, and
    an existing object is never overwritten.
    """

    backend_name = "filesystem"

    def __init__(self, root: Path, public_base_url: str, path_prefix: str = "/files"):
        """
        Initialize the filesystem store.

        Args:
            root: Directory objects are written under (created if missing)
            public_base_url: Base URL the service is reachable at
            path_prefix: URL path the root directory is served from
        """
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._public_base_url = public_base_url.rstrip("/")
        self._path_prefix = "/" + path_prefix.strip("/")

    @property
    def root(self) -> Path:
        return self._root

    def _object_path(self, key: str) -> Path:
        """Resolve a key to a path inside the root, refusing traversal."""
        root = self._root.resolve()
        path = (root / key).resolve()
        if not key or root not in path.parents:
            raise StorageError(
                "Invalid object key",
                kind=StorageErrorKind.UNAVAILABLE,
                backend=self.backend_name,
                details={"key": key},
            )
        return path

    def put(self, key: str, payload: bytes, content_type: str) -> None:
        path = self._object_path(key)
        temp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=".upload-")
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            # link() fails if the target exists, unlike replace()
            os.link(temp_name, path)
        except FileExistsError as e:
            raise StorageError(
                "Object already exists",
                kind=StorageErrorKind.EXISTS,
                backend=self.backend_name,
                details={"key": key},
            ) from e
        except OSError as e:
            raise StorageError(
                f"I/O error: {e}",
                kind=StorageErrorKind.UNAVAILABLE,
                backend=self.backend_name,
                details={"key": key},
            ) from e
        finally:
            if temp_name is not None:
                try:
                    os.unlink(temp_name)
                except FileNotFoundError:
                    pass

        logger.debug("Object written", extra={"key": key, "size_bytes": len(payload)})

    def delete(self, key: str) -> None:
        path = self._object_path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(
                f"I/O error: {e}",
                backend=self.backend_name,
                details={"key": key},
            ) from e

        # Prune now-empty {version}/ and {name}/ directories
        for parent in (path.parent, path.parent.parent):
            if parent == self._root.resolve():
                break
            try:
                parent.rmdir()
            except OSError:
                break

    def public_url(self, key: str) -> str:
        return f"{self._public_base_url}{self._path_prefix}/{quote(key, safe='/')}"
