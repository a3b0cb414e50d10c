"""Pytest configuration and fixtures."""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from artifact_registry.catalog import Catalog
from artifact_registry.config import MIB, RegistryConfig
from artifact_registry.core.exceptions import StorageError, StorageErrorKind
from artifact_registry.core.models import ApiCredential
from artifact_registry.credentials import CredentialStore, CredentialValidator
from artifact_registry.db import Database
from artifact_registry.storage import (
    FilesystemObjectStore,
    OverflowObjectStore,
    PrimaryObjectStore,
    StorageRouter,
)
from artifact_registry.upload import UploadOrchestrator

PUBLIC_BASE_URL = "http://registry.test"


# =============================================================================
# In-memory backends
# =============================================================================


class MemoryPrimaryStore(PrimaryObjectStore):
    """Primary store keeping objects in a dict and recording every call."""

    backend_name = "memory"

    def __init__(self, base_url: str = "https://cdn.test/files"):
        self.base_url = base_url
        self.objects: dict[str, bytes] = {}
        self.put_keys: list[str] = []
        self.deleted: list[str] = []
        self.fail_put = False
        self.fail_delete = False
        self.closed = False

    def put(self, key: str, payload: bytes, content_type: str) -> None:
        self.put_keys.append(key)
        if self.fail_put:
            raise StorageError("primary unavailable", backend=self.backend_name)
        if key in self.objects:
            raise StorageError(
                "Object already exists", kind=StorageErrorKind.EXISTS, backend=self.backend_name
            )
        self.objects[key] = payload

    def delete(self, key: str) -> None:
        if self.fail_delete:
            raise StorageError("delete refused", backend=self.backend_name)
        self.deleted.append(key)
        self.objects.pop(key, None)

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    def close(self) -> None:
        self.closed = True


class MemoryOverflowStore(OverflowObjectStore):
    """Overflow store handing out sequential links."""

    backend_name = "memory-overflow"

    def __init__(self):
        self.uploads: list[tuple[str, int]] = []
        self.fail = False
        self.closed = False

    def upload(self, name: str, payload: bytes, content_type: str) -> str:
        if self.fail:
            raise StorageError("overflow unavailable", backend=self.backend_name)
        self.uploads.append((name, len(payload)))
        return f"https://overflow.test/file/{len(self.uploads)}#{name}"

    def close(self) -> None:
        self.closed = True


# =============================================================================
# Core fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def db(temp_dir: Path) -> Generator[Database, None, None]:
    """Provide a catalog database in a temporary directory."""
    database = Database(temp_dir / "registry" / "catalog.db")
    yield database
    database.close()


@pytest.fixture
def catalog(db: Database) -> Catalog:
    return Catalog(db)


@pytest.fixture
def credential_store(db: Database) -> CredentialStore:
    return CredentialStore(db)


@pytest.fixture
def validator(credential_store: CredentialStore) -> Generator[CredentialValidator, None, None]:
    """Provide a credential validator, shut down after the test."""
    credential_validator = CredentialValidator(credential_store)
    yield credential_validator
    credential_validator.shutdown(wait=True)


@pytest.fixture
def api_key(credential_store: CredentialStore) -> ApiCredential:
    """Provide an active API key named ci-pipeline."""
    return credential_store.create("ci-pipeline", "test-secret-123")


@pytest.fixture
def auth_header(api_key: ApiCredential) -> str:
    return f"Bearer {api_key.secret}"


# =============================================================================
# Storage fixtures
# =============================================================================


@pytest.fixture
def primary_store() -> MemoryPrimaryStore:
    return MemoryPrimaryStore()


@pytest.fixture
def overflow_store() -> MemoryOverflowStore:
    return MemoryOverflowStore()


@pytest.fixture
def storage_router(
    primary_store: MemoryPrimaryStore, overflow_store: MemoryOverflowStore
) -> StorageRouter:
    """Router with the default 50 MiB primary limit and 100 MiB ceiling."""
    return StorageRouter(
        primary_store,
        overflow_store,
        primary_object_limit=50 * MIB,
        hard_max_size=100 * MIB,
    )


@pytest.fixture
def filesystem_store(temp_dir: Path) -> FilesystemObjectStore:
    return FilesystemObjectStore(temp_dir / "objects", PUBLIC_BASE_URL, "/files")


@pytest.fixture
def orchestrator(
    validator: CredentialValidator, catalog: Catalog, storage_router: StorageRouter
) -> UploadOrchestrator:
    return UploadOrchestrator(validator, catalog, storage_router)


@pytest.fixture
def registry_config(temp_dir: Path) -> RegistryConfig:
    """Configuration pointing every path into the temporary directory."""
    return RegistryConfig(
        database_path=temp_dir / "registry" / "catalog.db",
        filesystem_root=temp_dir / "objects",
        public_base_url=PUBLIC_BASE_URL,
        log_level="DEBUG",
    )
