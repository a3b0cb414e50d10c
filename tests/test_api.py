"""API integration tests for the Artifact Registry FastAPI application.

These tests run the full application through FastAPI's TestClient against a
temporary catalog database and in-memory storage backends.
"""

from pathlib import Path
from typing import Generator

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from artifact_registry.api.app import create_app
from artifact_registry.config import MIB, RegistryConfig
from artifact_registry.core.exceptions import CatalogError
from artifact_registry.credentials import CredentialStore
from artifact_registry.db import Database
from artifact_registry.storage import StorageRouter

SECRET = "api-test-secret"
AUTH = {"Authorization": f"Bearer {SECRET}"}

HARD_MAX = 4096
PRIMARY_LIMIT = 2048


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def api_config(temp_dir: Path) -> RegistryConfig:
    """Configuration with small size limits so tests stay fast."""
    return RegistryConfig(
        database_path=temp_dir / "registry" / "catalog.db",
        filesystem_root=temp_dir / "objects",
        public_base_url="http://registry.test",
        primary_object_limit=PRIMARY_LIMIT,
        hard_max_size=HARD_MAX,
        log_level="DEBUG",
    )


@pytest.fixture
def small_router(primary_store, overflow_store) -> StorageRouter:
    return StorageRouter(
        primary_store,
        overflow_store,
        primary_object_limit=PRIMARY_LIMIT,
        hard_max_size=HARD_MAX,
    )


@pytest.fixture
def client(api_config: RegistryConfig, small_router: StorageRouter) -> Generator[TestClient, None, None]:
    """Create a test client with an issued API key."""
    seed = Database(api_config.database_path)
    CredentialStore(seed).create("ci-pipeline", SECRET)
    seed.close()

    app = create_app(api_config, storage_router=small_router)
    with TestClient(app) as test_client:
        yield test_client


def upload(
    client: TestClient,
    *,
    name: str | None = "agent",
    version: str | None = "1.0.0",
    payload: bytes | None = b"x" * 1024,
    filename: str = "agent.zip",
    metadata: str | None = None,
    headers: dict[str, str] | None = None,
):
    data = {}
    if name is not None:
        data["fileName"] = name
    if version is not None:
        data["version"] = version
    if metadata is not None:
        data["metadata"] = metadata
    files = {"file": (filename, payload, "application/zip")} if payload is not None else None
    return client.post(
        "/api/upload",
        data=data,
        files=files,
        headers=AUTH if headers is None else headers,
    )


# =============================================================================
# Root and health
# =============================================================================


class TestRootEndpoints:
    """Tests for / and /health."""

    def test_root(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["name"] == "Artifact Registry API"
        assert body["upload"] == "/api/upload"
        assert body["artifacts"] == "/api/artifacts"

    def test_health(self, client: TestClient):
        """Health reports the catalog and both backends."""
        response = client.get("/health")
        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["status"] == "healthy"
        assert body["components"] == {
            "catalog": "healthy",
            "primary": "memory",
            "overflow": "memory-overflow",
        }

    def test_health_unhealthy_catalog(self, client: TestClient):
        """A catalog that cannot answer makes the service unhealthy."""
        client.app.state.db.ping = lambda: False
        body = client.get("/health").json()
        assert body["status"] == "unhealthy"
        assert body["components"]["catalog"] == "unhealthy"


# =============================================================================
# Upload
# =============================================================================


class TestUpload:
    """Tests for POST /api/upload."""

    def test_upload_success(self, client: TestClient, primary_store):
        """A valid upload returns 201 with camelCase version details."""
        response = upload(client, metadata='{"commit": "abc"}')

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "File uploaded successfully"

        data = body["data"]
        assert data["fileName"] == "agent"
        assert data["version"] == "1.0.0"
        assert data["originalFileName"] == "agent.zip"
        assert data["storageBackend"] == "primary"
        assert data["storagePath"] == "agent/1.0.0/agent.zip"
        assert data["fileSize"] == 1024
        assert data["fileType"] == "application/zip"
        assert data["downloadUrl"] == "https://cdn.test/files/agent/1.0.0/agent.zip"
        assert data["uploadedBy"] == "ci-pipeline"
        assert data["isLatest"] is True
        assert {"artifactId", "versionId", "uploadedAt"} <= set(data)
        assert primary_store.objects["agent/1.0.0/agent.zip"] == b"x" * 1024

    def test_upload_to_overflow(self, client: TestClient, overflow_store):
        """Payloads above the primary limit are stored in overflow."""
        response = upload(client, name="big", payload=b"x" * 3000, filename="big.bin")

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert data["storageBackend"] == "overflow"
        assert data["downloadUrl"] == data["storagePath"]
        assert data["downloadUrl"] == "https://overflow.test/file/1#big/1.0.0/big.bin"
        assert overflow_store.uploads == [("big/1.0.0/big.bin", 3000)]

    def test_duplicate_version(self, client: TestClient, primary_store):
        """Re-uploading the same pair is a conflict."""
        assert upload(client).status_code == status.HTTP_201_CREATED

        response = upload(client)
        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json() == {
            "success": False,
            "error": "Conflict",
            "message": "Version 1.0.0 already exists for file agent",
        }
        assert primary_store.put_keys == ["agent/1.0.0/agent.zip"]

    @pytest.mark.parametrize(
        "headers",
        [{}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer wrong-secret"}],
    )
    def test_unauthorized(self, client: TestClient, headers):
        response = upload(client, headers=headers)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] == "Unauthorized"

    def test_revoked_matches_unknown(self, client: TestClient):
        """Revoked and never-issued keys get byte-identical responses."""
        client.app.state.credential_store.deactivate("ci-pipeline")

        revoked = upload(client)
        unknown = upload(client, headers={"Authorization": "Bearer never-issued"})

        assert revoked.status_code == unknown.status_code == status.HTTP_401_UNAUTHORIZED
        assert revoked.content == unknown.content

    def test_auth_checked_before_fields(self, client: TestClient):
        """A malformed request with no key is unauthorized, not bad."""
        response = upload(client, name=None, payload=None, headers={})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.parametrize(
        "kwargs, field, message",
        [
            ({"payload": None}, "file", "Missing required file field: file"),
            ({"name": None}, "fileName", "Missing required field: fileName"),
            ({"version": None}, "version", "Missing required field: version"),
            (
                {"name": "bad name"},
                "fileName",
                "Invalid fileName format. Use only letters, numbers, dash, and underscore.",
            ),
            (
                {"version": "1.0/../2"},
                "version",
                "Invalid version format. Use only letters, numbers, dots, dash, and underscore.",
            ),
            ({"payload": b""}, "file", "File is empty or has invalid size."),
            ({"metadata": "not json"}, "metadata", "Invalid metadata JSON"),
            ({"metadata": '{"score": NaN}'}, "metadata", "Invalid metadata JSON"),
        ],
    )
    def test_bad_request_names_field(self, client: TestClient, kwargs, field, message):
        response = upload(client, **kwargs)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {
            "success": False,
            "error": "Bad Request",
            "message": message,
            "field": field,
        }

    def test_payload_too_large(self, client: TestClient, primary_store, overflow_store):
        """A payload above the ceiling is rejected with no backend call."""
        response = upload(client, payload=b"x" * (HARD_MAX + 1))

        assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
        assert response.json() == {
            "success": False,
            "error": "Payload Too Large",
            "message": "File size exceeds maximum allowed size of 4.0 KB",
        }
        assert primary_store.put_keys == []
        assert overflow_store.uploads == []

    def test_oversized_body_rejected_by_middleware(self, client: TestClient, primary_store):
        """A declared body far above the ceiling never reaches the handler."""
        response = upload(client, payload=b"x" * (2 * MIB))

        assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
        assert response.json()["message"] == "File size exceeds maximum allowed size of 4.0 KB"
        assert primary_store.put_keys == []

    def test_storage_failure(self, client: TestClient, primary_store):
        """Backend failures return a generic 500."""
        primary_store.fail_put = True
        response = upload(client)
        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {
            "success": False,
            "error": "Internal Server Error",
            "message": "Failed to upload file to storage",
        }

    def test_commit_failure_rolls_back(self, client: TestClient, primary_store, monkeypatch):
        """A failed commit returns 500 and removes the stored object."""

        def broken_commit(*args, **kwargs):
            raise CatalogError("database is locked", operation="commit_version")

        monkeypatch.setattr(client.app.state.catalog, "commit_version", broken_commit)
        response = upload(client)

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["message"] == "Failed to create version record"
        assert primary_store.objects == {}
        assert primary_store.deleted == ["agent/1.0.0/agent.zip"]

    def test_orphaned_object_is_conflict(self, client: TestClient, primary_store, monkeypatch):
        """After a rollback fails, a retry is a 409 naming the object to prune."""
        primary_store.fail_delete = True
        real_commit = client.app.state.catalog.commit_version

        def broken_commit(*args, **kwargs):
            raise CatalogError("database is locked", operation="commit_version")

        monkeypatch.setattr(client.app.state.catalog, "commit_version", broken_commit)
        assert upload(client).status_code == status.HTTP_500_INTERNAL_SERVER_ERROR

        monkeypatch.setattr(client.app.state.catalog, "commit_version", real_commit)
        response = upload(client)

        assert response.status_code == status.HTTP_409_CONFLICT
        body = response.json()
        assert body["error"] == "Conflict"
        assert "prune-object agent/1.0.0/agent.zip" in body["message"]

    def test_process_headers(self, client: TestClient):
        """Responses carry request id and timing headers."""
        response = upload(client, headers={**AUTH, "X-Request-ID": "build-7"})
        assert response.headers["X-Request-ID"] == "build-7"
        assert "X-Process-Time" in response.headers


# =============================================================================
# Listing
# =============================================================================


class TestListArtifacts:
    """Tests for GET /api/artifacts."""

    def test_empty(self, client: TestClient):
        response = client.get("/api/artifacts")
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "success": True,
            "message": "Artifacts retrieved successfully",
            "data": [],
        }

    def test_listing_order_and_urls(self, client: TestClient):
        """Artifacts and versions come newest first, with resolved URLs."""
        upload(client, name="agent", version="1.0.0")
        upload(client, name="tools", version="0.1.0", filename="tools.tgz")
        upload(client, name="agent", version="1.1.0", payload=b"y" * 3000)

        data = client.get("/api/artifacts").json()["data"]

        assert [a["name"] for a in data] == ["agent", "tools"]
        agent = data[0]
        assert agent["latestVersion"] == "1.1.0"
        assert [v["version"] for v in agent["versions"]] == ["1.1.0", "1.0.0"]
        newest, oldest = agent["versions"]
        assert newest["isLatest"] is True and oldest["isLatest"] is False
        assert newest["storageBackend"] == "overflow"
        assert newest["downloadUrl"].startswith("https://overflow.test/file/")
        assert oldest["downloadUrl"] == "https://cdn.test/files/agent/1.0.0/agent.zip"
        assert {"id", "fileName", "fileSize", "fileType", "uploadedAt", "metadata"} <= set(oldest)

    def test_listing_is_stable(self, client: TestClient):
        """Repeated listings without writes are identical."""
        upload(client)
        first = client.get("/api/artifacts").json()
        second = client.get("/api/artifacts").json()
        assert first == second


# =============================================================================
# Error shape
# =============================================================================


class TestErrorShape:
    """Tests for framework-level errors."""

    def test_unknown_route(self, client: TestClient):
        response = client.get("/api/nope")
        assert response.status_code == status.HTTP_404_NOT_FOUND
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Not Found"

    def test_method_not_allowed(self, client: TestClient):
        response = client.get("/api/upload")
        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED
        assert response.json()["error"] == "Method Not Allowed"

    def test_file_field_sent_as_text(self, client: TestClient):
        """A non-file value in the file field is a bad request naming the field."""
        response = client.post(
            "/api/upload",
            data={"fileName": "agent", "version": "1.0.0", "file": "not-a-file"},
            headers=AUTH,
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["field"] == "file"


class TestFilesystemApp:
    """Tests for the app built entirely from configuration."""

    def test_filesystem_download(self, registry_config: RegistryConfig):
        """Primary objects are served under the public path prefix."""
        seed = Database(registry_config.database_path)
        CredentialStore(seed).create("ci-pipeline", SECRET)
        seed.close()

        app = create_app(registry_config)
        with TestClient(app) as test_client:
            response = upload(test_client, payload=b"artifact-bytes")
            assert response.status_code == status.HTTP_201_CREATED
            url = response.json()["data"]["downloadUrl"]
            assert url == "http://registry.test/files/agent/1.0.0/agent.zip"

            downloaded = test_client.get("/files/agent/1.0.0/agent.zip")
            assert downloaded.status_code == status.HTTP_200_OK
            assert downloaded.content == b"artifact-bytes"
