"""Tests for the request logging middleware."""

import logging
from unittest.mock import MagicMock

import pytest
from fastapi import Request
from fastapi.responses import Response

from artifact_registry.api.middleware.logging import (
    RequestLoggingMiddleware,
    client_address,
    declared_size,
)

LOGGER = "artifact_registry.api.middleware.logging"


@pytest.fixture
def app():
    async def app(scope, receive, send):
        pass

    return app


@pytest.fixture
def mock_request():
    """Create a mock upload request."""
    request = MagicMock(spec=Request)
    request.url = MagicMock()
    request.url.path = "/api/upload"
    request.method = "POST"
    request.headers = {}
    request.client = MagicMock()
    request.client.host = "192.168.1.1"
    return request


async def call_next(req):
    response = MagicMock(spec=Response)
    response.headers = {}
    response.status_code = 201
    return response


class TestRequestHelpers:
    """Tests for client_address and declared_size."""

    def test_forwarded_for(self, mock_request):
        """The first X-Forwarded-For hop wins."""
        mock_request.headers = {"x-forwarded-for": "10.0.0.1, 10.0.0.2"}
        assert client_address(mock_request) == "10.0.0.1"

    def test_real_ip(self, mock_request):
        mock_request.headers = {"x-real-ip": "10.0.0.9"}
        assert client_address(mock_request) == "10.0.0.9"

    def test_peer_address(self, mock_request):
        assert client_address(mock_request) == "192.168.1.1"

    def test_unknown(self, mock_request):
        mock_request.client = None
        assert client_address(mock_request) == "unknown"

    @pytest.mark.parametrize(
        "headers, expected",
        [({}, None), ({"content-length": "2048"}, 2048), ({"content-length": "lots"}, None)],
    )
    def test_declared_size(self, mock_request, headers, expected):
        mock_request.headers = headers
        assert declared_size(mock_request) == expected


class TestRequestLoggingMiddleware:
    """Tests for RequestLoggingMiddleware.dispatch."""

    @pytest.mark.asyncio
    async def test_sets_timing_and_request_id(self, app, mock_request):
        """Responses carry a processing time and a request id."""
        middleware = RequestLoggingMiddleware(app)
        response = await middleware.dispatch(mock_request, call_next)

        assert float(response.headers["X-Process-Time"]) >= 0
        assert len(response.headers["X-Request-ID"]) == 32

    @pytest.mark.asyncio
    async def test_propagates_request_id(self, app, mock_request):
        """An incoming X-Request-ID is echoed back."""
        mock_request.headers = {"x-request-id": "build-42"}
        middleware = RequestLoggingMiddleware(app)
        response = await middleware.dispatch(mock_request, call_next)
        assert response.headers["X-Request-ID"] == "build-42"

    @pytest.mark.asyncio
    async def test_logs_completion(self, app, mock_request, caplog):
        """One line per request names method, path, status and request id."""
        mock_request.headers = {"x-request-id": "build-42"}
        middleware = RequestLoggingMiddleware(app)
        with caplog.at_level(logging.INFO, logger=LOGGER):
            await middleware.dispatch(mock_request, call_next)

        completed = [r for r in caplog.records if hasattr(r, "status_code")]
        assert len(completed) == 1
        assert completed[0].getMessage().startswith("POST /api/upload -> 201 in ")
        assert completed[0].getMessage().endswith("[build-42]")
        assert completed[0].path == "/api/upload"

    @pytest.mark.asyncio
    async def test_upload_size_logged_up_front(self, app, mock_request, caplog):
        """Uploads log their declared size before the handler runs."""
        mock_request.headers = {"content-length": str(3 * 1024 * 1024), "x-request-id": "build-7"}
        middleware = RequestLoggingMiddleware(app)
        with caplog.at_level(logging.INFO, logger=LOGGER):
            await middleware.dispatch(mock_request, call_next)

        first = caplog.records[0]
        assert first.getMessage() == "Upload build-7 receiving 3.0 MB from 192.168.1.1"
        assert first.content_length == 3 * 1024 * 1024

    @pytest.mark.asyncio
    async def test_get_requests_skip_size_line(self, app, mock_request, caplog):
        mock_request.method = "GET"
        mock_request.url.path = "/api/artifacts"
        mock_request.headers = {"content-length": "0"}
        middleware = RequestLoggingMiddleware(app)
        with caplog.at_level(logging.INFO, logger=LOGGER):
            await middleware.dispatch(mock_request, call_next)

        assert [r.getMessage().split(" ->")[0] for r in caplog.records] == ["GET /api/artifacts"]

    @pytest.mark.asyncio
    async def test_authorization_never_logged(self, app, mock_request, caplog):
        """Credentials in headers stay out of the log."""
        mock_request.headers = {"authorization": "Bearer super-secret", "content-length": "10"}
        middleware = RequestLoggingMiddleware(app)
        with caplog.at_level(logging.DEBUG):
            await middleware.dispatch(mock_request, call_next)
        assert "super-secret" not in caplog.text
        assert all("super-secret" not in str(vars(r)) for r in caplog.records)

    @pytest.mark.asyncio
    async def test_health_is_quiet(self, app, mock_request, caplog):
        """Health checks get no request id and no INFO line."""
        mock_request.method = "GET"
        mock_request.url.path = "/health"
        middleware = RequestLoggingMiddleware(app)
        with caplog.at_level(logging.INFO, logger=LOGGER):
            response = await middleware.dispatch(mock_request, call_next)
        assert "X-Request-ID" not in response.headers
        assert caplog.records == []

    @pytest.mark.asyncio
    async def test_static_downloads_log_at_debug(self, app, mock_request, caplog):
        """Requests under a quiet prefix are logged at DEBUG only."""
        mock_request.method = "GET"
        mock_request.url.path = "/files/agent/1.0.0/agent.zip"
        middleware = RequestLoggingMiddleware(app, quiet_prefixes=["/files"])
        with caplog.at_level(logging.DEBUG, logger=LOGGER):
            response = await middleware.dispatch(mock_request, call_next)

        assert "X-Request-ID" not in response.headers
        assert [(r.levelno, r.getMessage()) for r in caplog.records] == [
            (logging.DEBUG, "GET /files/agent/1.0.0/agent.zip -> 201")
        ]

    @pytest.mark.asyncio
    async def test_prefix_matches_whole_segment(self, app, mock_request):
        """A quiet prefix does not swallow paths that merely share its letters."""
        mock_request.url.path = "/filesystem"
        middleware = RequestLoggingMiddleware(app, quiet_prefixes=["/files/"])
        response = await middleware.dispatch(mock_request, call_next)
        assert "X-Request-ID" in response.headers

    @pytest.mark.asyncio
    async def test_failure_logged_and_raised(self, app, mock_request, caplog):
        """Exceptions are logged with their traceback, then propagated."""

        async def failing(req):
            raise RuntimeError("handler blew up")

        middleware = RequestLoggingMiddleware(app)
        with caplog.at_level(logging.ERROR, logger=LOGGER):
            with pytest.raises(RuntimeError):
                await middleware.dispatch(mock_request, failing)

        [record] = caplog.records
        assert record.getMessage().startswith("POST /api/upload failed after ")
        assert record.exc_info is not None
