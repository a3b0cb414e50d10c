"""
FastAPI Application Setup.

Main application factory for the Artifact Registry REST API.
"""

import logging
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from artifact_registry.api.middleware.logging import RequestLoggingMiddleware
from artifact_registry.api.middleware.size_limit import SizeLimitMiddleware
from artifact_registry.api.routes import artifacts, health, upload
from artifact_registry.api.schemas.exceptions import (
    APIException,
    BadRequestError,
    InternalError,
    api_error_for,
)
from artifact_registry.catalog import Catalog
from artifact_registry.config import PrimaryBackendKind, RegistryConfig
from artifact_registry.core.exceptions import ArtifactRegistryError
from artifact_registry.credentials import CredentialStore, CredentialValidator
from artifact_registry.db import Database
from artifact_registry.storage import StorageRouter, create_storage_router
from artifact_registry.upload import UploadOrchestrator
from artifact_registry.version import __version__

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown events.

    Opens the catalog database and builds the credential validator, storage
    router and upload orchestrator on startup. Drains the last-use worker
    pool and closes backend clients and connections on shutdown.
    """
    config: RegistryConfig = app.state.config
    logger.info("Artifact Registry API starting up", extra={"version": __version__})

    db = Database(config.database_path)
    storage_router: StorageRouter = app.state.storage_router or create_storage_router(config)
    credential_store = CredentialStore(db)
    validator = CredentialValidator(credential_store)
    catalog = Catalog(db)

    app.state.db = db
    app.state.storage_router = storage_router
    app.state.credential_store = credential_store
    app.state.validator = validator
    app.state.catalog = catalog
    app.state.orchestrator = UploadOrchestrator(validator, catalog, storage_router)

    logger.info(
        "Registry ready",
        extra={
            "database_path": str(config.database_path),
            "primary_backend": storage_router.primary.backend_name,
            "overflow_configured": storage_router.overflow is not None,
        },
    )

    try:
        yield
    finally:
        logger.info("Artifact Registry API shutting down")
        validator.shutdown(wait=True)
        storage_router.close()
        db.close()


def _error_response(error: APIException) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_content())


def create_app(
    config: RegistryConfig | None = None,
    *,
    storage_router: StorageRouter | None = None,
    title: str = "Artifact Registry API",
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Registry configuration (default: loaded from environment)
        storage_router: Prebuilt storage router (default: built from config)
        title: Application title for OpenAPI docs

    Returns:
        Configured FastAPI application instance
    """
    config = config or RegistryConfig.from_env()

    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)

    app = FastAPI(
        title=title,
        description="Versioned build artifact storage for CI/CD pipelines",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.storage_router = storage_router

    app.add_middleware(SizeLimitMiddleware, hard_max_size=config.hard_max_size)
    app.add_middleware(RequestLoggingMiddleware, quiet_prefixes=[config.public_path_prefix])

    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(upload.router, prefix="/api", tags=["Upload"])
    app.include_router(artifacts.router, prefix="/api", tags=["Artifacts"])

    # Serve filesystem objects so primary download URLs resolve
    if config.primary_backend is PrimaryBackendKind.FILESYSTEM and storage_router is None:
        config.filesystem_root.mkdir(parents=True, exist_ok=True)
        app.mount(
            config.public_path_prefix,
            StaticFiles(directory=config.filesystem_root),
            name="files",
        )

    # Exception handlers
    @app.exception_handler(APIException)
    async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
        """Handle API exceptions with proper error responses."""
        return _error_response(exc)

    @app.exception_handler(ArtifactRegistryError)
    async def domain_exception_handler(
        request: Request, exc: ArtifactRegistryError
    ) -> JSONResponse:
        """Translate domain errors into API errors."""
        return _error_response(api_error_for(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Render request validation errors in the standard shape."""
        errors = exc.errors()
        field = None
        message = "Invalid multipart/form-data"
        if errors:
            loc = errors[0].get("loc") or ()
            field = str(loc[-1]) if loc else None
            message = f"Invalid field: {field}" if field else errors[0].get("msg", message)
        return _error_response(BadRequestError(message, field=field))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Render framework HTTP errors in the standard shape."""
        try:
            category = HTTPStatus(exc.status_code).phrase
        except ValueError:
            category = "Error"
        error = APIException(str(exc.detail), status_code=exc.status_code)
        error.error_type = category
        return JSONResponse(
            status_code=exc.status_code,
            content=error.to_content(),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled exception: %s", exc)
        return _error_response(InternalError())

    # Root endpoint
    @app.get("/", tags=["Root"])
    async def root() -> dict[str, object]:
        """Root endpoint with API information."""
        return {
            "name": "Artifact Registry API",
            "version": __version__,
            "status": "operational",
            "docs": "/docs",
            "health": "/health",
            "upload": "/api/upload",
            "artifacts": "/api/artifacts",
        }

    return app
