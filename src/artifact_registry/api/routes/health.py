"""
Health check endpoint.

Reports catalog reachability and the configured storage backends.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from artifact_registry.api.dependencies import get_database, get_storage_router
from artifact_registry.api.schemas.responses import HealthResponse
from artifact_registry.db import Database
from artifact_registry.storage import StorageRouter
from artifact_registry.version import __version__

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=HealthResponse)
async def health_check(
    db: Database = Depends(get_database),
    storage_router: StorageRouter = Depends(get_storage_router),
) -> HealthResponse:
    """
    Perform health check on the catalog and storage configuration.

    Status is "healthy" when the catalog answers, "unhealthy" otherwise.
    Backends are reported as configured; nothing is contacted.
    """
    catalog_ok = await run_in_threadpool(db.ping)
    if not catalog_ok:
        logger.warning("Health check: catalog unreachable")

    overflow = storage_router.overflow
    components = {
        "catalog": "healthy" if catalog_ok else "unhealthy",
        "primary": storage_router.primary.backend_name,
        "overflow": overflow.backend_name if overflow is not None else "not configured",
    }

    return HealthResponse(
        status="healthy" if catalog_ok else "unhealthy",
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
        components=components,
    )
