"""
Artifact listing endpoint.
"""

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from artifact_registry.api.dependencies import get_catalog, get_storage_router
from artifact_registry.api.schemas.responses import ArtifactListResponse
from artifact_registry.catalog import Catalog
from artifact_registry.listing import build_listing
from artifact_registry.storage import StorageRouter

router = APIRouter()


@router.get("/artifacts", response_model=ArtifactListResponse)
async def list_artifacts(
    catalog: Catalog = Depends(get_catalog),
    storage_router: StorageRouter = Depends(get_storage_router),
) -> ArtifactListResponse:
    """
    List every artifact with download links for its versions.

    Artifacts are ordered most recently updated first, versions most
    recently uploaded first.
    """
    entries = await run_in_threadpool(build_listing, catalog, storage_router)
    return ArtifactListResponse(data=entries)
