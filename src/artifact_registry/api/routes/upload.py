"""
Upload endpoint.

Accepts a multipart upload from a CI pipeline and registers it as a new,
immutable artifact version.
"""

import logging
from collections.abc import Callable

import anyio.from_thread
from fastapi import APIRouter, Depends, File, Form, Header, Request, UploadFile, status
from starlette.concurrency import run_in_threadpool

from artifact_registry.api.dependencies import get_orchestrator
from artifact_registry.api.schemas.responses import ErrorResponse, UploadData, UploadResponse
from artifact_registry.upload import UploadOrchestrator, UploadOutcome, UploadRequest

router = APIRouter()
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    code: {"model": ErrorResponse}
    for code in (
        status.HTTP_400_BAD_REQUEST,
        status.HTTP_401_UNAUTHORIZED,
        status.HTTP_409_CONFLICT,
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
}


def _disconnect_check(request: Request) -> Callable[[], bool]:
    """Build a check, callable from a worker thread, reporting client disconnect."""

    def is_cancelled() -> bool:
        return anyio.from_thread.run(request.is_disconnected)

    return is_cancelled


def _to_upload_data(outcome: UploadOutcome) -> UploadData:
    version = outcome.version
    return UploadData(
        artifact_id=outcome.artifact.id,
        version_id=version.id,
        file_name=outcome.artifact.name,
        version=version.version,
        original_file_name=version.file_name,
        storage_backend=version.location.backend,
        storage_path=version.location.reference,
        file_size=version.size_bytes,
        file_type=version.content_type,
        download_url=outcome.download_url,
        uploaded_at=version.uploaded_at,
        uploaded_by=outcome.identity.name,
        is_latest=version.is_latest,
    )


@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def upload_artifact(
    request: Request,
    file: UploadFile | None = File(None, description="Artifact payload"),
    file_name: str | None = Form(None, alias="fileName", description="Logical artifact name"),
    version: str | None = Form(None, description="Version string"),
    metadata: str | None = Form(None, description="JSON object with extra metadata"),
    authorization: str | None = Header(None),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
) -> UploadResponse:
    """
    Upload a new artifact version.

    Requires ``Authorization: Bearer <api key>``. The (fileName, version)
    pair must not already exist.

    Returns:
        UploadResponse with the committed version and its download URL
    """
    payload: bytes | None = None
    original_file_name: str | None = None
    content_type: str | None = None
    if file is not None:
        try:
            payload = await file.read()
        finally:
            await file.close()
        original_file_name = file.filename
        content_type = file.content_type

    upload_request = UploadRequest(
        authorization=authorization,
        name=file_name,
        version=version,
        metadata=metadata,
        payload=payload,
        original_file_name=original_file_name,
        content_type=content_type,
    )

    outcome = await run_in_threadpool(
        orchestrator.handle,
        upload_request,
        is_cancelled=_disconnect_check(request),
    )
    return UploadResponse(data=_to_upload_data(outcome))
