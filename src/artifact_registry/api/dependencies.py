"""
Request dependencies.

Components are built once by the application lifespan and kept on
``app.state``; routes reach them through these providers.
"""

from fastapi import Request

from artifact_registry.catalog import Catalog
from artifact_registry.db import Database
from artifact_registry.storage import StorageRouter
from artifact_registry.upload import UploadOrchestrator


def get_database(request: Request) -> Database:
    return request.app.state.db


def get_catalog(request: Request) -> Catalog:
    return request.app.state.catalog


def get_storage_router(request: Request) -> StorageRouter:
    return request.app.state.storage_router


def get_orchestrator(request: Request) -> UploadOrchestrator:
    return request.app.state.orchestrator
