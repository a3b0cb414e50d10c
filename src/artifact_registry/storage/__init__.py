"""
Object storage for uploaded artifacts.

Provides the primary/overflow backend contracts, their implementations, and
the size-based router the upload path writes through.
"""

from artifact_registry.storage.base import OverflowObjectStore, PrimaryObjectStore
from artifact_registry.storage.filesystem import FilesystemObjectStore
from artifact_registry.storage.overflow import HttpOverflowStore
from artifact_registry.storage.router import (
    StorageRouter,
    build_object_key,
    create_storage_router,
)
from artifact_registry.storage.supabase import SupabaseObjectStore

__all__ = [
    "FilesystemObjectStore",
    "HttpOverflowStore",
    "OverflowObjectStore",
    "PrimaryObjectStore",
    "StorageRouter",
    "SupabaseObjectStore",
    "build_object_key",
    "create_storage_router",
]
