"""
Artifact Registry API Module.

REST API for artifact uploads and download listings.
"""

from artifact_registry.api.app import create_app

__all__ = ["create_app"]
