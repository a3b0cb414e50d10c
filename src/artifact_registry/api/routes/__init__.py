"""
API route handlers.
"""

from artifact_registry.api.routes import artifacts, health, upload

__all__ = [
    "artifacts",
    "health",
    "upload",
]
