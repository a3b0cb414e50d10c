"""
Artifact Registry - versioned build artifact storage for CI/CD pipelines.

Pipelines push immutable artifacts tagged with a logical name and a version
string; readers list every artifact with download links for its versions.
"""

from artifact_registry.version import __version__

# API module is available but not exported by default
# Import explicitly: from artifact_registry.api import create_app

__all__ = ["__version__"]
