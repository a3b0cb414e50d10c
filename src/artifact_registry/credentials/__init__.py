"""
Credential validation for upload requests.

Provides the API key store and the bearer-secret validator.
"""

from artifact_registry.credentials.store import CredentialStore, generate_secret
from artifact_registry.credentials.validator import CredentialValidator, extract_bearer_token

__all__ = [
    "CredentialStore",
    "CredentialValidator",
    "extract_bearer_token",
    "generate_secret",
]
