"""
Credential validation for upload requests.

A bearer secret is accepted only if it matches an active key. Unknown and
revoked secrets fail identically. Successful validations stamp the key's
last use on a background worker so the request never waits on that write.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures

from artifact_registry.core.exceptions import InvalidCredentialError
from artifact_registry.core.models import CredentialIdentity, iso_timestamp
from artifact_registry.credentials.store import CredentialStore

logger = logging.getLogger(__name__)


def extract_bearer_token(auth_header: str | None) -> str | None:
    """
    Extract the secret from an ``Authorization: Bearer <secret>`` header.

    Args:
        auth_header: The Authorization header value

    Returns:
        The secret, or None if the header is missing or malformed
    """
    if not auth_header:
        return None

    parts = auth_header.split()
    if len(parts) != 2:
        return None

    scheme, token = parts
    if scheme.lower() != "bearer":
        return None

    return token


class CredentialValidator:
    """Validates bearer secrets against the credential store."""

    def __init__(self, store: CredentialStore, *, max_workers: int = 2):
        """
        Initialize the validator.

        Args:
            store: Credential store to look secrets up in
            max_workers: Threads available for last-use updates
        """
        self._store = store
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="credential_touch"
        )
        self._pending: set[Future] = set()
        self._pending_lock = threading.Lock()

    def validate(self, secret: str | None) -> CredentialIdentity:
        """
        Validate a bearer secret.

        Args:
            secret: Secret extracted from the Authorization header

        Returns:
            Identity whose name is recorded as the uploader

        Raises:
            InvalidCredentialError: If the secret is empty, unknown or revoked
            CatalogError: If the credential store cannot be queried
        """
        if not secret:
            raise InvalidCredentialError("Missing API key")

        credential = self._store.find_active(secret)
        if credential is None:
            logger.warning("API key validation failed")
            raise InvalidCredentialError()

        self._record_use(credential.id)
        return CredentialIdentity(credential_id=credential.id, name=credential.name)

    def validate_header(self, auth_header: str | None) -> CredentialIdentity:
        """Validate the raw Authorization header value."""
        if not auth_header:
            raise InvalidCredentialError("Missing or invalid Authorization header")
        token = extract_bearer_token(auth_header)
        if token is None:
            raise InvalidCredentialError("Missing or invalid Authorization header")
        return self.validate(token)

    def _record_use(self, credential_id: str) -> None:
        """Schedule a best-effort last-use update."""
        used_at = iso_timestamp()
        try:
            future = self._executor.submit(self._store.touch, credential_id, used_at)
        except RuntimeError:
            # Executor already shut down
            logger.debug("Skipping last-use update after shutdown")
            return

        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._on_touch_done)

    def _on_touch_done(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)
        error = future.exception()
        if error is not None:
            logger.warning(
                "Failed to update API key last use",
                extra={"error": str(error)},
            )

    def drain(self, timeout: float | None = None) -> None:
        """Wait for scheduled last-use updates to finish."""
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            wait_futures(pending, timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        """Stop the background worker."""
        self._executor.shutdown(wait=wait)
