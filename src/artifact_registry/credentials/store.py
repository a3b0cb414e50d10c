"""
Credential store - named, revocable API keys in the api_keys table.

Keys are created and revoked out-of-band by operators. The upload path only
looks keys up by secret and stamps their last use.
"""

import logging
import secrets
import sqlite3
import uuid

from artifact_registry.core.exceptions import CatalogError, CredentialExistsError
from artifact_registry.core.models import ApiCredential, iso_timestamp
from artifact_registry.db import Database

logger = logging.getLogger(__name__)


def generate_secret() -> str:
    """Generate a new random API key secret."""
    return secrets.token_urlsafe(32)


def _row_to_credential(row: sqlite3.Row) -> ApiCredential:
    return ApiCredential(
        id=row["id"],
        name=row["key_name"],
        secret=row["key_value"],
        active=bool(row["is_active"]),
        created_at=row["created_at"],
        last_used_at=row["last_used_at"],
    )


class CredentialStore:
    """SQLite-backed store of API credentials."""

    def __init__(self, db: Database):
        self._db = db

    def find_active(self, secret: str) -> ApiCredential | None:
        """
        Look up an active credential by its secret.

        Args:
            secret: Bearer secret presented by the client

        Returns:
            The matching credential, or None if the secret is unknown or revoked

        Raises:
            CatalogError: If the database cannot be queried
        """
        try:
            row = (
                self._db.connection()
                .execute(
                    "SELECT * FROM api_keys WHERE key_value = ? AND is_active = 1 LIMIT 1",
                    (secret,),
                )
                .fetchone()
            )
        except sqlite3.Error as e:
            raise CatalogError("Failed to query API keys", operation="find_active") from e
        return _row_to_credential(row) if row else None

    def touch(self, credential_id: str, used_at: str | None = None) -> None:
        """Record the last time a credential was used."""
        self._db.connection().execute(
            "UPDATE api_keys SET last_used_at = ? WHERE id = ?",
            (used_at or iso_timestamp(), credential_id),
        )

    def create(self, name: str, secret: str | None = None) -> ApiCredential:
        """
        Create a new active credential.

        Args:
            name: Display name recorded as the uploader of versions
            secret: Secret value (generated if omitted)

        Returns:
            The stored credential, including its secret

        Raises:
            CredentialExistsError: If the name or secret is already in use
        """
        credential = ApiCredential(
            id=str(uuid.uuid4()),
            name=name,
            secret=secret or generate_secret(),
        )
        try:
            self._db.connection().execute(
                """
                INSERT INTO api_keys (id, key_name, key_value, created_at, is_active)
                VALUES (?, ?, ?, ?, 1)
                """,
                (credential.id, credential.name, credential.secret, credential.created_at),
            )
        except sqlite3.IntegrityError as e:
            raise CredentialExistsError(name=name) from e
        logger.info("API key created", extra={"key_name": name})
        return credential

    def deactivate(self, name: str) -> bool:
        """
        Soft-revoke a credential by name.

        Returns:
            True if an active credential was revoked
        """
        cursor = self._db.connection().execute(
            "UPDATE api_keys SET is_active = 0 WHERE key_name = ? AND is_active = 1",
            (name,),
        )
        revoked = cursor.rowcount > 0
        if revoked:
            logger.info("API key revoked", extra={"key_name": name})
        return revoked

    def list(self) -> list[ApiCredential]:
        """Return all credentials ordered by name."""
        rows = self._db.connection().execute(
            "SELECT * FROM api_keys ORDER BY key_name"
        ).fetchall()
        return [_row_to_credential(row) for row in rows]
