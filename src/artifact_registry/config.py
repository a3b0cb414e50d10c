"""
Registry configuration.

Settings are read from ``AR_*`` environment variables by
``RegistryConfig.from_env()``. Size settings accept plain byte counts or
K/M/G suffixes ("50M", "1G").
"""

import os
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from artifact_registry.core.exceptions import ConfigurationError

MIB = 1024 * 1024

# Largest object accepted by the primary store (50 MiB)
DEFAULT_PRIMARY_OBJECT_LIMIT = 50 * MIB

# Absolute per-upload ceiling (100 MiB)
DEFAULT_HARD_MAX_SIZE = 100 * MIB

_SIZE_MULTIPLIERS = {
    "K": 1024,
    "M": 1024 * 1024,
    "G": 1024 * 1024 * 1024,
}


def parse_size(value: str) -> int:
    """
    Parse a byte size with an optional K/M/G suffix.

    Args:
        value: Size string, e.g. "100M" or "1048576"

    Returns:
        Size in bytes

    Raises:
        ValueError: If the value is not a valid non-negative size
    """
    text = value.strip().upper()
    multiplier = 1
    if text and text[-1] in _SIZE_MULTIPLIERS:
        multiplier = _SIZE_MULTIPLIERS[text[-1]]
        text = text[:-1]
    size = int(text) * multiplier
    if size < 0:
        raise ValueError(f"size must be non-negative: {value}")
    return size


def format_size(size_bytes: int) -> str:
    """
    Format byte size as human-readable string.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "10.0 MB")
    """
    for unit, divisor in [("GB", 1024**3), ("MB", 1024**2), ("KB", 1024)]:
        if size_bytes >= divisor:
            return f"{size_bytes / divisor:.1f} {unit}"
    return f"{size_bytes} bytes"


class PrimaryBackendKind(str, Enum):
    """Implementations available for the primary object store."""

    FILESYSTEM = "filesystem"
    SUPABASE = "supabase"


class RegistryConfig(BaseModel):
    """Runtime configuration for the registry service."""

    database_path: Path = Path("var/registry/catalog.db")

    primary_backend: PrimaryBackendKind = PrimaryBackendKind.FILESYSTEM
    supabase_url: str | None = None
    supabase_service_key: str | None = Field(default=None, repr=False)
    storage_bucket: str = "files"
    filesystem_root: Path = Path("var/objects")
    public_base_url: str = "http://localhost:8000"
    public_path_prefix: str = "/files"

    overflow_url: str | None = None
    overflow_token: str | None = Field(default=None, repr=False)

    primary_object_limit: int = Field(default=DEFAULT_PRIMARY_OBJECT_LIMIT, gt=0)
    hard_max_size: int = Field(default=DEFAULT_HARD_MAX_SIZE, gt=0)
    backend_timeout_seconds: float = Field(default=120.0, gt=0)
    log_level: str = "INFO"

    def validate_settings(self) -> "RegistryConfig":
        """
        Check cross-field constraints.

        Raises:
            ConfigurationError: If the settings cannot work together
        """
        if self.primary_object_limit > self.hard_max_size:
            raise ConfigurationError(
                "Primary object limit cannot exceed the hard maximum upload size",
                config_key="primary_object_limit",
                details={
                    "primary_object_limit": self.primary_object_limit,
                    "hard_max_size": self.hard_max_size,
                },
            )
        if self.primary_backend is PrimaryBackendKind.SUPABASE:
            if not self.supabase_url:
                raise ConfigurationError(
                    "Supabase primary backend requires a project URL",
                    env_var="AR_SUPABASE_URL",
                )
            if not self.supabase_service_key:
                raise ConfigurationError(
                    "Supabase primary backend requires a service role key",
                    env_var="AR_SUPABASE_SERVICE_KEY",
                )
        if not self.public_path_prefix.startswith("/"):
            raise ConfigurationError(
                "Public path prefix must start with '/'",
                env_var="AR_PUBLIC_PATH_PREFIX",
            )
        return self

    @classmethod
    def from_env(cls) -> "RegistryConfig":
        """Load configuration from environment."""
        backend_str = os.getenv("AR_PRIMARY_BACKEND", PrimaryBackendKind.FILESYSTEM.value)
        try:
            primary_backend = PrimaryBackendKind(backend_str.strip().lower())
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown primary backend: {backend_str}",
                env_var="AR_PRIMARY_BACKEND",
            ) from e

        timeout_str = os.getenv("AR_BACKEND_TIMEOUT", "120")
        try:
            timeout = float(timeout_str)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid backend timeout: {timeout_str}",
                env_var="AR_BACKEND_TIMEOUT",
            ) from e

        config = cls(
            database_path=Path(os.getenv("AR_DATABASE_PATH", "var/registry/catalog.db")),
            primary_backend=primary_backend,
            supabase_url=os.getenv("AR_SUPABASE_URL") or None,
            supabase_service_key=os.getenv("AR_SUPABASE_SERVICE_KEY") or None,
            storage_bucket=os.getenv("AR_STORAGE_BUCKET", "files"),
            filesystem_root=Path(os.getenv("AR_FILESYSTEM_ROOT", "var/objects")),
            public_base_url=os.getenv("AR_PUBLIC_BASE_URL", "http://localhost:8000"),
            public_path_prefix=os.getenv("AR_PUBLIC_PATH_PREFIX", "/files"),
            overflow_url=os.getenv("AR_OVERFLOW_URL") or None,
            overflow_token=os.getenv("AR_OVERFLOW_TOKEN") or None,
            primary_object_limit=_size_from_env(
                "AR_PRIMARY_OBJECT_LIMIT", DEFAULT_PRIMARY_OBJECT_LIMIT
            ),
            hard_max_size=_size_from_env("AR_HARD_MAX_SIZE", DEFAULT_HARD_MAX_SIZE),
            backend_timeout_seconds=timeout,
            log_level=os.getenv("AR_LOG_LEVEL", "INFO").upper(),
        )
        return config.validate_settings()


def _size_from_env(env_var: str, default: int) -> int:
    env_value = os.getenv(env_var, "")
    if not env_value:
        return default
    try:
        return parse_size(env_value)
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid size value: {env_value}",
            env_var=env_var,
        ) from e
