"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple


_DEFAULT_CORS_ORIGINS = (
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:8000",
)


def _normalize_bool(value: str | None, default: bool = False) -> bool:
    """Return normalized boolean from environment-style value."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"", "0", "false", "no", "off"}:
        return False
    if normalized in {"1", "true", "yes", "on"}:
        return True
    return default


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_database_url() -> str:
    # If DATABASE_URL is explicitly set, use it
    if os.getenv("DATABASE_URL"):
        return os.getenv("DATABASE_URL")

    # Otherwise, generate from individual components (all must be set)
    db_user = os.getenv("POSTGRES_USER")
    db_password = os.getenv("POSTGRES_PASSWORD")
    db_host = os.getenv("POSTGRES_HOST")
    db_port = os.getenv("POSTGRES_PORT")
    db_name = os.getenv("POSTGRES_DB")

    if not all([db_user, db_password, db_host, db_port, db_name]):
        missing = []
        if not db_user: missing.append("POSTGRES_USER")
        if not db_password: missing.append("POSTGRES_PASSWORD")
        if not db_host: missing.append("POSTGRES_HOST")
        if not db_port: missing.append("POSTGRES_PORT")
        if not db_name: missing.append("POSTGRES_DB")
        raise ValueError(f"Missing required database environment variables: {', '.join(missing)}")

    return f"postgresql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"


@dataclass(frozen=True)
class Settings:
    database_url: str
    pool_size: int = 20
    max_overflow: int = 0
    pool_timeout: float = 30.0
    pool_recycle: int = 1800
    echo_sql: bool = False
    operation_timeout: Optional[float] = None


def get_cors_origins() -> Tuple[str, ...]:
    """Comma-separated CORS_ORIGINS, or the localhost defaults."""
    raw = os.getenv("CORS_ORIGINS", "")
    return tuple(o.strip() for o in raw.split(",") if o.strip()) or _DEFAULT_CORS_ORIGINS


def load_settings() -> Settings:
    """Read settings from the environment without caching."""
    return Settings(
        database_url=_get_database_url(),
        pool_size=_int_env("DB_POOL_SIZE", 20),
        max_overflow=_int_env("DB_MAX_OVERFLOW", 0),
        pool_timeout=_float_env("DB_POOL_TIMEOUT", 30.0),
        pool_recycle=_int_env("DB_POOL_RECYCLE", 1800),
        echo_sql=_normalize_bool(os.getenv("DB_ECHO"), default=False),
        operation_timeout=_float_env("STORE_OPERATION_TIMEOUT", None),
    )


@lru_cache(maxsize=None)
def get_settings() -> Settings:
    """Return the cached settings sourced from the environment."""
    return load_settings()


def refresh_settings_cache() -> None:
    """Invalidate cached settings (useful for tests)."""
    get_settings.cache_clear()
