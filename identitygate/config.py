"""
Shared configuration for the identity store.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from sqlalchemy.engine import URL

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("identitygate")


def _get_bool(env_name: str, default: bool) -> bool:
    value = os.environ.get(env_name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(env_name: str, default: int) -> int:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _normalize_backend(value: str) -> str:
    value = value.strip().lower()
    if value == "postgresql":
        return "postgres"
    return value


SUPPORTED_BACKENDS = {"sqlite", "postgres", "mysql"}

_DRIVERS = {
    "sqlite": "sqlite+pysqlite",
    "postgres": "postgresql+psycopg2",
    "mysql": "mysql+pymysql",
}
_DEFAULT_PORTS = {"postgres": 5432, "mysql": 3306}
_DEFAULT_USERS = {"postgres": "postgres", "mysql": "root"}

# Database settings
DB_BACKEND = _normalize_backend(os.environ.get("DB_BACKEND", "sqlite"))
DATABASE_URL = os.environ.get("DATABASE_URL")
SQLITE_PATH = os.environ.get("SQLITE_PATH", "identity.db")
DB_HOST = os.environ.get("DB_HOST", "localhost")
DB_PORT = _get_int("DB_PORT", _DEFAULT_PORTS.get(DB_BACKEND, 0))
DB_NAME = os.environ.get("DB_NAME", "mcengine_identity")
DB_USER = os.environ.get("DB_USER", _DEFAULT_USERS.get(DB_BACKEND, ""))
DB_PASSWORD = os.environ.get("DB_PASSWORD", "")
DB_POOL_PRE_PING = _get_bool("DB_POOL_PRE_PING", True)
DB_ECHO = _get_bool("DB_ECHO", False)

# Identity defaults and input limits (match column widths)
DEFAULT_ALT_LIMIT = _get_int("IDENTITYGATE_DEFAULT_ALT_LIMIT", 1)
MAX_IDENTITY_ID_LENGTH = _get_int("IDENTITYGATE_MAX_IDENTITY_ID_LENGTH", 36)
MAX_ALT_NAME_LENGTH = _get_int("IDENTITYGATE_MAX_ALT_NAME_LENGTH", 64)
MAX_PERMISSION_NAME_LENGTH = _get_int("IDENTITYGATE_MAX_PERMISSION_NAME_LENGTH", 64)


def build_database_url(
    backend: str,
    *,
    sqlite_path: Optional[str] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    database: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> str:
    """Compose a SQLAlchemy URL for the given backend."""
    backend = _normalize_backend(backend)
    if backend not in SUPPORTED_BACKENDS:
        raise ValueError(f"Unsupported database backend: {backend}")
    if backend == "sqlite":
        url = URL.create(_DRIVERS["sqlite"], database=sqlite_path or SQLITE_PATH)
    else:
        url = URL.create(
            _DRIVERS[backend],
            username=username or _DEFAULT_USERS[backend],
            password=password or None,
            host=host or "localhost",
            port=port or _DEFAULT_PORTS[backend],
            database=database or DB_NAME,
        )
    return url.render_as_string(hide_password=False)


def _url_backend(url: str) -> str:
    scheme = url.split(":", 1)[0].split("+", 1)[0].lower()
    return _normalize_backend(scheme)


def validate_and_prepare_config() -> None:
    """Validate configuration and apply derived settings at startup."""
    global DATABASE_URL

    errors = []
    if DB_BACKEND not in SUPPORTED_BACKENDS:
        errors.append("DB_BACKEND must be 'sqlite', 'postgres', or 'mysql'")

    if DEFAULT_ALT_LIMIT < 0:
        errors.append("IDENTITYGATE_DEFAULT_ALT_LIMIT must be >= 0")

    if not DATABASE_URL:
        if DB_BACKEND == "sqlite":
            if not SQLITE_PATH:
                errors.append("SQLITE_PATH environment variable is required for sqlite")
            else:
                DATABASE_URL = build_database_url("sqlite", sqlite_path=SQLITE_PATH)
        elif DB_BACKEND in SUPPORTED_BACKENDS:
            if not DB_HOST:
                errors.append("DB_HOST environment variable is required")
            else:
                DATABASE_URL = build_database_url(
                    DB_BACKEND,
                    host=DB_HOST,
                    port=DB_PORT,
                    database=DB_NAME,
                    username=DB_USER,
                    password=DB_PASSWORD,
                )
    elif DB_BACKEND in SUPPORTED_BACKENDS and _url_backend(DATABASE_URL) != DB_BACKEND:
        errors.append(f"DATABASE_URL must be a {DB_BACKEND} URL when DB_BACKEND={DB_BACKEND}")

    if errors:
        raise RuntimeError("Configuration invalid: " + "; ".join(errors))
