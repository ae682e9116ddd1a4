"""
Database initialization and schema helpers.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

import identitygate.config as config
from identitygate.models import Base, IDENTITY_TABLES


class DB:
    """Database state holder (avoids global scoping issues)."""

    engine = None
    SessionLocal = None


def _enable_sqlite_foreign_keys(engine) -> None:
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()


def create_db_engine(database_url: str):
    """Create an engine with the per-backend connection settings applied."""
    engine_kwargs = {"pool_pre_ping": config.DB_POOL_PRE_PING, "echo": config.DB_ECHO}
    is_sqlite = database_url.lower().startswith("sqlite")
    if is_sqlite:
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    engine = create_engine(database_url, **engine_kwargs)
    if is_sqlite:
        _enable_sqlite_foreign_keys(engine)
    return engine


def _missing_tables(engine) -> list[str]:
    existing = set(inspect(engine).get_table_names())
    return [table.name for table in IDENTITY_TABLES if table.name not in existing]


def ensure_schema(engine) -> None:
    """
    Create the identity tables, constraints and indexes if absent.

    Safe to call repeatedly and from several processes at once. Raises
    RuntimeError when the schema cannot be brought into a usable state;
    callers must treat that as fatal.
    """
    try:
        Base.metadata.create_all(engine, tables=list(IDENTITY_TABLES), checkfirst=True)
    except SQLAlchemyError as exc:
        # A concurrent creator may have won the race between check and CREATE
        missing = _missing_tables(engine)
        if missing:
            raise RuntimeError(f"Schema creation failed; missing tables: {missing}") from exc
        config.logger.info("schema_created_concurrently", extra={"detail": str(exc)})

    missing = _missing_tables(engine)
    if missing:
        raise RuntimeError(f"Schema validation failed; missing tables: {missing}")


def init_db(database_url: Optional[str] = None) -> None:
    """Initialize database connection and create tables."""
    if database_url is None:
        config.validate_and_prepare_config()
        database_url = config.DATABASE_URL

    config.logger.info("Connecting to database...")
    engine = create_db_engine(database_url)
    ensure_schema(engine)

    DB.engine = engine
    DB.SessionLocal = sessionmaker(bind=engine)
    config.logger.info("Database initialized", extra={"backend": engine.dialect.name})


def dispose_db() -> None:
    if DB.engine is not None:
        DB.engine.dispose()
    DB.engine = None
    DB.SessionLocal = None


def check_db_health() -> dict:
    if DB.engine is None:
        return {"ok": False, "error": "db_not_initialized"}

    try:
        with DB.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        missing = _missing_tables(DB.engine)
    except SQLAlchemyError as exc:
        return {"ok": False, "error": str(exc)}

    return {
        "ok": not missing,
        "backend": DB.engine.dialect.name,
        "missing_tables": missing,
    }
