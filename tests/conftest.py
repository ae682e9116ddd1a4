import os

os.environ.setdefault("DB_BACKEND", "sqlite")

import pytest
from sqlalchemy.orm import sessionmaker

from identitygate.db import DB, create_db_engine, ensure_schema
from identitygate.services.shared import identity_locks


@pytest.fixture
def identity_db(tmp_path):
    db_path = tmp_path / "identity.sqlite"
    engine = create_db_engine(f"sqlite:///{db_path}")
    ensure_schema(engine)
    previous_engine = DB.engine
    previous_session = DB.SessionLocal
    DB.engine = engine
    DB.SessionLocal = sessionmaker(bind=engine)
    try:
        yield engine
    finally:
        DB.engine = previous_engine
        DB.SessionLocal = previous_session
        identity_locks.clear()
        engine.dispose()


@pytest.fixture
def db_session(identity_db):
    session = DB.SessionLocal()
    try:
        yield session
    finally:
        session.close()
