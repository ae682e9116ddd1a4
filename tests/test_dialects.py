import pytest
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from identitygate.dialects import (
    MySQLAdapter,
    PostgresAdapter,
    SQLiteAdapter,
    adapter_for,
    adapter_for_dialect,
)
from identitygate.errors import StoreUnavailable
from identitygate.models import IdentityPermission, IdentitySession


PERMISSION_VALUES = {"alt_id": "U-0", "name": "fly"}
SESSION_VALUES = {"identity_id": "U", "active_alt_id": "U-0"}


def _sql(stmt, dialect):
    return str(stmt.compile(dialect=dialect))


class _PgError(Exception):
    def __init__(self, pgcode):
        super().__init__("duplicate key value violates unique constraint")
        self.pgcode = pgcode


def _integrity(orig):
    return IntegrityError("INSERT ...", {}, orig)


def test_postgres_upsert_refreshes_listed_columns():
    stmt = PostgresAdapter().build_upsert(
        IdentityPermission.__table__,
        PERMISSION_VALUES,
        key=("alt_id", "name"),
        update_columns=("updated_at",),
    )
    sql = _sql(stmt, postgresql.dialect())
    assert "ON CONFLICT (alt_id, name) DO UPDATE" in sql
    assert "excluded.updated_at" in sql


def test_sqlite_upsert_without_updates_does_nothing():
    stmt = SQLiteAdapter().build_upsert(
        IdentitySession.__table__, SESSION_VALUES, key=("identity_id",)
    )
    assert "ON CONFLICT (identity_id) DO NOTHING" in _sql(stmt, sqlite.dialect())


def test_mysql_upsert_uses_duplicate_key_clause():
    refresh = MySQLAdapter().build_upsert(
        IdentityPermission.__table__,
        PERMISSION_VALUES,
        key=("alt_id", "name"),
        update_columns=("updated_at",),
    )
    keep = MySQLAdapter().build_upsert(
        IdentitySession.__table__, SESSION_VALUES, key=("identity_id",)
    )

    refresh_sql = _sql(refresh, mysql.dialect())
    assert "ON DUPLICATE KEY UPDATE updated_at" in refresh_sql
    assert "ON DUPLICATE KEY UPDATE identity_id =" in _sql(keep, mysql.dialect())


def test_postgres_unique_violation_by_sqlstate():
    adapter = PostgresAdapter()
    assert adapter.is_unique_violation(_integrity(_PgError("23505"))) is True
    assert adapter.is_unique_violation(_integrity(_PgError("23503"))) is False


def test_mysql_unique_violation_by_error_number():
    adapter = MySQLAdapter()
    duplicate = Exception(1062, "Duplicate entry 'Main' for key 'uq_alt_identity_name'")
    foreign_key = Exception(1452, "Cannot add or update a child row")
    assert adapter.is_unique_violation(_integrity(duplicate)) is True
    assert adapter.is_unique_violation(_integrity(foreign_key)) is False


def test_sqlite_unique_violation_by_message():
    adapter = SQLiteAdapter()
    unique = Exception(
        "UNIQUE constraint failed: "
        "identity_alternative.identity_id, identity_alternative.display_name"
    )
    assert adapter.is_unique_violation(_integrity(unique)) is True
    assert adapter.is_unique_violation(_integrity(Exception("FOREIGN KEY constraint failed"))) is False
    assert adapter.is_unique_violation(ValueError("unique")) is False


def test_unknown_dialect_is_unavailable():
    with pytest.raises(StoreUnavailable):
        adapter_for_dialect("oracle")


def test_adapter_for_session(db_session):
    assert isinstance(adapter_for(db_session), SQLiteAdapter)
