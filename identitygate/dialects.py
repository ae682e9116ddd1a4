"""
Dialect adapters.

The stores are written once against a small portable primitive set:

- upsert by key (insert, or on key conflict either refresh some columns or
  leave the row alone)
- unique-violation detection on IntegrityError

Only the statements below differ between SQLite, PostgreSQL and MySQL.
"""

from __future__ import annotations

from typing import Sequence

from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from identitygate.errors import StoreUnavailable


class DialectAdapter:
    name = "generic"
    _unique_markers: tuple[str, ...] = ("unique", "duplicate")

    def build_upsert(
        self,
        table,
        values: dict,
        *,
        key: Sequence[str],
        update_columns: Sequence[str] = (),
    ):
        raise NotImplementedError

    def upsert(
        self,
        db,
        model,
        values: dict,
        *,
        key: Sequence[str],
        update_columns: Sequence[str] = (),
    ) -> None:
        """
        Insert ``values`` into ``model``'s table.

        On a conflict over ``key`` the existing row keeps its values except
        for ``update_columns``, which take the incoming values. With no
        update columns the insert is silently skipped.
        """
        stmt = self.build_upsert(
            model.__table__,
            values,
            key=key,
            update_columns=update_columns,
        )
        db.execute(stmt)

    def is_unique_violation(self, exc: BaseException) -> bool:
        if not isinstance(exc, IntegrityError):
            return False
        message = str(getattr(exc, "orig", exc)).lower()
        return any(marker in message for marker in self._unique_markers)


class _OnConflictAdapter(DialectAdapter):
    @staticmethod
    def _insert(table):
        raise NotImplementedError

    def build_upsert(self, table, values, *, key, update_columns=()):
        stmt = self._insert(table).values(**values)
        if not update_columns:
            return stmt.on_conflict_do_nothing(index_elements=list(key))
        return stmt.on_conflict_do_update(
            index_elements=list(key),
            set_={column: stmt.excluded[column] for column in update_columns},
        )


class SQLiteAdapter(_OnConflictAdapter):
    name = "sqlite"
    _unique_markers = ("unique constraint failed",)

    @staticmethod
    def _insert(table):
        return sqlite.insert(table)


class PostgresAdapter(_OnConflictAdapter):
    name = "postgresql"
    UNIQUE_VIOLATION = "23505"

    @staticmethod
    def _insert(table):
        return postgresql.insert(table)

    def is_unique_violation(self, exc):
        if not isinstance(exc, IntegrityError):
            return False
        orig = getattr(exc, "orig", None)
        # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
        code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if code:
            return code == self.UNIQUE_VIOLATION
        return super().is_unique_violation(exc)


class MySQLAdapter(DialectAdapter):
    name = "mysql"
    DUPLICATE_ENTRY = 1062

    def build_upsert(self, table, values, *, key, update_columns=()):
        stmt = mysql.insert(table).values(**values)
        if not update_columns:
            # assigning the key to itself leaves the existing row untouched
            return stmt.on_duplicate_key_update({column: table.c[column] for column in key})
        return stmt.on_duplicate_key_update(
            {column: stmt.inserted[column] for column in update_columns}
        )

    def is_unique_violation(self, exc):
        if not isinstance(exc, IntegrityError):
            return False
        args = getattr(getattr(exc, "orig", None), "args", ())
        if args and isinstance(args[0], int):
            return args[0] == self.DUPLICATE_ENTRY
        return super().is_unique_violation(exc)


_ADAPTERS: dict[str, DialectAdapter] = {
    adapter.name: adapter
    for adapter in (SQLiteAdapter(), PostgresAdapter(), MySQLAdapter())
}


def adapter_for_dialect(dialect_name: str) -> DialectAdapter:
    adapter = _ADAPTERS.get(dialect_name)
    if adapter is None:
        raise StoreUnavailable(f"No dialect adapter for backend '{dialect_name}'")
    return adapter


def adapter_for(db) -> DialectAdapter:
    """Pick the adapter matching the session's bound engine."""
    return adapter_for_dialect(db.get_bind().dialect.name)


__all__ = [
    "DialectAdapter",
    "SQLiteAdapter",
    "PostgresAdapter",
    "MySQLAdapter",
    "adapter_for",
    "adapter_for_dialect",
]
