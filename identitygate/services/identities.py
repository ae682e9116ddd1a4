"""
Identity services.

Provides the per-user identity row and its alt limit:
- Ensure an identity (and its primary alt and session) exists
- Read and raise the alt limit
"""

from __future__ import annotations

from identitygate.dialects import adapter_for
from identitygate.models import (
    Identity,
    IdentityAlternative,
    IdentitySession,
    primary_alt_id,
    utcnow,
)
from identitygate.services.shared import (
    DEFAULT_ALT_LIMIT,
    _open_session,
    _validate_identity_id,
    _validate_non_negative_int,
    identity_locks,
    logger,
    store_operation,
)


def _ensure_identity(db, identity_id: str) -> None:
    """Insert the identity with the default limit, or touch updated_at."""
    now = utcnow()
    adapter_for(db).upsert(
        db,
        Identity,
        {
            "id": identity_id,
            "alt_limit": DEFAULT_ALT_LIMIT,
            "created_at": now,
            "updated_at": now,
        },
        key=("id",),
        update_columns=("updated_at",),
    )


def _get_limit(db, identity_id: str, *, for_update: bool = False) -> int:
    query = db.query(Identity.alt_limit).filter(Identity.id == identity_id)
    if for_update:
        query = query.with_for_update()
    limit = query.scalar()
    return int(limit) if limit is not None else 0


def _ensure_primary_alt(db, identity_id: str) -> str:
    alt_id = primary_alt_id(identity_id)
    now = utcnow()
    adapter_for(db).upsert(
        db,
        IdentityAlternative,
        {
            "alt_id": alt_id,
            "identity_id": identity_id,
            "display_name": None,
            "storage": None,
            "created_at": now,
            "updated_at": now,
        },
        key=("alt_id",),
    )
    return alt_id


def _ensure_session(db, identity_id: str, alt_id: str) -> None:
    # An existing session keeps its pointer
    adapter_for(db).upsert(
        db,
        IdentitySession,
        {"identity_id": identity_id, "active_alt_id": alt_id},
        key=("identity_id",),
    )


@store_operation(default=False)
def ensure_identity(identity_id: str) -> bool:
    """Upsert the identity row; never fails on an existing row."""
    _validate_identity_id(identity_id)

    db = _open_session()
    try:
        _ensure_identity(db, identity_id)
        db.commit()
        return True
    finally:
        db.close()


@store_operation(default=False)
def ensure_exist(identity_id: str) -> bool:
    """
    Materialize an identity on first touch.

    Ensures, in one unit of work:
    1. the identity row (default limit),
    2. the primary alt ``{identity_id}-0``,
    3. a session row pointing at the primary alt when none exists yet.

    Repeated calls are no-ops apart from refreshing ``updated_at``.
    """
    _validate_identity_id(identity_id)

    with identity_locks.hold(identity_id):
        db = _open_session()
        try:
            _ensure_identity(db, identity_id)
            alt_id = _ensure_primary_alt(db, identity_id)
            _ensure_session(db, identity_id, alt_id)
            db.commit()
        finally:
            db.close()

    logger.info("identity_ensured", extra={"identity_id": identity_id})
    return True


@store_operation(default=0)
def get_limit(identity_id: str) -> int:
    """Return the identity's alt limit, creating the identity if unseen."""
    _validate_identity_id(identity_id)

    db = _open_session()
    try:
        _ensure_identity(db, identity_id)
        limit = _get_limit(db, identity_id)
        db.commit()
        return limit
    finally:
        db.close()


@store_operation(default=False)
def add_limit(identity_id: str, amount: int) -> bool:
    """Atomically raise the alt limit by a non-negative amount."""
    _validate_identity_id(identity_id)
    _validate_non_negative_int(amount, "amount")

    db = _open_session()
    try:
        _ensure_identity(db, identity_id)
        updated = (
            db.query(Identity)
            .filter(Identity.id == identity_id)
            .update(
                {
                    Identity.alt_limit: Identity.alt_limit + amount,
                    Identity.updated_at: utcnow(),
                },
                synchronize_session=False,
            )
        )
        db.commit()
        return updated > 0
    finally:
        db.close()
