"""
Alternative profile services.

Provides functionality for an identity's alts:
- Create alts under the alt limit
- Rename alts (display names are unique per identity)
- Look alts up by id or name, list and count them
- Ownership checks used by every operation taking a caller-supplied alt id
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from identitygate.dialects import adapter_for
from identitygate.errors import AltAllocationConflict, AltNameConflict
from identitygate.models import IdentityAlternative, format_alt_id, utcnow
from identitygate.services.identities import _ensure_identity, _get_limit
from identitygate.services.shared import (
    MAX_ALT_NAME_LENGTH,
    _open_session,
    _validate_alt_id,
    _validate_identity_id,
    _validate_optional_text,
    _validate_required_text,
    identity_locks,
    logger,
    store_operation,
)


def _alt_count(db, identity_id: str) -> int:
    count = (
        db.query(func.count(IdentityAlternative.alt_id))
        .filter(IdentityAlternative.identity_id == identity_id)
        .scalar()
    )
    return int(count or 0)


def _is_owned_by(db, identity_id: str, alt_id: Optional[str]) -> bool:
    if not alt_id:
        return False
    row = (
        db.query(IdentityAlternative.alt_id)
        .filter(IdentityAlternative.alt_id == alt_id)
        .filter(IdentityAlternative.identity_id == identity_id)
        .first()
    )
    return row is not None


def _alt_id_by_name(db, identity_id: str, name: str) -> Optional[str]:
    row = (
        db.query(IdentityAlternative.alt_id)
        .filter(IdentityAlternative.identity_id == identity_id)
        .filter(IdentityAlternative.display_name == name)
        .first()
    )
    return row[0] if row else None


def set_alt_name(db, identity_id: str, alt_id: str, new_name: Optional[str]) -> bool:
    """
    Write an alt's display name inside the caller's unit of work.

    Returns whether a row owned by ``identity_id`` was updated. Raises
    AltNameConflict when a sibling alt already holds ``new_name`` (checked
    up front or caught from the unique index on a concurrent write), or
    when ``new_name`` is a sibling alt's id.
    """
    if new_name is not None:
        holder = _alt_id_by_name(db, identity_id, new_name)
        if holder is not None and holder != alt_id:
            raise AltNameConflict(
                f"Alt name {new_name!r} is already used by another alt",
                data={"alt_id": holder},
            )
        # Unnamed alts are labelled by their id, so a name may not shadow one
        if new_name != alt_id and _is_owned_by(db, identity_id, new_name):
            raise AltNameConflict(
                f"Alt name {new_name!r} is the id of another alt",
                data={"alt_id": new_name},
            )

    try:
        updated = (
            db.query(IdentityAlternative)
            .filter(IdentityAlternative.alt_id == alt_id)
            .filter(IdentityAlternative.identity_id == identity_id)
            .update(
                {
                    IdentityAlternative.display_name: new_name,
                    IdentityAlternative.updated_at: utcnow(),
                },
                synchronize_session=False,
            )
        )
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        if adapter_for(db).is_unique_violation(exc):
            raise AltNameConflict(f"Alt name {new_name!r} is already used by another alt") from exc
        raise
    return updated > 0


@store_operation(default=None)
def create_alt(identity_id: str) -> Optional[str]:
    """
    Create the next alt for an identity, or return None when the limit is reached.

    The new alt id is ``{identity_id}-{count}``. The limit read, count and
    insert run under the identity's lock and, on server backends, with the
    identity row locked until commit.
    """
    _validate_identity_id(identity_id)

    with identity_locks.hold(identity_id):
        db = _open_session()
        try:
            _ensure_identity(db, identity_id)
            limit = _get_limit(db, identity_id, for_update=True)
            count = _alt_count(db, identity_id)
            if count >= limit:
                db.commit()
                logger.info(
                    "alt_limit_reached",
                    extra={"identity_id": identity_id, "limit": limit, "count": count},
                )
                return None

            alt_id = format_alt_id(identity_id, count)
            now = utcnow()
            db.add(IdentityAlternative(
                alt_id=alt_id,
                identity_id=identity_id,
                display_name=None,
                storage=None,
                created_at=now,
                updated_at=now,
            ))
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise AltAllocationConflict(
                    f"Alt id {alt_id!r} is already allocated",
                    data={"alt_id": alt_id},
                ) from exc
        finally:
            db.close()

    logger.info("alt_created", extra={"identity_id": identity_id, "alt_id": alt_id})
    return alt_id


@store_operation(default=False)
def rename_alt(identity_id: str, alt_id: str, new_name: Optional[str]) -> bool:
    """Set or clear (``new_name=None``) an alt's display name."""
    _validate_identity_id(identity_id)
    _validate_alt_id(alt_id)
    _validate_optional_text(new_name, "new_name", MAX_ALT_NAME_LENGTH)

    db = _open_session()
    try:
        updated = set_alt_name(db, identity_id, alt_id, new_name)
        db.commit()
        return updated
    finally:
        db.close()


@store_operation(default=None)
def get_alt_name(identity_id: str, alt_id: str) -> Optional[str]:
    _validate_identity_id(identity_id)
    _validate_alt_id(alt_id)

    db = _open_session()
    try:
        row = (
            db.query(IdentityAlternative.display_name)
            .filter(IdentityAlternative.alt_id == alt_id)
            .filter(IdentityAlternative.identity_id == identity_id)
            .first()
        )
        return row[0] if row else None
    finally:
        db.close()


@store_operation(default=None)
def get_alt_uuid_by_name(identity_id: str, name: str) -> Optional[str]:
    """Resolve an alt id from its display name."""
    _validate_identity_id(identity_id)
    _validate_required_text(name, "name", MAX_ALT_NAME_LENGTH)

    db = _open_session()
    try:
        return _alt_id_by_name(db, identity_id, name)
    finally:
        db.close()


@store_operation(default=list)
def list_alts(identity_id: str) -> list[str]:
    """
    List an identity's alts as human-facing labels, ordered by alt id.

    Each label is the display name when set, otherwise the alt id.
    """
    _validate_identity_id(identity_id)

    db = _open_session()
    try:
        rows = (
            db.query(IdentityAlternative.alt_id, IdentityAlternative.display_name)
            .filter(IdentityAlternative.identity_id == identity_id)
            .order_by(IdentityAlternative.alt_id.asc())
            .all()
        )
        return [name if name else alt_id for alt_id, name in rows]
    finally:
        db.close()


@store_operation(default=None)
def resolve_alt(identity_id: str, label: str) -> Optional[str]:
    """Map a label from list_alts back to an alt id owned by the identity."""
    _validate_identity_id(identity_id)
    _validate_required_text(label, "label", MAX_ALT_NAME_LENGTH)

    db = _open_session()
    try:
        by_name = _alt_id_by_name(db, identity_id, label)
        if by_name is not None:
            return by_name
        if _is_owned_by(db, identity_id, label):
            return label
        return None
    finally:
        db.close()


@store_operation(default=0)
def get_alt_count(identity_id: str) -> int:
    _validate_identity_id(identity_id)

    db = _open_session()
    try:
        return _alt_count(db, identity_id)
    finally:
        db.close()


@store_operation(default=False)
def is_owned_by(identity_id: str, alt_id: str) -> bool:
    _validate_identity_id(identity_id)
    _validate_alt_id(alt_id)

    db = _open_session()
    try:
        return _is_owned_by(db, identity_id, alt_id)
    finally:
        db.close()
