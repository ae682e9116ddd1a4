"""
Permission services (grants scoped to a single alt).
"""

from __future__ import annotations

from identitygate.dialects import adapter_for
from identitygate.errors import ValidationIssue
from identitygate.models import IdentityPermission, primary_alt_id, utcnow
from identitygate.services.alternatives import _is_owned_by
from identitygate.services.sessions import _get_active_alt
from identitygate.services.shared import (
    MAX_PERMISSION_NAME_LENGTH,
    _open_session,
    _validate_alt_id,
    _validate_identity_id,
    _validate_required_text,
    require_owned,
    store_operation,
)


def _permission_exists(db, alt_id: str, name: str) -> bool:
    row = (
        db.query(IdentityPermission.alt_id)
        .filter(IdentityPermission.alt_id == alt_id)
        .filter(IdentityPermission.name == name)
        .first()
    )
    return row is not None


def _grant(db, identity_id: str, alt_id: str, name: str) -> bool:
    require_owned(_is_owned_by(db, identity_id, alt_id), identity_id, alt_id)
    now = utcnow()
    adapter_for(db).upsert(
        db,
        IdentityPermission,
        {"alt_id": alt_id, "name": name, "created_at": now, "updated_at": now},
        key=("alt_id", "name"),
        update_columns=("updated_at",),
    )
    db.commit()
    return _permission_exists(db, alt_id, name)


@store_operation(default=False)
def grant_permission(identity_id: str, alt_id: str, name: str) -> bool:
    """
    Grant a permission to an alt, or refresh ``updated_at`` if already granted.

    Returns True when the grant is present afterwards; False when the alt
    is not owned by the identity or the input is invalid.
    """
    _validate_identity_id(identity_id)
    _validate_alt_id(alt_id)
    _validate_required_text(name, "name", MAX_PERMISSION_NAME_LENGTH)

    db = _open_session()
    try:
        return _grant(db, identity_id, alt_id, name)
    finally:
        db.close()


@store_operation(default=False)
def has_permission(identity_id: str, alt_id: str, name: str) -> bool:
    _validate_identity_id(identity_id)
    _validate_alt_id(alt_id)
    _validate_required_text(name, "name", MAX_PERMISSION_NAME_LENGTH)

    db = _open_session()
    try:
        if not _is_owned_by(db, identity_id, alt_id):
            return False
        return _permission_exists(db, alt_id, name)
    finally:
        db.close()


@store_operation(default=False)
def grant_active_permission(identity_id: str, name: str) -> bool:
    """Grant a permission to the identity's active alt."""
    _validate_identity_id(identity_id)
    _validate_required_text(name, "name", MAX_PERMISSION_NAME_LENGTH)

    db = _open_session()
    try:
        alt_id = _get_active_alt(db, identity_id)
        if alt_id is None:
            raise ValidationIssue(
                "Identity has no active alt",
                field="active_alt_id",
                error_type="not_found",
            )
        return _grant(db, identity_id, alt_id, name)
    finally:
        db.close()


@store_operation(default=False)
def has_active_permission(identity_id: str, name: str) -> bool:
    """Check a permission on the active alt, or the primary alt when none is active."""
    _validate_identity_id(identity_id)
    _validate_required_text(name, "name", MAX_PERMISSION_NAME_LENGTH)

    db = _open_session()
    try:
        alt_id = _get_active_alt(db, identity_id) or primary_alt_id(identity_id)
        if not _is_owned_by(db, identity_id, alt_id):
            return False
        return _permission_exists(db, alt_id, name)
    finally:
        db.close()
