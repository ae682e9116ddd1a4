"""
Session services.

The session row is the single active-alt pointer per identity and the
ground truth for "the current alt" in every other store.
"""

from __future__ import annotations

from typing import Optional

from identitygate.dialects import adapter_for
from identitygate.errors import ValidationIssue
from identitygate.models import IdentitySession
from identitygate.services.alternatives import _alt_id_by_name, _is_owned_by
from identitygate.services.shared import (
    MAX_ALT_NAME_LENGTH,
    _open_session,
    _validate_alt_id,
    _validate_identity_id,
    _validate_required_text,
    logger,
    require_owned,
    store_operation,
)


def _get_active_alt(db, identity_id: str) -> Optional[str]:
    row = (
        db.query(IdentitySession.active_alt_id)
        .filter(IdentitySession.identity_id == identity_id)
        .first()
    )
    return row[0] if row else None


def _switch_active_alt(db, identity_id: str, alt_id: str) -> None:
    # Ownership is re-checked here, never assumed from an earlier call
    require_owned(_is_owned_by(db, identity_id, alt_id), identity_id, alt_id)
    adapter_for(db).upsert(
        db,
        IdentitySession,
        {"identity_id": identity_id, "active_alt_id": alt_id},
        key=("identity_id",),
        update_columns=("active_alt_id",),
    )


@store_operation(default=False)
def switch_active_alt(identity_id: str, alt_id: str) -> bool:
    """Point the identity's session at one of its own alts."""
    _validate_identity_id(identity_id)
    _validate_alt_id(alt_id)

    db = _open_session()
    try:
        _switch_active_alt(db, identity_id, alt_id)
        db.commit()
    finally:
        db.close()

    logger.info("active_alt_switched", extra={"identity_id": identity_id, "alt_id": alt_id})
    return True


@store_operation(default=False)
def switch_active_alt_by_name(identity_id: str, name: str) -> bool:
    _validate_identity_id(identity_id)
    _validate_required_text(name, "name", MAX_ALT_NAME_LENGTH)

    db = _open_session()
    try:
        alt_id = _alt_id_by_name(db, identity_id, name)
        if alt_id is None:
            raise ValidationIssue(
                f"No alt named {name!r}",
                field="name",
                error_type="not_found",
            )
        _switch_active_alt(db, identity_id, alt_id)
        db.commit()
    finally:
        db.close()

    logger.info("active_alt_switched", extra={"identity_id": identity_id, "alt_id": alt_id})
    return True


@store_operation(default=None)
def get_active_alt(identity_id: str) -> Optional[str]:
    """Return the active alt id, or None when there is no session or pointer."""
    _validate_identity_id(identity_id)

    db = _open_session()
    try:
        return _get_active_alt(db, identity_id)
    finally:
        db.close()
