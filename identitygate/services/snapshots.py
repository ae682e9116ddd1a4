"""
Inventory snapshot services.

Snapshots are opaque byte payloads stored on the identity's active alt.
The store never looks inside them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from identitygate.errors import ValidationIssue
from identitygate.models import IdentityAlternative, utcnow
from identitygate.services.sessions import _get_active_alt
from identitygate.services.shared import (
    _open_session,
    _validate_identity_id,
    _validate_payload,
    logger,
    store_operation,
)

SNAPSHOT_FOUND = "found"
SNAPSHOT_EMPTY = "empty"
SNAPSHOT_NO_ACTIVE_ALT = "no_active_alt"
SNAPSHOT_ERROR = "error"


@dataclass(frozen=True)
class SnapshotLoad:
    status: str
    alt_id: Optional[str] = None
    payload: Optional[bytes] = None

    @property
    def ok(self) -> bool:
        return self.status != SNAPSHOT_ERROR

    @staticmethod
    def failed() -> "SnapshotLoad":
        return SnapshotLoad(status=SNAPSHOT_ERROR)


@store_operation(default=False)
def save_snapshot(identity_id: str, payload: bytes) -> bool:
    """Overwrite the active alt's snapshot with ``payload``."""
    _validate_identity_id(identity_id)
    _validate_payload(payload)

    db = _open_session()
    try:
        alt_id = _get_active_alt(db, identity_id)
        if alt_id is None:
            raise ValidationIssue(
                "Identity has no active alt",
                field="active_alt_id",
                error_type="not_found",
            )
        updated = (
            db.query(IdentityAlternative)
            .filter(IdentityAlternative.alt_id == alt_id)
            .filter(IdentityAlternative.identity_id == identity_id)
            .update(
                {
                    IdentityAlternative.storage: bytes(payload),
                    IdentityAlternative.updated_at: utcnow(),
                },
                synchronize_session=False,
            )
        )
        db.commit()
    finally:
        db.close()

    logger.info(
        "snapshot_saved",
        extra={"identity_id": identity_id, "alt_id": alt_id, "size_bytes": len(payload)},
    )
    return updated > 0


@store_operation(default=SnapshotLoad.failed)
def fetch_snapshot(identity_id: str) -> SnapshotLoad:
    """
    Load the active alt's snapshot with a status.

    ``empty`` (never saved) and ``no_active_alt`` are normal outcomes;
    only ``error`` signals a store failure.
    """
    _validate_identity_id(identity_id)

    db = _open_session()
    try:
        alt_id = _get_active_alt(db, identity_id)
        if alt_id is None:
            return SnapshotLoad(status=SNAPSHOT_NO_ACTIVE_ALT)
        row = (
            db.query(IdentityAlternative.storage)
            .filter(IdentityAlternative.alt_id == alt_id)
            .filter(IdentityAlternative.identity_id == identity_id)
            .first()
        )
    finally:
        db.close()

    if row is None or row[0] is None:
        return SnapshotLoad(status=SNAPSHOT_EMPTY, alt_id=alt_id)
    return SnapshotLoad(status=SNAPSHOT_FOUND, alt_id=alt_id, payload=bytes(row[0]))


def load_snapshot(identity_id: str) -> Optional[bytes]:
    """Return the active alt's snapshot bytes, or None when absent."""
    return fetch_snapshot(identity_id).payload
