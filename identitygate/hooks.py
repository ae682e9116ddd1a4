"""
Host lifecycle adapters.

Thin in-process helpers a host server calls from its own join, leave and
alt-switch handlers. Running them off a latency-sensitive thread is the
host's concern.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import identitygate.config as config
from identitygate.services.alternatives import resolve_alt
from identitygate.services.identities import ensure_exist
from identitygate.services.sessions import switch_active_alt
from identitygate.services.snapshots import SnapshotLoad, fetch_snapshot, save_snapshot

logger = config.logger


@dataclass(frozen=True)
class AltSwitch:
    switched: bool
    alt_id: Optional[str] = None
    saved_previous: bool = False
    snapshot: Optional[SnapshotLoad] = None


def on_identity_join(identity_id: str) -> SnapshotLoad:
    """Bootstrap the identity, then load the active alt's snapshot."""
    if not ensure_exist(identity_id):
        logger.warning("identity_join_failed", extra={"identity_id": identity_id})
        return SnapshotLoad.failed()
    return fetch_snapshot(identity_id)


def on_identity_leave(identity_id: str, payload: bytes) -> bool:
    """Persist the outgoing payload onto the active alt."""
    return save_snapshot(identity_id, payload)


def switch_alt_with_snapshot(
    identity_id: str,
    label: str,
    current_payload: Optional[bytes] = None,
) -> AltSwitch:
    """
    Switch to the alt named or identified by ``label``.

    The current payload is saved onto the outgoing alt first, then the
    incoming alt's snapshot is returned. Nothing is saved when the label
    does not resolve to one of the identity's alts.
    """
    alt_id = resolve_alt(identity_id, label)
    if alt_id is None:
        return AltSwitch(switched=False)

    saved = False
    if current_payload is not None:
        saved = save_snapshot(identity_id, current_payload)

    if not switch_active_alt(identity_id, alt_id):
        return AltSwitch(switched=False, alt_id=alt_id, saved_previous=saved)

    return AltSwitch(
        switched=True,
        alt_id=alt_id,
        saved_previous=saved,
        snapshot=fetch_snapshot(identity_id),
    )
