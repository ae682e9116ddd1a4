"""
Identity store service facade.

Re-exports every public store operation so hosts can import one module.
"""

from identitygate.services.identities import (
    ensure_identity,
    ensure_exist,
    get_limit,
    add_limit,
)
from identitygate.services.alternatives import (
    create_alt,
    rename_alt,
    set_alt_name,
    get_alt_name,
    get_alt_uuid_by_name,
    list_alts,
    resolve_alt,
    get_alt_count,
    is_owned_by,
)
from identitygate.services.sessions import (
    switch_active_alt,
    switch_active_alt_by_name,
    get_active_alt,
)
from identitygate.services.permissions import (
    grant_permission,
    has_permission,
    grant_active_permission,
    has_active_permission,
)
from identitygate.services.snapshots import (
    SnapshotLoad,
    save_snapshot,
    fetch_snapshot,
    load_snapshot,
)
from identitygate.services.shared import identity_locks

__all__ = [
    "ensure_identity",
    "ensure_exist",
    "get_limit",
    "add_limit",
    "create_alt",
    "rename_alt",
    "set_alt_name",
    "get_alt_name",
    "get_alt_uuid_by_name",
    "list_alts",
    "resolve_alt",
    "get_alt_count",
    "is_owned_by",
    "switch_active_alt",
    "switch_active_alt_by_name",
    "get_active_alt",
    "grant_permission",
    "has_permission",
    "grant_active_permission",
    "has_active_permission",
    "SnapshotLoad",
    "save_snapshot",
    "fetch_snapshot",
    "load_snapshot",
    "identity_locks",
]
