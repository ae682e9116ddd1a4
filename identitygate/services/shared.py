"""
Shared helpers for identity store services.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError

import identitygate.config as config
from identitygate.db import DB
from identitygate.errors import StoreUnavailable, ValidationIssue
from identitygate.models import ALT_ID_LENGTH
from identitygate.validators import (
    validate_required_text as _validate_required_text,
    validate_optional_text as _validate_optional_text,
    validate_non_negative_int as _validate_non_negative_int,
    validate_payload as _validate_payload,
)

# =============================================================================
# Configuration
# =============================================================================

logger = config.logger

DEFAULT_ALT_LIMIT = config.DEFAULT_ALT_LIMIT
MAX_IDENTITY_ID_LENGTH = config.MAX_IDENTITY_ID_LENGTH
MAX_ALT_NAME_LENGTH = config.MAX_ALT_NAME_LENGTH
MAX_PERMISSION_NAME_LENGTH = config.MAX_PERMISSION_NAME_LENGTH


# =============================================================================
# Per-identity critical sections
# =============================================================================

class IdentityLocks:
    """
    One lock per identity id, so check-then-insert runs single-writer.

    Entries are reference counted and dropped once the last holder
    releases, so the registry only holds identities currently in use.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._holders: dict[str, int] = {}

    def _acquire_entry(self, identity_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(identity_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[identity_id] = lock
            self._holders[identity_id] = self._holders.get(identity_id, 0) + 1
            return lock

    def _release_entry(self, identity_id: str) -> None:
        with self._guard:
            remaining = self._holders.get(identity_id, 0) - 1
            if remaining > 0:
                self._holders[identity_id] = remaining
            else:
                self._holders.pop(identity_id, None)
                self._locks.pop(identity_id, None)

    @contextmanager
    def hold(self, identity_id: str) -> Iterator[None]:
        lock = self._acquire_entry(identity_id)
        try:
            with lock:
                yield
        finally:
            self._release_entry(identity_id)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def clear(self) -> None:
        with self._guard:
            self._locks.clear()
            self._holders.clear()


identity_locks = IdentityLocks()


# =============================================================================
# Sessions and input checks
# =============================================================================

def _open_session():
    if DB.SessionLocal is None:
        raise StoreUnavailable("database not initialized")
    return DB.SessionLocal()


def _validate_identity_id(identity_id: str) -> None:
    _validate_required_text(identity_id, "identity_id", MAX_IDENTITY_ID_LENGTH)


def _validate_alt_id(alt_id: str) -> None:
    _validate_required_text(alt_id, "alt_id", ALT_ID_LENGTH)


# =============================================================================
# Error handling
# =============================================================================

def _log_validation_issue(operation: str, exc: ValidationIssue, warn: bool = False) -> None:
    payload = {
        "operation": operation,
        "field": exc.field,
        "error_type": exc.error_type,
        "detail": str(exc),
    }
    if warn:
        logger.warning("store_validation_error", extra=payload)
    else:
        logger.info("store_validation_error", extra=payload)


def _sentinel(default: Any) -> Any:
    return default() if callable(default) else default


def store_operation(default: Any = None) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Turn expected failures into the operation's sentinel return value.

    ``default`` is the sentinel itself, or a factory for mutable ones
    (``list``). Validation and constraint failures, a missing connection
    and backend errors are logged and never propagate.
    """
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except ValidationIssue as exc:
                _log_validation_issue(fn.__name__, exc, warn=exc.error_type == "conflict")
                return _sentinel(default)
            except StoreUnavailable as exc:
                logger.warning(
                    "store_unavailable",
                    extra={"operation": fn.__name__, "detail": str(exc)},
                )
                return _sentinel(default)
            except SQLAlchemyError as exc:
                logger.warning(
                    "store_backend_error",
                    extra={"operation": fn.__name__, "detail": str(exc)},
                    exc_info=True,
                )
                return _sentinel(default)
        return wrapper
    return decorator


def require_owned(owned: bool, identity_id: str, alt_id: Optional[str]) -> None:
    if not owned:
        raise ValidationIssue(
            f"Alt {alt_id!r} does not belong to identity {identity_id!r}",
            field="alt_id",
            error_type="forbidden",
        )
