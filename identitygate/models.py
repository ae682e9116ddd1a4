"""
Identity Store Database Models
SQLite / PostgreSQL / MySQL schema
"""

from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, LargeBinary, DateTime, ForeignKey,
    ForeignKeyConstraint, CheckConstraint, Index, UniqueConstraint, text
)
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import relationship, declarative_base

import identitygate.config as config

DEFAULT_ALT_LIMIT = config.DEFAULT_ALT_LIMIT
MAX_IDENTITY_ID_LENGTH = config.MAX_IDENTITY_ID_LENGTH
MAX_ALT_NAME_LENGTH = config.MAX_ALT_NAME_LENGTH
MAX_PERMISSION_NAME_LENGTH = config.MAX_PERMISSION_NAME_LENGTH

ALT_ID_LENGTH = 64
PRIMARY_ALT_INDEX = 0

STORAGE_TYPE = LargeBinary().with_variant(mysql.LONGBLOB(), "mysql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_alt_id(identity_id: str, index: int) -> str:
    """Alt ids are derived as ``{identity_id}-{index}``."""
    return f"{identity_id}-{index}"


def primary_alt_id(identity_id: str) -> str:
    return format_alt_id(identity_id, PRIMARY_ALT_INDEX)


Base = declarative_base()

# =============================================================================
# Identity (one per end user)
# =============================================================================

class Identity(Base):
    __tablename__ = "identity"

    id = Column(String(MAX_IDENTITY_ID_LENGTH), primary_key=True)
    alt_limit = Column(
        Integer,
        nullable=False,
        default=DEFAULT_ALT_LIMIT,
        server_default=text(str(DEFAULT_ALT_LIMIT)),
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    alternatives = relationship(
        "IdentityAlternative",
        back_populates="identity",
        passive_deletes=True,
    )
    session = relationship(
        "IdentitySession",
        back_populates="identity",
        uselist=False,
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("alt_limit >= 0", name="ck_identity_alt_limit_non_negative"),
    )


# =============================================================================
# Alternative profiles
# =============================================================================

class IdentityAlternative(Base):
    __tablename__ = "identity_alternative"

    alt_id = Column(String(ALT_ID_LENGTH), primary_key=True)  # "{identity_id}-{index}"
    identity_id = Column(
        String(MAX_IDENTITY_ID_LENGTH),
        ForeignKey("identity.id", ondelete="CASCADE"),
        nullable=False,
    )
    display_name = Column(String(MAX_ALT_NAME_LENGTH))
    storage = Column(STORAGE_TYPE)  # opaque snapshot payload
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    identity = relationship("Identity", back_populates="alternatives")
    permissions = relationship(
        "IdentityPermission",
        back_populates="alternative",
        passive_deletes=True,
    )

    __table_args__ = (
        # NULL names never collide, so unnamed alts are unrestricted
        UniqueConstraint("identity_id", "display_name", name="uq_alt_identity_name"),
        # target of the session composite FK
        UniqueConstraint("identity_id", "alt_id", name="uq_alt_identity_alt"),
        Index("ix_alt_identity", "identity_id"),
        Index("ix_alt_display_name", "display_name"),
    )


# =============================================================================
# Session (active alt pointer, one row per identity)
# =============================================================================

class IdentitySession(Base):
    __tablename__ = "identity_session"

    identity_id = Column(
        String(MAX_IDENTITY_ID_LENGTH),
        ForeignKey("identity.id", ondelete="CASCADE"),
        primary_key=True,
    )
    active_alt_id = Column(
        String(ALT_ID_LENGTH),
        ForeignKey("identity_alternative.alt_id", ondelete="SET NULL"),
    )

    identity = relationship("Identity", back_populates="session")

    __table_args__ = (
        ForeignKeyConstraint(
            ["identity_id", "active_alt_id"],
            ["identity_alternative.identity_id", "identity_alternative.alt_id"],
            name="fk_session_alt_matches_identity",
        ).ddl_if(dialect=("sqlite", "postgresql")),
    )


# =============================================================================
# Permissions (scoped to an alt)
# =============================================================================

class IdentityPermission(Base):
    __tablename__ = "identity_permission"

    alt_id = Column(
        String(ALT_ID_LENGTH),
        ForeignKey("identity_alternative.alt_id", ondelete="CASCADE"),
        primary_key=True,
    )
    name = Column(String(MAX_PERMISSION_NAME_LENGTH), primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    alternative = relationship("IdentityAlternative", back_populates="permissions")

    __table_args__ = (
        Index("ix_permission_name", "name"),
    )


IDENTITY_TABLES = (
    Identity.__table__,
    IdentityAlternative.__table__,
    IdentitySession.__table__,
    IdentityPermission.__table__,
)
