"""Database models for users, groups, memberships and auth state."""

import uuid

import sqlalchemy as sa
from sqlalchemy import Column, String, Text, Boolean, ForeignKey, Index
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

# Assigned at random when an account is created; users may pick another later.
PROFILE_COLORS = (
    "terracotta",
    "coral",
    "amber",
    "rust",
    "clay",
    "copper",
    "sienna",
    "sage",
    "olive",
    "forest",
    "moss",
    "jade",
    "slate",
    "ocean",
    "teal",
    "indigo",
    "plum",
    "wine",
    "mauve",
    "rose",
)

TOKEN_TYPE_LOGIN = "login"
TOKEN_TYPE_INVITE = "invite"


class User(Base):
    """A person, identified by email, who may belong to many groups."""

    __tablename__ = "users"

    id = Column(sa.Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(100), nullable=False)
    profile_color = Column(String(32), nullable=False, default="terracotta")
    created_at = Column(sa.DateTime(timezone=True), nullable=False, server_default=func.now())
    last_seen_at = Column(sa.DateTime(timezone=True), nullable=True)

    memberships = relationship("Membership", back_populates="user")


class Group(Base):
    """A tenant. The owner is fixed at creation and is not a membership role."""

    __tablename__ = "groups"

    id = Column(sa.Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    owner_id = Column(sa.Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(sa.DateTime(timezone=True), nullable=False, server_default=func.now())

    memberships = relationship("Membership", back_populates="group")


class Membership(Base):
    """A user's role inside one group."""

    __tablename__ = "memberships"

    user_id = Column(sa.Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    group_id = Column(sa.Uuid(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    role = Column(String(20), nullable=False)  # admin | member
    comments_enabled = Column(Boolean, nullable=False, default=True, server_default=sa.true())
    joined_at = Column(sa.DateTime(timezone=True), nullable=False, server_default=func.now())

    user = relationship("User", back_populates="memberships")
    group = relationship("Group", back_populates="memberships")

    __table_args__ = (
        Index("idx_memberships_group_role", "group_id", "role"),
    )


class MagicLinkToken(Base):
    """Single-use sign-in or invite link."""

    __tablename__ = "magic_link_tokens"

    token = Column(String(64), primary_key=True)
    group_id = Column(sa.Uuid(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    email = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False)           # login | invite
    invite_role = Column(String(20), nullable=True)     # admin | member, invite only
    invite_name = Column(String(100), nullable=True)
    created_at = Column(sa.DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at = Column(sa.DateTime(timezone=True), nullable=False)
    used_at = Column(sa.DateTime(timezone=True), nullable=True)  # NULL = unconsumed

    __table_args__ = (
        Index("idx_magic_link_tokens_email", "email"),
        Index("idx_magic_link_tokens_expires_at", "expires_at"),
    )


class RefreshSession(Base):
    """Server-side record of one refresh credential.

    Only a SHA-256 digest of the credential is stored. Rotation stamps
    ``rotated_at`` and points ``replaced_by_id`` at the successor row.
    """

    __tablename__ = "refresh_sessions"

    id = Column(sa.Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(sa.Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    group_id = Column(sa.Uuid(as_uuid=True), nullable=True)  # NULL while group selection is pending
    token_hash = Column(String(64), nullable=False, unique=True)
    created_at = Column(sa.DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at = Column(sa.DateTime(timezone=True), nullable=False)
    rotated_at = Column(sa.DateTime(timezone=True), nullable=True)
    revoked_at = Column(sa.DateTime(timezone=True), nullable=True)
    replaced_by_id = Column(sa.Uuid(as_uuid=True), nullable=True)

    __table_args__ = (
        Index("idx_refresh_sessions_user", "user_id"),
    )


class Photo(Base):
    """Group-scoped photo metadata; the image bytes live in external storage."""

    __tablename__ = "photos"

    id = Column(sa.Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    group_id = Column(sa.Uuid(as_uuid=True), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    uploaded_by = Column(sa.Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    caption = Column(Text, nullable=True)
    storage_key = Column(String(1024), nullable=False)
    thumbnail_key = Column(String(1024), nullable=True)
    uploaded_at = Column(sa.DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_photos_group_uploaded_at", "group_id", "uploaded_at"),
    )


class ActivityEvent(Base):
    """Audit row for sign-in, session and group administration events."""

    __tablename__ = "activity_events"

    id = Column(sa.Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    group_id = Column(sa.Uuid(as_uuid=True), nullable=True)
    actor_user_id = Column(sa.Uuid(as_uuid=True), nullable=True)
    event_type = Column(String(120), nullable=False)
    request_path = Column(String(255), nullable=True)
    client_ip = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    details = Column(sa.JSON, nullable=False, default=dict)
    created_at = Column(sa.DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_activity_events_event_type_created_at", "event_type", "created_at"),
        Index("idx_activity_events_group_created_at", "group_id", "created_at"),
    )
