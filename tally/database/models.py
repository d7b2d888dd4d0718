"""
tally.database.models — SQLAlchemy 2.0 Data Models
===================================================

Tables:
- messages           — Append-only message events (no content, only length)
- reactions          — Append-only reaction-add events
- memberships        — Append-only join/leave events
- community_settings — One mutable configuration row per guild

Every event table carries a ``(community_id, occurred_at)`` index; all
windowed scans in :mod:`tally.engine.aggregation` go through it.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Tally ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class MembershipAction(enum.StrEnum):
    """Direction of a membership change."""
    JOINED = "joined"
    LEFT = "left"


# ---------------------------------------------------------------------------
# MessageEvent — one row per tracked message
# ---------------------------------------------------------------------------
class MessageEvent(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    community_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    author_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    channel_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    content_length: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_messages_community_time", "community_id", "occurred_at"),
        Index("ix_messages_author_time", "author_id", "occurred_at"),
        Index("ix_messages_channel_time", "channel_id", "occurred_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<MessageEvent id={self.id} community={self.community_id} "
            f"author={self.author_id} channel={self.channel_id}>"
        )


# ---------------------------------------------------------------------------
# ReactionEvent — one row per reaction added
# ---------------------------------------------------------------------------
class ReactionEvent(Base):
    __tablename__ = "reactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    community_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    emoji_label: Mapped[str] = mapped_column(String(100), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_reactions_community_time", "community_id", "occurred_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<ReactionEvent id={self.id} community={self.community_id} "
            f"actor={self.actor_id} emoji={self.emoji_label!r}>"
        )


# ---------------------------------------------------------------------------
# MembershipEvent — joins and leaves
# ---------------------------------------------------------------------------
class MembershipEvent(Base):
    __tablename__ = "memberships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    community_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    member_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    action: Mapped[MembershipAction] = mapped_column(
        Enum(
            MembershipAction,
            name="membership_action",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_memberships_community_time", "community_id", "occurred_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<MembershipEvent id={self.id} community={self.community_id} "
            f"member={self.member_id} action={self.action}>"
        )


# ---------------------------------------------------------------------------
# CommunitySettings — per-guild configuration, created lazily
# ---------------------------------------------------------------------------
class CommunitySettings(Base):
    """Mutable per-guild configuration.

    Created on first reference with defaults (see
    :func:`tally.services.settings_service.get_settings`), edited in place
    through ``/settings``, never deleted.  An empty ``tracked_channel_ids``
    list means every channel is tracked.
    """
    __tablename__ = "community_settings"

    community_id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=False
    )
    tracking_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="1"
    )
    report_channel_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    tracked_channel_ids: Mapped[list[int]] = mapped_column(
        JSON, nullable=False, default=list, server_default="[]"
    )
    notifications_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="1"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<CommunitySettings community={self.community_id} "
            f"tracking={self.tracking_enabled} notify={self.notifications_enabled}>"
        )
