"""
tally.services.event_store — Event Store Write Path
====================================================

Append-only writes for the three event kinds.  Each call inserts exactly
one immutable row stamped with the current UTC instant; nothing here ever
updates or deletes an event.  Storage faults propagate to the caller.

The store records **unconditionally**.  Whether a message should be
recorded at all (tracking disabled, channel not in the tracked set) is a
caller-side decision made with :func:`should_track_message` against the
guild's settings row.

All functions are synchronous — call via ``await run_db(record_message, ...)``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import Engine

from tally.database.engine import get_session
from tally.database.models import (
    CommunitySettings,
    MembershipAction,
    MembershipEvent,
    MessageEvent,
    ReactionEvent,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(ts: datetime) -> datetime:
    """Normalise *ts* to UTC.  Naive values (as read back from SQLite) are UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


# ---------------------------------------------------------------------------
# Ingestion gate (caller-side)
# ---------------------------------------------------------------------------
def should_track_message(settings: CommunitySettings, channel_id: int) -> bool:
    """Return True when a message in *channel_id* should be recorded.

    An empty ``tracked_channel_ids`` list means "all channels".
    """
    if not settings.tracking_enabled:
        return False
    tracked = settings.tracked_channel_ids or []
    return not tracked or channel_id in tracked


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def record_message(
    engine: Engine,
    community_id: int,
    author_id: int,
    channel_id: int,
    content_length: int,
    *,
    occurred_at: datetime | None = None,
) -> None:
    """Append one message event."""
    if content_length < 0:
        raise ValueError(f"content_length must be non-negative, got {content_length}")

    with get_session(engine) as session:
        session.add(MessageEvent(
            community_id=community_id,
            author_id=author_id,
            channel_id=channel_id,
            content_length=content_length,
            occurred_at=as_utc(occurred_at) if occurred_at else utcnow(),
        ))
    logger.debug(
        "Recorded message: community=%s author=%s channel=%s",
        community_id, author_id, channel_id,
    )


def record_reaction(
    engine: Engine,
    community_id: int,
    actor_id: int,
    emoji_label: str,
    *,
    occurred_at: datetime | None = None,
) -> None:
    """Append one reaction-add event."""
    with get_session(engine) as session:
        session.add(ReactionEvent(
            community_id=community_id,
            actor_id=actor_id,
            emoji_label=emoji_label[:100],
            occurred_at=as_utc(occurred_at) if occurred_at else utcnow(),
        ))
    logger.debug(
        "Recorded reaction: community=%s actor=%s emoji=%s",
        community_id, actor_id, emoji_label,
    )


def record_membership(
    engine: Engine,
    community_id: int,
    member_id: int,
    action: MembershipAction | str,
    *,
    occurred_at: datetime | None = None,
) -> None:
    """Append one join/leave event.  *action* must be ``joined`` or ``left``."""
    action = MembershipAction(action)
    with get_session(engine) as session:
        session.add(MembershipEvent(
            community_id=community_id,
            member_id=member_id,
            action=action,
            occurred_at=as_utc(occurred_at) if occurred_at else utcnow(),
        ))
    logger.debug(
        "Recorded membership: community=%s member=%s action=%s",
        community_id, member_id, action,
    )
