"""
tally.services.settings_service — Per-Guild Settings Store
===========================================================

Typed read/write access to the ``community_settings`` table.

``get_settings`` never does read-then-insert: it issues a single
``INSERT … ON CONFLICT DO NOTHING`` and then reads the row back, so two
gateway events racing for a brand-new guild still produce exactly one
row (first writer wins, the loser reads the winner's row).

Returned rows are expunged so callers can read them outside the session.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Engine, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from tally.database.engine import get_session
from tally.database.models import CommunitySettings

logger = logging.getLogger(__name__)

# Fields an operator (or the settings session) may change.
EDITABLE_FIELDS: frozenset[str] = frozenset({
    "tracking_enabled",
    "report_channel_id",
    "tracked_channel_ids",
    "notifications_enabled",
})


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def _ensure_row(session: Session, community_id: int) -> CommunitySettings:
    session.execute(
        sqlite_insert(CommunitySettings)
        .values(
            community_id=community_id,
            tracking_enabled=True,
            report_channel_id=None,
            tracked_channel_ids=[],
            notifications_enabled=True,
        )
        .on_conflict_do_nothing(index_elements=["community_id"])
    )
    return session.execute(
        select(CommunitySettings).where(
            CommunitySettings.community_id == community_id
        )
    ).scalar_one()


def get_settings(engine: Engine, community_id: int) -> CommunitySettings:
    """Return the settings row for *community_id*, creating it with defaults
    on first access."""
    with get_session(engine) as session:
        row = _ensure_row(session, community_id)
        session.flush()
        session.expunge(row)
    return row


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def update_settings(engine: Engine, community_id: int, **fields: Any) -> CommunitySettings:
    """Apply a partial update; unspecified fields keep their prior value.

    Only names in :data:`EDITABLE_FIELDS` are accepted.  Values are not
    range-checked — an unknown channel ID is stored as-is and simply shows
    up as "no data" downstream.

    Raises
    ------
    ValueError
        If *fields* names something that isn't an editable setting.
    """
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown settings field(s): {', '.join(sorted(unknown))}")

    if "tracked_channel_ids" in fields:
        fields["tracked_channel_ids"] = [int(c) for c in fields["tracked_channel_ids"] or []]

    with get_session(engine) as session:
        row = _ensure_row(session, community_id)
        for key, value in fields.items():
            setattr(row, key, value)
        session.flush()
        session.refresh(row)
        session.expunge(row)

    logger.info(
        "Settings updated for community %s: %s",
        community_id, ", ".join(f"{k}={v!r}" for k, v in fields.items()),
    )
    return row
