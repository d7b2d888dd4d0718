"""
tally.engine.aggregation — Windowed Activity Summaries
=======================================================

Read-only queries over the event log producing the numbers every report
is built from.

Window model::

    start = now - window            (window = 7 days for week, 30 for month)
    current  → start <= occurred_at <= now
    previous → now - 2*window <= occurred_at < now - window

Bucketing (daily / hourly) is done on ``occurred_at`` in UTC.  Both
distributions are *sparse*: a date or hour with zero messages does not
appear, so callers must not assume a contiguous series
(:func:`tally.services.report_service.densify_hours` fills the hourly one).

Rankings sort by count descending; ties go to whichever author/channel
was recorded first (lowest row id).
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from sqlalchemy import Engine, and_, extract, func, select
from sqlalchemy.orm import Session

from tally.constants import TOP_N
from tally.database.engine import get_session
from tally.database.models import MembershipAction, MembershipEvent, MessageEvent
from tally.services.event_store import as_utc, utcnow

logger = logging.getLogger(__name__)

__all__ = [
    "Period",
    "PeriodSummary",
    "PreviousPeriodSummary",
    "change_percent",
    "summarize",
    "summarize_previous",
]


# ---------------------------------------------------------------------------
# Period — the enumerated window lengths
# ---------------------------------------------------------------------------
class Period(enum.StrEnum):
    """Trailing aggregation windows."""
    WEEK = "week"
    MONTH = "month"

    @property
    def days(self) -> int:
        return _PERIOD_DAYS[self]

    @property
    def window(self) -> timedelta:
        return timedelta(days=self.days)

    @property
    def adjective(self) -> str:
        """``Weekly`` / ``Monthly`` — used in report titles."""
        return "Weekly" if self is Period.WEEK else "Monthly"


_PERIOD_DAYS: dict[Period, int] = {
    Period.WEEK: 7,
    Period.MONTH: 30,
}


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class PeriodSummary:
    """Everything a report needs about one community over one window."""

    period: Period
    start: datetime
    end: datetime
    total_messages: int = 0
    new_members: int = 0
    left_members: int = 0
    top_users: list[tuple[int, int]] = field(default_factory=list)
    top_channels: list[tuple[int, int]] = field(default_factory=list)
    daily_activity: list[tuple[date, int]] = field(default_factory=list)
    hourly_activity: list[tuple[int, int]] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PreviousPeriodSummary:
    """Message total for the window immediately before the current one."""

    period: Period
    start: datetime
    end: datetime
    total_messages: int = 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def change_percent(current: int, previous: int) -> float:
    """Period-over-period change, rounded to one decimal.

    Defined as exactly ``0.0`` when *previous* is zero (no "infinite"
    growth from an empty week).
    """
    if previous <= 0:
        return 0.0
    return round((current - previous) / previous * 100, 1)


def _resolve_now(now: datetime | None) -> datetime:
    return as_utc(now) if now is not None else utcnow()


def _as_date(value) -> date:
    # SQLite's DATE() returns 'YYYY-MM-DD' text
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _in_window(model, start: datetime, end: datetime, *, include_end: bool = True):
    """``start <= occurred_at <= end`` (or ``< end`` when *include_end* is False)."""
    upper = model.occurred_at <= end if include_end else model.occurred_at < end
    return and_(model.occurred_at >= start, upper)


def _count_messages(session: Session, community_id: int, start: datetime,
                    end: datetime, *, include_end: bool = True) -> int:
    return session.scalar(
        select(func.count(MessageEvent.id)).where(
            MessageEvent.community_id == community_id,
            _in_window(MessageEvent, start, end, include_end=include_end),
        )
    ) or 0


def _count_memberships(session: Session, community_id: int,
                       action: MembershipAction, start: datetime, end: datetime) -> int:
    return session.scalar(
        select(func.count(MembershipEvent.id)).where(
            MembershipEvent.community_id == community_id,
            MembershipEvent.action == action,
            _in_window(MembershipEvent, start, end),
        )
    ) or 0


def _top_by(session: Session, column, community_id: int,
            start: datetime, end: datetime) -> list[tuple[int, int]]:
    count = func.count(MessageEvent.id)
    rows = session.execute(
        select(column, count)
        .where(
            MessageEvent.community_id == community_id,
            _in_window(MessageEvent, start, end),
        )
        .group_by(column)
        .order_by(count.desc(), func.min(MessageEvent.id))
        .limit(TOP_N)
    ).all()
    return [(int(key), int(n)) for key, n in rows]


def _daily(session: Session, community_id: int, start: datetime,
           end: datetime) -> list[tuple[date, int]]:
    day = func.date(MessageEvent.occurred_at)
    rows = session.execute(
        select(day, func.count(MessageEvent.id))
        .where(
            MessageEvent.community_id == community_id,
            _in_window(MessageEvent, start, end),
        )
        .group_by(day)
        .order_by(day)
    ).all()
    return [(_as_date(d), int(n)) for d, n in rows]


def _hourly(session: Session, community_id: int, start: datetime,
            end: datetime) -> list[tuple[int, int]]:
    hour = extract("hour", MessageEvent.occurred_at)
    rows = session.execute(
        select(hour, func.count(MessageEvent.id))
        .where(
            MessageEvent.community_id == community_id,
            _in_window(MessageEvent, start, end),
        )
        .group_by(hour)
        .order_by(hour)
    ).all()
    return [(int(h), int(n)) for h, n in rows]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def summarize(
    engine: Engine,
    community_id: int,
    period: Period | str,
    *,
    now: datetime | None = None,
) -> PeriodSummary:
    """Build the :class:`PeriodSummary` for *community_id* over *period*.

    Every query is bounded by the same ``[start, end]`` and runs in one
    read transaction, so the totals, rankings and buckets always agree
    with each other.  Events written while the summary is being built
    show up in the next one.  A community with no events yields zeros and
    empty lists.
    """
    period = Period(period)
    end = _resolve_now(now)
    start = end - period.window

    with get_session(engine) as session:
        summary = PeriodSummary(
            period=period,
            start=start,
            end=end,
            total_messages=_count_messages(session, community_id, start, end),
            new_members=_count_memberships(
                session, community_id, MembershipAction.JOINED, start, end
            ),
            left_members=_count_memberships(
                session, community_id, MembershipAction.LEFT, start, end
            ),
            top_users=_top_by(session, MessageEvent.author_id, community_id, start, end),
            top_channels=_top_by(session, MessageEvent.channel_id, community_id, start, end),
            daily_activity=_daily(session, community_id, start, end),
            hourly_activity=_hourly(session, community_id, start, end),
        )

    logger.debug(
        "Summarized community %s over %s: %d messages, %d users ranked",
        community_id, period, summary.total_messages, len(summary.top_users),
    )
    return summary


def summarize_previous(
    engine: Engine,
    community_id: int,
    period: Period | str,
    *,
    now: datetime | None = None,
) -> PreviousPeriodSummary:
    """Message total over ``[now - 2*window, now - window)``."""
    period = Period(period)
    end = _resolve_now(now) - period.window
    start = end - period.window

    with get_session(engine) as session:
        total = _count_messages(session, community_id, start, end, include_end=False)

    return PreviousPeriodSummary(period=period, start=start, end=end, total_messages=total)

