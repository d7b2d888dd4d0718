"""
tally.engine.runtime — AnalyticsEngine
=======================================

The one object that owns Tally's long-lived resources: the database
engine, the chart renderer, and the weekly scheduler.  It is built once in
``tally.bot.__main__`` and handed to :class:`~tally.bot.core.TallyBot`;
cogs reach it as ``self.bot.analytics``.  Nothing is stored in module
globals.

The store methods are synchronous thin wrappers — call them via
``run_db`` from async code.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import Engine

from tally.config import TallyConfig
from tally.database.models import CommunitySettings, MembershipAction
from tally.engine.aggregation import (
    Period,
    PeriodSummary,
    PreviousPeriodSummary,
    summarize,
    summarize_previous,
)
from tally.engine.session import SettingsSession, SettingsState
from tally.services import event_store, settings_service
from tally.services.chart_renderer import ChartRenderer
from tally.services.weekly_report import WeeklyReportScheduler

logger = logging.getLogger(__name__)


class AnalyticsEngine:
    """Store handle + renderer + scheduler, passed by reference."""

    def __init__(
        self,
        db: Engine,
        cfg: TallyConfig,
        renderer: ChartRenderer | None = None,
    ) -> None:
        self.db = db
        self.cfg = cfg
        self.renderer = renderer or ChartRenderer.from_config(cfg)
        self.scheduler = WeeklyReportScheduler(
            weekday=cfg.report_weekday,
            hour=cfg.report_hour,
            concurrency=cfg.report_concurrency,
        )
        self.session_ttl = timedelta(minutes=cfg.settings_session_minutes)

    def close(self) -> None:
        self.renderer.close()
        self.db.dispose()
        logger.info("Analytics engine closed.")

    # -------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------
    def ingest_message(self, community_id: int, author_id: int, channel_id: int,
                       content_length: int) -> bool:
        """Record a message if the guild's settings allow it.

        Returns True when the event was stored.
        """
        settings = settings_service.get_settings(self.db, community_id)
        if not event_store.should_track_message(settings, channel_id):
            return False
        event_store.record_message(self.db, community_id, author_id, channel_id, content_length)
        return True

    def ingest_reaction(self, community_id: int, actor_id: int, emoji_label: str) -> None:
        event_store.record_reaction(self.db, community_id, actor_id, emoji_label)

    def ingest_membership(self, community_id: int, member_id: int,
                          action: MembershipAction | str) -> None:
        event_store.record_membership(self.db, community_id, member_id, action)

    # -------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------
    def get_settings(self, community_id: int) -> CommunitySettings:
        return settings_service.get_settings(self.db, community_id)

    def update_settings(self, community_id: int, **fields) -> CommunitySettings:
        return settings_service.update_settings(self.db, community_id, **fields)

    def open_settings_session(self, community_id: int, operator_id: int) -> SettingsSession:
        """Snapshot the guild's settings and start a session for *operator_id*."""
        row = self.get_settings(community_id)
        session = SettingsSession(
            operator_id=operator_id,
            settings=SettingsState.from_row(row),
            writer=self.update_settings,
            ttl=self.session_ttl,
        )
        logger.info(
            "Settings session opened: community=%s operator=%s expires=%s",
            community_id, operator_id, session.expires_at.isoformat(),
        )
        return session

    # -------------------------------------------------------------------
    # Aggregation
    # -------------------------------------------------------------------
    def summarize(self, community_id: int, period: Period | str,
                  *, now: datetime | None = None) -> PeriodSummary:
        return summarize(self.db, community_id, period, now=now)

    def summarize_previous(self, community_id: int, period: Period | str,
                           *, now: datetime | None = None) -> PreviousPeriodSummary:
        return summarize_previous(self.db, community_id, period, now=now)
