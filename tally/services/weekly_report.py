"""
tally.services.weekly_report — Weekly Report Fan-out
=====================================================

Once a week (Monday 09:00 UTC by default) every guild with notifications
on and a resolvable report channel receives the 7-day overview with its
activity chart.

The ``discord.ext.tasks`` loop in :mod:`tally.bot.cogs.tasks` polls
:meth:`WeeklyReportScheduler.is_due` every 15 minutes; the scheduler
remembers the last run date so a bot that polls twice inside the due hour
still sends once.

Skips are silent (no settings, notifications off, channel unset or gone).
Failures are logged and counted per guild; one bad guild never aborts the
rest.
"""

from __future__ import annotations

import asyncio
import io
import logging
from collections.abc import Iterable
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

import discord

from tally.database.engine import run_db
from tally.engine.aggregation import Period, summarize, summarize_previous
from tally.services.directory import GuildDirectory
from tally.services.embeds import build_report_embed
from tally.services.event_store import as_utc, utcnow
from tally.services.report_service import build_overview_report, render_chart
from tally.services.settings_service import get_settings

if TYPE_CHECKING:
    from tally.engine.runtime import AnalyticsEngine

logger = logging.getLogger(__name__)


class WeeklyReportScheduler:
    """Decides *when* the weekly fan-out runs and bounds its parallelism.

    Parameters
    ----------
    weekday:
        ``0`` = Monday … ``6`` = Sunday (UTC).
    hour:
        Hour of day (UTC) at which the run becomes due.
    concurrency:
        Maximum guilds processed at once.
    """

    def __init__(self, weekday: int = 0, hour: int = 9, concurrency: int = 4) -> None:
        self.weekday = weekday
        self.hour = hour
        self.concurrency = concurrency
        self.last_run: date | None = None

    def is_due(self, now: datetime) -> bool:
        """True at most once per calendar day, and only in the configured slot."""
        now = as_utc(now)
        if now.weekday() != self.weekday or now.hour != self.hour:
            return False
        return self.last_run != now.date()

    def mark_ran(self, now: datetime) -> None:
        self.last_run = as_utc(now).date()

    async def run(self, analytics: AnalyticsEngine, guilds: Iterable[discord.Guild]) -> dict[str, int]:
        """Send the weekly report to every guild in *guilds*.

        Returns ``{"sent": n, "skipped": n, "failed": n}``.
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        result = {"sent": 0, "skipped": 0, "failed": 0}

        async def _one(guild: discord.Guild) -> None:
            async with semaphore:
                try:
                    sent = await send_weekly_report(analytics, guild)
                except Exception:
                    result["failed"] += 1
                    logger.exception(
                        "Weekly report failed for guild %s", guild.id,
                        extra={"task": "weekly_report", "guild_id": guild.id},
                    )
                    return
                result["sent" if sent else "skipped"] += 1

        await asyncio.gather(*(_one(g) for g in guilds))
        logger.info(
            "Weekly report run complete: sent=%d skipped=%d failed=%d",
            result["sent"], result["skipped"], result["failed"],
        )
        return result


def _resolve_report_channel(guild: discord.Guild, channel_id: int | None) -> Any:
    if not channel_id:
        return None
    channel = guild.get_channel(channel_id)
    if channel is None or not hasattr(channel, "send"):
        return None
    return channel


async def send_weekly_report(analytics: AnalyticsEngine, guild: discord.Guild) -> bool:
    """Build and deliver one guild's weekly overview.

    Returns ``False`` when the guild is skipped, ``True`` when sent.
    Store, rendering and delivery errors propagate.
    """
    settings = await run_db(get_settings, analytics.db, guild.id)
    if not settings.notifications_enabled:
        return False
    channel = _resolve_report_channel(guild, settings.report_channel_id)
    if channel is None:
        logger.debug("Guild %s has no usable report channel; skipping", guild.id)
        return False

    now = utcnow()
    summary = await run_db(summarize, analytics.db, guild.id, Period.WEEK, now=now)
    previous = await run_db(summarize_previous, analytics.db, guild.id, Period.WEEK, now=now)
    report = await build_overview_report(summary, previous, GuildDirectory(guild))

    embed = build_report_embed(report)
    png = await run_db(render_chart, analytics.renderer, report.chart)
    await channel.send(
        embed=embed,
        file=discord.File(io.BytesIO(png), filename=report.chart.filename),
    )
    logger.info("Weekly report sent to guild %s channel %s", guild.id, channel.id)
    return True
