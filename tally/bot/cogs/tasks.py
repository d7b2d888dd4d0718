"""
tally.bot.cogs.tasks — Periodic Background Tasks
=================================================

- **Weekly report** — polled every 15 minutes; when
  :meth:`WeeklyReportScheduler.is_due` says so (Monday 09:00 UTC by
  default) every guild the bot is in gets its 7-day overview.

Runs in the bot process; store and renderer calls go through ``run_db``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands, tasks

from tally.services.event_store import utcnow

if TYPE_CHECKING:
    from tally.bot.core import TallyBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled background jobs."""

    def __init__(self, bot: TallyBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self.weekly_report_loop.start()

    async def cog_unload(self) -> None:
        self.weekly_report_loop.cancel()

    # -------------------------------------------------------------------
    # Weekly report
    # -------------------------------------------------------------------
    @tasks.loop(minutes=15)
    async def weekly_report_loop(self):
        """Fan the weekly overview out to every guild once it is due."""
        scheduler = self.bot.analytics.scheduler
        now = utcnow()
        if not scheduler.is_due(now):
            return

        scheduler.mark_ran(now)
        try:
            await scheduler.run(self.bot.analytics, list(self.bot.guilds))
        except Exception:
            logger.exception("Weekly report task failed", extra={"task": "weekly_report"})

    @weekly_report_loop.before_loop
    async def _wait_weekly_report(self):
        await self.bot.wait_until_ready()


async def setup(bot: TallyBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
