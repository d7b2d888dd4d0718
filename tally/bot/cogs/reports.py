"""
tally.bot.cogs.reports — Report Slash Commands
===============================================

- /report period:{week,month} type:{overview,users,channels,heatmap}
- /stats — abbreviated 7-day overview

Both defer first (aggregation + chart rendering can exceed Discord's 3 s
acknowledgement window), then run the store and renderer calls through
``run_db``.  Any failure is logged with its traceback and the user sees a
generic "command failed" reply.
"""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from tally.constants import COMMAND_FAILED_MESSAGE
from tally.database.engine import run_db
from tally.engine.aggregation import Period
from tally.services.directory import GuildDirectory
from tally.services.embeds import build_report_embed
from tally.services.event_store import utcnow
from tally.services.report_service import (
    ReportType,
    assemble_report,
    build_stats_report,
    render_chart,
)

if TYPE_CHECKING:
    from tally.bot.core import TallyBot

logger = logging.getLogger(__name__)


class Reports(commands.Cog, name="Reports"):
    """On-demand analytics reports."""

    def __init__(self, bot: TallyBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # /report
    # -------------------------------------------------------------------
    @app_commands.command(name="report", description="Generate an analytics report.")
    @app_commands.rename(kind="type")
    @app_commands.describe(period="Report period", kind="Report type")
    @app_commands.choices(
        period=[
            app_commands.Choice(name="Weekly", value=Period.WEEK.value),
            app_commands.Choice(name="Monthly", value=Period.MONTH.value),
        ],
        kind=[
            app_commands.Choice(name="Overview", value=ReportType.OVERVIEW.value),
            app_commands.Choice(name="Top Users", value=ReportType.USERS.value),
            app_commands.Choice(name="Top Channels", value=ReportType.CHANNELS.value),
            app_commands.Choice(name="Heatmap", value=ReportType.HEATMAP.value),
        ],
    )
    @app_commands.guild_only()
    async def report(
        self,
        interaction: discord.Interaction,
        period: app_commands.Choice[str],
        kind: app_commands.Choice[str] | None = None,
    ) -> None:
        await interaction.response.defer(thinking=True)

        analytics = self.bot.analytics
        guild = interaction.guild
        report_type = ReportType(kind.value if kind else ReportType.OVERVIEW)

        now = utcnow()
        summary = await run_db(analytics.summarize, guild.id, period.value, now=now)
        previous = None
        if report_type is ReportType.OVERVIEW:
            previous = await run_db(
                analytics.summarize_previous, guild.id, period.value, now=now,
            )

        report = await assemble_report(
            summary, report_type, GuildDirectory(guild), previous=previous,
        )
        embed = build_report_embed(report)
        png = await run_db(render_chart, analytics.renderer, report.chart)
        await interaction.followup.send(
            embed=embed,
            file=discord.File(io.BytesIO(png), filename=report.chart.filename),
        )
        logger.info(
            "Report %s/%s sent for guild %s (requested by %s)",
            period.value, report_type, guild.id, interaction.user.id,
        )

    # -------------------------------------------------------------------
    # /stats
    # -------------------------------------------------------------------
    @app_commands.command(name="stats", description="Quick server statistics for the last 7 days.")
    @app_commands.guild_only()
    async def stats(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(thinking=True)

        guild = interaction.guild
        summary = await run_db(self.bot.analytics.summarize, guild.id, Period.WEEK)
        report = await build_stats_report(summary, GuildDirectory(guild))
        await interaction.followup.send(embed=build_report_embed(report))

    # -------------------------------------------------------------------
    # Error handler
    # -------------------------------------------------------------------
    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        original = getattr(error, "original", error)
        logger.error(
            "Command /%s failed in guild %s",
            interaction.command.name if interaction.command else "?",
            interaction.guild_id,
            exc_info=original,
        )
        await send_command_failed(interaction)


async def send_command_failed(interaction: discord.Interaction) -> None:
    """Reply with the generic failure message, whether or not we deferred."""
    if interaction.response.is_done():
        await interaction.followup.send(COMMAND_FAILED_MESSAGE, ephemeral=True)
    else:
        await interaction.response.send_message(COMMAND_FAILED_MESSAGE, ephemeral=True)


async def setup(bot: TallyBot) -> None:
    await bot.add_cog(Reports(bot))
