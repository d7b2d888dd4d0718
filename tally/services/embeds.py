"""
tally.services.embeds — Discord embed builders
===============================================

All embed construction lives here so the cogs and the weekly job only
need to supply data — no layout concerns.
"""

from __future__ import annotations

from datetime import datetime

import discord

from tally.constants import BRAND_COLOR, DISABLED_LABEL, ENABLED_LABEL
from tally.engine.session import SettingsState
from tally.services.event_store import utcnow
from tally.services.report_service import Report


def build_report_embed(report: Report, *, timestamp: datetime | None = None) -> discord.Embed:
    """Lay out a :class:`Report`; the chart (if any) is referenced as an attachment."""
    embed = discord.Embed(
        title=report.title,
        description=report.caption or None,
        color=BRAND_COLOR,
        timestamp=timestamp or utcnow(),
    )
    for fld in report.fields:
        embed.add_field(name=fld.name, value=fld.value, inline=fld.inline)
    if report.chart is not None:
        embed.set_image(url=f"attachment://{report.chart.filename}")
    return embed


def _flag(value: bool) -> str:
    return ENABLED_LABEL if value else DISABLED_LABEL


def build_settings_embed(settings: SettingsState, *, expires_at: datetime | None = None) -> discord.Embed:
    """The ``/settings`` panel body, rendered from the session's cached copy."""
    embed = discord.Embed(
        title="⚙️ Analytics Settings",
        description="Configure how analytics are tracked and reported",
        color=BRAND_COLOR,
    )
    embed.add_field(name="\U0001f4ca Tracking", value=_flag(settings.tracking_enabled), inline=True)
    embed.add_field(
        name="\U0001f514 Notifications", value=_flag(settings.notifications_enabled), inline=True,
    )
    embed.add_field(
        name="\U0001f4e2 Report Channel",
        value=f"<#{settings.report_channel_id}>" if settings.report_channel_id else "Not set",
        inline=True,
    )
    tracked = ", ".join(f"<#{cid}>" for cid in settings.tracked_channel_ids)
    embed.add_field(name="\U0001f4dd Tracked Channels", value=tracked or "All channels", inline=False)
    if expires_at is not None:
        embed.set_footer(text=f"Panel expires at {expires_at:%H:%M} UTC")
    return embed


# ---------------------------------------------------------------------------
# Toggle button presentation
# ---------------------------------------------------------------------------
def toggle_label(enabled: bool, noun: str) -> str:
    """``Disable Tracking`` while on, ``Enable Tracking`` while off."""
    return f"Disable {noun}" if enabled else f"Enable {noun}"


def toggle_style(enabled: bool) -> discord.ButtonStyle:
    return discord.ButtonStyle.danger if enabled else discord.ButtonStyle.success
