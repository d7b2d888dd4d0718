"""
tally.bot.cogs.settings — /settings Panel
==========================================

``/settings`` opens an ephemeral panel backed by one
:class:`~tally.engine.session.SettingsSession`:

- Row 0: tracking / alerts toggles (red "Disable…" while on, green
  "Enable…" while off) and a Close button.
- Row 1: report channel picker.
- Row 2: tracked channels picker (clear it to track every channel).

The session owns all state changes; this view only forwards clicks and
re-renders from ``session.settings``.  The view keeps listening for the
same length of time again after the session expires so a late click gets
an explicit "expired" reply instead of Discord's generic failure.

Requires the Manage Server permission.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import discord
from discord import app_commands
from discord.ext import commands

from tally.bot.cogs.reports import send_command_failed
from tally.constants import SESSION_EXPIRED_MESSAGE
from tally.database.engine import run_db
from tally.engine.session import SessionAction, SessionExpired, SettingsSession
from tally.services.embeds import build_settings_embed, toggle_label, toggle_style

if TYPE_CHECKING:
    from tally.bot.core import TallyBot

logger = logging.getLogger(__name__)

NOT_YOUR_PANEL_MESSAGE = "🔒 This settings panel belongs to someone else. Run `/settings` to open your own."
MISSING_PERMISSION_MESSAGE = "🔒 You need the Manage Server permission to change analytics settings."


class SettingsView(discord.ui.View):
    """Buttons and channel pickers for one :class:`SettingsSession`."""

    def __init__(self, session: SettingsSession) -> None:
        lifetime = session.expires_at - session.created_at
        super().__init__(timeout=(lifetime * 2).total_seconds())
        self.session = session
        self.sync_controls()

    def render(self) -> discord.Embed:
        return build_settings_embed(self.session.settings, expires_at=self.session.expires_at)

    def sync_controls(self) -> None:
        """Match toggle labels/colours to the cached settings."""
        state = self.session.settings
        self.tracking_button.label = toggle_label(state.tracking_enabled, "Tracking")
        self.tracking_button.style = toggle_style(state.tracking_enabled)
        self.alerts_button.label = toggle_label(state.notifications_enabled, "Alerts")
        self.alerts_button.style = toggle_style(state.notifications_enabled)

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if self.session.accepts(interaction.user.id):
            return True
        await interaction.response.send_message(NOT_YOUR_PANEL_MESSAGE, ephemeral=True)
        return False

    async def on_timeout(self) -> None:
        self.session.expire()

    async def on_error(
        self, interaction: discord.Interaction, error: Exception, item: discord.ui.Item[Any]
    ) -> None:
        logger.error(
            "Settings panel action failed in guild %s", interaction.guild_id, exc_info=error,
        )
        await send_command_failed(interaction)

    async def _apply(
        self, interaction: discord.Interaction, action: SessionAction, value: Any = None
    ) -> None:
        try:
            state = await run_db(self.session.apply, interaction.user.id, action, value)
        except SessionExpired:
            await interaction.response.send_message(SESSION_EXPIRED_MESSAGE, ephemeral=True)
            self.stop()
            return
        if state is None:
            return

        self.sync_controls()
        await interaction.response.edit_message(embed=self.render(), view=self)

    # -------------------------------------------------------------------
    # Controls
    # -------------------------------------------------------------------
    @discord.ui.button(label="Disable Tracking", style=discord.ButtonStyle.danger, emoji="📊", row=0)
    async def tracking_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._apply(interaction, SessionAction.TOGGLE_TRACKING)

    @discord.ui.button(label="Disable Alerts", style=discord.ButtonStyle.danger, emoji="🔔", row=0)
    async def alerts_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._apply(interaction, SessionAction.TOGGLE_NOTIFICATIONS)

    @discord.ui.button(label="Close", style=discord.ButtonStyle.secondary, row=0)
    async def close_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        if not self.session.is_open():
            await interaction.response.send_message(SESSION_EXPIRED_MESSAGE, ephemeral=True)
            self.stop()
            return
        self.session.terminate()
        self.stop()
        await interaction.response.edit_message(content="Settings saved.", view=None)

    @discord.ui.select(
        cls=discord.ui.ChannelSelect,
        channel_types=[discord.ChannelType.text],
        placeholder="Select report channel",
        min_values=1,
        max_values=1,
        row=1,
    )
    async def report_channel_select(
        self, interaction: discord.Interaction, select: discord.ui.ChannelSelect
    ) -> None:
        await self._apply(interaction, SessionAction.SET_REPORT_CHANNEL, select.values[0].id)

    @discord.ui.select(
        cls=discord.ui.ChannelSelect,
        channel_types=[discord.ChannelType.text],
        placeholder="Tracked channels (none selected = all)",
        min_values=0,
        max_values=25,
        row=2,
    )
    async def tracked_channels_select(
        self, interaction: discord.Interaction, select: discord.ui.ChannelSelect
    ) -> None:
        await self._apply(
            interaction, SessionAction.SET_TRACKED_CHANNELS, [ch.id for ch in select.values],
        )


class Settings(commands.Cog, name="Settings"):
    """Per-guild analytics configuration."""

    def __init__(self, bot: TallyBot) -> None:
        self.bot = bot

    @app_commands.command(name="settings", description="Configure analytics tracking and reports.")
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.checks.has_permissions(manage_guild=True)
    @app_commands.guild_only()
    async def settings(self, interaction: discord.Interaction) -> None:
        session = await run_db(
            self.bot.analytics.open_settings_session,
            interaction.guild_id,
            interaction.user.id,
        )
        view = SettingsView(session)
        await interaction.response.send_message(embed=view.render(), view=view, ephemeral=True)

    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        if isinstance(error, app_commands.MissingPermissions):
            await interaction.response.send_message(MISSING_PERMISSION_MESSAGE, ephemeral=True)
            return
        logger.error(
            "Command /settings failed in guild %s", interaction.guild_id,
            exc_info=getattr(error, "original", error),
        )
        await send_command_failed(interaction)


async def setup(bot: TallyBot) -> None:
    await bot.add_cog(Settings(bot))
