"""
tally.bot.core — Bot Instance & Cog Loader
===========================================

Defines :class:`TallyBot`, a ``commands.Bot`` subclass that:

1. Carries the parsed config (``bot.cfg``) and the
   :class:`~tally.engine.runtime.AnalyticsEngine` (``bot.analytics``) so
   every Cog reaches them through ``self.bot``.
2. Loads every Cog listed in :data:`EXTENSIONS`.
3. Syncs the slash-command tree on startup (guild-scoped when
   ``DEV_GUILD_ID`` is set, global otherwise).
4. Releases the analytics resources on shutdown.
"""

from __future__ import annotations

import logging
import os

import discord
from discord.ext import commands

from tally.config import TallyConfig
from tally.engine.runtime import AnalyticsEngine

logger = logging.getLogger(__name__)

EXTENSIONS: list[str] = [
    "tally.bot.cogs.tracking",
    "tally.bot.cogs.reports",
    "tally.bot.cogs.settings",
    "tally.bot.cogs.tasks",
]


class TallyBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`TallyConfig` from ``config.yaml``.
    analytics:
        Owner of the event store, chart renderer and weekly scheduler.
    """

    def __init__(self, cfg: TallyConfig, analytics: AnalyticsEngine) -> None:
        # Privileged intents (enable in the Developer Portal):
        #   MESSAGE_CONTENT — content length of each message
        #   GUILD_MEMBERS   — join/leave tracking, member cache for names
        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        intents.presences = False

        super().__init__(
            command_prefix=cfg.command_prefix,
            intents=intents,
            description=f"{cfg.bot_name} — server activity analytics",
        )

        self.cfg = cfg
        self.analytics = analytics

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load all Cog extensions before connecting.

        A Cog that fails to load is logged and skipped.
        """
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception:
                logger.exception("Failed to load extension %s", ext)

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None
        logger.info(
            "Logged in as %s (ID: %s) in %d guild(s)",
            self.user.name, self.user.id, len(self.guilds),
        )

        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))

    async def close(self) -> None:
        """Graceful shutdown — close the HTTP client and dispose the pool."""
        logger.info("Bot shutting down…")
        await super().close()
        self.analytics.close()
