"""
tally.bot.cogs.tracking — Gateway Event Capture
================================================

Turns gateway events into event-store rows:

- MESSAGE_CREATE       → ``messages``     (gated by the guild's settings)
- MESSAGE_REACTION_ADD → ``reactions``
- GUILD_MEMBER_ADD     → ``memberships`` (joined)
- GUILD_MEMBER_REMOVE  → ``memberships`` (left)

Bot authors and DMs are ignored.  Only messages are gated by the
tracking toggle and the tracked-channel list; reactions and membership
changes are always recorded.  Each listener catches and logs its own
failures so one bad event never stops the listener.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from tally.database.engine import run_db
from tally.database.models import MembershipAction

if TYPE_CHECKING:
    from tally.bot.core import TallyBot

logger = logging.getLogger(__name__)


class Tracking(commands.Cog, name="Tracking"):
    """Captures message, reaction and membership events."""

    def __init__(self, bot: TallyBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or message.guild is None:
            return
        try:
            stored = await run_db(
                self.bot.analytics.ingest_message,
                message.guild.id,
                message.author.id,
                message.channel.id,
                len(message.content or ""),
            )
            if not stored:
                logger.debug(
                    "Message in channel %s not tracked (guild %s settings)",
                    message.channel.id, message.guild.id,
                )
        except Exception:
            logger.exception(
                "Error recording message %s", message.id,
                extra={"event_type": "message", "guild_id": message.guild.id},
            )

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        """Raw event so reactions on uncached messages are still counted."""
        if payload.guild_id is None:
            return
        if payload.member is not None and payload.member.bot:
            return
        try:
            await run_db(
                self.bot.analytics.ingest_reaction,
                payload.guild_id,
                payload.user_id,
                payload.emoji.name or str(payload.emoji),
            )
        except Exception:
            logger.exception(
                "Error recording reaction on message %s from user %s",
                payload.message_id, payload.user_id,
                extra={"event_type": "reaction", "guild_id": payload.guild_id},
            )

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        await self._record_membership(member, MembershipAction.JOINED)

    @commands.Cog.listener()
    async def on_member_remove(self, member: discord.Member) -> None:
        await self._record_membership(member, MembershipAction.LEFT)

    async def _record_membership(self, member: discord.Member, action: MembershipAction) -> None:
        try:
            await run_db(
                self.bot.analytics.ingest_membership,
                member.guild.id,
                member.id,
                action,
            )
            logger.info("Member %s: %s (ID: %d)", action, member.display_name, member.id)
        except Exception:
            logger.exception(
                "Error recording member %s for %s", action, member.id,
                extra={"event_type": f"member_{action}", "user_id": member.id},
            )


async def setup(bot: TallyBot) -> None:
    await bot.add_cog(Tracking(bot))
