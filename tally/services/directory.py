"""
tally.services.directory — Guild name resolution
=================================================

:class:`GuildDirectory` turns member / channel IDs from the event log into
display labels for reports.  The gateway cache is checked first; on a miss
one API fetch is attempted.  Anything Discord refuses (deleted user,
channel the bot can no longer see, transient HTTP error) comes back as
``None`` and the report assembler substitutes its placeholder.
"""

from __future__ import annotations

import logging

import discord

logger = logging.getLogger(__name__)


class GuildDirectory:
    """``LabelResolver`` backed by one :class:`discord.Guild`."""

    def __init__(self, guild: discord.Guild) -> None:
        self.guild = guild

    async def resolve_user_label(self, user_id: int) -> str | None:
        member = self.guild.get_member(user_id)
        if member is None:
            try:
                member = await self.guild.fetch_member(user_id)
            except discord.HTTPException:  # NotFound, Forbidden, 5xx
                logger.debug("Member %s not resolvable in guild %s", user_id, self.guild.id)
                return None
        return member.display_name

    async def resolve_channel_label(self, channel_id: int) -> str | None:
        channel = self.guild.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.guild.fetch_channel(channel_id)
            except discord.HTTPException:  # NotFound, Forbidden, 5xx
                logger.debug("Channel %s not resolvable in guild %s", channel_id, self.guild.id)
                return None
        return channel.name
