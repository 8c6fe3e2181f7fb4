from __future__ import annotations

import logging
from typing import Optional

import discord
from discord.ext import commands

from .models import Channel


logger = logging.getLogger(__name__)


async def fetch_channel(bot: commands.Bot, channel: Optional[Channel]) -> Optional[discord.abc.Messageable]:
    """Resolve a configured :class:`Channel` into a Discord channel.

    The client cache is tried first; on a miss the channel is fetched from
    its guild. Returns ``None`` when nothing is configured or Discord refuses
    the lookup, after logging the reason.
    """

    if channel is None:
        return None

    cached = bot.get_channel(channel.channel_id)
    if cached is not None:
        return cached  # type: ignore[return-value]

    try:
        guild = bot.get_guild(channel.guild_id) or await bot.fetch_guild(channel.guild_id)
        return await guild.fetch_channel(channel.channel_id)  # type: ignore[return-value]
    except discord.HTTPException as exc:
        logger.warning("Unable to fetch channel %s of guild %s: %s", channel.channel_id, channel.guild_id, exc)
        return None


async def fetch_member(interaction: discord.Interaction, user: Optional[discord.abc.User]) -> Optional[discord.Member]:
    """Return ``user`` as a member of the interaction's guild, if possible."""

    if user is None or interaction.guild is None:
        return None
    if isinstance(user, discord.Member):
        return user
    try:
        return await interaction.guild.fetch_member(user.id)
    except discord.HTTPException:
        return None


__all__ = ["fetch_channel", "fetch_member"]
