from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, List

import discord
from discord import app_commands
from discord.ext import commands

from ..core import time_utils
from ..core.channel_utils import fetch_channel
from ..core.tables import ChannelsTable


logger = logging.getLogger(__name__)


class MaintenanceCog(commands.Cog):
    """Announce the bot maintenance windows in the feature channels."""

    maintenance = app_commands.Group(
        name="maintenance",
        description="Prévenir les joueurs d'une maintenance du bot",
        default_permissions=discord.Permissions(ban_members=True),
        guild_only=True,
    )

    def __init__(self, bot: commands.Bot, channels: ChannelsTable) -> None:
        self.bot = bot
        self.channels = channels

    async def _feature_channels(self) -> List[Any]:
        found = [
            await fetch_channel(self.bot, await self.channels.get_fold_recruitment()),
            await fetch_channel(self.bot, await self.channels.get_trivia()),
        ]
        return [channel for channel in found if channel is not None]

    async def _broadcast(self, interaction: discord.Interaction, content: str) -> None:
        await interaction.response.defer(ephemeral=True)
        for channel in await self._feature_channels():
            try:
                await channel.send(content)
            except discord.HTTPException as exc:
                logger.warning("Unable to send the maintenance message in %s: %s", channel, exc)
        await interaction.delete_original_response()

    @maintenance.command(name="start", description="Annonce le début d'une maintenance")
    @app_commands.describe(
        how_long="Dans combien de minutes la maintenance commence",
        duration="Durée de la maintenance en minutes",
    )
    @app_commands.rename(how_long="how-long")
    async def maintenance_start(
        self,
        interaction: discord.Interaction,
        how_long: app_commands.Range[int, 0],
        duration: app_commands.Range[int, 1],
    ) -> None:
        start = time_utils.now() + timedelta(minutes=how_long)
        logger.info("Maintenance announced by %s in %d minute(s) for %d minute(s)", interaction.user, how_long, duration)
        await self._broadcast(
            interaction,
            f"Le bot passe en maintenance : <t:{time_utils.to_unix(start)}:R> pour {duration} minute(s)",
        )

    @maintenance.command(name="end", description="Annonce la fin de la maintenance")
    async def maintenance_end(self, interaction: discord.Interaction) -> None:
        logger.info("End of maintenance announced by %s", interaction.user)
        await self._broadcast(interaction, "Fin de la maintenance du bot")


__all__ = ["MaintenanceCog"]
