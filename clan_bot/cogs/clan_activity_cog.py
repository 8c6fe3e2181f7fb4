from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import aiohttp
import discord
from discord import app_commands
from discord.ext import commands

from ..apis.base import ApiError
from ..core.wording import WARGAMING_UNAVAILABLE
from ..core.text_utils import transform_to_code
from ..engines.clan_activity import ClanActivityReport, PlayerActivity, build_embeds, csv_file


logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 3600.0


class DownloadCsvView(discord.ui.View):
    """Single button sending the activity report as a CSV file."""

    def __init__(self, players: List[PlayerActivity], *, timeout: Optional[float] = DOWNLOAD_TIMEOUT) -> None:
        super().__init__(timeout=timeout)
        self.players = players

    @discord.ui.button(label="Télécharger le CSV", style=discord.ButtonStyle.primary, custom_id="download-csv")
    async def download(
        self,
        interaction: discord.Interaction,
        button: discord.ui.Button,  # type: ignore[type-arg]
    ) -> None:
        logger.debug("CSV of the clan activity requested by %s", interaction.user)
        await interaction.response.send_message(file=csv_file(self.players), ephemeral=True)


class ClanActivityCog(commands.Cog):
    def __init__(self, bot: commands.Bot, report: ClanActivityReport) -> None:
        self.bot = bot
        self.report = report

    @app_commands.command(
        name="clan-players-activity",
        description="Liste les joueurs du clan avec une activité en format clan trop faible",
    )
    @app_commands.describe(minimum_battles="Nombre minimum de batailles en format clan sur les 28 derniers jours")
    @app_commands.rename(minimum_battles="bataille-minimun")
    @app_commands.default_permissions(move_members=True)
    @app_commands.guild_only()
    async def clan_players_activity(
        self, interaction: discord.Interaction, minimum_battles: app_commands.Range[int, 0]
    ) -> None:
        await interaction.response.defer(ephemeral=True)

        try:
            players = await self.report.players_under_activity(minimum_battles)
        except (ApiError, aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Clan players activity unavailable: %s", exc)
            await interaction.followup.send(WARGAMING_UNAVAILABLE, ephemeral=True)
            return

        if not players:
            await interaction.followup.send(
                transform_to_code("Aucun joueur n'a fait moins de {} batailles en format clan.", minimum_battles),
                ephemeral=True,
            )
            return

        embeds = build_embeds(players, minimum_battles)
        for embed in embeds[:-1]:
            await interaction.followup.send(embed=embed, ephemeral=True)
        await interaction.followup.send(embed=embeds[-1], view=DownloadCsvView(players), ephemeral=True)


__all__ = ["ClanActivityCog", "DownloadCsvView"]
