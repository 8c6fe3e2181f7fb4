from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import aiohttp
import discord
from discord import app_commands
from discord.ext import commands

from ..apis.base import ApiError
from ..apis.wot import WotApi
from ..core.channel_utils import fetch_channel
from ..core.models import BlacklistedPlayer
from ..core.tables import BlacklistedPlayersTable, ChannelsTable, FeatureFlippingTable, WatchClansTable
from ..core.text_utils import sanitize, transform_to_code
from ..core.wording import ADMIN_MENTION, WATCHER_DISABLED


logger = logging.getLogger(__name__)

MULTIPLE_RESULTS = "Le champ renseigné conduit à plusieurs résultats. Merci d'affiner la recherche !"
INVALID_PLAYER = "Le pseudo passé contient une ou plusieurs erreurs !"
DEFAULT_REASON = "Aucune raison renseignée"
AUTOCOMPLETE_LIMIT = 24


def split_player_value(value: str) -> Tuple[Optional[int], Optional[str]]:
    """Parse the ``id#name`` value produced by the player autocompletion."""

    raw_id, _, name = value.partition("#")
    if not raw_id.strip().isdigit() or not name:
        return None, None
    return int(raw_id), name


class WatchClanCog(commands.Cog):
    """Manage the clans watched by the fold recruitment and the player blacklist."""

    watch_clan = app_commands.Group(
        name="watch-clan",
        description="Gère les clans observés par le recrutement",
        default_permissions=discord.Permissions(kick_members=True),
        guild_only=True,
    )

    def __init__(
        self,
        bot: commands.Bot,
        watch_clans: WatchClansTable,
        blacklisted_players: BlacklistedPlayersTable,
        feature_flipping: FeatureFlippingTable,
        channels: ChannelsTable,
        wot_api: WotApi,
    ) -> None:
        self.bot = bot
        self.watch_clans = watch_clans
        self.blacklisted_players = blacklisted_players
        self.feature_flipping = feature_flipping
        self.channels = channels
        self.wot_api = wot_api

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _ensure_enabled(self, interaction: discord.Interaction) -> bool:
        if await self.feature_flipping.get_feature("fold_recruitment"):
            return True
        await interaction.followup.send(WATCHER_DISABLED, ephemeral=True)
        return False

    async def _notify(self, title: str, description: str) -> None:
        channel = await fetch_channel(self.bot, await self.channels.get_fold_recruitment())
        if channel is None:
            return
        embed = discord.Embed(title=title, description=description, color=discord.Color.dark_gold())
        await channel.send(embed=embed)

    # ------------------------------------------------------------------
    # Clans
    # ------------------------------------------------------------------
    @watch_clan.command(name="add", description="Ajoute un clan à la liste des clans à observer.")
    @app_commands.describe(clan_id="L'id du clan à observer", name="Le nom du clan à observer")
    @app_commands.rename(clan_id="id", name="nom")
    async def add(self, interaction: discord.Interaction, clan_id: int, name: str) -> None:
        await interaction.response.defer(ephemeral=True)
        if not await self._ensure_enabled(interaction):
            return

        name = sanitize(name).upper()
        if any(clan.id == clan_id for clan in await self.watch_clans.select_clan(str(clan_id))):
            logger.warning("Clan %s already exists", clan_id)
            await interaction.followup.send("Le clan existe déjà !", ephemeral=True)
            return

        added = await self.watch_clans.add_clan(clan_id, name, datetime.now(timezone.utc).isoformat())
        if not added:
            logger.warning("An error occur during adding clan to the database")
            await interaction.followup.send(
                "Une erreur est survenue lors de l'ajout du clan à l'observateur. "
                f"Merci de réessayer plus tard ou de contacter {ADMIN_MENTION}",
                ephemeral=True,
            )
            return

        logger.info("Clan %s - %s added to the clan to watch", clan_id, name)
        await interaction.followup.send(
            "Le clan a bien été ajouté ! Le clan sera observé à partir du prochain créneaux (*^▽^*)", ephemeral=True
        )
        await self._notify(
            "Ajout de clan à l'observateur",
            transform_to_code("Le clan {} a été ajouté à la liste des clans à observer !", name),
        )

    @watch_clan.command(name="remove", description="Supprime un clan de la liste des clans à observer")
    @app_commands.describe(clan="L'id ou le nom du clan à supprimer")
    async def remove(self, interaction: discord.Interaction, clan: str) -> None:
        await interaction.response.defer(ephemeral=True)
        if not await self._ensure_enabled(interaction):
            return

        id_or_name = sanitize(clan).upper()
        clans = await self.watch_clans.select_clan(id_or_name)
        exact = [item for item in clans if str(item.id) == id_or_name or item.name == id_or_name]
        if exact:
            clans = exact
        if not clans:
            logger.warning("Clan %s doesn't exist in the clan to watch", id_or_name)
            await interaction.followup.send("Le clan n'apparaît pas dans la liste des clans observés !", ephemeral=True)
            return
        if len(clans) > 1:
            logger.warning("Input %s lead to multiple result", id_or_name)
            await interaction.followup.send(MULTIPLE_RESULTS, ephemeral=True)
            return

        target = clans[0]
        if not await self.watch_clans.remove_clan(target.id):
            logger.error("Error occurs when removing clan from database")
            await interaction.followup.send(
                "Une erreur est survenue lors de la suppression du clan de l'observateur. "
                f"Merci de réessayer plus tard ou de contacter {ADMIN_MENTION}.",
                ephemeral=True,
            )
            return

        logger.info("Clan %s - %s removed from the clan to watch", target.id, target.name)
        await interaction.followup.send("Le clan a bien été supprimé de l'observateur !", ephemeral=True)
        await self._notify(
            "Suppression de clan de l'observateur",
            transform_to_code("Le clan {} a été supprimé de la liste des clans à observer !", target.name),
        )

    @remove.autocomplete("clan")
    async def remove_autocomplete(self, interaction: discord.Interaction, current: str) -> List[app_commands.Choice[str]]:
        if not await self.feature_flipping.get_feature("fold_recruitment"):
            return []
        clans = await self.watch_clans.select_clan(sanitize(current).upper()) if current else await self.watch_clans.get_all()
        return [app_commands.Choice(name=clan.name, value=str(clan.id)) for clan in clans[:AUTOCOMPLETE_LIMIT]]

    @watch_clan.command(name="list", description="Consulte la liste des clans observés")
    async def list_clans(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True)
        if not await self._ensure_enabled(interaction):
            return

        names = sorted(clan.name for clan in await self.watch_clans.get_all())
        if not names:
            await interaction.followup.send("Aucun clan est observé !", ephemeral=True)
            return

        embed = discord.Embed(
            title="Liste des clans observés",
            description=f"Nombre de clan total observés : `{len(names)}`",
            color=discord.Color.dark_gold(),
        )
        size = math.ceil(len(names) / 3)
        pages = [names[start : start + size] for start in range(0, len(names), size)]
        for number, page in enumerate(pages, start=1):
            embed.add_field(name=f"Page {number}/{len(pages)}", value="\n".join(page), inline=True)
        await interaction.followup.send(embed=embed, ephemeral=True)

    # ------------------------------------------------------------------
    # Blacklist
    # ------------------------------------------------------------------
    @watch_clan.command(name="blacklist-player", description="Ajoute un joueur à la liste noire pour le recrutement")
    @app_commands.describe(player="Le nom du joueur", reason="La raison de la mise en liste noire")
    @app_commands.rename(player="joueur", reason="raison")
    async def blacklist_player(self, interaction: discord.Interaction, player: str, reason: Optional[str] = None) -> None:
        await interaction.response.defer(ephemeral=True)
        if not await self._ensure_enabled(interaction):
            return
        if player == "ERROR":
            await interaction.followup.send(INVALID_PLAYER, ephemeral=True)
            return

        player_id, name = split_player_value(player)
        if player_id is None:
            try:
                found = (await self.wot_api.account_list(player)).get("data") or []
                player_id, name = int(found[0]["account_id"]), str(found[0]["nickname"])
            except (ApiError, aiohttp.ClientError, asyncio.TimeoutError, IndexError, KeyError) as exc:
                logger.debug("Unable to find the player %s: %s", player, exc)
                await interaction.followup.send(INVALID_PLAYER, ephemeral=True)
                return

        if await self.blacklisted_players.get_player(player_id):
            logger.debug("Player %s already blacklisted !", name)
            await interaction.followup.send(f"Le joueur `{name}` est déjà dans la liste noire !", ephemeral=True)
            return

        added = await self.blacklisted_players.add_player(
            BlacklistedPlayer(id=player_id, name=name, reason=reason or DEFAULT_REASON)
        )
        if not added:
            await interaction.followup.send(
                "Une erreur est survenue lors de l'ajout du joueur en liste noire. "
                f"Merci de réessayer plus tard ou de contacter {ADMIN_MENTION}",
                ephemeral=True,
            )
            return

        logger.debug("Player %s added to blacklist !", name)
        await interaction.followup.send("Le joueur a bien été ajouté à la liste noire !", ephemeral=True)
        await self._notify("Ajout de joueur sur liste noire", f"Le joueur `{name}` a été ajouté sur liste noire !")

    @blacklist_player.autocomplete("player")
    async def blacklist_autocomplete(self, interaction: discord.Interaction, current: str) -> List[app_commands.Choice[str]]:
        if not await self.feature_flipping.get_feature("fold_recruitment") or len(current) < 3:
            return []
        try:
            found = (await self.wot_api.account_list(current)).get("data") or []
        except (ApiError, aiohttp.ClientError, asyncio.TimeoutError):
            return [app_commands.Choice(name="Une erreur est survenue avec le pseudo renseigné", value="ERROR")]
        return [
            app_commands.Choice(name=item["nickname"], value=f"{item['account_id']}#{item['nickname']}")
            for item in found[:AUTOCOMPLETE_LIMIT]
        ]

    @watch_clan.command(name="unblacklist-player", description="Retire un joueur de la liste noire pour le recrutement")
    @app_commands.describe(player="Le nom du joueur")
    @app_commands.rename(player="joueur")
    async def unblacklist_player(self, interaction: discord.Interaction, player: str) -> None:
        await interaction.response.defer(ephemeral=True)
        if not await self._ensure_enabled(interaction):
            return

        player_id, name = split_player_value(sanitize(player))
        if player_id is None:
            await interaction.followup.send(
                "Merci de sélectionner un joueur dans la liste déroulante. Si vous ne trouvez pas le joueur "
                "rechercher cela veut dire qu'il n'est pas présent dans la liste noire",
                ephemeral=True,
            )
            return

        blacklisted = await self.blacklisted_players.get_player(player_id)
        if not blacklisted:
            await interaction.followup.send(f"Le joueur `{name}` n'est pas sur la liste noire !", ephemeral=True)
            return

        if not await self.blacklisted_players.remove_player(blacklisted[0]):
            await interaction.followup.send(
                "Une erreur est survenue lors de la suppression du joueur. "
                f"Merci de réessayer plus tard ou de contacter {ADMIN_MENTION}",
                ephemeral=True,
            )
            return

        logger.debug("Player %s removed form blacklist !", name)
        await interaction.followup.send("Le joueur a bien été supprimé de la liste noire !", ephemeral=True)
        await self._notify("Suppression de joueur sur liste noire", f"Le joueur `{name}` a été supprimé de la liste noire !")

    @unblacklist_player.autocomplete("player")
    async def unblacklist_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> List[app_commands.Choice[str]]:
        if not await self.feature_flipping.get_feature("fold_recruitment"):
            return []
        return [
            app_commands.Choice(name=item.name, value=f"{item.id}#{item.name}")
            for item in (await self.blacklisted_players.find_player(current))[:AUTOCOMPLETE_LIMIT]
        ]


__all__ = ["WatchClanCog", "split_player_value"]
