from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

import aiohttp
import discord

from ..apis.base import ApiError
from ..apis.wargaming import WargamingApi
from ..apis.wot import WotApi
from ..core.tables import LeavingPlayersTable, PotentialClansTable, WatchClansTable
from ..core.text_utils import wargaming_clan_url, wot_life_clan_url


logger = logging.getLogger(__name__)

_API_ERRORS = (ApiError, aiohttp.ClientError, asyncio.TimeoutError)
MAX_FIELDS = 25


class DetectedClansEngine:
    """Finds the clans joined by the players seen leaving a watched clan.

    :meth:`search_clans` resolves the current clan of every recorded leaving
    player and keeps the French clans we do not already follow;
    :meth:`report_clans` posts them and empties the list.
    """

    def __init__(
        self,
        leaving_players: LeavingPlayersTable,
        potential_clans: PotentialClansTable,
        watch_clans: WatchClansTable,
        wot_api: WotApi,
        wargaming_api: WargamingApi,
        *,
        clan_id: int,
    ) -> None:
        self.leaving_players = leaving_players
        self.potential_clans = potential_clans
        self.watch_clans = watch_clans
        self.wot_api = wot_api
        self.wargaming_api = wargaming_api
        self.clan_id = clan_id

    async def search_clans(self) -> int:
        """Store the potential clans and return how many were added."""

        logger.info("Starting fetching clan of leaving player")
        detected = 0
        for player_id in await self.leaving_players.get_all():
            try:
                result = await self.wot_api.account_info(player_id)
            except _API_ERRORS as exc:
                logger.error("Unable to fetch the account of player %s: %s", player_id, exc)
                continue

            datum = (result.get("data") or {}).get(str(player_id))
            if not datum:
                logger.debug("Player account %s has been deleted !", player_id)
                await self.leaving_players.delete_player(player_id)
                continue

            clan_id = datum.get("clan_id")
            if await self.is_potential_clan(clan_id):
                logger.debug("Clan found from leaving player : %s", clan_id)
                await self.potential_clans.add_clan(clan_id)
                detected += 1

            await self.leaving_players.delete_player(player_id)

        logger.info("End fetching clan from leaving player, %d clan(s) detected", detected)
        return detected

    async def is_potential_clan(self, clan_id: Any) -> bool:
        return (
            clan_id is not None
            and int(clan_id) != self.clan_id
            and not any(clan.id == int(clan_id) for clan in await self.watch_clans.select_clan(str(clan_id)))
            and not await self.potential_clans.clan_exist(int(clan_id))
            and await self.is_french_clan(int(clan_id))
        )

    async def is_french_clan(self, clan_id: int) -> bool:
        try:
            info = await self.wargaming_api.clan_info(clan_id)
        except _API_ERRORS as exc:
            logger.error("Failed to fetch the clan info of %s, considered as french: %s", clan_id, exc)
            return True

        profiles = ((info or {}).get("clanview") or {}).get("profiles") or []
        profile = next((item for item in profiles if item.get("type") == "clan"), None)
        return profile is not None and "fr" in (profile.get("languages_list") or [])

    async def report_clans(self, channel: Any) -> List[discord.Embed]:
        """Post the potential clans, 25 per embed, then clear the table."""

        clan_ids = await self.potential_clans.get_all()
        if not clan_ids:
            logger.debug("No clan detected, nothing to report")
            return []

        embeds: List[discord.Embed] = [_detected_embed()]
        for clan_id in clan_ids:
            try:
                info: Dict[str, Any] = (await self.wot_api.clans_info(clan_id)).get("data") or {}
                tag = (info.get(str(clan_id)) or {}).get("tag") or str(clan_id)
            except _API_ERRORS as exc:
                logger.error("Unable to fetch the tag of clan %s: %s", clan_id, exc)
                tag = str(clan_id)

            if len(embeds[-1].fields) == MAX_FIELDS:
                embeds.append(_detected_embed())
            embeds[-1].add_field(
                name=tag,
                value=f"[WG]({wargaming_clan_url(clan_id)}) ↗ | [Wot Life]({wot_life_clan_url(tag, clan_id)}) ↗",
                inline=True,
            )

        for embed in embeds:
            await channel.send(embed=embed)
        await self.potential_clans.delete_all()
        logger.debug("End processing clans")
        return embeds


def _detected_embed() -> discord.Embed:
    return discord.Embed(title="Liste des clans détectés", color=discord.Color.dark_gold())


__all__ = ["DetectedClansEngine"]
