"""Fold recruitment: spot good players leaving the watched clans.

Every cycle reads the newsfeed of each watched clan, keeps the players who
left since the last scan, filters them on their Tomato.gg WN8 and battle
count, and posts one embed per candidate in the recruitment channel. Once
all clans are processed the recent activity of each candidate is checked:
inactive players are removed from the channel, low activity is flagged.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiohttp
import discord

from ..apis.base import ApiError
from ..apis.tomato import TomatoApi
from ..apis.wargaming import WargamingApi
from ..apis.wot import WotApi
from ..core.models import Clan, LeavingPlayer
from ..core.tables import (
    BlacklistedPlayersTable,
    FoldRecruitmentTable,
    LeavingPlayersTable,
    WatchClansTable,
)
from ..core.text_utils import (
    tomato_player_url,
    transform_to_code,
    wargaming_clan_url,
    wargaming_player_url,
    wot_life_player_url,
)
from ..core.time_utils import parse_api_timestamp


logger = logging.getLogger(__name__)

LEAVE_CLAN = "leave_clan"
ACTIVITY_TYPES = ("random", "fort_sorties", "fort_battles")
BATTLE_TYPE_LABELS: Dict[str, str] = {
    "random": "Batailles aléatoires",
    "fort_battles": "Incursions",
    "fort_sorties": "Escarmouches",
    "global_map": "Clan Wars",
}

_API_ERRORS = (ApiError, aiohttp.ClientError, asyncio.TimeoutError)


@dataclass(slots=True)
class _PostedPlayer:
    message: Any
    name: str
    is_blacklisted: bool


def extract_players_from_feed(feed: Dict[str, Any], clan: Clan) -> Tuple[List[LeavingPlayer], List[Dict[str, Any]]]:
    """Players of the ``leave_clan`` events newer than ``clan.last_activity``.

    Returns the players and the matching events, in feed order (newest
    first). A clan without ``last_activity`` keeps every event.
    """

    since = parse_api_timestamp(clan.last_activity)

    def is_new(item: Dict[str, Any]) -> bool:
        created = parse_api_timestamp(item.get("created_at"))
        return since is None or (created is not None and created > since)

    extracted = [item for item in feed.get("items", []) if item.get("subtype") == LEAVE_CLAN and is_new(item)]

    players = [
        LeavingPlayer(id=int(account_id), name=event["accounts_info"][str(account_id)]["name"])
        for event in extracted
        for account_id in event.get("accounts_ids", [])
    ]
    return players, extracted


class FoldRecruitmentEngine:
    no_player_found_embed = discord.Embed(
        title="Aucun joueur n'a quitté son clan depuis le dernier scan !", color=discord.Color.dark_red()
    )
    no_player_meet_criteria_embed = discord.Embed(
        title="Le recrutement n'a trouvé aucun joueur satisfaisant les conditions requises.",
        color=discord.Color.dark_red(),
    )
    only_error_embed = discord.Embed(
        title=(
            "Le recrutement a échoué en raison de plusieurs problèmes, souvent des boucles de timeouts. "
            "Nous nous excusons pour la gêne occasionnée."
        ),
        color=discord.Color.dark_red(),
    )
    no_player_ignored_embed = discord.Embed(
        title="Aucun joueur n'a été ignoré pendant le recrutement.", color=discord.Color.blurple()
    )

    def __init__(
        self,
        watch_clans: WatchClansTable,
        blacklisted_players: BlacklistedPlayersTable,
        leaving_players: LeavingPlayersTable,
        fold_recruitment: FoldRecruitmentTable,
        wargaming_api: WargamingApi,
        tomato_api: TomatoApi,
        wot_api: WotApi,
    ) -> None:
        self.watch_clans = watch_clans
        self.blacklisted_players = blacklisted_players
        self.leaving_players = leaving_players
        self.fold_recruitment = fold_recruitment
        self.wargaming_api = wargaming_api
        self.tomato_api = tomato_api
        self.wot_api = wot_api

        self.channel: Any = None
        self.min_wn8 = 0
        self.min_battles = 0

        self.posted: Dict[int, _PostedPlayer] = {}
        self.ignored_players: List[str] = []
        self.no_player_found = True
        self.no_player_meet_criteria = True
        self.only_error = True

    async def initialise(self, channel: Any) -> None:
        self.channel = channel
        limits = await self.fold_recruitment.get_limits()
        self.min_wn8 = limits.wn8_min
        self.min_battles = limits.battles_min

    def reset(self) -> None:
        self.posted.clear()
        self.ignored_players = []
        self.no_player_found = True
        self.no_player_meet_criteria = True
        self.only_error = True

    async def run_cycle(self) -> None:
        """Scan every watched clan and post the outcome of the scan."""

        if self.channel is None:
            logger.warning("Fold recruitment channel is not available, skipping the cycle")
            return

        self.reset()
        clans = await self.watch_clans.get_all()
        logger.info("🔎 Fold recruitment started for %d clan(s)", len(clans))
        for clan in clans:
            await self.fetch_clan_activity(clan)

        if self.no_player_found:
            await self.send_message_no_player_found()
        elif self.no_player_meet_criteria:
            await self.send_message_no_player_meet_criteria()
        elif self.only_error:
            await self.send_message_only_error()
        else:
            await self.check_player_activity()
            await self.send_list_ignored_player()

    async def fetch_clan_activity(self, clan: Clan) -> None:
        if not clan.image_url:
            try:
                response = await self.wot_api.clans_list(clan.name)
                clan.image_url = ((response.get("data") or [{}])[0].get("emblems") or {}).get("x64", {}).get("portal")
                if clan.image_url:
                    await self.watch_clans.update_clan(clan)
            except _API_ERRORS as exc:
                logger.error("An error occurred while fetching the image of the clan %s: %s", clan.name, exc)

        try:
            feed = await self.wargaming_api.clans_newsfeed(clan.id)
            await self._manage_clan_activities(clan, feed)
        except _API_ERRORS as exc:
            logger.error("An error occurred while fetching the activity of the clan %s: %s", clan.name, exc)
            return

        self.only_error = False

    async def _manage_clan_activities(self, clan: Clan, feed: Dict[str, Any]) -> None:
        players, extracted = extract_players_from_feed(feed, clan)
        logger.debug("%d players leaves the clan %s", len(players), clan.name)

        for player in players:
            await self._send_player(player, clan)
            await self.leaving_players.add_player(player.id)

        if extracted:
            self.no_player_found = False
            clan.last_activity = extracted[0]["created_at"]
            await self.watch_clans.update_clan(clan)

    async def _send_player(self, player: LeavingPlayer, clan: Clan) -> None:
        try:
            overall = (await self.tomato_api.player_overall(player.id)).get("data") or {}
            if overall.get("overallWN8", 0) < self.min_wn8 or overall.get("battles", 0) < self.min_battles:
                logger.info("The following player %s doesn't meet criteria", player.name)
                self.ignored_players.append(player.name)
                return
        except _API_ERRORS as exc:
            logger.error("Unable to check the statistics of %s on Tomato.gg: %s", player.name, exc)

        self.no_player_meet_criteria = False
        blacklisted = next(iter(await self.blacklisted_players.get_player(player.id)), None)

        description = transform_to_code("Le joueur suivant {} a quitté {}.", player.name, clan.name)
        if blacklisted is not None:
            description += transform_to_code(
                "\n\nLe joueur suivant a été mis sur liste noire pour la raison suivante : {}", blacklisted.reason
            )

        embed = discord.Embed(
            title="Joueur sur liste noire détecté" if blacklisted else "Nouveau joueur pouvant être recruté",
            description=description,
            color=discord.Color.red() if blacklisted else discord.Color.blurple(),
        )
        embed.set_author(name=f"{clan.name} ↗", icon_url=clan.image_url, url=wargaming_clan_url(clan.id))
        embed.add_field(name="Wargaming", value=f"[Redirection ↗]({wargaming_player_url(player.name, player.id)})", inline=True)
        embed.add_field(name="TomatoGG", value=f"[Redirection ↗]({tomato_player_url(player.name, player.id)})", inline=True)
        embed.add_field(name="Wot Life", value=f"[Redirection ↗]({wot_life_player_url(player.name, player.id)})", inline=True)

        message = await self.channel.send(embed=embed)
        self.posted[player.id] = _PostedPlayer(message=message, name=player.name, is_blacklisted=blacklisted is not None)

    async def check_player_activity(self) -> None:
        for player_id, posted in self.posted.items():
            if posted.is_blacklisted:
                continue

            logger.debug("Checking recent activity of %s", posted.name)
            embed = posted.message.embeds[0].copy()
            embed.colour = discord.Color.yellow()

            results = [await self.check_recent_activity(embed, player_id, posted.name, kind) for kind in ACTIVITY_TYPES]
            if all(has_no_battle for _, has_no_battle in results):
                self.ignored_players.append(posted.name)
                await posted.message.delete()
            elif any(is_under for is_under, _ in results):
                await posted.message.edit(embed=embed)

    async def check_recent_activity(
        self, embed: discord.Embed, player_id: int, player_name: str, battle_type: str
    ) -> Tuple[bool, bool]:
        """Flag ``embed`` when the player is under the 28 days limit of ``battle_type``.

        Returns ``(is_under_limit, has_no_battle)``.
        """

        limit = await self.fold_recruitment.get_limit_by_type(battle_type)
        try:
            accounts = await self.wargaming_api.accounts(player_id, player_name, battle_type, 28)
            battles: Optional[int] = accounts["accounts"][0]["table_fields"]["battles_count"]
        except (*_API_ERRORS, KeyError, IndexError, TypeError) as exc:
            logger.error("Unable to check the %s activity of %s: %s", battle_type, player_name, exc)
            return False, False

        if battles is not None and battles >= limit:
            return False, False

        label = BATTLE_TYPE_LABELS[battle_type]
        embed.add_field(
            name=label,
            value=transform_to_code(
                "Le joueur a fait moins de {} batailles en {} au cours des 28 derniers jours (actuellement {})",
                limit,
                label.lower(),
                battles or 0,
            ),
        )
        logger.info("The following player %s have low recent activity in %s (detected %s)", player_name, battle_type, battles)
        return True, not battles

    async def send_message_no_player_found(self) -> None:
        logger.info("No player found during the fold recruitment !")
        await self.channel.send(embed=self.no_player_found_embed)

    async def send_message_no_player_meet_criteria(self) -> None:
        logger.info("No player meet the clan criteria during the fold recruitment !")
        await self.channel.send(embed=self.no_player_meet_criteria_embed)

    async def send_message_only_error(self) -> None:
        logger.warning("All calls to api failed !")
        await self.channel.send(embed=self.only_error_embed)

    async def send_list_ignored_player(self) -> None:
        if not self.ignored_players:
            logger.info("No players ignored during the fold recruitment !")
            await self.channel.send(embed=self.no_player_ignored_embed)
            return

        logger.info("There are %d players ignored", len(self.ignored_players))
        await self.channel.send(embed=ignored_players_embed(self.ignored_players))


def ignored_players_embed(names: Sequence[str], page_size: int = 10) -> discord.Embed:
    embed = discord.Embed(title="Liste des joueurs ignorés", color=discord.Color.blue())
    for page, start in enumerate(range(0, len(names), page_size), start=1):
        embed.add_field(
            name=transform_to_code("Page n°{}", page),
            value="- " + ";\n- ".join(names[start : start + page_size]) + ";",
            inline=True,
        )
    return embed


__all__ = [
    "ACTIVITY_TYPES",
    "BATTLE_TYPE_LABELS",
    "FoldRecruitmentEngine",
    "extract_players_from_feed",
    "ignored_players_embed",
]
