from __future__ import annotations

import asyncio
import csv
import io
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import discord

from ..apis.base import ApiError
from ..apis.wargaming import WargamingApi
from ..core.text_utils import escape, transform_to_code


logger = logging.getLogger(__name__)

ACTIVITY_BATTLE_TYPES = ("random", "fort_sorties", "fort_battles", "global_map")
CSV_HEADERS = ("Pseudo", "Aleatoire", "Escarmouche", "Incursion", "Clan War", "Total format clan")
CSV_FILENAME = "clan-player-activity.csv"
MIN_DAYS_IN_CLAN = 30
MAX_FIELDS = 25


@dataclass(slots=True)
class PlayerActivity:
    name: str
    random: int
    fort_sorties: int
    fort_battles: int
    global_map: int

    @property
    def total(self) -> int:
        """Battles played in clan formats; random battles are not counted."""

        return self.fort_sorties + self.fort_battles + self.global_map


def filter_players(statistics: Dict[str, Dict[str, Any]], minimum_battles: int) -> List[PlayerActivity]:
    """Members of more than 30 days whose clan format battles are under ``minimum_battles``.

    ``statistics`` maps each battle type to the ``players`` API payload.
    """

    def battles_by_name(battle_type: str) -> Dict[str, int]:
        return {item["name"]: int(item.get("battles_count") or 0) for item in statistics[battle_type].get("items", [])}

    fort_sorties = battles_by_name("fort_sorties")
    fort_battles = battles_by_name("fort_battles")
    global_map = battles_by_name("global_map")

    players = [
        PlayerActivity(
            name=item["name"],
            random=int(item.get("battles_count") or 0),
            fort_sorties=fort_sorties.get(item["name"], 0),
            fort_battles=fort_battles.get(item["name"], 0),
            global_map=global_map.get(item["name"], 0),
        )
        for item in statistics["random"].get("items", [])
        if int(item.get("days_in_clan") or 0) > MIN_DAYS_IN_CLAN
    ]
    return [player for player in players if player.total < minimum_battles]


def build_embeds(players: Sequence[PlayerActivity], minimum_battles: int) -> List[discord.Embed]:
    embeds: List[discord.Embed] = []
    for start in range(0, max(len(players), 1), MAX_FIELDS):
        embed = discord.Embed(
            title=transform_to_code("Liste des joueurs avec une activité en dessous de {} batailles", minimum_battles),
            description=(
                "Si un joueur est affiché, cela signifie que la somme des clan war, des escarmouches et des "
                "incursions est inférieure au nombre fourni ! ⚠️ Les batailles aléatoires ne sont pas pris en "
                "compte dans le calcul du total !"
            ),
            color=discord.Color.fuchsia(),
        )
        for player in players[start : start + MAX_FIELDS]:
            embed.add_field(
                name=escape(player.name),
                value=transform_to_code(
                    "Aléatoires : {}, Escarmouches : {}, Incursions : {}, CW : {}, Total format clan : {}",
                    player.random,
                    player.fort_sorties,
                    player.fort_battles,
                    player.global_map,
                    player.total,
                ),
                inline=True,
            )
        embeds.append(embed)
    return embeds


def build_csv(players: Sequence[PlayerActivity]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=";", lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for player in players:
        writer.writerow(
            [player.name, player.random, player.fort_sorties, player.fort_battles, player.global_map, player.total]
        )
    return buffer.getvalue()


def csv_file(players: Sequence[PlayerActivity]) -> discord.File:
    return discord.File(io.BytesIO(build_csv(players).encode("utf-8")), filename=CSV_FILENAME)


class ClanActivityReport:
    """Activity of the clan members over the last 28 days."""

    def __init__(self, wargaming_api: WargamingApi, *, clan_id: int) -> None:
        self.wargaming_api = wargaming_api
        self.clan_id = clan_id

    async def fetch_statistics(self) -> Dict[str, Dict[str, Any]]:
        """Players payload per battle type; raises :class:`ApiError` if any is not ``ok``."""

        responses = await asyncio.gather(
            *(self.wargaming_api.players(self.clan_id, battle_type, 28) for battle_type in ACTIVITY_BATTLE_TYPES)
        )
        statistics = dict(zip(ACTIVITY_BATTLE_TYPES, responses))
        failed = [battle_type for battle_type, payload in statistics.items() if (payload or {}).get("status") != "ok"]
        if failed:
            raise ApiError(f"Failed to fetch the clan players for {', '.join(failed)}")
        return statistics

    async def players_under_activity(self, minimum_battles: int) -> List[PlayerActivity]:
        players = filter_players(await self.fetch_statistics(), minimum_battles)
        logger.info("%d player(s) under %d battles in clan formats", len(players), minimum_battles)
        return players


__all__ = [
    "CSV_FILENAME",
    "CSV_HEADERS",
    "ClanActivityReport",
    "PlayerActivity",
    "build_csv",
    "build_embeds",
    "csv_file",
    "filter_players",
]
