from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from .base import ApiClient


BATTLE_TYPES = ("random", "fort_battles", "fort_sorties", "global_map")

Timeframe = Union[int, str]


class WargamingApi(ApiClient):
    """Client for the public clan pages of eu.wargaming.net.

    Battle types: ``random`` (batailles aléatoires), ``fort_battles``
    (incursions), ``fort_sorties`` (escarmouches) and ``global_map``
    (clan wars). Timeframes are ``28`` days or ``"all"``.
    """

    base_url = "https://eu.wargaming.net"

    async def clans_newsfeed(self, clan_id: int, date_until: Optional[str] = None) -> Dict[str, Any]:
        """Clan events (joins, departures, role changes) up to ``date_until``."""

        until = date_until or datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")
        return await self._get_data(
            f"/clans/wot/{clan_id}/newsfeed/api/events/",
            {"offset": 3600, "date_until": until},
        )

    async def accounts(
        self,
        player_id: int,
        player_name: str,
        battle_type: str,
        timeframe: Timeframe = 28,
    ) -> Dict[str, Any]:
        return await self._get_data(
            "/clans/wot/search/api/accounts/",
            {
                "limit": 10,
                "offset": 0,
                "search": player_name,
                "account_id": player_id,
                "battle_type": battle_type,
                "timeframe": timeframe,
            },
        )

    async def players(self, clan_id: int, battle_type: str, timeframe: Timeframe = 28) -> Dict[str, Any]:
        return await self._get_data(
            f"/clans/wot/{clan_id}/api/players/",
            {"battle_type": battle_type, "timeframe": timeframe},
        )

    async def clan_info(self, clan_id: int) -> Dict[str, Any]:
        return await self._get_data(f"/clans/wot/{clan_id}/api/claninfo/")


__all__ = ["BATTLE_TYPES", "WargamingApi"]
