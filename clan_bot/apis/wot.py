from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

import aiohttp

from .base import ApiClient, ApiError


logger = logging.getLogger(__name__)

TANKOPEDIA_FIELDS = "name,images.big_icon,default_profile.ammo.damage,default_profile.ammo.type"
TANKOPEDIA_TYPES = "heavyTank,AT-SPG,mediumTank,lightTank"


class WotApi(ApiClient):
    """Client for the official api.worldoftanks.eu endpoints.

    Every request carries the ``application_id``. Empty answers are retried
    up to ``max_attempts`` times; a ``status: error`` payload raises
    :class:`ApiError` with the JSON error as message.
    """

    base_url = "https://api.worldoftanks.eu"
    max_attempts = 5

    def __init__(
        self,
        application_id: str,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(session, timeout=timeout)
        self.application_id = application_id

    def _params(self, params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
        query = super()._params(params)
        query["application_id"] = self.application_id
        return query

    async def tankopedia_vehicles(self, page_no: Optional[int] = None, limit: int = 100) -> Dict[str, Any]:
        """One page of tier X vehicles with their name, icon and default ammunition."""

        return await self._get_checked(
            "/wot/encyclopedia/vehicles/",
            {
                "tier": 10,
                "language": "fr",
                "fields": TANKOPEDIA_FIELDS,
                "type": TANKOPEDIA_TYPES,
                "limit": limit,
                "page_no": page_no,
            },
        )

    async def clans_list(self, clan_name: str) -> Dict[str, Any]:
        return await self._get_checked("/wot/clans/list/", {"fields": "emblems.x64", "search": clan_name})

    async def account_info(self, player_id: int) -> Dict[str, Any]:
        return await self._get_checked("/wot/account/info/", {"account_id": player_id, "fields": "clan_id"})

    async def account_list(self, player_name: str) -> Dict[str, Any]:
        return await self._get_checked("/wot/account/list/", {"search": player_name})

    async def clans_info(self, clan_id: int) -> Dict[str, Any]:
        return await self._get_checked("/wot/clans/info/", {"clan_id": clan_id})

    async def _get_checked(self, endpoint: str, params: Mapping[str, Any]) -> Dict[str, Any]:
        data: Any = None
        for attempt in range(1, self.max_attempts + 1):
            data = await self._get_data(endpoint, params)
            if data:
                break
            logger.warning("Empty answer from %s (attempt %d/%d)", endpoint, attempt, self.max_attempts)

        if not data:
            raise ApiError(f"No data received from {endpoint}")
        if data.get("status") == "error":
            raise ApiError(json.dumps(data.get("error")))
        return data


__all__ = ["WotApi"]
