from __future__ import annotations

from typing import Any, Dict

from .base import ApiClient, ApiError


class TomatoApi(ApiClient):
    base_url = "https://api.tomato.gg"

    async def player_overall(self, player_id: int) -> Dict[str, Any]:
        """Overall statistics of a player; ``data`` holds ``overallWN8`` and ``battles``."""

        payload = await self._get_data(f"/dev/api-v2/player/overall/eu/{player_id}")
        meta = (payload or {}).get("meta", {})
        if meta.get("status") == "error":
            raise ApiError(f"Failed to call Tomato api with error `{meta.get('message')}`")
        return payload


__all__ = ["TomatoApi"]
