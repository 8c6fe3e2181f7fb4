from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional


logger = logging.getLogger(__name__)

_INITIAL_VALUE: Dict[str, Any] = {"auto_disconnect": "", "auto_reply": []}


class FeatureState:
    """Auto-disconnect target and auto-reply rules, persisted to ``feature.json``.

    Each auto-reply rule is ``{"activate_for": <user id>, "reply_to": <user id>}``:
    when ``reply_to`` mentions ``activate_for``, the bot answers ``reply_to``.
    The whole document is rewritten after every mutation.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or "data/feature.json")
        self._lock = asyncio.Lock()
        self._data: Dict[str, Any] = json.loads(json.dumps(_INITIAL_VALUE))

    async def load(self) -> None:
        if not self.path.exists():
            await self._persist()
            return
        text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        try:
            loaded = json.loads(text) if text else {}
        except json.JSONDecodeError:
            logger.warning("Invalid feature file %s, starting from the initial value", self.path)
            loaded = {}
        self._data = {key: loaded.get(key, default) for key, default in _INITIAL_VALUE.items()}
        logger.info("Feature state loaded from %s", self.path)

    @property
    def auto_disconnect(self) -> Optional[int]:
        raw = self._data.get("auto_disconnect")
        return int(raw) if raw else None

    async def set_auto_disconnect(self, target_id: Optional[int]) -> None:
        async with self._lock:
            self._data["auto_disconnect"] = str(target_id) if target_id else ""
            await self._persist()

    @property
    def auto_replies(self) -> List[Dict[str, int]]:
        return [
            {"activate_for": int(item["activate_for"]), "reply_to": int(item["reply_to"])}
            for item in self._data.get("auto_reply", [])
        ]

    def has_auto_reply(self, activate_for: int, reply_to: int) -> bool:
        return any(
            item["activate_for"] == activate_for and item["reply_to"] == reply_to for item in self.auto_replies
        )

    def replies_for(self, reply_to: int) -> List[Dict[str, int]]:
        return [item for item in self.auto_replies if item["reply_to"] == reply_to]

    async def add_auto_reply(self, activate_for: int, reply_to: int) -> bool:
        async with self._lock:
            if self.has_auto_reply(activate_for, reply_to):
                return False
            self._data["auto_reply"].append({"activate_for": str(activate_for), "reply_to": str(reply_to)})
            await self._persist()
            return True

    async def delete_auto_reply(self, activate_for: int, reply_to: int) -> bool:
        async with self._lock:
            remaining = [
                item
                for item in self._data["auto_reply"]
                if not (int(item["activate_for"]) == activate_for and int(item["reply_to"]) == reply_to)
            ]
            if len(remaining) == len(self._data["auto_reply"]):
                logger.warning("No auto-reply for %s to reply to %s", activate_for, reply_to)
                return False
            self._data["auto_reply"] = remaining
            await self._persist()
            return True

    async def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(self._data, indent=2)
        await asyncio.to_thread(self.path.write_text, text, encoding="utf-8")


__all__ = ["FeatureState"]
