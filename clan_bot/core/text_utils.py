"""String, URL and formatting helpers used by the embeds."""

from __future__ import annotations

import re
from typing import Any, Dict


WOT_LIFE_CLAN = "https://fr.wot-life.com/eu/clan"
WOT_LIFE_PLAYER = "https://fr.wot-life.com/eu/player/"
WARGAMING_CLAN = "https://eu.wargaming.net/clans/wot"
WARGAMING_PLAYER = (
    "https://eu.wargaming.net/clans/wot/search/#wgsearch&type=accounts&limit=10"
    "&accounts-battle_type=random&accounts-timeframe=all"
)
TOMATO_PLAYER = "https://tomato.gg/stats/EU/"

MEDALS = ("🥇", "🥈", "🥉")

SHELL_NAMES: Dict[str, str] = {
    "ARMOR_PIERCING": "AP",
    "ARMOR_PIERCING_CR": "APCR",
    "HIGH_EXPLOSIVE": "HE",
    "HOLLOW_CHARGE": "HEAT",
}

_PLACEHOLDER = re.compile(r"\{\}")


def transform_to_code(text: str, *args: Any) -> str:
    """Replace each ``{}`` of ``text`` with the matching argument in backticks.

    >>> transform_to_code("The player {} win the tournament", "MusaRoy")
    'The player `MusaRoy` win the tournament'
    """

    if not args:
        return text
    if len(_PLACEHOLDER.findall(text)) != len(args):
        raise ValueError("Mismatch between the number of placeholders and the number of code snippets provided.")
    values = iter(args)
    return _PLACEHOLDER.sub(lambda _match: f"`{next(values)}`", text)


def sanitize(text: str) -> str:
    if not text:
        return text
    return re.sub(r"[\"']", "", text.strip())


def escape(text: str) -> str:
    if not text:
        return text
    return text.strip().replace('"', '\\"').replace("'", "\\'")


def shell_name(shell_type: str) -> str:
    return SHELL_NAMES.get(shell_type, shell_type)


def wot_life_clan_url(clan_name: str, clan_id: int) -> str:
    return f"{WOT_LIFE_CLAN}/{clan_name}-{clan_id}/"


def wot_life_player_url(player_name: str, player_id: int) -> str:
    return f"{WOT_LIFE_PLAYER}{player_name}-{player_id}/"


def wargaming_clan_url(clan_id: int) -> str:
    return f"{WARGAMING_CLAN}/{clan_id}/"


def wargaming_player_url(player_name: str, player_id: int) -> str:
    return f"{WARGAMING_PLAYER}&search={player_name}&account_id={player_id}"


def tomato_player_url(player_name: str, player_id: int) -> str:
    return f"{TOMATO_PLAYER}{player_name}-{player_id}"


def format_response_time(milliseconds: int) -> str:
    """Human readable answer time: ``"2.35 secondes"`` or ``"1:05 minutes"``."""

    seconds = milliseconds / 1000
    if seconds > 60:
        minutes, rest = divmod(int(seconds), 60)
        return f"{minutes}:{rest:02d} minutes"
    return f"{seconds:.2f} secondes"


__all__ = [
    "MEDALS",
    "SHELL_NAMES",
    "escape",
    "format_response_time",
    "sanitize",
    "shell_name",
    "tomato_player_url",
    "transform_to_code",
    "wargaming_clan_url",
    "wargaming_player_url",
    "wot_life_clan_url",
    "wot_life_player_url",
]
