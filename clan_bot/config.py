"""Configuration for ClanBot (env-backed)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import time
from typing import Optional, Set


def _split_ints(value: str) -> Set[int]:
    ids: Set[int] = set()
    for chunk in (value or "").replace(";", ",").split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        try:
            ids.add(int(chunk))
        except ValueError:
            continue
    return ids


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _flag_env(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on", "dev"}


def parse_clock(value: str, default: time) -> time:
    """Parse ``HH:MM`` into a :class:`datetime.time`, falling back to ``default``."""

    try:
        hours, minutes = (int(part) for part in value.strip().split(":", 1))
        return time(hour=hours, minute=minutes)
    except (ValueError, AttributeError):
        return default


@dataclass(slots=True)
class ClanBotConfig:
    discord_token: str
    wot_application_id: str = ""
    db_path: str = "data/clanbot.sqlite3"
    feature_path: str = "data/feature.json"
    dev_mode: bool = False
    dev_guild_id: Optional[int] = None
    dev_channel_id: Optional[int] = None
    clan_id: int = 500312605
    news_interval_minutes: int = 10
    fold_recruitment_interval_minutes: int = 60
    trivia_daily_time: time = time(hour=0, minute=5)
    trivia_reminder_time: time = time(hour=20, minute=0)
    timezone: str = "Europe/Paris"
    test_guild_ids: Set[int] = field(default_factory=set)

    @classmethod
    def from_env(cls) -> "ClanBotConfig":
        token = os.getenv("DISCORD_TOKEN", "").strip()
        if not token:
            raise RuntimeError("DISCORD_TOKEN is required to run the bot")
        dev_guild = _int_env("DEV_GUILD_ID", 0)
        dev_channel = _int_env("DEV_CHANNEL_ID", 0)
        return cls(
            discord_token=token,
            wot_application_id=os.getenv("WOT_APPLICATION_ID", "").strip(),
            db_path=os.getenv("CLANBOT_DB_PATH", "data/clanbot.sqlite3").strip() or "data/clanbot.sqlite3",
            feature_path=os.getenv("CLANBOT_FEATURE_PATH", "data/feature.json").strip() or "data/feature.json",
            dev_mode=_flag_env("CLANBOT_DEV_MODE"),
            dev_guild_id=dev_guild or None,
            dev_channel_id=dev_channel or None,
            clan_id=_int_env("CLAN_ID", 500312605),
            news_interval_minutes=max(1, _int_env("NEWS_INTERVAL_MINUTES", 10)),
            fold_recruitment_interval_minutes=max(1, _int_env("FOLD_RECRUITMENT_INTERVAL_MINUTES", 60)),
            trivia_daily_time=parse_clock(os.getenv("TRIVIA_DAILY_TIME", ""), time(hour=0, minute=5)),
            trivia_reminder_time=parse_clock(os.getenv("TRIVIA_REMINDER_TIME", ""), time(hour=20, minute=0)),
            timezone=os.getenv("CLANBOT_TIMEZONE", "Europe/Paris").strip() or "Europe/Paris",
            test_guild_ids=_split_ints(os.getenv("TEST_GUILDS", "")),
        )


__all__ = ["ClanBotConfig", "parse_clock"]
