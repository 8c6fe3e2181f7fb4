from __future__ import annotations

from pathlib import Path
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from clan_bot.apis.base import ApiError  # noqa: E402
from clan_bot.core.database import DatabaseEngine  # noqa: E402
from clan_bot.core.tables import Tables  # noqa: E402
from clan_bot.engines.detected_clans import DetectedClansEngine  # noqa: E402


OWN_CLAN = 1


class FakeWotApi:
    def __init__(self, accounts, tags) -> None:
        self.accounts = accounts
        self.tags = tags

    async def account_info(self, player_id: int):
        account = self.accounts[player_id]
        if isinstance(account, Exception):
            raise account
        return {"status": "ok", "data": {str(player_id): account}}

    async def clans_info(self, clan_id: int):
        return {"status": "ok", "data": {str(clan_id): {"tag": self.tags[clan_id]}}}


class FakeWargamingApi:
    def __init__(self, languages) -> None:
        self.languages = languages

    async def clan_info(self, clan_id: int):
        languages = self.languages[clan_id]
        if isinstance(languages, Exception):
            raise languages
        return {"clanview": {"profiles": [{"type": "clan", "languages_list": languages}]}}


class FakeChannel:
    def __init__(self) -> None:
        self.embeds = []

    async def send(self, *, embed) -> None:
        self.embeds.append(embed)


@pytest.mark.asyncio
async def test_search_keeps_new_french_clans_only(tmp_path: Path) -> None:
    database = DatabaseEngine(str(tmp_path / "clans.sqlite3"))
    await database.initialize()
    try:
        tables = Tables.create(database)
        await tables.watch_clans.add_clan(20, "WATCHED")
        for player_id in (101, 102, 103, 104, 105, 106, 107):
            await tables.leaving_players.add_player(player_id)

        accounts = {
            101: {"clan_id": 10},
            102: {"clan_id": 11},
            103: {"clan_id": 20},
            104: {"clan_id": OWN_CLAN},
            105: None,
            106: {"clan_id": None},
            107: ApiError("timeout"),
        }
        languages = {10: ["fr", "en"], 11: ["en"]}
        engine = DetectedClansEngine(
            tables.leaving_players,
            tables.potential_clans,
            tables.watch_clans,
            FakeWotApi(accounts, {10: "FRA"}),  # type: ignore[arg-type]
            FakeWargamingApi(languages),  # type: ignore[arg-type]
            clan_id=OWN_CLAN,
        )

        assert await engine.search_clans() == 1
        assert await tables.potential_clans.get_all() == [10]
        assert await tables.leaving_players.get_all() == [107]

        channel = FakeChannel()
        embeds = await engine.report_clans(channel)

        assert channel.embeds == embeds
        assert [field.name for field in embeds[0].fields] == ["FRA"]
        assert "wot-life.com/eu/clan/FRA-10/" in embeds[0].fields[0].value
        assert await tables.potential_clans.get_all() == []
    finally:
        await database.close()


@pytest.mark.asyncio
async def test_clan_info_failure_counts_as_french(tmp_path: Path) -> None:
    database = DatabaseEngine(str(tmp_path / "clans.sqlite3"))
    await database.initialize()
    try:
        tables = Tables.create(database)
        engine = DetectedClansEngine(
            tables.leaving_players,
            tables.potential_clans,
            tables.watch_clans,
            FakeWotApi({}, {}),  # type: ignore[arg-type]
            FakeWargamingApi({30: ApiError("down")}),  # type: ignore[arg-type]
            clan_id=OWN_CLAN,
        )
        assert await engine.is_french_clan(30)
    finally:
        await database.close()


@pytest.mark.asyncio
async def test_nothing_reported_without_detected_clans(tmp_path: Path) -> None:
    database = DatabaseEngine(str(tmp_path / "clans.sqlite3"))
    await database.initialize()
    try:
        tables = Tables.create(database)
        engine = DetectedClansEngine(
            tables.leaving_players,
            tables.potential_clans,
            tables.watch_clans,
            FakeWotApi({}, {}),  # type: ignore[arg-type]
            FakeWargamingApi({}),  # type: ignore[arg-type]
            clan_id=OWN_CLAN,
        )
        channel = FakeChannel()
        assert await engine.report_clans(channel) == []
        assert channel.embeds == []
    finally:
        await database.close()
