from __future__ import annotations

from pathlib import Path
import sys

import discord
import pytest


REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from clan_bot.apis.base import ApiError  # noqa: E402
from clan_bot.core.database import DatabaseEngine  # noqa: E402
from clan_bot.core.models import BlacklistedPlayer, Clan  # noqa: E402
from clan_bot.core.tables import Tables  # noqa: E402
from clan_bot.engines.fold_recruitment import (  # noqa: E402
    FoldRecruitmentEngine,
    extract_players_from_feed,
    ignored_players_embed,
)


FEED = {
    "items": [
        {
            "subtype": "leave_clan",
            "created_at": "2024-02-01T10:00:00+00:00",
            "accounts_ids": [1, 2],
            "accounts_info": {"1": {"name": "GoodTanker"}, "2": {"name": "Beginner"}},
        },
        {
            "subtype": "join_clan",
            "created_at": "2024-01-20T10:00:00+00:00",
            "accounts_ids": [3],
            "accounts_info": {"3": {"name": "Newcomer"}},
        },
        {
            "subtype": "leave_clan",
            "created_at": "2023-12-01T10:00:00+00:00",
            "accounts_ids": [4],
            "accounts_info": {"4": {"name": "OldNews"}},
        },
    ]
}


class FakeMessage:
    def __init__(self, embed: discord.Embed) -> None:
        self.embeds = [embed]
        self.edited = None
        self.deleted = False

    async def edit(self, *, embed: discord.Embed) -> None:
        self.edited = embed

    async def delete(self) -> None:
        self.deleted = True


class FakeChannel:
    def __init__(self) -> None:
        self.messages = []

    async def send(self, *, embed: discord.Embed) -> FakeMessage:
        message = FakeMessage(embed)
        self.messages.append(message)
        return message


class FakeWargamingApi:
    def __init__(self, feed, battles) -> None:
        self.feed = feed
        self.battles = battles

    async def clans_newsfeed(self, clan_id: int):
        if isinstance(self.feed, Exception):
            raise self.feed
        return self.feed

    async def accounts(self, player_id: int, player_name: str, battle_type: str, timeframe=28):
        return {"accounts": [{"table_fields": {"battles_count": self.battles[(player_id, battle_type)]}}]}


class FakeTomatoApi:
    def __init__(self, stats) -> None:
        self.stats = stats

    async def player_overall(self, player_id: int):
        if player_id not in self.stats:
            raise ApiError("Failed to call Tomato api with error `not found`")
        return {"meta": {"status": "ok"}, "data": self.stats[player_id]}


class FakeWotApi:
    def __init__(self) -> None:
        self.searched = []

    async def clans_list(self, clan_name: str):
        self.searched.append(clan_name)
        return {"data": [{"emblems": {"x64": {"portal": "https://example.org/emblem.png"}}}]}


async def _engine(tmp_path: Path, wargaming, tomato) -> tuple[DatabaseEngine, Tables, FoldRecruitmentEngine, FakeChannel]:
    database = DatabaseEngine(str(tmp_path / "fold.sqlite3"))
    await database.initialize()
    tables = Tables.create(database)
    await tables.watch_clans.add_clan(500, "FRENCH", "2024-01-01T00:00:00+00:00")
    engine = FoldRecruitmentEngine(
        tables.watch_clans,
        tables.blacklisted_players,
        tables.leaving_players,
        tables.fold_recruitment,
        wargaming,
        tomato,
        FakeWotApi(),
    )
    channel = FakeChannel()
    await engine.initialise(channel)
    return database, tables, engine, channel


def test_extract_only_departures_after_last_activity() -> None:
    clan = Clan(id=500, name="FRENCH", last_activity="2024-01-01T00:00:00+00:00")
    players, events = extract_players_from_feed(FEED, clan)

    assert [(player.id, player.name) for player in players] == [(1, "GoodTanker"), (2, "Beginner")]
    assert events == [FEED["items"][0]]


def test_extract_without_last_activity_keeps_every_departure() -> None:
    players, events = extract_players_from_feed(FEED, Clan(id=500, name="FRENCH"))

    assert [player.name for player in players] == ["GoodTanker", "Beginner", "OldNews"]
    assert len(events) == 2


def test_ignored_players_are_paged_by_ten() -> None:
    embed = ignored_players_embed([f"player{index}" for index in range(12)])

    assert len(embed.fields) == 2
    assert embed.fields[0].name == "Page n°`1`"
    assert embed.fields[1].value == "- player10;\n- player11;"


@pytest.mark.asyncio
async def test_cycle_posts_candidates_and_flags_low_activity(tmp_path: Path) -> None:
    battles = {(1, "random"): 200, (1, "fort_sorties"): 5, (1, "fort_battles"): 30}
    wargaming = FakeWargamingApi(FEED, battles)
    tomato = FakeTomatoApi({1: {"overallWN8": 2500, "battles": 25000}, 2: {"overallWN8": 900, "battles": 3000}})
    database, tables, engine, channel = await _engine(tmp_path, wargaming, tomato)
    try:
        await engine.run_cycle()

        candidate, ignored = channel.messages
        assert candidate.embeds[0].title == "Nouveau joueur pouvant être recruté"
        assert "GoodTanker" in candidate.embeds[0].description
        assert candidate.edited is not None
        assert candidate.edited.colour == discord.Color.yellow()
        assert [field.name for field in candidate.edited.fields][-1] == "Escarmouches"
        assert not candidate.deleted

        assert ignored.embeds[0].title == "Liste des joueurs ignorés"
        assert "Beginner" in ignored.embeds[0].fields[0].value

        assert sorted(await tables.leaving_players.get_all()) == [1, 2]
        clan = (await tables.watch_clans.select_clan("FRENCH"))[0]
        assert clan.last_activity == "2024-02-01T10:00:00+00:00"
        assert clan.image_url == "https://example.org/emblem.png"
    finally:
        await database.close()


@pytest.mark.asyncio
async def test_inactive_candidate_is_removed(tmp_path: Path) -> None:
    battles = {(1, kind): 0 for kind in ("random", "fort_sorties", "fort_battles")}
    feed = {"items": [FEED["items"][0] | {"accounts_ids": [1]}]}
    tomato = FakeTomatoApi({1: {"overallWN8": 2500, "battles": 25000}})
    database, _, engine, channel = await _engine(tmp_path, FakeWargamingApi(feed, battles), tomato)
    try:
        await engine.run_cycle()

        candidate, ignored = channel.messages
        assert candidate.deleted
        assert "GoodTanker" in ignored.embeds[0].fields[0].value
    finally:
        await database.close()


@pytest.mark.asyncio
async def test_blacklisted_player_is_flagged_and_not_checked(tmp_path: Path) -> None:
    feed = {"items": [FEED["items"][0] | {"accounts_ids": [1]}]}
    tomato = FakeTomatoApi({})
    database, tables, engine, channel = await _engine(tmp_path, FakeWargamingApi(feed, {}), tomato)
    try:
        await tables.blacklisted_players.add_player(BlacklistedPlayer(id=1, name="GoodTanker", reason="triche"))
        await engine.run_cycle()

        candidate, ignored = channel.messages
        assert candidate.embeds[0].title == "Joueur sur liste noire détecté"
        assert "`triche`" in candidate.embeds[0].description
        assert candidate.edited is None
        assert ignored.embeds[0] is FoldRecruitmentEngine.no_player_ignored_embed
    finally:
        await database.close()


@pytest.mark.asyncio
async def test_cycle_without_departures(tmp_path: Path) -> None:
    database, _, engine, channel = await _engine(tmp_path, FakeWargamingApi({"items": []}, {}), FakeTomatoApi({}))
    try:
        await engine.run_cycle()
        assert len(channel.messages) == 1
        assert channel.messages[0].embeds[0] is FoldRecruitmentEngine.no_player_found_embed
    finally:
        await database.close()


@pytest.mark.asyncio
async def test_cycle_without_matching_player(tmp_path: Path) -> None:
    feed = {"items": [FEED["items"][0] | {"accounts_ids": [2]}]}
    tomato = FakeTomatoApi({2: {"overallWN8": 900, "battles": 3000}})
    database, _, engine, channel = await _engine(tmp_path, FakeWargamingApi(feed, {}), tomato)
    try:
        await engine.run_cycle()
        assert len(channel.messages) == 1
        assert channel.messages[0].embeds[0] is FoldRecruitmentEngine.no_player_meet_criteria_embed
    finally:
        await database.close()
