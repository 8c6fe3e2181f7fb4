from __future__ import annotations

from datetime import datetime
from pathlib import Path
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from clan_bot.core.database import DatabaseEngine  # noqa: E402
from clan_bot.core.models import Ammo, BlacklistedPlayer, Channel, WinStreak  # noqa: E402
from clan_bot.core.tables import Tables  # noqa: E402


async def _open(tmp_path: Path, dev_channel: Channel | None = None) -> tuple[DatabaseEngine, Tables]:
    database = DatabaseEngine(str(tmp_path / "clanbot.sqlite3"))
    await database.initialize()
    return database, Tables.create(database, dev_channel)


@pytest.mark.asyncio
async def test_seeded_settings_and_limits(tmp_path: Path) -> None:
    database, tables = await _open(tmp_path)
    try:
        settings = await tables.trivia_data.get_settings()
        assert settings.max_number_of_question == 4
        assert settings.last_tank_page == []

        limits = await tables.fold_recruitment.get_limits()
        assert limits.wn8_min == 2000
        assert await tables.fold_recruitment.get_limit_by_type("fort_battles") == 10
        assert await tables.feature_flipping.get_feature("trivia") is True
        assert await tables.feature_flipping.get_feature("unknown") is False
    finally:
        await database.close()


@pytest.mark.asyncio
async def test_watch_clans_crud(tmp_path: Path) -> None:
    database, tables = await _open(tmp_path)
    try:
        assert await tables.watch_clans.add_clan(500, "FRENCH", "2024-01-01T00:00:00+00:00")
        assert await tables.watch_clans.add_clan(600, "OTHER")

        found = await tables.watch_clans.select_clan("FREN")
        assert [clan.id for clan in found] == [500]

        clan = found[0]
        clan.image_url = "https://example.org/emblem.png"
        assert await tables.watch_clans.update_clan(clan)
        assert (await tables.watch_clans.select_clan("500"))[0].image_url == clan.image_url

        assert await tables.watch_clans.remove_clan(500)
        assert [clan.name for clan in await tables.watch_clans.get_all()] == ["OTHER"]

        with pytest.raises(ValueError):
            await tables.watch_clans.add_clan(0, "")
    finally:
        await database.close()


@pytest.mark.asyncio
async def test_blacklist_and_leaving_players(tmp_path: Path) -> None:
    database, tables = await _open(tmp_path)
    try:
        player = BlacklistedPlayer(id=42, name="Tanker", reason="toxic")
        assert await tables.blacklisted_players.add_player(player)
        assert await tables.blacklisted_players.get_player(42) == [player]
        assert await tables.blacklisted_players.find_player("tank") == [player]
        assert await tables.blacklisted_players.remove_player(player)
        assert await tables.blacklisted_players.get_player(42) == []

        assert await tables.leaving_players.add_player(1)
        assert not await tables.leaving_players.add_player(1)
        assert await tables.leaving_players.get_all() == [1]

        assert await tables.potential_clans.add_clan(99)
        assert await tables.potential_clans.clan_exist(99)
        assert await tables.potential_clans.delete_all()
        assert await tables.potential_clans.get_all() == []
    finally:
        await database.close()


@pytest.mark.asyncio
async def test_dev_channel_overrides_every_feature(tmp_path: Path) -> None:
    dev = Channel(guild_id=1, channel_id=2)
    database, tables = await _open(tmp_path, dev)
    try:
        assert await tables.channels.get_trivia() == dev
        assert await tables.channels.get_fold_recruitment() == dev
    finally:
        await database.close()


@pytest.mark.asyncio
async def test_missing_channel_returns_none(tmp_path: Path) -> None:
    database, tables = await _open(tmp_path)
    try:
        assert await tables.channels.get_news_website() is None
    finally:
        await database.close()


@pytest.mark.asyncio
async def test_answers_count_and_top_three(tmp_path: Path) -> None:
    database, tables = await _open(tmp_path)
    try:
        when = datetime(2024, 3, 10, 12, 0, 0)
        await tables.tanks.insert_tank("T-100 LT", "img", [Ammo("ARMOR_PIERCING", [300, 400, 500])])
        tank = await tables.tanks.get_tank_by_name("T-100 LT")
        assert tank is not None and tank.ammo[0].alpha == 400

        await tables.trivia.add_trivia(when, tank.id, 0)
        question = (await tables.trivia.get_trivia_from_date_with_tank(when))[0]
        assert question.tank.name == "T-100 LT"

        for name, answer_time in (("a", 3000), ("b", 1000), ("c", 2000), ("d", 4000)):
            await tables.players.add_player(name)
            player = await tables.players.get_player_by_name(name)
            await tables.players_answers.add_answer(player.id, question.id, when, True, 50, answer_time)

        top = await tables.players_answers.get_top_three(question.id)
        assert [row["name"] for row in top] == ["b", "c", "a"]

        player_a = await tables.players.get_player_by_name("a")
        await tables.players_answers.add_afk_answer(player_a.id, when, 40)
        assert await tables.players_answers.count_answer_of_player(player_a.id, when) == 1
        assert (await tables.players_answers.get_last_answer_of_player(player_a.id)).elo == 40
        assert await tables.players_answers.get_all_periods_of_player(player_a.id) == [{"year": 2024, "month": 3}]
        assert await tables.trivia.get_number_of_game_from_date(when) == 1
    finally:
        await database.close()


@pytest.mark.asyncio
async def test_win_streak_is_monthly(tmp_path: Path) -> None:
    database, tables = await _open(tmp_path)
    try:
        await tables.players.add_player("streaker")
        player = await tables.players.get_player_by_name("streaker")
        march = datetime(2024, 3, 5)

        await tables.win_streak.add_win_streak(player.id, march)
        await tables.win_streak.update_win_streak(player.id, march, WinStreak(current=3, max=3))

        assert await tables.win_streak.get_win_streak_from_date(player.id, datetime(2024, 3, 28)) == WinStreak(3, 3)
        assert await tables.win_streak.get_win_streak_from_date(player.id, datetime(2024, 4, 1)) is None
        assert (await tables.win_streak.get_best_of_month(march))["name"] == "streaker"
    finally:
        await database.close()


@pytest.mark.asyncio
async def test_news_websites_last_url(tmp_path: Path) -> None:
    database, tables = await _open(tmp_path)
    try:
        await database.execute(
            "INSERT INTO news_websites (name, live_url, selector) VALUES (?, ?, ?)",
            ("Wot Express", "https://wotexpress.info/", "a.news"),
        )
        assert await tables.news_websites.update_website("Wot Express", "https://wotexpress.info/news/1")
        site = (await tables.news_websites.get_all())[0]
        assert site.last_url == "https://wotexpress.info/news/1"
    finally:
        await database.close()
