"""Table accessors over :class:`DatabaseEngine`.

Every accessor renders its statement through the query builders, so values
are always bound parameters. The :class:`Table` base checks that the
rendered statement matches the operation that was asked for.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Pattern, Sequence, Union

from .database import DatabaseEngine
from .models import (
    Ammo,
    BlacklistedPlayer,
    Channel,
    Clan,
    FoldRecruitmentLimits,
    NewsWebsite,
    Tank,
    TriviaAnswer,
    TriviaPlayer,
    TriviaQuestion,
    TriviaSettings,
    WinStreak,
)
from .query_builder import (
    Conditions,
    DeleteBuilder,
    InsertIntoBuilder,
    QueryBuilderError,
    SelectBuilder,
    UpdateBuilder,
)
from .time_utils import day_bounds, from_db, month_bounds, to_db


logger = logging.getLogger(__name__)

_INSERT: Pattern[str] = re.compile(r"^INSERT( OR IGNORE)? INTO ")
_UPDATE: Pattern[str] = re.compile(r"^UPDATE ")
_DELETE: Pattern[str] = re.compile(r"^DELETE ")
_SELECT: Pattern[str] = re.compile(r"^SELECT ")

DateLike = Union[datetime, date]


class Table:
    """Base class binding a table name to the shared database engine."""

    table_name: str = ""

    def __init__(self, database: DatabaseEngine) -> None:
        self.database = database

    def _render(self, builder: Conditions, pattern: Pattern[str], operation: str) -> tuple:
        sql, params = builder.compute()
        if not pattern.match(sql):
            raise QueryBuilderError(f"{operation} expects a matching statement, got: {sql}")
        return sql, params

    async def insert(self, builder: Conditions) -> bool:
        sql, params = self._render(builder, _INSERT, "insert")
        return await self.database.execute(sql, params) > 0

    async def update(self, builder: Conditions) -> bool:
        sql, params = self._render(builder, _UPDATE, "update")
        return await self.database.execute(sql, params) > 0

    async def delete(self, builder: Conditions) -> bool:
        sql, params = self._render(builder, _DELETE, "delete")
        return await self.database.execute(sql, params) > 0

    async def select(self, builder: Conditions) -> List[Dict[str, Any]]:
        sql, params = self._render(builder, _SELECT, "select")
        return await self.database.fetch_all(sql, params)


class ChannelsTable(Table):
    table_name = "channels"

    def __init__(self, database: DatabaseEngine, dev_channel: Optional[Channel] = None) -> None:
        super().__init__(database)
        self.dev_channel = dev_channel

    async def get_channel(self, feature_name: str) -> Optional[Channel]:
        """Channel configured for a feature; always the dev channel in dev mode."""

        if self.dev_channel is not None:
            return self.dev_channel
        rows = await self.select(
            SelectBuilder(self).columns("guild_id", "channel_id").where(["feature_name = ?"], params=(feature_name,))
        )
        if not rows:
            logger.warning("No channel configured for feature %s", feature_name)
            return None
        return Channel(guild_id=int(rows[0]["guild_id"]), channel_id=int(rows[0]["channel_id"]))

    async def get_news_website(self) -> Optional[Channel]:
        return await self.get_channel("news")

    async def get_wot_news(self) -> Optional[Channel]:
        return await self.get_channel("wot-news")

    async def get_trivia(self) -> Optional[Channel]:
        return await self.get_channel("trivia")

    async def get_fold_recruitment(self) -> Optional[Channel]:
        return await self.get_channel("fold-recruitment")


class WatchClansTable(Table):
    table_name = "watch_clans"

    async def add_clan(self, clan_id: int, name: str, last_activity: Optional[str] = None) -> bool:
        if not clan_id or not name:
            raise ValueError(f"Id and name are required to add a clan, given id {clan_id!r} name {name!r}")
        return await self.insert(
            InsertIntoBuilder(self)
            .columns("id", "name", "last_activity")
            .values(int(clan_id), name, last_activity)
        )

    async def update_clan(self, clan: Clan) -> bool:
        if not clan.id:
            raise ValueError("Id is required to update a clan")
        if not clan.last_activity and not clan.image_url:
            raise ValueError("At least one of last_activity or image_url is needed to update a clan")

        builder = UpdateBuilder(self)
        if clan.image_url:
            builder.columns("image_url").values(clan.image_url)
        if clan.last_activity:
            builder.columns("last_activity").values(clan.last_activity)
        return await self.update(builder.where(["id = ?"], params=(clan.id,)))

    async def select_clan(self, id_or_name: str) -> List[Clan]:
        pattern = f"%{id_or_name}%"
        rows = await self.select(
            SelectBuilder(self)
            .columns("*")
            .where(["CAST(id AS TEXT) LIKE ?", "name LIKE ?"], ["OR"], params=(pattern, pattern))
        )
        return [Clan.from_row(row) for row in rows]

    async def get_all(self) -> List[Clan]:
        rows = await self.select(SelectBuilder(self).columns("*").order_by("name"))
        return [Clan.from_row(row) for row in rows]

    async def remove_clan(self, clan_id: int) -> bool:
        return await self.delete(DeleteBuilder(self).where(["id = ?"], params=(int(clan_id),)))


class BlacklistedPlayersTable(Table):
    table_name = "blacklisted_players"

    async def add_player(self, player: BlacklistedPlayer) -> bool:
        if not player.id or not player.name:
            raise ValueError("Id and name are required to blacklist a player")
        return await self.insert(
            InsertIntoBuilder(self).columns("id", "name", "reason").values(player.id, player.name, player.reason)
        )

    async def remove_player(self, player: BlacklistedPlayer) -> bool:
        if not player.id or not player.name:
            raise ValueError("Id and name are required to remove a blacklisted player")
        return await self.delete(DeleteBuilder(self).where(["id = ?"], params=(player.id,)))

    async def get_player(self, player_id: int) -> List[BlacklistedPlayer]:
        rows = await self.select(SelectBuilder(self).columns("*").where(["id = ?"], params=(int(player_id),)))
        return [BlacklistedPlayer(**row) for row in rows]

    async def find_player(self, id_or_name: str) -> List[BlacklistedPlayer]:
        pattern = f"%{id_or_name}%"
        rows = await self.select(
            SelectBuilder(self)
            .columns("*")
            .where(["CAST(id AS TEXT) LIKE ?", "name LIKE ?"], ["OR"], params=(pattern, pattern))
        )
        return [BlacklistedPlayer(**row) for row in rows]


class LeavingPlayersTable(Table):
    table_name = "leaving_players"

    async def add_player(self, player_id: int) -> bool:
        return await self.insert(InsertIntoBuilder(self).columns("id").values(int(player_id)).ignore())

    async def delete_player(self, player_id: int) -> bool:
        return await self.delete(DeleteBuilder(self).where(["id = ?"], params=(int(player_id),)))

    async def get_all(self) -> List[int]:
        return [int(row["id"]) for row in await self.select(SelectBuilder(self).columns("id"))]


class PotentialClansTable(Table):
    table_name = "potential_clans"

    async def add_clan(self, clan_id: int) -> bool:
        return await self.insert(InsertIntoBuilder(self).columns("id").values(int(clan_id)).ignore())

    async def clan_exist(self, clan_id: int) -> bool:
        rows = await self.select(
            SelectBuilder(self).columns("COUNT(1) AS count").where(["id = ?"], params=(int(clan_id),))
        )
        return bool(rows[0]["count"])

    async def get_all(self) -> List[int]:
        return [int(row["id"]) for row in await self.select(SelectBuilder(self).columns("id"))]

    async def delete_all(self) -> bool:
        return await self.delete(DeleteBuilder(self))


class PlayersTable(Table):
    table_name = "player"

    async def add_player(self, name: str) -> bool:
        return await self.insert(InsertIntoBuilder(self).columns("name").values(name))

    async def get_player_by_name(self, name: str) -> Optional[TriviaPlayer]:
        rows = await self.select(SelectBuilder(self).columns("id", "name").where(["name = ?"], params=(name,)))
        return TriviaPlayer(id=int(rows[0]["id"]), name=rows[0]["name"]) if rows else None

    async def get_all_players(self) -> List[TriviaPlayer]:
        rows = await self.select(SelectBuilder(self).columns("id", "name"))
        return [TriviaPlayer(id=int(row["id"]), name=row["name"]) for row in rows]


class PlayersAnswersTable(Table):
    table_name = "player_answer"

    async def add_answer(
        self,
        player_id: int,
        trivia_id: int,
        when: datetime,
        is_right_answer: bool,
        elo: int,
        answer_time: Optional[int] = None,
    ) -> bool:
        columns = ["player_id", "trivia_id", "date", "right_answer", "elo"]
        values: List[Any] = [player_id, trivia_id, to_db(when), int(is_right_answer), elo]
        if answer_time:
            columns.append("answer_time")
            values.append(int(answer_time))
        return await self.insert(InsertIntoBuilder(self).columns(*columns).values(*values))

    async def add_afk_answer(self, player_id: int, when: datetime, elo: int) -> bool:
        return await self.insert(
            InsertIntoBuilder(self)
            .columns("player_id", "date", "right_answer", "elo")
            .values(player_id, to_db(when), 0, elo)
        )

    async def get_top_three(self, trivia_id: int) -> List[Dict[str, Any]]:
        """Three fastest right answers to a question, joined with the player name."""

        return await self.select(
            SelectBuilder(self)
            .columns("player.name AS name", "player_answer.answer_time AS answer_time")
            .inner_join("player", ["player_answer.player_id = player.id"])
            .where(
                ["player_answer.right_answer = 1", "player_answer.trivia_id = ?", "player_answer.answer_time IS NOT NULL"],
                ["AND", "AND"],
                params=(trivia_id,),
            )
            .order_by(("player_answer.answer_time", "ASC"))
            .limit(3)
        )

    async def get_last_answer_of_player(self, player_id: int) -> Optional[TriviaAnswer]:
        rows = await self.select(
            SelectBuilder(self)
            .columns("*")
            .where(["player_id = ?"], params=(player_id,))
            .order_by(("date", "DESC"), ("id", "DESC"))
            .limit(1)
        )
        return TriviaAnswer.from_row(rows[0]) if rows else None

    async def get_all_periods_of_player(self, player_id: int) -> List[Dict[str, int]]:
        rows = await self.select(
            SelectBuilder(self)
            .columns(
                "DISTINCT CAST(strftime('%Y', date) AS INTEGER) AS year",
                "CAST(strftime('%m', date) AS INTEGER) AS month",
            )
            .where(["player_id = ?"], params=(player_id,))
            .order_by(("year", "ASC"), ("month", "ASC"))
        )
        return [{"year": int(row["year"]), "month": int(row["month"])} for row in rows]

    async def get_period_answer_of_player(self, player_id: int, month: DateLike) -> List[TriviaAnswer]:
        start, end = month_bounds(month)
        rows = await self.select(
            SelectBuilder(self)
            .columns("*")
            .where(["player_id = ?", "date >= ?", "date < ?"], ["AND", "AND"], params=(player_id, start, end))
            .order_by(("date", "ASC"), ("id", "ASC"))
        )
        return [TriviaAnswer.from_row(row) for row in rows]

    async def get_month_answers(self, month: DateLike) -> List[Dict[str, Any]]:
        """Every answer of the month joined with its player name, oldest first."""

        start, end = month_bounds(month)
        return await self.select(
            SelectBuilder(self)
            .columns("player_answer.*", "player.name AS name")
            .inner_join("player", ["player_answer.player_id = player.id"])
            .where(["player_answer.date >= ?", "player_answer.date < ?"], ["AND"], params=(start, end))
            .order_by(("player_answer.date", "ASC"), ("player_answer.id", "ASC"))
        )

    async def count_answer_of_player(self, player_id: int, day: DateLike) -> int:
        """Number of questions answered by the player on the given day."""

        start, end = day_bounds(day)
        rows = await self.select(
            SelectBuilder(self)
            .columns("COUNT(*) AS count")
            .where(
                ["player_id = ?", "trivia_id IS NOT NULL", "date >= ?", "date < ?"],
                ["AND", "AND", "AND"],
                params=(player_id, start, end),
            )
        )
        return int(rows[0]["count"])


class WinStreakTable(Table):
    table_name = "win_streak"

    async def add_win_streak(self, player_id: int, when: datetime) -> bool:
        return await self.insert(
            InsertIntoBuilder(self).columns("player_id", "date", "current", "max").values(player_id, to_db(when), 0, 0)
        )

    async def update_win_streak(self, player_id: int, when: DateLike, win_streak: WinStreak) -> bool:
        start, end = month_bounds(when)
        return await self.update(
            UpdateBuilder(self)
            .columns("current", "max")
            .values(win_streak.current, win_streak.max)
            .where(["player_id = ?", "date >= ?", "date < ?"], ["AND", "AND"], params=(player_id, start, end))
        )

    async def get_win_streak_from_date(self, player_id: int, when: DateLike) -> Optional[WinStreak]:
        start, end = month_bounds(when)
        rows = await self.select(
            SelectBuilder(self)
            .columns("current", "max")
            .where(["player_id = ?", "date >= ?", "date < ?"], ["AND", "AND"], params=(player_id, start, end))
            .limit(1)
        )
        return WinStreak(current=int(rows[0]["current"]), max=int(rows[0]["max"])) if rows else None

    async def get_best_of_month(self, month: DateLike) -> Optional[Dict[str, Any]]:
        start, end = month_bounds(month)
        rows = await self.select(
            SelectBuilder(self)
            .columns("player.name AS name", "win_streak.max AS max")
            .inner_join("player", ["win_streak.player_id = player.id"])
            .where(["win_streak.date >= ?", "win_streak.date < ?"], ["AND"], params=(start, end))
            .order_by(("win_streak.max", "DESC"))
            .limit(1)
        )
        return rows[0] if rows else None


class TriviaTable(Table):
    table_name = "trivia"

    async def add_trivia(
        self, when: datetime, tank_id: int, ammo_index: Optional[int] = None, *, slot: int = 0
    ) -> bool:
        """Store one candidate of question ``slot``; only the target carries an ``ammo_index``."""

        if ammo_index is None:
            return await self.insert(
                InsertIntoBuilder(self).columns("date", "tank_id", "slot").values(to_db(when), tank_id, slot)
            )
        return await self.insert(
            InsertIntoBuilder(self)
            .columns("date", "tank_id", "slot", "ammo_index")
            .values(to_db(when), tank_id, slot, ammo_index)
        )

    async def get_trivia_from_date_with_tank(self, day: DateLike) -> List[TriviaQuestion]:
        start, end = day_bounds(day)
        rows = await self.select(
            SelectBuilder(self)
            .columns("trivia.id AS id", "trivia.date AS date", "slot", "ammo_index", "tank_id", "name", "image", "ammo")
            .inner_join("tanks", ["trivia.tank_id = tanks.id"])
            .where(["trivia.date >= ?", "trivia.date < ?"], ["AND"], params=(start, end))
            .order_by(("slot", "ASC"), ("trivia.id", "ASC"))
        )
        return [
            TriviaQuestion(
                id=int(row["id"]),
                tank=Tank.from_row({**row, "id": row["tank_id"]}),
                ammo_index=row["ammo_index"],
                slot=int(row["slot"]),
                date=from_db(row["date"]),
            )
            for row in rows
        ]

    async def get_number_of_game_from_date(self, month: DateLike) -> int:
        start, end = month_bounds(month)
        rows = await self.select(
            SelectBuilder(self)
            .columns("COUNT(*) AS count")
            .where(["ammo_index IS NOT NULL", "date >= ?", "date < ?"], ["AND", "AND"], params=(start, end))
        )
        return int(rows[0]["count"])


class TanksTable(Table):
    table_name = "tanks"

    async def get_all_ids(self) -> List[int]:
        return [int(row["id"]) for row in await self.select(SelectBuilder(self).columns("id").order_by("id"))]

    async def get_tank_by_id(self, tank_id: int) -> Optional[Tank]:
        rows = await self.select(SelectBuilder(self).columns("*").where(["id = ?"], params=(int(tank_id),)))
        return Tank.from_row(rows[0]) if rows else None

    async def get_tank_by_name(self, name: str) -> Optional[Tank]:
        rows = await self.select(SelectBuilder(self).columns("*").where(["name = ?"], params=(name,)))
        return Tank.from_row(rows[0]) if rows else None

    async def insert_tank(self, name: str, image: str, ammo: Sequence[Ammo]) -> bool:
        payload = json.dumps([{"type": item.type, "damage": list(item.damage)} for item in ammo])
        return await self.insert(InsertIntoBuilder(self).columns("name", "image", "ammo").values(name, image, payload))


class TriviaDataTable(Table):
    table_name = "trivia_data"

    async def get_settings(self) -> TriviaSettings:
        row = (await self.select(SelectBuilder(self).columns("*").where(["id = 1"])))[0]
        return TriviaSettings(
            max_number_of_question=int(row["max_number_of_question"]),
            max_duration_of_question=int(row["max_duration_of_question"]),
            max_response_time_limit=int(row["max_response_time_limit"]),
            max_number_of_unique_tanks=int(row["max_number_of_unique_tanks"]),
            last_tank_page=[int(page) for page in json.loads(row["last_tank_page"] or "[]")],
            last_date_reduction=from_db(row["last_date_reduction"]),
        )

    async def update_last_tank_page(self, pages: Sequence[int]) -> bool:
        return await self.update(
            UpdateBuilder(self).columns("last_tank_page").values(json.dumps(list(pages))).where(["id = 1"])
        )

    async def update_last_reduce_date(self, when: datetime) -> bool:
        return await self.update(
            UpdateBuilder(self).columns("last_date_reduction").values(to_db(when)).where(["id = 1"])
        )


class NewsWebsitesTable(Table):
    table_name = "news_websites"

    async def get_all(self) -> List[NewsWebsite]:
        rows = await self.select(SelectBuilder(self).columns("name", "live_url", "last_url", "selector").order_by("name"))
        return [NewsWebsite(**row) for row in rows]

    async def update_website(self, name: str, last_url: str) -> bool:
        return await self.update(
            UpdateBuilder(self).columns("last_url").values(last_url).where(["name = ?"], params=(name,))
        )


class BanWordsTable(Table):
    table_name = "ban_words"

    async def get_all(self) -> List[str]:
        return [str(row["word"]) for row in await self.select(SelectBuilder(self).columns("word"))]


class FeatureFlippingTable(Table):
    table_name = "feature_flipping"

    async def get_feature(self, name: str) -> bool:
        rows = await self.select(SelectBuilder(self).columns("is_activated").where(["name = ?"], params=(name,)))
        return bool(rows and rows[0]["is_activated"])


class FoldRecruitmentTable(Table):
    table_name = "fold_recruitment"

    async def get_limits(self) -> FoldRecruitmentLimits:
        row = (await self.select(SelectBuilder(self).columns("*").where(["id = 1"])))[0]
        row.pop("id", None)
        return FoldRecruitmentLimits(**{key: int(value) for key, value in row.items()})

    async def get_limit_by_type(self, battle_type: str) -> int:
        return (await self.get_limits()).limit_for(battle_type)


@dataclass(slots=True)
class Tables:
    """Every table accessor, built once and handed to the engines and cogs."""

    channels: ChannelsTable
    watch_clans: WatchClansTable
    blacklisted_players: BlacklistedPlayersTable
    leaving_players: LeavingPlayersTable
    potential_clans: PotentialClansTable
    players: PlayersTable
    players_answers: PlayersAnswersTable
    win_streak: WinStreakTable
    trivia: TriviaTable
    tanks: TanksTable
    trivia_data: TriviaDataTable
    news_websites: NewsWebsitesTable
    ban_words: BanWordsTable
    feature_flipping: FeatureFlippingTable
    fold_recruitment: FoldRecruitmentTable

    @classmethod
    def create(cls, database: DatabaseEngine, dev_channel: Optional[Channel] = None) -> "Tables":
        return cls(
            channels=ChannelsTable(database, dev_channel),
            watch_clans=WatchClansTable(database),
            blacklisted_players=BlacklistedPlayersTable(database),
            leaving_players=LeavingPlayersTable(database),
            potential_clans=PotentialClansTable(database),
            players=PlayersTable(database),
            players_answers=PlayersAnswersTable(database),
            win_streak=WinStreakTable(database),
            trivia=TriviaTable(database),
            tanks=TanksTable(database),
            trivia_data=TriviaDataTable(database),
            news_websites=NewsWebsitesTable(database),
            ban_words=BanWordsTable(database),
            feature_flipping=FeatureFlippingTable(database),
            fold_recruitment=FoldRecruitmentTable(database),
        )


__all__ = [
    "BanWordsTable",
    "BlacklistedPlayersTable",
    "ChannelsTable",
    "FeatureFlippingTable",
    "FoldRecruitmentTable",
    "LeavingPlayersTable",
    "NewsWebsitesTable",
    "PlayersAnswersTable",
    "PlayersTable",
    "PotentialClansTable",
    "Table",
    "Tables",
    "TanksTable",
    "TriviaDataTable",
    "TriviaTable",
    "WatchClansTable",
    "WinStreakTable",
]
