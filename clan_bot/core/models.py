"""Records exchanged between the tables, the engines and the cogs."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .time_utils import from_db


@dataclass(slots=True)
class Channel:
    guild_id: int
    channel_id: int


@dataclass(slots=True)
class Clan:
    id: int
    name: str
    last_activity: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Clan":
        return cls(
            id=int(row["id"]),
            name=str(row["name"]),
            last_activity=row.get("last_activity"),
            image_url=row.get("image_url"),
        )


@dataclass(slots=True)
class BlacklistedPlayer:
    id: int
    name: str
    reason: str


@dataclass(slots=True)
class LeavingPlayer:
    id: int
    name: str


@dataclass(slots=True)
class NewsWebsite:
    name: str
    live_url: str
    last_url: str = ""
    selector: str = ""


@dataclass(slots=True)
class FoldRecruitmentLimits:
    wn8_min: int
    battles_min: int
    random_min_28: int
    fort_sorties_min_28: int
    fort_battles_min_28: int

    def limit_for(self, battle_type: str) -> int:
        if battle_type == "random":
            return self.random_min_28
        if battle_type == "fort_sorties":
            return self.fort_sorties_min_28
        if battle_type == "fort_battles":
            return self.fort_battles_min_28
        raise ValueError(f"Invalid battle type {battle_type!r}")


@dataclass(slots=True)
class Ammo:
    type: str
    damage: List[int]

    @property
    def alpha(self) -> int:
        return int(self.damage[1])

    def same_shell(self, other: "Ammo") -> bool:
        return self.type == other.type and self.alpha == other.alpha


@dataclass(slots=True)
class Tank:
    id: int
    name: str
    image: str
    ammo: List[Ammo]

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Tank":
        raw_ammo = row["ammo"]
        if isinstance(raw_ammo, str):
            raw_ammo = json.loads(raw_ammo)
        return cls(
            id=int(row["id"]),
            name=str(row["name"]),
            image=str(row["image"]),
            ammo=[Ammo(type=str(item["type"]), damage=[int(d) for d in item["damage"]]) for item in raw_ammo],
        )


@dataclass(slots=True)
class TriviaQuestion:
    """One ``trivia`` row joined with its tank."""

    id: int
    tank: Tank
    ammo_index: Optional[int]
    slot: int = 0
    date: Optional[datetime] = None


@dataclass(slots=True)
class DailyQuestion:
    """A question slot of the day: the target tank and the four candidates."""

    id: int
    tank: Tank
    ammo_index: int
    tanks: List[Tank] = field(default_factory=list)

    @property
    def ammo(self) -> Ammo:
        return self.tank.ammo[self.ammo_index]


@dataclass(slots=True)
class TriviaPlayer:
    id: int
    name: str


@dataclass(slots=True)
class TriviaAnswer:
    id: int
    player_id: int
    trivia_id: Optional[int]
    date: datetime
    right_answer: bool
    answer_time: Optional[int]
    elo: int

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TriviaAnswer":
        return cls(
            id=int(row["id"]),
            player_id=int(row["player_id"]),
            trivia_id=row.get("trivia_id"),
            date=from_db(row["date"]) or datetime.min,
            right_answer=bool(row["right_answer"]),
            answer_time=row.get("answer_time"),
            elo=int(row["elo"]),
        )


@dataclass(slots=True)
class WinStreak:
    current: int = 0
    max: int = 0

    def register(self, is_good_answer: bool) -> None:
        if is_good_answer:
            self.current += 1
            self.max = max(self.current, self.max)
        else:
            self.current = 0


@dataclass(slots=True)
class TriviaSettings:
    max_number_of_question: int
    max_duration_of_question: int
    max_response_time_limit: int
    max_number_of_unique_tanks: int
    last_tank_page: List[int]
    last_date_reduction: Optional[datetime]


__all__ = [
    "Ammo",
    "BlacklistedPlayer",
    "Channel",
    "Clan",
    "DailyQuestion",
    "FoldRecruitmentLimits",
    "LeavingPlayer",
    "NewsWebsite",
    "Tank",
    "TriviaAnswer",
    "TriviaPlayer",
    "TriviaQuestion",
    "TriviaSettings",
    "WinStreak",
]
