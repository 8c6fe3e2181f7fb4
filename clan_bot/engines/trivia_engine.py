"""Trivia game: daily questions, answer scoring and the periodic reports.

A question shows the damage of one shell of a tier X tank and four
candidate tanks. Players answer through buttons; the score is an Elo-like
rating stored as a running snapshot on every ``player_answer`` row.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiosqlite
import discord

from ..apis.base import ApiError
from ..apis.wot import WotApi
from ..core import time_utils
from ..core.models import Ammo, DailyQuestion, Tank, TriviaPlayer, TriviaQuestion, TriviaSettings, WinStreak
from ..core.tables import (
    PlayersAnswersTable,
    PlayersTable,
    TanksTable,
    TriviaDataTable,
    TriviaTable,
    WinStreakTable,
)
from ..core.text_utils import MEDALS, format_response_time, shell_name, transform_to_code


logger = logging.getLogger(__name__)

AMMO_LABELS = ("Obus normal", "Obus spécial (ou gold)", "Obus explosif")
AMMO_CATEGORIES = ("Normal", "Gold", "Explosif")
INACTIVITY_FACTOR = 0.982
TANKS_PER_QUESTION = 4

ANSWER_SAVE_ERROR = "Une erreur est survenue lors de l'enregistrement de ta réponse dans la base de données !"
STATS_CREATE_ERROR = "Une erreur est survenue lors de la création de tes statistiques dans la base de données !"
STATS_UPDATE_ERROR = "Une erreur est survenue lors de la mise à jour de tes statistiques dans la base de données !"


class TriviaStatus(Enum):
    READY = "ready"
    QUOTA_REACHED = "quota_reached"
    ALREADY_PLAYING = "already_playing"
    NOT_INITIALISED = "not_initialised"
    DATABASE_ERROR = "database_error"


class AnswerChange(Enum):
    FIRST = "first"
    CHANGED = "changed"
    SAME = "same"


@dataclass(slots=True)
class TriviaSession:
    """One in-flight question for a player."""

    player: TriviaPlayer
    question: DailyQuestion
    index: int
    started_at: datetime
    answer_name: Optional[str] = None
    answer_id: Optional[int] = None
    answer_time: Optional[int] = None

    def record_answer(self, custom_id: str, when: datetime) -> AnswerChange:
        """Store the button ``name#id`` clicked at ``when``; the last click wins."""

        name, _, raw_id = custom_id.rpartition("#")
        tank_id = int(raw_id)
        if self.answer_id == tank_id:
            return AnswerChange.SAME

        change = AnswerChange.FIRST if self.answer_id is None else AnswerChange.CHANGED
        self.answer_name = name
        self.answer_id = tank_id
        self.answer_time = max(0, int((when - self.started_at).total_seconds() * 1000))
        return change


@dataclass(slots=True)
class TriviaOutcome:
    session: TriviaSession
    is_good_answer: bool
    old_elo: int
    new_elo: int
    win_streak: Optional[WinStreak] = None
    error: Optional[str] = None

    @property
    def elo_change(self) -> int:
        return self.new_elo - self.old_elo

    @property
    def selected_tank(self) -> Optional[Tank]:
        return next((tank for tank in self.session.question.tanks if tank.id == self.session.answer_id), None)


@dataclass(slots=True)
class MonthStatistics:
    elo: int = 0
    right_answers: int = 0
    best_win_streak: int = 0
    fastest_answer: Optional[int] = None
    slowest_answer: Optional[int] = None
    participations: int = 0


@dataclass(slots=True)
class InactivePlayer:
    name: str
    elo_change: int


class TriviaEngine:
    """Owns the questions of the day and the in-memory player sessions."""

    def __init__(
        self,
        trivia_data: TriviaDataTable,
        trivia: TriviaTable,
        tanks: TanksTable,
        players: PlayersTable,
        players_answers: PlayersAnswersTable,
        win_streak: WinStreakTable,
        wot_api: WotApi,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.trivia_data = trivia_data
        self.trivia = trivia
        self.tanks = tanks
        self.players = players
        self.players_answers = players_answers
        self.win_streak = win_streak
        self.wot_api = wot_api
        self.rng = rng or random.Random()

        self.settings: Optional[TriviaSettings] = None
        self.questions: List[DailyQuestion] = []
        self.sessions: Dict[str, TriviaSession] = {}

    async def initialize(self) -> TriviaSettings:
        self.settings = await self.trivia_data.get_settings()
        logger.info("🔨 TriviaEngine initialised with %d question(s) per day", self.settings.max_number_of_question)
        return self.settings

    async def _settings(self) -> TriviaSettings:
        if self.settings is None:
            return await self.initialize()
        return self.settings

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------
    @staticmethod
    def calculate_elo(
        old_elo: int,
        is_good_answer: bool,
        response_time: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> int:
        """New elo after an answer; ``response_time`` and ``limit`` are in ms."""

        if not is_good_answer:
            gain = -math.floor(25 * math.exp(0.001 * old_elo))
        else:
            gain = math.floor(50 * math.exp(-0.001 * old_elo))
            if response_time is not None and limit is not None and response_time <= limit:
                gain += math.floor(gain * 0.25)
        return max(0, old_elo + gain)

    @staticmethod
    def is_good_answer(question: DailyQuestion, tank_id: Optional[int]) -> bool:
        if tank_id is None:
            return False
        if tank_id == question.tank.id:
            return True
        selected = next((tank for tank in question.tanks if tank.id == tank_id), None)
        if selected is None or len(selected.ammo) <= question.ammo_index:
            return False
        return selected.ammo[question.ammo_index].same_shell(question.ammo)

    @staticmethod
    def other_good_answers(question: DailyQuestion) -> List[Tank]:
        """Candidates other than the target firing the same shell."""

        return [
            tank
            for tank in question.tanks
            if tank.id != question.tank.id
            and len(tank.ammo) > question.ammo_index
            and tank.ammo[question.ammo_index].same_shell(question.ammo)
        ]

    # ------------------------------------------------------------------
    # Questions of the day
    # ------------------------------------------------------------------
    async def create_questions_of_the_day(self, when: Optional[datetime] = None) -> List[DailyQuestion]:
        """Load today's questions, generating and storing them the first time."""

        when = when or time_utils.now()
        stored = await self.trivia.get_trivia_from_date_with_tank(when)
        if stored:
            logger.debug("Trivia questions already fetch, backing up from database")
            self.questions = self._group_questions(stored)
            return self.questions

        settings = await self._settings()
        tank_ids = await self.tanks.get_all_ids()
        if len(tank_ids) < TANKS_PER_QUESTION:
            logger.warning("Only %d tank(s) cached, unable to create the trivia questions", len(tank_ids))
            self.questions = []
            return self.questions

        for index in range(settings.max_number_of_question):
            logger.debug("Start fetching question n°%d", index)
            picked = await self._pick_tank_ids(tank_ids, settings)
            tanks = [tank for tank in [await self.tanks.get_tank_by_id(tank_id) for tank_id in picked] if tank]
            if len(tanks) < TANKS_PER_QUESTION:
                logger.warning("Only %d tank(s) found for question n°%d, skipping it", len(tanks), index)
                continue

            target = self.rng.choice(tanks)
            ammo_index = self.rng.randint(0, min(len(AMMO_LABELS), len(target.ammo)) - 1)
            try:
                for tank in tanks:
                    await self.trivia.add_trivia(
                        when, tank.id, ammo_index if tank.id == target.id else None, slot=index
                    )
                logger.debug("Successfully stored tank in database for question n°%d", index)
            except aiosqlite.Error as exc:
                logger.warning("At least a question failed to be insert in the database, error %s", exc)

        self.questions = self._group_questions(await self.trivia.get_trivia_from_date_with_tank(when))
        return self.questions

    async def _pick_tank_ids(self, tank_ids: Sequence[int], settings: TriviaSettings) -> List[int]:
        recent = set(settings.last_tank_page)
        candidates = [tank_id for tank_id in tank_ids if tank_id not in recent]
        if len(candidates) < TANKS_PER_QUESTION:
            candidates = list(tank_ids)
        picked = self.rng.sample(candidates, TANKS_PER_QUESTION)

        history = list(settings.last_tank_page)
        if len(history) >= settings.max_number_of_unique_tanks:
            history = history[TANKS_PER_QUESTION:]
        settings.last_tank_page = history + picked

        try:
            await self.trivia_data.update_last_tank_page(settings.last_tank_page)
            logger.debug("Successfully update the array of tanks already selected")
        except aiosqlite.Error as exc:
            logger.warning("Failed to update the array of last tank with reason : %s", exc)
        return picked

    def _group_questions(self, stored: Sequence[TriviaQuestion]) -> List[DailyQuestion]:
        slots: Dict[int, List[TriviaQuestion]] = {}
        for row in stored:
            slots.setdefault(row.slot, []).append(row)

        questions: List[DailyQuestion] = []
        for slot, chunk in sorted(slots.items()):
            target = next((row for row in chunk if row.ammo_index is not None), None)
            if target is None or len(chunk) != TANKS_PER_QUESTION:
                logger.warning("Incomplete trivia question in slot %d (%d row(s)), skipping it", slot, len(chunk))
                continue
            question = DailyQuestion(
                id=target.id,
                tank=target.tank,
                ammo_index=int(target.ammo_index),
                tanks=[row.tank for row in chunk],
            )
            logger.info(
                "Tank for game selected for question n°%d : %s, the ammo type is : %s",
                len(questions),
                question.tank.name,
                ammo_category(question.ammo_index).upper(),
            )
            questions.append(question)
        return questions

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    async def start_session(
        self, username: str, when: Optional[datetime] = None
    ) -> Tuple[TriviaStatus, Optional[TriviaSession]]:
        when = when or time_utils.now()
        settings = await self._settings()

        try:
            player = await self.players.get_player_by_name(username)
            if player is None:
                await self.players.add_player(username)
                player = await self.players.get_player_by_name(username)
            count = await self.players_answers.count_answer_of_player(player.id, when) if player else 0
        except aiosqlite.Error as exc:
            logger.error("Failed to load the trivia player %s: %s", username, exc)
            return TriviaStatus.DATABASE_ERROR, None
        if player is None:
            return TriviaStatus.DATABASE_ERROR, None

        if count >= settings.max_number_of_question:
            return TriviaStatus.QUOTA_REACHED, None
        if username in self.sessions:
            return TriviaStatus.ALREADY_PLAYING, None
        if count >= len(self.questions):
            logger.warning("No trivia question available for index %d", count)
            return TriviaStatus.NOT_INITIALISED, None

        session = TriviaSession(player=player, question=self.questions[count], index=count, started_at=when)
        self.sessions[username] = session
        return TriviaStatus.READY, session

    def cancel_session(self, username: str) -> Optional[TriviaSession]:
        """Drop the session of ``username`` without scoring it."""

        session = self.sessions.pop(username, None)
        if session is not None:
            logger.debug("Trivia session of %s cancelled", username)
        return session

    async def finish_session(self, username: str, when: Optional[datetime] = None) -> Optional[TriviaOutcome]:
        """Score the recorded answer of ``username`` and persist it.

        The session is removed whatever happens. A failed write stops the
        chain and sets ``error``; a failed win-streak update is only reported.
        """

        session = self.sessions.pop(username, None)
        if session is None:
            return None

        when = when or time_utils.now()
        settings = await self._settings()
        good = self.is_good_answer(session.question, session.answer_id)
        outcome = TriviaOutcome(session=session, is_good_answer=good, old_elo=0, new_elo=0)

        try:
            last_answer = await self.players_answers.get_last_answer_of_player(session.player.id)
            outcome.old_elo = last_answer.elo if last_answer else 0
            outcome.new_elo = self.calculate_elo(
                outcome.old_elo, good, session.answer_time, settings.max_response_time_limit * 1000
            )
            await self.players_answers.add_answer(
                session.player.id, session.question.id, when, good, outcome.new_elo, session.answer_time
            )
        except aiosqlite.Error as exc:
            logger.error("Failed to save the answer of %s: %s", username, exc)
            outcome.new_elo = outcome.old_elo
            outcome.error = ANSWER_SAVE_ERROR
            return outcome

        try:
            win_streak = await self.win_streak.get_win_streak_from_date(session.player.id, when)
            if win_streak is None:
                await self.win_streak.add_win_streak(session.player.id, when)
                win_streak = WinStreak()
        except aiosqlite.Error as exc:
            logger.error("Failed to create the win streak of %s: %s", username, exc)
            outcome.error = STATS_CREATE_ERROR
            return outcome

        win_streak.register(good)
        outcome.win_streak = win_streak
        try:
            await self.win_streak.update_win_streak(session.player.id, when, win_streak)
        except aiosqlite.Error as exc:
            logger.error("Failed to update the win streak of %s: %s", username, exc)
            outcome.error = STATS_UPDATE_ERROR
        return outcome

    # ------------------------------------------------------------------
    # Daily jobs
    # ------------------------------------------------------------------
    async def send_results_for_yesterday(self, channel: Any, when: Optional[datetime] = None) -> int:
        """Post the answer and podium of each question of yesterday."""

        yesterday = time_utils.previous_day(when)
        stored = await self.trivia.get_trivia_from_date_with_tank(yesterday)
        questions = [row for row in stored if row.ammo_index is not None]
        if not questions:
            logger.debug("No questions fetch yesterday ! Not sending result")
            return 0

        for index, question in enumerate(questions, start=1):
            top_three = await self.players_answers.get_top_three(question.id)
            answer_embed = discord.Embed(
                title=f"Question n°{index}",
                description=f"Le char à deviner était : `{question.tank.name}`",
                color=discord.Color.dark_gold(),
            )
            answer_embed.set_image(url=question.tank.image)
            answer_embed.set_footer(text="Trivia Game")
            add_shell_fields(answer_embed, question.tank.ammo)

            podium = discord.Embed(title=":trophy: Podium des joueurs :trophy:", color=discord.Color.dark_gold())
            podium.set_footer(text="Trivia Game")
            if not top_three:
                podium.description = "Aucun joueur n'a envoyé de réponse ou répondu correctement à cette question"
            else:
                podium.add_field(
                    name="Top 3",
                    value="\n".join(
                        f"{MEDALS[rank]}`{row['name']}` en {format_response_time(int(row['answer_time']))}"
                        for rank, row in enumerate(top_three)
                    ),
                )
            await channel.send(embeds=[answer_embed, podium])
        return len(questions)

    async def can_reduce_elo(self, when: Optional[datetime] = None) -> bool:
        when = when or time_utils.now()
        settings = await self.trivia_data.get_settings()
        last = settings.last_date_reduction
        return last is None or last.date() != when.date()

    async def reduce_elo_of_inactive_players(self, channel: Any, when: Optional[datetime] = None) -> List[InactivePlayer]:
        """Apply the daily 1.8 % decay to the players who skipped yesterday."""

        when = when or time_utils.now()
        yesterday = time_utils.previous_day(when)
        if not await self.trivia.get_trivia_from_date_with_tank(yesterday):
            logger.debug("No questions fetch yesterday, skipping Elo reduction !")
            return []

        players = await self.players.get_all_players()
        if not players:
            logger.warning("No players found for trivia !")
            return []

        inactive: List[InactivePlayer] = []
        for player in players:
            last_answer = await self.players_answers.get_last_answer_of_player(player.id)
            if last_answer is None:
                continue
            days_inactive = time_utils.diff_of_days(when, last_answer.date)
            if (last_answer.trivia_id is None and last_answer.elo > 0) or days_inactive > 1:
                new_elo = math.floor(last_answer.elo * INACTIVITY_FACTOR + 0.5)
                await self.players_answers.add_afk_answer(player.id, yesterday, new_elo)
                inactive.append(InactivePlayer(name=player.name, elo_change=last_answer.elo - new_elo))
                logger.debug("Inactif player spotted : %s, old elo : %d, new elo : %d", player.name, last_answer.elo, new_elo)

        if inactive and channel is not None:
            embed = discord.Embed(
                title="Joueur inactif",
                description="Voici la liste des joueurs inactifs qui ont perdu des points",
                color=discord.Color.dark_gold(),
            )
            for player in inactive:
                embed.add_field(name=player.name, value=transform_to_code("Diminution de {} d'élo", player.elo_change), inline=True)
            await channel.send(embed=embed)

        await self.trivia_data.update_last_reduce_date(when)
        logger.debug("Finished reducing Elo of inactive players")
        return inactive

    async def update_tanks_table(self) -> int:
        """Insert every tier X vehicle of the Tankopedia missing from ``tanks``."""

        logger.info("Start updating the tanks database")
        inserted = 0
        page, page_total = 1, 1
        while page <= page_total:
            try:
                response = await self.wot_api.tankopedia_vehicles(page_no=page)
            except ApiError as exc:
                logger.error("Failed to fetch the tankopedia page %d: %s", page, exc)
                break

            page_total = int((response.get("meta") or {}).get("page_total") or 1)
            for vehicle in (response.get("data") or {}).values():
                if not vehicle or await self.tanks.get_tank_by_name(vehicle["name"]):
                    continue
                ammo = [
                    Ammo(type=item["type"], damage=[int(value) for value in item["damage"]])
                    for item in vehicle["default_profile"]["ammo"]
                ]
                try:
                    await self.tanks.insert_tank(vehicle["name"], vehicle["images"]["big_icon"], ammo)
                    inserted += 1
                    logger.debug("Successfully insert tank %s in database", vehicle["name"])
                except aiosqlite.Error as exc:
                    logger.warning("Failed to insert tank %s in database with reason %s", vehicle["name"], exc)
            page += 1

        logger.info("Tanks database updated, %d new tank(s)", inserted)
        return inserted

    async def send_reminder(self, channel: Any) -> None:
        embed = discord.Embed(
            title="🔁 Rappel pour le Trivia 🔁",
            description=(
                "Pour ceux qui ne l'on pas encore fait, n'oublier pas de faire au moins une questions aujourd'hui "
                "sinon vous risquez de perdre des points. (plus d'info avec la commande `/trivia rule`)"
            ),
            color=discord.Color.blue(),
        )
        await channel.send(embed=embed)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------
    async def player_periods(self, player: TriviaPlayer) -> List[datetime]:
        """First day of every month the player answered in, oldest first."""

        periods = await self.players_answers.get_all_periods_of_player(player.id)
        return [datetime(period["year"], period["month"], 1) for period in periods]

    async def player_statistics(self, player: TriviaPlayer, month: datetime) -> MonthStatistics:
        answers = await self.players_answers.get_period_answer_of_player(player.id, month)
        stats = MonthStatistics()
        if not answers:
            return stats

        stats.elo = answers[-1].elo
        played = [answer for answer in answers if answer.trivia_id is not None]
        stats.participations = len(played)
        stats.right_answers = sum(1 for answer in played if answer.right_answer)

        times = [answer.answer_time for answer in played if answer.answer_time]
        if times:
            stats.fastest_answer = min(times)
            stats.slowest_answer = max(times)

        win_streak = await self.win_streak.get_win_streak_from_date(player.id, month)
        stats.best_win_streak = win_streak.max if win_streak else 0
        return stats

    async def scoreboard(self, month: datetime) -> List[Tuple[str, int]]:
        """``(name, elo)`` of every player of the month, best first.

        The elo is the one of the player's last answer in the month.
        """

        last_elo: Dict[str, int] = {}
        for row in await self.players_answers.get_month_answers(month):
            last_elo[row["name"]] = int(row["elo"])
        return sorted(last_elo.items(), key=lambda item: item[1], reverse=True)

    async def send_month_summary(self, channel: Any, month: datetime) -> List[discord.Embed]:
        """Post the summary of ``month`` and open a feedback thread."""

        label = time_utils.month_label(month)
        ranking = await self.scoreboard(month)
        answers = await self.players_answers.get_month_answers(month)
        best_streak = await self.win_streak.get_best_of_month(month)
        games = await self.trivia.get_number_of_game_from_date(month)

        embeds = [
            discord.Embed(
                title=f"Résumé du mois de {label}",
                description="Le dernier mois a été chargé en apprentissage. Découvrons les statistiques du mois.",
                color=discord.Color.dark_gold(),
            )
        ]

        scoreboard = discord.Embed(
            title="Tableau des scores",
            description=(
                "Nous allons visualiser dans un premier temps le score des joueurs. "
                "\n(Plus de détails avec la commande `/trivia statistics`)"
            ),
            color=discord.Color.dark_gold(),
        )
        if not ranking:
            scoreboard.add_field(
                name="Scoreboard",
                value="Il semblerait qu'aucun joueur n'ait participé au trivia game durant ce mois (っ °Д °;)っ",
            )
        else:
            scoreboard.add_field(
                name="Leaderboard",
                value="Les trois meilleurs joueurs du mois sont : \n\n"
                + "\n".join(f"{MEDALS[rank]} {name} avec `{elo}` points" for rank, (name, elo) in enumerate(ranking[:3])),
            )
            if len(ranking) > 3:
                scoreboard.add_field(
                    name="Scoreboard",
                    value="Voila le reste du classement :\n\n"
                    + "\n".join(
                        f"{rank} : {name} avec `{elo}` points" for rank, (name, elo) in enumerate(ranking[3:], start=4)
                    ),
                )
        embeds.append(scoreboard)

        timed = [row for row in answers if row.get("answer_time") and row.get("right_answer")]
        if timed:
            fastest = min(timed, key=lambda row: int(row["answer_time"]))
            embeds.append(
                discord.Embed(
                    title="Le joueur le plus rapide",
                    description=(
                        f"Tel un EBR 75, `{fastest['name']}` détruit ses ennemis plus vite que l'éclair. "
                        f"Ainsi il a répondu le plus rapidement en `{format_response_time(int(fastest['answer_time']))}`."
                    ),
                    color=discord.Color.dark_gold(),
                )
            )

        if best_streak and best_streak["max"]:
            embeds.append(
                discord.Embed(
                    title="Le joueur avec le plus de bonnes réponses d'affilée",
                    description=(
                        f"`{best_streak['name']}` est tel un Léopard, il rate jamais sa cible. "
                        f"`{best_streak['name']}` a correctement répondu `{best_streak['max']}` fois d'affilée."
                    ),
                    color=discord.Color.dark_gold(),
                )
            )

        overall = discord.Embed(
            title="Statistique générale",
            description="Pour finir voici des statistiques inutiles.",
            color=discord.Color.dark_gold(),
        )
        overall.add_field(name="Nombre total de parties :", value=f"`{games}`")
        embeds.append(overall)

        embeds.append(
            discord.Embed(
                title="Retour d'utilisation",
                description="N'hésitez pas à donner votre avis sur le jeu dans le fil de discussion ci-dessous.",
                color=discord.Color.dark_gold(),
            )
        )

        await channel.send(embeds=embeds)
        thread = await channel.create_thread(
            name="Retour sur le jeu",
            auto_archive_duration=10080,
            type=discord.ChannelType.public_thread,
        )
        await thread.send(content="Vous pouvez mettre ici tous les avis, retour ou critiques que vous voulez. Je lis tout :)")
        return embeds


def ammo_category(ammo_index: int) -> str:
    return AMMO_CATEGORIES[ammo_index] if 0 <= ammo_index < len(AMMO_CATEGORIES) else str(ammo_index)


def add_shell_fields(embed: discord.Embed, ammo: Sequence[Ammo]) -> discord.Embed:
    for label, shell in zip(AMMO_LABELS, ammo):
        embed.add_field(name=label, value=f"`{shell_name(shell.type)} {shell.alpha}`", inline=True)
    return embed


__all__ = [
    "AMMO_CATEGORIES",
    "AMMO_LABELS",
    "AnswerChange",
    "InactivePlayer",
    "MonthStatistics",
    "TriviaEngine",
    "TriviaOutcome",
    "TriviaSession",
    "TriviaStatus",
    "add_shell_fields",
    "ammo_category",
]
