from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import aiosqlite
import discord
from discord import app_commands
from discord.ext import commands

from ..core import time_utils
from ..core.models import DailyQuestion, Tank, TriviaPlayer, TriviaSettings
from ..core.tables import FeatureFlippingTable
from ..core.text_utils import MEDALS, shell_name
from ..core.wording import ADMIN_MENTION, DATABASE_ERROR, TRIVIA_DISABLED
from ..engines.trivia_engine import (
    AnswerChange,
    MonthStatistics,
    TriviaEngine,
    TriviaOutcome,
    TriviaSession,
    TriviaStatus,
    add_shell_fields,
    ammo_category,
)


logger = logging.getLogger(__name__)

FOOTER = "Trivia Game"
STATISTICS_TIMEOUT = 3600.0
RULE_THUMBNAIL = (
    "https://img.poki.com/cdn-cgi/image/quality=78,width=600,height=600,fit=cover,f=auto/"
    "8fe1b52b0dce26510d0ebf4cbb484aaf.png"
)
EXAMPLE_TANKS = ("Object 140", "Manticore", "Object 268", "Object 907")


def game_embed(session: TriviaSession, max_questions: int, ends_at: datetime) -> discord.Embed:
    ammo = session.question.ammo
    embed = discord.Embed(
        title="Devine le bon char",
        description=f"Tu es entrain de répondre à la question n°`{session.index + 1}` sur {max_questions}",
        color=discord.Color.blurple(),
    )
    embed.set_footer(text=FOOTER)
    embed.add_field(name="💥 Obus :", value=f"`{shell_name(ammo.type)} {ammo.alpha}`", inline=True)
    embed.add_field(name="🕒 Minuteur :", value=f"<t:{time_utils.to_unix(ends_at)}:R>", inline=True)
    return embed


def answer_embeds(question: DailyQuestion, is_good_answer: bool) -> List[discord.Embed]:
    """The target tank followed by every other candidate firing the same shell."""

    color = discord.Color.green() if is_good_answer else discord.Color.red()

    def build(tank: Tank, main: bool) -> discord.Embed:
        embed = discord.Embed(
            title="Réponse principale" if main else "Autre bonne réponse",
            description=(
                f"Le char à deviner était : `{tank.name}`" if main else f"Le char suivant `{tank.name}` à le mème obus !"
            ),
            color=color,
        )
        embed.set_image(url=tank.image)
        embed.set_footer(text=FOOTER)
        return add_shell_fields(embed, tank.ammo)

    return [build(question.tank, True)] + [build(tank, False) for tank in TriviaEngine.other_good_answers(question)]


def result_embed(outcome: TriviaOutcome) -> Optional[discord.Embed]:
    elo_line = f"Ton nouvelle elo est : `{outcome.new_elo}` (modification de `{outcome.elo_change}`)"
    if outcome.is_good_answer:
        embed = discord.Embed(
            title=":clap: Bonne réponse :clap:",
            description="Bravo a trouvée la bonne réponse",
            color=discord.Color.green(),
        )
        embed.set_footer(text=FOOTER)
        embed.add_field(name="Elo", value=elo_line)
        return embed

    tank = outcome.selected_tank
    question = outcome.session.question
    if tank is None:
        return None

    embed = discord.Embed(
        title=":muscle: Mauvaise réponse :muscle:",
        description="Tu n'a malheureusement pas trouvée la bonne réponse",
        color=discord.Color.red(),
    )
    embed.set_footer(text=FOOTER)
    embed.set_image(url=tank.image)
    embed.add_field(name="Char sélectionné", value=f"`{tank.name}`", inline=True)
    embed.add_field(name="Catégorie d'obus", value=f"`{ammo_category(question.ammo_index)}`", inline=True)
    if len(tank.ammo) > question.ammo_index:
        ammo = tank.ammo[question.ammo_index]
        embed.add_field(name="Obus", value=f"`{shell_name(ammo.type)} {ammo.alpha}`", inline=True)
    embed.add_field(name="Elo", value=elo_line)
    return embed


def statistics_embed(month: datetime, stats: MonthStatistics) -> discord.Embed:
    def seconds(value: Optional[int]) -> str:
        return f"`{value / 1000}` sec" if value is not None else "`-`"

    embed = discord.Embed(
        title=f"Statistiques pour le mois de {time_utils.month_label(month)}",
        description="Voici les statistiques demandées",
        color=discord.Color.magenta(),
    )
    embed.add_field(name="Elo", value=f"`{stats.elo}`", inline=True)
    embed.add_field(name="Nombre de bonnes réponses", value=f"`{stats.right_answers}`", inline=True)
    embed.add_field(name="Plus longue séquence correcte", value=f"`{stats.best_win_streak}`", inline=False)
    embed.add_field(name="Réponse la plus rapide", value=seconds(stats.fastest_answer), inline=True)
    embed.add_field(name="Réponse la plus longue", value=seconds(stats.slowest_answer), inline=True)
    embed.add_field(name="Nombre de participation", value=f"`{stats.participations}`", inline=False)
    return embed


def scoreboard_lines(ranking: Sequence[tuple], username: str) -> str:
    lines = []
    for index, (name, elo) in enumerate(ranking):
        rank = MEDALS[index] if index < len(MEDALS) else str(index + 1)
        line = f"{rank}. {name} - {elo}"
        lines.append(f"`--> {line} <--`" if name == username else line)
    return "\n".join(lines)


class TriviaAnswerButton(discord.ui.Button):  # type: ignore[type-arg]
    def __init__(self, tank: Tank) -> None:
        super().__init__(label=tank.name, style=discord.ButtonStyle.primary, custom_id=f"{tank.name}#{tank.id}")

    async def callback(self, interaction: discord.Interaction) -> None:  # type: ignore[override]
        view = self.view
        if isinstance(view, TriviaGameView):
            await view.collect(interaction, str(self.custom_id))


class TriviaGameView(discord.ui.View):
    """Buttons of one question.

    The question closes at a fixed deadline: clicks never extend it, and the
    answer is scored once the timer started by :meth:`start_timer` expires.
    """

    def __init__(
        self,
        engine: TriviaEngine,
        session: TriviaSession,
        username: str,
        interaction: discord.Interaction,
        *,
        duration: float,
    ) -> None:
        super().__init__(timeout=None)
        self.engine = engine
        self.session = session
        self.username = username
        self.interaction = interaction
        self.duration = duration
        self.answer_interaction: Optional[discord.Interaction] = None
        self._loop = asyncio.get_running_loop()
        self._opened_at = self._loop.time()
        self._deadline = self._opened_at + duration
        self._timer: Optional[asyncio.Task] = None
        self._closed = False
        for tank in session.question.tanks:
            self.add_item(TriviaAnswerButton(tank))

    def is_open(self) -> bool:
        return not self._closed and self._loop.time() < self._deadline

    def start_timer(self) -> asyncio.Task:
        if self._timer is None:
            self._timer = self._loop.create_task(self._close_at_deadline())
        return self._timer

    async def _close_at_deadline(self) -> None:
        await asyncio.sleep(max(0.0, self._deadline - self._loop.time()))
        await self.close()

    async def collect(self, interaction: discord.Interaction, custom_id: str) -> Optional[AnswerChange]:
        if not self.is_open():
            await interaction.response.send_message(
                "Le temps est écoulé, ta réponse n'a pas été prise en compte.", ephemeral=True
            )
            logger.debug("%s clicked after the end of the trivia question: %s", self.username, custom_id)
            return None

        elapsed = timedelta(seconds=self._loop.time() - self._opened_at)
        change = self.session.record_answer(custom_id, self.session.started_at + elapsed)
        name = custom_id.rpartition("#")[0]

        if self.answer_interaction is None:
            await interaction.response.defer(ephemeral=True, thinking=True)
            self.answer_interaction = interaction
        else:
            await interaction.response.defer()

        if change is AnswerChange.SAME:
            content = "Ta réponse semble être la même que celle que tu as sélectionnée précédemment."
        elif change is AnswerChange.CHANGED:
            content = f"Ta réponse a été mise à jour en `{name}`"
        else:
            content = f"Ta réponse `{name}` a été enregistrée !"
        await self.answer_interaction.edit_original_response(content=content)

        logger.debug("%s %s to the trivia game with: %s", self.username, change.value, custom_id)
        return change

    async def close(self) -> None:
        """Stop collecting, then score the answer and show the result."""

        if self._closed:
            return
        self._closed = True
        self.stop()

        logger.debug("Collect answer of %s end. Start calculating the scores", self.username)
        outcome = await self.engine.finish_session(self.username)
        if outcome is None:
            return

        try:
            await self.interaction.edit_original_response(
                embeds=answer_embeds(self.session.question, outcome.is_good_answer), view=None
            )
        except discord.HTTPException as exc:
            logger.warning("Unable to update the trivia message of %s: %s", self.username, exc)

        if self.answer_interaction is None:
            return
        if outcome.error:
            await self.answer_interaction.edit_original_response(content=outcome.error)
            return
        embed = result_embed(outcome)
        if embed is not None:
            await self.answer_interaction.edit_original_response(content="", embed=embed)


class ExampleView(discord.ui.View):
    """Buttons of the rule example; clicking them does nothing."""

    def __init__(self) -> None:
        super().__init__(timeout=None)
        for name in EXAMPLE_TANKS:
            button: discord.ui.Button = discord.ui.Button(  # type: ignore[type-arg]
                label=name, style=discord.ButtonStyle.primary, custom_id=f"trivia-example-{name}"
            )
            button.callback = self._ignore  # type: ignore[method-assign]
            self.add_item(button)

    async def _ignore(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer()


class StatisticsSelect(discord.ui.Select):  # type: ignore[type-arg]
    def __init__(self, periods: Sequence[datetime]) -> None:
        options = [
            discord.SelectOption(label=time_utils.month_label(period), value=period.isoformat())
            for period in list(periods)[:25]
        ]
        super().__init__(placeholder="Choisissez un mois", min_values=1, max_values=1, options=options)

    async def callback(self, interaction: discord.Interaction) -> None:  # type: ignore[override]
        view = self.view
        if not isinstance(view, StatisticsView):
            return
        month = datetime.fromisoformat(self.values[0])
        stats = await view.engine.player_statistics(view.player, month)
        await interaction.response.edit_message(embed=statistics_embed(month, stats))


class StatisticsView(discord.ui.View):
    def __init__(
        self,
        engine: TriviaEngine,
        player: TriviaPlayer,
        periods: Sequence[datetime],
        *,
        timeout: Optional[float] = STATISTICS_TIMEOUT,
    ) -> None:
        super().__init__(timeout=timeout)
        self.engine = engine
        self.player = player
        self.add_item(StatisticsSelect(periods))


class TriviaCog(commands.Cog):
    """Daily tank trivia: one ephemeral question at a time per player."""

    trivia = app_commands.Group(name="trivia", description="Commande concernant le jeu trivia")

    def __init__(self, bot: commands.Bot, engine: TriviaEngine, feature_flipping: FeatureFlippingTable) -> None:
        self.bot = bot
        self.engine = engine
        self.feature_flipping = feature_flipping

    async def _ensure_enabled(self, interaction: discord.Interaction) -> bool:
        await interaction.response.defer(ephemeral=True)
        if await self.feature_flipping.get_feature("trivia"):
            return True
        await interaction.edit_original_response(content=TRIVIA_DISABLED)
        return False

    @trivia.command(name="game", description="Jouer au jeu trivia et apprenez les alpha des tier 10")
    async def game(self, interaction: discord.Interaction) -> None:
        if not await self._ensure_enabled(interaction):
            return

        username = interaction.user.name
        status, session = await self.engine.start_session(username)
        settings = self.engine.settings

        if status is TriviaStatus.DATABASE_ERROR or settings is None:
            await interaction.edit_original_response(content=DATABASE_ERROR)
            return
        if status is TriviaStatus.QUOTA_REACHED:
            await interaction.edit_original_response(
                content=(
                    "Tu as atteint le nombre maximum de question par jour ! "
                    f"(actuellement {settings.max_number_of_question} par jour)\nReviens demain pour pouvoir rejouer !"
                )
            )
            return
        if status is TriviaStatus.ALREADY_PLAYING:
            await interaction.edit_original_response(
                content=(
                    "Tu as déjà une parti de trivia en cours ! Merci d'attendre que la partie précédente "
                    "ce termine avant de lancer une nouvelle partie"
                )
            )
            return
        if status is TriviaStatus.NOT_INITIALISED or session is None:
            await interaction.edit_original_response(
                content=(
                    "Le jeu ne semble pas encore initialisé, merci de réessayer dans quelque minutes. "
                    f"Si le problème persist merci de contacter {ADMIN_MENTION}"
                )
            )
            return

        duration = settings.max_duration_of_question
        view = TriviaGameView(self.engine, session, username, interaction, duration=duration)
        ends_at = session.started_at + timedelta(seconds=duration)
        try:
            await interaction.edit_original_response(
                embed=game_embed(session, settings.max_number_of_question, ends_at), view=view
            )
        except discord.HTTPException as exc:
            logger.error("Unable to send the trivia question to %s: %s", username, exc)
            view.stop()
            self.engine.cancel_session(username)
            return
        view.start_timer()
        logger.debug("Trivia game message send to %s", username)

    @trivia.command(name="rule", description="Lire les règle du jeu trivia")
    async def rule(self, interaction: discord.Interaction) -> None:
        if not await self._ensure_enabled(interaction):
            return
        settings = self.engine.settings or await self.engine.initialize()
        await interaction.edit_original_response(embeds=self.rule_embeds(settings), view=ExampleView())

    @staticmethod
    def rule_embeds(settings: TriviaSettings) -> List[discord.Embed]:
        rule = discord.Embed(title="Voici les règles concernant le jeu trivia V2.1", color=discord.Color.orange())
        rule.set_thumbnail(url=RULE_THUMBNAIL)
        rule.add_field(
            name="But",
            value="Ce jeu vise à t'aider à mémoriser les dégâts moyens et le type d'obus des chars de rang 10 dans World of Tanks.",
            inline=False,
        )
        rule.add_field(
            name="Commande",
            value=(
                "Le jeu `trivia` peut-être lancé avec la commande `/trivia game` dans n'importe quel salon textuel. "
                f"Toutefois, il ne peut être lancé que `{settings.max_number_of_question} fois par jour`. Lorsque tu "
                "démarres un trivia, le bot t'envoie un message visible uniquement par toi contenant les informations suivantes :"
            ),
            inline=False,
        )
        rule.add_field(
            name="Obus",
            value=(
                "Affichant son `type` (AP, APCR, etc) et son `dégât moyen (alpha)`, l'obus peut être un obus `standard` "
                "ou un obus `spécial` (dit gold). **⚠️ Le bot n'utilise qu'un seul canon par char, faites attention "
                "aux chars comme le E-100 où c'est le premier canon qui est sélectionné !**"
            ),
            inline=False,
        )
        rule.add_field(
            name="Minuteur",
            value=(
                f"Tu as `{settings.max_duration_of_question} secondes` pour répondre à la question. À la fin du minuteur, "
                "le bot t'enverra ton résultat : bonne ou mauvaise réponse ainsi que les informations sur le char à "
                "trouver et sur le char que tu as sélectionné.\n\nLorsque tu répond à la question en moins de "
                f"`{settings.max_response_time_limit} secondes`, tu obtiens un bonus de `25%` sur les points obtenus en "
                "cas de bonne réponse. ⚠️ **Le temps de réponse change si tu sélectionnes une autre réponse !**"
            ),
            inline=False,
        )
        rule.add_field(
            name="Bouton",
            value=(
                "Le message sera suivi de `quatre boutons cliquables`. Chaque bouton représente un char rang 10 "
                "sélectionné aléatoirement. Pour répondre, il te suffit de cliquer sur l'un des boutons. Tu peux changer "
                "de réponse tant que le minuteur n'est pas terminé. **⚠️ Quand 2 ou plusieurs chars ont le même obus "
                "(type et alpha), tous ces chars sont considérés comme la réponse.**"
            ),
            inline=False,
        )
        rule.add_field(
            name="Sommaire",
            value=(
                "Tous les jours un sommaire est envoyé. Il contient le top 3 des joueurs pour chaque question en terme "
                "de vitesse de réponse, ainsi que la bonne réponse et des informations sur les autres chars."
            ),
            inline=False,
        )
        rule.add_field(
            name="AFK",
            value="En cas d'absence de jeu pendant une journée, une perte de `1.8% de vos points` sera appliquée.",
            inline=False,
        )

        example = discord.Embed(
            title="Example de question",
            description="Dans cette exemple, les boutons sont clickable mais aucune logique n'est implémentée !",
            color=discord.Color.blurple(),
        )
        example.add_field(name="Obus :", value=f"`{shell_name('ARMOR_PIERCING')} 390`", inline=True)
        example.add_field(name="Minuteur :", value="Le temps sera ici", inline=True)
        return [rule, example]

    @trivia.command(name="statistics", description="Visualiser-vos statistiques sur le jeu trivia")
    async def statistics(self, interaction: discord.Interaction) -> None:
        if not await self._ensure_enabled(interaction):
            return

        try:
            player = await self.engine.players.get_player_by_name(interaction.user.name)
            last_answer = await self.engine.players_answers.get_last_answer_of_player(player.id) if player else None
            periods = await self.engine.player_periods(player) if player else []
        except aiosqlite.Error as exc:
            logger.error("Failed to load the trivia statistics of %s: %s", interaction.user, exc)
            await interaction.edit_original_response(content=DATABASE_ERROR)
            return

        if player is None:
            await interaction.edit_original_response(
                content="Tu n'as pas encore joué à Trivia. Essaye après avoir répondu au moins une fois au jeu. (`/trivia game`)"
            )
            return
        if last_answer is None or not periods:
            await interaction.edit_original_response(
                content=(
                    "Tu n'as pas encore de statistiques pour le jeu Trivia. Essaye après avoir répondu au moins une "
                    "fois au jeu. (`/trivia game`)"
                )
            )
            return

        await interaction.edit_original_response(
            content="Choisissez un mois pour voir les statistiques.",
            view=StatisticsView(self.engine, player, list(reversed(periods))),
        )

    @trivia.command(name="scoreboard", description="Visualiser le classement du mois pour le jeu trivia")
    async def scoreboard(self, interaction: discord.Interaction) -> None:
        if not await self._ensure_enabled(interaction):
            return

        today = time_utils.now()
        if not await self.engine.players.get_all_players():
            await interaction.edit_original_response(content="Aucun joueur n'a pour l'instant joué au jeu")
            return

        ranking = await self.engine.scoreboard(today)
        if not ranking:
            await interaction.edit_original_response(content="Aucun joueur n'a pour l'instant joué ce mois si au jeu")
            return

        embed = discord.Embed(
            title="Scoreboard",
            description=f"Voici le scoreboard du mois de `{time_utils.month_label(today)}` pour le jeu trivia",
            color=discord.Color.fuchsia(),
        )
        embed.set_footer(text=FOOTER)
        embed.add_field(name="Joueur - Elo", value=scoreboard_lines(ranking, interaction.user.name), inline=True)
        await interaction.edit_original_response(embed=embed)


__all__ = [
    "ExampleView",
    "StatisticsView",
    "TriviaCog",
    "TriviaGameView",
    "answer_embeds",
    "result_embed",
    "scoreboard_lines",
    "statistics_embed",
]
