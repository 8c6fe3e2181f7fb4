"""Async bootstrapper for ClanBot."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import discord
from discord.ext import commands
from dotenv import load_dotenv

from .apis.tomato import TomatoApi
from .apis.wargaming import WargamingApi
from .apis.wot import WotApi
from .config import ClanBotConfig
from .core import time_utils
from .core.database import DatabaseEngine
from .core.error_engine import ErrorEngine
from .core.feature_state import FeatureState
from .core.models import Channel
from .core.tables import Tables
from .engines.clan_activity import ClanActivityReport
from .engines.detected_clans import DetectedClansEngine
from .engines.fold_recruitment import FoldRecruitmentEngine
from .engines.news_scraper import NewsScraper
from .engines.trivia_engine import TriviaEngine
from .cogs.clan_activity_cog import ClanActivityCog
from .cogs.maintenance_cog import MaintenanceCog
from .cogs.moderation_cog import ModerationCog
from .cogs.scheduler_cog import SchedulerCog
from .cogs.trivia_cog import TriviaCog
from .cogs.watch_clan_cog import WatchClanCog


logger = logging.getLogger("ClanBot")


def _configure_logging() -> None:
    """Configure simple console logging for ClanBot if not already set."""
    root = logging.getLogger()
    if root.handlers:
        return
    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


class ClanBotRunner:
    def __init__(self) -> None:
        load_dotenv()
        self.config = ClanBotConfig.from_env()
        time_utils.set_timezone(time_utils.resolve_zone(self.config.timezone))
        self.error_engine = ErrorEngine()
        self.error_engine.catch_uncaught()

        dev_channel = None
        if self.config.dev_mode and self.config.dev_guild_id and self.config.dev_channel_id:
            dev_channel = Channel(guild_id=self.config.dev_guild_id, channel_id=self.config.dev_channel_id)

        self.database = DatabaseEngine(self.config.db_path)
        self.tables = Tables.create(self.database, dev_channel)
        self.feature_state = FeatureState(Path(self.config.feature_path))

        self.wargaming_api = WargamingApi()
        self.tomato_api = TomatoApi()
        self.wot_api = WotApi(self.config.wot_application_id)

        tables = self.tables
        self.trivia = TriviaEngine(
            tables.trivia_data,
            tables.trivia,
            tables.tanks,
            tables.players,
            tables.players_answers,
            tables.win_streak,
            self.wot_api,
        )
        self.news_scraper = NewsScraper(tables.news_websites, tables.ban_words, tables.channels)
        self.fold_recruitment = FoldRecruitmentEngine(
            tables.watch_clans,
            tables.blacklisted_players,
            tables.leaving_players,
            tables.fold_recruitment,
            self.wargaming_api,
            self.tomato_api,
            self.wot_api,
        )
        self.detected_clans = DetectedClansEngine(
            tables.leaving_players,
            tables.potential_clans,
            tables.watch_clans,
            self.wot_api,
            self.wargaming_api,
            clan_id=self.config.clan_id,
        )
        self.clan_activity = ClanActivityReport(self.wargaming_api, clan_id=self.config.clan_id)

        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True
        intents.members = True
        intents.voice_states = True

        self.bot = commands.Bot(command_prefix=commands.when_mentioned, intents=intents, help_command=None)

        # Expose config and shared services on the bot instance.
        setattr(self.bot, "config", self.config)
        setattr(self.bot, "tables", self.tables)
        setattr(self.bot, "feature_state", self.feature_state)

        self.error_engine.startup_banner()

        @self.bot.event  # type: ignore[misc]
        async def on_ready() -> None:
            guild_names = ", ".join(guild.name for guild in self.bot.guilds)
            bot_user = self.bot.user
            user_id = bot_user.id if bot_user else "unknown"
            logger.info("ClanBot connected as %s (%s) in %s", bot_user, user_id, guild_names)

        async def setup_hook() -> None:
            await self.database.initialize()
            await self.feature_state.load()
            await self.add_cogs()
            try:
                if self.config.test_guild_ids:
                    for guild_id in sorted(self.config.test_guild_ids):
                        guild = discord.Object(id=guild_id)
                        self.bot.tree.copy_global_to(guild=guild)
                        await self.bot.tree.sync(guild=guild)
                else:
                    await self.bot.tree.sync()
                logger.info("ClanBot slash commands synced")
            except Exception as exc:
                logger.warning("ClanBot failed to sync slash commands: %s", exc)

        self.bot.setup_hook = setup_hook  # type: ignore[assignment]

    async def add_cogs(self) -> None:
        tables = self.tables
        await self.bot.add_cog(TriviaCog(self.bot, self.trivia, tables.feature_flipping))
        await self.bot.add_cog(
            WatchClanCog(
                self.bot,
                tables.watch_clans,
                tables.blacklisted_players,
                tables.feature_flipping,
                tables.channels,
                self.wot_api,
            )
        )
        await self.bot.add_cog(MaintenanceCog(self.bot, tables.channels))
        await self.bot.add_cog(ModerationCog(self.bot, self.feature_state, dev_mode=self.config.dev_mode))
        await self.bot.add_cog(ClanActivityCog(self.bot, self.clan_activity))
        await self.bot.add_cog(
            SchedulerCog(
                self.bot,
                self.config,
                tables.channels,
                tables.feature_flipping,
                tables.news_websites,
                self.news_scraper,
                self.fold_recruitment,
                self.detected_clans,
                self.trivia,
            )
        )

    async def start(self) -> None:
        logger.info("Connecting ClanBot to the Discord gateway")
        try:
            await self.bot.start(self.config.discord_token)
        finally:
            await self.close()

    async def close(self) -> None:
        await self.news_scraper.close()
        await self.wargaming_api.close()
        await self.tomato_api.close()
        await self.wot_api.close()
        await self.database.close()
        if not self.bot.is_closed():
            await self.bot.close()


def run_clan_bot() -> None:
    _configure_logging()
    runner = ClanBotRunner()
    try:
        asyncio.run(runner.start())
    except KeyboardInterrupt:
        logger.info("ClanBot interrupted by user")


__all__ = ["ClanBotRunner", "run_clan_bot"]
