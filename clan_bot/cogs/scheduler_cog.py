from __future__ import annotations

import logging
from datetime import time
from typing import Any, Optional

from discord.ext import commands, tasks

from ..config import ClanBotConfig
from ..core import time_utils
from ..core.channel_utils import fetch_channel
from ..core.tables import ChannelsTable, FeatureFlippingTable, NewsWebsitesTable
from ..engines.detected_clans import DetectedClansEngine
from ..engines.fold_recruitment import FoldRecruitmentEngine
from ..engines.news_scraper import NewsScraper
from ..engines.trivia_engine import TriviaEngine


logger = logging.getLogger(__name__)


class SchedulerCog(commands.Cog):
    """Background loops of the news, recruitment and trivia features."""

    def __init__(
        self,
        bot: commands.Bot,
        config: ClanBotConfig,
        channels: ChannelsTable,
        feature_flipping: FeatureFlippingTable,
        news_websites: NewsWebsitesTable,
        news_scraper: NewsScraper,
        fold_recruitment: FoldRecruitmentEngine,
        detected_clans: DetectedClansEngine,
        trivia: TriviaEngine,
        *,
        autostart: bool = True,
    ) -> None:
        self.bot = bot
        self.config = config
        self.channels = channels
        self.feature_flipping = feature_flipping
        self.news_websites = news_websites
        self.news_scraper = news_scraper
        self.fold_recruitment = fold_recruitment
        self.detected_clans = detected_clans
        self.trivia = trivia
        self.news_index = 0

        zone = time_utils.resolve_zone(config.timezone)
        self.news_loop.change_interval(minutes=config.news_interval_minutes)
        self.fold_recruitment_loop.change_interval(minutes=config.fold_recruitment_interval_minutes)
        self.trivia_daily_loop.change_interval(time=config.trivia_daily_time.replace(tzinfo=zone))
        self.trivia_reminder_loop.change_interval(time=config.trivia_reminder_time.replace(tzinfo=zone))

        if autostart:
            for loop in self._loops():
                loop.start()

    def _loops(self) -> tuple:
        return (
            self.news_loop,
            self.fold_recruitment_loop,
            self.trivia_daily_loop,
            self.trivia_reminder_loop,
            self.detected_clans_loop,
        )

    def cog_unload(self) -> None:
        for loop in self._loops():
            loop.cancel()

    async def _trivia_channel(self) -> Optional[Any]:
        return await fetch_channel(self.bot, await self.channels.get_trivia())

    # ------------------------------------------------------------------
    # News
    # ------------------------------------------------------------------
    @tasks.loop(minutes=10)
    async def news_loop(self) -> None:
        try:
            await self.scrap_next_website()
        except Exception:
            logger.exception("News scrapping iteration failed")

    async def scrap_next_website(self) -> int:
        """Scrap one website per call, cycling over the configured ones."""

        if not await self.feature_flipping.get_feature("scrap_website"):
            return 0
        sites = await self.news_websites.get_all()
        if not sites:
            return 0
        site = sites[self.news_index % len(sites)]
        self.news_index = (self.news_index + 1) % len(sites)
        return await self.news_scraper.scrap_website(site)

    @news_loop.before_loop
    async def before_news(self) -> None:
        await self.bot.wait_until_ready()
        await self.news_scraper.initialise(self.bot)

    # ------------------------------------------------------------------
    # Fold recruitment
    # ------------------------------------------------------------------
    @tasks.loop(minutes=60)
    async def fold_recruitment_loop(self) -> None:
        try:
            if await self.feature_flipping.get_feature("fold_recruitment"):
                await self.fold_recruitment.run_cycle()
        except Exception:
            logger.exception("Fold recruitment iteration failed")

    @fold_recruitment_loop.before_loop
    async def before_fold_recruitment(self) -> None:
        await self.bot.wait_until_ready()
        channel = await fetch_channel(self.bot, await self.channels.get_fold_recruitment())
        await self.fold_recruitment.initialise(channel)

    @tasks.loop(hours=24)
    async def detected_clans_loop(self) -> None:
        try:
            if not await self.feature_flipping.get_feature("fold_recruitment"):
                return
            await self.detected_clans.search_clans()
            channel = await fetch_channel(self.bot, await self.channels.get_fold_recruitment())
            if channel is not None:
                await self.detected_clans.report_clans(channel)
        except Exception:
            logger.exception("Detected clans iteration failed")

    @detected_clans_loop.before_loop
    async def before_detected_clans(self) -> None:
        await self.bot.wait_until_ready()

    # ------------------------------------------------------------------
    # Trivia
    # ------------------------------------------------------------------
    @tasks.loop(time=time(hour=0, minute=5))
    async def trivia_daily_loop(self) -> None:
        try:
            if await self.feature_flipping.get_feature("trivia"):
                await self.run_trivia_daily()
        except Exception:
            logger.exception("Trivia daily iteration failed")

    async def run_trivia_daily(self) -> None:
        """Questions of the day, yesterday's results, decay and monthly summary."""

        today = time_utils.now()
        await self.trivia.create_questions_of_the_day(today)

        channel = await self._trivia_channel()
        if channel is None:
            logger.warning("Trivia channel is not available, skipping the daily reports")
            return

        await self.trivia.send_results_for_yesterday(channel, today)
        if await self.trivia.can_reduce_elo(today):
            await self.trivia.reduce_elo_of_inactive_players(channel, today)
        if today.day == 1:
            await self.trivia.send_month_summary(channel, time_utils.previous_month(today))

    @trivia_daily_loop.before_loop
    async def before_trivia_daily(self) -> None:
        await self.bot.wait_until_ready()
        try:
            await self.trivia.initialize()
            if await self.feature_flipping.get_feature("trivia"):
                await self.trivia.update_tanks_table()
                await self.trivia.create_questions_of_the_day()
        except Exception:
            logger.exception("Trivia startup failed")

    @tasks.loop(time=time(hour=20))
    async def trivia_reminder_loop(self) -> None:
        try:
            if not await self.feature_flipping.get_feature("trivia"):
                return
            channel = await self._trivia_channel()
            if channel is not None:
                await self.trivia.send_reminder(channel)
        except Exception:
            logger.exception("Trivia reminder iteration failed")

    @trivia_reminder_loop.before_loop
    async def before_trivia_reminder(self) -> None:
        await self.bot.wait_until_ready()


__all__ = ["SchedulerCog"]
