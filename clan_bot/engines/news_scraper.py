"""News scraping for the WoT news channels.

Three sources are supported, keyed by the ``news_websites.name`` column:

* ``Wot Express`` and ``The Armored Patrol``: HTML pages parsed with
  BeautifulSoup through the row's CSS ``selector``;
* ``World Of Tanks``: the official RSS feed, parsed with ``xml.etree``.

Each parser returns the page items newest first. The scraper locates the
item whose URL is the stored ``last_url`` and sends every newer item, oldest
first, so the channel reads chronologically.
"""

from __future__ import annotations

import asyncio
import logging
import re
import xml.etree.ElementTree as ElementTree
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import aiohttp
import discord
from bs4 import BeautifulSoup

from ..core.channel_utils import fetch_channel
from ..core.models import NewsWebsite
from ..core.tables import BanWordsTable, ChannelsTable, NewsWebsitesTable


logger = logging.getLogger(__name__)

WOT_EXPRESS = "Wot Express"
THE_ARMORED_PATROL = "The Armored Patrol"
WORLD_OF_TANKS = "World Of Tanks"

_BACKGROUND_URL = re.compile(r"url\(['\"]?/?([^)'\"]+)['\"]?\)")


@dataclass(slots=True)
class NewsItem:
    url: str
    title: str
    description: str
    image: Optional[str] = None


@dataclass(slots=True)
class _SiteRules:
    parser: Callable[[str, NewsWebsite], List[NewsItem]]
    # Index used when ``last_url`` is not on the page anymore.
    default_index: Optional[int]
    # Lowest item index that is ever sent.
    first_index: int
    forum: bool = False


def parse_wot_express(html: str, site: NewsWebsite) -> List[NewsItem]:
    soup = BeautifulSoup(html, "html.parser")
    items: List[NewsItem] = []
    for link in soup.select(site.selector):
        children = link.find_all(recursive=False)
        region = children[2].get("class", []) if len(children) > 2 else []
        is_eu = any("eu" in css_class for css_class in region)

        image = None
        for child in children:
            match = _BACKGROUND_URL.search(child.get("style", ""))
            if match:
                image = match.group(1)
                break

        items.append(
            NewsItem(
                url=link.get("href", ""),
                title=f"{site.name} : {'EU news' if is_eu else 'RU news'}",
                description=f"Nouvelle rumeur venant de {site.name}",
                image=image,
            )
        )
    return items


def parse_armored_patrol(html: str, site: NewsWebsite) -> List[NewsItem]:
    soup = BeautifulSoup(html, "html.parser")
    items: List[NewsItem] = []
    for article in soup.select(site.selector):
        link = article.find("a", href=True)
        if link is None:
            continue
        image = article.find("img")
        items.append(
            NewsItem(
                url=link["href"],
                title=link.get_text(strip=True),
                description=f"Nouvelle rumeur venant de {site.name}",
                image=image.get("src") if image is not None else None,
            )
        )
    return items


def parse_wot_rss(xml: str, site: NewsWebsite) -> List[NewsItem]:
    """Items of the official RSS feed; raises ``ValueError`` on invalid XML."""

    try:
        root = ElementTree.fromstring(xml)
    except ElementTree.ParseError as exc:
        raise ValueError(f"Failed to scrap {site.name}, cause xml parsing failed, retrying later") from exc

    items: List[NewsItem] = []
    for item in root.iter("item"):
        description = BeautifulSoup(item.findtext("description") or "", "html.parser").get_text(" ", strip=True)
        enclosure = item.find("enclosure")
        items.append(
            NewsItem(
                url=(item.findtext("link") or "").strip(),
                title=(item.findtext("title") or "").strip(),
                description=description,
                image=enclosure.get("url") if enclosure is not None else None,
            )
        )
    return items


SITES: Dict[str, _SiteRules] = {
    WOT_EXPRESS: _SiteRules(parse_wot_express, default_index=12, first_index=1),
    THE_ARMORED_PATROL: _SiteRules(parse_armored_patrol, default_index=None, first_index=0),
    WORLD_OF_TANKS: _SiteRules(parse_wot_rss, default_index=20, first_index=0, forum=True),
}


def items_to_send(items: List[NewsItem], last_url: str, *, default_index: Optional[int], first_index: int) -> List[NewsItem]:
    """Items newer than ``last_url``, oldest first.

    With no ``last_url`` only the newest item is returned. When ``last_url``
    is not found, ``default_index`` stands for its position (``None`` means
    nothing is sent).
    """

    if len(items) <= first_index:
        return []
    if not last_url:
        return [items[first_index]]

    index = next((i for i, item in enumerate(items) if item.url == last_url), None)
    if index is None:
        index = default_index
    if index is None:
        return []

    index = min(index, len(items))
    return [items[i] for i in range(index - 1, first_index - 1, -1)]


class NewsScraper:
    """Fetches the configured news websites and posts the unseen articles."""

    def __init__(
        self,
        news_websites: NewsWebsitesTable,
        ban_words: BanWordsTable,
        channels: ChannelsTable,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        item_delay: float = 60.0,
    ) -> None:
        self.news_websites = news_websites
        self.ban_words = ban_words
        self.channels = channels
        self.item_delay = item_delay
        self.channel: Any = None
        self.forum_channel: Any = None
        self._session = session

    async def initialise(self, bot: discord.Client) -> None:
        self.channel = await fetch_channel(bot, await self.channels.get_news_website())
        self.forum_channel = await fetch_channel(bot, await self.channels.get_wot_news())

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _fetch(self, url: str) -> str:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=10))
        async with self._session.get(url) as response:
            response.raise_for_status()
            return await response.text()

    async def scrap_website(self, site: NewsWebsite, channel: Any = None, forum_channel: Any = None) -> int:
        """Scrap one website and return the number of news sent.

        Fetch and parse failures are logged and give ``0``.
        """

        rules = SITES.get(site.name)
        if rules is None:
            logger.error("No scrapper for %s, please add one !", site.name)
            return 0

        target = (forum_channel or self.forum_channel) if rules.forum else (channel or self.channel)
        if target is None:
            logger.warning("No channel available for %s news", site.name)
            return 0

        logger.debug("⛏️ Start scrapping %s", site.name)
        try:
            content = await self._fetch(site.live_url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("Fetching newsletter for `%s` failed: %s", site.name, exc)
            return 0

        try:
            items = rules.parser(content, site)
        except ValueError as exc:
            logger.error("Scrapping newsletter for `%s` failed: %s", site.name, exc)
            return 0

        pending = items_to_send(items, site.last_url, default_index=rules.default_index, first_index=rules.first_index)
        sent = 0
        for position, item in enumerate(pending):
            if position and self.item_delay:
                await asyncio.sleep(self.item_delay)
            if await self.send_news(target, item, site):
                sent += 1

        logger.debug("⛏️ End scrapping for %s", site.name)
        return sent

    async def send_news(self, channel: Any, item: NewsItem, site: NewsWebsite) -> bool:
        """Store ``item.url`` as the last news of the site and post it.

        URLs containing a ban word are recorded but not posted.
        """

        if await self.news_websites.update_website(site.name, item.url):
            site.last_url = item.url

        banned = await self.ban_words.get_all()
        if any(word in item.url for word in banned):
            logger.debug("🗑️ %s contains ban words !", item.url)
            return False

        logger.info("✉️ Sending news on channel %s for the web site %s, with the url %s", getattr(channel, "name", channel), site.name, item.url)
        embed = discord.Embed(title=item.title, description=item.description, url=item.url, color=discord.Color.dark_grey())
        if item.image:
            embed.set_image(url=item.image if item.image.startswith("http") else site.live_url + item.image)

        if isinstance(channel, discord.ForumChannel):
            await channel.create_thread(name=item.title[:100] or site.name, embed=embed)
        else:
            await channel.send(embed=embed)
        return True


__all__ = [
    "NewsItem",
    "NewsScraper",
    "SITES",
    "THE_ARMORED_PATROL",
    "WORLD_OF_TANKS",
    "WOT_EXPRESS",
    "items_to_send",
    "parse_armored_patrol",
    "parse_wot_express",
    "parse_wot_rss",
]
