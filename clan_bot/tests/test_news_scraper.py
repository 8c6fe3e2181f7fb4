from __future__ import annotations

from pathlib import Path
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from clan_bot.core.database import DatabaseEngine  # noqa: E402
from clan_bot.core.models import NewsWebsite  # noqa: E402
from clan_bot.core.tables import Tables  # noqa: E402
from clan_bot.engines.news_scraper import (  # noqa: E402
    NewsItem,
    NewsScraper,
    THE_ARMORED_PATROL,
    WOT_EXPRESS,
    WORLD_OF_TANKS,
    items_to_send,
    parse_armored_patrol,
    parse_wot_express,
    parse_wot_rss,
)


ARMORED_PATROL_HTML = """
<html><body>
  <article class="post"><h2><a href="https://thearmoredpatrol.com/d">Supertest: D</a></h2>
    <img src="https://thearmoredpatrol.com/d.png"></article>
  <article class="post"><h2><a href="https://thearmoredpatrol.com/c-leak">Leak: C</a></h2></article>
  <article class="post"><h2><a href="https://thearmoredpatrol.com/b">Patch B</a></h2></article>
  <article class="post"><h2><a href="https://thearmoredpatrol.com/a">Patch A</a></h2></article>
  <article class="post"><h2>No link here</h2></article>
</body></html>
"""

WOT_EXPRESS_HTML = """
<div>
  <a class="news" href="/news/2"><div style="background-image: url('/img/2.jpg')"></div><span>x</span><div class="flag-eu"></div></a>
  <a class="news" href="/news/1"><div></div><span>x</span><div class="flag-ru"></div></a>
</div>
"""

WOT_RSS = """<?xml version="1.0"?>
<rss><channel>
  <item><title> Mise à jour 1.25 </title><link>https://worldoftanks.eu/news/2</link>
    <description>&lt;p&gt;Notes de &lt;b&gt;version&lt;/b&gt;&lt;/p&gt;</description>
    <enclosure url="https://worldoftanks.eu/2.jpg" type="image/jpeg"/></item>
  <item><title>Promotions</title><link>https://worldoftanks.eu/news/1</link></item>
</channel></rss>
"""


def _items(*urls: str) -> list[NewsItem]:
    return [NewsItem(url=url, title=url, description="") for url in urls]


def test_items_newer_than_last_url_are_sent_oldest_first() -> None:
    items = _items("d", "c", "b", "a")

    assert [item.url for item in items_to_send(items, "b", default_index=None, first_index=0)] == ["c", "d"]
    assert [item.url for item in items_to_send(items, "b", default_index=None, first_index=1)] == ["c"]
    assert items_to_send(items, "d", default_index=None, first_index=0) == []


def test_first_run_sends_only_the_newest_item() -> None:
    items = _items("d", "c")

    assert [item.url for item in items_to_send(items, "", default_index=12, first_index=1)] == ["c"]
    assert items_to_send(_items("d"), "", default_index=12, first_index=1) == []


def test_unknown_last_url_uses_default_index() -> None:
    items = _items("d", "c", "b")

    assert items_to_send(items, "gone", default_index=None, first_index=0) == []
    assert [item.url for item in items_to_send(items, "gone", default_index=20, first_index=0)] == ["b", "c", "d"]
    assert [item.url for item in items_to_send(items, "gone", default_index=2, first_index=0)] == ["c", "d"]


def test_parse_armored_patrol() -> None:
    site = NewsWebsite(name=THE_ARMORED_PATROL, live_url="https://thearmoredpatrol.com/", selector="article.post")
    items = parse_armored_patrol(ARMORED_PATROL_HTML, site)

    assert [item.url for item in items][:2] == ["https://thearmoredpatrol.com/d", "https://thearmoredpatrol.com/c-leak"]
    assert len(items) == 4
    assert items[0].title == "Supertest: D"
    assert items[0].image == "https://thearmoredpatrol.com/d.png"
    assert items[1].image is None


def test_parse_wot_express_region_and_background_image() -> None:
    site = NewsWebsite(name=WOT_EXPRESS, live_url="https://wotexpress.info/", selector="a.news")
    first, second = parse_wot_express(WOT_EXPRESS_HTML, site)

    assert first.url == "/news/2"
    assert first.title == "Wot Express : EU news"
    assert first.image == "img/2.jpg"
    assert second.title == "Wot Express : RU news"
    assert second.image is None


def test_parse_wot_rss() -> None:
    site = NewsWebsite(name=WORLD_OF_TANKS, live_url="https://worldoftanks.eu/rss")
    first, second = parse_wot_rss(WOT_RSS, site)

    assert first.title == "Mise à jour 1.25"
    assert first.url == "https://worldoftanks.eu/news/2"
    assert first.description == "Notes de version"
    assert first.image == "https://worldoftanks.eu/2.jpg"
    assert second.image is None


def test_invalid_rss_raises_value_error() -> None:
    with pytest.raises(ValueError):
        parse_wot_rss("<rss><channel>", NewsWebsite(name=WORLD_OF_TANKS, live_url=""))


class FakePage:
    def __init__(self, text: str) -> None:
        self._text = text

    async def __aenter__(self) -> "FakePage":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    def raise_for_status(self) -> None:
        return None

    async def text(self) -> str:
        return self._text


class FakeSession:
    closed = False

    def __init__(self, text: str) -> None:
        self.text = text
        self.urls = []

    def get(self, url: str) -> FakePage:
        self.urls.append(url)
        return FakePage(self.text)


class FakeChannel:
    name = "news"

    def __init__(self) -> None:
        self.embeds = []

    async def send(self, *, embed) -> None:
        self.embeds.append(embed)


@pytest.mark.asyncio
async def test_scrap_website_posts_new_items_and_skips_ban_words(tmp_path: Path) -> None:
    database = DatabaseEngine(str(tmp_path / "news.sqlite3"))
    await database.initialize()
    try:
        tables = Tables.create(database)
        await database.execute(
            "INSERT INTO news_websites (name, live_url, last_url, selector) VALUES (?, ?, ?, ?)",
            (THE_ARMORED_PATROL, "https://thearmoredpatrol.com/", "https://thearmoredpatrol.com/b", "article.post"),
        )
        await database.execute("INSERT INTO ban_words (word) VALUES (?)", ("leak",))

        session = FakeSession(ARMORED_PATROL_HTML)
        scraper = NewsScraper(tables.news_websites, tables.ban_words, tables.channels, session=session, item_delay=0)  # type: ignore[arg-type]
        channel = FakeChannel()
        site = (await tables.news_websites.get_all())[0]

        assert await scraper.scrap_website(site, channel=channel) == 1
        assert session.urls == ["https://thearmoredpatrol.com/"]
        assert [embed.url for embed in channel.embeds] == ["https://thearmoredpatrol.com/d"]
        assert (await tables.news_websites.get_all())[0].last_url == "https://thearmoredpatrol.com/d"

        assert await scraper.scrap_website(site, channel=channel) == 0
    finally:
        await database.close()


@pytest.mark.asyncio
async def test_unknown_site_is_ignored(tmp_path: Path) -> None:
    database = DatabaseEngine(str(tmp_path / "news.sqlite3"))
    await database.initialize()
    try:
        tables = Tables.create(database)
        scraper = NewsScraper(tables.news_websites, tables.ban_words, tables.channels, item_delay=0)
        site = NewsWebsite(name="Unknown", live_url="https://example.org/")
        assert await scraper.scrap_website(site, channel=FakeChannel()) == 0
    finally:
        await database.close()
