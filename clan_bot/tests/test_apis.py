from __future__ import annotations

from pathlib import Path
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from clan_bot.apis.base import ApiError  # noqa: E402
from clan_bot.apis.tomato import TomatoApi  # noqa: E402
from clan_bot.apis.wargaming import WargamingApi  # noqa: E402
from clan_bot.apis.wot import WotApi  # noqa: E402


class FakeResponse:
    def __init__(self, payload) -> None:
        self.payload = payload

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def json(self, content_type=None):
        return self.payload


class FakeSession:
    """Replays the queued payloads and records every GET."""

    def __init__(self, *payloads) -> None:
        self.payloads = list(payloads)
        self.calls = []
        self.closed = False

    def get(self, url, params=None, timeout=None) -> FakeResponse:
        self.calls.append((url, params))
        return FakeResponse(self.payloads.pop(0) if self.payloads else None)

    async def close(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_wot_api_retries_empty_answers() -> None:
    session = FakeSession(None, {}, {"status": "ok", "data": {"500": {"name": "FRENCH"}}})
    api = WotApi("app-id", session)  # type: ignore[arg-type]

    response = await api.clans_info(500)

    assert response["data"]["500"]["name"] == "FRENCH"
    assert len(session.calls) == 3
    url, params = session.calls[-1]
    assert url == "https://api.worldoftanks.eu/wot/clans/info/"
    assert params == {"clan_id": "500", "application_id": "app-id"}


@pytest.mark.asyncio
async def test_wot_api_gives_up_after_max_attempts() -> None:
    session = FakeSession()
    api = WotApi("app-id", session)  # type: ignore[arg-type]

    with pytest.raises(ApiError):
        await api.account_list("tanker")
    assert len(session.calls) == WotApi.max_attempts


@pytest.mark.asyncio
async def test_wot_api_error_payload_raises() -> None:
    session = FakeSession({"status": "error", "error": {"code": 407, "message": "INVALID_SEARCH"}})
    api = WotApi("app-id", session)  # type: ignore[arg-type]

    with pytest.raises(ApiError, match="INVALID_SEARCH"):
        await api.account_list("x")


@pytest.mark.asyncio
async def test_tankopedia_omits_unset_page() -> None:
    session = FakeSession({"status": "ok", "meta": {"page_total": 1}, "data": {}})
    api = WotApi("app-id", session)  # type: ignore[arg-type]

    await api.tankopedia_vehicles()

    _, params = session.calls[0]
    assert "page_no" not in params
    assert params["tier"] == "10"
    assert params["language"] == "fr"


@pytest.mark.asyncio
async def test_tomato_error_meta_raises() -> None:
    session = FakeSession({"meta": {"status": "error", "message": "Player not found"}})
    api = TomatoApi(session)  # type: ignore[arg-type]

    with pytest.raises(ApiError, match="Player not found"):
        await api.player_overall(42)
    assert session.calls[0][0] == "https://api.tomato.gg/dev/api-v2/player/overall/eu/42"


@pytest.mark.asyncio
async def test_wargaming_newsfeed_query() -> None:
    session = FakeSession({"items": []})
    api = WargamingApi(session)  # type: ignore[arg-type]

    assert await api.clans_newsfeed(500, "2024-01-01T00:00:00") == {"items": []}
    url, params = session.calls[0]
    assert url == "https://eu.wargaming.net/clans/wot/500/newsfeed/api/events/"
    assert params == {"offset": "3600", "date_until": "2024-01-01T00:00:00"}


@pytest.mark.asyncio
async def test_injected_session_is_not_closed() -> None:
    session = FakeSession()
    api = WargamingApi(session)  # type: ignore[arg-type]

    await api.close()

    assert not session.closed
