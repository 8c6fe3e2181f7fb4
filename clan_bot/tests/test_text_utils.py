from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from zoneinfo import ZoneInfo
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from clan_bot.core import time_utils  # noqa: E402
from clan_bot.core.text_utils import (  # noqa: E402
    escape,
    format_response_time,
    sanitize,
    shell_name,
    transform_to_code,
    wot_life_player_url,
)


def test_transform_to_code() -> None:
    assert transform_to_code("The player {} win the tournament", "MusaRoy") == "The player `MusaRoy` win the tournament"
    assert transform_to_code("nothing to replace") == "nothing to replace"
    with pytest.raises(ValueError):
        transform_to_code("{} and {}", "only one")


def test_sanitize_and_escape() -> None:
    assert sanitize(" l'\"abc\" ") == "labc"
    assert escape(" it's ") == "it\\'s"
    assert sanitize("") == ""


def test_shell_names_and_urls() -> None:
    assert shell_name("ARMOR_PIERCING_CR") == "APCR"
    assert shell_name("UNKNOWN") == "UNKNOWN"
    assert wot_life_player_url("Tanker", 42) == "https://fr.wot-life.com/eu/player/Tanker-42/"


def test_format_response_time() -> None:
    assert format_response_time(2350) == "2.35 secondes"
    assert format_response_time(65_000) == "1:05 minutes"


def test_day_and_month_bounds() -> None:
    assert time_utils.day_bounds(datetime(2024, 2, 29, 18)) == ("2024-02-29 00:00:00", "2024-03-01 00:00:00")
    assert time_utils.month_bounds(datetime(2024, 12, 5)) == ("2024-12-01 00:00:00", "2025-01-01 00:00:00")


def test_previous_month_and_label() -> None:
    previous = time_utils.previous_month(datetime(2024, 3, 1, 0, 5))
    assert (previous.year, previous.month) == (2024, 2)
    assert time_utils.month_label(previous) == "février 2024"


def test_diff_of_days_ignores_hours() -> None:
    assert time_utils.diff_of_days(datetime(2024, 3, 10, 0, 1), datetime(2024, 3, 9, 23, 59)) == 1


def test_parse_api_timestamp() -> None:
    expected = datetime(2024, 2, 1, 10, tzinfo=timezone.utc)
    assert time_utils.parse_api_timestamp("2024-02-01T10:00:00Z") == expected
    assert time_utils.parse_api_timestamp("2024-02-01T11:00:00+01:00") == expected
    assert time_utils.parse_api_timestamp("2024-02-01T10:00:00") == expected
    assert time_utils.parse_api_timestamp(None) is None


def test_now_is_the_wall_clock_of_the_bot_timezone(monkeypatch: pytest.MonkeyPatch) -> None:
    instant = datetime(2024, 2, 29, 23, 5, 30, 250_000, tzinfo=timezone.utc)
    monkeypatch.setattr(time_utils, "_utcnow", lambda: instant)
    monkeypatch.setattr(time_utils, "_zone", None)

    time_utils.set_timezone(time_utils.resolve_zone("Europe/Paris"))
    assert time_utils.now() == datetime(2024, 3, 1, 0, 5, 30)
    assert time_utils.to_unix(time_utils.now()) == int(instant.timestamp())

    time_utils.set_timezone(timezone.utc)
    assert time_utils.now() == datetime(2024, 2, 29, 23, 5, 30)
    assert time_utils.get_timezone() is timezone.utc
