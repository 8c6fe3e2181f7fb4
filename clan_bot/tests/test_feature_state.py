from __future__ import annotations

import json
from pathlib import Path
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from clan_bot.core.feature_state import FeatureState  # noqa: E402


@pytest.mark.asyncio
async def test_missing_file_is_created_with_initial_value(tmp_path: Path) -> None:
    path = tmp_path / "data" / "feature.json"
    state = FeatureState(path)
    await state.load()

    assert json.loads(path.read_text(encoding="utf-8")) == {"auto_disconnect": "", "auto_reply": []}
    assert state.auto_disconnect is None
    assert state.auto_replies == []


@pytest.mark.asyncio
async def test_mutations_are_persisted(tmp_path: Path) -> None:
    path = tmp_path / "feature.json"
    state = FeatureState(path)
    await state.load()

    await state.set_auto_disconnect(123)
    assert await state.add_auto_reply(1, 2)
    assert not await state.add_auto_reply(1, 2)
    assert await state.add_auto_reply(3, 2)

    reloaded = FeatureState(path)
    await reloaded.load()
    assert reloaded.auto_disconnect == 123
    assert reloaded.replies_for(2) == [{"activate_for": 1, "reply_to": 2}, {"activate_for": 3, "reply_to": 2}]
    assert json.loads(path.read_text(encoding="utf-8"))["auto_reply"][0] == {"activate_for": "1", "reply_to": "2"}

    assert await reloaded.delete_auto_reply(1, 2)
    assert not await reloaded.delete_auto_reply(1, 2)
    await reloaded.set_auto_disconnect(None)
    assert reloaded.auto_disconnect is None
    assert not reloaded.has_auto_reply(1, 2)


@pytest.mark.asyncio
async def test_corrupted_file_starts_from_initial_value(tmp_path: Path) -> None:
    path = tmp_path / "feature.json"
    path.write_text("{not json", encoding="utf-8")
    state = FeatureState(path)
    await state.load()

    assert state.auto_replies == []
    assert state.auto_disconnect is None
