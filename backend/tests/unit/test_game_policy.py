from datetime import datetime, timezone

import pytest

from ember.domain.game import models, policy
from ember.domain.game.exceptions import NameTaken, RateLimited, RoomFull, ValidationError
from ember.settings import settings


def _player(name: str, *, is_host: bool = False) -> models.Player:
    now = datetime.now(timezone.utc)
    return models.Player(
        id=f"id-{name}",
        room_id="room",
        name=name,
        is_host=is_host,
        is_ready=False,
        joined_at=now,
        last_seen=now,
    )


def test_player_name_is_trimmed():
    assert policy.normalise_player_name("  Alex  ") == "Alex"


@pytest.mark.parametrize(
    "raw, detail",
    [
        ("", "name_required"),
        ("   ", "name_required"),
        ("x" * 51, "name_too_long"),
        ("Alex<script>", "name_invalid_characters"),
    ],
)
def test_player_name_rules(raw, detail):
    with pytest.raises(ValidationError) as exc:
        policy.normalise_player_name(raw)
    assert exc.value.detail == detail


def test_name_check_is_case_insensitive():
    with pytest.raises(NameTaken):
        policy.ensure_name_available([_player("Sam")], "sam")
    policy.ensure_name_available([_player("Sam")], "Alex")


def test_capacity_check():
    policy.ensure_capacity_available(1, 2)
    with pytest.raises(RoomFull):
        policy.ensure_capacity_available(2, 2)


def test_categories_are_deduplicated_in_order():
    result = policy.normalise_categories([" Romance ", "Travel", "romance", "Food"])
    assert result == ["Romance", "Travel", "Food"]
    assert policy.normalise_categories([]) == []


@pytest.mark.parametrize(
    "values, detail",
    [
        (["Romance", "Travel"], "category_count"),
        (["a", "b", "c", "d", "e", "f"], "category_count"),
        (["Romance", "", "Food"], "category_empty"),
        (["x" * 51, "b", "c"], "category_too_long"),
    ],
)
def test_category_rules(values, detail):
    with pytest.raises(ValidationError) as exc:
        policy.normalise_categories(values)
    assert exc.value.detail == detail


def test_step_and_spicy_level_must_be_known():
    assert policy.ensure_step("Reveal") == "Reveal"
    assert policy.ensure_spicy_level("Extra-Hot") == "Extra-Hot"
    with pytest.raises(ValidationError):
        policy.ensure_step("Intermission")
    with pytest.raises(ValidationError):
        policy.ensure_spicy_level("Lukewarm")


def test_answer_text_limits():
    assert policy.ensure_answer_text("  yes ") == "yes"
    with pytest.raises(ValidationError) as empty:
        policy.ensure_answer_text("   ")
    assert empty.value.detail == "answer_required"
    with pytest.raises(ValidationError) as long:
        policy.ensure_answer_text("a" * (settings.answer_max_length + 1))
    assert long.value.detail == "answer_too_long"


def test_parse_id_rejects_non_uuid():
    value = "6f1c1a4e-2f7a-4f59-9a52-1f0a4c9b8d21"
    assert policy.parse_id(value.upper(), field="player_id") == value
    with pytest.raises(ValidationError) as exc:
        policy.parse_id("player-1", field="player_id")
    assert exc.value.detail == "invalid_player_id"


def test_parse_since_accepts_zulu_and_naive_timestamps():
    expected = datetime(2025, 3, 1, 12, 30, tzinfo=timezone.utc)
    assert policy.parse_since("2025-03-01T12:30:00Z") == expected
    assert policy.parse_since("2025-03-01T12:30:00") == expected
    assert policy.parse_since(None) is None
    assert policy.parse_since("") is None
    with pytest.raises(ValidationError) as exc:
        policy.parse_since("yesterday")
    assert exc.value.detail == "invalid_since"


@pytest.mark.asyncio
async def test_create_limit_uses_redis_window(fake_redis, monkeypatch):
    monkeypatch.setattr(settings, "room_create_limit_per_minute", 2)
    await policy.enforce_create_limit("10.0.0.1")
    await policy.enforce_create_limit("10.0.0.1")
    with pytest.raises(RateLimited) as exc:
        await policy.enforce_create_limit("10.0.0.1")
    assert exc.value.status_code == 429
    await policy.enforce_create_limit("10.0.0.2")
