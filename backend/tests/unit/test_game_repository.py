import uuid
from datetime import datetime, timedelta, timezone

import pytest

from ember.domain.game import repository
from ember.domain.game.memory import MemoryGameStore
from ember.domain.game.repository import (
    PostgresGameStore,
    _diff_room,
    _row_to_answer,
    _row_to_event,
    _row_to_player,
    _row_to_question,
    _row_to_room,
    get_store,
)
from ember.settings import settings

NOW = datetime(2025, 6, 1, 18, 0, tzinfo=timezone.utc)
ROOM_ID = uuid.UUID("2f0c6a52-4f6e-4a43-9d7e-0f8f6f1b7a11")
HOST_ID = uuid.UUID("9a1d3c1e-7b0a-4a4e-b7f5-2b8ad9c8c001")


def _room_row(**overrides):
    row = {
        "id": ROOM_ID,
        "code": "ABCDEF",
        "host_id": HOST_ID,
        "play_mode": "multi-device",
        "step": "Lobby",
        "spicy_level": "Mild",
        "categories": ["Romance", "Travel", "Food"],
        "is_active": True,
        "created_at": NOW,
        "updated_at": NOW,
        "expires_at": NOW + timedelta(hours=24),
    }
    row.update(overrides)
    return row


def test_room_row_maps_uuids_to_strings():
    room = _row_to_room(_room_row())
    assert room.id == str(ROOM_ID)
    assert room.host_id == str(HOST_ID)
    assert room.categories == ["Romance", "Travel", "Food"]
    assert room.is_open(NOW)
    assert not room.is_open(NOW + timedelta(hours=24))


def test_room_row_tolerates_missing_host_and_null_categories():
    room = _row_to_room(_room_row(host_id=None, categories=None))
    assert room.host_id is None
    assert room.categories == []


def test_diff_room_keeps_only_changed_fields():
    room = _row_to_room(_room_row())
    assert _diff_room(room, step=None, spicy_level=None, categories=None) == {}
    assert _diff_room(room, step="Lobby", spicy_level="Mild", categories=["Romance", "Travel", "Food"]) == {}
    changes = _diff_room(room, step="SpicyLevel", spicy_level="Mild", categories=("Music", "Art", "Food"))
    assert changes == {"step": "SpicyLevel", "categories": ["Music", "Art", "Food"]}


def test_player_question_and_answer_rows():
    player = _row_to_player(
        {
            "id": HOST_ID,
            "room_id": ROOM_ID,
            "name": "Alex",
            "is_host": 1,
            "is_ready": 0,
            "joined_at": NOW,
            "last_seen": NOW,
        }
    )
    assert player.id == str(HOST_ID)
    assert player.is_host is True and player.is_ready is False

    question = _row_to_question(
        {
            "id": uuid.uuid4(),
            "room_id": ROOM_ID,
            "text": "Q1",
            "category": "Romance",
            "spicy_level": "Mild",
            "round_number": 3,
            "created_at": NOW,
        }
    )
    assert question.round_number == 3
    assert question.to_dict()["text"] == "Q1"

    answer_row = {
        "id": uuid.uuid4(),
        "question_id": uuid.uuid4(),
        "player_id": HOST_ID,
        "text": "A",
        "submitted_at": NOW,
    }
    assert _row_to_answer(answer_row).player_name is None
    named = _row_to_answer({**answer_row, "player_name": "Alex"})
    assert named.player_name == "Alex"
    assert named.to_dict()["answer_text"] == "A"


@pytest.mark.parametrize(
    "payload",
    ['{"step": "Question"}', {"step": "Question"}],
    ids=["json-text", "decoded-jsonb"],
)
def test_event_row_accepts_text_or_decoded_payload(payload):
    event = _row_to_event(
        {
            "id": "01J0000000000000000000000",
            "room_id": ROOM_ID,
            "event_type": "room_updated",
            "payload": payload,
            "created_at": NOW,
        }
    )
    assert event.room_id == str(ROOM_ID)
    assert event.payload == {"step": "Question"}


def test_get_store_follows_the_configured_backend(monkeypatch):
    assert isinstance(get_store(), MemoryGameStore)
    monkeypatch.setattr(settings, "store_backend", "postgres")
    store = get_store()
    assert isinstance(store, PostgresGameStore)
    assert store is repository.get_store()
