from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from ember.domain.game import events, models


def _stored(event_type: str, payload: dict) -> models.StoredEvent:
    return models.StoredEvent(
        id="01J0000000000000000000000",
        room_id="room-1",
        event_type=event_type,
        payload=payload,
        created_at=datetime(2025, 6, 1, tzinfo=timezone.utc),
    )


def test_room_updated_payload_omits_unchanged_fields():
    encoded = events.encode_payload(events.RoomUpdatedPayload(step="Question"))
    assert encoded == {"step": "Question"}


def test_decode_picks_variant_by_type():
    decoded = events.decode(
        _stored("answer_updated", {"question_id": "q", "player_id": "p", "player_name": "Sam"})
    )
    assert isinstance(decoded, events.AnswerUpdatedEvent)
    assert decoded.type == "answer_updated"
    assert decoded.payload.player_name == "Sam"


def test_every_event_type_has_a_variant():
    samples = {
        "room_created": {"host_id": "h", "host_name": "Alex"},
        "player_joined": {"player_id": "p", "player_name": "Sam"},
        "player_ready_changed": {"player_id": "p", "player_name": "Sam", "is_ready": True},
        "room_updated": {"categories": ["Travel", "Food", "Music"]},
        "question_asked": {"question_id": "q", "category": "Travel", "round_number": 1},
        "answer_submitted": {"question_id": "q", "player_id": "p", "player_name": "Sam"},
        "answer_updated": {"question_id": "q", "player_id": "p", "player_name": "Sam"},
        "room_closed": {"closed_by": "h"},
    }
    assert set(samples) == set(events.EVENT_TYPES)
    for event_type, payload in samples.items():
        assert events.decode(_stored(event_type, payload)).type == event_type


def test_unknown_event_type_is_rejected():
    with pytest.raises(PydanticValidationError):
        events.decode(_stored("room_exploded", {}))


def test_decoded_room_update_serializes_changed_fields_only():
    decoded = events.decode(_stored("room_updated", {"spicy_level": "Hot"}))
    assert decoded.payload.step is None
    dumped = decoded.model_dump(mode="json")
    assert dumped["payload"] == {"spicy_level": "Hot"}
