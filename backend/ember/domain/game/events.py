"""Typed game events.

Each row of the event log carries an ``event_type`` and a JSON payload. The
payload schema is fixed per type; ``GameEvent`` is the discriminated union the
sync feed returns, so consumers can branch on ``type`` exhaustively.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, SerializerFunctionWrapHandler, TypeAdapter, model_serializer

from ember.domain.game import models


class RoomCreatedPayload(BaseModel):
    host_id: str
    host_name: str
    play_mode: models.PlayMode = "multi-device"


class PlayerJoinedPayload(BaseModel):
    player_id: str
    player_name: str


class PlayerReadyChangedPayload(BaseModel):
    player_id: str
    player_name: str
    is_ready: bool


class RoomUpdatedPayload(BaseModel):
    """Only the fields that changed in the update are present."""

    step: Optional[models.GameStep] = None
    spicy_level: Optional[models.SpicyLevel] = None
    categories: Optional[List[str]] = None

    @model_serializer(mode="wrap")
    def _changed_only(self, handler: SerializerFunctionWrapHandler) -> Dict[str, Any]:
        return {key: value for key, value in handler(self).items() if value is not None}


class QuestionAskedPayload(BaseModel):
    question_id: str
    category: str
    round_number: int


class AnswerPayload(BaseModel):
    question_id: str
    player_id: str
    player_name: str


class RoomClosedPayload(BaseModel):
    closed_by: str


class _EventBase(BaseModel):
    id: str
    created_at: datetime


class RoomCreatedEvent(_EventBase):
    type: Literal["room_created"] = "room_created"
    payload: RoomCreatedPayload


class PlayerJoinedEvent(_EventBase):
    type: Literal["player_joined"] = "player_joined"
    payload: PlayerJoinedPayload


class PlayerReadyChangedEvent(_EventBase):
    type: Literal["player_ready_changed"] = "player_ready_changed"
    payload: PlayerReadyChangedPayload


class RoomUpdatedEvent(_EventBase):
    type: Literal["room_updated"] = "room_updated"
    payload: RoomUpdatedPayload


class QuestionAskedEvent(_EventBase):
    type: Literal["question_asked"] = "question_asked"
    payload: QuestionAskedPayload


class AnswerSubmittedEvent(_EventBase):
    type: Literal["answer_submitted"] = "answer_submitted"
    payload: AnswerPayload


class AnswerUpdatedEvent(_EventBase):
    type: Literal["answer_updated"] = "answer_updated"
    payload: AnswerPayload


class RoomClosedEvent(_EventBase):
    type: Literal["room_closed"] = "room_closed"
    payload: RoomClosedPayload


GameEvent = Annotated[
    Union[
        RoomCreatedEvent,
        PlayerJoinedEvent,
        PlayerReadyChangedEvent,
        RoomUpdatedEvent,
        QuestionAskedEvent,
        AnswerSubmittedEvent,
        AnswerUpdatedEvent,
        RoomClosedEvent,
    ],
    Field(discriminator="type"),
]

EVENT_TYPES: tuple[str, ...] = (
    "room_created",
    "player_joined",
    "player_ready_changed",
    "room_updated",
    "question_asked",
    "answer_submitted",
    "answer_updated",
    "room_closed",
)

_EVENT_ADAPTER: TypeAdapter[GameEvent] = TypeAdapter(GameEvent)


def encode_payload(payload: BaseModel) -> Dict[str, Any]:
    """JSON-ready payload dict as stored in game_events.payload."""
    return payload.model_dump(mode="json", exclude_none=True)


def decode(stored: models.StoredEvent) -> GameEvent:
    return _EVENT_ADAPTER.validate_python(
        {
            "id": stored.id,
            "type": stored.event_type,
            "payload": stored.payload,
            "created_at": stored.created_at,
        }
    )
