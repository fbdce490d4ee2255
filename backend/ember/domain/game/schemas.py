"""Pydantic schemas for the game rooms API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ember.domain.game import models
from ember.domain.game.events import GameEvent


class CreateRoomRequest(BaseModel):
    host_name: str = Field(..., max_length=200)
    play_mode: str = Field(default=models.DEFAULT_PLAY_MODE, pattern="^(multi-device|same-device)$")


class JoinRoomRequest(BaseModel):
    room_code: str = Field(..., max_length=32)
    player_name: str = Field(..., max_length=200)


class UpdateRoomRequest(BaseModel):
    """Any subset of the mutable room fields; at least one must be present."""

    step: Optional[str] = None
    spicy_level: Optional[str] = None
    categories: Optional[List[str]] = Field(default=None, max_length=20)


class ReadyRequest(BaseModel):
    player_id: str
    is_ready: bool


class SubmitQuestionRequest(BaseModel):
    text: str = Field(..., max_length=2000)
    category: str = Field(..., min_length=1, max_length=50)
    spicy_level: str


class GenerateQuestionRequest(BaseModel):
    category: Optional[str] = Field(default=None, max_length=50)


class SubmitAnswerRequest(BaseModel):
    question_id: str
    player_id: str
    text: str = Field(..., max_length=4000)


class CloseRoomRequest(BaseModel):
    player_id: str


class PlayerSummary(BaseModel):
    id: str
    name: str
    is_host: bool
    is_ready: bool
    joined_at: datetime
    last_seen: datetime


class QuestionDTO(BaseModel):
    id: str
    text: str
    category: str
    spicy_level: str
    round_number: int
    created_at: datetime


class AnswerDTO(BaseModel):
    id: str
    question_id: str
    player_id: str
    player_name: Optional[str] = None
    answer_text: str
    submitted_at: datetime


class RoomState(BaseModel):
    code: str
    host_id: Optional[str] = None
    play_mode: str
    step: str
    spicy_level: str
    categories: List[str] = Field(default_factory=list)
    players: List[PlayerSummary] = Field(default_factory=list)
    current_question: Optional[QuestionDTO] = None
    answers: List[AnswerDTO] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    expires_at: datetime


class RoomSession(RoomState):
    """Room state plus the id the caller should keep for later requests."""

    player_id: str


class RoomUpdateResponse(BaseModel):
    """Only the fields whose value actually changed."""

    updates: Dict[str, Any] = Field(default_factory=dict)


class ReadyResponse(BaseModel):
    all_ready: bool
    player_count: int
    ready_count: int


class AnswerResponse(BaseModel):
    answer_id: str
    all_answered: bool
    updated: bool
    answered_count: int
    player_count: int


class QuestionListResponse(BaseModel):
    items: List[QuestionDTO]


class RoundDTO(BaseModel):
    question: QuestionDTO
    answers: List[AnswerDTO] = Field(default_factory=list)


class RoundsResponse(BaseModel):
    rounds: List[RoundDTO]


class SyncResponse(BaseModel):
    events: List[GameEvent]
    players: List[PlayerSummary]
    server_time: datetime
    has_more: bool = False


class CloseRoomResponse(BaseModel):
    ok: bool = True
