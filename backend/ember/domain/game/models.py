"""Domain models for game rooms, players, questions, answers and events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from ember.domain.game import steps

GameStep = Literal["Lobby", "CategorySelection", "SpicyLevel", "Question", "Reveal", "Summary"]
SpicyLevel = Literal["Mild", "Medium", "Hot", "Extra-Hot"]
PlayMode = Literal["multi-device", "same-device"]

GAME_STEPS: tuple[str, ...] = ("Lobby", "CategorySelection", "SpicyLevel", "Question", "Reveal", "Summary")
SPICY_LEVELS: tuple[str, ...] = ("Mild", "Medium", "Hot", "Extra-Hot")
PLAY_MODES: tuple[str, ...] = ("multi-device", "same-device")

DEFAULT_STEP = "Lobby"
DEFAULT_SPICY_LEVEL = "Mild"
DEFAULT_PLAY_MODE = "multi-device"


@dataclass(slots=True)
class Room:
    """Persisted representation of a game room."""

    id: str
    code: str
    host_id: Optional[str]
    play_mode: str
    step: str
    spicy_level: str
    categories: List[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime
    expires_at: datetime

    def is_open(self, now: datetime) -> bool:
        """A room is playable while active and not past its lifetime."""
        return self.is_active and self.expires_at > now


@dataclass(slots=True)
class Player:
    id: str
    room_id: str
    name: str
    is_host: bool
    is_ready: bool
    joined_at: datetime
    last_seen: datetime

    def to_summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "is_host": self.is_host,
            "is_ready": self.is_ready,
            "joined_at": self.joined_at,
            "last_seen": self.last_seen,
        }


@dataclass(slots=True)
class Question:
    id: str
    room_id: str
    text: str
    category: str
    spicy_level: str
    round_number: int
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "category": self.category,
            "spicy_level": self.spicy_level,
            "round_number": self.round_number,
            "created_at": self.created_at,
        }


@dataclass(slots=True)
class Answer:
    id: str
    question_id: str
    player_id: str
    text: str
    submitted_at: datetime
    player_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "question_id": self.question_id,
            "player_id": self.player_id,
            "player_name": self.player_name,
            "answer_text": self.text,
            "submitted_at": self.submitted_at,
        }


@dataclass(slots=True)
class StoredEvent:
    """One row of the append-only game_events log."""

    id: str
    room_id: str
    event_type: str
    payload: Dict[str, Any]
    created_at: datetime


@dataclass(slots=True)
class RoomSnapshot:
    room: Room
    players: List[Player]
    current_question: Optional[Question] = None
    answers: List[Answer] = field(default_factory=list)

    def to_state(self) -> Dict[str, Any]:
        room = self.room
        return {
            "code": room.code,
            "host_id": room.host_id,
            "play_mode": room.play_mode,
            "step": room.step,
            "spicy_level": room.spicy_level,
            "categories": list(room.categories),
            "players": [player.to_summary() for player in self.players],
            "current_question": self.current_question.to_dict() if self.current_question else None,
            "answers": [answer.to_dict() for answer in self.answers],
            "next_steps": list(steps.next_steps(room.step)),
            "created_at": room.created_at,
            "updated_at": room.updated_at,
            "expires_at": room.expires_at,
        }


@dataclass(slots=True)
class Round:
    question: Question
    answers: List[Answer] = field(default_factory=list)


@dataclass(slots=True)
class JoinOutcome:
    room: Room
    players: List[Player]
    player: Player


@dataclass(slots=True)
class RoomUpdateOutcome:
    room: Room
    changes: Dict[str, Any]


@dataclass(slots=True)
class ReadyOutcome:
    player: Player
    player_count: int
    ready_count: int

    @property
    def all_ready(self) -> bool:
        return self.player_count > 0 and self.player_count == self.ready_count


@dataclass(slots=True)
class AnswerOutcome:
    answer: Answer
    updated: bool
    answered_count: int
    player_count: int

    @property
    def all_answered(self) -> bool:
        return self.player_count > 0 and self.answered_count == self.player_count


@dataclass(slots=True)
class EventPage:
    events: List[StoredEvent]
    players: List[Player]
    server_time: datetime
    has_more: bool = False
