"""In-process GameStore used for local runs and tests."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import ulid
from pydantic import BaseModel

from ember.domain.game import events, models, policy
from ember.domain.game.exceptions import PlayerNotFound, QuestionNotFound, RoomNotFound

Clock = Callable[[], datetime]

_TICK = timedelta(microseconds=1)


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


class MemoryGameStore:
	"""Mirrors PostgresGameStore; one lock stands in for the room row lock."""

	def __init__(self, clock: Optional[Clock] = None) -> None:
		self._clock = clock or _utcnow
		self._lock = asyncio.Lock()
		self.rooms: Dict[str, models.Room] = {}
		self.players: Dict[str, List[models.Player]] = {}
		self.questions: Dict[str, List[models.Question]] = {}
		self.answers: Dict[str, Dict[str, models.Answer]] = {}
		self.events: Dict[str, List[models.StoredEvent]] = {}

	def _find_open(self, code: str) -> Optional[models.Room]:
		now = self._clock()
		for room in self.rooms.values():
			if room.code == code and room.is_open(now):
				return room
		return None

	def _require_open(self, code: str) -> models.Room:
		room = self._find_open(code)
		if room is None:
			raise RoomNotFound()
		return room

	def _append_event(self, room_id: str, event_type: str, payload: BaseModel) -> models.StoredEvent:
		log = self.events.setdefault(room_id, [])
		created_at = self._clock()
		if log and created_at <= log[-1].created_at:
			created_at = log[-1].created_at + _TICK
		event = models.StoredEvent(
			id=str(ulid.new()),
			room_id=room_id,
			event_type=event_type,
			payload=events.encode_payload(payload),
			created_at=created_at,
		)
		log.append(event)
		return event

	def _touch(self, room: models.Room) -> None:
		room.updated_at = self._clock()

	def _player_copies(self, room_id: str) -> List[models.Player]:
		return [replace(player) for player in self.players.get(room_id, [])]

	async def create_room(
		self, *, code: str, host_name: str, play_mode: str, ttl_hours: int
	) -> Optional[models.RoomSnapshot]:
		async with self._lock:
			now = self._clock()
			for existing in self.rooms.values():
				if existing.code == code and existing.is_active:
					if existing.expires_at > now:
						return None
					existing.is_active = False
					existing.updated_at = now
			room_id = str(uuid.uuid4())
			host = models.Player(
				id=str(uuid.uuid4()),
				room_id=room_id,
				name=host_name,
				is_host=True,
				is_ready=False,
				joined_at=now,
				last_seen=now,
			)
			room = models.Room(
				id=room_id,
				code=code,
				host_id=host.id,
				play_mode=play_mode,
				step=models.DEFAULT_STEP,
				spicy_level=models.DEFAULT_SPICY_LEVEL,
				categories=[],
				is_active=True,
				created_at=now,
				updated_at=now,
				expires_at=now + timedelta(hours=ttl_hours),
			)
			self.rooms[room_id] = room
			self.players[room_id] = [host]
			self.questions[room_id] = []
			self._append_event(
				room_id,
				"room_created",
				events.RoomCreatedPayload(host_id=host.id, host_name=host_name, play_mode=play_mode),
			)
			return models.RoomSnapshot(room=replace(room), players=[replace(host)])

	async def get_snapshot(self, code: str) -> Optional[models.RoomSnapshot]:
		async with self._lock:
			room = self._find_open(code)
			if room is None:
				return None
			asked = self.questions.get(room.id, [])
			question = replace(asked[-1]) if asked else None
			answers: List[models.Answer] = []
			if question is not None:
				answers = self._answers_with_names(room.id, question.id)
			return models.RoomSnapshot(
				room=replace(room),
				players=self._player_copies(room.id),
				current_question=question,
				answers=answers,
			)

	def _answers_with_names(self, room_id: str, question_id: str) -> List[models.Answer]:
		names = {player.id: player.name for player in self.players.get(room_id, [])}
		stored = sorted(self.answers.get(question_id, {}).values(), key=lambda a: a.submitted_at)
		return [replace(answer, player_name=names.get(answer.player_id)) for answer in stored]

	async def join_room(self, code: str, player_name: str, *, capacity: int) -> models.JoinOutcome:
		async with self._lock:
			room = self._require_open(code)
			players = self.players.setdefault(room.id, [])
			policy.ensure_capacity_available(len(players), capacity)
			policy.ensure_name_available(players, player_name)
			now = self._clock()
			player = models.Player(
				id=str(uuid.uuid4()),
				room_id=room.id,
				name=player_name,
				is_host=False,
				is_ready=False,
				joined_at=now,
				last_seen=now,
			)
			players.append(player)
			self._append_event(
				room.id,
				"player_joined",
				events.PlayerJoinedPayload(player_id=player.id, player_name=player.name),
			)
			self._touch(room)
			return models.JoinOutcome(room=replace(room), players=self._player_copies(room.id), player=replace(player))

	async def update_room(
		self,
		code: str,
		*,
		step: Optional[str] = None,
		spicy_level: Optional[str] = None,
		categories: Optional[List[str]] = None,
	) -> models.RoomUpdateOutcome:
		async with self._lock:
			room = self._require_open(code)
			changes: Dict[str, object] = {}
			if step is not None and step != room.step:
				changes["step"] = step
			if spicy_level is not None and spicy_level != room.spicy_level:
				changes["spicy_level"] = spicy_level
			if categories is not None and list(categories) != room.categories:
				changes["categories"] = list(categories)
			if not changes:
				return models.RoomUpdateOutcome(room=replace(room), changes={})
			for key, value in changes.items():
				setattr(room, key, value)
			self._touch(room)
			self._append_event(room.id, "room_updated", events.RoomUpdatedPayload(**changes))
			return models.RoomUpdateOutcome(room=replace(room, categories=list(room.categories)), changes=changes)

	async def set_player_ready(self, code: str, player_id: str, is_ready: bool) -> models.ReadyOutcome:
		async with self._lock:
			room = self._require_open(code)
			players = self.players.get(room.id, [])
			player = next((p for p in players if p.id == player_id), None)
			if player is None:
				raise PlayerNotFound()
			player.is_ready = is_ready
			player.last_seen = self._clock()
			self._append_event(
				room.id,
				"player_ready_changed",
				events.PlayerReadyChangedPayload(player_id=player.id, player_name=player.name, is_ready=is_ready),
			)
			return models.ReadyOutcome(
				player=replace(player),
				player_count=len(players),
				ready_count=sum(1 for p in players if p.is_ready),
			)

	async def add_question(self, code: str, *, text: str, category: str, spicy_level: str) -> models.Question:
		async with self._lock:
			room = self._require_open(code)
			asked = self.questions.setdefault(room.id, [])
			question = models.Question(
				id=str(uuid.uuid4()),
				room_id=room.id,
				text=text,
				category=category,
				spicy_level=spicy_level,
				round_number=len(asked) + 1,
				created_at=self._clock(),
			)
			asked.append(question)
			self._append_event(
				room.id,
				"question_asked",
				events.QuestionAskedPayload(
					question_id=question.id,
					category=question.category,
					round_number=question.round_number,
				),
			)
			self._touch(room)
			return replace(question)

	async def list_rounds(self, code: str) -> List[models.Round]:
		async with self._lock:
			room = self._require_open(code)
			return [
				models.Round(question=replace(question), answers=self._answers_with_names(room.id, question.id))
				for question in self.questions.get(room.id, [])
			]

	async def record_answer(self, code: str, *, question_id: str, player_id: str, text: str) -> models.AnswerOutcome:
		async with self._lock:
			room = self._require_open(code)
			if not any(q.id == question_id for q in self.questions.get(room.id, [])):
				raise QuestionNotFound()
			players = self.players.get(room.id, [])
			player = next((p for p in players if p.id == player_id), None)
			if player is None:
				raise PlayerNotFound()
			now = self._clock()
			by_player = self.answers.setdefault(question_id, {})
			existing = by_player.get(player_id)
			if existing is not None:
				existing.text = text
				existing.submitted_at = now
				answer = existing
				event_type = "answer_updated"
			else:
				answer = models.Answer(
					id=str(uuid.uuid4()),
					question_id=question_id,
					player_id=player_id,
					text=text,
					submitted_at=now,
				)
				by_player[player_id] = answer
				event_type = "answer_submitted"
			self._append_event(
				room.id,
				event_type,
				events.AnswerPayload(question_id=question_id, player_id=player_id, player_name=player.name),
			)
			player.last_seen = now
			member_ids = {p.id for p in players}
			return models.AnswerOutcome(
				answer=replace(answer, player_name=player.name),
				updated=existing is not None,
				answered_count=sum(1 for pid in by_player if pid in member_ids),
				player_count=len(players),
			)

	async def close_room(self, code: str, player_id: str) -> models.Room:
		async with self._lock:
			room = self._require_open(code)
			player = next((p for p in self.players.get(room.id, []) if p.id == player_id), None)
			if player is None:
				raise PlayerNotFound()
			policy.ensure_host(player)
			room.is_active = False
			self._touch(room)
			self._append_event(room.id, "room_closed", events.RoomClosedPayload(closed_by=player_id))
			return replace(room)

	async def read_events(self, code: str, *, since: Optional[datetime], limit: int) -> models.EventPage:
		async with self._lock:
			room = self._require_open(code)
			log = self.events.get(room.id, [])
			has_more = False
			if since is not None:
				newer = [event for event in log if event.created_at > since]
				selected = newer[:limit]
				has_more = len(newer) > len(selected)
			else:
				selected = log[-limit:] if limit > 0 else []
			if has_more and selected:
				server_time = selected[-1].created_at
			else:
				server_time = self._clock()
				if log and log[-1].created_at > server_time:
					server_time = log[-1].created_at
			return models.EventPage(
				events=[replace(event) for event in selected],
				players=self._player_copies(room.id),
				server_time=server_time,
				has_more=has_more,
			)

	async def deactivate_expired(self) -> int:
		async with self._lock:
			now = self._clock()
			expired = 0
			for room in self.rooms.values():
				if room.is_active and room.expires_at <= now:
					room.is_active = False
					room.updated_at = now
					expired += 1
			return expired


_MEMORY = MemoryGameStore()


def memory_store() -> MemoryGameStore:
	return _MEMORY


async def reset_memory_state(clock: Optional[Clock] = None) -> None:
	"""Test helper to start from an empty in-memory store."""
	global _MEMORY
	_MEMORY = MemoryGameStore(clock=clock)
