"""Persistence for game rooms.

Every mutating method is one transaction that locks the room row, runs the
reads that gate the write, performs the write and appends the matching event.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

import asyncpg
import ulid
from pydantic import BaseModel

from ember.domain.game import events, models, policy
from ember.domain.game.exceptions import (
	PlayerNotFound,
	QuestionNotFound,
	RoomNotFound,
)
from ember.infra.postgres import get_pool
from ember.settings import settings


class GameStore(Protocol):
	async def create_room(
		self, *, code: str, host_name: str, play_mode: str, ttl_hours: int
	) -> Optional[models.RoomSnapshot]:
		"""Insert room + host player; None when an active room already holds ``code``."""

	async def get_snapshot(self, code: str) -> Optional[models.RoomSnapshot]:
		...

	async def join_room(self, code: str, player_name: str, *, capacity: int) -> models.JoinOutcome:
		...

	async def update_room(
		self,
		code: str,
		*,
		step: Optional[str] = None,
		spicy_level: Optional[str] = None,
		categories: Optional[List[str]] = None,
	) -> models.RoomUpdateOutcome:
		...

	async def set_player_ready(self, code: str, player_id: str, is_ready: bool) -> models.ReadyOutcome:
		...

	async def add_question(self, code: str, *, text: str, category: str, spicy_level: str) -> models.Question:
		...

	async def list_rounds(self, code: str) -> List[models.Round]:
		...

	async def record_answer(self, code: str, *, question_id: str, player_id: str, text: str) -> models.AnswerOutcome:
		...

	async def close_room(self, code: str, player_id: str) -> models.Room:
		...

	async def read_events(self, code: str, *, since: Optional[datetime], limit: int) -> models.EventPage:
		...

	async def deactivate_expired(self) -> int:
		...


_ACTIVE_ROOM = "code = $1 AND is_active AND expires_at > NOW()"


class PostgresGameStore:
	"""GameStore over the asyncpg pool."""

	async def create_room(
		self, *, code: str, host_name: str, play_mode: str, ttl_hours: int
	) -> Optional[models.RoomSnapshot]:
		pool = await get_pool()
		room_id = str(uuid.uuid4())
		host_id = str(uuid.uuid4())
		async with pool.acquire() as conn:
			try:
				async with conn.transaction():
					# Expired rooms that were never swept give their code back here.
					await conn.execute(
						"""
						UPDATE rooms SET is_active = FALSE, updated_at = NOW()
						WHERE code = $1 AND is_active AND expires_at <= NOW()
						""",
						code,
					)
					taken = await conn.fetchval("SELECT 1 FROM rooms WHERE code = $1 AND is_active", code)
					if taken:
						return None
					room_row = await conn.fetchrow(
						"""
						INSERT INTO rooms (id, code, host_id, play_mode, step, spicy_level, categories, expires_at)
						VALUES ($1, $2, $3, $4, $5, $6, '{}', NOW() + make_interval(hours => $7::int))
						RETURNING *
						""",
						room_id,
						code,
						host_id,
						play_mode,
						models.DEFAULT_STEP,
						models.DEFAULT_SPICY_LEVEL,
						ttl_hours,
					)
					player_row = await conn.fetchrow(
						"""
						INSERT INTO players (id, room_id, name, is_host, is_ready)
						VALUES ($1, $2, $3, TRUE, FALSE)
						RETURNING *
						""",
						host_id,
						room_id,
						host_name,
					)
					await _append_event(
						conn,
						room_id,
						"room_created",
						events.RoomCreatedPayload(host_id=host_id, host_name=host_name, play_mode=play_mode),
					)
			except asyncpg.UniqueViolationError:
				# A concurrent create took the code between our check and insert.
				return None
		return models.RoomSnapshot(room=_row_to_room(room_row), players=[_row_to_player(player_row)])

	async def get_snapshot(self, code: str) -> Optional[models.RoomSnapshot]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await conn.fetchrow(f"SELECT * FROM rooms WHERE {_ACTIVE_ROOM}", code)
			if row is None:
				return None
			room = _row_to_room(row)
			players = await _fetch_players(conn, room.id)
			question_row = await conn.fetchrow(
				"SELECT * FROM questions WHERE room_id = $1 ORDER BY round_number DESC LIMIT 1",
				room.id,
			)
			question = _row_to_question(question_row) if question_row else None
			answers: List[models.Answer] = []
			if question is not None:
				answer_rows = await conn.fetch(
					"""
					SELECT a.*, p.name AS player_name
					FROM answers a
					JOIN players p ON p.id = a.player_id
					WHERE a.question_id = $1
					ORDER BY a.submitted_at
					""",
					question.id,
				)
				answers = [_row_to_answer(r) for r in answer_rows]
			return models.RoomSnapshot(room=room, players=players, current_question=question, answers=answers)

	async def join_room(self, code: str, player_name: str, *, capacity: int) -> models.JoinOutcome:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				room = await _lock_room(conn, code)
				players = await _fetch_players(conn, room.id)
				policy.ensure_capacity_available(len(players), capacity)
				policy.ensure_name_available(players, player_name)
				row = await conn.fetchrow(
					"""
					INSERT INTO players (id, room_id, name, is_host, is_ready)
					VALUES ($1, $2, $3, FALSE, FALSE)
					RETURNING *
					""",
					str(uuid.uuid4()),
					room.id,
					player_name,
				)
				player = _row_to_player(row)
				await _append_event(
					conn,
					room.id,
					"player_joined",
					events.PlayerJoinedPayload(player_id=player.id, player_name=player.name),
				)
				await _touch_room(conn, room.id)
		return models.JoinOutcome(room=room, players=[*players, player], player=player)

	async def update_room(
		self,
		code: str,
		*,
		step: Optional[str] = None,
		spicy_level: Optional[str] = None,
		categories: Optional[List[str]] = None,
	) -> models.RoomUpdateOutcome:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				room = await _lock_room(conn, code)
				changes = _diff_room(room, step=step, spicy_level=spicy_level, categories=categories)
				if not changes:
					return models.RoomUpdateOutcome(room=room, changes={})
				row = await conn.fetchrow(
					"""
					UPDATE rooms
					SET step = $2, spicy_level = $3, categories = $4, updated_at = NOW()
					WHERE id = $1
					RETURNING *
					""",
					room.id,
					changes.get("step", room.step),
					changes.get("spicy_level", room.spicy_level),
					changes.get("categories", room.categories),
				)
				await _append_event(conn, room.id, "room_updated", events.RoomUpdatedPayload(**changes))
		return models.RoomUpdateOutcome(room=_row_to_room(row), changes=changes)

	async def set_player_ready(self, code: str, player_id: str, is_ready: bool) -> models.ReadyOutcome:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				room = await _lock_room(conn, code)
				row = await conn.fetchrow(
					"""
					UPDATE players
					SET is_ready = $3, last_seen = NOW()
					WHERE id = $2 AND room_id = $1
					RETURNING *
					""",
					room.id,
					player_id,
					is_ready,
				)
				if row is None:
					raise PlayerNotFound()
				player = _row_to_player(row)
				await _append_event(
					conn,
					room.id,
					"player_ready_changed",
					events.PlayerReadyChangedPayload(player_id=player.id, player_name=player.name, is_ready=is_ready),
				)
				counts = await conn.fetchrow(
					"""
					SELECT COUNT(*) AS total, COUNT(*) FILTER (WHERE is_ready) AS ready
					FROM players
					WHERE room_id = $1
					""",
					room.id,
				)
		return models.ReadyOutcome(player=player, player_count=int(counts["total"]), ready_count=int(counts["ready"]))

	async def add_question(self, code: str, *, text: str, category: str, spicy_level: str) -> models.Question:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				room = await _lock_room(conn, code)
				asked = await conn.fetchval("SELECT COUNT(*) FROM questions WHERE room_id = $1", room.id)
				row = await conn.fetchrow(
					"""
					INSERT INTO questions (id, room_id, text, category, spicy_level, round_number)
					VALUES ($1, $2, $3, $4, $5, $6)
					RETURNING *
					""",
					str(uuid.uuid4()),
					room.id,
					text,
					category,
					spicy_level,
					int(asked) + 1,
				)
				question = _row_to_question(row)
				await _append_event(
					conn,
					room.id,
					"question_asked",
					events.QuestionAskedPayload(
						question_id=question.id,
						category=question.category,
						round_number=question.round_number,
					),
				)
				await _touch_room(conn, room.id)
		return question

	async def list_rounds(self, code: str) -> List[models.Round]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			room_id = await conn.fetchval(f"SELECT id FROM rooms WHERE {_ACTIVE_ROOM}", code)
			if room_id is None:
				raise RoomNotFound()
			question_rows = await conn.fetch(
				"SELECT * FROM questions WHERE room_id = $1 ORDER BY round_number",
				room_id,
			)
			answer_rows = await conn.fetch(
				"""
				SELECT a.*, p.name AS player_name
				FROM answers a
				JOIN questions q ON q.id = a.question_id
				JOIN players p ON p.id = a.player_id
				WHERE q.room_id = $1
				ORDER BY a.submitted_at
				""",
				room_id,
			)
		rounds = [models.Round(question=_row_to_question(row)) for row in question_rows]
		by_question = {r.question.id: r for r in rounds}
		for row in answer_rows:
			answer = _row_to_answer(row)
			by_question[answer.question_id].answers.append(answer)
		return rounds

	async def record_answer(self, code: str, *, question_id: str, player_id: str, text: str) -> models.AnswerOutcome:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				target = await conn.fetchrow(
					"""
					SELECT r.id AS room_id, q.id AS question_id, p.id AS player_id, p.name AS player_name
					FROM rooms r
					JOIN questions q ON q.room_id = r.id
					JOIN players p ON p.room_id = r.id
					WHERE r.code = $1 AND r.is_active AND r.expires_at > NOW()
						AND q.id = $2
						AND p.id = $3
					FOR UPDATE OF r
					""",
					code,
					question_id,
					player_id,
				)
				if target is None:
					room_id = await conn.fetchval(f"SELECT id FROM rooms WHERE {_ACTIVE_ROOM}", code)
					if room_id is None:
						raise RoomNotFound()
					asked = await conn.fetchval(
						"SELECT 1 FROM questions WHERE id = $1 AND room_id = $2",
						question_id,
						room_id,
					)
					if asked is None:
						raise QuestionNotFound()
					raise PlayerNotFound()
				room_id = str(target["room_id"])
				player_name = target["player_name"]
				existing = await conn.fetchval(
					"SELECT id FROM answers WHERE question_id = $1 AND player_id = $2",
					question_id,
					player_id,
				)
				if existing is not None:
					row = await conn.fetchrow(
						"""
						UPDATE answers SET text = $2, submitted_at = NOW()
						WHERE id = $1
						RETURNING *
						""",
						existing,
						text,
					)
					event_type = "answer_updated"
				else:
					row = await conn.fetchrow(
						"""
						INSERT INTO answers (id, question_id, player_id, text)
						VALUES ($1, $2, $3, $4)
						RETURNING *
						""",
						str(uuid.uuid4()),
						question_id,
						player_id,
						text,
					)
					event_type = "answer_submitted"
				await _append_event(
					conn,
					room_id,
					event_type,
					events.AnswerPayload(question_id=question_id, player_id=player_id, player_name=player_name),
				)
				await conn.execute("UPDATE players SET last_seen = NOW() WHERE id = $1", player_id)
				counts = await conn.fetchrow(
					"""
					SELECT
						(SELECT COUNT(DISTINCT a.player_id)
						 FROM answers a JOIN players p ON p.id = a.player_id
						 WHERE a.question_id = $1 AND p.room_id = $2) AS answered,
						(SELECT COUNT(*) FROM players WHERE room_id = $2) AS total
					""",
					question_id,
					room_id,
				)
		answer = _row_to_answer(row)
		answer.player_name = player_name
		return models.AnswerOutcome(
			answer=answer,
			updated=event_type == "answer_updated",
			answered_count=int(counts["answered"]),
			player_count=int(counts["total"]),
		)

	async def close_room(self, code: str, player_id: str) -> models.Room:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				room = await _lock_room(conn, code)
				row = await conn.fetchrow(
					"SELECT * FROM players WHERE id = $1 AND room_id = $2",
					player_id,
					room.id,
				)
				if row is None:
					raise PlayerNotFound()
				policy.ensure_host(_row_to_player(row))
				closed = await conn.fetchrow(
					"UPDATE rooms SET is_active = FALSE, updated_at = NOW() WHERE id = $1 RETURNING *",
					room.id,
				)
				await _append_event(conn, room.id, "room_closed", events.RoomClosedPayload(closed_by=player_id))
		return _row_to_room(closed)

	async def read_events(self, code: str, *, since: Optional[datetime], limit: int) -> models.EventPage:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				# FOR SHARE waits out in-flight writers, so no event older than
				# server_time can still be uncommitted when we answer.
				room_id = await conn.fetchval(f"SELECT id FROM rooms WHERE {_ACTIVE_ROOM} FOR SHARE", code)
				if room_id is None:
					raise RoomNotFound()
				if since is not None:
					rows = await conn.fetch(
						"""
						SELECT * FROM game_events
						WHERE room_id = $1 AND created_at > $2
						ORDER BY created_at, id
						LIMIT $3
						""",
						room_id,
						since,
						limit + 1,
					)
				else:
					rows = await conn.fetch(
						"""
						SELECT * FROM (
							SELECT * FROM game_events
							WHERE room_id = $1
							ORDER BY created_at DESC, id DESC
							LIMIT $2
						) recent
						ORDER BY created_at, id
						""",
						room_id,
						limit,
					)
				has_more = since is not None and len(rows) > limit
				rows = rows[:limit]
				players = await _fetch_players(conn, str(room_id))
				if has_more and rows:
					# Truncated page: the cursor stops at the last delivered event.
					server_time = rows[-1]["created_at"]
				else:
					server_time = await conn.fetchval(
						"""
						SELECT GREATEST(
							clock_timestamp(),
							(SELECT MAX(created_at) FROM game_events WHERE room_id = $1)
						)
						""",
						room_id,
					)
		return models.EventPage(
			events=[_row_to_event(row) for row in rows],
			players=players,
			server_time=server_time,
			has_more=has_more,
		)

	async def deactivate_expired(self) -> int:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				UPDATE rooms SET is_active = FALSE, updated_at = NOW()
				WHERE is_active AND expires_at <= NOW()
				RETURNING id
				"""
			)
		return len(rows)


def _diff_room(
	room: models.Room,
	*,
	step: Optional[str],
	spicy_level: Optional[str],
	categories: Optional[List[str]],
) -> Dict[str, Any]:
	changes: Dict[str, Any] = {}
	if step is not None and step != room.step:
		changes["step"] = step
	if spicy_level is not None and spicy_level != room.spicy_level:
		changes["spicy_level"] = spicy_level
	if categories is not None and list(categories) != list(room.categories):
		changes["categories"] = list(categories)
	return changes


async def _lock_room(conn: asyncpg.Connection, code: str) -> models.Room:
	row = await conn.fetchrow(f"SELECT * FROM rooms WHERE {_ACTIVE_ROOM} FOR UPDATE", code)
	if row is None:
		raise RoomNotFound()
	return _row_to_room(row)


async def _touch_room(conn: asyncpg.Connection, room_id: str) -> None:
	await conn.execute("UPDATE rooms SET updated_at = NOW() WHERE id = $1", room_id)


async def _fetch_players(conn: asyncpg.Connection, room_id: str) -> List[models.Player]:
	rows = await conn.fetch("SELECT * FROM players WHERE room_id = $1 ORDER BY joined_at, id", room_id)
	return [_row_to_player(row) for row in rows]


async def _append_event(
	conn: asyncpg.Connection,
	room_id: str,
	event_type: str,
	payload: BaseModel,
) -> models.StoredEvent:
	row = await conn.fetchrow(
		"""
		INSERT INTO game_events (id, room_id, event_type, payload, created_at)
		VALUES (
			$1, $2, $3, $4::jsonb,
			GREATEST(
				clock_timestamp(),
				(SELECT MAX(created_at) + INTERVAL '1 microsecond' FROM game_events WHERE room_id = $2)
			)
		)
		RETURNING *
		""",
		str(ulid.new()),
		room_id,
		event_type,
		json.dumps(events.encode_payload(payload)),
	)
	return _row_to_event(row)


def _row_to_room(row: asyncpg.Record) -> models.Room:
	return models.Room(
		id=str(row["id"]),
		code=row["code"],
		host_id=str(row["host_id"]) if row["host_id"] is not None else None,
		play_mode=row["play_mode"],
		step=row["step"],
		spicy_level=row["spicy_level"],
		categories=list(row["categories"] or []),
		is_active=bool(row["is_active"]),
		created_at=row["created_at"],
		updated_at=row["updated_at"],
		expires_at=row["expires_at"],
	)


def _row_to_player(row: asyncpg.Record) -> models.Player:
	return models.Player(
		id=str(row["id"]),
		room_id=str(row["room_id"]),
		name=row["name"],
		is_host=bool(row["is_host"]),
		is_ready=bool(row["is_ready"]),
		joined_at=row["joined_at"],
		last_seen=row["last_seen"],
	)


def _row_to_question(row: asyncpg.Record) -> models.Question:
	return models.Question(
		id=str(row["id"]),
		room_id=str(row["room_id"]),
		text=row["text"],
		category=row["category"],
		spicy_level=row["spicy_level"],
		round_number=int(row["round_number"]),
		created_at=row["created_at"],
	)


def _row_to_answer(row: asyncpg.Record) -> models.Answer:
	return models.Answer(
		id=str(row["id"]),
		question_id=str(row["question_id"]),
		player_id=str(row["player_id"]),
		text=row["text"],
		submitted_at=row["submitted_at"],
		player_name=row.get("player_name"),
	)


def _row_to_event(row: asyncpg.Record) -> models.StoredEvent:
	payload = row["payload"]
	if isinstance(payload, str):
		payload = json.loads(payload)
	return models.StoredEvent(
		id=row["id"],
		room_id=str(row["room_id"]),
		event_type=row["event_type"],
		payload=dict(payload or {}),
		created_at=row["created_at"],
	)


_POSTGRES = PostgresGameStore()


def get_store() -> GameStore:
	"""Resolve the configured store at call time so settings can be flipped in tests."""
	if settings.store_backend == "memory":
		from ember.domain.game.memory import memory_store

		return memory_store()
	return _POSTGRES
