"""Policy helpers for game rooms: input rules, capacity, names and rate limits."""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from ember.domain.game import models
from ember.domain.game.exceptions import (
	NameTaken,
	NotHost,
	RateLimited,
	RoomFull,
	ValidationError,
)
from ember.infra import rate_limit
from ember.settings import settings

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9\s\-_']+$")
MIN_CATEGORIES = 3
MAX_CATEGORIES = 5
CATEGORY_MAX_LENGTH = 50


def normalise_player_name(raw: str | None) -> str:
	name = (raw or "").strip()
	if not name:
		raise ValidationError("name_required")
	if len(name) > settings.player_name_max_length:
		raise ValidationError("name_too_long")
	if not _NAME_PATTERN.match(name):
		raise ValidationError("name_invalid_characters")
	return name


def parse_id(raw: str | None, *, field: str) -> str:
	"""Player and question ids are UUIDs; anything else cannot match a row."""
	try:
		return str(uuid.UUID(str(raw)))
	except (TypeError, ValueError, AttributeError) as exc:
		raise ValidationError(f"invalid_{field}") from exc


def normalise_categories(values: Sequence[str]) -> List[str]:
	"""Categories form an ordered set: trimmed, de-duplicated, none or 3-5 of them."""
	seen: set[str] = set()
	result: List[str] = []
	for value in values:
		name = (value or "").strip()
		if not name:
			raise ValidationError("category_empty")
		if len(name) > CATEGORY_MAX_LENGTH:
			raise ValidationError("category_too_long")
		key = name.lower()
		if key in seen:
			continue
		seen.add(key)
		result.append(name)
	if result and not MIN_CATEGORIES <= len(result) <= MAX_CATEGORIES:
		raise ValidationError("category_count")
	return result


def ensure_step(step: str) -> str:
	if step not in models.GAME_STEPS:
		raise ValidationError("invalid_step")
	return step


def ensure_spicy_level(level: str) -> str:
	if level not in models.SPICY_LEVELS:
		raise ValidationError("invalid_spicy_level")
	return level


def ensure_play_mode(mode: str | None) -> str:
	value = mode or models.DEFAULT_PLAY_MODE
	if value not in models.PLAY_MODES:
		raise ValidationError("invalid_play_mode")
	return value


def ensure_question_text(text: str | None) -> str:
	value = (text or "").strip()
	if len(value) < settings.question_min_length:
		raise ValidationError("question_too_short")
	return value


def ensure_answer_text(text: str | None) -> str:
	value = (text or "").strip()
	if not value:
		raise ValidationError("answer_required")
	if len(value) > settings.answer_max_length:
		raise ValidationError("answer_too_long")
	return value


def parse_since(raw: str | datetime | None) -> Optional[datetime]:
	"""Parse the sync cursor; naive timestamps are taken as UTC."""
	if raw is None or raw == "":
		return None
	if isinstance(raw, datetime):
		value = raw
	else:
		text = str(raw).strip()
		if text.endswith("Z"):
			text = text[:-1] + "+00:00"
		try:
			value = datetime.fromisoformat(text)
		except ValueError as exc:
			raise ValidationError("invalid_since") from exc
	if value.tzinfo is None:
		value = value.replace(tzinfo=timezone.utc)
	return value


def ensure_capacity_available(player_count: int, capacity: int) -> None:
	if player_count >= capacity:
		raise RoomFull()


def ensure_name_available(players: Iterable[models.Player], name: str) -> None:
	wanted = name.casefold()
	if any(player.name.casefold() == wanted for player in players):
		raise NameTaken()


def ensure_host(player: models.Player) -> None:
	if not player.is_host:
		raise NotHost()


async def enforce_create_limit(client_id: str) -> None:
	if not await rate_limit.allow("room:create", client_id, limit=settings.room_create_limit_per_minute):
		raise RateLimited("rate_limited:create")


async def enforce_join_limit(client_id: str) -> None:
	if not await rate_limit.allow("room:join", client_id, limit=settings.room_join_limit_per_minute):
		raise RateLimited("rate_limited:join")
