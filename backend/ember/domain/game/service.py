"""Room lifecycle service layer."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from ember.domain.game import codes, models, policy, schemas, steps
from ember.domain.game.exceptions import GameError, RoomCodeExhausted, RoomNotFound, ValidationError
from ember.domain.game.repository import GameStore, get_store
from ember.obs import metrics as obs_metrics
from ember.settings import settings

logger = logging.getLogger(__name__)


class RoomService:
	def __init__(
		self,
		store: GameStore | None = None,
		*,
		code_generator: Callable[[], str] | None = None,
	) -> None:
		self._store = store
		self._generate_code = code_generator or codes.generate

	@property
	def store(self) -> GameStore:
		return self._store or get_store()

	async def create_room(
		self,
		payload: schemas.CreateRoomRequest,
		*,
		client_id: Optional[str] = None,
	) -> schemas.RoomSession:
		if client_id:
			await policy.enforce_create_limit(client_id)
		host_name = policy.normalise_player_name(payload.host_name)
		play_mode = policy.ensure_play_mode(payload.play_mode)
		snapshot: Optional[models.RoomSnapshot] = None
		for attempt in range(settings.room_code_attempts):
			code = self._generate_code()
			snapshot = await self.store.create_room(
				code=code,
				host_name=host_name,
				play_mode=play_mode,
				ttl_hours=settings.room_ttl_hours,
			)
			if snapshot is not None:
				break
			obs_metrics.inc_code_collision()
			logger.info("room_code_collision", extra={"attempt": attempt + 1})
		if snapshot is None:
			logger.error("room_code_exhausted", extra={"attempts": settings.room_code_attempts})
			raise RoomCodeExhausted()
		obs_metrics.inc_room_created(play_mode)
		logger.info("room_created", extra={"room_code": snapshot.room.code, "play_mode": play_mode})
		host = snapshot.players[0]
		return schemas.RoomSession(**snapshot.to_state(), player_id=host.id)

	async def join_room(
		self,
		payload: schemas.JoinRoomRequest,
		*,
		client_id: Optional[str] = None,
	) -> schemas.RoomSession:
		if client_id:
			await policy.enforce_join_limit(client_id)
		code = codes.normalise(payload.room_code)
		name = policy.normalise_player_name(payload.player_name)
		try:
			outcome = await self.store.join_room(code, name, capacity=settings.room_capacity)
		except GameError as exc:
			obs_metrics.inc_room_join(exc.detail)
			raise
		obs_metrics.inc_room_join("joined")
		snapshot = models.RoomSnapshot(room=outcome.room, players=outcome.players)
		return schemas.RoomSession(**snapshot.to_state(), player_id=outcome.player.id)

	async def get_room(self, raw_code: str) -> schemas.RoomState:
		code = codes.normalise(raw_code)
		snapshot = await self.store.get_snapshot(code)
		if snapshot is None:
			raise RoomNotFound()
		return schemas.RoomState(**snapshot.to_state())

	async def update_room(self, raw_code: str, payload: schemas.UpdateRoomRequest) -> schemas.RoomUpdateResponse:
		code = codes.normalise(raw_code)
		if payload.step is None and payload.spicy_level is None and payload.categories is None:
			raise ValidationError("no_updates")
		step = policy.ensure_step(payload.step) if payload.step is not None else None
		spicy_level = policy.ensure_spicy_level(payload.spicy_level) if payload.spicy_level is not None else None
		categories = policy.normalise_categories(payload.categories) if payload.categories is not None else None
		outcome = await self._apply_update(code, step=step, spicy_level=spicy_level, categories=categories)
		return schemas.RoomUpdateResponse(updates=outcome.changes)

	async def update_step(self, raw_code: str, step: str) -> models.RoomUpdateOutcome:
		return await self._apply_update(codes.normalise(raw_code), step=policy.ensure_step(step))

	async def set_spicy_level(self, raw_code: str, level: str) -> models.RoomUpdateOutcome:
		return await self._apply_update(codes.normalise(raw_code), spicy_level=policy.ensure_spicy_level(level))

	async def set_categories(self, raw_code: str, categories: List[str]) -> models.RoomUpdateOutcome:
		return await self._apply_update(codes.normalise(raw_code), categories=policy.normalise_categories(categories))

	async def _apply_update(
		self,
		code: str,
		*,
		step: Optional[str] = None,
		spicy_level: Optional[str] = None,
		categories: Optional[List[str]] = None,
	) -> models.RoomUpdateOutcome:
		previous_step: Optional[str] = None
		if step is not None:
			current = await self.store.get_snapshot(code)
			previous_step = current.room.step if current else None
		outcome = await self.store.update_room(code, step=step, spicy_level=spicy_level, categories=categories)
		for field in outcome.changes:
			obs_metrics.inc_room_update(field)
		if previous_step is not None and "step" in outcome.changes:
			if not steps.is_listed_transition(previous_step, outcome.changes["step"]):
				logger.info(
					"room_step_off_graph",
					extra={"room_code": code, "from_step": previous_step, "to_step": outcome.changes["step"]},
				)
		return outcome

	async def close_room(self, raw_code: str, payload: schemas.CloseRoomRequest) -> schemas.CloseRoomResponse:
		code = codes.normalise(raw_code)
		player_id = policy.parse_id(payload.player_id, field="player_id")
		await self.store.close_room(code, player_id)
		obs_metrics.inc_room_closed()
		logger.info("room_closed", extra={"room_code": code})
		return schemas.CloseRoomResponse(ok=True)

	async def expire_rooms(self) -> int:
		expired = await self.store.deactivate_expired()
		if expired:
			obs_metrics.inc_rooms_expired(expired)
			logger.info("rooms_expired", extra={"count": expired})
		return expired
