"""Polling feed of room events."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ember.domain.game import codes, events, policy, schemas
from ember.domain.game.repository import GameStore, get_store
from ember.obs import metrics as obs_metrics
from ember.settings import settings


class SyncService:
	def __init__(self, store: GameStore | None = None) -> None:
		self._store = store

	@property
	def store(self) -> GameStore:
		return self._store or get_store()

	async def sync(self, raw_code: str, since: str | datetime | None = None) -> schemas.SyncResponse:
		"""Return events strictly after ``since`` (oldest first), or the most recent
		window when no cursor is given, along with the current players.

		Clients pass the returned ``server_time`` back as the next ``since``. A capped
		page sets ``has_more`` and anchors ``server_time`` at its last event, so the
		next poll resumes right after it.
		"""
		code = codes.normalise(raw_code)
		cursor: Optional[datetime] = policy.parse_since(since)
		limit = settings.sync_since_limit if cursor is not None else settings.sync_default_limit
		page = await self.store.read_events(code, since=cursor, limit=limit)
		obs_metrics.observe_sync("since" if cursor is not None else "initial", len(page.events))
		return schemas.SyncResponse(
			events=[events.decode(stored) for stored in page.events],
			players=[player.to_summary() for player in page.players],
			server_time=page.server_time,
			has_more=page.has_more,
		)
