"""Per-player ready flags."""

from __future__ import annotations

from ember.domain.game import codes, policy, schemas
from ember.domain.game.repository import GameStore, get_store
from ember.obs import metrics as obs_metrics


class ReadinessService:
	def __init__(self, store: GameStore | None = None) -> None:
		self._store = store

	@property
	def store(self) -> GameStore:
		return self._store or get_store()

	async def set_player_ready(self, raw_code: str, payload: schemas.ReadyRequest) -> schemas.ReadyResponse:
		"""Set (not toggle) the flag, so a retried request lands in the same state."""
		code = codes.normalise(raw_code)
		player_id = policy.parse_id(payload.player_id, field="player_id")
		outcome = await self.store.set_player_ready(code, player_id, payload.is_ready)
		obs_metrics.inc_ready_toggle(payload.is_ready)
		return schemas.ReadyResponse(
			all_ready=outcome.all_ready,
			player_count=outcome.player_count,
			ready_count=outcome.ready_count,
		)
