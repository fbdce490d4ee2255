"""Answer submission."""

from __future__ import annotations

import logging

from ember.domain.game import codes, policy, schemas
from ember.domain.game.repository import GameStore, get_store
from ember.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


class AnswerService:
	def __init__(self, store: GameStore | None = None) -> None:
		self._store = store

	@property
	def store(self) -> GameStore:
		return self._store or get_store()

	async def submit_answer(self, raw_code: str, payload: schemas.SubmitAnswerRequest) -> schemas.AnswerResponse:
		"""Insert or overwrite the caller's answer to a question.

		``all_answered`` is computed inside the same transaction as the write,
		so the player whose answer completes the round always sees ``True``.
		"""
		code = codes.normalise(raw_code)
		question_id = policy.parse_id(payload.question_id, field="question_id")
		player_id = policy.parse_id(payload.player_id, field="player_id")
		text = policy.ensure_answer_text(payload.text)
		outcome = await self.store.record_answer(code, question_id=question_id, player_id=player_id, text=text)
		obs_metrics.inc_answer("updated" if outcome.updated else "submitted")
		if outcome.all_answered:
			logger.info("round_answers_complete", extra={"room_code": code, "question_id": question_id})
		return schemas.AnswerResponse(
			answer_id=outcome.answer.id,
			all_answered=outcome.all_answered,
			updated=outcome.updated,
			answered_count=outcome.answered_count,
			player_count=outcome.player_count,
		)
