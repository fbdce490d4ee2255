"""Questions, round history and generated questions."""

from __future__ import annotations

import logging
from typing import List, Optional

from ember.domain.game import codes, models, policy, schemas
from ember.domain.game.exceptions import QuestionGenerationError, RoomNotFound, ValidationError
from ember.domain.game.generator import QuestionGenerator, XaiQuestionGenerator
from ember.domain.game.repository import GameStore, get_store
from ember.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


class QuestionService:
	def __init__(
		self,
		store: GameStore | None = None,
		*,
		generator: QuestionGenerator | None = None,
	) -> None:
		self._store = store
		self._generator = generator

	@property
	def store(self) -> GameStore:
		return self._store or get_store()

	@property
	def generator(self) -> QuestionGenerator:
		return self._generator or XaiQuestionGenerator.from_settings()

	async def submit_question(self, raw_code: str, payload: schemas.SubmitQuestionRequest) -> schemas.QuestionDTO:
		code = codes.normalise(raw_code)
		text = policy.ensure_question_text(payload.text)
		category = payload.category.strip()
		if not category:
			raise ValidationError("category_empty")
		spicy_level = policy.ensure_spicy_level(payload.spicy_level)
		question = await self._add(code, text=text, category=category, spicy_level=spicy_level)
		return schemas.QuestionDTO(**question.to_dict())

	async def _add(self, code: str, *, text: str, category: str, spicy_level: str) -> models.Question:
		question = await self.store.add_question(code, text=text, category=category, spicy_level=spicy_level)
		obs_metrics.inc_question_submitted(spicy_level)
		logger.info("question_asked", extra={"room_code": code, "round_number": question.round_number})
		return question

	async def list_questions(self, raw_code: str) -> schemas.QuestionListResponse:
		rounds = await self.store.list_rounds(codes.normalise(raw_code))
		return schemas.QuestionListResponse(items=[r.question.to_dict() for r in rounds])

	async def rounds(self, raw_code: str) -> schemas.RoundsResponse:
		rounds = await self.store.list_rounds(codes.normalise(raw_code))
		return schemas.RoundsResponse(
			rounds=[
				{"question": r.question.to_dict(), "answers": [a.to_dict() for a in r.answers]}
				for r in rounds
			]
		)

	async def generate_question(
		self, raw_code: str, payload: schemas.GenerateQuestionRequest
	) -> schemas.QuestionDTO:
		"""Ask the generator for the next question and submit it as the next round."""
		code = codes.normalise(raw_code)
		snapshot = await self.store.get_snapshot(code)
		if snapshot is None:
			raise RoomNotFound()
		history = await self.store.list_rounds(code)
		category = _pick_category(payload.category, snapshot.room.categories, len(history))
		previous: List[str] = [r.question.text for r in history]
		try:
			text = await self.generator.generate(
				spicy_level=snapshot.room.spicy_level,
				category=category,
				categories=snapshot.room.categories,
				previous=previous,
			)
			text = policy.ensure_question_text(text)
		except ValidationError as exc:
			obs_metrics.inc_question_generation("rejected")
			raise QuestionGenerationError("generator_bad_response") from exc
		except QuestionGenerationError:
			obs_metrics.inc_question_generation("failed")
			raise
		obs_metrics.inc_question_generation("ok")
		question = await self._add(code, text=text, category=category, spicy_level=snapshot.room.spicy_level)
		return schemas.QuestionDTO(**question.to_dict())


def _pick_category(explicit: Optional[str], categories: List[str], asked: int) -> str:
	"""Explicit choice wins; otherwise rotate through the room's categories by round."""
	if explicit and explicit.strip():
		return explicit.strip()
	if not categories:
		raise ValidationError("category_required")
	return categories[asked % len(categories)]
