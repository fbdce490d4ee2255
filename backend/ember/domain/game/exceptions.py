"""Custom exceptions for the game room services."""

from __future__ import annotations

from fastapi import status

if hasattr(status, "HTTP_422_UNPROCESSABLE_CONTENT"):
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_CONTENT
else:  # pragma: no cover - older Starlette builds
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_ENTITY


class GameError(Exception):
	"""Base class for client-visible game errors."""

	status_code: int = status.HTTP_400_BAD_REQUEST
	detail: str = "game_error"

	def __init__(self, detail: str | None = None) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail


class NotFoundError(GameError):
	"""A room, player or question is absent, inactive or expired."""

	status_code = status.HTTP_404_NOT_FOUND
	detail = "not_found"


class RoomNotFound(NotFoundError):
	detail = "room_not_found"


class PlayerNotFound(NotFoundError):
	detail = "player_not_found"


class QuestionNotFound(NotFoundError):
	detail = "question_not_found"


class RoomFull(GameError):
	"""Joining would exceed the room capacity."""

	detail = "room_full"


class NameTaken(GameError):
	"""Another player in the room already uses the name (case-insensitive)."""

	detail = "name_taken"


class ValidationError(GameError):
	"""Raised for malformed input not covered by FastAPI schema validation."""

	status_code = _HTTP_422
	detail = "validation_error"


class NotHost(GameError):
	status_code = status.HTTP_403_FORBIDDEN
	detail = "not_host"


class RoomCodeExhausted(GameError):
	"""Every generated code collided with an active room."""

	status_code = status.HTTP_503_SERVICE_UNAVAILABLE
	detail = "room_code_exhausted"


class RateLimited(GameError):
	status_code = status.HTTP_429_TOO_MANY_REQUESTS
	detail = "rate_limited"


class QuestionGenerationError(GameError):
	"""The external question generator failed or returned nothing usable."""

	status_code = status.HTTP_502_BAD_GATEWAY
	detail = "generator_failed"


class GeneratorNotConfigured(QuestionGenerationError):
	status_code = status.HTTP_503_SERVICE_UNAVAILABLE
	detail = "generator_not_configured"
