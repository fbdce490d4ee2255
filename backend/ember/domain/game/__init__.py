"""Game rooms domain exports."""

from .answers import AnswerService
from .questions import QuestionService
from .readiness import ReadinessService
from .service import RoomService
from .sync import SyncService

__all__ = ["RoomService", "ReadinessService", "AnswerService", "QuestionService", "SyncService"]
