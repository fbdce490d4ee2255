"""FastAPI routes for game rooms and the sync feed."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, Request

from ember.domain.game import (
	AnswerService,
	QuestionService,
	ReadinessService,
	RoomService,
	SyncService,
	schemas,
)

router = APIRouter(prefix="/rooms", tags=["rooms"])

_room_service = RoomService()
_readiness_service = ReadinessService()
_question_service = QuestionService()
_answer_service = AnswerService()
_sync_service = SyncService()


def _client_id(request: Request) -> Optional[str]:
	client = request.client
	return client.host if client else None


@router.post("/create", response_model=schemas.RoomSession)
async def create_room_endpoint(payload: schemas.CreateRoomRequest, request: Request) -> schemas.RoomSession:
	return await _room_service.create_room(payload, client_id=_client_id(request))


@router.post("/join", response_model=schemas.RoomSession)
async def join_room_endpoint(payload: schemas.JoinRoomRequest, request: Request) -> schemas.RoomSession:
	return await _room_service.join_room(payload, client_id=_client_id(request))


@router.get("/{code}", response_model=schemas.RoomState)
async def get_room_endpoint(code: str) -> schemas.RoomState:
	return await _room_service.get_room(code)


@router.post("/{code}/update", response_model=schemas.RoomUpdateResponse)
async def update_room_endpoint(code: str, payload: schemas.UpdateRoomRequest) -> schemas.RoomUpdateResponse:
	return await _room_service.update_room(code, payload)


@router.post("/{code}/ready", response_model=schemas.ReadyResponse)
async def ready_endpoint(code: str, payload: schemas.ReadyRequest) -> schemas.ReadyResponse:
	return await _readiness_service.set_player_ready(code, payload)


@router.post("/{code}/questions", response_model=schemas.QuestionDTO)
async def submit_question_endpoint(code: str, payload: schemas.SubmitQuestionRequest) -> schemas.QuestionDTO:
	return await _question_service.submit_question(code, payload)


@router.get("/{code}/questions", response_model=schemas.QuestionListResponse)
async def list_questions_endpoint(code: str) -> schemas.QuestionListResponse:
	return await _question_service.list_questions(code)


@router.post("/{code}/questions/generate", response_model=schemas.QuestionDTO)
async def generate_question_endpoint(
	code: str,
	payload: Optional[schemas.GenerateQuestionRequest] = None,
) -> schemas.QuestionDTO:
	return await _question_service.generate_question(code, payload or schemas.GenerateQuestionRequest())


@router.post("/{code}/answers", response_model=schemas.AnswerResponse)
async def submit_answer_endpoint(code: str, payload: schemas.SubmitAnswerRequest) -> schemas.AnswerResponse:
	return await _answer_service.submit_answer(code, payload)


@router.get("/{code}/rounds", response_model=schemas.RoundsResponse)
async def rounds_endpoint(code: str) -> schemas.RoundsResponse:
	return await _question_service.rounds(code)


@router.post("/{code}/close", response_model=schemas.CloseRoomResponse)
async def close_room_endpoint(code: str, payload: schemas.CloseRoomRequest) -> schemas.CloseRoomResponse:
	return await _room_service.close_room(code, payload)


@router.get("/{code}/sync", response_model=schemas.SyncResponse)
async def sync_endpoint(
	code: str,
	since: Optional[str] = Query(default=None, description="server_time from the previous poll"),
) -> schemas.SyncResponse:
	return await _sync_service.sync(code, since)
