import json

import httpx
import pytest

from ember.domain.game import QuestionService, RoomService
from ember.domain.game.exceptions import (
    GeneratorNotConfigured,
    QuestionGenerationError,
    ValidationError,
)
from ember.domain.game.generator import XaiQuestionGenerator
from ember.domain.game.schemas import (
    CreateRoomRequest,
    GenerateQuestionRequest,
    SubmitQuestionRequest,
    UpdateRoomRequest,
)


class RecordingGenerator:
    def __init__(self, text: str = "What trip would you repeat tomorrow?") -> None:
        self.text = text
        self.calls = []

    async def generate(self, *, spicy_level, category, categories, previous):
        self.calls.append(
            {"spicy_level": spicy_level, "category": category, "categories": list(categories), "previous": list(previous)}
        )
        return self.text


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _generator(handler) -> XaiQuestionGenerator:
    return XaiQuestionGenerator(
        base_url="https://llm.test/v1",
        api_key="test-key",
        model="test-model",
        transport=httpx.MockTransport(handler),
    )


async def _room_with_categories() -> str:
    rooms = RoomService()
    room = await rooms.create_room(CreateRoomRequest(host_name="Alex"))
    await rooms.update_room(
        room.code,
        UpdateRoomRequest(spicy_level="Hot", categories=["Travel", "Food", "Music"]),
    )
    return room.code


@pytest.mark.asyncio
async def test_generated_questions_rotate_categories_and_carry_history():
    code = await _room_with_categories()
    generator = RecordingGenerator()
    service = QuestionService(generator=generator)
    first = await service.generate_question(code, GenerateQuestionRequest())
    second = await service.generate_question(code, GenerateQuestionRequest())
    assert (first.category, second.category) == ("Travel", "Food")
    assert (first.round_number, second.round_number) == (1, 2)
    assert first.spicy_level == "Hot"
    assert generator.calls[0]["previous"] == []
    assert generator.calls[1]["previous"] == [first.text]
    assert generator.calls[1]["categories"] == ["Travel", "Food", "Music"]


@pytest.mark.asyncio
async def test_explicit_category_wins():
    code = await _room_with_categories()
    question = await QuestionService(generator=RecordingGenerator()).generate_question(
        code, GenerateQuestionRequest(category="Dreams")
    )
    assert question.category == "Dreams"


@pytest.mark.asyncio
async def test_generation_without_any_category_is_rejected():
    room = await RoomService().create_room(CreateRoomRequest(host_name="Alex"))
    with pytest.raises(ValidationError) as exc:
        await QuestionService(generator=RecordingGenerator()).generate_question(room.code, GenerateQuestionRequest())
    assert exc.value.detail == "category_required"


@pytest.mark.asyncio
async def test_blank_generation_is_a_generator_failure():
    code = await _room_with_categories()
    with pytest.raises(QuestionGenerationError):
        await QuestionService(generator=RecordingGenerator(text="   ")).generate_question(
            code, GenerateQuestionRequest()
        )
    listed = await QuestionService().list_questions(code)
    assert listed.items == []


@pytest.mark.asyncio
async def test_xai_generator_posts_chat_completion():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion('  "What makes you laugh the hardest?"  '))

    text = await _generator(handler).generate(
        spicy_level="Mild",
        category="Humor",
        categories=["Humor", "Food", "Travel"],
        previous=["Where would you travel next?"],
    )
    assert text == "What makes you laugh the hardest?"
    assert seen["url"] == "https://llm.test/v1/chat/completions"
    assert seen["auth"] == "Bearer test-key"
    body = seen["body"]
    assert body["model"] == "test-model"
    assert body["temperature"] == 0.9
    assert body["max_tokens"] == 300
    assert body["messages"][0]["role"] == "system"
    assert "Where would you travel next?" in body["messages"][1]["content"]
    assert "Heat level: Mild" in body["messages"][1]["content"]


@pytest.mark.asyncio
async def test_xai_generator_maps_failures():
    def server_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "boom"})

    def malformed(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    kwargs = {"spicy_level": "Mild", "category": "Food", "categories": [], "previous": []}
    with pytest.raises(QuestionGenerationError) as failed:
        await _generator(server_error).generate(**kwargs)
    assert failed.value.detail == "generator_failed"
    with pytest.raises(QuestionGenerationError) as bad:
        await _generator(malformed).generate(**kwargs)
    assert bad.value.detail == "generator_bad_response"
    with pytest.raises(QuestionGenerationError) as down:
        await _generator(unreachable).generate(**kwargs)
    assert down.value.detail == "generator_unreachable"


@pytest.mark.asyncio
async def test_xai_generator_requires_api_key():
    generator = XaiQuestionGenerator.from_settings()
    assert generator.api_key is None
    with pytest.raises(GeneratorNotConfigured) as exc:
        await generator.generate(spicy_level="Mild", category="Food", categories=[], previous=[])
    assert exc.value.status_code == 503


@pytest.mark.asyncio
async def test_manual_and_generated_questions_share_round_numbers():
    code = await _room_with_categories()
    service = QuestionService(generator=RecordingGenerator())
    await service.submit_question(code, SubmitQuestionRequest(text="Q1", category="Travel", spicy_level="Hot"))
    generated = await service.generate_question(code, GenerateQuestionRequest())
    assert generated.round_number == 2
    assert generated.category == "Food"
