import pytest

from ember.settings import settings


async def _create(api_client, name="Alex"):
    response = await api_client.post("/rooms/create", json={"host_name": name})
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_full_round_flow(api_client):
    room = await _create(api_client)
    code = room["code"]
    assert len(code) == 6
    assert room["step"] == "Lobby"
    assert len(room["players"]) == 1
    alex = room["player_id"]

    join = await api_client.post("/rooms/join", json={"room_code": code.lower(), "player_name": "Sam"})
    assert join.status_code == 200
    joined = join.json()
    assert len(joined["players"]) == 2
    sam = joined["player_id"]
    assert next(p for p in joined["players"] if p["id"] == sam)["is_host"] is False

    update = await api_client.post(f"/rooms/{code}/update", json={"step": "CategorySelection"})
    assert update.status_code == 200
    assert update.json()["updates"] == {"step": "CategorySelection"}
    state = (await api_client.get(f"/rooms/{code}")).json()
    assert state["step"] == "CategorySelection"

    question = await api_client.post(
        f"/rooms/{code}/questions",
        json={"text": "Q1", "category": "Romance", "spicy_level": "Mild"},
    )
    assert question.status_code == 200
    question_body = question.json()
    assert question_body["round_number"] == 1

    first = await api_client.post(
        f"/rooms/{code}/answers",
        json={"question_id": question_body["id"], "player_id": alex, "text": "A"},
    )
    assert first.status_code == 200
    assert first.json()["all_answered"] is False
    second = await api_client.post(
        f"/rooms/{code}/answers",
        json={"question_id": question_body["id"], "player_id": sam, "text": "B"},
    )
    assert second.json()["all_answered"] is True

    sync = await api_client.get(f"/rooms/{code}/sync")
    assert sync.status_code == 200
    body = sync.json()
    types = [event["type"] for event in body["events"]]
    assert types == [
        "room_created",
        "player_joined",
        "room_updated",
        "question_asked",
        "answer_submitted",
        "answer_submitted",
    ]
    assert {p["name"] for p in body["players"]} == {"Alex", "Sam"}
    assert body["server_time"]
    assert body["events"][2]["payload"] == {"step": "CategorySelection"}
    assert body["has_more"] is False

    later = await api_client.get(f"/rooms/{code}/sync", params={"since": body["server_time"]})
    assert later.status_code == 200
    assert later.json()["events"] == []

    rounds = (await api_client.get(f"/rooms/{code}/rounds")).json()["rounds"]
    assert [a["answer_text"] for a in rounds[0]["answers"]] == ["A", "B"]


@pytest.mark.asyncio
async def test_unknown_room_is_404(api_client):
    response = await api_client.get("/rooms/ZZZZZZ")
    assert response.status_code == 404
    assert response.json()["detail"] == "room_not_found"
    join = await api_client.post("/rooms/join", json={"room_code": "ZZZZZZ", "player_name": "Sam"})
    assert join.status_code == 404
    sync = await api_client.get("/rooms/ZZZZZZ/sync")
    assert sync.status_code == 404


@pytest.mark.asyncio
async def test_case_variant_name_then_full_room(api_client):
    room = await _create(api_client, name="Sam")
    taken = await api_client.post("/rooms/join", json={"room_code": room["code"], "player_name": "sam"})
    assert taken.status_code == 400
    assert taken.json()["detail"] == "name_taken"
    ok = await api_client.post("/rooms/join", json={"room_code": room["code"], "player_name": "Alex"})
    assert ok.status_code == 200
    for name in ("sam", "Jordan"):
        full = await api_client.post("/rooms/join", json={"room_code": room["code"], "player_name": name})
        assert full.status_code == 400
        assert full.json()["detail"] == "room_full"


@pytest.mark.asyncio
async def test_validation_errors_are_422(api_client):
    bad_code = await api_client.get("/rooms/ABC")
    assert bad_code.status_code == 422
    assert bad_code.json()["detail"] == "invalid_room_code"

    empty_name = await api_client.post("/rooms/create", json={"host_name": "   "})
    assert empty_name.status_code == 422
    assert empty_name.json()["detail"] == "name_required"

    room = await _create(api_client)
    no_fields = await api_client.post(f"/rooms/{room['code']}/update", json={})
    assert no_fields.status_code == 422
    assert no_fields.json()["detail"] == "no_updates"

    missing = await api_client.post("/rooms/create", json={})
    assert missing.status_code == 422
    assert missing.json()["detail"] == "validation_error"
    assert "request_id" in missing.json()

    bad_since = await api_client.get(f"/rooms/{room['code']}/sync", params={"since": "soon"})
    assert bad_since.status_code == 422


@pytest.mark.asyncio
async def test_ready_endpoint(api_client):
    room = await _create(api_client)
    response = await api_client.post(
        f"/rooms/{room['code']}/ready",
        json={"player_id": room["player_id"], "is_ready": True},
    )
    assert response.status_code == 200
    assert response.json() == {"all_ready": True, "player_count": 1, "ready_count": 1}


@pytest.mark.asyncio
async def test_close_room_by_host_only(api_client):
    room = await _create(api_client)
    guest = (
        await api_client.post("/rooms/join", json={"room_code": room["code"], "player_name": "Sam"})
    ).json()
    denied = await api_client.post(f"/rooms/{room['code']}/close", json={"player_id": guest["player_id"]})
    assert denied.status_code == 403
    closed = await api_client.post(f"/rooms/{room['code']}/close", json={"player_id": room["player_id"]})
    assert closed.json() == {"ok": True}
    assert (await api_client.get(f"/rooms/{room['code']}")).status_code == 404


@pytest.mark.asyncio
async def test_generate_without_api_key_is_503(api_client):
    room = await _create(api_client)
    await api_client.post(
        f"/rooms/{room['code']}/update",
        json={"categories": ["Travel", "Food", "Music"]},
    )
    response = await api_client.post(f"/rooms/{room['code']}/questions/generate", json={})
    assert response.status_code == 503
    assert response.json()["detail"] == "generator_not_configured"


@pytest.mark.asyncio
async def test_create_is_rate_limited_per_client(api_client, monkeypatch):
    monkeypatch.setattr(settings, "room_create_limit_per_minute", 2)
    for _ in range(2):
        assert (await api_client.post("/rooms/create", json={"host_name": "Alex"})).status_code == 200
    limited = await api_client.post("/rooms/create", json={"host_name": "Alex"})
    assert limited.status_code == 429
    assert limited.json()["detail"] == "rate_limited:create"


@pytest.mark.asyncio
async def test_responses_carry_request_id(api_client):
    response = await api_client.get("/rooms/ZZZZZZ", headers={"X-Request-Id": "req-abc"})
    assert response.headers["X-Request-Id"] == "req-abc"
    assert response.json()["request_id"] == "req-abc"
