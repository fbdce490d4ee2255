import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from ember.domain.game.memory import reset_memory_state
from ember.infra import postgres
from ember.main import app
from ember.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from ember.infra.redis import redis_client, set_redis_client
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Run every test against the in-process store with the default room rules."""
	original_env = settings.environment
	original_backend = settings.store_backend
	original_key = settings.question_generator_api_key
	settings.environment = "dev"
	settings.store_backend = "memory"
	settings.question_generator_api_key = None
	try:
		yield
	finally:
		settings.environment = original_env
		settings.store_backend = original_backend
		settings.question_generator_api_key = original_key


@pytest_asyncio.fixture(autouse=True)
async def reset_game_state():
	await reset_memory_state()
	yield


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
