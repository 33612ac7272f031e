import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from app.domain import container
from app.infra import postgres
from app.infra.clock import FrozenClock
from app.main import app
from app.settings import settings

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from app.infra.redis import redis_client, set_redis_client
	original = redis_client.client
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
	"""API tests authenticate via X-User-Id headers, which are only accepted in dev mode."""
	original_env = settings.environment
	original_token = settings.obs_admin_token
	settings.environment = "dev"
	settings.obs_admin_token = "test-admin-token"
	try:
		yield
	finally:
		settings.environment = original_env
		settings.obs_admin_token = original_token


@pytest.fixture
def clock():
	return FrozenClock(T0)


@pytest.fixture(autouse=True)
def memory_container(clock):
	container.reset(clock)
	yield
	container.reset()


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
