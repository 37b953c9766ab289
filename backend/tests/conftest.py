import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

# Settings are read at import time; pin the test environment first.
os.environ.setdefault("ENV", "dev")
os.environ.setdefault("DIRECTORY_BACKEND", "memory")
os.environ.setdefault("SECRET_KEY", "test-secret")

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from memberfind.domain.members import reset_memory_state
from memberfind.main import app
from memberfind.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from memberfind.infra.redis import redis_client, set_redis_client

	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest_asyncio.fixture(autouse=True)
async def clear_memory_state():
	await reset_memory_state()
	yield
	await reset_memory_state()


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Dev mode enables the X-User-Id header; memory mode keeps Postgres out of the way."""
	original_env = settings.environment
	original_backend = settings.directory_backend
	settings.environment = "dev"
	settings.directory_backend = "memory"
	try:
		yield
	finally:
		settings.environment = original_env
		settings.directory_backend = original_backend


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
