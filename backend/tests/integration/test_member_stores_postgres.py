from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncIterator, Iterator
from uuid import UUID, uuid4

import asyncpg
import pytest
import pytest_asyncio

from memberfind.domain.members import models
from memberfind.domain.members.postgres import PostgresActivityStore, PostgresDirectoryStore
from memberfind.domain.members.service import AutocompleteService
from memberfind.domain.members.stores import SORT_LAST_LOGIN_DESC

pytestmark = pytest.mark.asyncio

BACKEND_ROOT = Path(__file__).resolve().parents[2]
MIGRATIONS_DIR = BACKEND_ROOT / "migrations"

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="module")
def postgres_container() -> Iterator["PostgresContainer"]:
	testcontainers = pytest.importorskip(
		"testcontainers.postgres",
		reason="testcontainers.postgres is required for integration tests",
	)
	PostgresContainer = testcontainers.PostgresContainer
	container = PostgresContainer("postgres:16-alpine")
	try:
		container.start()
	except Exception as exc:  # pragma: no cover - environment without docker
		pytest.skip(f"unable to start postgres container: {exc}")
	try:
		yield container
	finally:
		container.stop()


async def _run_migrations(pool: asyncpg.Pool) -> None:
	async with pool.acquire() as conn:
		await conn.execute("DROP SCHEMA IF EXISTS public CASCADE")
		await conn.execute("CREATE SCHEMA public")
		await conn.execute("GRANT ALL ON SCHEMA public TO PUBLIC")
		for path in sorted(MIGRATIONS_DIR.glob("*.sql")):
			await conn.execute(path.read_text(encoding="utf-8"))


@pytest_asyncio.fixture(scope="function")
async def postgres_pool(postgres_container) -> AsyncIterator[asyncpg.Pool]:
	url = postgres_container.get_connection_url().replace("postgresql+psycopg2", "postgresql")
	pool = await asyncpg.create_pool(dsn=url, min_size=1, max_size=4)
	await _run_migrations(pool)
	try:
		yield pool
	finally:
		await pool.close()


async def _insert_member(
	pool: asyncpg.Pool,
	username: str,
	*,
	minutes_ago: int,
	verified: bool = True,
	blocked: bool = False,
	chat_revoked: bool = False,
	searchable=None,
	party_id=None,
	guild_ids=(),
) -> str:
	member_id = uuid4()
	async with pool.acquire() as conn:
		await conn.execute(
			"""
			INSERT INTO members (
				id, username, display_name, verified_username, blocked, chat_revoked,
				searchable, party_id, guild_ids, last_login_at
			)
			VALUES ($1, $2, $2, $3, $4, $5, $6, $7, $8::uuid[], $9)
			""",
			member_id,
			username,
			verified,
			blocked,
			chat_revoked,
			searchable,
			party_id,
			list(guild_ids),
			NOW - timedelta(minutes=minutes_ago),
		)
	return str(member_id)


async def _insert_message(pool: asyncpg.Pool, group_id, sender_id: str, username: str, *, minutes_ago: int) -> None:
	async with pool.acquire() as conn:
		await conn.execute(
			"""
			INSERT INTO chat_messages (id, group_id, sender_id, sender_username, created_at)
			VALUES ($1, $2, $3, $4, $5)
			""",
			uuid4(),
			group_id,
			UUID(sender_id),
			username,
			NOW - timedelta(minutes=minutes_ago),
		)


@pytest.mark.integration
async def test_prefix_lookup_applies_privacy_and_group_filters(postgres_pool):
	guild, party = uuid4(), uuid4()
	anna = await _insert_member(postgres_pool, "Anna", minutes_ago=30, guild_ids=[guild])
	annie = await _insert_member(postgres_pool, "annie", minutes_ago=10, guild_ids=[guild])
	annika = await _insert_member(postgres_pool, "annika", minutes_ago=5, party_id=party)
	await _insert_member(postgres_pool, "annabel", minutes_ago=1, blocked=True, guild_ids=[guild])
	await _insert_member(postgres_pool, "anneka", minutes_ago=1, verified=False)
	await _insert_member(postgres_pool, "annette", minutes_ago=1, chat_revoked=True, party_id=party)
	hidden = await _insert_member(postgres_pool, "annemarie", minutes_ago=2, searchable=False, party_id=party)
	store = PostgresDirectoryStore(postgres_pool)

	everyone = await store.find_by_prefix("ann", models.DirectoryFilters(), SORT_LAST_LOGIN_DESC, 10)
	private_party = await store.find_by_prefix(
		"ann",
		models.DirectoryFilters(group_id=str(party), privacy_mode=models.PrivacyMode.PRIVATE),
		SORT_LAST_LOGIN_DESC,
		10,
	)
	in_guild = await store.find_by_prefix(
		"ann",
		models.DirectoryFilters(group_id=str(guild), exclude_ids=frozenset({annie})),
		SORT_LAST_LOGIN_DESC,
		10,
	)
	capped = await store.find_by_prefix("ann", models.DirectoryFilters(), SORT_LAST_LOGIN_DESC, 1)
	literal = await store.find_by_prefix("an%", models.DirectoryFilters(), SORT_LAST_LOGIN_DESC, 10)
	unknown_group = await store.find_by_prefix(
		"ann", models.DirectoryFilters(group_id="not-a-group"), SORT_LAST_LOGIN_DESC, 10
	)

	assert [m.member_id for m in everyone] == [annika, annie, anna]
	assert [m.member_id for m in private_party] == [hidden, annika]
	assert [m.member_id for m in in_guild] == [anna]
	assert [m.member_id for m in capped] == [annika]
	assert literal == []
	assert unknown_group == []


@pytest.mark.integration
async def test_identity_lookup_honours_privacy_mode(postgres_pool):
	hidden = await _insert_member(postgres_pool, "anna", minutes_ago=1, searchable=False)
	bob = await _insert_member(postgres_pool, "bob", minutes_ago=2)
	revoked = await _insert_member(postgres_pool, "carl", minutes_ago=3, chat_revoked=True)
	store = PostgresDirectoryStore(postgres_pool)
	ids = [hidden, bob, revoked, "not-a-member"]

	public = await store.find_by_identities(ids, models.PrivacyMode.PUBLIC, limit=5)
	private = await store.find_by_identities(ids, models.PrivacyMode.PRIVATE, limit=5)
	capped = await store.find_by_identities(ids, models.PrivacyMode.PRIVATE, limit=1)

	assert [m.member_id for m in public] == [bob]
	assert [m.member_id for m in private] == [hidden, bob]
	assert [m.member_id for m in capped] == [hidden]
	assert public[0].searchable is None


@pytest.mark.integration
async def test_memberships(postgres_pool):
	party, guild = uuid4(), uuid4()
	member = await _insert_member(postgres_pool, "anna", minutes_ago=1, party_id=party, guild_ids=[guild])
	store = PostgresDirectoryStore(postgres_pool)

	assert await store.get_memberships(member) == models.Memberships(
		party_id=str(party), guild_ids=frozenset({str(guild)})
	)
	assert await store.get_memberships(str(uuid4())) is None
	assert await store.get_memberships("dev-user") is None


@pytest.mark.integration
async def test_recent_activity_is_group_scoped_newest_first(postgres_pool):
	group, other = uuid4(), uuid4()
	anna, annie, annika = str(uuid4()), str(uuid4()), str(uuid4())
	await _insert_message(postgres_pool, group, anna, "Anna", minutes_ago=5)
	await _insert_message(postgres_pool, group, annie, "annie", minutes_ago=1)
	await _insert_message(postgres_pool, other, annika, "annika", minutes_ago=0)
	await _insert_message(postgres_pool, group, str(uuid4()), "bob", minutes_ago=0)
	store = PostgresActivityStore(postgres_pool)

	records = await store.find_recent(str(group), "ann", 10)
	capped = await store.find_recent(str(group), "ann", 1)

	assert [r.sender_id for r in records] == [annie, anna]
	assert [r.sender_id for r in capped] == [annie]
	assert records[0].group_id == str(group)
	assert await store.find_recent("not-a-group", "ann", 10) == []


@pytest.mark.integration
async def test_party_autocomplete_against_postgres(postgres_pool):
	party = uuid4()
	chatter = await _insert_member(postgres_pool, "annalise", minutes_ago=30, party_id=party, searchable=False)
	await _insert_member(postgres_pool, "anna", minutes_ago=5, party_id=party)
	await _insert_member(postgres_pool, "annie", minutes_ago=1)
	await _insert_message(postgres_pool, party, chatter, "annalise", minutes_ago=2)
	service = AutocompleteService(PostgresDirectoryStore(postgres_pool), PostgresActivityStore(postgres_pool))

	results = await service.resolve_autocomplete(
		models.SearchRequest(
			"ann",
			scope_context="party",
			scope_group_id=str(party),
			requester_party_id=str(party),
		)
	)

	assert [m.username for m in results] == ["annalise", "anna"]
