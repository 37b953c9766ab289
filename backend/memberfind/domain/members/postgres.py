"""asyncpg-backed implementations of the directory and activity stores."""

from __future__ import annotations

import logging
from typing import Iterable, Optional
from uuid import UUID

import asyncpg

from memberfind.domain.members import models
from memberfind.domain.members.exceptions import StoreFailure
from memberfind.domain.members.stores import SORT_LAST_LOGIN_DESC

logger = logging.getLogger(__name__)

_MEMBER_COLUMNS = """
	m.id,
	m.username,
	m.display_name,
	m.last_login_at,
	m.verified_username,
	m.blocked,
	m.chat_revoked,
	m.searchable,
	m.party_id,
	m.guild_ids,
	m.contributor_level
"""

# Shared visibility clause; $1 toggles enforcement of the searchable preference
_ELIGIBLE = """
	m.verified_username IS TRUE
	AND m.blocked IS NOT TRUE
	AND m.chat_revoked IS NOT TRUE
	AND ($1::boolean IS FALSE OR m.searchable IS DISTINCT FROM FALSE)
"""


def like_prefix(prefix: str) -> str:
	"""Escape LIKE wildcards so user input only ever matches literally."""

	escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
	return f"{escaped}%"


def as_uuid(value: object) -> Optional[UUID]:
	"""Parse an identity, or None when it cannot name a row in a uuid column."""

	try:
		return UUID(str(value))
	except ValueError:
		return None


def _as_uuids(values: Iterable[str]) -> list[UUID]:
	return [parsed for parsed in (as_uuid(value) for value in dict.fromkeys(values)) if parsed is not None]


def _member_from_record(row: asyncpg.Record) -> models.MemberProfile:
	return models.MemberProfile(
		member_id=str(row["id"]),
		username=row["username"],
		display_name=row["display_name"] or row["username"],
		last_login_at=row["last_login_at"],
		verified_username=bool(row["verified_username"]),
		blocked=bool(row["blocked"]),
		chat_revoked=bool(row["chat_revoked"]),
		searchable=row["searchable"],
		party_id=str(row["party_id"]) if row["party_id"] else None,
		guild_ids=frozenset(str(g) for g in row["guild_ids"] or ()),
		contributor_level=row["contributor_level"],
	)


async def _fetch(pool: asyncpg.Pool, store: str, query: str, *args) -> list[asyncpg.Record]:
	try:
		async with pool.acquire() as conn:
			return await conn.fetch(query, *args)
	except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
		logger.warning("%s store query failed: %s", store, exc.__class__.__name__)
		raise StoreFailure(store) from exc


class PostgresDirectoryStore:
	def __init__(self, pool: asyncpg.Pool) -> None:
		self._pool = pool

	async def find_by_identities(
		self,
		ids: Iterable[str],
		privacy_mode: models.PrivacyMode,
		*,
		limit: int,
	) -> list[models.MemberProfile]:
		wanted = _as_uuids(ids)
		if not wanted:
			return []
		rows = await _fetch(
			self._pool,
			"directory",
			f"""
			SELECT {_MEMBER_COLUMNS}
			FROM members m
			WHERE {_ELIGIBLE}
				AND m.id = ANY($2::uuid[])
			ORDER BY m.last_login_at DESC
			LIMIT $3
			""",
			privacy_mode.enforce_searchable,
			wanted,
			limit,
		)
		return [_member_from_record(row) for row in rows]

	async def find_by_prefix(
		self,
		prefix: str,
		filters: models.DirectoryFilters,
		sort: str,
		limit: int,
	) -> list[models.MemberProfile]:
		if sort != SORT_LAST_LOGIN_DESC:
			raise ValueError(f"unsupported sort: {sort}")
		group_id = None
		if filters.group_id is not None:
			group_id = as_uuid(filters.group_id)
			if group_id is None:
				return []
		rows = await _fetch(
			self._pool,
			"directory",
			f"""
			SELECT {_MEMBER_COLUMNS}
			FROM members m
			WHERE {_ELIGIBLE}
				AND m.lower_username LIKE $2 ESCAPE '\\'
				AND NOT (m.id = ANY($3::uuid[]))
				AND ($4::uuid IS NULL OR m.party_id = $4::uuid OR m.guild_ids @> ARRAY[$4::uuid])
			ORDER BY m.last_login_at DESC
			LIMIT $5
			""",
			filters.privacy_mode.enforce_searchable,
			like_prefix(prefix),
			_as_uuids(sorted(filters.exclude_ids)),
			group_id,
			limit,
		)
		return [_member_from_record(row) for row in rows]

	async def get_memberships(self, member_id: str) -> Optional[models.Memberships]:
		member_uuid = as_uuid(member_id)
		if member_uuid is None:
			return None
		rows = await _fetch(
			self._pool,
			"directory",
			"SELECT party_id, guild_ids FROM members WHERE id = $1::uuid",
			member_uuid,
		)
		if not rows:
			return None
		row = rows[0]
		return models.Memberships(
			party_id=str(row["party_id"]) if row["party_id"] else None,
			guild_ids=frozenset(str(g) for g in row["guild_ids"] or ()),
		)


class PostgresActivityStore:
	def __init__(self, pool: asyncpg.Pool) -> None:
		self._pool = pool

	async def find_recent(
		self,
		group_id: str,
		username_prefix: str,
		limit: int,
	) -> list[models.ActivityRecord]:
		group_uuid = as_uuid(group_id)
		if group_uuid is None:
			return []
		rows = await _fetch(
			self._pool,
			"activity",
			"""
			SELECT group_id, sender_id, sender_username, created_at
			FROM chat_messages
			WHERE group_id = $1::uuid
				AND lower(sender_username) LIKE $2 ESCAPE '\\'
			ORDER BY created_at DESC
			LIMIT $3
			""",
			group_uuid,
			like_prefix(username_prefix),
			limit,
		)
		return [
			models.ActivityRecord(
				group_id=str(row["group_id"]),
				sender_id=str(row["sender_id"]),
				sender_username=row["sender_username"],
				timestamp=row["created_at"],
			)
			for row in rows
		]
