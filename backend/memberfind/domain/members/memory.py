"""In-process stores used in development and tests."""

from __future__ import annotations

import asyncio
from typing import Iterable, Optional

from memberfind.domain.members import models, policy
from memberfind.domain.members.stores import SORT_LAST_LOGIN_DESC


def _by_last_login(members: Iterable[models.MemberProfile]) -> list[models.MemberProfile]:
	return sorted(members, key=lambda m: m.last_login_at, reverse=True)


class MemoryDirectoryStore:
	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.members: dict[str, models.MemberProfile] = {}

	async def reset(self) -> None:
		async with self._lock:
			self.members.clear()

	async def seed(self, members: Iterable[models.MemberProfile]) -> None:
		async with self._lock:
			self.members = {m.member_id: m for m in members}

	async def find_by_identities(
		self,
		ids: Iterable[str],
		privacy_mode: models.PrivacyMode,
		*,
		limit: int,
	) -> list[models.MemberProfile]:
		wanted = set(ids)
		async with self._lock:
			matches = [
				member
				for member_id, member in self.members.items()
				if member_id in wanted and policy.allow_member(member, privacy_mode)
			]
		return _by_last_login(matches)[:limit]

	async def find_by_prefix(
		self,
		prefix: str,
		filters: models.DirectoryFilters,
		sort: str,
		limit: int,
	) -> list[models.MemberProfile]:
		if sort != SORT_LAST_LOGIN_DESC:
			raise ValueError(f"unsupported sort: {sort}")
		async with self._lock:
			matches: list[models.MemberProfile] = []
			for member in self.members.values():
				if not member.lowercased_username.startswith(prefix):
					continue
				if member.member_id in filters.exclude_ids:
					continue
				if filters.group_id is not None and not member.in_group(filters.group_id):
					continue
				if not policy.allow_member(member, filters.privacy_mode):
					continue
				matches.append(member)
		return _by_last_login(matches)[:limit]

	async def get_memberships(self, member_id: str) -> Optional[models.Memberships]:
		async with self._lock:
			member = self.members.get(member_id)
		if member is None:
			return None
		return models.Memberships(party_id=member.party_id, guild_ids=frozenset(member.guild_ids))


class MemoryActivityStore:
	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.records: list[models.ActivityRecord] = []

	async def reset(self) -> None:
		async with self._lock:
			self.records.clear()

	async def seed(self, records: Iterable[models.ActivityRecord]) -> None:
		async with self._lock:
			self.records = list(records)

	async def find_recent(
		self,
		group_id: str,
		username_prefix: str,
		limit: int,
	) -> list[models.ActivityRecord]:
		async with self._lock:
			matches = [
				record
				for record in self.records
				if record.group_id == group_id and record.sender_username.lower().startswith(username_prefix)
			]
		matches.sort(key=lambda r: r.timestamp, reverse=True)
		return matches[:limit]


_DIRECTORY = MemoryDirectoryStore()
_ACTIVITY = MemoryActivityStore()


def memory_stores() -> tuple[MemoryDirectoryStore, MemoryActivityStore]:
	return _DIRECTORY, _ACTIVITY


async def seed_memory_store(
	*,
	members: Iterable[models.MemberProfile] | None = None,
	activity: Iterable[models.ActivityRecord] | None = None,
) -> None:
	await _DIRECTORY.seed(members or [])
	await _ACTIVITY.seed(activity or [])


async def reset_memory_state() -> None:
	await _DIRECTORY.reset()
	await _ACTIVITY.reset()
