"""Contracts for the stores the autocomplete pipeline reads from."""

from __future__ import annotations

from typing import Iterable, Optional, Protocol

from memberfind.domain.members import models

SORT_LAST_LOGIN_DESC = "-last_login_at"


class ActivityStore(Protocol):
	async def find_recent(
		self,
		group_id: str,
		username_prefix: str,
		limit: int,
	) -> list[models.ActivityRecord]:
		"""Newest-first chat activity in a group from senders matching the prefix."""
		...


class DirectoryStore(Protocol):
	async def find_by_identities(
		self,
		ids: Iterable[str],
		privacy_mode: models.PrivacyMode,
		*,
		limit: int,
	) -> list[models.MemberProfile]:
		"""Eligible profiles for the given ids; ordering is not guaranteed."""
		...

	async def find_by_prefix(
		self,
		prefix: str,
		filters: models.DirectoryFilters,
		sort: str,
		limit: int,
	) -> list[models.MemberProfile]:
		...

	async def get_memberships(self, member_id: str) -> Optional[models.Memberships]:
		...
