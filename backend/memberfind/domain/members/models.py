"""Domain models backing member autocomplete."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class ScopeContext(str, Enum):
	"""Social context a lookup may be restricted to."""

	PARTY = "party"
	PRIVATE_GUILD = "privateGuild"
	PUBLIC_GUILD = "publicGuild"
	TAVERN = "tavern"


class PrivacyMode(str, Enum):
	"""Whether a directory lookup must honour the member's searchable preference."""

	PUBLIC = "public"
	PRIVATE = "private"

	@property
	def enforce_searchable(self) -> bool:
		return self is PrivacyMode.PUBLIC


@dataclass(slots=True)
class MemberProfile:
	"""Read-only snapshot of a member record owned by the directory store."""

	member_id: str
	username: str
	display_name: str
	last_login_at: datetime
	verified_username: bool = False
	blocked: bool = False
	chat_revoked: bool = False
	# None means the member never touched the preference, which counts as searchable
	searchable: Optional[bool] = None
	party_id: Optional[str] = None
	guild_ids: frozenset[str] = field(default_factory=frozenset)
	contributor_level: Optional[int] = None

	@property
	def lowercased_username(self) -> str:
		return self.username.lower()

	def in_group(self, group_id: str) -> bool:
		return self.party_id == group_id or group_id in self.guild_ids


@dataclass(slots=True, frozen=True)
class ActivityRecord:
	"""A chat message sent into a party or guild."""

	group_id: str
	sender_id: str
	sender_username: str
	timestamp: datetime


@dataclass(slots=True, frozen=True)
class Memberships:
	"""Groups the requesting member belongs to."""

	party_id: Optional[str] = None
	guild_ids: frozenset[str] = frozenset()


@dataclass(slots=True)
class SearchRequest:
	raw_username: str
	scope_context: Optional[str] = None
	scope_group_id: Optional[str] = None
	requester_party_id: Optional[str] = None
	requester_guild_ids: frozenset[str] = frozenset()

	@classmethod
	def for_requester(
		cls,
		raw_username: str,
		memberships: Memberships,
		*,
		scope_context: Optional[str] = None,
		scope_group_id: Optional[str] = None,
	) -> "SearchRequest":
		return cls(
			raw_username=raw_username,
			scope_context=scope_context,
			scope_group_id=scope_group_id,
			requester_party_id=memberships.party_id,
			requester_guild_ids=frozenset(memberships.guild_ids),
		)


@dataclass(slots=True, frozen=True)
class Scope:
	"""Outcome of authorizing a requested scope."""

	group_id: Optional[str] = None
	private: bool = False
	# Every member belongs to a global space, so the directory fallback is not narrowed to it
	global_space: bool = False

	@property
	def directory_group_id(self) -> Optional[str]:
		return None if self.global_space else self.group_id

	@property
	def scoped(self) -> bool:
		return self.group_id is not None

	@property
	def kind(self) -> str:
		if not self.scoped:
			return "none"
		return "private" if self.private else "public"

	@property
	def privacy_mode(self) -> PrivacyMode:
		return PrivacyMode.PRIVATE if self.private else PrivacyMode.PUBLIC


UNSCOPED = Scope()


@dataclass(slots=True, frozen=True)
class DirectoryFilters:
	"""Equality and set filters applied to a directory prefix lookup."""

	exclude_ids: frozenset[str] = frozenset()
	group_id: Optional[str] = None
	privacy_mode: PrivacyMode = PrivacyMode.PUBLIC


@dataclass(slots=True, frozen=True)
class Candidates:
	"""Accumulator threaded through the retrieval phases."""

	members: tuple[MemberProfile, ...] = ()
	budget: int = 0

	@property
	def remaining(self) -> int:
		return self.budget - len(self.members)

	@property
	def member_ids(self) -> frozenset[str]:
		return frozenset(member.member_id for member in self.members)

	def extend(self, members: list[MemberProfile]) -> "Candidates":
		seen = set(self.member_ids)
		merged = list(self.members)
		for member in members:
			if len(merged) >= self.budget:
				break
			if member.member_id in seen:
				continue
			seen.add(member.member_id)
			merged.append(member)
		return Candidates(members=tuple(merged), budget=self.budget)
