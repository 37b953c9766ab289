"""Scope authorization, privacy guards and rate limits for member autocomplete."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from memberfind.domain.members import models
from memberfind.infra.rate_limit import allow
from memberfind.settings import settings


@dataclass(slots=True)
class AutocompletePolicyError(Exception):
	detail: str
	status_code: int = 400

	def __str__(self) -> str:  # pragma: no cover - debugging aid
		return self.detail


class AutocompleteRateLimitError(AutocompletePolicyError):
	def __init__(self) -> None:
		super().__init__(detail="rate_limit", status_code=429)


async def enforce_rate_limit(actor_id: str, *, limit: Optional[int] = None) -> None:
	"""Ensure the caller remains within the configured budget."""

	allowed = await allow("autocomplete", actor_id, limit=limit or settings.autocomplete_per_minute)
	if not allowed:
		raise AutocompleteRateLimitError()


def normalize_username(raw_username: str) -> str:
	"""Lowercase the input and drop a single leading mention marker."""

	username = (raw_username or "").lower()
	if username.startswith("@"):
		username = username[1:]
	return username


def authorize_scope(request: models.SearchRequest) -> Optional[models.Scope]:
	"""Resolve the requested scope, or None when the requester may not use it.

	A denial is reported exactly like an empty search so callers cannot probe
	which private groups a member belongs to.
	"""

	context_value = request.scope_context
	group_id = request.scope_group_id
	if context_value == models.ScopeContext.TAVERN.value:
		return models.Scope(group_id=settings.tavern_group_id, private=False, global_space=True)
	if not context_value or not group_id:
		return models.UNSCOPED

	try:
		context = models.ScopeContext(context_value)
	except ValueError:
		return None

	if context is models.ScopeContext.PARTY:
		if request.requester_party_id and group_id == request.requester_party_id:
			return models.Scope(group_id=group_id, private=True)
		return None
	if context is models.ScopeContext.PRIVATE_GUILD:
		if group_id in request.requester_guild_ids:
			return models.Scope(group_id=group_id, private=True)
		return None
	if context is models.ScopeContext.PUBLIC_GUILD:
		# Open groups are searchable by anyone, member or not.
		return models.Scope(group_id=group_id, private=False)
	return None


def allow_member(member: models.MemberProfile, mode: models.PrivacyMode) -> bool:
	"""Privacy guard shared by the recent-activity and directory lookups.

	Members who opted out of search stay findable only inside a private scope,
	where group co-membership already establishes a relationship.
	"""

	if not member.verified_username or member.blocked or member.chat_revoked:
		return False
	if mode.enforce_searchable and member.searchable is False:
		return False
	return True
