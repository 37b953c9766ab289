"""Service layer for username autocomplete.

A lookup runs in two phases that share one result budget. Members who
recently chatted in the requested party or guild come first; whatever budget
is left is filled from the directory, most recently logged in first. Each
phase takes the accumulated candidates and returns a new accumulator, so the
fallback phase sees exactly which members and how much budget remain.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Optional, TypeVar

import asyncpg

from memberfind.domain.members import memory, models, policy
from memberfind.domain.members.exceptions import StoreFailure
from memberfind.domain.members.postgres import PostgresActivityStore, PostgresDirectoryStore
from memberfind.domain.members.stores import SORT_LAST_LOGIN_DESC, ActivityStore, DirectoryStore
from memberfind.infra.postgres import get_pool
from memberfind.obs import metrics as obs_metrics
from memberfind.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SCOPE_LABELS = frozenset(context.value for context in models.ScopeContext)


def _scope_label(request: models.SearchRequest) -> str:
	if not request.scope_context:
		return "none"
	if request.scope_context in _SCOPE_LABELS:
		return request.scope_context
	return "other"


async def _call(store: str, pending: Awaitable[T]) -> T:
	try:
		return await pending
	except StoreFailure:
		raise
	except Exception as exc:
		raise StoreFailure(store) from exc


class AutocompleteService:
	def __init__(
		self,
		directory: Optional[DirectoryStore] = None,
		activity: Optional[ActivityStore] = None,
		*,
		result_limit: Optional[int] = None,
		activity_window: Optional[int] = None,
	) -> None:
		self._directory = directory
		self._activity = activity
		self._result_limit = result_limit
		self._activity_window = activity_window

	@property
	def result_limit(self) -> int:
		if self._result_limit is not None:
			return self._result_limit
		return settings.autocomplete_result_limit

	@property
	def activity_window(self) -> int:
		if self._activity_window is not None:
			return self._activity_window
		return settings.autocomplete_activity_window

	async def _pool_or_none(self) -> Optional[asyncpg.Pool]:
		if settings.directory_backend == "memory":
			return None
		if settings.directory_backend == "postgres":
			return await _call("directory", get_pool())
		try:
			pool = await get_pool()
			async with pool.acquire() as conn:
				await conn.execute("SELECT 1")
			return pool
		except Exception:
			logger.warning("postgres unavailable, using in-memory member stores")
			return None

	async def stores(self) -> tuple[DirectoryStore, ActivityStore]:
		if self._directory is None or self._activity is None:
			pool = await self._pool_or_none()
			if pool is None:
				directory, activity = memory.memory_stores()
			else:
				directory, activity = PostgresDirectoryStore(pool), PostgresActivityStore(pool)
			self._directory = self._directory or directory
			self._activity = self._activity or activity
		return self._directory, self._activity

	async def memberships_for(self, member_id: str) -> models.Memberships:
		directory, _ = await self.stores()
		found = await _call("directory", directory.get_memberships(member_id))
		return found or models.Memberships()

	async def resolve_autocomplete(self, request: models.SearchRequest) -> list[models.MemberProfile]:
		"""Resolve a partial username into at most ``result_limit`` members."""

		start = time.perf_counter()
		label = _scope_label(request)
		try:
			prefix = policy.normalize_username(request.raw_username)
			if not prefix:
				obs_metrics.inc_autocomplete(label, "empty")
				return []

			scope = policy.authorize_scope(request)
			if scope is None:
				obs_metrics.inc_autocomplete(label, "denied")
				return []

			directory, activity = await self.stores()
			candidates = models.Candidates(budget=self.result_limit)
			try:
				if scope.scoped:
					candidates = await self._collect_recent(activity, directory, scope, prefix, candidates)
				recent_count = len(candidates.members)
				candidates = await self._fill_from_directory(directory, scope, prefix, candidates)
			except StoreFailure as exc:
				logger.warning("autocomplete store failure scope=%s store=%s", scope.kind, exc.store)
				obs_metrics.inc_autocomplete(label, "error")
				raise

			results = list(candidates.members)
			obs_metrics.observe_phase_results("recent", recent_count)
			obs_metrics.observe_phase_results("directory", len(results) - recent_count)
			obs_metrics.inc_autocomplete(label, "ok" if results else "empty")
			logger.info(
				"autocomplete scope=%s recent=%d results=%d",
				scope.kind,
				recent_count,
				len(results),
				extra={"prefix": prefix},
			)
			return results
		finally:
			obs_metrics.observe_autocomplete_latency(label, time.perf_counter() - start)

	async def _collect_recent(
		self,
		activity: ActivityStore,
		directory: DirectoryStore,
		scope: models.Scope,
		prefix: str,
		candidates: models.Candidates,
	) -> models.Candidates:
		"""Members who recently chatted in the scoped group, newest login first."""

		records = await _call("activity", activity.find_recent(scope.group_id, prefix, self.activity_window))
		sender_ids = list(dict.fromkeys(record.sender_id for record in records))
		if not sender_ids:
			return candidates

		profiles = await _call(
			"directory",
			directory.find_by_identities(sender_ids, scope.privacy_mode, limit=candidates.remaining),
		)
		chat_order = {sender_id: idx for idx, sender_id in enumerate(sender_ids)}
		eligible = [
			profile
			for profile in profiles
			if profile.member_id in chat_order and policy.allow_member(profile, scope.privacy_mode)
		]
		# Stable: members with equal login times keep their chat recency order.
		eligible.sort(key=lambda profile: chat_order[profile.member_id])
		eligible.sort(key=lambda profile: profile.last_login_at, reverse=True)
		return candidates.extend(eligible)

	async def _fill_from_directory(
		self,
		directory: DirectoryStore,
		scope: models.Scope,
		prefix: str,
		candidates: models.Candidates,
	) -> models.Candidates:
		"""Spend any remaining budget on a directory-wide prefix search."""

		if candidates.remaining <= 0:
			return candidates
		filters = models.DirectoryFilters(
			exclude_ids=candidates.member_ids,
			group_id=scope.directory_group_id,
			privacy_mode=scope.privacy_mode,
		)
		profiles = await _call(
			"directory",
			directory.find_by_prefix(prefix, filters, SORT_LAST_LOGIN_DESC, candidates.remaining),
		)
		return candidates.extend(
			[profile for profile in profiles if policy.allow_member(profile, scope.privacy_mode)]
		)
