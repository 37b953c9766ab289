"""REST endpoint for username autocomplete."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from memberfind.domain.members import models, policy, schemas
from memberfind.domain.members.exceptions import StoreFailure
from memberfind.domain.members.service import AutocompleteService
from memberfind.infra.auth import AuthenticatedUser, get_optional_user
from memberfind.settings import settings

router = APIRouter(tags=["members"])

_service = AutocompleteService()

_MEMBERSHIP_CONTEXTS = (models.ScopeContext.PARTY.value, models.ScopeContext.PRIVATE_GUILD.value)


def _as_http_error(exc: Exception) -> Exception:
	if isinstance(exc, HTTPException):
		return exc
	if isinstance(exc, policy.AutocompletePolicyError):
		return HTTPException(status_code=exc.status_code, detail=exc.detail)
	if isinstance(exc, StoreFailure):
		return HTTPException(status_code=503, detail=exc.reason)
	return exc


def _is_group_id(value: str) -> bool:
	try:
		UUID(value)
	except ValueError:
		return False
	return True


def _cache_control(context: Optional[str]) -> str:
	# Results scoped to a private group must never land in a shared cache.
	visibility = "private" if context in _MEMBERSHIP_CONTEXTS else "public"
	return f"{visibility}, max-age={settings.autocomplete_cache_max_age}"


@router.get("/members/find/{username}", response_model=list[schemas.MemberResult])
async def find_members_endpoint(
	username: str,
	request: Request,
	response: Response,
	query: schemas.AutocompleteQuery = Depends(),
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> list[schemas.MemberResult]:
	client_ip = request.client.host if request.client else "unknown"
	actor_id = auth_user.id if auth_user else f"ip:{client_ip}"
	try:
		await policy.enforce_rate_limit(actor_id)
		response.headers["Cache-Control"] = _cache_control(query.context)
		group_id = query.id
		if group_id is not None and not _is_group_id(group_id):
			# A malformed group id names no group; answer like any other denied scope.
			if query.context and query.context != models.ScopeContext.TAVERN.value:
				return []
			group_id = None
		memberships = models.Memberships()
		if auth_user is not None and query.context in _MEMBERSHIP_CONTEXTS:
			memberships = await _service.memberships_for(auth_user.id)
		search = models.SearchRequest.for_requester(
			username,
			memberships,
			scope_context=query.context,
			scope_group_id=group_id,
		)
		members = await _service.resolve_autocomplete(search)
	except Exception as exc:
		mapped = _as_http_error(exc)
		if mapped is exc:
			raise
		raise mapped from exc
	return [schemas.MemberResult.from_profile(member) for member in members]
