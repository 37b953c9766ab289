"""Authentication helpers for FastAPI endpoints.

Member lookup is open to anonymous callers, so the dependency here resolves to
``None`` instead of rejecting requests that carry no credentials. A bearer
token that is present but invalid is still rejected.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from memberfind.infra import jwt as jwt_helper
from memberfind.settings import settings


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	username: Optional[str] = None
	session_id: Optional[str] = None


_bearer_scheme = HTTPBearer(auto_error=False)


def verify_access_jwt(token: str) -> AuthenticatedUser:
	"""Decode and validate an access JWT and return an AuthenticatedUser."""
	try:
		payload = jwt_helper.decode_access(token)
	except Exception:
		# Normalise all decode failures to invalid_token for the API surface
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")

	sub = str(payload.get("sub") or "").strip()
	if not sub:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	username = payload.get("username")
	session_id = payload.get("sid")
	return AuthenticatedUser(
		id=sub,
		username=str(username) if username is not None else None,
		session_id=str(session_id).strip() if session_id is not None else None,
	)


async def get_optional_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Optional[AuthenticatedUser]:
	"""Resolve the caller if they presented credentials.

	In development we also accept a plain X-User-Id header.
	"""
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)
	if settings.is_dev() and x_user_id:
		return AuthenticatedUser(id=x_user_id)
	return None
