"""Authentication helpers for FastAPI endpoints.

- Bearer JWTs (HS256) are verified with settings.secret_key.
- The X-User-Id header is only honoured in development.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.settings import settings
from app.infra import jwt as jwt_helper


@dataclass(slots=True)
class AuthenticatedUser:
	id: str


_bearer_scheme = HTTPBearer(auto_error=False)


def _invalid_token() -> HTTPException:
	return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")


def _normalise_user_id(raw: Optional[str]) -> str:
	"""Return the canonical UUID string or reject the caller."""
	value = str(raw or "").strip()
	if not value:
		raise _invalid_token()
	try:
		return str(UUID(value))
	except ValueError:
		raise _invalid_token() from None


def verify_access_jwt(token: str) -> AuthenticatedUser:
	"""Decode an access JWT and return the caller.

	Expected claims: sub (user UUID), exp, iat, iss, aud.
	"""
	try:
		payload = jwt_helper.decode_access(token)
	except Exception:
		raise _invalid_token()

	return AuthenticatedUser(id=_normalise_user_id(payload.get("sub")))


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	"""Resolve the authenticated user.

	In development we allow a simple header. In all other environments a valid
	Bearer JWT is required.
	"""
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)

	if settings.is_dev() and x_user_id:
		return AuthenticatedUser(id=_normalise_user_id(x_user_id))

	raise _invalid_token()
