"""Identity resolution for FastAPI endpoints.

Bearer JWTs are verified with settings.secret_key. The X-User-Id header is only
honoured in development so local tools can act as any user.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.infra import jwt as jwt_helper
from app.settings import settings


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	handle: Optional[str] = None
	display_name: Optional[str] = None
	avatar_url: Optional[str] = None
	session_id: Optional[str] = None

	@property
	def user_id(self) -> UUID:
		return UUID(self.id)


_bearer_scheme = HTTPBearer(auto_error=False)


def verify_access_jwt(token: str) -> AuthenticatedUser | None:
	"""Decode an access JWT; returns None when the token cannot be resolved."""
	try:
		payload = jwt_helper.decode_access(token)
	except Exception:
		return None

	sub = str(payload.get("sub") or "").strip()
	try:
		UUID(sub)
	except ValueError:
		return None

	handle = payload.get("handle") or payload.get("username")
	display_name = payload.get("name") or payload.get("display_name")
	avatar = payload.get("picture") or payload.get("profile_pic")
	session_id = payload.get("sid")
	return AuthenticatedUser(
		id=sub,
		handle=str(handle) if handle is not None else None,
		display_name=str(display_name) if display_name is not None else None,
		avatar_url=str(avatar) if avatar is not None else None,
		session_id=str(session_id).strip() if session_id is not None else None,
	)


def resolve_identity(
	credentials: Optional[HTTPAuthorizationCredentials],
	x_user_id: Optional[str] = None,
) -> AuthenticatedUser | None:
	"""Map an external credential to an internal actor, or None if unresolvable."""
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)
	if settings.is_dev() and x_user_id:
		try:
			UUID(x_user_id)
		except ValueError:
			return None
		return AuthenticatedUser(id=x_user_id)
	return None


async def get_optional_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser | None:
	"""Resolve the caller. Anonymous callers yield None and the domain layer decides."""
	return resolve_identity(credentials, x_user_id)
