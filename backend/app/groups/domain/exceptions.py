"""Custom exceptions for group membership services."""

from __future__ import annotations

from fastapi import status

if hasattr(status, "HTTP_422_UNPROCESSABLE_CONTENT"):
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_CONTENT
else:  # pragma: no cover - older Starlette builds
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_ENTITY


class GroupError(Exception):
	"""Base class for group related errors."""

	status_code: int = status.HTTP_400_BAD_REQUEST
	detail: str = "group_error"

	def __init__(self, detail: str | None = None) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail


class UnauthenticatedError(GroupError):
	"""Raised when no actor identity could be resolved."""

	status_code = status.HTTP_401_UNAUTHORIZED
	detail = "unauthenticated"


class AuthorizationError(GroupError):
	"""Raised when the actor lacks the role an action requires."""

	status_code = status.HTTP_403_FORBIDDEN
	detail = "forbidden"


class ValidationError(GroupError):
	"""Raised for malformed input, before any transaction is opened."""

	status_code = _HTTP_422
	detail = "validation_error"


class ConflictError(GroupError):
	"""Raised for duplicate memberships, requests or names and last-admin removal."""

	status_code = status.HTTP_409_CONFLICT
	detail = "conflict"


class NotFoundError(GroupError):
	"""Raised when a group, request or membership is missing."""

	status_code = status.HTTP_404_NOT_FOUND
	detail = "not_found"


class InternalError(GroupError):
	"""Wraps unexpected failures; the detail never carries internals."""

	status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
	detail = "internal_error"
