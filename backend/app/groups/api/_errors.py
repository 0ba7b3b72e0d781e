"""Error translation helpers for the groups API."""

from __future__ import annotations

from fastapi import HTTPException, status

from app.groups.domain import exceptions


def to_http_error(exc: Exception) -> HTTPException:
	"""Translate domain exceptions to FastAPI HTTP errors."""
	if isinstance(exc, HTTPException):
		return exc
	if isinstance(exc, exceptions.GroupError):
		headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, exceptions.UnauthenticatedError) else None
		return HTTPException(status_code=exc.status_code, detail=exc.detail, headers=headers)
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal_error")
