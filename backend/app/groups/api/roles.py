"""Moderator and admin role routes."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends

from app.groups.api._errors import to_http_error
from app.groups.domain.coordinator import TransitionCoordinator
from app.groups.schemas import dto
from app.infra.auth import AuthenticatedUser, get_optional_user

router = APIRouter(tags=["groups:roles"])
_service = TransitionCoordinator()


@router.patch("/groups/{group_id}/members/{user_id}/promote", response_model=dto.MemberResponse)
async def promote_endpoint(
	group_id: UUID,
	user_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> dto.MemberResponse:
	try:
		return dto.MemberResponse.model_validate(await _service.promote_to_moderator(auth_user, group_id, user_id))
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.patch("/groups/{group_id}/members/{user_id}/demote", response_model=dto.MemberResponse)
async def demote_endpoint(
	group_id: UUID,
	user_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> dto.MemberResponse:
	try:
		return dto.MemberResponse.model_validate(await _service.demote_moderator(auth_user, group_id, user_id))
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.patch("/groups/{group_id}/members/{user_id}/admin", response_model=dto.MemberResponse)
async def grant_admin_endpoint(
	group_id: UUID,
	user_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> dto.MemberResponse:
	try:
		return dto.MemberResponse.model_validate(await _service.grant_admin(auth_user, group_id, user_id))
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.delete("/groups/{group_id}/members/{user_id}/admin", response_model=dto.MemberResponse)
async def revoke_admin_endpoint(
	group_id: UUID,
	user_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> dto.MemberResponse:
	try:
		return dto.MemberResponse.model_validate(await _service.revoke_admin(auth_user, group_id, user_id))
	except Exception as exc:
		raise to_http_error(exc) from exc


__all__ = ["router"]
