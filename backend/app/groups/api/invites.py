"""Invite routes: issuing invites and answering them."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response

from app.groups.api._errors import to_http_error
from app.groups.domain.coordinator import TransitionCoordinator
from app.groups.schemas import dto
from app.infra.auth import AuthenticatedUser, get_optional_user

router = APIRouter(tags=["groups:invites"])
_service = TransitionCoordinator()


@router.post("/groups/{group_id}/invites/{user_id}", response_model=dto.RequestResponse, status_code=201)
async def invite_user_endpoint(
	group_id: UUID,
	user_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> dto.RequestResponse:
	try:
		return dto.RequestResponse.model_validate(await _service.invite_user(auth_user, group_id, user_id))
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.post("/groups/{group_id}/invites/{request_id}/accept", response_model=dto.MemberResponse)
async def accept_invite_endpoint(
	group_id: UUID,
	request_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> dto.MemberResponse:
	try:
		return dto.MemberResponse.model_validate(await _service.accept_invite(auth_user, group_id, request_id))
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.post(
	"/groups/{group_id}/invites/{request_id}/deny",
	status_code=204,
	response_class=Response,
	response_model=None,
)
async def deny_invite_endpoint(
	group_id: UUID,
	request_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> None:
	try:
		await _service.deny_invite(auth_user, group_id, request_id)
		return None
	except Exception as exc:
		raise to_http_error(exc) from exc


__all__ = ["router"]
