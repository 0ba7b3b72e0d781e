"""Membership routes: join, leave, removal and the member list."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response

from app.groups.api._errors import to_http_error
from app.groups.domain.coordinator import TransitionCoordinator
from app.groups.schemas import dto
from app.infra.auth import AuthenticatedUser, get_optional_user

router = APIRouter(tags=["groups:members"])
_service = TransitionCoordinator()


@router.get("/groups/{group_id}/members", response_model=dto.MemberListResponse)
async def list_members_endpoint(
	group_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> dto.MemberListResponse:
	try:
		members = await _service.list_members(auth_user, group_id)
		return dto.MemberListResponse(items=[dto.MemberResponse.model_validate(item) for item in members])
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.get("/groups/{group_id}/membership", response_model=dto.RelationResponse)
async def relation_state_endpoint(
	group_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> dto.RelationResponse:
	try:
		state = await _service.relation_state(auth_user, group_id)
		return dto.RelationResponse(group_id=group_id, state=state)
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.post("/groups/{group_id}/join", response_model=dto.JoinResponse, status_code=201)
async def join_group_endpoint(
	group_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> dto.JoinResponse:
	try:
		return dto.to_join_response(await _service.join_group(auth_user, group_id))
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.delete(
	"/groups/{group_id}/leave",
	status_code=204,
	response_class=Response,
	response_model=None,
)
async def leave_group_endpoint(
	group_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> None:
	try:
		await _service.leave_group(auth_user, group_id)
		return None
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.delete(
	"/groups/{group_id}/members/{user_id}",
	status_code=204,
	response_class=Response,
	response_model=None,
)
async def remove_member_endpoint(
	group_id: UUID,
	user_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> None:
	try:
		await _service.remove_member(auth_user, group_id, user_id)
		return None
	except Exception as exc:
		raise to_http_error(exc) from exc


__all__ = ["router"]
