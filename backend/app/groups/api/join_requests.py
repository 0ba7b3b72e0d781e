"""Join request routes for moderators and requesters."""

from __future__ import annotations

from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from app.groups.api._errors import to_http_error
from app.groups.domain.coordinator import TransitionCoordinator
from app.groups.schemas import dto
from app.infra.auth import AuthenticatedUser, get_optional_user

router = APIRouter(tags=["groups:join-requests"])
_service = TransitionCoordinator()


@router.get("/groups/{group_id}/join-requests", response_model=dto.RequestListResponse)
async def list_requests_endpoint(
	group_id: UUID,
	kind: Literal["join", "invite"] = Query(default="join"),
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> dto.RequestListResponse:
	try:
		items = await _service.list_pending_requests(auth_user, group_id, invites=kind == "invite")
		return dto.RequestListResponse(items=[dto.RequestResponse.model_validate(item) for item in items])
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.post("/groups/{group_id}/join-requests/{request_id}/accept", response_model=dto.MemberResponse)
async def accept_join_request_endpoint(
	group_id: UUID,
	request_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> dto.MemberResponse:
	try:
		membership = await _service.accept_join_request(auth_user, group_id, request_id)
		return dto.MemberResponse.model_validate(membership)
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.post(
	"/groups/{group_id}/join-requests/{request_id}/deny",
	status_code=204,
	response_class=Response,
	response_model=None,
)
async def deny_join_request_endpoint(
	group_id: UUID,
	request_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> None:
	try:
		await _service.deny_join_request(auth_user, group_id, request_id)
		return None
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.delete(
	"/groups/{group_id}/join-requests/{request_id}",
	status_code=204,
	response_class=Response,
	response_model=None,
)
async def cancel_join_request_endpoint(
	group_id: UUID,
	request_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> None:
	try:
		await _service.cancel_join_request(auth_user, group_id, request_id)
		return None
	except Exception as exc:
		raise to_http_error(exc) from exc


__all__ = ["router"]
