"""Group lifecycle routes."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from app.groups.api._errors import to_http_error
from app.groups.domain.coordinator import TransitionCoordinator
from app.groups.schemas import dto
from app.infra.auth import AuthenticatedUser, get_optional_user

router = APIRouter(tags=["groups"])
_service = TransitionCoordinator()


@router.post("/groups", response_model=dto.GroupResponse, status_code=201)
async def create_group_endpoint(
	payload: dto.GroupCreateRequest,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> dto.GroupResponse:
	try:
		group = await _service.create_group(
			auth_user,
			name=payload.name,
			description=payload.description,
			is_private=payload.is_private,
		)
		return dto.GroupResponse.model_validate(group)
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.get("/groups", response_model=dto.GroupListResponse)
async def list_groups_endpoint(
	search: Optional[str] = Query(default=None, max_length=200),
	limit: int = Query(default=25),
	offset: int = Query(default=0),
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> dto.GroupListResponse:
	try:
		groups = await _service.list_groups(auth_user, search=search, limit=limit, offset=offset)
		return dto.GroupListResponse(
			items=[dto.GroupSummary.model_validate(group) for group in groups],
			limit=limit,
			offset=offset,
		)
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.get("/groups/{group_id}", response_model=dto.GroupResponse)
async def get_group_endpoint(
	group_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> dto.GroupResponse:
	try:
		return dto.GroupResponse.model_validate(await _service.get_group(auth_user, group_id))
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.put("/groups/{group_id}", response_model=dto.GroupResponse)
async def update_group_endpoint(
	group_id: UUID,
	payload: dto.GroupUpdateRequest,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> dto.GroupResponse:
	try:
		group = await _service.update_group(
			auth_user,
			group_id,
			name=payload.name,
			description=payload.description,
		)
		return dto.GroupResponse.model_validate(group)
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.put("/groups/{group_id}/privacy", response_model=dto.GroupResponse)
async def set_privacy_endpoint(
	group_id: UUID,
	payload: dto.GroupPrivacyRequest,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> dto.GroupResponse:
	try:
		return dto.GroupResponse.model_validate(await _service.set_privacy(auth_user, group_id, payload.is_private))
	except Exception as exc:
		raise to_http_error(exc) from exc


@router.delete(
	"/groups/{group_id}",
	status_code=204,
	response_class=Response,
	response_model=None,
)
async def delete_group_endpoint(
	group_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> None:
	try:
		await _service.delete_group(auth_user, group_id)
		return None
	except Exception as exc:
		raise to_http_error(exc) from exc


__all__ = ["router"]
