"""Pydantic schemas for the groups API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.groups.domain import models


class GroupCreateRequest(BaseModel):
	name: str = Field(..., max_length=200)
	description: str = Field(..., max_length=8000)
	is_private: bool = False


class GroupUpdateRequest(BaseModel):
	name: str = Field(..., max_length=200)
	description: str = Field(..., max_length=8000)


class GroupPrivacyRequest(BaseModel):
	is_private: bool


class GroupResponse(BaseModel):
	group_id: UUID
	creator_id: UUID
	name: str
	description: str
	is_private: bool
	created_at: datetime
	updated_at: datetime

	model_config = ConfigDict(from_attributes=True)


class GroupSummary(BaseModel):
	group_id: UUID
	name: str
	is_private: bool
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)


class GroupListResponse(BaseModel):
	items: List[GroupSummary]
	limit: int
	offset: int


class MemberResponse(BaseModel):
	user_id: UUID
	group_id: UUID
	is_admin: bool
	is_mod: bool
	joined_at: datetime
	username: Optional[str] = None
	profile_pic: Optional[str] = None

	model_config = ConfigDict(from_attributes=True)


class MemberListResponse(BaseModel):
	items: List[MemberResponse]


class RequestResponse(BaseModel):
	request_id: UUID
	user_id: UUID
	group_id: UUID
	kind: Literal["join", "invite"]
	status: models.RequestStatus
	requested_at: datetime
	updated_at: datetime

	model_config = ConfigDict(from_attributes=True)


class RequestListResponse(BaseModel):
	items: List[RequestResponse]


class JoinResponse(BaseModel):
	"""Either a membership (public group) or a pending join request (private group)."""

	status: Literal["member", "pending"]
	membership: Optional[MemberResponse] = None
	request: Optional[RequestResponse] = None


class RelationResponse(BaseModel):
	group_id: UUID
	state: models.RelationState


def to_join_response(result: Union[models.Membership, models.Request]) -> JoinResponse:
	if isinstance(result, models.Membership):
		return JoinResponse(status="member", membership=MemberResponse.model_validate(result))
	return JoinResponse(status="pending", request=RequestResponse.model_validate(result))
