"""Domain models for groups, memberships and membership requests."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class Group(BaseModel):
	"""Represents a group."""

	group_id: UUID
	creator_id: UUID
	name: str
	description: str
	is_private: bool
	created_at: datetime
	updated_at: datetime

	model_config = ConfigDict(from_attributes=True)


class Membership(BaseModel):
	"""Represents a membership row with its two independent role bits."""

	user_id: UUID
	group_id: UUID
	is_admin: bool = False
	is_mod: bool = False
	joined_at: datetime
	username: Optional[str] = None
	profile_pic: Optional[str] = None

	model_config = ConfigDict(from_attributes=True)


class RequestStatus(str, enum.Enum):
	PENDING = "pending"
	ACCEPTED = "accepted"
	APPROVED = "approved"
	DENIED = "denied"


class RequestBase(BaseModel):
	request_id: UUID
	user_id: UUID
	group_id: UUID
	status: RequestStatus
	requested_at: datetime
	updated_at: datetime

	model_config = ConfigDict(from_attributes=True)

	@property
	def is_pending(self) -> bool:
		return self.status is RequestStatus.PENDING


class JoinRequest(RequestBase):
	"""The user asked to join the group."""

	kind: Literal["join"] = "join"

	@property
	def is_invite(self) -> bool:
		return False


class Invite(RequestBase):
	"""A member invited the user to join the group."""

	kind: Literal["invite"] = "invite"

	@property
	def is_invite(self) -> bool:
		return True


Request = Union[JoinRequest, Invite]


def request_from_record(record) -> Request:
	"""Build the matching request variant from a group_requests row."""
	data = dict(record)
	is_invite = bool(data.pop("is_invite", False))
	data["status"] = RequestStatus(data["status"])
	if is_invite:
		return Invite.model_validate(data)
	return JoinRequest.model_validate(data)


class UserProfile(BaseModel):
	"""Read-only view of a user owned by the profile service."""

	user_id: UUID
	username: Optional[str] = None
	profile_pic: Optional[str] = None

	model_config = ConfigDict(from_attributes=True)


class Notification(BaseModel):
	"""A notification row created alongside a transition."""

	notification_id: UUID
	sender_id: UUID
	sender_username: Optional[str] = None
	sender_profile_pic: Optional[str] = None
	receiver_id: UUID
	receiver_username: Optional[str] = None
	receiver_profile_pic: Optional[str] = None
	type: str
	message: str
	reference_type: str
	reference_id: UUID
	is_read: bool = False
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)


class RelationState(str, enum.Enum):
	"""State of a (user, group) relation."""

	NONE = "none"
	JOIN_PENDING = "join_pending"
	INVITE_PENDING = "invite_pending"
	MEMBER = "member"
	MODERATOR = "moderator"
	ADMIN = "admin"
