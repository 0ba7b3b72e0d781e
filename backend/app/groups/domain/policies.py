"""Authorization and visibility policies for group operations.

Everything here is pure: callers load memberships and requests first and pass
them in, so the same rules are applied inside and outside a transaction.
"""

from __future__ import annotations

import enum
from typing import Callable, Optional
from uuid import UUID

from app.groups.domain import models
from app.groups.domain.exceptions import (
	AuthorizationError,
	ConflictError,
	UnauthenticatedError,
	ValidationError,
)
from app.infra.auth import AuthenticatedUser
from app.settings import settings


class Capability(enum.Flag):
	"""Role bits a member may hold, independently of each other."""

	NONE = 0
	ADMIN = enum.auto()
	MODERATOR = enum.auto()


# None means "not a member"; Capability.NONE is a plain member.
RoleSet = Optional[Capability]


class GroupAction(str, enum.Enum):
	CREATE_GROUP = "create_group"
	UPDATE_GROUP = "update_group"
	SET_PRIVACY = "set_privacy"
	DELETE_GROUP = "delete_group"
	INVITE = "invite"
	RESOLVE_JOIN_REQUEST = "resolve_join_request"
	LIST_REQUESTS = "list_requests"
	REMOVE_MEMBER = "remove_member"
	PROMOTE_MODERATOR = "promote_moderator"
	DEMOTE_MODERATOR = "demote_moderator"
	GRANT_ADMIN = "grant_admin"
	REVOKE_ADMIN = "revoke_admin"
	LEAVE = "leave"


def roles_of(membership: models.Membership | None) -> RoleSet:
	if membership is None:
		return None
	roles = Capability.NONE
	if membership.is_admin:
		roles |= Capability.ADMIN
	if membership.is_mod:
		roles |= Capability.MODERATOR
	return roles


def _any_actor(roles: RoleSet) -> bool:
	return True


def _member(roles: RoleSet) -> bool:
	return roles is not None


def _admin_or_mod(roles: RoleSet) -> bool:
	return roles is not None and bool(roles & (Capability.ADMIN | Capability.MODERATOR))


def _admin(roles: RoleSet) -> bool:
	return roles is not None and Capability.ADMIN in roles


def _member_not_admin(roles: RoleSet) -> bool:
	return roles is not None and Capability.ADMIN not in roles


_RULES: dict[GroupAction, tuple[Callable[[RoleSet], bool], str]] = {
	GroupAction.CREATE_GROUP: (_any_actor, "forbidden"),
	GroupAction.UPDATE_GROUP: (_admin_or_mod, "moderator_role_required"),
	GroupAction.SET_PRIVACY: (_admin_or_mod, "moderator_role_required"),
	GroupAction.DELETE_GROUP: (_admin, "admin_role_required"),
	GroupAction.INVITE: (_member, "membership_required"),
	GroupAction.RESOLVE_JOIN_REQUEST: (_admin_or_mod, "moderator_role_required"),
	GroupAction.LIST_REQUESTS: (_admin_or_mod, "moderator_role_required"),
	GroupAction.REMOVE_MEMBER: (_admin_or_mod, "moderator_role_required"),
	GroupAction.PROMOTE_MODERATOR: (_admin, "admin_role_required"),
	GroupAction.DEMOTE_MODERATOR: (_admin, "admin_role_required"),
	GroupAction.GRANT_ADMIN: (_admin, "admin_role_required"),
	GroupAction.REVOKE_ADMIN: (_admin, "admin_role_required"),
	GroupAction.LEAVE: (_member_not_admin, "admin_cannot_leave"),
}


def is_allowed(action: GroupAction, roles: RoleSet) -> bool:
	rule, _ = _RULES[action]
	return rule(roles)


def authorize(action: GroupAction, roles: RoleSet) -> None:
	"""Raise AuthorizationError when ``roles`` may not perform ``action``."""
	rule, detail = _RULES[action]
	if rule(roles):
		return
	if roles is None and action is not GroupAction.CREATE_GROUP:
		# A non-member is reported as such regardless of the role the action needs.
		raise AuthorizationError("membership_required")
	raise AuthorizationError(detail)


def ensure_admin_remains(admin_count_after: int) -> None:
	if admin_count_after < 1:
		raise ConflictError("last_admin")


def require_actor(actor: AuthenticatedUser | None) -> AuthenticatedUser:
	if actor is None:
		raise UnauthenticatedError()
	return actor


def ensure_request_owner(request: models.Request, actor_id: UUID) -> None:
	"""Only the invited user answers an invite; only the requester cancels a join request."""
	if request.user_id != actor_id:
		raise AuthorizationError("not_request_owner")


def validate_group_details(name: str | None, description: str | None) -> tuple[str, str]:
	"""Normalise and bound a group's name and description."""
	name = (name or "").strip()
	description = (description or "").strip()
	if len(name) < settings.group_name_min_length:
		raise ValidationError("name_too_short")
	if len(name) > settings.group_name_max_length:
		raise ValidationError("name_too_long")
	if len(description) < settings.group_description_min_length:
		raise ValidationError("description_too_short")
	if len(description) > settings.group_description_max_length:
		raise ValidationError("description_too_long")
	return name, description


def ensure_page(limit: int, offset: int) -> None:
	if limit < 1 or limit > settings.group_list_max_limit:
		raise ValidationError("limit_out_of_range")
	if offset < 0:
		raise ValidationError("offset_out_of_range")


def visible(actor_id: UUID | None, group: models.Group, membership: models.Membership | None) -> bool:
	"""Public groups are visible to anyone; private groups only to their members."""
	if not group.is_private:
		return True
	if actor_id is None or membership is None:
		return False
	return membership.user_id == actor_id and membership.group_id == group.group_id


def ensure_visible(actor_id: UUID | None, group: models.Group, membership: models.Membership | None) -> models.Group:
	if visible(actor_id, group, membership):
		return group
	if actor_id is None:
		raise UnauthenticatedError()
	raise AuthorizationError("membership_required")
