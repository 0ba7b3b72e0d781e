"""Transition coordinator for group membership.

Every transition runs inside one transaction. Authorization is decided on rows
read inside that transaction, invariants are re-checked right before the write
that could break them, and any notification is written with the same handle so
it commits or rolls back together with the change it describes.
"""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Optional, TypeVar
from uuid import UUID

from app.groups.domain import models, policies
from app.groups.domain.directory import UserDirectory
from app.groups.domain.exceptions import (
	AuthorizationError,
	ConflictError,
	GroupError,
	InternalError,
	NotFoundError,
)
from app.groups.domain.group_store import GroupStore
from app.groups.domain.membership_store import MembershipStore
from app.groups.domain.notifications import (
	NotificationBridge,
	PostgresNotificationBridge,
	build_notification,
)
from app.groups.domain.policies import GroupAction
from app.groups.domain.request_ledger import RequestLedger
from app.groups.domain.transaction import TransactionContext, open_transaction
from app.infra.auth import AuthenticatedUser
from app.obs import logging as obs_logging
from app.obs import metrics as obs_metrics

T = TypeVar("T")

logger = obs_logging.get_logger("groups.transitions")

_DEFAULT_PAGE_SIZE = 25


class TransitionCoordinator:
	"""Runs group transitions and read paths against the stores."""

	def __init__(
		self,
		*,
		groups: GroupStore | None = None,
		memberships: MembershipStore | None = None,
		requests: RequestLedger | None = None,
		directory: UserDirectory | None = None,
		notifier: NotificationBridge | None = None,
		transaction_factory: Callable[[], Any] | None = None,
	) -> None:
		self.groups = groups or GroupStore()
		self.memberships = memberships or MembershipStore()
		self.requests = requests or RequestLedger()
		self.directory = directory or UserDirectory()
		self.notifier = notifier or PostgresNotificationBridge()
		self._transaction = transaction_factory or open_transaction

	# ------------------------------------------------------------------
	# Helpers

	async def _transition(self, name: str, body: Callable[[TransactionContext], Awaitable[T]]) -> T:
		start = time.perf_counter()
		tokens = obs_logging.bind_context(transition=name)
		try:
			async with self._transaction() as tx:
				result = await body(tx)
		except GroupError as exc:
			obs_metrics.record_transition(name, result="rejected")
			logger.info("group_transition_rejected", extra={"reason": exc.detail})
			raise
		except Exception as exc:
			obs_metrics.record_transition(name, result="error")
			logger.exception("group_transition_failed")
			raise InternalError() from exc
		finally:
			obs_logging.reset_context(tokens)
		obs_metrics.record_transition(name, result="ok", duration_seconds=time.perf_counter() - start)
		return result

	async def _load_group(self, tx: TransactionContext, group_id: UUID, *, for_update: bool = False) -> models.Group:
		group = await self.groups.find_by_id(tx, group_id, for_update=for_update)
		if group is None:
			raise NotFoundError("group_not_found")
		return group

	async def _roles(self, tx: TransactionContext, user_id: UUID, group_id: UUID) -> policies.RoleSet:
		return policies.roles_of(await self.memberships.get(tx, user_id, group_id))

	async def _load_member(self, tx: TransactionContext, user_id: UUID, group_id: UUID) -> models.Membership:
		membership = await self.memberships.get(tx, user_id, group_id)
		if membership is None:
			raise NotFoundError("membership_not_found")
		return membership

	async def _load_request(
		self,
		tx: TransactionContext,
		request_id: UUID,
		group_id: UUID,
		*,
		invite: bool,
		for_update: bool = True,
	) -> models.Request:
		request = await self.requests.find_by_id(tx, request_id, group_id, for_update=for_update)
		if request is None or request.is_invite != invite:
			raise NotFoundError("invite_not_found" if invite else "join_request_not_found")
		return request

	async def _lock_request(
		self,
		tx: TransactionContext,
		request_id: UUID,
		group_id: UUID,
		*,
		invite: bool,
	) -> models.Request:
		"""Lock the request's (user, group) pair, then its row.

		join_group takes the pair lock before touching request rows; every
		path that locks a request row must follow the same order.
		"""
		request = await self._load_request(tx, request_id, group_id, invite=invite, for_update=False)
		await tx.lock_pair(request.user_id, group_id)
		return await self._load_request(tx, request_id, group_id, invite=invite)

	async def _profile(self, tx: TransactionContext, user_id: UUID) -> models.UserProfile:
		profile = await self.directory.get_profile(tx, user_id)
		return profile or models.UserProfile(user_id=user_id)

	async def _actor_profile(self, tx: TransactionContext, actor: AuthenticatedUser) -> models.UserProfile:
		profile = await self.directory.get_profile(tx, actor.user_id)
		if profile is not None:
			return profile
		return models.UserProfile(user_id=actor.user_id, username=actor.handle, profile_pic=actor.avatar_url)

	async def _notify(
		self,
		tx: TransactionContext,
		transition: str,
		*,
		actor: AuthenticatedUser,
		subject: models.UserProfile | UUID,
		group: models.Group,
	) -> Optional[models.Notification]:
		if not isinstance(subject, models.UserProfile):
			subject = await self._profile(tx, subject)
		if subject.user_id == actor.user_id:
			return None
		draft = build_notification(
			transition,
			actor=await self._actor_profile(tx, actor),
			subject=subject,
			group=group,
		)
		notification = await self.notifier.create(tx, **draft.model_dump())
		obs_metrics.notification_recorded(draft.type)
		return notification

	# ------------------------------------------------------------------
	# Group lifecycle

	async def create_group(
		self,
		actor: AuthenticatedUser | None,
		*,
		name: str,
		description: str,
		is_private: bool = False,
	) -> models.Group:
		actor = policies.require_actor(actor)
		name, description = policies.validate_group_details(name, description)

		async def body(tx: TransactionContext) -> models.Group:
			group = await self.groups.create(
				tx,
				name=name,
				description=description,
				is_private=is_private,
				creator_id=actor.user_id,
			)
			await self.memberships.add(tx, actor.user_id, group.group_id, is_admin=True, is_mod=True)
			return group

		return await self._transition("create_group", body)

	async def update_group(
		self,
		actor: AuthenticatedUser | None,
		group_id: UUID,
		*,
		name: str,
		description: str,
	) -> models.Group:
		actor = policies.require_actor(actor)
		name, description = policies.validate_group_details(name, description)

		async def body(tx: TransactionContext) -> models.Group:
			await self._load_group(tx, group_id, for_update=True)
			policies.authorize(GroupAction.UPDATE_GROUP, await self._roles(tx, actor.user_id, group_id))
			return await self.groups.update(tx, group_id, name=name, description=description)

		return await self._transition("update_group", body)

	async def set_privacy(self, actor: AuthenticatedUser | None, group_id: UUID, is_private: bool) -> models.Group:
		actor = policies.require_actor(actor)

		async def body(tx: TransactionContext) -> models.Group:
			await self._load_group(tx, group_id, for_update=True)
			policies.authorize(GroupAction.SET_PRIVACY, await self._roles(tx, actor.user_id, group_id))
			return await self.groups.set_privacy(tx, group_id, is_private)

		return await self._transition("set_privacy", body)

	async def delete_group(self, actor: AuthenticatedUser | None, group_id: UUID) -> None:
		actor = policies.require_actor(actor)

		async def body(tx: TransactionContext) -> None:
			await self._load_group(tx, group_id, for_update=True)
			policies.authorize(GroupAction.DELETE_GROUP, await self._roles(tx, actor.user_id, group_id))
			await self.memberships.remove_all(tx, group_id)
			await self.requests.remove_all(tx, group_id)
			await self.groups.delete(tx, group_id)

		await self._transition("delete_group", body)

	# ------------------------------------------------------------------
	# Joining and invitations

	async def join_group(
		self,
		actor: AuthenticatedUser | None,
		group_id: UUID,
	) -> models.Membership | models.Request:
		"""Join a public group directly, or file a join request for a private one."""
		actor = policies.require_actor(actor)

		async def body(tx: TransactionContext) -> models.Membership | models.Request:
			group = await self._load_group(tx, group_id)
			await tx.lock_pair(actor.user_id, group_id)
			if await self.memberships.get(tx, actor.user_id, group_id) is not None:
				raise ConflictError("already_member")
			if group.is_private:
				return await self.requests.create(tx, actor.user_id, group_id, is_invite=False)
			pending = await self.requests.find_pending(tx, actor.user_id, group_id)
			if pending is not None:
				outcome = models.RequestStatus.ACCEPTED if pending.is_invite else models.RequestStatus.APPROVED
				await self.requests.resolve(tx, pending.request_id, outcome)
			return await self.memberships.add(tx, actor.user_id, group_id)

		return await self._transition("join_group", body)

	async def invite_user(
		self,
		actor: AuthenticatedUser | None,
		group_id: UUID,
		target_id: UUID,
	) -> models.Invite:
		actor = policies.require_actor(actor)

		async def body(tx: TransactionContext) -> models.Invite:
			group = await self._load_group(tx, group_id)
			policies.authorize(GroupAction.INVITE, await self._roles(tx, actor.user_id, group_id))
			target = await self.directory.get_profile(tx, target_id)
			if target is None:
				raise NotFoundError("user_not_found")
			await tx.lock_pair(target_id, group_id)
			if await self.memberships.get(tx, target_id, group_id) is not None:
				raise ConflictError("already_member")
			invite = await self.requests.create(tx, target_id, group_id, is_invite=True)
			await self._notify(tx, "invite_user", actor=actor, subject=target, group=group)
			return invite

		return await self._transition("invite_user", body)

	async def accept_invite(
		self,
		actor: AuthenticatedUser | None,
		group_id: UUID,
		request_id: UUID,
	) -> models.Membership:
		actor = policies.require_actor(actor)

		async def body(tx: TransactionContext) -> models.Membership:
			await self._load_group(tx, group_id)
			invite = await self._lock_request(tx, request_id, group_id, invite=True)
			policies.ensure_request_owner(invite, actor.user_id)
			if not invite.is_pending:
				raise NotFoundError("request_not_pending")
			await self.requests.resolve(tx, invite.request_id, models.RequestStatus.ACCEPTED)
			return await self.memberships.add(tx, actor.user_id, group_id)

		return await self._transition("accept_invite", body)

	async def deny_invite(self, actor: AuthenticatedUser | None, group_id: UUID, request_id: UUID) -> None:
		actor = policies.require_actor(actor)

		async def body(tx: TransactionContext) -> None:
			await self._load_group(tx, group_id)
			invite = await self._lock_request(tx, request_id, group_id, invite=True)
			policies.ensure_request_owner(invite, actor.user_id)
			if not invite.is_pending:
				raise NotFoundError("request_not_pending")
			await self.requests.delete(tx, invite.request_id)

		await self._transition("deny_invite", body)

	async def cancel_join_request(self, actor: AuthenticatedUser | None, group_id: UUID, request_id: UUID) -> None:
		actor = policies.require_actor(actor)

		async def body(tx: TransactionContext) -> None:
			await self._load_group(tx, group_id)
			request = await self._lock_request(tx, request_id, group_id, invite=False)
			policies.ensure_request_owner(request, actor.user_id)
			if not request.is_pending:
				raise NotFoundError("request_not_pending")
			await self.requests.delete(tx, request.request_id)

		await self._transition("cancel_join_request", body)

	async def accept_join_request(
		self,
		actor: AuthenticatedUser | None,
		group_id: UUID,
		request_id: UUID,
	) -> models.Membership:
		actor = policies.require_actor(actor)

		async def body(tx: TransactionContext) -> models.Membership:
			group = await self._load_group(tx, group_id)
			policies.authorize(GroupAction.RESOLVE_JOIN_REQUEST, await self._roles(tx, actor.user_id, group_id))
			request = await self._lock_request(tx, request_id, group_id, invite=False)
			if not request.is_pending:
				raise NotFoundError("request_not_pending")
			await self.requests.resolve(tx, request.request_id, models.RequestStatus.APPROVED)
			membership = await self.memberships.add(tx, request.user_id, group_id)
			await self._notify(tx, "accept_join_request", actor=actor, subject=request.user_id, group=group)
			return membership

		return await self._transition("accept_join_request", body)

	async def deny_join_request(self, actor: AuthenticatedUser | None, group_id: UUID, request_id: UUID) -> None:
		actor = policies.require_actor(actor)

		async def body(tx: TransactionContext) -> None:
			group = await self._load_group(tx, group_id)
			policies.authorize(GroupAction.RESOLVE_JOIN_REQUEST, await self._roles(tx, actor.user_id, group_id))
			request = await self._lock_request(tx, request_id, group_id, invite=False)
			if not request.is_pending:
				raise NotFoundError("request_not_pending")
			await self.requests.delete(tx, request.request_id)
			await self._notify(tx, "deny_join_request", actor=actor, subject=request.user_id, group=group)

		await self._transition("deny_join_request", body)

	# ------------------------------------------------------------------
	# Leaving and removal

	async def leave_group(self, actor: AuthenticatedUser | None, group_id: UUID) -> None:
		actor = policies.require_actor(actor)

		async def body(tx: TransactionContext) -> None:
			await self._load_group(tx, group_id)
			await tx.lock_pair(actor.user_id, group_id)
			policies.authorize(GroupAction.LEAVE, await self._roles(tx, actor.user_id, group_id))
			await self.requests.delete_by_user_and_group(tx, actor.user_id, group_id)
			await self.memberships.remove(tx, actor.user_id, group_id)

		await self._transition("leave_group", body)

	async def remove_member(self, actor: AuthenticatedUser | None, group_id: UUID, target_id: UUID) -> None:
		actor = policies.require_actor(actor)
		if target_id == actor.user_id:
			raise AuthorizationError("cannot_remove_self")

		async def body(tx: TransactionContext) -> None:
			group = await self._load_group(tx, group_id)
			policies.authorize(GroupAction.REMOVE_MEMBER, await self._roles(tx, actor.user_id, group_id))
			await tx.lock_pair(target_id, group_id)
			target = await self._load_member(tx, target_id, group_id)
			if target.is_admin:
				admins = await self.memberships.count_admins(tx, group_id, lock=True)
				policies.ensure_admin_remains(admins - 1)
			await self.requests.delete_by_user_and_group(tx, target_id, group_id)
			await self.memberships.remove(tx, target_id, group_id)
			await self._notify(tx, "remove_member", actor=actor, subject=target_id, group=group)

		await self._transition("remove_member", body)

	# ------------------------------------------------------------------
	# Role changes

	async def promote_to_moderator(
		self,
		actor: AuthenticatedUser | None,
		group_id: UUID,
		target_id: UUID,
	) -> models.Membership:
		actor = policies.require_actor(actor)

		async def body(tx: TransactionContext) -> models.Membership:
			group = await self._load_group(tx, group_id)
			policies.authorize(GroupAction.PROMOTE_MODERATOR, await self._roles(tx, actor.user_id, group_id))
			target = await self._load_member(tx, target_id, group_id)
			if target.is_mod:
				raise ConflictError("already_moderator")
			membership = await self.memberships.update_roles(tx, target_id, group_id, is_mod=True)
			await self._notify(tx, "promote_to_moderator", actor=actor, subject=target_id, group=group)
			return membership

		return await self._transition("promote_to_moderator", body)

	async def demote_moderator(
		self,
		actor: AuthenticatedUser | None,
		group_id: UUID,
		target_id: UUID,
	) -> models.Membership:
		actor = policies.require_actor(actor)

		async def body(tx: TransactionContext) -> models.Membership:
			group = await self._load_group(tx, group_id)
			policies.authorize(GroupAction.DEMOTE_MODERATOR, await self._roles(tx, actor.user_id, group_id))
			target = await self._load_member(tx, target_id, group_id)
			if not target.is_mod:
				raise NotFoundError("moderator_not_found")
			membership = await self.memberships.update_roles(tx, target_id, group_id, is_mod=False)
			await self._notify(tx, "demote_moderator", actor=actor, subject=target_id, group=group)
			return membership

		return await self._transition("demote_moderator", body)

	async def grant_admin(
		self,
		actor: AuthenticatedUser | None,
		group_id: UUID,
		target_id: UUID,
	) -> models.Membership:
		actor = policies.require_actor(actor)

		async def body(tx: TransactionContext) -> models.Membership:
			group = await self._load_group(tx, group_id)
			policies.authorize(GroupAction.GRANT_ADMIN, await self._roles(tx, actor.user_id, group_id))
			target = await self._load_member(tx, target_id, group_id)
			if target.is_admin:
				raise ConflictError("already_admin")
			membership = await self.memberships.update_roles(tx, target_id, group_id, is_admin=True)
			await self._notify(tx, "grant_admin", actor=actor, subject=target_id, group=group)
			return membership

		return await self._transition("grant_admin", body)

	async def revoke_admin(
		self,
		actor: AuthenticatedUser | None,
		group_id: UUID,
		target_id: UUID,
	) -> models.Membership:
		actor = policies.require_actor(actor)

		async def body(tx: TransactionContext) -> models.Membership:
			group = await self._load_group(tx, group_id)
			policies.authorize(GroupAction.REVOKE_ADMIN, await self._roles(tx, actor.user_id, group_id))
			target = await self._load_member(tx, target_id, group_id)
			if not target.is_admin:
				raise NotFoundError("admin_not_found")
			admins = await self.memberships.count_admins(tx, group_id, lock=True)
			policies.ensure_admin_remains(admins - 1)
			membership = await self.memberships.update_roles(tx, target_id, group_id, is_admin=False)
			await self._notify(tx, "revoke_admin", actor=actor, subject=target_id, group=group)
			return membership

		return await self._transition("revoke_admin", body)

	# ------------------------------------------------------------------
	# Read paths

	async def check_group_access(self, actor_id: UUID | None, group_id: UUID) -> models.Group:
		"""Return the group when ``actor_id`` may read it; used by content services too."""

		async def body(tx: TransactionContext) -> models.Group:
			group = await self._load_group(tx, group_id)
			membership = await self.memberships.get(tx, actor_id, group_id) if actor_id else None
			return policies.ensure_visible(actor_id, group, membership)

		return await self._transition("check_group_access", body)

	async def get_group(self, actor: AuthenticatedUser | None, group_id: UUID) -> models.Group:
		return await self.check_group_access(actor.user_id if actor else None, group_id)

	async def list_groups(
		self,
		actor: AuthenticatedUser | None,
		*,
		search: str | None = None,
		limit: int = _DEFAULT_PAGE_SIZE,
		offset: int = 0,
	) -> list[models.Group]:
		policies.ensure_page(limit, offset)
		search = (search or "").strip() or None

		async def body(tx: TransactionContext) -> list[models.Group]:
			return await self.groups.list(tx, search=search, limit=limit, offset=offset)

		return await self._transition("list_groups", body)

	async def list_members(self, actor: AuthenticatedUser | None, group_id: UUID) -> list[models.Membership]:
		actor_id = actor.user_id if actor else None

		async def body(tx: TransactionContext) -> list[models.Membership]:
			group = await self._load_group(tx, group_id)
			membership = await self.memberships.get(tx, actor_id, group_id) if actor_id else None
			policies.ensure_visible(actor_id, group, membership)
			return await self.memberships.list_by_group(tx, group_id)

		return await self._transition("list_members", body)

	async def list_pending_requests(
		self,
		actor: AuthenticatedUser | None,
		group_id: UUID,
		*,
		invites: bool = False,
	) -> list[models.Request]:
		actor = policies.require_actor(actor)

		async def body(tx: TransactionContext) -> list[models.Request]:
			await self._load_group(tx, group_id)
			policies.authorize(GroupAction.LIST_REQUESTS, await self._roles(tx, actor.user_id, group_id))
			return await self.requests.list_pending(tx, group_id, is_invite=invites)

		return await self._transition("list_pending_requests", body)

	async def relation_state(self, actor: AuthenticatedUser | None, group_id: UUID) -> models.RelationState:
		actor = policies.require_actor(actor)

		async def body(tx: TransactionContext) -> models.RelationState:
			await self._load_group(tx, group_id)
			membership = await self.memberships.get(tx, actor.user_id, group_id)
			if membership is not None:
				if membership.is_admin:
					return models.RelationState.ADMIN
				if membership.is_mod:
					return models.RelationState.MODERATOR
				return models.RelationState.MEMBER
			pending = await self.requests.find_pending(tx, actor.user_id, group_id)
			if pending is None:
				return models.RelationState.NONE
			return models.RelationState.INVITE_PENDING if pending.is_invite else models.RelationState.JOIN_PENDING

		return await self._transition("relation_state", body)
