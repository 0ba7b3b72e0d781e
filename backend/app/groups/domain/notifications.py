"""Notifications recorded alongside group transitions.

A notification is written with the transaction handle of the transition that
caused it, so it is never kept for a change that rolls back. The sender is
always the user who acted and the receiver is always the user affected.
"""

from __future__ import annotations

from typing import Optional, Protocol
from uuid import UUID, uuid4

from pydantic import BaseModel

from app.groups.domain import models
from app.groups.domain.transaction import TransactionContext

TYPE_INVITE = "group_invite"
TYPE_CHANGE = "group_change"
REFERENCE_GROUP = "group"

# transition -> (type, message). {sender}/{receiver} are display names.
_TEMPLATES: dict[str, tuple[str, str]] = {
	"invite_user": (TYPE_INVITE, "{receiver}, you have been invited to join {group}."),
	"accept_join_request": (TYPE_INVITE, "{receiver}, your request to join {group} has been accepted!"),
	"deny_join_request": (TYPE_INVITE, "{receiver}, your request to join {group} has been denied."),
	"remove_member": (TYPE_CHANGE, "{sender} removed you from {group}."),
	"promote_to_moderator": (TYPE_CHANGE, "{receiver}, you have been promoted to a moderator in {group}!"),
	"demote_moderator": (
		TYPE_CHANGE,
		"{sender} has demoted you from a moderator to a regular member in {group}.",
	),
	"grant_admin": (TYPE_CHANGE, "{receiver}, you have been promoted to an admin in {group}."),
	"revoke_admin": (TYPE_CHANGE, "{receiver}, you have been removed as an admin in {group}."),
}

NOTIFYING_TRANSITIONS = frozenset(_TEMPLATES)


class NotificationDraft(BaseModel):
	sender_id: UUID
	sender_display: Optional[str] = None
	sender_avatar: Optional[str] = None
	receiver_id: UUID
	receiver_display: Optional[str] = None
	receiver_avatar: Optional[str] = None
	type: str
	message: str
	reference_type: str = REFERENCE_GROUP
	reference_id: UUID


class NotificationBridge(Protocol):
	async def create(
		self,
		tx: TransactionContext,
		*,
		sender_id: UUID,
		sender_display: Optional[str],
		sender_avatar: Optional[str],
		receiver_id: UUID,
		receiver_display: Optional[str],
		receiver_avatar: Optional[str],
		type: str,
		message: str,
		reference_type: str,
		reference_id: UUID,
	) -> models.Notification:
		...


def _display(profile: models.UserProfile) -> str:
	return profile.username or str(profile.user_id)


def build_notification(
	transition: str,
	*,
	actor: models.UserProfile,
	subject: models.UserProfile,
	group: models.Group,
) -> NotificationDraft:
	"""Build the payload for ``transition`` addressed to ``subject``."""
	try:
		type_, template = _TEMPLATES[transition]
	except KeyError as exc:
		raise ValueError(f"{transition} does not notify") from exc
	message = template.format(sender=_display(actor), receiver=_display(subject), group=group.name)
	return NotificationDraft(
		sender_id=actor.user_id,
		sender_display=actor.username,
		sender_avatar=actor.profile_pic,
		receiver_id=subject.user_id,
		receiver_display=subject.username,
		receiver_avatar=subject.profile_pic,
		type=type_,
		message=message,
		reference_id=group.group_id,
	)


class PostgresNotificationBridge:
	"""Writes notifications into the shared notifications table."""

	async def create(
		self,
		tx: TransactionContext,
		*,
		sender_id: UUID,
		sender_display: Optional[str],
		sender_avatar: Optional[str],
		receiver_id: UUID,
		receiver_display: Optional[str],
		receiver_avatar: Optional[str],
		type: str,
		message: str,
		reference_type: str,
		reference_id: UUID,
	) -> models.Notification:
		record = await tx.fetchrow(
			"""
			INSERT INTO notifications (
				notification_id, sender_id, sender_username, sender_profile_pic,
				receiver_id, receiver_username, receiver_profile_pic,
				type, message, reference_type, reference_id
			)
			VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
			RETURNING *
			""",
			str(uuid4()),
			str(sender_id),
			sender_display,
			sender_avatar,
			str(receiver_id),
			receiver_display,
			receiver_avatar,
			type,
			message,
			reference_type,
			str(reference_id),
		)
		return models.Notification.model_validate(dict(record))
