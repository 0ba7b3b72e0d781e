from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import asyncpg
import pytest

from app.groups.domain import models
from app.groups.domain.exceptions import ConflictError, NotFoundError
from app.groups.domain.group_store import GroupStore
from app.groups.domain.membership_store import MembershipStore
from app.groups.domain.notifications import PostgresNotificationBridge, build_notification
from app.groups.domain.request_ledger import RequestLedger
from app.groups.domain.transaction import TransactionContext, open_transaction


def _tx() -> tuple[TransactionContext, AsyncMock]:
	conn = AsyncMock()
	return TransactionContext(conn), conn


def _group_row(**overrides) -> dict:
	now = datetime.now(timezone.utc)
	row = {
		"group_id": uuid4(),
		"creator_id": uuid4(),
		"name": "Trail Runners",
		"description": "Weekend runs around the lake.",
		"is_private": False,
		"created_at": now,
		"updated_at": now,
	}
	row.update(overrides)
	return row


def _member_row(**overrides) -> dict:
	row = {
		"user_id": uuid4(),
		"group_id": uuid4(),
		"is_admin": False,
		"is_mod": False,
		"joined_at": datetime.now(timezone.utc),
	}
	row.update(overrides)
	return row


def _request_row(**overrides) -> dict:
	now = datetime.now(timezone.utc)
	row = {
		"request_id": uuid4(),
		"user_id": uuid4(),
		"group_id": uuid4(),
		"is_invite": False,
		"status": "pending",
		"requested_at": now,
		"updated_at": now,
	}
	row.update(overrides)
	return row


# --- GroupStore ------------------------------------------------------------


@pytest.mark.asyncio
async def test_group_create_checks_name_then_inserts():
	tx, conn = _tx()
	row = _group_row()
	conn.fetchrow.side_effect = [None, row]

	group = await GroupStore().create(
		tx,
		name="Trail Runners",
		description="Weekend runs around the lake.",
		is_private=False,
		creator_id=row["creator_id"],
	)

	assert group.group_id == row["group_id"]
	lookup, insert = conn.fetchrow.call_args_list
	assert "LOWER(name) = LOWER($1)" in lookup.args[0]
	assert "INSERT INTO groups" in insert.args[0]


@pytest.mark.asyncio
async def test_group_create_rejects_existing_name_without_insert():
	tx, conn = _tx()
	conn.fetchrow.return_value = _group_row(name="trail runners")
	with pytest.raises(ConflictError) as exc_info:
		await GroupStore().create(tx, name="Trail Runners", description="x" * 20, is_private=False, creator_id=uuid4())
	assert exc_info.value.detail == "group_name_taken"
	assert conn.fetchrow.await_count == 1


@pytest.mark.asyncio
async def test_group_create_maps_unique_violation():
	tx, conn = _tx()
	conn.fetchrow.side_effect = [None, asyncpg.UniqueViolationError("duplicate key")]
	with pytest.raises(ConflictError):
		await GroupStore().create(tx, name="Trail Runners", description="x" * 20, is_private=False, creator_id=uuid4())


@pytest.mark.asyncio
async def test_group_update_excludes_own_id_from_name_check():
	tx, conn = _tx()
	row = _group_row(name="TRAIL runners")
	conn.fetchval.return_value = None
	conn.fetchrow.return_value = row

	group = await GroupStore().update(tx, row["group_id"], name="TRAIL runners", description=row["description"])

	assert group.name == "TRAIL runners"
	query, _, excluded = conn.fetchval.call_args.args
	assert "group_id <> $2" in query
	assert excluded == str(row["group_id"])


@pytest.mark.asyncio
async def test_group_update_conflict_and_missing():
	tx, conn = _tx()
	conn.fetchval.return_value = 1
	with pytest.raises(ConflictError):
		await GroupStore().update(tx, uuid4(), name="Book Club", description="x" * 20)

	conn.fetchval.return_value = None
	conn.fetchrow.return_value = None
	with pytest.raises(NotFoundError):
		await GroupStore().update(tx, uuid4(), name="Book Club", description="x" * 20)


@pytest.mark.asyncio
async def test_group_delete_missing():
	tx, conn = _tx()
	conn.execute.return_value = "DELETE 0"
	with pytest.raises(NotFoundError):
		await GroupStore().delete(tx, uuid4())


@pytest.mark.asyncio
async def test_group_list_uses_search_pattern():
	tx, conn = _tx()
	conn.fetch.return_value = [_group_row()]
	groups = await GroupStore().list(tx, search="run", limit=10, offset=20)
	assert len(groups) == 1
	query, pattern, limit, offset = conn.fetch.call_args.args
	assert "ILIKE" in query
	assert (pattern, limit, offset) == ("%run%", 10, 20)


@pytest.mark.asyncio
async def test_group_list_matches_wildcards_literally():
	tx, conn = _tx()
	conn.fetch.return_value = []
	await GroupStore().list(tx, search="100%_club\\", limit=10, offset=0)
	query, pattern, _, _ = conn.fetch.call_args.args
	assert "ESCAPE" in query
	assert pattern == "%100\\%\\_club\\\\%"


@pytest.mark.asyncio
async def test_group_find_by_id_for_update():
	tx, conn = _tx()
	conn.fetchrow.return_value = None
	assert await GroupStore().find_by_id(tx, uuid4(), for_update=True) is None
	assert conn.fetchrow.call_args.args[0].endswith("FOR UPDATE")


# --- MembershipStore -------------------------------------------------------


@pytest.mark.asyncio
async def test_membership_add_duplicate_is_conflict():
	tx, conn = _tx()
	conn.fetchrow.return_value = _member_row()
	with pytest.raises(ConflictError) as exc_info:
		await MembershipStore().add(tx, uuid4(), uuid4())
	assert exc_info.value.detail == "already_member"


@pytest.mark.asyncio
async def test_membership_add_maps_primary_key_violation():
	tx, conn = _tx()
	conn.fetchrow.side_effect = [None, asyncpg.UniqueViolationError("duplicate key")]
	with pytest.raises(ConflictError):
		await MembershipStore().add(tx, uuid4(), uuid4())


@pytest.mark.asyncio
async def test_membership_add_inserts_role_bits():
	tx, conn = _tx()
	row = _member_row(is_admin=True, is_mod=True)
	conn.fetchrow.side_effect = [None, row]
	membership = await MembershipStore().add(tx, row["user_id"], row["group_id"], is_admin=True, is_mod=True)
	assert membership.is_admin and membership.is_mod
	insert = conn.fetchrow.call_args_list[1]
	assert insert.args[3:] == (True, True)


@pytest.mark.asyncio
async def test_membership_update_roles_leaves_unset_bits():
	tx, conn = _tx()
	conn.fetchrow.return_value = _member_row(is_mod=True)
	await MembershipStore().update_roles(tx, uuid4(), uuid4(), is_mod=True)
	query, _, _, is_admin, is_mod = conn.fetchrow.call_args.args
	assert "COALESCE($3, is_admin)" in query
	assert (is_admin, is_mod) == (None, True)


@pytest.mark.asyncio
async def test_membership_remove_missing():
	tx, conn = _tx()
	conn.execute.return_value = "DELETE 0"
	with pytest.raises(NotFoundError) as exc_info:
		await MembershipStore().remove(tx, uuid4(), uuid4())
	assert exc_info.value.detail == "membership_not_found"


@pytest.mark.asyncio
async def test_membership_list_order():
	tx, conn = _tx()
	conn.fetch.return_value = [_member_row(username="alice")]
	members = await MembershipStore().list_by_group(tx, uuid4())
	assert members[0].username == "alice"
	assert "ORDER BY m.is_admin DESC, m.is_mod DESC, m.joined_at ASC" in conn.fetch.call_args.args[0]


@pytest.mark.asyncio
async def test_count_admins_locking_and_plain():
	tx, conn = _tx()
	conn.fetch.return_value = [{"user_id": uuid4()}, {"user_id": uuid4()}]
	assert await MembershipStore().count_admins(tx, uuid4(), lock=True) == 2
	assert "FOR UPDATE" in conn.fetch.call_args.args[0]

	conn.fetchval.return_value = 3
	assert await MembershipStore().count_admins(tx, uuid4()) == 3


@pytest.mark.asyncio
async def test_membership_remove_all_counts_rows():
	tx, conn = _tx()
	conn.execute.return_value = "DELETE 4"
	assert await MembershipStore().remove_all(tx, uuid4()) == 4


# --- RequestLedger ---------------------------------------------------------


@pytest.mark.asyncio
async def test_request_create_blocked_by_pending_in_either_direction():
	tx, conn = _tx()
	conn.fetchrow.return_value = _request_row(is_invite=True)
	with pytest.raises(ConflictError) as exc_info:
		await RequestLedger().create(tx, uuid4(), uuid4(), is_invite=False)
	assert exc_info.value.detail == "request_pending"
	assert "is_invite" not in conn.fetchrow.call_args.args[0]


@pytest.mark.asyncio
async def test_request_create_maps_partial_unique_index():
	tx, conn = _tx()
	conn.fetchrow.side_effect = [None, asyncpg.UniqueViolationError("duplicate key")]
	with pytest.raises(ConflictError):
		await RequestLedger().create(tx, uuid4(), uuid4(), is_invite=True)


@pytest.mark.asyncio
async def test_request_rows_become_variants():
	tx, conn = _tx()
	invite_row = _request_row(is_invite=True)
	conn.fetchrow.side_effect = [None, invite_row]
	invite = await RequestLedger().create(tx, invite_row["user_id"], invite_row["group_id"], is_invite=True)
	assert isinstance(invite, models.Invite)
	assert invite.kind == "invite" and invite.is_pending

	join = models.request_from_record(_request_row(status="approved"))
	assert isinstance(join, models.JoinRequest)
	assert join.status is models.RequestStatus.APPROVED
	assert not join.is_pending


@pytest.mark.asyncio
async def test_request_resolve_requires_pending():
	tx, conn = _tx()
	conn.fetchrow.return_value = None
	with pytest.raises(NotFoundError):
		await RequestLedger().resolve(tx, uuid4(), models.RequestStatus.ACCEPTED)
	assert "status = 'pending'" in conn.fetchrow.call_args.args[0]


@pytest.mark.asyncio
async def test_request_resolve_rejects_pending_outcome():
	tx, _ = _tx()
	with pytest.raises(ValueError):
		await RequestLedger().resolve(tx, uuid4(), models.RequestStatus.PENDING)


@pytest.mark.asyncio
async def test_request_list_pending_filters_direction():
	tx, conn = _tx()
	conn.fetch.return_value = [_request_row()]
	items = await RequestLedger().list_pending(tx, uuid4())
	assert isinstance(items[0], models.JoinRequest)
	assert conn.fetch.call_args.args[2] is False


@pytest.mark.asyncio
async def test_request_delete_missing():
	tx, conn = _tx()
	conn.execute.return_value = "DELETE 0"
	with pytest.raises(NotFoundError):
		await RequestLedger().delete(tx, uuid4())


# --- Notifications and transactions ---------------------------------------


@pytest.mark.asyncio
async def test_postgres_notification_bridge_writes_with_given_transaction():
	tx, conn = _tx()
	group = models.Group.model_validate(_group_row())
	actor = models.UserProfile(user_id=uuid4(), username="alice", profile_pic="a.png")
	subject = models.UserProfile(user_id=uuid4(), username="bob")
	draft = build_notification("remove_member", actor=actor, subject=subject, group=group)
	conn.fetchrow.return_value = {
		"notification_id": uuid4(),
		"sender_id": actor.user_id,
		"sender_username": "alice",
		"sender_profile_pic": "a.png",
		"receiver_id": subject.user_id,
		"receiver_username": "bob",
		"receiver_profile_pic": None,
		"type": draft.type,
		"message": draft.message,
		"reference_type": "group",
		"reference_id": group.group_id,
		"is_read": False,
		"created_at": datetime.now(timezone.utc),
	}

	notification = await PostgresNotificationBridge().create(tx, **draft.model_dump())

	assert notification.message == "alice removed you from Trail Runners."
	args = conn.fetchrow.call_args.args
	assert "INSERT INTO notifications" in args[0]
	assert args[2] == str(actor.user_id)
	assert args[5] == str(subject.user_id)


def test_build_notification_falls_back_to_user_id():
	group = models.Group.model_validate(_group_row())
	actor = models.UserProfile(user_id=uuid4(), username="alice")
	subject = models.UserProfile(user_id=uuid4())
	draft = build_notification("grant_admin", actor=actor, subject=subject, group=group)
	assert draft.message == f"{subject.user_id}, you have been promoted to an admin in Trail Runners."


def test_build_notification_rejects_silent_transitions():
	group = models.Group.model_validate(_group_row())
	profile = models.UserProfile(user_id=uuid4())
	with pytest.raises(ValueError):
		build_notification("leave_group", actor=profile, subject=profile, group=group)


@pytest.mark.asyncio
async def test_lock_pair_uses_transaction_scoped_advisory_lock():
	tx, conn = _tx()
	await tx.lock_pair(uuid4(), uuid4())
	query, first, second = conn.execute.call_args.args
	assert query == "SELECT pg_advisory_xact_lock($1, $2)"
	assert -(2**31) <= first < 2**31
	assert -(2**31) <= second < 2**31


@pytest.mark.asyncio
async def test_open_transaction_wraps_pooled_connection():
	mock_pool = MagicMock()
	mock_conn = MagicMock()
	mock_pool.acquire.return_value.__aenter__.return_value = mock_conn
	mock_conn.transaction.return_value.__aenter__.return_value = None
	with patch("app.groups.domain.transaction.get_pool", AsyncMock(return_value=mock_pool)):
		async with open_transaction() as tx:
			assert tx.conn is mock_conn
	mock_conn.transaction.assert_called_once()
