"""Persistence for memberships and their role bits."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

import asyncpg

from app.groups.domain import models
from app.groups.domain.exceptions import ConflictError, NotFoundError
from app.groups.domain.transaction import TransactionContext


class MembershipStore:
	"""group_members rows; (user_id, group_id) is the primary key."""

	async def add(
		self,
		tx: TransactionContext,
		user_id: UUID,
		group_id: UUID,
		*,
		is_admin: bool = False,
		is_mod: bool = False,
	) -> models.Membership:
		if await self.get(tx, user_id, group_id) is not None:
			raise ConflictError("already_member")
		try:
			record = await tx.fetchrow(
				"""
				INSERT INTO group_members (user_id, group_id, is_admin, is_mod)
				VALUES ($1, $2, $3, $4)
				RETURNING *
				""",
				str(user_id),
				str(group_id),
				is_admin,
				is_mod,
			)
		except asyncpg.UniqueViolationError as exc:  # type: ignore[attr-defined]
			raise ConflictError("already_member") from exc
		return models.Membership.model_validate(dict(record))

	async def update_roles(
		self,
		tx: TransactionContext,
		user_id: UUID,
		group_id: UUID,
		*,
		is_admin: bool | None = None,
		is_mod: bool | None = None,
	) -> models.Membership:
		record = await tx.fetchrow(
			"""
			UPDATE group_members
			SET is_admin = COALESCE($3, is_admin),
				is_mod = COALESCE($4, is_mod)
			WHERE user_id = $1 AND group_id = $2
			RETURNING *
			""",
			str(user_id),
			str(group_id),
			is_admin,
			is_mod,
		)
		if record is None:
			raise NotFoundError("membership_not_found")
		return models.Membership.model_validate(dict(record))

	async def remove(self, tx: TransactionContext, user_id: UUID, group_id: UUID) -> None:
		result = await tx.execute(
			"DELETE FROM group_members WHERE user_id = $1 AND group_id = $2",
			str(user_id),
			str(group_id),
		)
		if result.split()[-1] == "0":
			raise NotFoundError("membership_not_found")

	async def get(self, tx: TransactionContext, user_id: UUID, group_id: UUID) -> Optional[models.Membership]:
		record = await tx.fetchrow(
			"SELECT * FROM group_members WHERE user_id = $1 AND group_id = $2",
			str(user_id),
			str(group_id),
		)
		return models.Membership.model_validate(dict(record)) if record else None

	async def list_by_group(self, tx: TransactionContext, group_id: UUID) -> list[models.Membership]:
		records = await tx.fetch(
			"""
			SELECT m.user_id, m.group_id, m.is_admin, m.is_mod, m.joined_at,
				u.username, u.profile_pic
			FROM group_members m
			LEFT JOIN users u ON u.user_id = m.user_id
			WHERE m.group_id = $1
			ORDER BY m.is_admin DESC, m.is_mod DESC, m.joined_at ASC
			""",
			str(group_id),
		)
		return [models.Membership.model_validate(dict(record)) for record in records]

	async def count_admins(self, tx: TransactionContext, group_id: UUID, *, lock: bool = False) -> int:
		"""Count admins; ``lock`` holds the admin rows until the transaction ends."""
		if lock:
			records = await tx.fetch(
				"SELECT user_id FROM group_members WHERE group_id = $1 AND is_admin FOR UPDATE",
				str(group_id),
			)
			return len(records)
		count = await tx.fetchval(
			"SELECT COUNT(*) FROM group_members WHERE group_id = $1 AND is_admin",
			str(group_id),
		)
		return int(count or 0)

	async def remove_all(self, tx: TransactionContext, group_id: UUID) -> int:
		result = await tx.execute("DELETE FROM group_members WHERE group_id = $1", str(group_id))
		return int(result.split()[-1]) if result else 0
