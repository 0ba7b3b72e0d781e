"""Persistence for join requests and invites, kept in one relation."""

from __future__ import annotations

from typing import Optional
from uuid import UUID, uuid4

import asyncpg

from app.groups.domain import models
from app.groups.domain.exceptions import ConflictError, NotFoundError
from app.groups.domain.transaction import TransactionContext

_RESOLVED = {
	models.RequestStatus.ACCEPTED,
	models.RequestStatus.APPROVED,
	models.RequestStatus.DENIED,
}


class RequestLedger:
	"""group_requests rows; at most one pending row per (user_id, group_id)."""

	async def create(
		self,
		tx: TransactionContext,
		user_id: UUID,
		group_id: UUID,
		*,
		is_invite: bool,
	) -> models.Request:
		# Either direction blocks a new request for the pair.
		if await self.find_pending(tx, user_id, group_id) is not None:
			raise ConflictError("request_pending")
		try:
			record = await tx.fetchrow(
				"""
				INSERT INTO group_requests (request_id, user_id, group_id, is_invite, status)
				VALUES ($1, $2, $3, $4, 'pending')
				RETURNING *
				""",
				str(uuid4()),
				str(user_id),
				str(group_id),
				is_invite,
			)
		except asyncpg.UniqueViolationError as exc:  # type: ignore[attr-defined]
			raise ConflictError("request_pending") from exc
		return models.request_from_record(record)

	async def find_pending(
		self,
		tx: TransactionContext,
		user_id: UUID,
		group_id: UUID,
		*,
		is_invite: bool | None = None,
	) -> Optional[models.Request]:
		if is_invite is None:
			record = await tx.fetchrow(
				"""
				SELECT * FROM group_requests
				WHERE user_id = $1 AND group_id = $2 AND status = 'pending'
				""",
				str(user_id),
				str(group_id),
			)
		else:
			record = await tx.fetchrow(
				"""
				SELECT * FROM group_requests
				WHERE user_id = $1 AND group_id = $2 AND status = 'pending' AND is_invite = $3
				""",
				str(user_id),
				str(group_id),
				is_invite,
			)
		return models.request_from_record(record) if record else None

	async def find_by_id(
		self,
		tx: TransactionContext,
		request_id: UUID,
		group_id: UUID,
		*,
		for_update: bool = False,
	) -> Optional[models.Request]:
		query = "SELECT * FROM group_requests WHERE request_id = $1 AND group_id = $2"
		if for_update:
			query += " FOR UPDATE"
		record = await tx.fetchrow(query, str(request_id), str(group_id))
		return models.request_from_record(record) if record else None

	async def resolve(
		self,
		tx: TransactionContext,
		request_id: UUID,
		outcome: models.RequestStatus,
	) -> models.Request:
		"""Move a pending request to a terminal status."""
		if outcome not in _RESOLVED:
			raise ValueError(f"not a terminal request status: {outcome}")
		record = await tx.fetchrow(
			"""
			UPDATE group_requests
			SET status = $2, updated_at = NOW()
			WHERE request_id = $1 AND status = 'pending'
			RETURNING *
			""",
			str(request_id),
			outcome.value,
		)
		if record is None:
			raise NotFoundError("request_not_pending")
		return models.request_from_record(record)

	async def delete(self, tx: TransactionContext, request_id: UUID) -> None:
		result = await tx.execute("DELETE FROM group_requests WHERE request_id = $1", str(request_id))
		if result.split()[-1] == "0":
			raise NotFoundError("request_not_found")

	async def delete_by_user_and_group(self, tx: TransactionContext, user_id: UUID, group_id: UUID) -> int:
		result = await tx.execute(
			"DELETE FROM group_requests WHERE user_id = $1 AND group_id = $2",
			str(user_id),
			str(group_id),
		)
		return int(result.split()[-1]) if result else 0

	async def list_pending(
		self,
		tx: TransactionContext,
		group_id: UUID,
		*,
		is_invite: bool = False,
	) -> list[models.Request]:
		records = await tx.fetch(
			"""
			SELECT * FROM group_requests
			WHERE group_id = $1 AND is_invite = $2 AND status = 'pending'
			ORDER BY requested_at ASC
			""",
			str(group_id),
			is_invite,
		)
		return [models.request_from_record(record) for record in records]

	async def remove_all(self, tx: TransactionContext, group_id: UUID) -> int:
		result = await tx.execute("DELETE FROM group_requests WHERE group_id = $1", str(group_id))
		return int(result.split()[-1]) if result else 0
