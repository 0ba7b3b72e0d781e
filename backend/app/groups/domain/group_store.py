"""Persistence for group entities."""

from __future__ import annotations

from typing import Optional
from uuid import UUID, uuid4

import asyncpg

from app.groups.domain import models
from app.groups.domain.exceptions import ConflictError, NotFoundError
from app.groups.domain.transaction import TransactionContext


def _escape_like(term: str) -> str:
	"""Make % and _ in a search term match literally."""
	return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class GroupStore:
	"""Group rows and the case-insensitive name rule."""

	async def create(
		self,
		tx: TransactionContext,
		*,
		name: str,
		description: str,
		is_private: bool,
		creator_id: UUID,
	) -> models.Group:
		if await self.find_by_name(tx, name) is not None:
			raise ConflictError("group_name_taken")
		try:
			record = await tx.fetchrow(
				"""
				INSERT INTO groups (group_id, creator_id, name, description, is_private)
				VALUES ($1, $2, $3, $4, $5)
				RETURNING *
				""",
				str(uuid4()),
				str(creator_id),
				name,
				description,
				is_private,
			)
		except asyncpg.UniqueViolationError as exc:  # type: ignore[attr-defined]
			raise ConflictError("group_name_taken") from exc
		return models.Group.model_validate(dict(record))

	async def update(
		self,
		tx: TransactionContext,
		group_id: UUID,
		*,
		name: str,
		description: str,
	) -> models.Group:
		clash = await tx.fetchval(
			"SELECT 1 FROM groups WHERE LOWER(name) = LOWER($1) AND group_id <> $2",
			name,
			str(group_id),
		)
		if clash:
			raise ConflictError("group_name_taken")
		try:
			record = await tx.fetchrow(
				"""
				UPDATE groups
				SET name = $2, description = $3, updated_at = NOW()
				WHERE group_id = $1
				RETURNING *
				""",
				str(group_id),
				name,
				description,
			)
		except asyncpg.UniqueViolationError as exc:  # type: ignore[attr-defined]
			raise ConflictError("group_name_taken") from exc
		if record is None:
			raise NotFoundError("group_not_found")
		return models.Group.model_validate(dict(record))

	async def set_privacy(self, tx: TransactionContext, group_id: UUID, is_private: bool) -> models.Group:
		record = await tx.fetchrow(
			"""
			UPDATE groups
			SET is_private = $2, updated_at = NOW()
			WHERE group_id = $1
			RETURNING *
			""",
			str(group_id),
			is_private,
		)
		if record is None:
			raise NotFoundError("group_not_found")
		return models.Group.model_validate(dict(record))

	async def delete(self, tx: TransactionContext, group_id: UUID) -> None:
		result = await tx.execute("DELETE FROM groups WHERE group_id = $1", str(group_id))
		if result.split()[-1] == "0":
			raise NotFoundError("group_not_found")

	async def find_by_id(
		self,
		tx: TransactionContext,
		group_id: UUID,
		*,
		for_update: bool = False,
	) -> Optional[models.Group]:
		query = "SELECT * FROM groups WHERE group_id = $1"
		if for_update:
			query += " FOR UPDATE"
		record = await tx.fetchrow(query, str(group_id))
		return models.Group.model_validate(dict(record)) if record else None

	async def find_by_name(self, tx: TransactionContext, name: str) -> Optional[models.Group]:
		record = await tx.fetchrow("SELECT * FROM groups WHERE LOWER(name) = LOWER($1)", name)
		return models.Group.model_validate(dict(record)) if record else None

	async def list(
		self,
		tx: TransactionContext,
		*,
		search: str | None = None,
		limit: int = 25,
		offset: int = 0,
	) -> list[models.Group]:
		if search:
			records = await tx.fetch(
				"""
				SELECT * FROM groups
				WHERE name ILIKE $1 ESCAPE '\\'
				ORDER BY created_at DESC, group_id
				LIMIT $2 OFFSET $3
				""",
				f"%{_escape_like(search)}%",
				limit,
				offset,
			)
		else:
			records = await tx.fetch(
				"""
				SELECT * FROM groups
				ORDER BY created_at DESC, group_id
				LIMIT $1 OFFSET $2
				""",
				limit,
				offset,
			)
		return [models.Group.model_validate(dict(record)) for record in records]
