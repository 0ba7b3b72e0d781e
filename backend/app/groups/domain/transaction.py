"""Explicit transaction handle threaded through every store call."""

from __future__ import annotations

import zlib
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional
from uuid import UUID

import asyncpg

from app.infra.postgres import get_pool


class TransactionContext:
	"""One pooled connection with an open transaction."""

	def __init__(self, conn: asyncpg.Connection) -> None:
		self.conn = conn

	async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
		return await self.conn.fetch(query, *args)

	async def fetchrow(self, query: str, *args: Any) -> Optional[asyncpg.Record]:
		return await self.conn.fetchrow(query, *args)

	async def fetchval(self, query: str, *args: Any) -> Any:
		return await self.conn.fetchval(query, *args)

	async def execute(self, query: str, *args: Any) -> str:
		return await self.conn.execute(query, *args)

	async def lock_pair(self, user_id: UUID, group_id: UUID) -> None:
		"""Serialise transitions on one (user, group) relation until commit or rollback."""
		await self.conn.execute(
			"SELECT pg_advisory_xact_lock($1, $2)",
			_lock_key(group_id),
			_lock_key(user_id),
		)


def _lock_key(value: UUID) -> int:
	# pg_advisory_xact_lock(int4, int4)
	return zlib.crc32(value.bytes) - 2**31


@asynccontextmanager
async def open_transaction() -> AsyncIterator[TransactionContext]:
	"""Acquire a pooled connection and run the body in one transaction.

	The transaction commits when the body returns and rolls back on any exception.
	"""
	pool = await get_pool()
	async with pool.acquire() as conn:
		async with conn.transaction():
			yield TransactionContext(conn)

