"""Read-only access to user profiles owned by the profile service."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from app.groups.domain import models
from app.groups.domain.transaction import TransactionContext


class UserDirectory:
	async def get_profile(self, tx: TransactionContext, user_id: UUID) -> Optional[models.UserProfile]:
		record = await tx.fetchrow(
			"SELECT user_id, username, profile_pic FROM users WHERE user_id = $1",
			str(user_id),
		)
		return models.UserProfile.model_validate(dict(record)) if record else None
