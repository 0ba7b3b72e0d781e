"""FastAPI routers for the groups domain."""

from __future__ import annotations

from fastapi import APIRouter

from app.groups.api import groups, invites, join_requests, members, roles

router = APIRouter(prefix="/api/groups/v1")

router.include_router(groups.router)
router.include_router(members.router)
router.include_router(invites.router)
router.include_router(join_requests.router)
router.include_router(roles.router)

__all__ = ["router"]
