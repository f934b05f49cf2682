"""FastAPI routers for communities domain."""

from __future__ import annotations

from fastapi import APIRouter

from app.communities.api import (
	comments,
	feeds,
	groups,
	invites,
	join_requests,
	members,
	posts,
	roles,
	search,
	social,
)

router = APIRouter(prefix="/api/communities/v1")

router.include_router(groups.router)
router.include_router(members.router)
router.include_router(join_requests.router)
router.include_router(invites.router)
router.include_router(roles.router)
router.include_router(feeds.router)
router.include_router(posts.router)
router.include_router(comments.router)
router.include_router(social.router)
router.include_router(search.router)

__all__ = ["router"]
