"""Feed endpoints for communities."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.communities.api._errors import to_http_error
from app.communities.schemas import dto
from app.communities.services.feed_query import FeedQueryService
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["communities:feeds"])
_service = FeedQueryService()


@router.get("/groups/{group_id}/feed", response_model=dto.FeedResponse)
async def get_group_feed_endpoint(
    group_id: UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FeedResponse:
    try:
        return await _service.get_group_feed(auth_user, group_id, page=page, limit=limit)
    except Exception as exc:  # pragma: no cover
        raise to_http_error(exc) from exc


@router.get("/groups/{group_id}/feed/pinned", response_model=dto.FeedResponse)
async def get_pinned_posts_endpoint(
    group_id: UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FeedResponse:
    try:
        return await _service.get_pinned_posts(auth_user, group_id, page=page, limit=limit)
    except Exception as exc:  # pragma: no cover
        raise to_http_error(exc) from exc


@router.get("/groups/{group_id}/feed/marketplace", response_model=dto.FeedResponse)
async def get_marketplace_posts_endpoint(
    group_id: UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FeedResponse:
    try:
        return await _service.get_marketplace_posts(auth_user, group_id, page=page, limit=limit)
    except Exception as exc:  # pragma: no cover
        raise to_http_error(exc) from exc


@router.get("/groups/{group_id}/feed/unread-count", response_model=dto.UnreadCountResponse)
async def get_unread_count_endpoint(
    group_id: UUID,
    auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.UnreadCountResponse:
    try:
        return await _service.get_unread_count(auth_user, group_id)
    except Exception as exc:  # pragma: no cover
        raise to_http_error(exc) from exc
