"""Post routes for communities."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from app.communities.api._errors import to_http_error
from app.communities.domain.posts_service import PostsService
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["communities:posts"])
_service = PostsService()


@router.post("/groups/{group_id}/posts", response_model=dto.FeedItem, status_code=201)
async def create_post_endpoint(
	group_id: UUID,
	payload: dto.PostCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FeedItem:
	try:
		return await _service.create_post(auth_user, group_id, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.patch("/posts/{post_id}", response_model=dto.FeedItem)
async def update_post_endpoint(
	post_id: UUID,
	payload: dto.PostUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FeedItem:
	try:
		return await _service.update_post(auth_user, post_id, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.delete("/posts/{post_id}", response_model=dto.PostDeletedResponse)
async def delete_post_endpoint(
	post_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.PostDeletedResponse:
	try:
		return await _service.delete_post(auth_user, post_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/posts/{post_id}/like", response_model=dto.LikeToggleResponse)
async def toggle_like_endpoint(
	post_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.LikeToggleResponse:
	try:
		return await _service.toggle_like(auth_user, post_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/posts/{post_id}/read", response_model=dto.ReadToggleResponse)
async def toggle_read_endpoint(
	post_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.ReadToggleResponse:
	try:
		return await _service.toggle_read(auth_user, post_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/posts/{post_id}/pin", response_model=dto.FeedItem)
async def toggle_pin_endpoint(
	post_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FeedItem:
	try:
		return await _service.toggle_pin(auth_user, post_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc
