"""Comment routes for communities."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.communities.api._errors import to_http_error
from app.communities.domain.comments_service import CommentsService
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["communities:comments"])
_service = CommentsService()


@router.get("/posts/{post_id}/comments", response_model=dto.CommentListResponse)
async def list_comments_endpoint(
	post_id: UUID,
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=20, ge=1),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.CommentListResponse:
	try:
		return await _service.list_comments(auth_user, post_id, page=page, limit=limit)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/posts/{post_id}/comments", response_model=dto.CommentResponse, status_code=201)
async def create_comment_endpoint(
	post_id: UUID,
	payload: dto.CommentCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.CommentResponse:
	try:
		return await _service.create_comment(auth_user, post_id, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.delete("/comments/{comment_id}", response_model=dto.CommentDeletedResponse)
async def delete_comment_endpoint(
	comment_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.CommentDeletedResponse:
	try:
		return await _service.delete_comment(auth_user, comment_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc
