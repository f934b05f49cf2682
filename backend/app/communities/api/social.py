"""Friendship and follow routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.communities.api._errors import to_http_error
from app.communities.domain.social_service import FollowService, FriendshipService
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["communities:social"])
_friendships = FriendshipService()
_follows = FollowService()


@router.get("/friendships", response_model=dto.FriendshipListResponse)
async def list_friendships_endpoint(
	view: str = Query("friends"),
	page: int = Query(1, ge=1),
	limit: int = Query(20, ge=1),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FriendshipListResponse:
	try:
		return await _friendships.list_friendships(auth_user, view=view, page=page, limit=limit)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/friendships/{user_id}", response_model=dto.FriendshipActionResponse, status_code=201)
async def send_friend_request_endpoint(
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FriendshipActionResponse:
	try:
		return await _friendships.send_request(auth_user, user_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/friendships/{user_id}/accept", response_model=dto.FriendshipActionResponse)
async def accept_friend_request_endpoint(
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FriendshipActionResponse:
	try:
		return await _friendships.accept_request(auth_user, user_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/friendships/{user_id}/reject", response_model=dto.FriendshipActionResponse)
async def reject_friend_request_endpoint(
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FriendshipActionResponse:
	try:
		return await _friendships.reject_request(auth_user, user_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.delete("/friendships/{user_id}/request", response_model=dto.FriendshipActionResponse)
async def cancel_friend_request_endpoint(
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FriendshipActionResponse:
	try:
		return await _friendships.cancel_request(auth_user, user_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.delete("/friendships/{user_id}", response_model=dto.FriendshipActionResponse)
async def unfriend_endpoint(
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FriendshipActionResponse:
	try:
		return await _friendships.unfriend(auth_user, user_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/users/{user_id}/follow", response_model=dto.FollowStateResponse)
async def follow_user_endpoint(
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FollowStateResponse:
	try:
		return await _follows.follow(auth_user, user_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.delete("/users/{user_id}/follow", response_model=dto.FollowStateResponse)
async def unfollow_user_endpoint(
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FollowStateResponse:
	try:
		return await _follows.unfollow(auth_user, user_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/users/{user_id}/follows", response_model=dto.FollowCountsResponse)
async def follow_counts_endpoint(
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.FollowCountsResponse:
	try:
		return await _follows.follow_counts(auth_user, user_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
