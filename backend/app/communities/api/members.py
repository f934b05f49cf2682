"""Membership management routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.communities.api._errors import to_http_error
from app.communities.domain.membership_service import MembershipService
from app.communities.domain.services import CommunitiesService
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["communities:members"])
_service = MembershipService()
_groups = CommunitiesService()


@router.post("/groups/{group_id}/join", response_model=dto.MembershipStatusResponse)
async def join_group_endpoint(
	group_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.MembershipStatusResponse:
	try:
		return await _service.join_group(auth_user, group_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/groups/{group_id}/leave", response_model=dto.MembershipStatusResponse)
async def leave_group_endpoint(
	group_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.MembershipStatusResponse:
	try:
		return await _service.leave_group(auth_user, group_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/groups/{group_id}/members", response_model=dto.MemberListResponse)
async def list_members_endpoint(
	group_id: UUID,
	page: int = Query(1, ge=1),
	limit: int = Query(20, ge=1),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.MemberListResponse:
	try:
		return await _groups.list_members(auth_user, group_id, page=page, limit=limit)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.delete("/groups/{group_id}/members/{user_id}", response_model=dto.MemberIdResponse)
async def remove_member_endpoint(
	group_id: UUID,
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.MemberIdResponse:
	try:
		return await _service.remove_member(auth_user, group_id, user_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/groups/{group_id}/members/{user_id}/ban", response_model=dto.MemberIdResponse)
async def ban_member_endpoint(
	group_id: UUID,
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.MemberIdResponse:
	try:
		return await _service.ban_member(auth_user, group_id, user_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc
