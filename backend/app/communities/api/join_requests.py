"""Join request routes for private and closed groups."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.communities.api._errors import to_http_error
from app.communities.domain.join_requests_service import JoinRequestService
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["communities:join-requests"])
_service = JoinRequestService()


@router.delete("/groups/{group_id}/join-request", response_model=dto.MembershipStatusResponse)
async def cancel_join_request_endpoint(
	group_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.MembershipStatusResponse:
	try:
		return await _service.cancel_request(auth_user, group_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/groups/{group_id}/requests", response_model=dto.MemberListResponse)
async def list_join_requests_endpoint(
	group_id: UUID,
	page: int = Query(1, ge=1),
	limit: int = Query(20, ge=1),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.MemberListResponse:
	try:
		return await _service.list_requests(auth_user, group_id, page=page, limit=limit)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/groups/{group_id}/requests/{user_id}/accept", response_model=dto.MembershipStatusResponse)
async def accept_join_request_endpoint(
	group_id: UUID,
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.MembershipStatusResponse:
	try:
		return await _service.accept_request(auth_user, group_id, user_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/groups/{group_id}/requests/{user_id}/reject", response_model=dto.MembershipStatusResponse)
async def reject_join_request_endpoint(
	group_id: UUID,
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.MembershipStatusResponse:
	try:
		return await _service.reject_request(auth_user, group_id, user_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
