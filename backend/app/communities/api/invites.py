"""Group invite routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from app.communities.api._errors import to_http_error
from app.communities.domain.invites_service import InviteService
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["communities:invites"])
_service = InviteService()


@router.post("/groups/{group_id}/invites", response_model=dto.InviteMembersResponse)
async def invite_members_endpoint(
	group_id: UUID,
	payload: dto.InviteMembersRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.InviteMembersResponse:
	try:
		return await _service.invite_members(auth_user, group_id, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
