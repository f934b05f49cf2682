"""Role management routes for communities."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from app.communities.api._errors import to_http_error
from app.communities.domain.roles_service import RoleService
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["communities:roles"])
_service = RoleService()


@router.post("/groups/{group_id}/members/{user_id}/roles/{action}", response_model=dto.RoleChangeResponse)
async def change_role_endpoint(
	group_id: UUID,
	user_id: UUID,
	action: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.RoleChangeResponse:
	try:
		return await _service.change_role(auth_user, group_id, user_id, action)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/groups/{group_id}/transfer-ownership", response_model=dto.RoleChangeResponse)
async def transfer_ownership_endpoint(
	group_id: UUID,
	payload: dto.TransferOwnershipRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.RoleChangeResponse:
	try:
		return await _service.transfer_ownership(auth_user, group_id, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]
