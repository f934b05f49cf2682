"""Groups API routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.communities.api._errors import to_http_error
from app.communities.domain.services import CommunitiesService
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["communities:groups"])
_service = CommunitiesService()


@router.post("/groups", response_model=dto.GroupEnvelope, status_code=201)
async def create_group_endpoint(
	payload: dto.GroupCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.GroupEnvelope:
	try:
		return await _service.create_group(auth_user, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


# Collection views are registered ahead of /groups/{group_id} so their paths win.
@router.get("/groups/me", response_model=dto.GroupListResponse)
async def list_my_groups_endpoint(
	page: int = Query(1, ge=1),
	limit: int = Query(20, ge=1),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.GroupListResponse:
	try:
		return await _service.list_my_groups(auth_user, page=page, limit=limit)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/groups/requests/sent", response_model=dto.GroupListResponse)
async def list_sent_requests_endpoint(
	page: int = Query(1, ge=1),
	limit: int = Query(20, ge=1),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.GroupListResponse:
	try:
		return await _service.list_sent_requests(auth_user, page=page, limit=limit)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/groups/invited", response_model=dto.GroupListResponse)
async def list_invited_groups_endpoint(
	page: int = Query(1, ge=1),
	limit: int = Query(20, ge=1),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.GroupListResponse:
	try:
		return await _service.list_invited_groups(auth_user, page=page, limit=limit)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/groups/university", response_model=dto.GroupListResponse)
async def list_university_groups_endpoint(
	page: int = Query(1, ge=1),
	limit: int = Query(20, ge=1),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.GroupListResponse:
	try:
		return await _service.list_university_groups(auth_user, page=page, limit=limit)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/groups/careers", response_model=dto.GroupListResponse)
async def list_career_groups_endpoint(
	page: int = Query(1, ge=1),
	limit: int = Query(20, ge=1),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.GroupListResponse:
	try:
		return await _service.list_career_groups(auth_user, page=page, limit=limit)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/groups/suggested", response_model=dto.GroupListResponse)
async def list_suggested_groups_endpoint(
	page: int = Query(1, ge=1),
	limit: int = Query(20, ge=1),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.GroupListResponse:
	try:
		return await _service.list_suggested_groups(auth_user, page=page, limit=limit)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/groups/slug/{slug}", response_model=dto.GroupEnvelope)
async def get_group_by_slug_endpoint(
	slug: str,
	institution_id: UUID | None = Query(default=None, alias="institutionId"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.GroupEnvelope:
	try:
		return await _service.get_group_by_slug(auth_user, slug, institution_id=institution_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.get("/groups/{group_id}", response_model=dto.GroupEnvelope)
async def get_group_endpoint(
	group_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.GroupEnvelope:
	try:
		return await _service.get_group(auth_user, group_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.patch("/groups/{group_id}", response_model=dto.GroupEnvelope)
async def patch_group_endpoint(
	group_id: UUID,
	payload: dto.GroupUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.GroupEnvelope:
	try:
		return await _service.update_group(auth_user, group_id, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.delete("/groups/{group_id}", response_model=dto.GroupDeletedResponse)
async def delete_group_endpoint(
	group_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.GroupDeletedResponse:
	try:
		return await _service.delete_group(auth_user, group_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc
