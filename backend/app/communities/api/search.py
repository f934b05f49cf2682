"""Communities search API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.communities.api._errors import to_http_error
from app.communities.schemas import dto
from app.communities.search.service import SearchService
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["communities:search"])
_service = SearchService()


@router.get("/search", response_model=dto.SearchResponse)
async def search_endpoint(
	q: str = Query(default="", alias="q"),
	search_type: str = Query(default="all", alias="type"),
	page: int = Query(1),
	limit: int = Query(20),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.SearchResponse:
	try:
		return await _service.search(auth_user, query=q, search_type=search_type, page=page, limit=limit)
	except Exception as exc:  # pragma: no cover - translated by handler
		raise to_http_error(exc) from exc


@router.get("/search/suggestions", response_model=dto.SuggestionsResponse)
async def search_suggestions_endpoint(
	q: str = Query(default="", alias="q"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dto.SuggestionsResponse:
	try:
		return await _service.suggestions(auth_user, query=q)
	except Exception as exc:  # pragma: no cover - translated by handler
		raise to_http_error(exc) from exc
