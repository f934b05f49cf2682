"""Service layer orchestrating search aggregation."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any
from uuid import UUID

from app.communities.schemas import dto
from app.communities.search import cache as cache_module, guards
from app.communities.search.repo import SearchRepository
from app.infra.auth import AuthenticatedUser
from app.obs import metrics as obs_metrics
from app.settings import settings

_LOG = logging.getLogger(__name__)

# Upper bound on the page size of each category when type=all fans out.
CATEGORY_LIMITS: dict[str, int] = {
	"users": 20,
	"posts": 15,
	"groups": 20,
	"institutions": 15,
	"departments": 20,
	"comments": 10,
}

_HIT_MODELS: dict[str, type[dto.CamelModel]] = {
	"users": dto.UserHit,
	"posts": dto.PostHit,
	"groups": dto.GroupHit,
	"institutions": dto.InstitutionHit,
	"departments": dto.DepartmentHit,
	"comments": dto.CommentHit,
}

_MAX_SUGGESTIONS = 5


class SearchService:
	"""Fan out one query across collections, with paging and a TTL cache."""

	def __init__(
		self,
		*,
		repository: SearchRepository | None = None,
		cache: cache_module.SearchCache | None = None,
	) -> None:
		self._repo = repository or SearchRepository()
		self._cache = cache

	@property
	def cache(self) -> cache_module.SearchCache:
		return self._cache or cache_module.get_search_cache()

	async def search(
		self,
		auth_user: AuthenticatedUser,
		*,
		query: str | None,
		search_type: str | None = "all",
		page: int = 1,
		limit: int = 20,
	) -> dto.SearchResponse:
		normalized = guards.ensure_query_allowed(guards.normalize_query(query))
		kind = guards.ensure_search_type(search_type)
		guards.ensure_page_window(page, limit)
		await guards.enforce_rate_limit(auth_user.id, limit=settings.search_rate_limit_per_minute)

		obs_metrics.inc_search_query(kind)
		started = time.perf_counter()
		key = cache_module.build_cache_key(kind, auth_user.id, normalized, page, limit)
		payload, cached = await cache_module.get_or_set(
			self.cache,
			key,
			ttl=cache_module.CACHE_TTLS[kind],
			loader=lambda: self._execute(UUID(auth_user.id), normalized, kind, page=page, limit=limit),
		)
		duration = time.perf_counter() - started
		obs_metrics.inc_search_cache(kind, "hit" if cached else "miss")
		obs_metrics.observe_search_latency(kind, duration)
		response = dto.SearchResponse.model_validate(payload)
		response.meta.took_ms = int(duration * 1000)
		_LOG.info(
			"search_served",
			extra={"kind": kind, "cached": cached, "total": response.pagination.total_docs, "latency_ms": response.meta.took_ms},
		)
		return response

	async def _execute(self, viewer_id: UUID, query: str, kind: str, *, page: int, limit: int) -> dict[str, Any]:
		categories = list(CATEGORY_LIMITS) if kind == "all" else [kind]
		limits = {
			category: min(limit, CATEGORY_LIMITS[category]) if kind == "all" else limit for category in categories
		}
		outcomes = await asyncio.gather(
			*(
				self._search_category(
					category,
					query,
					viewer_id=viewer_id,
					limit=limits[category],
					page=page,
				)
				for category in categories
			)
		)
		results = dto.SearchResults()
		counts = dto.SearchCounts()
		category_pagination: dict[str, dto.Pagination] = {}
		for category, (hits, total) in zip(categories, outcomes):
			setattr(results, category, hits)
			setattr(counts, category, total)
			category_pagination[category] = dto.Pagination.build(total=total, page=page, limit=limits[category])
		response = dto.SearchResponse(
			results=results,
			counts=counts,
			pagination=dto.Pagination.build(total=counts.total(), page=page, limit=limit),
			category_pagination=category_pagination,
			meta=dto.SearchMeta(query=query, type=kind),
		)
		return response.model_dump(mode="json")

	async def _search_category(
		self,
		category: str,
		query: str,
		*,
		viewer_id: UUID,
		limit: int,
		page: int,
	) -> tuple[list[dto.CamelModel], int]:
		offset = (page - 1) * limit
		if category == "users":
			rows, total = await self._repo.search_users(query, viewer_id=viewer_id, limit=limit, offset=offset)
		elif category == "posts":
			rows, total = await self._repo.search_posts(query, viewer_id=viewer_id, limit=limit, offset=offset)
		elif category == "comments":
			rows, total = await self._repo.search_comments(query, viewer_id=viewer_id, limit=limit, offset=offset)
		elif category == "groups":
			rows, total = await self._repo.search_groups(query, limit=limit, offset=offset)
		elif category == "institutions":
			rows, total = await self._repo.search_institutions(query, limit=limit, offset=offset)
		else:
			rows, total = await self._repo.search_departments(query, limit=limit, offset=offset)
		model = _HIT_MODELS[category]
		return [model.model_validate(row) for row in rows], total

	async def suggestions(self, auth_user: AuthenticatedUser, *, query: str | None) -> dto.SuggestionsResponse:
		normalized = guards.normalize_query(query)
		if not normalized:
			return dto.SuggestionsResponse(
				suggestions=[],
				pagination=dto.Pagination.build(total=0, page=1, limit=_MAX_SUGGESTIONS),
				meta=dto.SearchMeta(query="", type="suggestions"),
			)
		await guards.enforce_rate_limit(auth_user.id, limit=settings.search_rate_limit_per_minute, kind="search:suggest")
		key = cache_module.build_cache_key("suggestions", auth_user.id, normalized)
		payload, cached = await cache_module.get_or_set(
			self.cache,
			key,
			ttl=cache_module.CACHE_TTLS["suggestions"],
			loader=lambda: self._build_suggestions(UUID(auth_user.id), normalized),
		)
		obs_metrics.inc_search_cache("suggestions", "hit" if cached else "miss")
		return dto.SuggestionsResponse.model_validate(payload)

	async def _build_suggestions(self, viewer_id: UUID, query: str) -> dict[str, Any]:
		users, groups = await asyncio.gather(
			self._repo.suggest_users(query, viewer_id=viewer_id, limit=3),
			self._repo.suggest_groups(query, limit=2),
		)
		suggestions = [
			dto.Suggestion(type="user", text=row["full_name"], subtitle=f"@{row['user_name']}") for row in users
		] + [
			dto.Suggestion(type="group", text=row["name"], subtitle=f"{row['members_count']} members") for row in groups
		]
		suggestions = suggestions[:_MAX_SUGGESTIONS]
		response = dto.SuggestionsResponse(
			suggestions=suggestions,
			pagination=dto.Pagination.build(total=len(suggestions), page=1, limit=_MAX_SUGGESTIONS),
			meta=dto.SearchMeta(query=query, type="suggestions"),
		)
		return response.model_dump(mode="json")


__all__ = ["SearchService", "CATEGORY_LIMITS"]
