"""Validation helpers for search inputs."""

from __future__ import annotations

from app.communities.search import exceptions
from app.infra.rate_limit import allow

MIN_QUERY_LENGTH = 2
MAX_QUERY_LENGTH = 120
MAX_PAGE_SIZE = 50
SEARCH_TYPES = ("all", "users", "posts", "groups", "institutions", "departments", "comments")


def normalize_query(value: str | None) -> str:
	"""Collapse whitespace and trim surrounding spaces."""

	if not value:
		return ""
	return " ".join(value.strip().split())


def ensure_query_allowed(query: str) -> str:
	length = len(query)
	if length < MIN_QUERY_LENGTH:
		raise exceptions.QueryValidationError("query_too_short")
	if length > MAX_QUERY_LENGTH:
		raise exceptions.QueryValidationError("query_too_long")
	return query


def ensure_search_type(value: str | None) -> str:
	search_type = (value or "all").strip().lower()
	if search_type not in SEARCH_TYPES:
		raise exceptions.QueryValidationError("invalid_search_type")
	return search_type


def ensure_page_window(page: int, limit: int) -> None:
	if page < 1:
		raise exceptions.QueryValidationError("page_out_of_range")
	if limit < 1 or limit > MAX_PAGE_SIZE:
		raise exceptions.QueryValidationError("limit_out_of_range")


async def enforce_rate_limit(user_id: str, *, limit: int, kind: str = "search") -> None:
	"""Apply a Redis-backed per-user rate limit."""

	if not await allow(kind, user_id, limit=limit):
		raise exceptions.RateLimitError()
