"""Custom exceptions for search operations."""

from __future__ import annotations


class SearchError(Exception):
	"""Base class for search errors."""

	def __init__(self, detail: str, *, status_code: int = 400) -> None:
		super().__init__(detail)
		self.detail = detail
		self.status_code = status_code


class QueryValidationError(SearchError):
	"""Query text, type or paging is invalid."""

	def __init__(self, detail: str, *, status_code: int = 422) -> None:
		super().__init__(detail, status_code=status_code)


class RateLimitError(SearchError):
	"""Raised when the caller exceeds the search rate limit."""

	def __init__(self) -> None:
		super().__init__("rate_limit", status_code=429)
