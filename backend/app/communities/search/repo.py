"""Postgres queries behind search aggregation.

Each search returns `(rows, total)` where rows are plain dicts shaped like the
matching hit schema. Matching is case-insensitive substring matching.
"""

from __future__ import annotations

from typing import Any, Mapping
from uuid import UUID

from app.infra.postgres import get_pool

Rows = list[dict[str, Any]]

# Post visibility for a viewer, mirroring the group feed filter: PUBLIC posts,
# CONNECTIONS posts when the viewer has joined the group, and the viewer's own posts.
_POST_VISIBLE_SQL = """
	p.deleted_at IS NULL
	AND p.is_archived = FALSE
	AND g.deleted_at IS NULL
	AND (g.privacy <> 'PRIVATE' OR vm.id IS NOT NULL)
	AND (
		p.author_id = $2
		OR p.visibility = 'PUBLIC'
		OR (p.visibility = 'CONNECTIONS' AND vm.id IS NOT NULL)
	)
"""

_POST_JOINS_SQL = """
	JOIN group_entity g ON g.id = p.group_id
	LEFT JOIN group_member vm
		ON vm.group_id = g.id AND vm.user_id = $2 AND vm.status = 'JOINED' AND vm.deleted_at IS NULL
"""


def like_pattern(query: str) -> str:
	escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
	return f"%{escaped}%"


def _author(row: Mapping[str, Any], prefix: str = "author_") -> dict[str, Any] | None:
	if row.get(f"{prefix}user_name") is None:
		return None
	return {
		"id": row[f"{prefix}id"],
		"full_name": row[f"{prefix}full_name"],
		"user_name": row[f"{prefix}user_name"],
		"avatar": row[f"{prefix}avatar"],
	}


class SearchRepository:
	async def _page(self, count_sql: str, rows_sql: str, *params: Any) -> tuple[list[Mapping[str, Any]], int]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			total = await conn.fetchval(count_sql, *params[:-2])
			rows = await conn.fetch(rows_sql, *params)
		return list(rows), int(total or 0)

	async def search_users(self, query: str, *, viewer_id: UUID, limit: int, offset: int) -> tuple[Rows, int]:
		where = """
			FROM users u
			LEFT JOIN institutions i ON i.id = u.institution_id
			WHERE u.account_status = 'ACTIVE' AND u.id <> $2
				AND (u.full_name ILIKE $1 OR u.user_name ILIKE $1)
		"""
		rows, total = await self._page(
			f"SELECT COUNT(*) {where}",
			f"""
			SELECT u.id, u.full_name, u.user_name, u.avatar, i.name AS institution {where}
			ORDER BY u.full_name ASC, u.id ASC
			LIMIT $3 OFFSET $4
			""",
			like_pattern(query),
			viewer_id,
			limit,
			offset,
		)
		return [dict(row) for row in rows], total

	async def search_posts(self, query: str, *, viewer_id: UUID, limit: int, offset: int) -> tuple[Rows, int]:
		where = f"""
			FROM group_post p
			{_POST_JOINS_SQL}
			LEFT JOIN users a ON a.id = p.author_id
			WHERE p.content ILIKE $1 AND {_POST_VISIBLE_SQL}
		"""
		rows, total = await self._page(
			f"SELECT COUNT(*) {where}",
			f"""
			SELECT p.id, p.group_id, p.content, p.type, p.likes_count, p.comments_count, p.created_at,
				a.id AS author_id, a.full_name AS author_full_name, a.user_name AS author_user_name,
				a.avatar AS author_avatar
			{where}
			ORDER BY p.created_at DESC, p.id DESC
			LIMIT $3 OFFSET $4
			""",
			like_pattern(query),
			viewer_id,
			limit,
			offset,
		)
		results = []
		for row in rows:
			results.append(
				{
					"id": row["id"],
					"group_id": row["group_id"],
					"content": row["content"],
					"type": row["type"],
					"likes_count": row["likes_count"],
					"comments_count": row["comments_count"],
					"created_at": row["created_at"],
					"author": _author(row),
				}
			)
		return results, total

	async def search_groups(self, query: str, *, limit: int, offset: int) -> tuple[Rows, int]:
		where = """
			FROM group_entity g
			LEFT JOIN institutions i ON i.id = g.institution_id
			WHERE g.deleted_at IS NULL AND g.privacy = 'PUBLIC'
				AND (g.name ILIKE $1 OR g.description ILIKE $1)
		"""
		rows, total = await self._page(
			f"SELECT COUNT(*) {where}",
			f"""
			SELECT g.id, g.name, g.slug, g.description, g.avatar, g.type, g.privacy,
				g.members_count, g.posts_count, i.name AS institution
			{where}
			ORDER BY g.members_count DESC, g.created_at DESC
			LIMIT $2 OFFSET $3
			""",
			like_pattern(query),
			limit,
			offset,
		)
		return [dict(row) for row in rows], total

	async def search_institutions(self, query: str, *, limit: int, offset: int) -> tuple[Rows, int]:
		where = """
			FROM institutions i
			WHERE i.is_active = TRUE
				AND (i.name ILIKE $1 OR i.short_name ILIKE $1 OR i.city ILIKE $1)
		"""
		rows, total = await self._page(
			f"SELECT COUNT(*) {where}",
			f"""
			SELECT i.id, i.name, i.short_name, i.city, i.country {where}
			ORDER BY i.name ASC
			LIMIT $2 OFFSET $3
			""",
			like_pattern(query),
			limit,
			offset,
		)
		return [dict(row) for row in rows], total

	async def search_departments(self, query: str, *, limit: int, offset: int) -> tuple[Rows, int]:
		where = """
			FROM departments d
			LEFT JOIN institutions i ON i.id = d.institution_id
			WHERE d.is_active = TRUE AND (d.name ILIKE $1 OR d.code ILIKE $1)
		"""
		rows, total = await self._page(
			f"SELECT COUNT(*) {where}",
			f"""
			SELECT d.id, d.name, d.code, i.name AS institution {where}
			ORDER BY d.name ASC
			LIMIT $2 OFFSET $3
			""",
			like_pattern(query),
			limit,
			offset,
		)
		return [dict(row) for row in rows], total

	async def search_comments(self, query: str, *, viewer_id: UUID, limit: int, offset: int) -> tuple[Rows, int]:
		where = f"""
			FROM post_comment c
			JOIN group_post p ON p.id = c.post_id
			{_POST_JOINS_SQL}
			LEFT JOIN users a ON a.id = c.author_id
			WHERE c.deleted_at IS NULL AND c.content ILIKE $1 AND {_POST_VISIBLE_SQL}
		"""
		rows, total = await self._page(
			f"SELECT COUNT(*) {where}",
			f"""
			SELECT c.id, c.post_id, c.content, c.likes_count, c.created_at,
				LEFT(p.content, 100) AS post_excerpt,
				a.id AS author_id, a.full_name AS author_full_name, a.user_name AS author_user_name,
				a.avatar AS author_avatar
			{where}
			ORDER BY c.created_at DESC, c.id DESC
			LIMIT $3 OFFSET $4
			""",
			like_pattern(query),
			viewer_id,
			limit,
			offset,
		)
		results = []
		for row in rows:
			results.append(
				{
					"id": row["id"],
					"post_id": row["post_id"],
					"content": row["content"],
					"likes_count": row["likes_count"],
					"created_at": row["created_at"],
					"post_excerpt": row["post_excerpt"] or "",
					"author": _author(row),
				}
			)
		return results, total

	async def suggest_users(self, query: str, *, viewer_id: UUID, limit: int = 3) -> Rows:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT full_name, user_name FROM users
				WHERE account_status = 'ACTIVE' AND id <> $2
					AND (full_name ILIKE $1 OR user_name ILIKE $1)
				ORDER BY full_name ASC
				LIMIT $3
				""",
				like_pattern(query),
				viewer_id,
				limit,
			)
		return [dict(row) for row in rows]

	async def suggest_groups(self, query: str, *, limit: int = 2) -> Rows:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT name, members_count FROM group_entity
				WHERE deleted_at IS NULL AND privacy = 'PUBLIC' AND name ILIKE $1
				ORDER BY members_count DESC
				LIMIT $2
				""",
				like_pattern(query),
				limit,
			)
		return [dict(row) for row in rows]
