"""Async repository helpers for communities domain.

Every multi-write operation (membership + counter, ownership transfer, the
group deletion cascade, post/reaction + counter) runs inside one transaction
so a failure leaves no partial state behind.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Mapping, Sequence
from uuid import UUID, uuid4

import asyncpg

from app.communities.domain import models
from app.communities.domain.exceptions import ConflictError
from app.communities.domain.models import GroupRole, JoinMethod, MembershipStatus
from app.infra.postgres import get_pool

# Sort key used when listing members: owners first, then admins, moderators, members.
_ROLE_SORT_SQL = (
	"CASE m.role WHEN 'OWNER' THEN 0 WHEN 'ADMIN' THEN 1 WHEN 'MODERATOR' THEN 2 ELSE 3 END"
)

_GROUP_COLUMNS = (
	"g.id, g.institution_id, g.name, g.slug, g.description, g.avatar, g.cover_image, g.type, g.privacy, "
	"g.settings, g.members_count, g.posts_count, g.owner_id, g.created_by, g.created_at, g.updated_at, "
	"g.deleted_at, g.deleted_by"
)


def _group_from_record(record: Mapping[str, Any]) -> models.Group:
	data = dict(record)
	settings_value = data.get("settings")
	if isinstance(settings_value, str):
		data["settings"] = json.loads(settings_value)
	elif settings_value is None:
		data["settings"] = {}
	return models.Group.model_validate(data)


def _member_from_record(record: Mapping[str, Any]) -> models.GroupMember:
	return models.GroupMember.model_validate(dict(record))


def _post_from_record(record: Mapping[str, Any]) -> models.Post:
	data = dict(record)
	data["tags"] = list(data.get("tags") or [])
	data["poll_options"] = list(data.get("poll_options") or [])
	return models.Post.model_validate(data)


def _settings_json(settings: models.GroupSettings) -> str:
	return json.dumps(settings.model_dump())


class CommunitiesRepository:
	"""Thin data-access layer around asyncpg."""

	# --- Group operations -------------------------------------------------

	async def slug_exists(self, slug: str, *, institution_id: UUID | None) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			value = await conn.fetchval(
				"""
				SELECT EXISTS (
					SELECT 1 FROM group_entity
					WHERE slug = $1 AND institution_id IS NOT DISTINCT FROM $2
				)
				""",
				slug,
				institution_id,
			)
		return bool(value)

	async def create_group_with_owner(
		self,
		*,
		name: str,
		slug: str,
		description: str,
		group_type: models.GroupType,
		privacy: models.GroupPrivacy,
		settings: models.GroupSettings,
		institution_id: UUID | None,
		avatar: str | None,
		cover_image: str | None,
		creator_id: UUID,
	) -> tuple[models.Group, models.GroupMember]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				try:
					record = await conn.fetchrow(
						"""
						INSERT INTO group_entity AS g (id, institution_id, name, slug, description, avatar, cover_image,
							type, privacy, settings, members_count, posts_count, owner_id, created_by)
						VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10::jsonb, 1, 0, $11, $11)
						RETURNING *
						""",
						uuid4(),
						institution_id,
						name,
						slug,
						description,
						avatar,
						cover_image,
						group_type.value,
						privacy.value,
						_settings_json(settings),
						creator_id,
					)
				except asyncpg.UniqueViolationError as exc:  # type: ignore[attr-defined]
					raise ConflictError("group_slug_exists") from exc
				member = await conn.fetchrow(
					"""
					INSERT INTO group_member (id, group_id, user_id, role, status, join_method, joined_at)
					VALUES ($1, $2, $3, 'OWNER', 'JOINED', 'CREATOR', NOW())
					RETURNING *
					""",
					uuid4(),
					record["id"],
					creator_id,
				)
		return _group_from_record(record), _member_from_record(member)

	async def get_group(self, group_id: UUID) -> models.Group | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				f"SELECT {_GROUP_COLUMNS} FROM group_entity g WHERE g.id = $1 AND g.deleted_at IS NULL",
				group_id,
			)
		return _group_from_record(record) if record else None

	async def get_group_by_slug(self, slug: str, *, institution_id: UUID | None = None) -> models.Group | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				f"""
				SELECT {_GROUP_COLUMNS} FROM group_entity g
				WHERE g.slug = $1 AND g.deleted_at IS NULL
					AND ($2::uuid IS NULL OR g.institution_id = $2)
				ORDER BY g.created_at ASC
				LIMIT 1
				""",
				slug,
				institution_id,
			)
		return _group_from_record(record) if record else None

	async def update_group(
		self,
		group_id: UUID,
		*,
		description: str | None,
		privacy: models.GroupPrivacy | None,
		settings: models.GroupSettings | None,
	) -> models.Group | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				UPDATE group_entity AS g
				SET description = COALESCE($2, g.description),
					privacy = COALESCE($3, g.privacy),
					settings = COALESCE($4::jsonb, g.settings),
					updated_at = NOW()
				WHERE g.id = $1 AND g.deleted_at IS NULL
				RETURNING *
				""",
				group_id,
				description,
				privacy.value if privacy else None,
				_settings_json(settings) if settings else None,
			)
		return _group_from_record(record) if record else None

	async def soft_delete_group(self, group_id: UUID, *, deleted_by: UUID) -> bool:
		"""Soft-delete the group with its memberships, posts and their comments."""
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				result = await conn.execute(
					"""
					UPDATE group_entity
					SET deleted_at = NOW(), deleted_by = $2, updated_at = NOW()
					WHERE id = $1 AND deleted_at IS NULL
					""",
					group_id,
					deleted_by,
				)
				if result.split()[-1] == "0":
					return False
				post_ids = await conn.fetch(
					"""
					UPDATE group_post SET deleted_at = NOW(), updated_at = NOW()
					WHERE group_id = $1 AND deleted_at IS NULL
					RETURNING id
					""",
					group_id,
				)
				if post_ids:
					await conn.execute(
						"""
						UPDATE post_comment SET deleted_at = NOW(), updated_at = NOW()
						WHERE post_id = ANY($1::uuid[]) AND deleted_at IS NULL
						""",
						[row["id"] for row in post_ids],
					)
				await conn.execute(
					"""
					UPDATE group_member SET deleted_at = NOW(), updated_at = NOW()
					WHERE group_id = $1 AND deleted_at IS NULL
					""",
					group_id,
				)
		return True

	async def _list_groups(
		self,
		*,
		where: str,
		params: Sequence[Any],
		viewer_id: UUID,
		order_by: str,
		limit: int,
		offset: int,
	) -> models.GroupPage:
		bindings = [viewer_id, *params]
		base = f"""
			FROM group_entity g
			LEFT JOIN group_member vm
				ON vm.group_id = g.id AND vm.user_id = $1 AND vm.deleted_at IS NULL
			WHERE g.deleted_at IS NULL AND {where}
		"""
		limit_idx = len(bindings) + 1
		pool = await get_pool()
		async with pool.acquire() as conn:
			total = await conn.fetchval(f"SELECT COUNT(*) {base}", *bindings)
			rows = await conn.fetch(
				f"""
				SELECT {_GROUP_COLUMNS}, vm.status AS viewer_status {base}
				ORDER BY {order_by}
				LIMIT ${limit_idx} OFFSET ${limit_idx + 1}
				""",
				*bindings,
				limit,
				offset,
			)
		items = []
		for row in rows:
			data = dict(row)
			status = data.pop("viewer_status")
			items.append(models.GroupWithStatus(group=_group_from_record(data), status=status))
		return models.GroupPage(items=items, total=int(total or 0))

	async def list_groups_by_status(
		self,
		viewer_id: UUID,
		status: MembershipStatus,
		*,
		limit: int,
		offset: int,
	) -> models.GroupPage:
		return await self._list_groups(
			where="vm.status = $2",
			params=[status.value],
			viewer_id=viewer_id,
			order_by="vm.updated_at DESC, g.id DESC",
			limit=limit,
			offset=offset,
		)

	async def list_groups_by_type(
		self,
		viewer_id: UUID,
		group_type: models.GroupType,
		*,
		limit: int,
		offset: int,
	) -> models.GroupPage:
		return await self._list_groups(
			where="""
				g.type = $2
				AND (vm.status IS NULL OR vm.status <> 'BANNED')
				AND (g.privacy IN ('PUBLIC', 'PRIVATE') OR vm.status = 'JOINED')
			""",
			params=[group_type.value],
			viewer_id=viewer_id,
			order_by="g.members_count DESC, g.created_at DESC",
			limit=limit,
			offset=offset,
		)

	async def list_suggested_groups(self, viewer_id: UUID, *, limit: int, offset: int) -> models.GroupPage:
		return await self._list_groups(
			where="vm.id IS NULL AND g.privacy <> 'CLOSED'",
			params=[],
			viewer_id=viewer_id,
			order_by="g.members_count DESC, g.created_at DESC",
			limit=limit,
			offset=offset,
		)

	# --- Membership operations -------------------------------------------

	async def get_member(self, group_id: UUID, user_id: UUID) -> models.GroupMember | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"SELECT * FROM group_member WHERE group_id = $1 AND user_id = $2 AND deleted_at IS NULL",
				group_id,
				user_id,
			)
		return _member_from_record(record) if record else None

	async def create_member(
		self,
		group_id: UUID,
		user_id: UUID,
		*,
		status: MembershipStatus,
		join_method: JoinMethod,
		role: GroupRole = GroupRole.MEMBER,
		invited_by: UUID | None = None,
	) -> models.GroupMember:
		"""Insert a membership; a JOINED insert also bumps members_count."""
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				try:
					record = await conn.fetchrow(
						"""
						INSERT INTO group_member (id, group_id, user_id, role, status, join_method, invited_by, joined_at)
						VALUES ($1, $2, $3, $4, $5, $6, $7, CASE WHEN $5 = 'JOINED' THEN NOW() END)
						RETURNING *
						""",
						uuid4(),
						group_id,
						user_id,
						role.value,
						status.value,
						join_method.value,
						invited_by,
					)
				except asyncpg.UniqueViolationError as exc:  # type: ignore[attr-defined]
					raise ConflictError("membership_exists") from exc
				if status == MembershipStatus.JOINED:
					await self._adjust_members_count(conn, group_id, 1)
		return _member_from_record(record)

	async def activate_member(
		self,
		group_id: UUID,
		user_id: UUID,
		*,
		expected_status: MembershipStatus,
		join_method: JoinMethod | None = None,
	) -> models.GroupMember | None:
		"""Move a PENDING/INVITED record to JOINED and bump members_count.

		Returns None when the record is no longer in `expected_status`.
		"""
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				record = await conn.fetchrow(
					"""
					UPDATE group_member
					SET status = 'JOINED', joined_at = NOW(), updated_at = NOW(),
						join_method = COALESCE($4, join_method)
					WHERE group_id = $1 AND user_id = $2 AND status = $3 AND deleted_at IS NULL
					RETURNING *
					""",
					group_id,
					user_id,
					expected_status.value,
					join_method.value if join_method else None,
				)
				if record is None:
					return None
				await self._adjust_members_count(conn, group_id, 1)
		return _member_from_record(record)

	async def delete_member(
		self,
		group_id: UUID,
		user_id: UUID,
		*,
		expected_status: MembershipStatus | None = None,
	) -> MembershipStatus | None:
		"""Hard-delete a membership, returning the status it had (None if nothing matched)."""
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				status = await conn.fetchval(
					"""
					DELETE FROM group_member
					WHERE group_id = $1 AND user_id = $2 AND deleted_at IS NULL
						AND ($3::text IS NULL OR status = $3)
						AND role <> 'OWNER'
					RETURNING status
					""",
					group_id,
					user_id,
					expected_status.value if expected_status else None,
				)
				if status is None:
					return None
				if status == MembershipStatus.JOINED.value:
					await self._adjust_members_count(conn, group_id, -1)
		return MembershipStatus(status)

	async def update_member_role(
		self,
		group_id: UUID,
		user_id: UUID,
		*,
		expected_role: GroupRole,
		new_role: GroupRole,
	) -> models.GroupMember | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				UPDATE group_member SET role = $4, updated_at = NOW()
				WHERE group_id = $1 AND user_id = $2 AND role = $3
					AND status = 'JOINED' AND deleted_at IS NULL
				RETURNING *
				""",
				group_id,
				user_id,
				expected_role.value,
				new_role.value,
			)
		return _member_from_record(record) if record else None

	async def transfer_ownership(self, group_id: UUID, owner_id: UUID, new_owner_id: UUID) -> models.GroupMember:
		"""Swap OWNER and ADMIN roles atomically; raises ConflictError and rolls back otherwise."""
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				demoted = await conn.execute(
					"""
					UPDATE group_member SET role = 'ADMIN', updated_at = NOW()
					WHERE group_id = $1 AND user_id = $2 AND role = 'OWNER' AND deleted_at IS NULL
					""",
					group_id,
					owner_id,
				)
				if demoted.split()[-1] == "0":
					raise ConflictError("owner_changed")
				record = await conn.fetchrow(
					"""
					UPDATE group_member SET role = 'OWNER', updated_at = NOW()
					WHERE group_id = $1 AND user_id = $2 AND role = 'ADMIN'
						AND status = 'JOINED' AND deleted_at IS NULL
					RETURNING *
					""",
					group_id,
					new_owner_id,
				)
				if record is None:
					raise ConflictError("role_must_be_admin")
				await conn.execute(
					"UPDATE group_entity SET owner_id = $2, updated_at = NOW() WHERE id = $1",
					group_id,
					new_owner_id,
				)
		return _member_from_record(record)

	async def ban_member(self, group_id: UUID, user_id: UUID) -> models.GroupMember | None:
		"""JOINED -> BANNED with a members_count decrement; None if the target is not JOINED."""
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				record = await conn.fetchrow(
					"""
					UPDATE group_member SET status = 'BANNED', updated_at = NOW()
					WHERE group_id = $1 AND user_id = $2 AND status = 'JOINED'
						AND role <> 'OWNER' AND deleted_at IS NULL
					RETURNING *
					""",
					group_id,
					user_id,
				)
				if record is None:
					return None
				await self._adjust_members_count(conn, group_id, -1)
		return _member_from_record(record)

	async def list_members(
		self,
		group_id: UUID,
		*,
		status: MembershipStatus,
		limit: int,
		offset: int,
	) -> models.MemberPage:
		pool = await get_pool()
		async with pool.acquire() as conn:
			total = await conn.fetchval(
				"""
				SELECT COUNT(*) FROM group_member m
				WHERE m.group_id = $1 AND m.status = $2 AND m.deleted_at IS NULL
				""",
				group_id,
				status.value,
			)
			rows = await conn.fetch(
				f"""
				SELECT m.*, u.full_name AS u_full_name, u.user_name AS u_user_name, u.avatar AS u_avatar
				FROM group_member m
				LEFT JOIN users u ON u.id = m.user_id
				WHERE m.group_id = $1 AND m.status = $2 AND m.deleted_at IS NULL
				ORDER BY {_ROLE_SORT_SQL}, m.joined_at ASC NULLS LAST, m.id ASC
				LIMIT $3 OFFSET $4
				""",
				group_id,
				status.value,
				limit,
				offset,
			)
		items = []
		for row in rows:
			data = dict(row)
			full_name = data.pop("u_full_name")
			user_name = data.pop("u_user_name")
			avatar = data.pop("u_avatar")
			user = None
			if user_name is not None:
				user = models.UserSummary(id=data["user_id"], full_name=full_name, user_name=user_name, avatar=avatar)
			items.append(models.MemberWithUser(member=_member_from_record(data), user=user))
		return models.MemberPage(items=items, total=int(total or 0))

	@staticmethod
	async def _adjust_members_count(conn: asyncpg.Connection, group_id: UUID, delta: int) -> None:
		await conn.execute(
			"""
			UPDATE group_entity
			SET members_count = GREATEST(members_count + $2, 0), updated_at = NOW()
			WHERE id = $1
			""",
			group_id,
			delta,
		)

	# --- Users --------------------------------------------------------------

	async def get_users(self, user_ids: Iterable[UUID]) -> dict[UUID, models.UserSummary]:
		ids = list({uid for uid in user_ids})
		if not ids:
			return {}
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"SELECT id, full_name, user_name, avatar FROM users WHERE id = ANY($1::uuid[])",
				ids,
			)
		return {row["id"]: models.UserSummary.model_validate(dict(row)) for row in rows}

	async def user_exists(self, user_id: UUID) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			value = await conn.fetchval("SELECT EXISTS (SELECT 1 FROM users WHERE id = $1)", user_id)
		return bool(value)

	# --- Social graph -------------------------------------------------------

	async def get_friendship_between(self, user_a: UUID, user_b: UUID) -> models.Friendship | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				SELECT * FROM friendship
				WHERE (requester_id = $1 AND addressee_id = $2) OR (requester_id = $2 AND addressee_id = $1)
				""",
				user_a,
				user_b,
			)
		return models.Friendship.model_validate(dict(record)) if record else None

	async def create_friend_request(self, requester_id: UUID, addressee_id: UUID) -> models.Friendship:
		"""Insert a PENDING link; the pair index rejects a second link in either direction."""
		pool = await get_pool()
		async with pool.acquire() as conn:
			try:
				record = await conn.fetchrow(
					"""
					INSERT INTO friendship (id, requester_id, addressee_id, status)
					VALUES ($1, $2, $3, 'PENDING')
					RETURNING *
					""",
					uuid4(),
					requester_id,
					addressee_id,
				)
			except asyncpg.UniqueViolationError as exc:  # type: ignore[attr-defined]
				raise ConflictError("friendship_exists") from exc
		return models.Friendship.model_validate(dict(record))

	async def accept_friend_request(self, requester_id: UUID, addressee_id: UUID) -> models.Friendship | None:
		"""PENDING -> ACCEPTED for the exact direction; None when no such request is pending."""
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				UPDATE friendship SET status = 'ACCEPTED', accepted_at = NOW(), updated_at = NOW()
				WHERE requester_id = $1 AND addressee_id = $2 AND status = 'PENDING'
				RETURNING *
				""",
				requester_id,
				addressee_id,
			)
		return models.Friendship.model_validate(dict(record)) if record else None

	async def delete_friend_request(self, requester_id: UUID, addressee_id: UUID) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			result = await conn.execute(
				"DELETE FROM friendship WHERE requester_id = $1 AND addressee_id = $2 AND status = 'PENDING'",
				requester_id,
				addressee_id,
			)
		return result.split()[-1] != "0"

	async def delete_friendship(self, user_a: UUID, user_b: UUID) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			result = await conn.execute(
				"""
				DELETE FROM friendship
				WHERE status = 'ACCEPTED'
					AND ((requester_id = $1 AND addressee_id = $2) OR (requester_id = $2 AND addressee_id = $1))
				""",
				user_a,
				user_b,
			)
		return result.split()[-1] != "0"

	async def list_friendships(
		self,
		user_id: UUID,
		*,
		status: models.FriendshipStatus,
		direction: str,
		limit: int,
		offset: int,
	) -> models.FriendshipPage:
		"""Page through links of one status; direction is any, incoming or outgoing."""
		side = {
			"any": "(f.requester_id = $1 OR f.addressee_id = $1)",
			"incoming": "f.addressee_id = $1",
			"outgoing": "f.requester_id = $1",
		}[direction]
		pool = await get_pool()
		async with pool.acquire() as conn:
			total = await conn.fetchval(
				f"SELECT COUNT(*) FROM friendship f WHERE {side} AND f.status = $2",
				user_id,
				status.value,
			)
			rows = await conn.fetch(
				f"""
				SELECT f.*, u.id AS u_id, u.full_name AS u_full_name, u.user_name AS u_user_name, u.avatar AS u_avatar
				FROM friendship f
				LEFT JOIN users u
					ON u.id = CASE WHEN f.requester_id = $1 THEN f.addressee_id ELSE f.requester_id END
				WHERE {side} AND f.status = $2
				ORDER BY COALESCE(f.accepted_at, f.created_at) DESC, f.id DESC
				LIMIT $3 OFFSET $4
				""",
				user_id,
				status.value,
				limit,
				offset,
			)
		items = []
		for row in rows:
			data = dict(row)
			user = None
			if data["u_id"] is not None:
				user = models.UserSummary(
					id=data["u_id"],
					full_name=data["u_full_name"],
					user_name=data["u_user_name"],
					avatar=data["u_avatar"],
				)
			for key in ("u_id", "u_full_name", "u_user_name", "u_avatar"):
				data.pop(key)
			items.append(models.FriendshipWithUser(friendship=models.Friendship.model_validate(data), user=user))
		return models.FriendshipPage(items=items, total=int(total or 0))

	async def create_follow(self, follower_id: UUID, followee_id: UUID) -> bool:
		"""Insert a follow edge; False when it already exists."""
		pool = await get_pool()
		async with pool.acquire() as conn:
			result = await conn.execute(
				"""
				INSERT INTO user_follow (follower_id, followee_id) VALUES ($1, $2)
				ON CONFLICT (follower_id, followee_id) DO NOTHING
				""",
				follower_id,
				followee_id,
			)
		return result.split()[-1] != "0"

	async def delete_follow(self, follower_id: UUID, followee_id: UUID) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			result = await conn.execute(
				"DELETE FROM user_follow WHERE follower_id = $1 AND followee_id = $2",
				follower_id,
				followee_id,
			)
		return result.split()[-1] != "0"

	async def is_following(self, follower_id: UUID, followee_id: UUID) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			value = await conn.fetchval(
				"SELECT EXISTS (SELECT 1 FROM user_follow WHERE follower_id = $1 AND followee_id = $2)",
				follower_id,
				followee_id,
			)
		return bool(value)

	async def count_follows(self, user_id: UUID) -> tuple[int, int]:
		"""Return (followers, following) for one user."""
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				SELECT
					(SELECT COUNT(*) FROM user_follow WHERE followee_id = $1) AS followers,
					(SELECT COUNT(*) FROM user_follow WHERE follower_id = $1) AS following
				""",
				user_id,
			)
		return int(record["followers"]), int(record["following"])

	# --- Posts ----------------------------------------------------------------

	async def create_post(
		self,
		*,
		group_id: UUID,
		author_id: UUID,
		content: str,
		post_type: models.PostType,
		visibility: models.PostVisibility,
		tags: Sequence[str],
		poll_options: Sequence[str],
	) -> models.Post:
		"""Insert a post, bump posts_count, and mark it read for its author."""
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				record = await conn.fetchrow(
					"""
					INSERT INTO group_post (id, group_id, author_id, content, type, visibility, tags, poll_options)
					VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
					RETURNING *
					""",
					uuid4(),
					group_id,
					author_id,
					content,
					post_type.value,
					visibility.value,
					list(tags),
					list(poll_options),
				)
				await conn.execute(
					"UPDATE group_entity SET posts_count = posts_count + 1, updated_at = NOW() WHERE id = $1",
					group_id,
				)
				await conn.execute(
					"INSERT INTO post_read (user_id, post_id) VALUES ($1, $2) ON CONFLICT DO NOTHING",
					author_id,
					record["id"],
				)
		return _post_from_record(record)

	async def get_post(self, post_id: UUID) -> models.Post | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"SELECT * FROM group_post WHERE id = $1 AND deleted_at IS NULL",
				post_id,
			)
		return _post_from_record(record) if record else None

	async def update_post(
		self,
		post_id: UUID,
		*,
		content: str | None,
		visibility: models.PostVisibility | None,
		tags: Sequence[str] | None,
		mark_edited: bool,
	) -> models.Post | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				UPDATE group_post
				SET content = COALESCE($2, content),
					visibility = COALESCE($3, visibility),
					tags = COALESCE($4, tags),
					is_edited = is_edited OR $5,
					edited_at = CASE WHEN $5 THEN NOW() ELSE edited_at END,
					updated_at = NOW()
				WHERE id = $1 AND deleted_at IS NULL
				RETURNING *
				""",
				post_id,
				content,
				visibility.value if visibility else None,
				list(tags) if tags is not None else None,
				mark_edited,
			)
		return _post_from_record(record) if record else None

	async def soft_delete_post(self, post: models.Post) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				result = await conn.execute(
					"UPDATE group_post SET deleted_at = NOW(), updated_at = NOW() WHERE id = $1 AND deleted_at IS NULL",
					post.id,
				)
				if result.split()[-1] == "0":
					return False
				await conn.execute(
					"UPDATE post_comment SET deleted_at = NOW(), updated_at = NOW() WHERE post_id = $1 AND deleted_at IS NULL",
					post.id,
				)
				await conn.execute(
					"UPDATE group_entity SET posts_count = GREATEST(posts_count - 1, 0), updated_at = NOW() WHERE id = $1",
					post.group_id,
				)
		return True

	async def set_post_pinned(self, post_id: UUID, pinned: bool) -> models.Post | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				UPDATE group_post SET is_pinned = $2, updated_at = NOW()
				WHERE id = $1 AND deleted_at IS NULL
				RETURNING *
				""",
				post_id,
				pinned,
			)
		return _post_from_record(record) if record else None

	@staticmethod
	def _feed_where(
		*,
		pinned_only: bool,
		post_type: models.PostType | None,
	) -> tuple[str, int]:
		"""WHERE clause over $1 group, $2 visibilities, $3 viewer (+ $4 type)."""
		clauses = [
			"p.group_id = $1",
			"p.deleted_at IS NULL",
			"p.is_archived = FALSE",
			"(p.visibility = ANY($2::text[]) OR p.author_id = $3)",
		]
		if pinned_only:
			clauses.append("p.is_pinned = TRUE")
		next_idx = 4
		if post_type is not None:
			clauses.append(f"p.type = ${next_idx}")
			next_idx += 1
		return " AND ".join(clauses), next_idx

	async def list_group_posts(
		self,
		group_id: UUID,
		*,
		viewer_id: UUID,
		visibilities: Sequence[str],
		limit: int,
		offset: int,
		pinned_only: bool = False,
		post_type: models.PostType | None = None,
	) -> models.PostPage:
		where, next_idx = self._feed_where(pinned_only=pinned_only, post_type=post_type)
		bindings: list[Any] = [group_id, list(visibilities), viewer_id]
		if post_type is not None:
			bindings.append(post_type.value)
		pool = await get_pool()
		async with pool.acquire() as conn:
			total = await conn.fetchval(f"SELECT COUNT(*) FROM group_post p WHERE {where}", *bindings)
			rows = await conn.fetch(
				f"""
				SELECT p.* FROM group_post p
				WHERE {where}
				ORDER BY p.created_at DESC, p.id DESC
				LIMIT ${next_idx} OFFSET ${next_idx + 1}
				""",
				*bindings,
				limit,
				offset,
			)
		return models.PostPage(items=[_post_from_record(row) for row in rows], total=int(total or 0))

	async def count_unread_posts(self, group_id: UUID, *, viewer_id: UUID, visibilities: Sequence[str]) -> int:
		where, _ = self._feed_where(pinned_only=False, post_type=None)
		pool = await get_pool()
		async with pool.acquire() as conn:
			value = await conn.fetchval(
				f"""
				SELECT COUNT(*) FROM group_post p
				WHERE {where}
					AND NOT EXISTS (SELECT 1 FROM post_read r WHERE r.post_id = p.id AND r.user_id = $3)
				""",
				group_id,
				list(visibilities),
				viewer_id,
			)
		return int(value or 0)

	async def get_read_post_ids(self, user_id: UUID, post_ids: Sequence[UUID]) -> set[UUID]:
		if not post_ids:
			return set()
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"SELECT post_id FROM post_read WHERE user_id = $1 AND post_id = ANY($2::uuid[])",
				user_id,
				list(post_ids),
			)
		return {row["post_id"] for row in rows}

	async def get_liked_post_ids(self, user_id: UUID, post_ids: Sequence[UUID]) -> set[UUID]:
		if not post_ids:
			return set()
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"SELECT post_id FROM post_reaction WHERE user_id = $1 AND post_id = ANY($2::uuid[])",
				user_id,
				list(post_ids),
			)
		return {row["post_id"] for row in rows}

	async def toggle_post_like(self, post_id: UUID, user_id: UUID) -> tuple[bool, int]:
		"""Flip the viewer's like; returns (is_liked, likes_count)."""
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				removed = await conn.execute(
					"DELETE FROM post_reaction WHERE post_id = $1 AND user_id = $2",
					post_id,
					user_id,
				)
				liked = removed.split()[-1] == "0"
				if liked:
					await conn.execute(
						"INSERT INTO post_reaction (post_id, user_id) VALUES ($1, $2)",
						post_id,
						user_id,
					)
				count = await conn.fetchval(
					"""
					UPDATE group_post SET likes_count = GREATEST(likes_count + $2, 0)
					WHERE id = $1
					RETURNING likes_count
					""",
					post_id,
					1 if liked else -1,
				)
		return liked, int(count or 0)

	async def toggle_post_read(self, post_id: UUID, user_id: UUID) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				removed = await conn.execute(
					"DELETE FROM post_read WHERE post_id = $1 AND user_id = $2",
					post_id,
					user_id,
				)
				if removed.split()[-1] != "0":
					return False
				await conn.execute(
					"INSERT INTO post_read (post_id, user_id) VALUES ($1, $2)",
					post_id,
					user_id,
				)
		return True

	# --- Comments -----------------------------------------------------------

	async def create_comment(self, *, post_id: UUID, author_id: UUID, content: str) -> models.Comment:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				record = await conn.fetchrow(
					"""
					INSERT INTO post_comment (id, post_id, author_id, content)
					VALUES ($1, $2, $3, $4)
					RETURNING *
					""",
					uuid4(),
					post_id,
					author_id,
					content,
				)
				await conn.execute(
					"UPDATE group_post SET comments_count = comments_count + 1 WHERE id = $1",
					post_id,
				)
		return models.Comment.model_validate(dict(record))

	async def get_comment(self, comment_id: UUID) -> models.Comment | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"SELECT * FROM post_comment WHERE id = $1 AND deleted_at IS NULL",
				comment_id,
			)
		return models.Comment.model_validate(dict(record)) if record else None

	async def soft_delete_comment(self, comment: models.Comment) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				result = await conn.execute(
					"UPDATE post_comment SET deleted_at = NOW(), updated_at = NOW() WHERE id = $1 AND deleted_at IS NULL",
					comment.id,
				)
				if result.split()[-1] == "0":
					return False
				await conn.execute(
					"UPDATE group_post SET comments_count = GREATEST(comments_count - 1, 0) WHERE id = $1",
					comment.post_id,
				)
		return True

	async def list_comments(self, post_id: UUID, *, limit: int, offset: int) -> models.CommentPage:
		pool = await get_pool()
		async with pool.acquire() as conn:
			total = await conn.fetchval(
				"SELECT COUNT(*) FROM post_comment WHERE post_id = $1 AND deleted_at IS NULL",
				post_id,
			)
			rows = await conn.fetch(
				"""
				SELECT * FROM post_comment
				WHERE post_id = $1 AND deleted_at IS NULL
				ORDER BY created_at ASC, id ASC
				LIMIT $2 OFFSET $3
				""",
				post_id,
				limit,
				offset,
			)
		return models.CommentPage(
			items=[models.Comment.model_validate(dict(row)) for row in rows],
			total=int(total or 0),
		)
