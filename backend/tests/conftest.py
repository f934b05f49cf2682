import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Sequence
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from app.communities.domain import models
from app.communities.domain.exceptions import ConflictError
from app.communities.domain.models import (
	GroupPrivacy,
	GroupRole,
	GroupType,
	JoinMethod,
	MembershipStatus,
	PostType,
	PostVisibility,
)
from app.communities.search import cache as search_cache
from app.infra import postgres
from app.main import app
from app.settings import settings

_ROLE_SORT = {GroupRole.OWNER: 0, GroupRole.ADMIN: 1, GroupRole.MODERATOR: 2, GroupRole.MEMBER: 3}
_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeCommunitiesRepository:
	"""In-memory stand-in for CommunitiesRepository with the same contracts."""

	def __init__(self) -> None:
		self.groups: dict[UUID, models.Group] = {}
		self.members: dict[tuple[UUID, UUID], models.GroupMember] = {}
		self.posts: dict[UUID, models.Post] = {}
		self.comments: dict[UUID, models.Comment] = {}
		self.users: dict[UUID, models.UserSummary] = {}
		self.reads: set[tuple[UUID, UUID]] = set()
		self.likes: set[tuple[UUID, UUID]] = set()
		self.friendships: dict[UUID, models.Friendship] = {}
		self.follows: set[tuple[UUID, UUID]] = set()
		self._ticks = 0

	def _now(self) -> datetime:
		self._ticks += 1
		return _EPOCH + timedelta(seconds=self._ticks)

	# --- Seeding helpers -------------------------------------------------

	def add_user(self, user_id: UUID | None = None, *, user_name: str | None = None) -> UUID:
		uid = user_id or uuid4()
		handle = user_name or f"user_{uid.hex[:6]}"
		self.users[uid] = models.UserSummary(id=uid, full_name=handle.title(), user_name=handle)
		return uid

	def add_group(
		self,
		owner_id: UUID,
		*,
		name: str = "Chess Club",
		privacy: GroupPrivacy = GroupPrivacy.PUBLIC,
		group_type: GroupType = GroupType.GENERAL,
		allow_member_posting: bool = True,
	) -> models.Group:
		now = self._now()
		group = models.Group(
			id=uuid4(),
			name=name,
			slug=f"{name.lower().replace(' ', '-')}-{uuid4().hex[:4]}",
			type=group_type,
			privacy=privacy,
			settings=models.GroupSettings(allow_member_posting=allow_member_posting),
			members_count=0,
			owner_id=owner_id,
			created_by=owner_id,
			created_at=now,
			updated_at=now,
		)
		self.groups[group.id] = group
		self.add_member(group.id, owner_id, role=GroupRole.OWNER, join_method=JoinMethod.CREATOR)
		return group

	def add_member(
		self,
		group_id: UUID,
		user_id: UUID,
		*,
		role: GroupRole = GroupRole.MEMBER,
		status: MembershipStatus = MembershipStatus.JOINED,
		join_method: JoinMethod = JoinMethod.DIRECT_JOIN,
	) -> models.GroupMember:
		now = self._now()
		member = models.GroupMember(
			id=uuid4(),
			group_id=group_id,
			user_id=user_id,
			role=role,
			status=status,
			join_method=join_method,
			joined_at=now if status == MembershipStatus.JOINED else None,
			created_at=now,
			updated_at=now,
		)
		self.members[(group_id, user_id)] = member
		if status == MembershipStatus.JOINED:
			self.groups[group_id].members_count += 1
		return member

	def add_post(
		self,
		group_id: UUID,
		author_id: UUID,
		*,
		content: str = "hello",
		post_type: PostType = PostType.GENERAL,
		visibility: PostVisibility = PostVisibility.PUBLIC,
		is_pinned: bool = False,
		is_archived: bool = False,
	) -> models.Post:
		now = self._now()
		post = models.Post(
			id=uuid4(),
			group_id=group_id,
			author_id=author_id,
			content=content,
			type=post_type,
			visibility=visibility,
			is_pinned=is_pinned,
			is_archived=is_archived,
			created_at=now,
			updated_at=now,
		)
		self.posts[post.id] = post
		self.groups[group_id].posts_count += 1
		return post

	def live_member(self, group_id: UUID, user_id: UUID) -> models.GroupMember | None:
		member = self.members.get((group_id, user_id))
		if member is None or member.deleted_at is not None:
			return None
		return member

	def _adjust_members_count(self, group_id: UUID, delta: int) -> None:
		group = self.groups[group_id]
		group.members_count = max(group.members_count + delta, 0)

	# --- Groups ------------------------------------------------------------

	async def slug_exists(self, slug: str, *, institution_id: UUID | None) -> bool:
		return any(g.slug == slug and g.institution_id == institution_id for g in self.groups.values())

	async def create_group_with_owner(
		self,
		*,
		name: str,
		slug: str,
		description: str,
		group_type: GroupType,
		privacy: GroupPrivacy,
		settings: models.GroupSettings,
		institution_id: UUID | None,
		avatar: str | None,
		cover_image: str | None,
		creator_id: UUID,
	) -> tuple[models.Group, models.GroupMember]:
		if await self.slug_exists(slug, institution_id=institution_id):
			raise ConflictError("group_slug_exists")
		now = self._now()
		group = models.Group(
			id=uuid4(),
			institution_id=institution_id,
			name=name,
			slug=slug,
			description=description,
			avatar=avatar,
			cover_image=cover_image,
			type=group_type,
			privacy=privacy,
			settings=settings,
			members_count=0,
			owner_id=creator_id,
			created_by=creator_id,
			created_at=now,
			updated_at=now,
		)
		self.groups[group.id] = group
		owner = self.add_member(group.id, creator_id, role=GroupRole.OWNER, join_method=JoinMethod.CREATOR)
		return group, owner

	async def get_group(self, group_id: UUID) -> models.Group | None:
		group = self.groups.get(group_id)
		if group is None or group.is_deleted:
			return None
		return group

	async def get_group_by_slug(self, slug: str, *, institution_id: UUID | None = None) -> models.Group | None:
		for group in sorted(self.groups.values(), key=lambda g: g.created_at):
			if group.slug != slug or group.is_deleted:
				continue
			if institution_id is not None and group.institution_id != institution_id:
				continue
			return group
		return None

	async def update_group(
		self,
		group_id: UUID,
		*,
		description: str | None,
		privacy: GroupPrivacy | None,
		settings: models.GroupSettings | None,
	) -> models.Group | None:
		group = await self.get_group(group_id)
		if group is None:
			return None
		if description is not None:
			group.description = description
		if privacy is not None:
			group.privacy = privacy
		if settings is not None:
			group.settings = settings
		group.updated_at = self._now()
		return group

	async def soft_delete_group(self, group_id: UUID, *, deleted_by: UUID) -> bool:
		group = await self.get_group(group_id)
		if group is None:
			return False
		now = self._now()
		group.deleted_at = now
		group.deleted_by = deleted_by
		for post in self.posts.values():
			if post.group_id == group_id and post.deleted_at is None:
				post.deleted_at = now
				for comment in self.comments.values():
					if comment.post_id == post.id and comment.deleted_at is None:
						comment.deleted_at = now
		for (gid, _), member in self.members.items():
			if gid == group_id and member.deleted_at is None:
				member.deleted_at = now
		return True

	def _group_page(self, viewer_id: UUID, groups: list[models.Group], *, limit: int, offset: int) -> models.GroupPage:
		window = groups[offset : offset + limit]
		items = []
		for group in window:
			member = self.live_member(group.id, viewer_id)
			items.append(models.GroupWithStatus(group=group, status=member.status if member else None))
		return models.GroupPage(items=items, total=len(groups))

	def _live_groups(self) -> list[models.Group]:
		return [g for g in self.groups.values() if not g.is_deleted]

	async def list_groups_by_status(
		self,
		viewer_id: UUID,
		status: MembershipStatus,
		*,
		limit: int,
		offset: int,
	) -> models.GroupPage:
		matches = []
		for group in self._live_groups():
			member = self.live_member(group.id, viewer_id)
			if member is not None and member.status == status:
				matches.append(group)
		return self._group_page(viewer_id, matches, limit=limit, offset=offset)

	async def list_groups_by_type(
		self,
		viewer_id: UUID,
		group_type: GroupType,
		*,
		limit: int,
		offset: int,
	) -> models.GroupPage:
		matches = []
		for group in self._live_groups():
			if group.type != group_type:
				continue
			member = self.live_member(group.id, viewer_id)
			status = member.status if member else None
			if status == MembershipStatus.BANNED:
				continue
			if group.privacy == GroupPrivacy.CLOSED and status != MembershipStatus.JOINED:
				continue
			matches.append(group)
		matches.sort(key=lambda g: (-g.members_count, -g.created_at.timestamp()))
		return self._group_page(viewer_id, matches, limit=limit, offset=offset)

	async def list_suggested_groups(self, viewer_id: UUID, *, limit: int, offset: int) -> models.GroupPage:
		matches = [
			g
			for g in self._live_groups()
			if self.live_member(g.id, viewer_id) is None and g.privacy != GroupPrivacy.CLOSED
		]
		matches.sort(key=lambda g: (-g.members_count, -g.created_at.timestamp()))
		return self._group_page(viewer_id, matches, limit=limit, offset=offset)

	# --- Membership --------------------------------------------------------

	async def get_member(self, group_id: UUID, user_id: UUID) -> models.GroupMember | None:
		return self.live_member(group_id, user_id)

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
		if self.live_member(group_id, user_id) is not None:
			raise ConflictError("membership_exists")
		member = self.add_member(group_id, user_id, role=role, status=status, join_method=join_method)
		member.invited_by = invited_by
		return member

	async def activate_member(
		self,
		group_id: UUID,
		user_id: UUID,
		*,
		expected_status: MembershipStatus,
		join_method: JoinMethod | None = None,
	) -> models.GroupMember | None:
		member = self.live_member(group_id, user_id)
		if member is None or member.status != expected_status:
			return None
		member.status = MembershipStatus.JOINED
		member.joined_at = self._now()
		if join_method is not None:
			member.join_method = join_method
		self._adjust_members_count(group_id, 1)
		return member

	async def delete_member(
		self,
		group_id: UUID,
		user_id: UUID,
		*,
		expected_status: MembershipStatus | None = None,
	) -> MembershipStatus | None:
		member = self.live_member(group_id, user_id)
		if member is None or member.role == GroupRole.OWNER:
			return None
		if expected_status is not None and member.status != expected_status:
			return None
		del self.members[(group_id, user_id)]
		if member.status == MembershipStatus.JOINED:
			self._adjust_members_count(group_id, -1)
		return member.status

	async def update_member_role(
		self,
		group_id: UUID,
		user_id: UUID,
		*,
		expected_role: GroupRole,
		new_role: GroupRole,
	) -> models.GroupMember | None:
		member = self.live_member(group_id, user_id)
		if member is None or member.role != expected_role or member.status != MembershipStatus.JOINED:
			return None
		member.role = new_role
		return member

	async def transfer_ownership(self, group_id: UUID, owner_id: UUID, new_owner_id: UUID) -> models.GroupMember:
		owner = self.live_member(group_id, owner_id)
		if owner is None or owner.role != GroupRole.OWNER:
			raise ConflictError("owner_changed")
		target = self.live_member(group_id, new_owner_id)
		if target is None or target.role != GroupRole.ADMIN or target.status != MembershipStatus.JOINED:
			raise ConflictError("role_must_be_admin")
		owner.role = GroupRole.ADMIN
		target.role = GroupRole.OWNER
		self.groups[group_id].owner_id = new_owner_id
		return target

	async def ban_member(self, group_id: UUID, user_id: UUID) -> models.GroupMember | None:
		member = self.live_member(group_id, user_id)
		if member is None or member.status != MembershipStatus.JOINED or member.role == GroupRole.OWNER:
			return None
		member.status = MembershipStatus.BANNED
		self._adjust_members_count(group_id, -1)
		return member

	async def list_members(
		self,
		group_id: UUID,
		*,
		status: MembershipStatus,
		limit: int,
		offset: int,
	) -> models.MemberPage:
		matches = [
			m
			for (gid, _), m in self.members.items()
			if gid == group_id and m.status == status and m.deleted_at is None
		]
		matches.sort(key=lambda m: (_ROLE_SORT[m.role], m.joined_at or datetime.max.replace(tzinfo=timezone.utc)))
		window = matches[offset : offset + limit]
		return models.MemberPage(
			items=[models.MemberWithUser(member=m, user=self.users.get(m.user_id)) for m in window],
			total=len(matches),
		)

	# --- Users -------------------------------------------------------------

	async def get_users(self, user_ids: Iterable[UUID]) -> dict[UUID, models.UserSummary]:
		return {uid: self.users[uid] for uid in set(user_ids) if uid in self.users}

	async def user_exists(self, user_id: UUID) -> bool:
		return user_id in self.users

	# --- Social graph ------------------------------------------------------

	def add_friendship(
		self,
		requester_id: UUID,
		addressee_id: UUID,
		*,
		status: models.FriendshipStatus = models.FriendshipStatus.ACCEPTED,
	) -> models.Friendship:
		now = self._now()
		link = models.Friendship(
			id=uuid4(),
			requester_id=requester_id,
			addressee_id=addressee_id,
			status=status,
			created_at=now,
			updated_at=now,
			accepted_at=now if status == models.FriendshipStatus.ACCEPTED else None,
		)
		self.friendships[link.id] = link
		return link

	async def get_friendship_between(self, user_a: UUID, user_b: UUID) -> models.Friendship | None:
		pair = {user_a, user_b}
		return next((f for f in self.friendships.values() if {f.requester_id, f.addressee_id} == pair), None)

	async def create_friend_request(self, requester_id: UUID, addressee_id: UUID) -> models.Friendship:
		if await self.get_friendship_between(requester_id, addressee_id) is not None:
			raise ConflictError("friendship_exists")
		return self.add_friendship(requester_id, addressee_id, status=models.FriendshipStatus.PENDING)

	def _pending(self, requester_id: UUID, addressee_id: UUID) -> models.Friendship | None:
		return next(
			(
				f
				for f in self.friendships.values()
				if f.requester_id == requester_id
				and f.addressee_id == addressee_id
				and f.status == models.FriendshipStatus.PENDING
			),
			None,
		)

	async def accept_friend_request(self, requester_id: UUID, addressee_id: UUID) -> models.Friendship | None:
		link = self._pending(requester_id, addressee_id)
		if link is None:
			return None
		now = self._now()
		link.status = models.FriendshipStatus.ACCEPTED
		link.accepted_at = now
		link.updated_at = now
		return link

	async def delete_friend_request(self, requester_id: UUID, addressee_id: UUID) -> bool:
		link = self._pending(requester_id, addressee_id)
		if link is None:
			return False
		del self.friendships[link.id]
		return True

	async def delete_friendship(self, user_a: UUID, user_b: UUID) -> bool:
		link = await self.get_friendship_between(user_a, user_b)
		if link is None or link.status != models.FriendshipStatus.ACCEPTED:
			return False
		del self.friendships[link.id]
		return True

	async def list_friendships(
		self,
		user_id: UUID,
		*,
		status: models.FriendshipStatus,
		direction: str,
		limit: int,
		offset: int,
	) -> models.FriendshipPage:
		sides = {
			"any": lambda f: user_id in (f.requester_id, f.addressee_id),
			"incoming": lambda f: f.addressee_id == user_id,
			"outgoing": lambda f: f.requester_id == user_id,
		}
		matches = [f for f in self.friendships.values() if f.status == status and sides[direction](f)]
		matches.sort(key=lambda f: f.accepted_at or f.created_at, reverse=True)
		items = [
			models.FriendshipWithUser(friendship=f, user=self.users.get(f.other(user_id)))
			for f in matches[offset : offset + limit]
		]
		return models.FriendshipPage(items=items, total=len(matches))

	async def create_follow(self, follower_id: UUID, followee_id: UUID) -> bool:
		if (follower_id, followee_id) in self.follows:
			return False
		self.follows.add((follower_id, followee_id))
		return True

	async def delete_follow(self, follower_id: UUID, followee_id: UUID) -> bool:
		if (follower_id, followee_id) not in self.follows:
			return False
		self.follows.discard((follower_id, followee_id))
		return True

	async def is_following(self, follower_id: UUID, followee_id: UUID) -> bool:
		return (follower_id, followee_id) in self.follows

	async def count_follows(self, user_id: UUID) -> tuple[int, int]:
		followers = sum(1 for _, followee in self.follows if followee == user_id)
		following = sum(1 for follower, _ in self.follows if follower == user_id)
		return followers, following

	# --- Posts -------------------------------------------------------------

	async def create_post(
		self,
		*,
		group_id: UUID,
		author_id: UUID,
		content: str,
		post_type: PostType,
		visibility: PostVisibility,
		tags: Sequence[str],
		poll_options: Sequence[str],
	) -> models.Post:
		post = self.add_post(group_id, author_id, content=content, post_type=post_type, visibility=visibility)
		post.tags = list(tags)
		post.poll_options = list(poll_options)
		self.reads.add((author_id, post.id))
		return post

	async def get_post(self, post_id: UUID) -> models.Post | None:
		post = self.posts.get(post_id)
		if post is None or post.deleted_at is not None:
			return None
		return post

	async def update_post(
		self,
		post_id: UUID,
		*,
		content: str | None,
		visibility: PostVisibility | None,
		tags: Sequence[str] | None,
		mark_edited: bool,
	) -> models.Post | None:
		post = await self.get_post(post_id)
		if post is None:
			return None
		if content is not None:
			post.content = content
		if visibility is not None:
			post.visibility = visibility
		if tags is not None:
			post.tags = list(tags)
		if mark_edited:
			post.is_edited = True
			post.edited_at = self._now()
		return post

	async def soft_delete_post(self, post: models.Post) -> bool:
		current = await self.get_post(post.id)
		if current is None:
			return False
		now = self._now()
		current.deleted_at = now
		for comment in self.comments.values():
			if comment.post_id == post.id and comment.deleted_at is None:
				comment.deleted_at = now
		group = self.groups[post.group_id]
		group.posts_count = max(group.posts_count - 1, 0)
		return True

	async def set_post_pinned(self, post_id: UUID, pinned: bool) -> models.Post | None:
		post = await self.get_post(post_id)
		if post is None:
			return None
		post.is_pinned = pinned
		return post

	def _feed_posts(
		self,
		group_id: UUID,
		*,
		viewer_id: UUID,
		visibilities: Sequence[str],
		pinned_only: bool = False,
		post_type: PostType | None = None,
	) -> list[models.Post]:
		matches = []
		for post in self.posts.values():
			if post.group_id != group_id or post.deleted_at is not None or post.is_archived:
				continue
			if post.visibility.value not in visibilities and post.author_id != viewer_id:
				continue
			if pinned_only and not post.is_pinned:
				continue
			if post_type is not None and post.type != post_type:
				continue
			matches.append(post)
		matches.sort(key=lambda p: (p.created_at, p.id), reverse=True)
		return matches

	async def list_group_posts(
		self,
		group_id: UUID,
		*,
		viewer_id: UUID,
		visibilities: Sequence[str],
		limit: int,
		offset: int,
		pinned_only: bool = False,
		post_type: PostType | None = None,
	) -> models.PostPage:
		matches = self._feed_posts(
			group_id,
			viewer_id=viewer_id,
			visibilities=visibilities,
			pinned_only=pinned_only,
			post_type=post_type,
		)
		return models.PostPage(items=matches[offset : offset + limit], total=len(matches))

	async def count_unread_posts(self, group_id: UUID, *, viewer_id: UUID, visibilities: Sequence[str]) -> int:
		matches = self._feed_posts(group_id, viewer_id=viewer_id, visibilities=visibilities)
		return sum(1 for post in matches if (viewer_id, post.id) not in self.reads)

	async def get_read_post_ids(self, user_id: UUID, post_ids: Sequence[UUID]) -> set[UUID]:
		return {pid for pid in post_ids if (user_id, pid) in self.reads}

	async def get_liked_post_ids(self, user_id: UUID, post_ids: Sequence[UUID]) -> set[UUID]:
		return {pid for pid in post_ids if (user_id, pid) in self.likes}

	async def toggle_post_like(self, post_id: UUID, user_id: UUID) -> tuple[bool, int]:
		post = self.posts[post_id]
		key = (user_id, post_id)
		if key in self.likes:
			self.likes.discard(key)
			post.likes_count = max(post.likes_count - 1, 0)
			return False, post.likes_count
		self.likes.add(key)
		post.likes_count += 1
		return True, post.likes_count

	async def toggle_post_read(self, post_id: UUID, user_id: UUID) -> bool:
		key = (user_id, post_id)
		if key in self.reads:
			self.reads.discard(key)
			return False
		self.reads.add(key)
		return True

	# --- Comments ----------------------------------------------------------

	async def create_comment(self, *, post_id: UUID, author_id: UUID, content: str) -> models.Comment:
		now = self._now()
		comment = models.Comment(
			id=uuid4(),
			post_id=post_id,
			author_id=author_id,
			content=content,
			created_at=now,
			updated_at=now,
		)
		self.comments[comment.id] = comment
		self.posts[post_id].comments_count += 1
		return comment

	async def get_comment(self, comment_id: UUID) -> models.Comment | None:
		comment = self.comments.get(comment_id)
		if comment is None or comment.deleted_at is not None:
			return None
		return comment

	async def soft_delete_comment(self, comment: models.Comment) -> bool:
		current = await self.get_comment(comment.id)
		if current is None:
			return False
		current.deleted_at = self._now()
		post = self.posts[comment.post_id]
		post.comments_count = max(post.comments_count - 1, 0)
		return True

	async def list_comments(self, post_id: UUID, *, limit: int, offset: int) -> models.CommentPage:
		matches = sorted(
			(c for c in self.comments.values() if c.post_id == post_id and c.deleted_at is None),
			key=lambda c: (c.created_at, c.id),
		)
		return models.CommentPage(items=matches[offset : offset + limit], total=len(matches))


@pytest.fixture
def fake_repo() -> FakeCommunitiesRepository:
	return FakeCommunitiesRepository()


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from app.infra.redis import redis_client

	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	redis_client.set_client(client)
	try:
		yield client
	finally:
		redis_client.set_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def reset_search_cache():
	search_cache.set_search_cache(search_cache.InMemorySearchCache())
	try:
		yield
	finally:
		search_cache.set_search_cache(None)


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Ensure a consistent test environment.

	API tests authenticate via X-User-Id headers, which are only accepted in
	dev mode.
	"""
	original_env = settings.environment
	settings.environment = "dev"
	try:
		yield
	finally:
		settings.environment = original_env


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
