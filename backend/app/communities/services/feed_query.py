"""Feed builder for group posts.

A page is produced in two passes: the visibility predicate selects and
orders the posts, then per-viewer context (read markers, likes, authors) is
batch-loaded for exactly the ids on that page.
"""

from __future__ import annotations

import asyncio
import time
from typing import Sequence
from uuid import UUID

from app.communities.domain import models, policies, repo as repo_module
from app.communities.domain.models import GroupRole, PostType
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser
from app.obs import metrics as obs_metrics
from app.settings import settings


def post_meta(post: models.Post, *, viewer_id: UUID, role: GroupRole | None, is_liked: bool, is_read: bool) -> dto.PostMeta:
    is_mine = post.author_id == viewer_id
    is_admin = role in policies.MANAGER_ROLES
    is_owner = role == GroupRole.OWNER
    return dto.PostMeta(
        is_liked=is_liked,
        is_saved=False,
        is_mine=is_mine,
        is_read=is_read,
        is_admin=is_admin,
        is_owner=is_owner,
        is_moderator=role == GroupRole.MODERATOR,
        can_delete=is_mine or is_admin or is_owner,
    )


def post_to_response(post: models.Post, author: models.UserSummary | None) -> dto.PostResponse:
    payload = post.model_dump()
    payload["author"] = author.model_dump() if author else None
    return dto.PostResponse.model_validate(payload)


class FeedQueryService:
    """Builds the group feed and its pinned and marketplace views."""

    def __init__(self, repository: repo_module.CommunitiesRepository | None = None) -> None:
        self.repo = repository or repo_module.CommunitiesRepository()

    async def get_group_feed(self, user: AuthenticatedUser, group_id: UUID, *, page: int = 1, limit: int = 10) -> dto.FeedResponse:
        return await self._build_page(user, group_id, page=page, limit=limit, view="feed")

    async def get_pinned_posts(self, user: AuthenticatedUser, group_id: UUID, *, page: int = 1, limit: int = 10) -> dto.FeedResponse:
        return await self._build_page(user, group_id, page=page, limit=limit, view="pinned", pinned_only=True)

    async def get_marketplace_posts(
        self,
        user: AuthenticatedUser,
        group_id: UUID,
        *,
        page: int = 1,
        limit: int = 10,
    ) -> dto.FeedResponse:
        return await self._build_page(
            user,
            group_id,
            page=page,
            limit=limit,
            view="marketplace",
            post_type=PostType.BUY_SELL,
        )

    async def get_unread_count(self, user: AuthenticatedUser, group_id: UUID) -> dto.UnreadCountResponse:
        viewer_id = UUID(user.id)
        group = policies.require_group(await self.repo.get_group(group_id))
        member = await self.repo.get_member(group.id, viewer_id)
        visibility = policies.visibility_filter(group, member, viewer_id)
        unread = await self.repo.count_unread_posts(
            group.id,
            viewer_id=viewer_id,
            visibilities=visibility.visibility_values,
        )
        return dto.UnreadCountResponse(group_id=group.id, unread=unread)

    async def _build_page(
        self,
        user: AuthenticatedUser,
        group_id: UUID,
        *,
        page: int,
        limit: int,
        view: str,
        pinned_only: bool = False,
        post_type: PostType | None = None,
    ) -> dto.FeedResponse:
        policies.ensure_page_window(page, limit, max_limit=settings.feed_max_page_size)
        viewer_id = UUID(user.id)
        group = policies.require_group(await self.repo.get_group(group_id))
        member = await self.repo.get_member(group.id, viewer_id)
        visibility = policies.visibility_filter(group, member, viewer_id)

        started = time.perf_counter()
        page_data = await self.repo.list_group_posts(
            group.id,
            viewer_id=viewer_id,
            visibilities=visibility.visibility_values,
            limit=limit,
            offset=(page - 1) * limit,
            pinned_only=pinned_only,
            post_type=post_type,
        )
        items = await self.build_items(page_data.items, viewer_id=viewer_id, member=member)
        obs_metrics.observe_feed_build(view, time.perf_counter() - started)
        return dto.FeedResponse(
            posts=items,
            pagination=dto.Pagination.build(total=page_data.total, page=page, limit=limit),
        )

    async def build_items(
        self,
        posts: Sequence[models.Post],
        *,
        viewer_id: UUID,
        member: models.GroupMember | None,
    ) -> list[dto.FeedItem]:
        """Attach viewer context to posts with one batched lookup per relation."""
        if not posts:
            return []
        post_ids = [post.id for post in posts]
        read_ids, liked_ids, authors = await asyncio.gather(
            self.repo.get_read_post_ids(viewer_id, post_ids),
            self.repo.get_liked_post_ids(viewer_id, post_ids),
            self.repo.get_users(post.author_id for post in posts),
        )
        role = policies.joined_role(member)
        return [
            dto.FeedItem(
                post=post_to_response(post, authors.get(post.author_id)),
                meta=post_meta(
                    post,
                    viewer_id=viewer_id,
                    role=role,
                    is_liked=post.id in liked_ids,
                    is_read=post.id in read_ids,
                ),
            )
            for post in posts
        ]
