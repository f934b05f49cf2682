"""Group posts: creation, edits, deletion, likes, read markers and pins."""

from __future__ import annotations

import logging
from uuid import UUID

from app.communities.domain import models, policies, repo as repo_module
from app.communities.domain.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.communities.domain.models import PostType
from app.communities.schemas import dto
from app.communities.services import feed_query as feed_query_service
from app.infra.auth import AuthenticatedUser
from app.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)


def _clean_tags(tags: list[str]) -> list[str]:
	return list(dict.fromkeys(tag.strip().lower() for tag in tags if tag.strip()))


class PostsService:
	def __init__(
		self,
		repository: repo_module.CommunitiesRepository | None = None,
		feed_query: feed_query_service.FeedQueryService | None = None,
	) -> None:
		self.repo = repository or repo_module.CommunitiesRepository()
		self.feed_query = feed_query or feed_query_service.FeedQueryService(self.repo)

	async def load_visible_post(
		self,
		user: AuthenticatedUser,
		post_id: UUID,
	) -> tuple[models.Post, models.Group, models.GroupMember | None]:
		"""Resolve a post the caller may see; hidden posts read as missing."""
		viewer_id = UUID(user.id)
		post = await self.repo.get_post(post_id)
		if post is None:
			raise NotFoundError("post_not_found")
		group = policies.require_group(await self.repo.get_group(post.group_id))
		member = await self.repo.get_member(group.id, viewer_id)
		visibility = policies.visibility_filter(group, member, viewer_id)
		if not visibility.allows(post):
			raise NotFoundError("post_not_found")
		return post, group, member

	async def create_post(
		self,
		user: AuthenticatedUser,
		group_id: UUID,
		payload: dto.PostCreateRequest,
	) -> dto.FeedItem:
		author_id = UUID(user.id)
		group = policies.require_group(await self.repo.get_group(group_id))
		member = policies.assert_can_post(group, await self.repo.get_member(group.id, author_id))
		poll_options = [option.strip() for option in payload.poll_options if option.strip()]
		if payload.type == PostType.POLL:
			if len(poll_options) < 2:
				raise ValidationError("poll_requires_two_options")
		else:
			poll_options = []
		post = await self.repo.create_post(
			group_id=group.id,
			author_id=author_id,
			content=payload.content.strip(),
			post_type=payload.type,
			visibility=payload.visibility,
			tags=_clean_tags(payload.tags),
			poll_options=poll_options,
		)
		obs_metrics.inc_community_posts_created()
		_LOG.info("group_post_created", extra={"group_id": str(group.id), "post_id": str(post.id), "type": post.type.value})
		items = await self.feed_query.build_items([post], viewer_id=author_id, member=member)
		return items[0]

	async def update_post(
		self,
		user: AuthenticatedUser,
		post_id: UUID,
		payload: dto.PostUpdateRequest,
	) -> dto.FeedItem:
		viewer_id = UUID(user.id)
		post, _, member = await self.load_visible_post(user, post_id)
		if post.author_id != viewer_id:
			raise ForbiddenError("post_author_required")
		updated = await self.repo.update_post(
			post.id,
			content=payload.content.strip() if payload.content is not None else None,
			visibility=payload.visibility,
			tags=_clean_tags(payload.tags) if payload.tags is not None else None,
			mark_edited=payload.content is not None or payload.tags is not None,
		)
		if updated is None:
			raise NotFoundError("post_not_found")
		items = await self.feed_query.build_items([updated], viewer_id=viewer_id, member=member)
		return items[0]

	async def delete_post(self, user: AuthenticatedUser, post_id: UUID) -> dto.PostDeletedResponse:
		viewer_id = UUID(user.id)
		post, group, member = await self.load_visible_post(user, post_id)
		if not policies.can_delete_post(post, viewer_id, policies.joined_role(member)):
			raise ForbiddenError("post_delete_forbidden")
		if not await self.repo.soft_delete_post(post):
			raise NotFoundError("post_not_found")
		_LOG.info("group_post_deleted", extra={"group_id": str(group.id), "post_id": str(post.id), "actor_id": user.id})
		return dto.PostDeletedResponse(post_id=post.id)

	async def toggle_like(self, user: AuthenticatedUser, post_id: UUID) -> dto.LikeToggleResponse:
		post, _, _ = await self.load_visible_post(user, post_id)
		is_liked, likes_count = await self.repo.toggle_post_like(post.id, UUID(user.id))
		obs_metrics.inc_community_reaction("like" if is_liked else "unlike")
		return dto.LikeToggleResponse(post_id=post.id, is_liked=is_liked, likes_count=likes_count)

	async def toggle_read(self, user: AuthenticatedUser, post_id: UUID) -> dto.ReadToggleResponse:
		post, _, _ = await self.load_visible_post(user, post_id)
		is_read = await self.repo.toggle_post_read(post.id, UUID(user.id))
		return dto.ReadToggleResponse(post_id=post.id, is_read=is_read)

	async def toggle_pin(self, user: AuthenticatedUser, post_id: UUID) -> dto.FeedItem:
		post, group, member = await self.load_visible_post(user, post_id)
		policies.assert_can_manage_members(member)
		updated = await self.repo.set_post_pinned(post.id, not post.is_pinned)
		if updated is None:
			raise NotFoundError("post_not_found")
		_LOG.info(
			"group_post_pin_toggled",
			extra={"group_id": str(group.id), "post_id": str(post.id), "pinned": updated.is_pinned},
		)
		items = await self.feed_query.build_items([updated], viewer_id=UUID(user.id), member=member)
		return items[0]
