"""Comments on group posts."""

from __future__ import annotations

import logging
from uuid import UUID

from app.communities.domain import models, policies, repo as repo_module
from app.communities.domain.exceptions import ForbiddenError, NotFoundError
from app.communities.domain.posts_service import PostsService
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser
from app.obs import metrics as obs_metrics
from app.settings import settings

_LOG = logging.getLogger(__name__)


def _comment_to_response(comment: models.Comment, author: models.UserSummary | None) -> dto.CommentResponse:
	payload = comment.model_dump()
	payload["author"] = author.model_dump() if author else None
	return dto.CommentResponse.model_validate(payload)


class CommentsService:
	def __init__(
		self,
		repository: repo_module.CommunitiesRepository | None = None,
		posts: PostsService | None = None,
	) -> None:
		self.repo = repository or repo_module.CommunitiesRepository()
		self.posts = posts or PostsService(self.repo)

	async def list_comments(
		self,
		user: AuthenticatedUser,
		post_id: UUID,
		*,
		page: int = 1,
		limit: int = 20,
	) -> dto.CommentListResponse:
		policies.ensure_page_window(page, limit, max_limit=settings.feed_max_page_size)
		post, _, _ = await self.posts.load_visible_post(user, post_id)
		page_data = await self.repo.list_comments(post.id, limit=limit, offset=(page - 1) * limit)
		authors = await self.repo.get_users(comment.author_id for comment in page_data.items)
		return dto.CommentListResponse(
			comments=[_comment_to_response(item, authors.get(item.author_id)) for item in page_data.items],
			pagination=dto.Pagination.build(total=page_data.total, page=page, limit=limit),
		)

	async def create_comment(
		self,
		user: AuthenticatedUser,
		post_id: UUID,
		payload: dto.CommentCreateRequest,
	) -> dto.CommentResponse:
		author_id = UUID(user.id)
		post, group, member = await self.posts.load_visible_post(user, post_id)
		policies.require_joined(member)
		comment = await self.repo.create_comment(post_id=post.id, author_id=author_id, content=payload.content.strip())
		obs_metrics.inc_community_comments_created()
		_LOG.info("comment_created", extra={"group_id": str(group.id), "post_id": str(post.id), "comment_id": str(comment.id)})
		authors = await self.repo.get_users([author_id])
		return _comment_to_response(comment, authors.get(author_id))

	async def delete_comment(self, user: AuthenticatedUser, comment_id: UUID) -> dto.CommentDeletedResponse:
		viewer_id = UUID(user.id)
		comment = await self.repo.get_comment(comment_id)
		if comment is None:
			raise NotFoundError("comment_not_found")
		_, _, member = await self.posts.load_visible_post(user, comment.post_id)
		role = policies.joined_role(member)
		if comment.author_id != viewer_id and role not in policies.MANAGER_ROLES:
			raise ForbiddenError("comment_delete_forbidden")
		if not await self.repo.soft_delete_comment(comment):
			raise NotFoundError("comment_not_found")
		return dto.CommentDeletedResponse(comment_id=comment.id)
