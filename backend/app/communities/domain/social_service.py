"""Friend requests and user follows."""

from __future__ import annotations

import logging
from uuid import UUID

from app.communities.domain import policies, repo as repo_module
from app.communities.domain.exceptions import ConflictError, NotFoundError, ValidationError
from app.communities.domain.models import FriendshipStatus, FriendshipWithUser
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser
from app.obs import metrics as obs_metrics
from app.settings import settings

_LOG = logging.getLogger(__name__)

_LIST_VIEWS: dict[str, tuple[FriendshipStatus, str]] = {
	"friends": (FriendshipStatus.ACCEPTED, "any"),
	"received": (FriendshipStatus.PENDING, "incoming"),
	"sent": (FriendshipStatus.PENDING, "outgoing"),
}


def friendship_to_response(item: FriendshipWithUser, viewer_id: UUID) -> dto.FriendshipResponse:
	link = item.friendship
	return dto.FriendshipResponse(
		friendship_id=link.id,
		status=link.status,
		user_id=link.other(viewer_id),
		created_at=link.created_at,
		accepted_at=link.accepted_at,
		user=dto.UserSummaryResponse.model_validate(item.user) if item.user else None,
	)


class FriendshipService:
	"""Two-sided friend links: request, accept, reject, cancel and unfriend."""

	def __init__(self, repository: repo_module.CommunitiesRepository | None = None) -> None:
		self.repo = repository or repo_module.CommunitiesRepository()

	async def _require_other_user(self, user_id: UUID, target_id: UUID) -> None:
		if user_id == target_id:
			raise ValidationError("cannot_befriend_self")
		if not await self.repo.user_exists(target_id):
			raise NotFoundError("user_not_found")

	async def send_request(self, user: AuthenticatedUser, target_id: UUID) -> dto.FriendshipActionResponse:
		"""Create a PENDING link and follow the target if not already following."""
		user_id = UUID(user.id)
		await self._require_other_user(user_id, target_id)
		existing = await self.repo.get_friendship_between(user_id, target_id)
		if existing is not None:
			if existing.status == FriendshipStatus.ACCEPTED:
				raise ConflictError("already_friends")
			if existing.requester_id == user_id:
				raise ConflictError("friend_request_already_sent")
			raise ConflictError("friend_request_pending_from_user")
		link = await self.repo.create_friend_request(user_id, target_id)
		if await self.repo.create_follow(user_id, target_id):
			obs_metrics.inc_social_transition("followed")
		obs_metrics.inc_social_transition("friend_requested")
		_LOG.info("friend_request_sent", extra={"user_id": user.id, "target_user_id": str(target_id)})
		return dto.FriendshipActionResponse(user_id=target_id, status=link.status, friendship_id=link.id)

	async def accept_request(self, user: AuthenticatedUser, requester_id: UUID) -> dto.FriendshipActionResponse:
		link = await self.repo.accept_friend_request(requester_id, UUID(user.id))
		if link is None:
			raise NotFoundError("friend_request_not_found")
		obs_metrics.inc_social_transition("friend_accepted")
		_LOG.info("friend_request_accepted", extra={"user_id": user.id, "requester_id": str(requester_id)})
		return dto.FriendshipActionResponse(user_id=requester_id, status=link.status, friendship_id=link.id)

	async def reject_request(self, user: AuthenticatedUser, requester_id: UUID) -> dto.FriendshipActionResponse:
		if not await self.repo.delete_friend_request(requester_id, UUID(user.id)):
			raise NotFoundError("friend_request_not_found")
		obs_metrics.inc_social_transition("friend_rejected")
		_LOG.info("friend_request_rejected", extra={"user_id": user.id, "requester_id": str(requester_id)})
		return dto.FriendshipActionResponse(user_id=requester_id, status=None)

	async def cancel_request(self, user: AuthenticatedUser, addressee_id: UUID) -> dto.FriendshipActionResponse:
		if not await self.repo.delete_friend_request(UUID(user.id), addressee_id):
			raise NotFoundError("friend_request_not_found")
		obs_metrics.inc_social_transition("friend_request_cancelled")
		_LOG.info("friend_request_cancelled", extra={"user_id": user.id, "target_user_id": str(addressee_id)})
		return dto.FriendshipActionResponse(user_id=addressee_id, status=None)

	async def unfriend(self, user: AuthenticatedUser, target_id: UUID) -> dto.FriendshipActionResponse:
		if not await self.repo.delete_friendship(UUID(user.id), target_id):
			raise NotFoundError("friendship_not_found")
		obs_metrics.inc_social_transition("unfriended")
		_LOG.info("unfriended", extra={"user_id": user.id, "target_user_id": str(target_id)})
		return dto.FriendshipActionResponse(user_id=target_id, status=None)

	async def list_friendships(
		self,
		user: AuthenticatedUser,
		*,
		view: str = "friends",
		page: int = 1,
		limit: int = 20,
	) -> dto.FriendshipListResponse:
		"""List accepted friends, or pending requests received or sent."""
		if view not in _LIST_VIEWS:
			raise ValidationError("invalid_friendship_view")
		policies.ensure_page_window(page, limit, max_limit=settings.feed_max_page_size)
		status, direction = _LIST_VIEWS[view]
		viewer_id = UUID(user.id)
		page_data = await self.repo.list_friendships(
			viewer_id,
			status=status,
			direction=direction,
			limit=limit,
			offset=(page - 1) * limit,
		)
		return dto.FriendshipListResponse(
			friendships=[friendship_to_response(item, viewer_id) for item in page_data.items],
			pagination=dto.Pagination.build(total=page_data.total, page=page, limit=limit),
		)


class FollowService:
	"""One-way user follows."""

	def __init__(self, repository: repo_module.CommunitiesRepository | None = None) -> None:
		self.repo = repository or repo_module.CommunitiesRepository()

	async def follow(self, user: AuthenticatedUser, target_id: UUID) -> dto.FollowStateResponse:
		user_id = UUID(user.id)
		if user_id == target_id:
			raise ValidationError("cannot_follow_self")
		if not await self.repo.user_exists(target_id):
			raise NotFoundError("user_not_found")
		if not await self.repo.create_follow(user_id, target_id):
			raise ConflictError("already_following")
		obs_metrics.inc_social_transition("followed")
		_LOG.info("user_followed", extra={"user_id": user.id, "target_user_id": str(target_id)})
		return dto.FollowStateResponse(user_id=target_id, is_following=True)

	async def unfollow(self, user: AuthenticatedUser, target_id: UUID) -> dto.FollowStateResponse:
		if not await self.repo.delete_follow(UUID(user.id), target_id):
			raise NotFoundError("follow_not_found")
		obs_metrics.inc_social_transition("unfollowed")
		_LOG.info("user_unfollowed", extra={"user_id": user.id, "target_user_id": str(target_id)})
		return dto.FollowStateResponse(user_id=target_id, is_following=False)

	async def follow_counts(self, user: AuthenticatedUser, target_id: UUID) -> dto.FollowCountsResponse:
		if not await self.repo.user_exists(target_id):
			raise NotFoundError("user_not_found")
		followers, following = await self.repo.count_follows(target_id)
		return dto.FollowCountsResponse(
			user_id=target_id,
			followers=followers,
			following=following,
			is_following=await self.repo.is_following(UUID(user.id), target_id),
		)
