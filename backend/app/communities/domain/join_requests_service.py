"""Join request handling for PRIVATE and CLOSED groups."""

from __future__ import annotations

import logging
from uuid import UUID

from app.communities.domain import policies, repo as repo_module
from app.communities.domain.exceptions import ConflictError, NotFoundError
from app.communities.domain.models import MembershipStatus
from app.communities.domain.services import member_to_response
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser
from app.obs import metrics as obs_metrics
from app.settings import settings

_LOG = logging.getLogger(__name__)


class JoinRequestService:
	"""Cancel, list, accept and reject PENDING memberships."""

	def __init__(self, repository: repo_module.CommunitiesRepository | None = None) -> None:
		self.repo = repository or repo_module.CommunitiesRepository()

	async def cancel_request(self, user: AuthenticatedUser, group_id: UUID) -> dto.MembershipStatusResponse:
		user_id = UUID(user.id)
		group = policies.require_group(await self.repo.get_group(group_id))
		member = await self.repo.get_member(group.id, user_id)
		if member is None or member.status != MembershipStatus.PENDING:
			raise NotFoundError("join_request_not_found")
		if await self.repo.delete_member(group.id, user_id, expected_status=MembershipStatus.PENDING) is None:
			raise NotFoundError("join_request_not_found")
		obs_metrics.inc_membership_transition("request_cancelled")
		_LOG.info("join_request_cancelled", extra={"group_id": str(group.id), "user_id": user.id})
		return dto.MembershipStatusResponse(status=None)

	async def list_requests(
		self,
		user: AuthenticatedUser,
		group_id: UUID,
		*,
		page: int = 1,
		limit: int = 20,
	) -> dto.MemberListResponse:
		policies.ensure_page_window(page, limit, max_limit=settings.feed_max_page_size)
		group = policies.require_group(await self.repo.get_group(group_id))
		policies.assert_can_manage_members(await self.repo.get_member(group.id, UUID(user.id)))
		page_data = await self.repo.list_members(
			group.id,
			status=MembershipStatus.PENDING,
			limit=limit,
			offset=(page - 1) * limit,
		)
		return dto.MemberListResponse(
			members=[member_to_response(item) for item in page_data.items],
			pagination=dto.Pagination.build(total=page_data.total, page=page, limit=limit),
		)

	async def _load_pending(self, user: AuthenticatedUser, group_id: UUID, target_user_id: UUID) -> UUID:
		group = policies.require_group(await self.repo.get_group(group_id))
		policies.assert_can_manage_members(await self.repo.get_member(group.id, UUID(user.id)))
		target = policies.require_member(
			await self.repo.get_member(group.id, target_user_id),
			detail="join_request_not_found",
		)
		if target.status != MembershipStatus.PENDING:
			raise ConflictError("join_request_not_pending")
		return group.id

	async def accept_request(
		self,
		user: AuthenticatedUser,
		group_id: UUID,
		target_user_id: UUID,
	) -> dto.MembershipStatusResponse:
		gid = await self._load_pending(user, group_id, target_user_id)
		member = await self.repo.activate_member(gid, target_user_id, expected_status=MembershipStatus.PENDING)
		if member is None:
			raise ConflictError("join_request_not_pending")
		obs_metrics.inc_membership_transition("request_accepted")
		_LOG.info(
			"join_request_accepted",
			extra={"group_id": str(gid), "target_user_id": str(target_user_id), "actor_id": user.id},
		)
		return dto.MembershipStatusResponse(status=member.status)

	async def reject_request(
		self,
		user: AuthenticatedUser,
		group_id: UUID,
		target_user_id: UUID,
	) -> dto.MembershipStatusResponse:
		gid = await self._load_pending(user, group_id, target_user_id)
		if await self.repo.delete_member(gid, target_user_id, expected_status=MembershipStatus.PENDING) is None:
			raise ConflictError("join_request_not_pending")
		obs_metrics.inc_membership_transition("request_rejected")
		_LOG.info(
			"join_request_rejected",
			extra={"group_id": str(gid), "target_user_id": str(target_user_id), "actor_id": user.id},
		)
		return dto.MembershipStatusResponse(status=None)
