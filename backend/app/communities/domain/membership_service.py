"""Membership state machine: join, leave, remove and ban."""

from __future__ import annotations

import logging
from uuid import UUID

from app.communities.domain import policies, repo as repo_module
from app.communities.domain.exceptions import ConflictError, ForbiddenError, NotFoundError
from app.communities.domain.models import GroupPrivacy, JoinMethod, MembershipStatus
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser
from app.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)


class MembershipService:
	"""Moves a user's relationship to a group between NONE, PENDING, INVITED, JOINED and BANNED."""

	def __init__(self, repository: repo_module.CommunitiesRepository | None = None) -> None:
		self.repo = repository or repo_module.CommunitiesRepository()

	def _record(self, transition: str, group_id: UUID, user_id: UUID, **extra: object) -> None:
		obs_metrics.inc_membership_transition(transition)
		_LOG.info(
			"membership_transition",
			extra={"transition": transition, "group_id": str(group_id), "target_user_id": str(user_id), **extra},
		)

	async def join_group(self, user: AuthenticatedUser, group_id: UUID) -> dto.MembershipStatusResponse:
		user_id = UUID(user.id)
		group = policies.require_group(await self.repo.get_group(group_id))
		existing = await self.repo.get_member(group.id, user_id)
		if existing is not None:
			if existing.status == MembershipStatus.JOINED:
				raise ConflictError("already_member")
			if existing.status == MembershipStatus.PENDING:
				raise ConflictError("join_request_pending")
			if existing.status == MembershipStatus.BANNED:
				raise ForbiddenError("member_banned")
			member = await self.repo.activate_member(
				group.id,
				user_id,
				expected_status=MembershipStatus.INVITED,
				join_method=JoinMethod.INVITE,
			)
			if member is None:
				raise ConflictError("membership_changed")
			self._record("invite_accepted", group.id, user_id)
			return dto.MembershipStatusResponse(status=member.status)

		if group.privacy == GroupPrivacy.PUBLIC:
			member = await self.repo.create_member(
				group.id,
				user_id,
				status=MembershipStatus.JOINED,
				join_method=JoinMethod.DIRECT_JOIN,
			)
			self._record("joined", group.id, user_id)
		else:
			member = await self.repo.create_member(
				group.id,
				user_id,
				status=MembershipStatus.PENDING,
				join_method=JoinMethod.REQUEST_APPROVAL,
			)
			self._record("requested", group.id, user_id)
		return dto.MembershipStatusResponse(status=member.status)

	async def leave_group(self, user: AuthenticatedUser, group_id: UUID) -> dto.MembershipStatusResponse:
		user_id = UUID(user.id)
		group = policies.require_group(await self.repo.get_group(group_id))
		member = policies.require_member(await self.repo.get_member(group.id, user_id))
		policies.assert_can_leave(member)
		previous = await self.repo.delete_member(group.id, user_id, expected_status=member.status)
		if previous is None:
			raise NotFoundError("membership_not_found")
		self._record("left", group.id, user_id, previous_status=previous.value)
		return dto.MembershipStatusResponse(status=None)

	async def remove_member(
		self,
		user: AuthenticatedUser,
		group_id: UUID,
		target_user_id: UUID,
	) -> dto.MemberIdResponse:
		group = policies.require_group(await self.repo.get_group(group_id))
		actor_role = policies.assert_can_manage_members(await self.repo.get_member(group.id, UUID(user.id)))
		target = policies.require_member(await self.repo.get_member(group.id, target_user_id))
		policies.assert_can_remove(actor_role, target)
		previous = await self.repo.delete_member(group.id, target_user_id, expected_status=target.status)
		if previous is None:
			raise NotFoundError("membership_not_found")
		self._record("removed", group.id, target_user_id, actor_id=user.id)
		return dto.MemberIdResponse(member_id=target_user_id)

	async def ban_member(
		self,
		user: AuthenticatedUser,
		group_id: UUID,
		target_user_id: UUID,
	) -> dto.MemberIdResponse:
		group = policies.require_group(await self.repo.get_group(group_id))
		actor_role = policies.assert_can_moderate(await self.repo.get_member(group.id, UUID(user.id)))
		target = policies.require_member(await self.repo.get_member(group.id, target_user_id))
		policies.assert_can_ban(actor_role, target)
		if await self.repo.ban_member(group.id, target_user_id) is None:
			raise ConflictError("member_not_joined")
		self._record("banned", group.id, target_user_id, actor_id=user.id)
		return dto.MemberIdResponse(member_id=target_user_id)
