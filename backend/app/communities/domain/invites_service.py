"""Batch invitations into a group."""

from __future__ import annotations

import logging
from uuid import UUID

from app.communities.domain import policies, repo as repo_module
from app.communities.domain.exceptions import ConflictError
from app.communities.domain.models import InviteOutcome, JoinMethod, MembershipStatus
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser
from app.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)


class InviteService:
	"""Creates INVITED memberships; each target is classified on its own."""

	def __init__(self, repository: repo_module.CommunitiesRepository | None = None) -> None:
		self.repo = repository or repo_module.CommunitiesRepository()

	async def invite_members(
		self,
		user: AuthenticatedUser,
		group_id: UUID,
		payload: dto.InviteMembersRequest,
	) -> dto.InviteMembersResponse:
		inviter_id = UUID(user.id)
		group = policies.require_group(await self.repo.get_group(group_id))
		policies.require_joined(await self.repo.get_member(group.id, inviter_id))

		results: list[dto.InviteResult] = []
		for target_id in dict.fromkeys(payload.user_ids):
			outcome = await self._invite_one(group.id, target_id, inviter_id)
			results.append(dto.InviteResult(user_id=target_id, status=outcome))

		invited = sum(1 for item in results if item.status == InviteOutcome.INVITED)
		if invited:
			obs_metrics.inc_membership_transition("invited", invited)
		_LOG.info(
			"members_invited",
			extra={"group_id": str(group.id), "actor_id": user.id, "invited": invited, "requested": len(results)},
		)
		return dto.InviteMembersResponse(results=results)

	async def _invite_one(self, group_id: UUID, target_id: UUID, inviter_id: UUID) -> InviteOutcome:
		if not await self.repo.user_exists(target_id):
			return InviteOutcome.NOT_FOUND
		existing = await self.repo.get_member(group_id, target_id)
		if existing is not None:
			if existing.status == MembershipStatus.BANNED:
				return InviteOutcome.BANNED
			return InviteOutcome.ALREADY_ASSOCIATED
		try:
			await self.repo.create_member(
				group_id,
				target_id,
				status=MembershipStatus.INVITED,
				join_method=JoinMethod.INVITE,
				invited_by=inviter_id,
			)
		except ConflictError:
			# Lost a race against a concurrent join or invite for the same user.
			return InviteOutcome.ALREADY_ASSOCIATED
		return InviteOutcome.INVITED
