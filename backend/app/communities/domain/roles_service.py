"""Role changes and ownership transfer; the OWNER is the sole authority."""

from __future__ import annotations

import logging
from uuid import UUID

from app.communities.domain import policies, repo as repo_module
from app.communities.domain.exceptions import ConflictError
from app.communities.domain.models import GroupRole
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser
from app.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)


class RoleService:
	def __init__(self, repository: repo_module.CommunitiesRepository | None = None) -> None:
		self.repo = repository or repo_module.CommunitiesRepository()

	async def change_role(
		self,
		user: AuthenticatedUser,
		group_id: UUID,
		target_user_id: UUID,
		action: str,
	) -> dto.RoleChangeResponse:
		"""Apply one of the named role transitions (see policies.ROLE_CHANGES)."""
		expected, new_role = policies.resolve_role_change(action)
		group = policies.require_group(await self.repo.get_group(group_id))
		policies.assert_is_owner(await self.repo.get_member(group.id, UUID(user.id)))
		target = policies.require_member(await self.repo.get_member(group.id, target_user_id))
		policies.assert_role_precondition(target, expected)
		updated = await self.repo.update_member_role(
			group.id,
			target_user_id,
			expected_role=expected,
			new_role=new_role,
		)
		if updated is None:
			raise ConflictError(f"role_must_be_{expected.value.lower()}")
		obs_metrics.inc_membership_transition(action)
		_LOG.info(
			"member_role_changed",
			extra={
				"group_id": str(group.id),
				"target_user_id": str(target_user_id),
				"from_role": expected.value,
				"to_role": new_role.value,
			},
		)
		return dto.RoleChangeResponse(user_id=target_user_id, role=updated.role)

	async def transfer_ownership(
		self,
		user: AuthenticatedUser,
		group_id: UUID,
		payload: dto.TransferOwnershipRequest,
	) -> dto.RoleChangeResponse:
		owner_id = UUID(user.id)
		group = policies.require_group(await self.repo.get_group(group_id))
		policies.assert_is_owner(await self.repo.get_member(group.id, owner_id))
		if payload.new_owner_id == owner_id:
			raise ConflictError("already_owner")
		target = policies.require_member(await self.repo.get_member(group.id, payload.new_owner_id))
		policies.assert_role_precondition(target, GroupRole.ADMIN)
		member = await self.repo.transfer_ownership(group.id, owner_id, payload.new_owner_id)
		obs_metrics.inc_membership_transition("ownership_transferred")
		_LOG.info(
			"group_ownership_transferred",
			extra={"group_id": str(group.id), "previous_owner_id": user.id, "new_owner_id": str(payload.new_owner_id)},
		)
		return dto.RoleChangeResponse(user_id=member.user_id, role=member.role)
