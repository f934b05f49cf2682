from __future__ import annotations

import pytest

from app.communities.domain.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.communities.domain.models import GroupRole, MembershipStatus
from app.communities.domain.roles_service import RoleService
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser


def _user(user_id) -> AuthenticatedUser:
	return AuthenticatedUser(id=str(user_id))


@pytest.mark.asyncio
async def test_owner_walks_member_up_and_down_the_ladder(fake_repo):
	owner = fake_repo.add_user()
	target = fake_repo.add_user()
	group = fake_repo.add_group(owner)
	fake_repo.add_member(group.id, target)
	service = RoleService(fake_repo)

	for action, expected in [
		("promote-to-moderator", GroupRole.MODERATOR),
		("promote-to-admin", GroupRole.ADMIN),
		("demote-to-moderator", GroupRole.MODERATOR),
		("demote-to-member", GroupRole.MEMBER),
		("assign-admin", GroupRole.ADMIN),
		("revoke-admin", GroupRole.MEMBER),
	]:
		response = await service.change_role(_user(owner), group.id, target, action)
		assert response.role == expected
		assert fake_repo.live_member(group.id, target).role == expected


@pytest.mark.asyncio
async def test_role_change_requires_exact_current_role(fake_repo):
	owner = fake_repo.add_user()
	target = fake_repo.add_user()
	group = fake_repo.add_group(owner)
	fake_repo.add_member(group.id, target)

	with pytest.raises(ConflictError) as excinfo:
		await RoleService(fake_repo).change_role(_user(owner), group.id, target, "revoke-admin")
	assert excinfo.value.detail == "role_must_be_admin"


@pytest.mark.asyncio
async def test_role_change_rejects_pending_target(fake_repo):
	owner = fake_repo.add_user()
	target = fake_repo.add_user()
	group = fake_repo.add_group(owner)
	fake_repo.add_member(group.id, target, status=MembershipStatus.PENDING)

	with pytest.raises(ConflictError) as excinfo:
		await RoleService(fake_repo).change_role(_user(owner), group.id, target, "assign-admin")
	assert excinfo.value.detail == "member_not_joined"


@pytest.mark.asyncio
async def test_only_owner_changes_roles(fake_repo):
	owner = fake_repo.add_user()
	admin = fake_repo.add_user()
	target = fake_repo.add_user()
	group = fake_repo.add_group(owner)
	fake_repo.add_member(group.id, admin, role=GroupRole.ADMIN)
	fake_repo.add_member(group.id, target)

	with pytest.raises(ForbiddenError):
		await RoleService(fake_repo).change_role(_user(admin), group.id, target, "promote-to-moderator")


@pytest.mark.asyncio
async def test_unknown_action_and_missing_target(fake_repo):
	owner = fake_repo.add_user()
	group = fake_repo.add_group(owner)
	service = RoleService(fake_repo)

	with pytest.raises(ValidationError):
		await service.change_role(_user(owner), group.id, owner, "crown")
	with pytest.raises(NotFoundError):
		await service.change_role(_user(owner), group.id, fake_repo.add_user(), "assign-admin")


@pytest.mark.asyncio
async def test_transfer_ownership_swaps_roles(fake_repo):
	owner = fake_repo.add_user()
	admin = fake_repo.add_user()
	group = fake_repo.add_group(owner)
	fake_repo.add_member(group.id, admin, role=GroupRole.ADMIN)

	response = await RoleService(fake_repo).transfer_ownership(
		_user(owner), group.id, dto.TransferOwnershipRequest(new_owner_id=admin)
	)

	assert response.user_id == admin
	assert response.role == GroupRole.OWNER
	assert fake_repo.live_member(group.id, owner).role == GroupRole.ADMIN
	assert fake_repo.groups[group.id].owner_id == admin
	owners = [m for m in fake_repo.members.values() if m.group_id == group.id and m.role == GroupRole.OWNER]
	assert len(owners) == 1


@pytest.mark.asyncio
async def test_transfer_ownership_requires_admin_target(fake_repo):
	owner = fake_repo.add_user()
	member = fake_repo.add_user()
	group = fake_repo.add_group(owner)
	fake_repo.add_member(group.id, member)
	service = RoleService(fake_repo)

	with pytest.raises(ConflictError) as excinfo:
		await service.transfer_ownership(_user(owner), group.id, dto.TransferOwnershipRequest(new_owner_id=member))
	assert excinfo.value.detail == "role_must_be_admin"

	with pytest.raises(ConflictError) as self_exc:
		await service.transfer_ownership(_user(owner), group.id, dto.TransferOwnershipRequest(new_owner_id=owner))
	assert self_exc.value.detail == "already_owner"
	assert fake_repo.live_member(group.id, owner).role == GroupRole.OWNER
