"""Authorization policies for communities operations."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from app.communities.domain import models
from app.communities.domain.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.communities.domain.models import GroupPrivacy, GroupRole, MembershipStatus, PostVisibility

ROLE_ORDER: tuple[GroupRole, ...] = (
	GroupRole.MEMBER,
	GroupRole.MODERATOR,
	GroupRole.ADMIN,
	GroupRole.OWNER,
)
MANAGER_ROLES = frozenset({GroupRole.OWNER, GroupRole.ADMIN})

# action -> (required current role, resulting role)
ROLE_CHANGES: dict[str, tuple[GroupRole, GroupRole]] = {
	"assign-admin": (GroupRole.MEMBER, GroupRole.ADMIN),
	"revoke-admin": (GroupRole.ADMIN, GroupRole.MEMBER),
	"promote-to-moderator": (GroupRole.MEMBER, GroupRole.MODERATOR),
	"promote-to-admin": (GroupRole.MODERATOR, GroupRole.ADMIN),
	"demote-to-moderator": (GroupRole.ADMIN, GroupRole.MODERATOR),
	"demote-to-member": (GroupRole.MODERATOR, GroupRole.MEMBER),
}


def role_rank(role: GroupRole | str | None) -> int:
	"""Numeric privilege of a role; 0 for no role."""
	if role is None:
		return 0
	return ROLE_ORDER.index(GroupRole(role)) + 1


def compare_roles(left: GroupRole | str | None, right: GroupRole | str | None) -> int:
	"""Total order over roles: negative, zero or positive like a cmp function."""
	return role_rank(left) - role_rank(right)


def outranks(actor: GroupRole | str | None, target: GroupRole | str | None) -> bool:
	return compare_roles(actor, target) > 0


def joined_role(member: models.GroupMember | None) -> GroupRole | None:
	"""Role that counts for authorization: only JOINED memberships carry one."""
	if member is None or not member.is_joined:
		return None
	return member.role


def require_group(group: models.Group | None) -> models.Group:
	if group is None or group.is_deleted:
		raise NotFoundError("group_not_found")
	return group


def require_member(member: models.GroupMember | None, *, detail: str = "membership_not_found") -> models.GroupMember:
	if member is None:
		raise NotFoundError(detail)
	return member


def require_joined(member: models.GroupMember | None) -> models.GroupMember:
	if member is None or joined_role(member) is None:
		raise ForbiddenError("membership_required")
	return member


def assert_can_manage_members(actor: models.GroupMember | None) -> GroupRole:
	role = joined_role(actor)
	if role not in MANAGER_ROLES:
		raise ForbiddenError("admin_role_required")
	return role


def assert_is_owner(actor: models.GroupMember | None) -> None:
	if joined_role(actor) != GroupRole.OWNER:
		raise ForbiddenError("owner_role_required")


def assert_can_leave(member: models.GroupMember) -> None:
	if member.role == GroupRole.OWNER:
		raise ForbiddenError("owner_must_transfer_ownership")
	if member.status == MembershipStatus.BANNED:
		raise ForbiddenError("member_banned")


def assert_can_remove(actor_role: GroupRole, target: models.GroupMember) -> None:
	if target.role == GroupRole.OWNER:
		raise ForbiddenError("owner_cannot_be_removed")
	if target.role == GroupRole.ADMIN and actor_role != GroupRole.OWNER:
		raise ForbiddenError("owner_role_required")
	if target.status == MembershipStatus.BANNED:
		raise ConflictError("member_banned")


def assert_can_moderate(actor: models.GroupMember | None) -> GroupRole:
	role = joined_role(actor)
	if role is None or role_rank(role) < role_rank(GroupRole.MODERATOR):
		raise ForbiddenError("moderator_role_required")
	return role


def assert_can_ban(actor_role: GroupRole, target: models.GroupMember) -> None:
	if not outranks(actor_role, target.role):
		raise ForbiddenError("insufficient_role_rank")
	if target.status != MembershipStatus.JOINED:
		raise ConflictError("member_not_joined")


def resolve_role_change(action: str) -> tuple[GroupRole, GroupRole]:
	try:
		return ROLE_CHANGES[action]
	except KeyError:
		raise ValidationError("unknown_role_action") from None


def assert_role_precondition(target: models.GroupMember, expected: GroupRole) -> None:
	if target.status != MembershipStatus.JOINED:
		raise ConflictError("member_not_joined")
	if target.role != expected:
		raise ConflictError(f"role_must_be_{expected.value.lower()}")


def can_delete_post(post: models.Post, viewer_id: UUID, role: GroupRole | None) -> bool:
	return post.author_id == viewer_id or role in MANAGER_ROLES


def assert_can_post(group: models.Group, member: models.GroupMember | None) -> models.GroupMember:
	member = require_joined(member)
	if member.role == GroupRole.MEMBER and not group.settings.allow_member_posting:
		raise ForbiddenError("member_posting_disabled")
	return member


def ensure_page_window(page: int, limit: int, *, max_limit: int = 50) -> None:
	if page < 1:
		raise ValidationError("page_out_of_range")
	if limit < 1 or limit > max_limit:
		raise ValidationError("limit_out_of_range")


@dataclass(frozen=True, slots=True)
class VisibilityFilter:
	"""Post eligibility for one viewer in one group.

	A post is visible when its visibility is in `visibilities` or the viewer
	authored it, whatever its visibility.
	"""

	viewer_id: UUID
	visibilities: frozenset[PostVisibility]
	is_member: bool

	def allows(self, post: models.Post) -> bool:
		return post.author_id == self.viewer_id or post.visibility in self.visibilities

	@property
	def visibility_values(self) -> list[str]:
		return sorted(v.value for v in self.visibilities)


_MEMBER_VISIBILITIES = frozenset({PostVisibility.PUBLIC, PostVisibility.CONNECTIONS})
_PUBLIC_VISIBILITIES = frozenset({PostVisibility.PUBLIC})


def visibility_filter(group: models.Group, member: models.GroupMember | None, viewer_id: UUID) -> VisibilityFilter:
	"""Build the feed predicate for a viewer, rejecting non-members of PRIVATE groups."""
	is_member = joined_role(member) is not None
	if group.privacy == GroupPrivacy.PRIVATE and not is_member:
		raise ForbiddenError("membership_required")
	# CONNECTIONS has no friend-graph check; joined members see it like PUBLIC.
	visibilities = _MEMBER_VISIBILITIES if is_member else _PUBLIC_VISIBILITIES
	return VisibilityFilter(viewer_id=viewer_id, visibilities=visibilities, is_member=is_member)
