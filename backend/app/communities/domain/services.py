"""Group lifecycle and group read views."""

from __future__ import annotations

import logging
import random
import re
import time
from uuid import UUID

from app.communities.domain import models, policies, repo as repo_module
from app.communities.domain.exceptions import ConflictError, NotFoundError
from app.communities.domain.models import GroupPrivacy, GroupRole, GroupType, MembershipStatus
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser
from app.obs import metrics as obs_metrics
from app.settings import settings

_LOG = logging.getLogger(__name__)

_SLUG_INVALID_RE = re.compile(r"[^a-z0-9]+")
_SLUG_CREATE_ATTEMPTS = 3


def slugify(name: str) -> str:
	slug = _SLUG_INVALID_RE.sub("-", name.lower()).strip("-")
	return slug or "group"


def _epoch_ms() -> int:
	return int(time.time() * 1000)


def group_to_response(group: models.Group) -> dto.GroupResponse:
	return dto.GroupResponse.model_validate(group.model_dump())


def group_meta(group: models.Group, member: models.GroupMember | None) -> dto.GroupMeta:
	role = policies.joined_role(member)
	return dto.GroupMeta(
		status=member.status if member else None,
		is_member=role is not None,
		is_admin=role in policies.MANAGER_ROLES,
		is_owner=role == GroupRole.OWNER,
		is_moderator=role == GroupRole.MODERATOR,
		is_restricted=role is None and group.privacy != GroupPrivacy.PUBLIC,
	)


def member_to_response(item: models.MemberWithUser) -> dto.MemberResponse:
	return dto.MemberResponse(
		user_id=item.member.user_id,
		role=item.member.role,
		status=item.member.status,
		joined_at=item.member.joined_at,
		user=dto.UserSummaryResponse.model_validate(item.user.model_dump()) if item.user else None,
	)


class CommunitiesService:
	"""Creates and deletes groups and serves the group-level read views."""

	def __init__(self, repository: repo_module.CommunitiesRepository | None = None) -> None:
		self.repo = repository or repo_module.CommunitiesRepository()

	# ------------------------------------------------------------------
	# Helpers

	async def _unique_slug(self, name: str, institution_id: UUID | None) -> str:
		base = slugify(name)
		if not await self.repo.slug_exists(base, institution_id=institution_id):
			return base
		candidate = f"{base}-{_epoch_ms()}"
		while await self.repo.slug_exists(candidate, institution_id=institution_id):
			candidate = f"{base}-{_epoch_ms()}-{random.randint(0, 999)}"
		return candidate

	@staticmethod
	def _offset(page: int, limit: int) -> int:
		policies.ensure_page_window(page, limit, max_limit=settings.feed_max_page_size)
		return (page - 1) * limit

	@staticmethod
	def _group_list(page_data: models.GroupPage, *, page: int, limit: int) -> dto.GroupListResponse:
		return dto.GroupListResponse(
			groups=[
				dto.GroupListItem(group=group_to_response(item.group), meta=dto.GroupStatusMeta(status=item.status))
				for item in page_data.items
			],
			pagination=dto.Pagination.build(total=page_data.total, page=page, limit=limit),
		)

	# ------------------------------------------------------------------
	# Lifecycle

	async def create_group(self, user: AuthenticatedUser, payload: dto.GroupCreateRequest) -> dto.GroupEnvelope:
		creator_id = UUID(user.id)
		settings_model = models.GroupSettings(**payload.settings.model_dump())
		for attempt in range(1, _SLUG_CREATE_ATTEMPTS + 1):
			slug = await self._unique_slug(payload.name, payload.institution_id)
			try:
				group, _ = await self.repo.create_group_with_owner(
					name=payload.name,
					slug=slug,
					description=payload.description,
					group_type=payload.type,
					privacy=payload.privacy,
					settings=settings_model,
					institution_id=payload.institution_id,
					avatar=payload.avatar,
					cover_image=payload.cover_image,
					creator_id=creator_id,
				)
				break
			except ConflictError:
				if attempt == _SLUG_CREATE_ATTEMPTS:
					raise
				_LOG.warning("group_slug_race", extra={"slug": slug, "attempt": attempt})
		obs_metrics.inc_community_groups_created()
		_LOG.info("group_created", extra={"group_id": str(group.id), "slug": group.slug, "user_id": user.id})
		return dto.GroupEnvelope(
			group=group_to_response(group),
			meta=dto.GroupMeta(
				status=MembershipStatus.JOINED,
				is_member=True,
				is_admin=True,
				is_owner=True,
			),
		)

	async def update_group(
		self,
		user: AuthenticatedUser,
		group_id: UUID,
		payload: dto.GroupUpdateRequest,
	) -> dto.GroupEnvelope:
		group = policies.require_group(await self.repo.get_group(group_id))
		member = await self.repo.get_member(group.id, UUID(user.id))
		policies.assert_can_manage_members(member)
		updated = await self.repo.update_group(
			group.id,
			description=payload.description,
			privacy=payload.privacy,
			settings=models.GroupSettings(**payload.settings.model_dump()) if payload.settings else None,
		)
		if updated is None:
			raise NotFoundError("group_not_found")
		return dto.GroupEnvelope(group=group_to_response(updated), meta=group_meta(updated, member))

	async def delete_group(self, user: AuthenticatedUser, group_id: UUID) -> dto.GroupDeletedResponse:
		actor_id = UUID(user.id)
		group = policies.require_group(await self.repo.get_group(group_id))
		policies.assert_is_owner(await self.repo.get_member(group.id, actor_id))
		if not await self.repo.soft_delete_group(group.id, deleted_by=actor_id):
			raise NotFoundError("group_not_found")
		obs_metrics.inc_community_groups_deleted()
		_LOG.info("group_deleted", extra={"group_id": str(group.id), "user_id": user.id})
		return dto.GroupDeletedResponse(group_id=group.id)

	# ------------------------------------------------------------------
	# Read views

	async def get_group(self, user: AuthenticatedUser, group_id: UUID) -> dto.GroupEnvelope:
		group = policies.require_group(await self.repo.get_group(group_id))
		member = await self.repo.get_member(group.id, UUID(user.id))
		return dto.GroupEnvelope(group=group_to_response(group), meta=group_meta(group, member))

	async def get_group_by_slug(
		self,
		user: AuthenticatedUser,
		slug: str,
		*,
		institution_id: UUID | None = None,
	) -> dto.GroupEnvelope:
		group = policies.require_group(await self.repo.get_group_by_slug(slug, institution_id=institution_id))
		member = await self.repo.get_member(group.id, UUID(user.id))
		return dto.GroupEnvelope(group=group_to_response(group), meta=group_meta(group, member))

	async def list_members(
		self,
		user: AuthenticatedUser,
		group_id: UUID,
		*,
		page: int = 1,
		limit: int = 20,
	) -> dto.MemberListResponse:
		offset = self._offset(page, limit)
		group = policies.require_group(await self.repo.get_group(group_id))
		member = await self.repo.get_member(group.id, UUID(user.id))
		if group.privacy == GroupPrivacy.PRIVATE:
			policies.require_joined(member)
		page_data = await self.repo.list_members(group.id, status=MembershipStatus.JOINED, limit=limit, offset=offset)
		return dto.MemberListResponse(
			members=[member_to_response(item) for item in page_data.items],
			pagination=dto.Pagination.build(total=page_data.total, page=page, limit=limit),
		)

	async def list_my_groups(self, user: AuthenticatedUser, *, page: int = 1, limit: int = 20) -> dto.GroupListResponse:
		return await self._list_by_status(user, MembershipStatus.JOINED, page=page, limit=limit)

	async def list_sent_requests(self, user: AuthenticatedUser, *, page: int = 1, limit: int = 20) -> dto.GroupListResponse:
		return await self._list_by_status(user, MembershipStatus.PENDING, page=page, limit=limit)

	async def list_invited_groups(self, user: AuthenticatedUser, *, page: int = 1, limit: int = 20) -> dto.GroupListResponse:
		return await self._list_by_status(user, MembershipStatus.INVITED, page=page, limit=limit)

	async def _list_by_status(
		self,
		user: AuthenticatedUser,
		status: MembershipStatus,
		*,
		page: int,
		limit: int,
	) -> dto.GroupListResponse:
		offset = self._offset(page, limit)
		page_data = await self.repo.list_groups_by_status(UUID(user.id), status, limit=limit, offset=offset)
		return self._group_list(page_data, page=page, limit=limit)

	async def list_university_groups(self, user: AuthenticatedUser, *, page: int = 1, limit: int = 20) -> dto.GroupListResponse:
		return await self._list_by_type(user, GroupType.OFFICIAL_INSTITUTION, page=page, limit=limit)

	async def list_career_groups(self, user: AuthenticatedUser, *, page: int = 1, limit: int = 20) -> dto.GroupListResponse:
		return await self._list_by_type(user, GroupType.JOBS_CAREERS, page=page, limit=limit)

	async def _list_by_type(
		self,
		user: AuthenticatedUser,
		group_type: GroupType,
		*,
		page: int,
		limit: int,
	) -> dto.GroupListResponse:
		offset = self._offset(page, limit)
		page_data = await self.repo.list_groups_by_type(UUID(user.id), group_type, limit=limit, offset=offset)
		return self._group_list(page_data, page=page, limit=limit)

	async def list_suggested_groups(self, user: AuthenticatedUser, *, page: int = 1, limit: int = 20) -> dto.GroupListResponse:
		offset = self._offset(page, limit)
		page_data = await self.repo.list_suggested_groups(UUID(user.id), limit=limit, offset=offset)
		return self._group_list(page_data, page=page, limit=limit)
