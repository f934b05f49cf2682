"""Pydantic schemas for communities API.

Payloads are camelCase on the wire; field names stay snake_case in Python.
"""

from __future__ import annotations

import json
import math
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.communities.domain.models import (
	GroupPrivacy,
	GroupRole,
	FriendshipStatus,
	GroupType,
	InviteOutcome,
	MembershipStatus,
	PostType,
	PostVisibility,
)


class CamelModel(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Pagination(CamelModel):
	total_docs: int
	limit: int
	page: int
	total_pages: int
	has_next_page: bool
	has_prev_page: bool

	@classmethod
	def build(cls, *, total: int, page: int, limit: int) -> "Pagination":
		total_pages = math.ceil(total / limit) if limit else 0
		return cls(
			total_docs=total,
			limit=limit,
			page=page,
			total_pages=total_pages,
			has_next_page=page < total_pages,
			has_prev_page=page > 1,
		)


class UserSummaryResponse(CamelModel):
	id: UUID
	full_name: str
	user_name: str
	avatar: Optional[str] = None


# --- Groups -----------------------------------------------------------------


class GroupSettingsPayload(CamelModel):
	allow_member_posting: bool = True
	require_post_approval: bool = False


def _coerce_settings(value):
	# Multipart forms send settings as a JSON string; unparsable input falls back to defaults.
	if isinstance(value, str):
		try:
			value = json.loads(value)
		except ValueError:
			return {}
	return value if value is not None else {}


class GroupCreateRequest(CamelModel):
	name: str = Field(..., min_length=3, max_length=80)
	description: str = Field(default="", max_length=2000)
	privacy: GroupPrivacy = GroupPrivacy.PUBLIC
	type: GroupType = GroupType.GENERAL
	settings: GroupSettingsPayload = Field(default_factory=GroupSettingsPayload)
	institution_id: Optional[UUID] = None
	avatar: Optional[str] = None
	cover_image: Optional[str] = None

	@field_validator("settings", mode="before")
	@classmethod
	def _parse_settings(cls, value):
		return _coerce_settings(value)


class GroupUpdateRequest(CamelModel):
	description: Optional[str] = Field(default=None, max_length=2000)
	privacy: Optional[GroupPrivacy] = None
	settings: Optional[GroupSettingsPayload] = None

	@field_validator("settings", mode="before")
	@classmethod
	def _parse_settings(cls, value):
		return None if value is None else _coerce_settings(value)


class GroupResponse(CamelModel):
	id: UUID
	institution_id: Optional[UUID] = None
	name: str
	slug: str
	description: str
	avatar: Optional[str] = None
	cover_image: Optional[str] = None
	type: GroupType
	privacy: GroupPrivacy
	settings: GroupSettingsPayload
	members_count: int
	posts_count: int
	owner_id: UUID
	created_by: UUID
	created_at: datetime
	updated_at: datetime


class GroupMeta(CamelModel):
	status: Optional[MembershipStatus] = None
	is_member: bool = False
	is_admin: bool = False
	is_owner: bool = False
	is_moderator: bool = False
	is_restricted: bool = False


class GroupEnvelope(CamelModel):
	group: GroupResponse
	meta: GroupMeta


class GroupStatusMeta(CamelModel):
	status: Optional[MembershipStatus] = None


class GroupListItem(CamelModel):
	group: GroupResponse
	meta: GroupStatusMeta


class GroupListResponse(CamelModel):
	groups: List[GroupListItem]
	pagination: Pagination


class GroupDeletedResponse(CamelModel):
	group_id: UUID


# --- Membership ---------------------------------------------------------------


class MembershipStatusResponse(CamelModel):
	status: Optional[MembershipStatus] = None


class MemberIdResponse(CamelModel):
	member_id: UUID


class RoleChangeResponse(CamelModel):
	user_id: UUID
	role: GroupRole


class TransferOwnershipRequest(CamelModel):
	new_owner_id: UUID


class InviteMembersRequest(CamelModel):
	user_ids: List[UUID] = Field(..., min_length=1, max_length=50)


class InviteResult(CamelModel):
	user_id: UUID
	status: InviteOutcome


class InviteMembersResponse(CamelModel):
	results: List[InviteResult]


class MemberResponse(CamelModel):
	user_id: UUID
	role: GroupRole
	status: MembershipStatus
	joined_at: Optional[datetime] = None
	user: Optional[UserSummaryResponse] = None


class MemberListResponse(CamelModel):
	members: List[MemberResponse]
	pagination: Pagination


# --- Posts ------------------------------------------------------------------


class PostCreateRequest(CamelModel):
	content: str = Field(..., min_length=1, max_length=5000)
	type: PostType = PostType.GENERAL
	visibility: PostVisibility = PostVisibility.PUBLIC
	tags: List[str] = Field(default_factory=list, max_length=10)
	poll_options: List[str] = Field(default_factory=list, max_length=10)


class PostUpdateRequest(CamelModel):
	content: Optional[str] = Field(default=None, min_length=1, max_length=5000)
	visibility: Optional[PostVisibility] = None
	tags: Optional[List[str]] = Field(default=None, max_length=10)


class PostResponse(CamelModel):
	id: UUID
	group_id: UUID
	author_id: UUID
	author: Optional[UserSummaryResponse] = None
	content: str
	type: PostType
	visibility: PostVisibility
	tags: List[str] = Field(default_factory=list)
	poll_options: List[str] = Field(default_factory=list)
	is_pinned: bool = False
	is_edited: bool = False
	edited_at: Optional[datetime] = None
	likes_count: int = 0
	comments_count: int = 0
	created_at: datetime
	updated_at: datetime


class PostMeta(CamelModel):
	is_liked: bool = False
	is_saved: bool = False
	is_mine: bool = False
	is_read: bool = False
	is_admin: bool = False
	is_owner: bool = False
	is_moderator: bool = False
	can_delete: bool = False


class FeedItem(CamelModel):
	post: PostResponse
	meta: PostMeta


class FeedResponse(CamelModel):
	posts: List[FeedItem]
	pagination: Pagination


class LikeToggleResponse(CamelModel):
	post_id: UUID
	is_liked: bool
	likes_count: int


class ReadToggleResponse(CamelModel):
	post_id: UUID
	is_read: bool


class PostDeletedResponse(CamelModel):
	post_id: UUID


class UnreadCountResponse(CamelModel):
	group_id: UUID
	unread: int


# --- Comments -----------------------------------------------------------------


class CommentCreateRequest(CamelModel):
	content: str = Field(..., min_length=1, max_length=2000)


class CommentResponse(CamelModel):
	id: UUID
	post_id: UUID
	author_id: UUID
	author: Optional[UserSummaryResponse] = None
	content: str
	likes_count: int = 0
	created_at: datetime


class CommentListResponse(CamelModel):
	comments: List[CommentResponse]
	pagination: Pagination


class CommentDeletedResponse(CamelModel):
	comment_id: UUID


# --- Social graph -------------------------------------------------------------


class FriendshipResponse(CamelModel):
	friendship_id: UUID
	status: FriendshipStatus
	user_id: UUID
	created_at: datetime
	accepted_at: Optional[datetime] = None
	user: Optional[UserSummaryResponse] = None


class FriendshipListResponse(CamelModel):
	friendships: List[FriendshipResponse]
	pagination: Pagination


class FriendshipActionResponse(CamelModel):
	user_id: UUID
	status: Optional[FriendshipStatus] = None
	friendship_id: Optional[UUID] = None


class FollowStateResponse(CamelModel):
	user_id: UUID
	is_following: bool


class FollowCountsResponse(CamelModel):
	user_id: UUID
	followers: int
	following: int
	is_following: bool = False


# --- Search -------------------------------------------------------------------


class UserHit(CamelModel):
	id: UUID
	full_name: str
	user_name: str
	avatar: Optional[str] = None
	institution: Optional[str] = None


class PostHit(CamelModel):
	id: UUID
	group_id: UUID
	content: str
	type: PostType
	likes_count: int = 0
	comments_count: int = 0
	created_at: datetime
	author: Optional[UserSummaryResponse] = None


class GroupHit(CamelModel):
	id: UUID
	name: str
	slug: str
	description: str = ""
	avatar: Optional[str] = None
	type: GroupType
	privacy: GroupPrivacy
	members_count: int = 0
	posts_count: int = 0
	institution: Optional[str] = None


class InstitutionHit(CamelModel):
	id: UUID
	name: str
	short_name: Optional[str] = None
	city: Optional[str] = None
	country: Optional[str] = None


class DepartmentHit(CamelModel):
	id: UUID
	name: str
	code: Optional[str] = None
	institution: Optional[str] = None


class CommentHit(CamelModel):
	id: UUID
	post_id: UUID
	content: str
	likes_count: int = 0
	created_at: datetime
	author: Optional[UserSummaryResponse] = None
	post_excerpt: str = ""


class SearchResults(CamelModel):
	users: List[UserHit] = Field(default_factory=list)
	posts: List[PostHit] = Field(default_factory=list)
	groups: List[GroupHit] = Field(default_factory=list)
	institutions: List[InstitutionHit] = Field(default_factory=list)
	departments: List[DepartmentHit] = Field(default_factory=list)
	comments: List[CommentHit] = Field(default_factory=list)


class SearchCounts(CamelModel):
	users: int = 0
	posts: int = 0
	groups: int = 0
	institutions: int = 0
	departments: int = 0
	comments: int = 0

	def total(self) -> int:
		return self.users + self.posts + self.groups + self.institutions + self.departments + self.comments


class SearchMeta(CamelModel):
	query: str
	type: str
	took_ms: int = 0


class SearchResponse(CamelModel):
	results: SearchResults
	counts: SearchCounts
	pagination: Pagination
	category_pagination: Dict[str, Pagination] = Field(default_factory=dict)
	meta: SearchMeta


class Suggestion(CamelModel):
	type: str
	text: str
	subtitle: str = ""


class SuggestionsResponse(CamelModel):
	suggestions: List[Suggestion]
	pagination: Pagination
	meta: SearchMeta
