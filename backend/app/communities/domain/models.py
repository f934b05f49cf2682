"""Domain models for the communities subsystem."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class GroupRole(str, Enum):
	OWNER = "OWNER"
	ADMIN = "ADMIN"
	MODERATOR = "MODERATOR"
	MEMBER = "MEMBER"


class MembershipStatus(str, Enum):
	JOINED = "JOINED"
	PENDING = "PENDING"
	INVITED = "INVITED"
	BANNED = "BANNED"


class JoinMethod(str, Enum):
	CREATOR = "CREATOR"
	DIRECT_JOIN = "DIRECT_JOIN"
	REQUEST_APPROVAL = "REQUEST_APPROVAL"
	INVITE = "INVITE"


class GroupPrivacy(str, Enum):
	PUBLIC = "PUBLIC"
	PRIVATE = "PRIVATE"
	CLOSED = "CLOSED"


class GroupType(str, Enum):
	GENERAL = "GENERAL"
	OFFICIAL_INSTITUTION = "OFFICIAL_INSTITUTION"
	JOBS_CAREERS = "JOBS_CAREERS"


class PostType(str, Enum):
	GENERAL = "GENERAL"
	ANNOUNCEMENT = "ANNOUNCEMENT"
	RESOURCE = "RESOURCE"
	POLL = "POLL"
	QUESTION = "QUESTION"
	BUY_SELL = "BUY_SELL"


class PostVisibility(str, Enum):
	PUBLIC = "PUBLIC"
	CONNECTIONS = "CONNECTIONS"
	ONLY_ME = "ONLY_ME"


class GroupSettings(BaseModel):
	allow_member_posting: bool = True
	require_post_approval: bool = False


class Group(BaseModel):
	id: UUID
	institution_id: Optional[UUID] = None
	name: str
	slug: str
	description: str = ""
	avatar: Optional[str] = None
	cover_image: Optional[str] = None
	type: GroupType = GroupType.GENERAL
	privacy: GroupPrivacy = GroupPrivacy.PUBLIC
	settings: GroupSettings = Field(default_factory=GroupSettings)
	members_count: int = 0
	posts_count: int = 0
	owner_id: UUID
	created_by: UUID
	created_at: datetime
	updated_at: datetime
	deleted_at: Optional[datetime] = None
	deleted_by: Optional[UUID] = None

	model_config = ConfigDict(from_attributes=True)

	@property
	def is_deleted(self) -> bool:
		return self.deleted_at is not None


class GroupMember(BaseModel):
	id: UUID
	group_id: UUID
	user_id: UUID
	role: GroupRole = GroupRole.MEMBER
	status: MembershipStatus
	join_method: JoinMethod
	invited_by: Optional[UUID] = None
	joined_at: Optional[datetime] = None
	created_at: datetime
	updated_at: datetime
	deleted_at: Optional[datetime] = None

	model_config = ConfigDict(from_attributes=True)

	@property
	def is_joined(self) -> bool:
		return self.status == MembershipStatus.JOINED and self.deleted_at is None


class UserSummary(BaseModel):
	id: UUID
	full_name: str
	user_name: str
	avatar: Optional[str] = None

	model_config = ConfigDict(from_attributes=True)


class Post(BaseModel):
	id: UUID
	group_id: UUID
	author_id: UUID
	content: str
	type: PostType = PostType.GENERAL
	visibility: PostVisibility = PostVisibility.PUBLIC
	tags: List[str] = Field(default_factory=list)
	poll_options: List[str] = Field(default_factory=list)
	is_pinned: bool = False
	is_archived: bool = False
	is_edited: bool = False
	edited_at: Optional[datetime] = None
	likes_count: int = 0
	comments_count: int = 0
	created_at: datetime
	updated_at: datetime
	deleted_at: Optional[datetime] = None

	model_config = ConfigDict(from_attributes=True)


class Comment(BaseModel):
	id: UUID
	post_id: UUID
	author_id: UUID
	content: str
	likes_count: int = 0
	created_at: datetime
	updated_at: datetime
	deleted_at: Optional[datetime] = None

	model_config = ConfigDict(from_attributes=True)


class FriendshipStatus(str, Enum):
	PENDING = "PENDING"
	ACCEPTED = "ACCEPTED"


class InviteOutcome(str, Enum):
	INVITED = "INVITED"
	ALREADY_ASSOCIATED = "ALREADY_ASSOCIATED"
	BANNED = "BANNED"
	NOT_FOUND = "NOT_FOUND"


class Friendship(BaseModel):
	"""A friend link between two users; the requester initiated it."""

	id: UUID
	requester_id: UUID
	addressee_id: UUID
	status: FriendshipStatus
	created_at: datetime
	updated_at: datetime
	accepted_at: Optional[datetime] = None

	model_config = ConfigDict(from_attributes=True)

	def other(self, user_id: UUID) -> UUID:
		return self.addressee_id if self.requester_id == user_id else self.requester_id


class Follow(BaseModel):
	follower_id: UUID
	followee_id: UUID
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)


class PostPage(BaseModel):
	"""One page of posts plus the total count matching the same predicate."""

	items: List[Post]
	total: int


class GroupWithStatus(BaseModel):
	group: Group
	status: Optional[MembershipStatus] = None


class GroupPage(BaseModel):
	items: List[GroupWithStatus]
	total: int


class MemberWithUser(BaseModel):
	member: GroupMember
	user: Optional[UserSummary] = None


class MemberPage(BaseModel):
	items: List[MemberWithUser]
	total: int


class CommentPage(BaseModel):
	items: List[Comment]
	total: int


class FriendshipWithUser(BaseModel):
	friendship: Friendship
	user: Optional[UserSummary] = None


class FriendshipPage(BaseModel):
	items: List[FriendshipWithUser]
	total: int
