from __future__ import annotations

from uuid import uuid4

import pytest

from app.communities.domain.comments_service import CommentsService
from app.communities.domain.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.communities.domain.models import GroupPrivacy, GroupRole, PostType, PostVisibility
from app.communities.domain.posts_service import PostsService
from app.communities.schemas import dto
from app.infra.auth import AuthenticatedUser


def _user(user_id) -> AuthenticatedUser:
	return AuthenticatedUser(id=str(user_id))


@pytest.mark.asyncio
async def test_create_post_bumps_count_and_marks_read(fake_repo):
	owner = fake_repo.add_user()
	member = fake_repo.add_user()
	group = fake_repo.add_group(owner)
	fake_repo.add_member(group.id, member)

	item = await PostsService(fake_repo).create_post(
		_user(member),
		group.id,
		dto.PostCreateRequest(content="  Selling a bike  ", type=PostType.BUY_SELL, tags=["Bikes", "bikes", " "]),
	)

	assert item.post.content == "Selling a bike"
	assert item.post.tags == ["bikes"]
	assert item.meta.is_mine and item.meta.is_read and item.meta.can_delete
	assert fake_repo.groups[group.id].posts_count == 1


@pytest.mark.asyncio
async def test_poll_needs_two_options(fake_repo):
	owner = fake_repo.add_user()
	group = fake_repo.add_group(owner)
	service = PostsService(fake_repo)

	with pytest.raises(ValidationError) as excinfo:
		await service.create_post(
			_user(owner), group.id, dto.PostCreateRequest(content="Best day?", type=PostType.POLL, poll_options=["Mon"])
		)
	assert excinfo.value.detail == "poll_requires_two_options"

	item = await service.create_post(
		_user(owner),
		group.id,
		dto.PostCreateRequest(content="Best day?", type=PostType.POLL, poll_options=["Mon", "Fri"]),
	)
	assert item.post.poll_options == ["Mon", "Fri"]


@pytest.mark.asyncio
async def test_non_member_cannot_post(fake_repo):
	owner = fake_repo.add_user()
	group = fake_repo.add_group(owner)

	with pytest.raises(ForbiddenError):
		await PostsService(fake_repo).create_post(
			_user(fake_repo.add_user()), group.id, dto.PostCreateRequest(content="hi")
		)


@pytest.mark.asyncio
async def test_member_posting_disabled(fake_repo):
	owner = fake_repo.add_user()
	member = fake_repo.add_user()
	group = fake_repo.add_group(owner, allow_member_posting=False)
	fake_repo.add_member(group.id, member)

	with pytest.raises(ForbiddenError) as excinfo:
		await PostsService(fake_repo).create_post(_user(member), group.id, dto.PostCreateRequest(content="hi"))
	assert excinfo.value.detail == "member_posting_disabled"


@pytest.mark.asyncio
async def test_only_author_edits(fake_repo):
	owner = fake_repo.add_user()
	author = fake_repo.add_user()
	group = fake_repo.add_group(owner)
	fake_repo.add_member(group.id, author)
	post = fake_repo.add_post(group.id, author)
	service = PostsService(fake_repo)

	updated = await service.update_post(_user(author), post.id, dto.PostUpdateRequest(content="edited"))
	assert updated.post.content == "edited"
	assert updated.post.is_edited

	with pytest.raises(ForbiddenError) as excinfo:
		await service.update_post(_user(owner), post.id, dto.PostUpdateRequest(content="nope"))
	assert excinfo.value.detail == "post_author_required"


@pytest.mark.asyncio
async def test_hidden_post_reads_as_missing(fake_repo):
	owner = fake_repo.add_user()
	group = fake_repo.add_group(owner)
	post = fake_repo.add_post(group.id, owner, visibility=PostVisibility.ONLY_ME)

	with pytest.raises(NotFoundError) as excinfo:
		await PostsService(fake_repo).toggle_like(_user(fake_repo.add_user()), post.id)
	assert excinfo.value.detail == "post_not_found"


@pytest.mark.asyncio
async def test_delete_post_by_admin_cascades_comments(fake_repo):
	owner = fake_repo.add_user()
	admin = fake_repo.add_user()
	author = fake_repo.add_user()
	group = fake_repo.add_group(owner)
	fake_repo.add_member(group.id, admin, role=GroupRole.ADMIN)
	fake_repo.add_member(group.id, author)
	post = fake_repo.add_post(group.id, author)
	comment = await fake_repo.create_comment(post_id=post.id, author_id=author, content="first")

	response = await PostsService(fake_repo).delete_post(_user(admin), post.id)

	assert response.post_id == post.id
	assert fake_repo.comments[comment.id].deleted_at is not None
	assert fake_repo.groups[group.id].posts_count == 0


@pytest.mark.asyncio
async def test_moderator_cannot_delete_others_post(fake_repo):
	owner = fake_repo.add_user()
	moderator = fake_repo.add_user()
	group = fake_repo.add_group(owner)
	fake_repo.add_member(group.id, moderator, role=GroupRole.MODERATOR)
	post = fake_repo.add_post(group.id, owner)

	with pytest.raises(ForbiddenError):
		await PostsService(fake_repo).delete_post(_user(moderator), post.id)


@pytest.mark.asyncio
async def test_like_and_read_toggle_back_and_forth(fake_repo):
	owner = fake_repo.add_user()
	group = fake_repo.add_group(owner)
	post = fake_repo.add_post(group.id, owner)
	service = PostsService(fake_repo)
	user = _user(owner)

	liked = await service.toggle_like(user, post.id)
	unliked = await service.toggle_like(user, post.id)
	read = await service.toggle_read(user, post.id)
	unread = await service.toggle_read(user, post.id)

	assert (liked.is_liked, liked.likes_count) == (True, 1)
	assert (unliked.is_liked, unliked.likes_count) == (False, 0)
	assert read.is_read and not unread.is_read


@pytest.mark.asyncio
async def test_pin_toggle_requires_manager(fake_repo):
	owner = fake_repo.add_user()
	member = fake_repo.add_user()
	group = fake_repo.add_group(owner)
	fake_repo.add_member(group.id, member)
	post = fake_repo.add_post(group.id, member)
	service = PostsService(fake_repo)

	pinned = await service.toggle_pin(_user(owner), post.id)
	assert pinned.post.is_pinned

	with pytest.raises(ForbiddenError):
		await service.toggle_pin(_user(member), post.id)


@pytest.mark.asyncio
async def test_comments_flow(fake_repo):
	owner = fake_repo.add_user()
	member = fake_repo.add_user()
	group = fake_repo.add_group(owner)
	fake_repo.add_member(group.id, member)
	post = fake_repo.add_post(group.id, owner)
	service = CommentsService(fake_repo)

	first = await service.create_comment(_user(member), post.id, dto.CommentCreateRequest(content=" great "))
	await service.create_comment(_user(owner), post.id, dto.CommentCreateRequest(content="thanks"))
	listing = await service.list_comments(_user(member), post.id)

	assert first.content == "great"
	assert first.author.id == member
	assert [c.content for c in listing.comments] == ["great", "thanks"]
	assert fake_repo.posts[post.id].comments_count == 2

	with pytest.raises(ForbiddenError):
		await service.delete_comment(_user(member), listing.comments[1].id)
	deleted = await service.delete_comment(_user(owner), first.id)
	assert deleted.comment_id == first.id
	assert fake_repo.posts[post.id].comments_count == 1


@pytest.mark.asyncio
async def test_outsider_cannot_comment_or_read_private_comments(fake_repo):
	owner = fake_repo.add_user()
	outsider = fake_repo.add_user()
	public_group = fake_repo.add_group(owner)
	private_group = fake_repo.add_group(owner, name="Secret", privacy=GroupPrivacy.PRIVATE)
	public_post = fake_repo.add_post(public_group.id, owner)
	private_post = fake_repo.add_post(private_group.id, owner)
	service = CommentsService(fake_repo)

	with pytest.raises(ForbiddenError):
		await service.create_comment(_user(outsider), public_post.id, dto.CommentCreateRequest(content="hi"))
	with pytest.raises(ForbiddenError):
		await service.list_comments(_user(outsider), private_post.id)
	with pytest.raises(NotFoundError):
		await service.delete_comment(_user(owner), uuid4())
