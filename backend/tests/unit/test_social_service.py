from __future__ import annotations

from uuid import uuid4

import pytest

from app.communities.domain.exceptions import ConflictError, NotFoundError, ValidationError
from app.communities.domain.models import FriendshipStatus
from app.communities.domain.social_service import FollowService, FriendshipService
from app.infra.auth import AuthenticatedUser


def _user(user_id) -> AuthenticatedUser:
	return AuthenticatedUser(id=str(user_id))


@pytest.mark.asyncio
async def test_friend_request_creates_pending_link_and_follow(fake_repo):
	alice = fake_repo.add_user()
	bob = fake_repo.add_user()

	response = await FriendshipService(fake_repo).send_request(_user(alice), bob)

	assert response.status == FriendshipStatus.PENDING
	assert response.user_id == bob
	link = fake_repo.friendships[response.friendship_id]
	assert (link.requester_id, link.addressee_id) == (alice, bob)
	assert (alice, bob) in fake_repo.follows


@pytest.mark.asyncio
async def test_friend_request_keeps_existing_follow(fake_repo):
	alice = fake_repo.add_user()
	bob = fake_repo.add_user()
	fake_repo.follows.add((alice, bob))

	await FriendshipService(fake_repo).send_request(_user(alice), bob)

	assert fake_repo.follows == {(alice, bob)}


@pytest.mark.asyncio
async def test_friend_request_rejects_self_and_unknown_users(fake_repo):
	alice = fake_repo.add_user()
	service = FriendshipService(fake_repo)

	with pytest.raises(ValidationError) as self_exc:
		await service.send_request(_user(alice), alice)
	with pytest.raises(NotFoundError) as missing_exc:
		await service.send_request(_user(alice), uuid4())

	assert self_exc.value.detail == "cannot_befriend_self"
	assert missing_exc.value.detail == "user_not_found"
	assert fake_repo.friendships == {}


@pytest.mark.asyncio
@pytest.mark.parametrize(
	("status", "from_target", "detail"),
	[
		(FriendshipStatus.ACCEPTED, False, "already_friends"),
		(FriendshipStatus.PENDING, False, "friend_request_already_sent"),
		(FriendshipStatus.PENDING, True, "friend_request_pending_from_user"),
	],
)
async def test_friend_request_conflicts_with_existing_link(fake_repo, status, from_target, detail):
	alice = fake_repo.add_user()
	bob = fake_repo.add_user()
	if from_target:
		fake_repo.add_friendship(bob, alice, status=status)
	else:
		fake_repo.add_friendship(alice, bob, status=status)

	with pytest.raises(ConflictError) as excinfo:
		await FriendshipService(fake_repo).send_request(_user(alice), bob)

	assert excinfo.value.detail == detail
	assert len(fake_repo.friendships) == 1


@pytest.mark.asyncio
async def test_only_the_addressee_accepts(fake_repo):
	alice = fake_repo.add_user()
	bob = fake_repo.add_user()
	link = fake_repo.add_friendship(alice, bob, status=FriendshipStatus.PENDING)
	service = FriendshipService(fake_repo)

	with pytest.raises(NotFoundError) as excinfo:
		await service.accept_request(_user(alice), bob)
	accepted = await service.accept_request(_user(bob), alice)

	assert excinfo.value.detail == "friend_request_not_found"
	assert accepted.status == FriendshipStatus.ACCEPTED
	assert fake_repo.friendships[link.id].accepted_at is not None


@pytest.mark.asyncio
async def test_reject_and_cancel_remove_pending_requests(fake_repo):
	alice = fake_repo.add_user()
	bob = fake_repo.add_user()
	carol = fake_repo.add_user()
	fake_repo.add_friendship(alice, bob, status=FriendshipStatus.PENDING)
	fake_repo.add_friendship(alice, carol, status=FriendshipStatus.PENDING)
	service = FriendshipService(fake_repo)

	rejected = await service.reject_request(_user(bob), alice)
	cancelled = await service.cancel_request(_user(alice), carol)

	assert rejected.status is None
	assert cancelled.user_id == carol
	assert fake_repo.friendships == {}
	with pytest.raises(NotFoundError):
		await service.cancel_request(_user(alice), carol)


@pytest.mark.asyncio
async def test_unfriend_requires_accepted_link(fake_repo):
	alice = fake_repo.add_user()
	bob = fake_repo.add_user()
	carol = fake_repo.add_user()
	fake_repo.add_friendship(bob, alice)
	fake_repo.add_friendship(alice, carol, status=FriendshipStatus.PENDING)
	service = FriendshipService(fake_repo)

	await service.unfriend(_user(alice), bob)
	with pytest.raises(NotFoundError) as excinfo:
		await service.unfriend(_user(alice), carol)

	assert excinfo.value.detail == "friendship_not_found"
	assert await fake_repo.get_friendship_between(alice, bob) is None
	assert await fake_repo.get_friendship_between(alice, carol) is not None


@pytest.mark.asyncio
async def test_list_views_split_friends_and_requests(fake_repo):
	me = fake_repo.add_user()
	friend = fake_repo.add_user(user_name="friend")
	incoming = fake_repo.add_user()
	outgoing = fake_repo.add_user()
	fake_repo.add_friendship(friend, me)
	fake_repo.add_friendship(incoming, me, status=FriendshipStatus.PENDING)
	fake_repo.add_friendship(me, outgoing, status=FriendshipStatus.PENDING)
	service = FriendshipService(fake_repo)

	friends = await service.list_friendships(_user(me))
	received = await service.list_friendships(_user(me), view="received")
	sent = await service.list_friendships(_user(me), view="sent")

	assert [item.user_id for item in friends.friendships] == [friend]
	assert friends.friendships[0].user.user_name == "friend"
	assert [item.user_id for item in received.friendships] == [incoming]
	assert [item.user_id for item in sent.friendships] == [outgoing]
	assert friends.pagination.total_docs == 1
	with pytest.raises(ValidationError):
		await service.list_friendships(_user(me), view="blocked")


@pytest.mark.asyncio
async def test_follow_lifecycle(fake_repo):
	alice = fake_repo.add_user()
	bob = fake_repo.add_user()
	service = FollowService(fake_repo)

	followed = await service.follow(_user(alice), bob)
	with pytest.raises(ConflictError) as duplicate:
		await service.follow(_user(alice), bob)
	counts = await service.follow_counts(_user(alice), bob)
	unfollowed = await service.unfollow(_user(alice), bob)
	with pytest.raises(NotFoundError) as missing:
		await service.unfollow(_user(alice), bob)

	assert followed.is_following is True
	assert duplicate.value.detail == "already_following"
	assert (counts.followers, counts.following, counts.is_following) == (1, 0, True)
	assert unfollowed.is_following is False
	assert missing.value.detail == "follow_not_found"


@pytest.mark.asyncio
async def test_follow_rejects_self_and_unknown_users(fake_repo):
	alice = fake_repo.add_user()
	service = FollowService(fake_repo)

	with pytest.raises(ValidationError):
		await service.follow(_user(alice), alice)
	with pytest.raises(NotFoundError):
		await service.follow(_user(alice), uuid4())

	assert fake_repo.follows == set()
