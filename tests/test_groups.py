import asyncio

import pytest

from chatsync.exceptions import ConflictError, NotFoundError, UnauthorizedError, ValidationError


@pytest.fixture
async def group(core, users):
    return await core.groups.create_group("alice", "Weekend", member_ids=["bob"])


async def test_create_group(core, group):
    assert group.members == ["alice", "bob"]
    assert group.admins == ["alice"]
    assert group.is_active
    with pytest.raises(ValidationError):
        await core.groups.create_group("alice", "  ")
    with pytest.raises(NotFoundError):
        await core.groups.create_group("alice", "Ghosts", member_ids=["ghost"])


async def test_membership_changes_need_an_admin(core, group):
    with pytest.raises(UnauthorizedError):
        await core.groups.add_member(group.group_id, "bob", "carol")
    updated = await core.groups.add_member(group.group_id, "alice", "carol")
    assert updated.members == ["alice", "bob", "carol"]
    with pytest.raises(ConflictError):
        await core.groups.add_member(group.group_id, "alice", "carol")

    promoted = await core.groups.promote_admin(group.group_id, "alice", "bob")
    assert promoted.admins == ["alice", "bob"]
    removed = await core.groups.remove_member(group.group_id, "bob", "carol")
    assert "carol" not in removed.members


async def test_last_admin_cannot_leave_members_behind(core, group):
    with pytest.raises(ConflictError):
        await core.groups.leave_group(group.group_id, "alice")
    await core.groups.leave_group(group.group_id, "bob")
    emptied = await core.groups.leave_group(group.group_id, "alice")
    assert emptied.members == []
    assert not emptied.is_active


async def test_group_messages(core, group, clock):
    sent = await core.groups.send_group_message(group.group_id, "bob", text="hi all")
    with pytest.raises(UnauthorizedError):
        await core.groups.send_group_message(group.group_id, "carol", text="let me in")
    with pytest.raises(ValidationError):
        await core.groups.send_group_message(group.group_id, "bob", text=" ")

    refreshed = await core.groups.view_group(group.group_id, "alice")
    assert refreshed.last_message == "hi all"
    assert refreshed.last_message_sender_id == "bob"
    assert [m.message_id for m in await core.groups.get_messages(group.group_id, "alice")] == [sent.message_id]
    with pytest.raises(UnauthorizedError):
        await core.groups.get_messages(group.group_id, "carol")


async def test_only_creator_closes_group(core, group):
    with pytest.raises(UnauthorizedError):
        await core.groups.deactivate_group(group.group_id, "bob")
    closed = await core.groups.deactivate_group(group.group_id, "alice")
    assert not closed.is_active
    with pytest.raises(ValidationError):
        await core.groups.send_group_message(group.group_id, "alice", text="anyone?")
    assert await core.groups.list_for_user("bob") == []


async def test_list_for_user(core, group, clock):
    clock.advance(1000)
    other = await core.groups.create_group("bob", "Chess")
    clock.advance(1000)
    await core.groups.send_group_message(group.group_id, "alice", text="bump")

    assert [g.group_id for g in await core.groups.list_for_user("bob")] == [group.group_id, other.group_id]
    assert [g.group_id for g in await core.groups.list_for_user("alice")] == [group.group_id]


async def test_group_subscription(core, group):
    subscription = await core.groups.subscribe(group.group_id, "bob")
    await core.groups.send_group_message(group.group_id, "alice", image_url="https://cdn.example.com/p.png")
    received = await asyncio.wait_for(subscription.get(), 1)
    assert received.image_url == "https://cdn.example.com/p.png"
    subscription.cancel()
    with pytest.raises(UnauthorizedError):
        await core.groups.subscribe(group.group_id, "carol")


async def test_member_details_are_for_members(core, group):
    members = await core.groups.get_members(group.group_id, "bob")
    assert [m.uid for m in members] == ["alice", "bob"]
    assert members[0].display_name == "Alice"
    with pytest.raises(UnauthorizedError):
        await core.groups.get_members(group.group_id, "carol")
