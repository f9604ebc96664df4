import pytest
import trio
import trio.testing

from termie.models import LURKERS
from termie.options import LoginOptions

FAST = LoginOptions(reconnection_delay=0)


@pytest.mark.trio
async def test_one_lurker_entry_regardless_of_count(session, gateway):
    gateway.routes[("GET", "/members")] = {
        "members": [
            {"uid": "sammy", "id": 2, "username": "Sammy", "tag": "0001"},
            {"lurkers": 12},
        ]
    }
    await session.login(FAST)

    lurkers = [key for key in session.members if not isinstance(key, int)]
    assert lurkers == [LURKERS]
    assert session.members[LURKERS].uid == 12
    assert session.members[LURKERS].id is None
    assert session.store.lurkers is session.members[LURKERS]


@pytest.mark.trio
async def test_bulk_fetch_replaces_the_collection(session, gateway):
    await session.login(FAST)
    old = session.members

    gateway.routes[("GET", "/members")] = {
        "members": [{"uid": "new", "id": 3, "username": "New", "tag": "0003"}]
    }
    new = await session.fetch_members(commit=True)

    assert new is session.members
    assert new is not old
    assert set(new) == {3}


@pytest.mark.trio
async def test_uncommitted_fetch_leaves_state_alone(session, gateway):
    await session.login(FAST)
    members = dict(session.members)
    lurkers = session.members[LURKERS]

    gateway.routes[("GET", "/members")] = {
        "members": [
            {"uid": "sammy", "id": 2, "username": "Sammy", "tag": "0001"},
            {"lurkers": 1},
        ]
    }
    snapshot = await session.fetch_members("General")

    assert gateway.calls[-1][3] == {"sessionID": "s3ss10n", "channel": "General"}
    assert set(snapshot) == {2, LURKERS}
    assert snapshot[2] is not session.members[2]
    assert session.members == members
    assert session.members[LURKERS] is lurkers


@pytest.mark.trio
async def test_channel_refetch_replaces_channels(session, gateway):
    await session.login(FAST)
    gateway.routes[("GET", "/channels")] = {"channels": ["Announcements"]}

    channels = await session.fetch_channels()

    assert list(channels) == ["Announcements"]
    assert session.channels is channels


@pytest.mark.trio
async def test_records_without_ids_are_skipped(session, gateway):
    gateway.routes[("GET", "/members")] = {
        "members": [{"uid": "ghost"}, {"uid": "sammy", "id": 2}]
    }
    await session.login(FAST)

    assert set(session.members) == {2}


@pytest.mark.trio
async def test_events_during_a_bulk_fetch_are_not_lost(session, gateway, push, hub):
    await session.login(FAST)

    started = trio.Event()
    release = trio.Event()

    async def slow_members(body):
        started.set()
        await release.wait()
        return {"members": [{"uid": "sammy", "id": 2, "username": "Sammy"}]}

    gateway.routes[("GET", "/members")] = slow_members
    connected = []

    @hub.listen("memberConnect")
    async def on_connect(kind, member):
        connected.append(member)

    async with trio.open_nursery() as nursery:
        nursery.start_soon(session.fetch_members, None, True)
        await started.wait()

        nursery.start_soon(
            push.push, "memberConnect", {"member": {"uid": "late", "id": 9}}
        )
        await trio.testing.wait_all_tasks_blocked()

        assert not connected
        release.set()

    assert set(session.members) == {2, 9}
    assert connected == [session.members[9]]


def test_lookups(session):
    store = session.store
    store.members = store.build_members(
        [
            {"uid": "a", "id": 1, "username": "Sam", "tag": "0001"},
            {"uid": "b", "id": 2, "username": "Sam", "tag": "0002", "bot": 1},
            {"lurkers": 4},
        ]
    )

    assert store.get_member(1).uid == "a"
    assert store.get_member(3) is None
    assert store.find_member(lambda m: m.bot).id == 2
    assert set(store.filter_members(lambda m: not m.bot)) == {1, LURKERS}
    assert [m.tag for m in store.members_by_username("Sam")] == ["0001", "0002"]
    assert store.members[LURKERS].display_name == LURKERS
    assert store.members[2].display_name == "Sam#0002"
