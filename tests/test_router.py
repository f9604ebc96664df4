import pytest

from termie.models import SERVER, Member
from termie.options import LoginOptions

FAST = LoginOptions(reconnection_delay=0)

SAMMY = {"uid": "sammy", "id": 2, "username": "Sammy", "tag": "0001"}
NEWCOMER = {"uid": "newcomer", "id": 7, "username": "Newcomer", "tag": "0007"}


@pytest.fixture
async def ready_session(session):
    await session.login(FAST)
    return session


@pytest.mark.trio
async def test_member_connect_inserts_unseen_members(ready_session, push, hub, recorder):
    seen = recorder(hub, "memberConnect")

    await push.push("memberConnect", {"member": dict(NEWCOMER)})

    member = ready_session.members[7]
    assert member.username == "Newcomer"
    assert member.session is ready_session
    assert seen == [("memberConnect", member)]


@pytest.mark.trio
async def test_repeated_member_connect_is_idempotent(ready_session, push, hub, recorder):
    seen = recorder(hub, "memberConnect")

    await push.push("memberConnect", {"member": dict(NEWCOMER)})
    size = len(ready_session.members)
    await push.push("memberConnect", {"member": dict(NEWCOMER)})

    assert len(ready_session.members) == size
    assert seen[0][1] is seen[1][1]


@pytest.mark.trio
async def test_member_connect_resolves_known_members(ready_session, push, hub, recorder):
    seen = recorder(hub, "memberConnect")
    known = ready_session.members[2]

    await push.push("memberConnect", {"member": dict(SAMMY, username="Renamed")})

    assert seen[0][1] is known


@pytest.mark.trio
async def test_member_disconnect_removes_known_members(
    ready_session, push, hub, recorder
):
    seen = recorder(hub, "memberDisconnect")
    known = ready_session.members[2]

    await push.push("memberDisconnect", {"member": dict(SAMMY)})

    assert 2 not in ready_session.members
    assert seen == [("memberDisconnect", known)]


@pytest.mark.trio
async def test_member_disconnect_of_unknown_member(ready_session, push, hub, recorder):
    seen = recorder(hub, "memberDisconnect")
    size = len(ready_session.members)

    await push.push("memberDisconnect", {"member": dict(NEWCOMER)})

    assert len(ready_session.members) == size
    transient = seen[0][1]
    assert isinstance(transient, Member)
    assert transient.id == 7
    assert transient.session is ready_session


@pytest.mark.trio
async def test_server_messages_are_authored_by_the_server(
    ready_session, push, hub, recorder
):
    seen = recorder(hub, "message")

    await push.push(
        "msg",
        {"msg": "Welcome!", "id": 1, "userID": 2, "channel": "General", "server": True},
    )

    message = seen[0][1]
    assert message.author is SERVER
    assert message.is_server_message
    assert message.channel is ready_session.channels["General"]


@pytest.mark.trio
async def test_member_messages_are_authored_by_the_stored_member(
    ready_session, push, hub, recorder
):
    seen = recorder(hub, "message")

    await push.push(
        "msg", {"msg": "hi", "id": 2, "userID": 2, "channel": "General"}
    )

    message = seen[0][1]
    assert message.author is ready_session.members[2]
    assert not message.is_server_message
    assert message.content == "hi"
    assert message.id == 2
    assert message.session is ready_session


@pytest.mark.trio
async def test_unknown_authors_and_channels(ready_session, push, hub, recorder):
    seen = recorder(hub, "message")

    await push.push("msg", {"msg": "?", "id": 3, "userID": 99, "channel": "Nowhere"})

    message = seen[0][1]
    assert message.author is None
    assert message.channel is None


@pytest.mark.trio
async def test_malformed_events_are_reported(ready_session, push, hub, recorder):
    seen = recorder(hub, "error", "memberConnect")
    size = len(ready_session.members)

    await push.push("memberConnect", {"nobody": True})
    await push.push("memberDisconnect", {"member": {"uid": "no id"}})
    await push.push("msg", "garbage")

    assert [kind for kind, _ in seen] == ["error", "error", "error"]
    assert len(ready_session.members) == size
