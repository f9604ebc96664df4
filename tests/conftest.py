import typing

import attr
import pytest
import trio

from termie.channel import HandlerTable
from termie.errors import PushChannelError, RequestError
from termie.events import EventHub
from termie.options import ServerConfig
from termie.session import Session

TOKEN = "MTU5MjUwNDQzNTQ0OA==.MTI5NjA1NDgwMzk2OTIyODg="

BOT = {
    "uid": "Ayame",
    "id": 1,
    "username": "Ayame",
    "tag": "weeb",
    "sessionID": "s3ss10n",
}

MEMBERS = [
    {"uid": "Ayame", "id": 1, "username": "Ayame", "tag": "weeb", "bot": True},
    {"uid": "sammy", "id": 2, "username": "Sammy", "tag": "0001", "admin": True},
    {"lurkers": 3},
]


@attr.s(auto_attribs=True)
class FakePushChannel:
    """A push channel whose server side is scripted."""

    failures: int = 0
    method_result: typing.Optional[dict] = attr.Factory(lambda: {"success": True})
    auth_results: typing.List[dict] = attr.Factory(
        lambda: [{"success": True, "bot": dict(BOT)}]
    )
    table: HandlerTable = attr.Factory(HandlerTable)
    opens: int = 0
    closed: bool = False
    dropped: bool = False
    emitted: typing.List[tuple] = attr.Factory(list)

    async def open(self, url, timeout):
        self.opens += 1

        if self.opens <= self.failures:
            raise PushChannelError("connection refused", "noConnection")

        if self.method_result is not None:
            await self.table.dispatch("methodResult", self.method_result)

    def on(self, event, handler):
        self.table.add(event, handler)

    def off(self, event, handler=None):
        self.table.remove(event, handler)

    def off_all(self):
        self.table.clear()

    async def emit(self, event, data=None):
        if self.dropped:
            raise PushChannelError("not connected", "disconnected")

        self.emitted.append((event, data))

        if event == "login":
            for result in self.auth_results:
                await self.table.dispatch("authResult", result)

    async def close(self):
        await trio.lowlevel.checkpoint()
        self.closed = True

    async def push(self, event, data):
        """Simulates an inbound event from the server."""
        await self.table.dispatch(event, data)


@attr.s(auto_attribs=True)
class FakeGateway:
    """A request gateway answering from a table of (method, path) routes."""

    routes: typing.Dict[tuple, typing.Any] = attr.Factory(dict)
    calls: typing.List[tuple] = attr.Factory(list)

    async def request(self, method, host, port, path, headers=None, body=None):
        self.calls.append((method, path, headers, body))
        answer = self.routes.get((method, path))

        if callable(answer):
            answer = await answer(body)

        if isinstance(answer, RequestError):
            raise answer

        return answer


def default_routes():
    return {
        ("GET", "/channels"): {"channels": ["General", "Off Topic"]},
        ("GET", "/members"): {"members": [dict(m) for m in MEMBERS]},
    }


@pytest.fixture
def config():
    return ServerConfig(TOKEN, "http://localhost", 3000)


@pytest.fixture
def hub():
    return EventHub()


@pytest.fixture
def gateway():
    return FakeGateway(default_routes())


@pytest.fixture
def push():
    return FakePushChannel()


@pytest.fixture
def session(config, hub, gateway, push):
    return Session(config, hub, gateway=gateway, channel_factory=lambda t: push)


def record(hub: EventHub, *kinds: str) -> typing.List[tuple]:
    """Records the given kinds of events emitted on a hub."""
    seen = []

    async def _record(kind, data):
        seen.append((kind, data))

    for kind in kinds:
        hub.listen(kind)(_record)

    return seen


@pytest.fixture
def recorder():
    return record


@pytest.fixture
def make_push():
    return FakePushChannel


@pytest.fixture
def make_gateway():
    return lambda: FakeGateway(default_routes())
