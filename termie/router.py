"""
The event router: turns a session's inbound push events into state
mutations, and into events the application can observe.

Mutations happen under the session store's writer lock; events are
emitted after the lock is released, so listeners may themselves
refetch state.
"""

import logging
import typing

import attr

from .models import SERVER, Message

if typing.TYPE_CHECKING:
    from .channel import PushChannel
    from .events import EventHub
    from .session import Session


class MalformedEventError(ValueError):
    """An inbound push event lacked the data needed to handle it."""


def _member_record(payload: typing.Any) -> dict:
    record = payload.get("member") if isinstance(payload, dict) else None

    if not isinstance(record, dict) or record.get("id") is None:
        raise MalformedEventError("No member id in event: {}".format(repr(payload)))

    return record


@attr.s(auto_attribs=True)
class EventRouter:
    """Routes one session's inbound events."""

    session: "Session" = attr.ib(repr=False)
    hub: "EventHub" = attr.ib(repr=False)
    logger: logging.Logger = attr.Factory(lambda: logging.getLogger("termie.router"))

    def install(self, channel: "PushChannel"):
        """Subscribes to the steady-state events of a push channel."""
        channel.on("memberConnect", self.on_member_connect)
        channel.on("memberDisconnect", self.on_member_disconnect)
        channel.on("msg", self.on_message)

    async def _report(self, kind: str, err: Exception):
        self.logger.warning("%s: bad %s event: %s", self.session.key, kind, err)
        await self.hub.emit("error", err)

    async def on_member_connect(self, payload: typing.Any):
        try:
            record = _member_record(payload)

        except MalformedEventError as err:
            await self._report("memberConnect", err)
            return

        async with self.session.store.writing() as store:
            member = store.upsert_member(record)

        await self.hub.emit("memberConnect", member)

    async def on_member_disconnect(self, payload: typing.Any):
        try:
            record = _member_record(payload)

        except MalformedEventError as err:
            await self._report("memberDisconnect", err)
            return

        async with self.session.store.writing() as store:
            member = store.remove_member(record)

        await self.hub.emit("memberDisconnect", member)

    async def on_message(self, payload: typing.Any):
        if not isinstance(payload, dict):
            await self._report(
                "msg", MalformedEventError("Not a message: {}".format(repr(payload)))
            )
            return

        message = self.resolve_message(payload)
        await self.hub.emit("message", message)

    def resolve_message(self, payload: dict) -> Message:
        """Builds a Message from a message event, resolving its author and channel."""
        store = self.session.store
        is_server = bool(payload.get("server"))

        if is_server:
            author = SERVER

        else:
            author = store.get_member(payload.get("userID"))

        return Message(
            payload.get("msg"),
            author,
            store.get_channel(payload.get("channel")),
            payload.get("id"),
            self.session,
            is_server_message=is_server,
        )
