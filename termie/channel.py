"""
The push channel: a persistent, bidirectional stream of named events
between a session and its server.

Sessions only rely on the PushChannel protocol. The Socket.IO
implementation uses the python-socketio asyncio client, and thus
requires trio_asyncio, since termie uses trio whereas python-socketio
uses asyncio; bridging keeps the asynchronous functionality seamless.
Run your application with trio_asyncio.run (or within
trio_asyncio.open_loop) when using it.
"""

import logging
import typing

import attr
import socketio
import trio_asyncio

from .errors import PushChannelError
from .options import Transport

Handler = typing.Callable[[typing.Any], typing.Awaitable[None]]


class PushChannel(typing.Protocol):
    """
    The push channel implementation protocol.

    Delivery of named events is assumed to be ordered and reliable;
    handlers for an event are awaited in registration order.
    """

    async def open(self, url: str, timeout: float):
        """
        Performs a single connection attempt.

        Raises:
            PushChannelError: The attempt failed.
        """
        ...

    def on(self, event: str, handler: Handler):
        """Registers a handler for an inbound event."""
        ...

    def off(self, event: str, handler: typing.Optional[Handler] = None):
        """Removes one handler, or every handler, of an inbound event."""
        ...

    def off_all(self):
        """Removes every handler of every event."""
        ...

    async def emit(self, event: str, data: typing.Any = None):
        """
        Sends an outbound event.

        Raises:
            PushChannelError: The channel isn't connected.
        """
        ...

    async def close(self):
        """Closes the channel. Closing twice is harmless."""
        ...


@attr.s(auto_attribs=True)
class HandlerTable:
    """The event handler bookkeeping shared by PushChannel implementations."""

    handlers: typing.Dict[str, typing.List[Handler]] = attr.Factory(dict)

    def add(self, event: str, handler: Handler) -> bool:
        """Adds a handler. Returns whether it's the event's first."""
        handlers = self.handlers.setdefault(event, [])
        handlers.append(handler)

        return len(handlers) == 1

    def remove(self, event: str, handler: typing.Optional[Handler] = None):
        if handler is None:
            self.handlers.pop(event, None)

        elif handler in self.handlers.get(event, ()):
            self.handlers[event].remove(handler)

    def clear(self):
        self.handlers.clear()

    async def dispatch(self, event: str, data: typing.Any):
        for handler in list(self.handlers.get(event, ())):
            await handler(data)


class SocketIOChannel:
    """
    A PushChannel over Socket.IO.

    python-socketio's own reconnection is disabled: retrying is
    up to the session, attempt by attempt.
    """

    def __init__(
        self,
        transport: Transport = Transport(),
        logger: typing.Optional[logging.Logger] = None,
    ):
        self.transport = transport
        self.logger = logger or logging.getLogger("termie.channel")
        self.table = HandlerTable()

        self.client = socketio.AsyncClient(
            reconnection=False,
            ssl_verify=self.transport.verify,
            logger=False,
            engineio_logger=False,
        )

    def _bridge(self, event: str):
        async def _inner(data=None):
            await trio_asyncio.trio_as_aio(self.table.dispatch)(event, data)

        return _inner

    async def open(self, url: str, timeout: float):
        try:
            await trio_asyncio.aio_as_trio(self.client.connect)(
                url, wait_timeout=timeout
            )

        except (socketio.exceptions.ConnectionError, OSError) as err:
            raise PushChannelError(str(err), "noConnection") from err

    def on(self, event: str, handler: Handler):
        if self.table.add(event, handler) and event not in self.client.handlers.get(
            "/", {}
        ):
            self.client.on(event, self._bridge(event))

    def off(self, event: str, handler: typing.Optional[Handler] = None):
        self.table.remove(event, handler)

    def off_all(self):
        self.table.clear()

    async def emit(self, event: str, data: typing.Any = None):
        try:
            await trio_asyncio.aio_as_trio(self.client.emit)(event, data)

        except (socketio.exceptions.SocketIOError, OSError) as err:
            raise PushChannelError(
                "Could not send {}: {}".format(event, err), "disconnected"
            ) from err

    async def close(self):
        if self.client.connected:
            try:
                await trio_asyncio.aio_as_trio(self.client.disconnect)()

            except (socketio.exceptions.SocketIOError, OSError) as err:
                self.logger.warning("Push channel did not close cleanly: %s", err)

        self.logger.debug("Push channel closed")


def socketio_factory(transport: Transport) -> PushChannel:
    """The default push channel factory."""
    return SocketIOChannel(transport)
