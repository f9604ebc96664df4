"""
Application-visible event streams.

An EventHub is where sessions write events to, and where the
application listens on. Many sessions may write to the same hub.
"""

import logging
import typing

import attr
import trio

Listener = typing.Callable[[str, typing.Any], typing.Awaitable[None]]


@attr.s(auto_attribs=True)
class EventHub:
    """
    A fan-in event stream.

    Listeners are registered per event kind, or for every kind, and are
    awaited one after the other, in the order they were added. Subscribers created
    with subscribe() receive every event as a (kind, data) tuple.
    """

    listeners: typing.Dict[str, typing.Dict[Listener, None]] = attr.Factory(dict)
    global_listeners: typing.Dict[Listener, None] = attr.Factory(dict)
    subscribers: typing.List[trio.MemorySendChannel] = attr.Factory(list)
    logger: logging.Logger = attr.Factory(lambda: logging.getLogger("termie.events"))

    def listen(self, name: str):
        """Adds a listener for a specific kind of event.
        Use as a decorator generating method.

        Arguments:
            name {str} -- The kind of event to listen for.

        Returns:
            function -- The decorator method.
        """

        def _decorator(func):
            self.listeners.setdefault(name, {})[func] = None
            return func

        return _decorator

    def listen_all(self):
        """Adds a listener for all events.
        Use as a decorator generating method.

        Returns:
            function -- The decorator method.
        """

        def _decorator(func):
            self.global_listeners[func] = None
            return func

        return _decorator

    def unlisten(self, name: str, func: Listener):
        """Removes a listener added with listen."""
        self.listeners.get(name, {}).pop(func, None)

    def subscribe(self, buffer: int = 64) -> trio.MemoryReceiveChannel:
        """
        Opens a new subscription to every event emitted from now on.

        Closing the returned channel ends the subscription.

        Keyword Arguments:
            buffer {int} -- How many events may be pending before
                            emitters block on this subscriber. (default: 64)
        """
        send_channel, receive_channel = trio.open_memory_channel(buffer)
        self.subscribers.append(send_channel)

        return receive_channel

    async def emit(self, kind: str, data: typing.Any = None):
        """Emits an event to every interested listener and subscriber.

            >>> import trio
            >>> hub = EventHub()
            ...
            >>> @hub.listen('memberConnect')
            ... async def greet(kind, member):
            ...     print('Hello, {}!'.format(member))
            ...
            >>> trio.run(hub.emit, 'memberConnect', 'Ayame')
            Hello, Ayame!

        Arguments:
            kind {str} -- The kind of event.
            data {any} -- The event's data.
        """

        # specific listeners first, each listener at most once
        lists = dict(self.listeners.get(kind, {}))
        lists.update(self.global_listeners)

        for listener in lists:
            await listener(kind, data)

        for send_channel in list(self.subscribers):
            try:
                await send_channel.send((kind, data))

            except (trio.BrokenResourceError, trio.ClosedResourceError):
                self.subscribers.remove(send_channel)

    async def aclose(self):
        for send_channel in self.subscribers:
            await send_channel.aclose()

        self.subscribers.clear()


@attr.s(auto_attribs=True)
class ReadinessCoordinator:
    """
    Tracks which of a known number of participants are ready.

    complete() returns True exactly once: when the last
    outstanding participant becomes ready.

        >>> coordinator = ReadinessCoordinator(2)
        >>> coordinator.complete('a')
        False
        >>> coordinator.complete('a')
        False
        >>> coordinator.complete('b')
        True
        >>> coordinator.complete('b')
        False
    """

    total: int
    ready: typing.Set[str] = attr.Factory(set)
    fired: bool = False

    def complete(self, key: str) -> bool:
        self.ready.add(key)

        if self.fired or len(self.ready) < self.total:
            return False

        self.fired = True
        return True
