"""
Sessions: one authenticated connection to a single server.

A session connects its push channel, logs in as a bot, fetches the
server's channels and members, and from then on keeps them up to
date from push events.
"""

import enum
import logging
import typing
import urllib.parse

import trio

from .channel import PushChannel, socketio_factory
from .errors import (
    AuthError,
    ConnectError,
    GetChannelsError,
    GetMembersError,
    NotAuthenticatedError,
    PushChannelError,
    RequestError,
    SendMessageError,
    SessionStateError,
)
from .events import EventHub
from .gateway import RequestGateway
from .models import BotIdentity, Channel, Member, Message
from .options import LoginOptions, ServerConfig, Transport
from .router import EventRouter
from .store import StateStore

ChannelFactory = typing.Callable[[Transport], PushChannel]


class SessionState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    FAILED = "failed"
    CLOSED = "closed"


TRANSITIONS = {
    SessionState.IDLE: {SessionState.CONNECTING},
    SessionState.CONNECTING: {SessionState.CONNECTED, SessionState.FAILED},
    SessionState.CONNECTED: {SessionState.AUTHENTICATING, SessionState.FAILED},
    SessionState.AUTHENTICATING: {SessionState.READY, SessionState.FAILED},
    SessionState.READY: set(),
    SessionState.FAILED: {SessionState.CONNECTING},
    SessionState.CLOSED: set(),
}


class Session:
    """A connection to, and the known state of, one server."""

    def __init__(
        self,
        config: ServerConfig,
        hub: EventHub,
        key: typing.Optional[str] = None,
        gateway: typing.Optional[RequestGateway] = None,
        channel_factory: ChannelFactory = socketio_factory,
        logger: typing.Optional[logging.Logger] = None,
    ):
        """
        Arguments:
            config {ServerConfig} -- Where to connect, and with which token.
            hub {EventHub} -- Where application events are emitted to.

        Keyword Arguments:
            key {Optional[str]} -- The key this session is registered under.
                                   (default: config.key)

            gateway {Optional[RequestGateway]} -- The request gateway to use.
                                                  (default: one for config's transport)

            channel_factory {Callable[[Transport], PushChannel]} -- Makes the push
                                                  channel. (default: Socket.IO)
        """

        self.config = config
        self.key = key or config.key
        self.transport = config.transport()
        self.gateway = gateway or RequestGateway(self.transport)
        self.channel_factory = channel_factory
        self.logger = logger or logging.getLogger("termie.session")

        self.hub = hub
        self.events = EventHub()
        self.state = SessionState.IDLE
        self.channel = None  # type: typing.Optional[PushChannel]
        self.user = None  # type: typing.Optional[BotIdentity]

        self.store = StateStore(self)
        self.router = EventRouter(self, hub)

    def __repr__(self):
        return "{}({}, {})".format(type(self).__name__, self.key, self.state.value)

    @property
    def token(self) -> str:
        return self.config.token

    @property
    def channels(self) -> typing.Dict[str, Channel]:
        return self.store.channels

    @property
    def members(self) -> typing.Dict[typing.Union[int, str], Member]:
        return self.store.members

    def _transition(self, state: SessionState):
        if state is not SessionState.CLOSED and state not in TRANSITIONS[self.state]:
            raise SessionStateError(
                "{}: can't go from {} to {}".format(
                    self.key, self.state.value, state.value
                ),
                "illegalTransition",
            )

        self.logger.debug("%s: %s -> %s", self.key, self.state.value, state.value)
        self.state = state

    def require_identity(self) -> BotIdentity:
        if self.user is None:
            raise NotAuthenticatedError(
                "{} has not logged in yet".format(self.key), "notAuthenticated"
            )

        return self.user

    # === Connection and authentication ===

    async def _attempt(
        self, channel: PushChannel, url: str, timeout: float
    ) -> typing.Optional[str]:
        """Makes one connection attempt. Returns why it failed, if it did."""

        with trio.move_on_after(timeout):
            try:
                await channel.open(url, timeout)

            except PushChannelError as err:
                return str(err) or "connection refused"

            return None

        return "timed out after {}s".format(timeout)

    async def _abort(self, channel: PushChannel):
        channel.off_all()
        await channel.close()

        self.channel = None
        self._transition(SessionState.FAILED)

    async def connect(self, options: typing.Optional[LoginOptions] = None) -> PushChannel:
        """
        Opens this session's push channel, and waits for the
        server's verdict on the connection.

        Keyword Arguments:
            options {Optional[LoginOptions]} -- Attempts and timeouts.

        Raises:
            ConnectError: Every attempt failed (type 'noConnection'), or
                          the server refused the connection.

        Returns:
            PushChannel -- The connected channel.
        """

        options = options or LoginOptions()
        self._transition(SessionState.CONNECTING)

        channel = self.channel_factory(self.transport)
        results_in, results_out = trio.open_memory_channel(1)

        async def on_method_result(data):
            channel.off("methodResult", on_method_result)
            results_in.send_nowait(data or {})

        channel.on("methodResult", on_method_result)

        url = self.transport.url(self.config.hostname, self.config.port)
        attempts = 0

        while True:
            failure = await self._attempt(channel, url, options.timeout)

            if failure is None:
                break

            attempts += 1
            self.logger.warning(
                "%s: connection attempt %d/%d failed: %s",
                self.key,
                attempts,
                options.reconnection_attempts,
                failure,
            )

            if attempts >= options.reconnection_attempts:
                await self._abort(channel)
                raise ConnectError(
                    "Unable to establish connection to the server ({}) after {} attempts".format(
                        self.key, options.reconnection_attempts
                    ),
                    "noConnection",
                )

            await trio.sleep(options.reconnection_delay)

        result = None

        with trio.move_on_after(options.timeout):
            result = await results_out.receive()

        if result is None:
            await self._abort(channel)
            raise ConnectError(
                "{} sent no connection result".format(self.key), "noMethodResult"
            )

        if not result.get("success"):
            await self._abort(channel)
            raise ConnectError(result.get("message", ""), result.get("type"))

        self.channel = channel
        self._transition(SessionState.CONNECTED)

        return channel

    async def login(self, options: typing.Optional[LoginOptions] = None):
        """
        Connects, then logs in to the server, fetches its channels and
        members, and starts listening for changes.

        Emits 'ready' on this session's own events once done. Bulk fetch
        failures are emitted as 'error' on the application hub.

        Keyword Arguments:
            options {Optional[LoginOptions]} -- Attempts and timeouts.

        Raises:
            ConnectError: The connection failed, or dropped before logging in.
            AuthError: The server rejected the bot's token.
        """

        channel = await self.connect(options)
        self._transition(SessionState.AUTHENTICATING)

        results_in, results_out = trio.open_memory_channel(1)

        async def on_auth_result(data):
            channel.off("authResult", on_auth_result)
            results_in.send_nowait(data or {})

        channel.on("authResult", on_auth_result)

        try:
            await channel.emit("login", {"bot": True, "token": self.config.token})

        except PushChannelError as err:
            self.logger.error(
                "%s: connection lost before logging in: %s", self.key, err
            )
            await self._abort(channel)
            raise ConnectError(
                "Connection lost before logging in: {}".format(err.message),
                "connectionLost",
            ) from err

        result = await results_out.receive()

        if not result.get("success"):
            self.logger.error(
                "%s: authentication failed: %s", self.key, result.get("message")
            )
            await self._abort(channel)
            raise AuthError(result.get("message", ""), result.get("type"))

        channel.off_all()
        self.user = BotIdentity.from_payload(result.get("bot") or {})
        self.logger.info(
            "%s: logged in as %s#%s", self.key, self.user.username, self.user.tag
        )

        await self.sync()

        self.router.install(channel)
        self._transition(SessionState.READY)

        await self.events.emit("ready", self)

    async def sync(self):
        """
        Fetches channels, then members. Failures are reported
        as 'error' events rather than raised.
        """

        try:
            await self.store.fetch_channels()

        except GetChannelsError as err:
            self.logger.error("%s: could not fetch channels: %s", self.key, err)
            await self.hub.emit("error", err)

        try:
            await self.store.fetch_members(None, commit=True)

        except GetMembersError as err:
            self.logger.error("%s: could not fetch members: %s", self.key, err)
            await self.hub.emit("error", err)

    async def fetch_channels(self) -> typing.Dict[str, Channel]:
        return await self.store.fetch_channels()

    async def fetch_members(
        self, channel: typing.Optional[str] = None, commit: bool = False
    ) -> typing.Dict[typing.Union[int, str], Member]:
        return await self.store.fetch_members(channel, commit)

    async def close(self):
        """Closes the push channel. The session can't be used afterwards."""

        if self.channel is not None:
            self.channel.off_all()
            await self.channel.close()
            self.channel = None

        self._transition(SessionState.CLOSED)

    # === Requests ===

    async def request(
        self, method: str, path: str, body: typing.Any = None
    ) -> typing.Any:
        """Performs an authenticated request to this session's server."""

        content_type = (
            "application/x-www-form-urlencoded" if method == "GET" else "application/json"
        )
        headers = {
            "Content-Type": content_type,
            "Authorization": "Bot {}".format(self.config.token),
        }

        return await self.gateway.request(
            method, self.config.hostname, self.config.port, path, headers, body
        )

    def _sender_payload(self, content: str) -> dict:
        try:
            identity = self.require_identity()

        except NotAuthenticatedError as err:
            raise SendMessageError(err.message, err.type) from err

        return {
            "userID": identity.id,
            "uid": identity.uid,
            "username": identity.username,
            "tag": identity.tag,
            "msg": content,
            "sessionID": identity.session_id,
        }

    def _sent_message(
        self, data: typing.Any, content: str, channel: typing.Optional[Channel]
    ) -> Message:
        sent = data.get("message") if isinstance(data, dict) else None
        sent = sent if isinstance(sent, dict) else {}

        return Message(
            sent.get("msg", content),
            self.store.get_member(self.user.id),
            channel,
            sent.get("id"),
            self,
        )

    async def send_channel_message(self, channel: Channel, content: str) -> Message:
        """
        Posts a message to a channel.

        Raises:
            SendMessageError: The message could not be sent.

        Returns:
            Message -- The message, as the server echoed it back.
        """

        payload = self._sender_payload(content)
        path = "/channels/{}".format(urllib.parse.quote(channel.name, safe=""))

        try:
            data = await self.request("POST", path, payload)

        except RequestError as err:
            raise SendMessageError.from_request_error(err) from err

        return self._sent_message(data, content, channel)

    async def send_direct_message(self, member: Member, content: str) -> Message:
        """
        Sends a message directly to a member.

        Raises:
            SendMessageError: The message could not be sent.

        Returns:
            Message -- The message, as the server echoed it back.
        """

        if member.is_lurkers:
            raise SendMessageError("The lurkers can't be messaged", "invalidTarget")

        payload = self._sender_payload(content)
        path = "/members/{}".format(urllib.parse.quote(str(member.id), safe=""))

        try:
            data = await self.request("POST", path, payload)

        except RequestError as err:
            raise SendMessageError.from_request_error(err) from err

        return self._sent_message(data, content, None)
