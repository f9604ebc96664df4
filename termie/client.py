"""
The Client: termie's entry point for applications.

A Client holds one Session per configured server, logs them all in
concurrently, and gathers their events into a single stream.
"""

import logging
import typing

import attr
import trio

from .channel import socketio_factory
from .errors import CreateBotError, RequestError, TermieError
from .events import EventHub, ReadinessCoordinator
from .gateway import JSON_TYPE, RequestGateway
from .options import BotCreationOptions, LoginOptions, ServerConfig, Transport
from .session import ChannelFactory, Session, SessionState

GatewayFactory = typing.Callable[[Transport], RequestGateway]

# seconds to wait for push channels to close when leaving the client
CLOSE_TIMEOUT = 5.0


def session_key(base: str, existing: typing.Iterable[str]) -> str:
    """
    Picks the key a server is registered under. Repeated servers are
    suffixed with the number of keys that already contain their base key.

        >>> session_key('http://localhost:3000', [])
        'http://localhost:3000'
        >>> session_key('http://localhost:3000', ['http://localhost:3000'])
        'http://localhost:3000#1'
        >>> session_key(
        ...     'http://localhost:3000',
        ...     ['http://localhost:3000', 'http://localhost:3000#1'],
        ... )
        'http://localhost:3000#2'
    """

    existing = set(existing)

    if base not in existing:
        return base

    count = sum(1 for key in existing if base in key)
    key = "{}#{}".format(base, count)

    while key in existing:
        count += 1
        key = "{}#{}".format(base, count)

    return key


@attr.s(auto_attribs=True)
class _LoginRound:
    outcomes: trio.MemoryReceiveChannel
    failed: bool = False


class Client:
    """
    A bot client, connected to one or many servers.

    Use it as an async context manager; logins and other background
    work run inside it:

        async with Client(ServerConfig(token, 'http://localhost', 3000)) as client:
            @client.listen('message')
            async def on_message(kind, message):
                ...

            await client.login()
            await trio.sleep_forever()
    """

    def __init__(
        self,
        servers: typing.Union[ServerConfig, typing.Iterable[ServerConfig]],
        gateway_factory: typing.Optional[GatewayFactory] = None,
        channel_factory: ChannelFactory = socketio_factory,
        logger: typing.Optional[logging.Logger] = None,
    ):
        """
        Arguments:
            servers {Union[ServerConfig, Iterable[ServerConfig]]} -- The server to
                            connect to, or an iterable of them to connect to many.

        Keyword Arguments:
            gateway_factory {Optional[Callable[[Transport], RequestGateway]]} --
                            Makes each session's request gateway. (default: None,
                            i.e. an httpx gateway)

            channel_factory {Callable[[Transport], PushChannel]} -- Makes each
                            session's push channel. (default: Socket.IO)
        """

        self.hub = EventHub()
        self.sessions = {}  # type: typing.Dict[str, Session]
        self.gateway_factory = gateway_factory
        self.channel_factory = channel_factory
        self.logger = logger or logging.getLogger("termie.client")

        self._nursery = None  # type: typing.Optional[trio.Nursery]
        self._nursery_manager = None
        self._coordinator = None  # type: typing.Optional[ReadinessCoordinator]

        if isinstance(servers, ServerConfig):
            servers = [servers]

        for config in servers:
            self.add_server(config)

        if not self.sessions:
            raise ValueError("No servers were given")

    def __repr__(self):
        return "{}({} sessions)".format(type(self).__name__, len(self.sessions))

    def add_server(self, config: ServerConfig) -> Session:
        """
        Registers a server, keyed 'host:port', or 'host:port#N' if
        that server was already registered.
        """

        if self._coordinator is not None:
            raise RuntimeError("Can't add servers to a client that has logged in")

        key = session_key(config.key, self.sessions)
        gateway = (
            self.gateway_factory(config.transport()) if self.gateway_factory else None
        )

        session = Session(
            config,
            self.hub,
            key=key,
            gateway=gateway,
            channel_factory=self.channel_factory,
        )
        self.sessions[key] = session

        return session

    # === Lifecycle ===

    async def __aenter__(self) -> "Client":
        self._nursery_manager = trio.open_nursery()
        self._nursery = await self._nursery_manager.__aenter__()

        return self

    async def __aexit__(self, *exc_info):
        nursery_manager = self._nursery_manager
        self._nursery.cancel_scope.cancel()

        try:
            # the body may be leaving because an outer scope was cancelled
            with trio.move_on_after(CLOSE_TIMEOUT) as close_scope:
                close_scope.shield = True
                await self.close()

        finally:
            self._nursery = None
            self._nursery_manager = None
            suppress = await nursery_manager.__aexit__(*exc_info)

        return suppress

    def running(self) -> bool:
        return self._nursery is not None

    async def close(self):
        """Closes every session's push channel."""

        for session in self.sessions.values():
            await session.close()

        await self.hub.aclose()

    async def _on_session_ready(self, kind: str, session: Session):
        self.logger.info("%s is ready", session.key)

        if self._coordinator is not None and self._coordinator.complete(session.key):
            self.logger.info("All %d sessions are ready", len(self.sessions))
            await self.hub.emit("ready", self)

    async def _report_login_error(self, session: Session, err: TermieError):
        self.logger.error("%s failed to log in: %s", session.key, err)
        await self.hub.emit("error", err)

    async def _login_session(
        self,
        session: Session,
        options: LoginOptions,
        outcomes: trio.MemorySendChannel,
        login_round: _LoginRound,
    ):
        try:
            await session.login(options)

        except TermieError as err:
            if login_round.failed:
                await self._report_login_error(session, err)

            else:
                outcomes.send_nowait((session, err))

            return

        outcomes.send_nowait((session, None))

    async def login(self, options: typing.Optional[LoginOptions] = None):
        """
        Logs in to every server concurrently.

        Emits 'ready' once, after every session is ready. The first
        session to fail makes this raise right away; the others carry
        on, and report their own failures as 'error' events.

        Keyword Arguments:
            options {Optional[LoginOptions]} -- Attempts and timeouts.

        Raises:
            RuntimeError: The client isn't running (use 'async with client').
            ConnectError: A session could not connect.
            AuthError: A session's token was rejected.
        """

        if not self.running():
            raise RuntimeError(
                "Tried to log in while the client isn't running! Use 'async with'."
            )

        options = options or LoginOptions()

        if self._coordinator is None:
            self._coordinator = ReadinessCoordinator(len(self.sessions))

            # added last, so application listeners on a session run first
            for session in self.sessions.values():
                session.events.listen("ready")(self._on_session_ready)

        pending = [
            s
            for s in self.sessions.values()
            if s.state in (SessionState.IDLE, SessionState.FAILED)
        ]
        outcomes_in, outcomes_out = trio.open_memory_channel(len(pending))
        login_round = _LoginRound(outcomes_out)

        for session in pending:
            self._nursery.start_soon(
                self._login_session, session, options, outcomes_in, login_round
            )

        for _ in pending:
            session, err = await outcomes_out.receive()

            if err is not None:
                login_round.failed = True
                self._drain(login_round)
                raise err

    def _drain(self, login_round: _LoginRound):
        """Reports failures that were queued behind the first one."""

        while True:
            try:
                session, err = login_round.outcomes.receive_nowait()

            except trio.WouldBlock:
                return

            if err is not None:
                self._nursery.start_soon(self._report_login_error, session, err)

    # === Events ===

    def listen(self, name: str):
        """Adds a listener for an application event. See EventHub.listen."""
        return self.hub.listen(name)

    def listen_all(self):
        """Adds a listener for all application events."""
        return self.hub.listen_all()

    def events(self, buffer: int = 64) -> trio.MemoryReceiveChannel:
        """Subscribes to every application event as (kind, data) tuples."""
        return self.hub.subscribe(buffer)

    # === State ===

    def get_session(self, key: str) -> typing.Optional[Session]:
        return self.sessions.get(key)

    @property
    def session(self) -> Session:
        """The first registered session. Handy for single-server clients."""
        return next(iter(self.sessions.values()))

    @property
    def channels(self):
        return self.session.channels

    @property
    def members(self):
        return self.session.members

    @property
    def user(self):
        return self.session.user

    # === Provisioning ===

    @staticmethod
    async def create_bot(
        uid: str,
        username: str,
        tag: str,
        options: BotCreationOptions,
        gateway: typing.Optional[RequestGateway] = None,
    ) -> typing.Any:
        """
        Creates a new bot on a server, on behalf of its owner.

            await Client.create_bot(
                'BottyBot', 'BottyBotsUsername', '0001',
                BotCreationOptions('localhost', 3000, 'BestOwner', 'verySecurePassword'),
            )

        Raises:
            ValueError: Missing arguments or options.
            CreateBotError: The server refused, or the request failed.

        Returns:
            Any -- The server's response, containing the new bot's token.
        """

        if not uid or not username or not tag:
            raise ValueError("Not all bot create options were supplied.")

        if options is None:
            raise ValueError("No options provided.")

        if not options.hostname or not options.port:
            raise ValueError("Provide proper options.")

        if not options.owner_uid or not options.owner_password:
            raise ValueError("Please provide owner information.")

        gateway = gateway or RequestGateway(options.transport())

        try:
            return await gateway.request(
                "POST",
                options.hostname,
                options.port,
                "/bots/create",
                {"Content-Type": JSON_TYPE},
                {
                    "ownerUid": options.owner_uid,
                    "ownerPassword": options.owner_password,
                    "uid": uid,
                    "username": username,
                    "tag": tag,
                },
            )

        except RequestError as err:
            raise CreateBotError.from_request_error(err) from err
