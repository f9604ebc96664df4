"""
The entities a session keeps track of: channels, members and
the messages passing through them.

Every entity carries a reference to the one Session that owns it.
"""

import typing

import attr

from .errors import SendMessageError

if typing.TYPE_CHECKING:
    from .session import Session

MemberId = typing.Union[int, str]

LURKERS = "Lurkers"


class ServerSentinel:
    """
    The author of messages that originate from the server itself.

    There is only ever one instance, SERVER.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)

        return cls._instance

    def __repr__(self):
        return "SERVER"

    def __str__(self):
        return "Server"


SERVER = ServerSentinel()


@attr.s(auto_attribs=True, frozen=True)
class BotIdentity:
    """The bot's own identity on a server, as issued on login."""

    uid: str
    id: MemberId
    username: str
    tag: str
    session_id: str

    @classmethod
    def from_payload(cls, data: dict) -> "BotIdentity":
        return cls(
            data.get("uid"),
            data.get("id"),
            data.get("username"),
            data.get("tag"),
            data.get("sessionID"),
        )


@attr.s(auto_attribs=True, eq=False)
class Channel:
    """A channel on a server."""

    name: str
    session: "Session" = attr.ib(repr=False)

    async def send(self, content: str) -> "Message":
        """
        Sends a message to this channel.

        Raises:
            SendMessageError: The server refused the message, or
                              the request failed.
        """
        return await self.session.send_channel_message(self, content)


@attr.s(auto_attribs=True, eq=False)
class Member:
    """
    A member of a server.

    The aggregate lurker member has no id; its uid carries
    whatever the server reported for the anonymous observers.
    """

    uid: typing.Any
    id: typing.Optional[MemberId]
    username: typing.Optional[str]
    tag: typing.Optional[str]
    bot: bool
    admin: typing.Optional[bool]
    session: "Session" = attr.ib(repr=False)

    @classmethod
    def from_payload(cls, data: dict, session: "Session") -> "Member":
        return cls(
            data.get("uid"),
            data.get("id"),
            data.get("username"),
            data.get("tag"),
            bool(data.get("bot")),
            data.get("admin"),
            session,
        )

    @classmethod
    def lurkers(cls, data: dict, session: "Session") -> "Member":
        return cls(data.get("lurkers"), None, None, None, False, None, session)

    @property
    def is_lurkers(self) -> bool:
        return self.id is None

    @property
    def display_name(self) -> str:
        if self.is_lurkers:
            return LURKERS

        return "{}#{}".format(self.username, self.tag)

    async def send(self, content: str) -> "Message":
        """
        Sends a direct message to this member.

        Raises:
            SendMessageError: The server refused the message, the
                              request failed, or this is the lurker
                              aggregate, which can't be messaged.
        """
        return await self.session.send_direct_message(self, content)


@attr.s(auto_attribs=True, eq=False)
class Message:
    """A message, either received or sent."""

    content: str
    author: typing.Union[Member, ServerSentinel, None]
    channel: typing.Optional[Channel]
    id: typing.Optional[MemberId]
    session: "Session" = attr.ib(repr=False)
    is_server_message: bool = False

    async def reply(self, content: str) -> "Message":
        """Replies in the channel this message was sent in."""

        if self.channel is None:
            raise SendMessageError(
                "Can't reply to a message with no known channel", "unknownChannel"
            )

        return await self.channel.send(content)
