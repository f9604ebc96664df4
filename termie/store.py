"""
The state store: a session's channel and member collections.

There are exactly two ways state changes. A bulk fetch replaces a
whole collection; an incremental update (see termie.router) mutates
the existing one in place. Both go through the store's writer lock,
so a bulk fetch and a concurrent presence event can't interleave:
an event arriving mid-fetch is applied on top of the fresh collection.
"""

import contextlib
import logging
import typing

import attr
import trio

from .errors import GetChannelsError, GetMembersError, RequestError
from .models import LURKERS, Channel, Member, MemberId

if typing.TYPE_CHECKING:
    from .session import Session

Members = typing.Dict[MemberId, Member]
Channels = typing.Dict[str, Channel]


@attr.s(auto_attribs=True)
class StateStore:
    """The channels and members a session can see."""

    session: "Session" = attr.ib(repr=False)
    channels: Channels = attr.Factory(dict)
    members: Members = attr.Factory(dict)
    lock: trio.Lock = attr.Factory(trio.Lock)
    logger: logging.Logger = attr.Factory(lambda: logging.getLogger("termie.store"))

    @contextlib.asynccontextmanager
    async def writing(self):
        """Holds the store's single writer lock."""
        async with self.lock:
            yield self

    # === Bulk fetch ===

    async def fetch_channels(self) -> Channels:
        """
        Requests an updated channel list from the server, and replaces
        the channel collection with it.

        Raises:
            GetChannelsError: The channel list could not be fetched.
            NotAuthenticatedError: The session has not logged in yet.

        Returns:
            Dict[str, Channel] -- The new channel collection.
        """
        identity = self.session.require_identity()

        async with self.writing():
            try:
                data = await self.session.request(
                    "GET", "/channels", {"sessionID": identity.session_id}
                )

            except RequestError as err:
                raise GetChannelsError.from_request_error(err) from err

            try:
                names = list(data["channels"])

            except (KeyError, TypeError) as err:
                raise GetChannelsError(
                    "Malformed channel list: {}".format(repr(data)), "malformed"
                ) from err

            self.channels = {name: Channel(name, self.session) for name in names}

        self.logger.debug(
            "%s: fetched %d channels", self.session.key, len(self.channels)
        )
        return self.channels

    async def fetch_members(
        self, channel: typing.Optional[str] = None, commit: bool = False
    ) -> Members:
        """
        Requests an updated member list from the server.

        Keyword Arguments:
            channel {Optional[str]} -- Only fetch the members of this channel.
                                       (default: None, i.e. every member)

            commit {bool} -- Whether the fetched list replaces the session's
                             member collection. If not, it is returned as a
                             detached snapshot, and the session's collection
                             is left alone. (default: False)

        Raises:
            GetMembersError: The member list could not be fetched.
            NotAuthenticatedError: The session has not logged in yet.

        Returns:
            Dict[Union[int, str], Member] -- The fetched members, by id. The
                                             lurker aggregate, if any, is
                                             under the 'Lurkers' key.
        """
        identity = self.session.require_identity()
        query = {"sessionID": identity.session_id, "channel": channel}

        if not commit:
            return self.build_members(await self._request_members(query))

        async with self.writing():
            self.members = self.build_members(await self._request_members(query))

        self.logger.debug(
            "%s: fetched %d members", self.session.key, len(self.members)
        )
        return self.members

    async def _request_members(self, query: dict) -> typing.List[dict]:
        try:
            data = await self.session.request("GET", "/members", query)

        except RequestError as err:
            raise GetMembersError.from_request_error(err) from err

        try:
            return list(data["members"])

        except (KeyError, TypeError) as err:
            raise GetMembersError(
                "Malformed member list: {}".format(repr(data)), "malformed"
            ) from err

    def build_members(self, records: typing.Iterable[dict]) -> Members:
        """Builds a fresh member collection from member records."""
        members = {}

        for record in records:
            if record.get("lurkers") is not None and record.get("id") is None:
                members[LURKERS] = Member.lurkers(record, self.session)

            elif record.get("id") is not None:
                members[record["id"]] = Member.from_payload(record, self.session)

            else:
                self.logger.warning(
                    "%s: ignoring member record without an id: %r",
                    self.session.key,
                    record,
                )

        return members

    # === Incremental updates ===
    # Callers must hold the writer lock.

    def upsert_member(self, record: dict) -> Member:
        """Returns the stored member for a record, inserting it if unseen."""
        member = self.members.get(record["id"])

        if member is None:
            member = Member.from_payload(record, self.session)
            self.members[member.id] = member

        return member

    def remove_member(self, record: dict) -> Member:
        """
        Removes the member a record refers to. Returns the removed
        member, or a transient one built from the record if it was
        not known.
        """
        member = self.members.pop(record["id"], None)

        if member is None:
            member = Member.from_payload(record, self.session)

        return member

    # === Lookups ===

    def get_member(self, member_id: MemberId) -> typing.Optional[Member]:
        return self.members.get(member_id)

    def get_channel(self, name: str) -> typing.Optional[Channel]:
        return self.channels.get(name)

    @property
    def lurkers(self) -> typing.Optional[Member]:
        return self.members.get(LURKERS)

    def find_member(
        self, predicate: typing.Callable[[Member], bool]
    ) -> typing.Optional[Member]:
        """Returns the first member the predicate is true for, if any."""
        for member in self.members.values():
            if predicate(member):
                return member

        return None

    def filter_members(self, predicate: typing.Callable[[Member], bool]) -> Members:
        """Returns every member the predicate is true for, by id."""
        return {key: m for key, m in self.members.items() if predicate(m)}

    def members_by_username(self, username: str) -> typing.List[Member]:
        return [m for m in self.members.values() if m.username == username]
