"""
The termie error taxonomy.

Connection and authentication errors are fatal to a session's login,
bulk fetch errors are merely reported, and send errors always reach
whoever tried to send.
"""

import typing


class TermieError(Exception):
    """
    A common superclass for all
    exceptions regarding termie.
    """

    def __init__(self, message: str = "", type: typing.Optional[str] = None):
        super().__init__(message)

        self.message = message
        self.type = type


# == Session lifecycle errors ==


class ConnectError(TermieError):
    """
    Raised when a session can't establish its push channel, either
    because every connection attempt failed (type 'noConnection') or
    because the server rejected the connection.
    """


class AuthError(TermieError):
    """
    Raised when the server rejects the bot's credentials.
    """


class SessionStateError(TermieError):
    """
    Raised on an illegal session state transition.
    """


class NotAuthenticatedError(TermieError):
    """
    Raised when state is requested from a session that
    has not yet obtained its own bot identity.
    """


class PushChannelError(TermieError):
    """
    A single failed low-level push channel attempt.
    """


# == Request errors ==


class RequestError(TermieError):
    """
    Raised by the request gateway on any non-2xx response, or
    when the request could not be performed at all.

    The body attribute holds the parsed (JSON) or raw (text)
    response body; the status is None if no response was received.
    """

    def __init__(self, status: typing.Optional[int], body: typing.Any):
        message, kind = _describe(body)

        super().__init__(message, kind)

        self.status = status
        self.body = body


class StatusError(TermieError):
    """
    A superclass for errors raised from a failed request,
    carrying the HTTP status alongside the server's own
    error message and type.
    """

    def __init__(
        self,
        message: str = "",
        type: typing.Optional[str] = None,
        status: typing.Optional[int] = None,
    ):
        super().__init__(message, type)

        self.status = status

    @classmethod
    def from_request_error(cls, err: RequestError) -> "StatusError":
        return cls(err.message, err.type, err.status)


class GetChannelsError(StatusError):
    """
    Raised when the channel list could not be fetched.
    """


class GetMembersError(StatusError):
    """
    Raised when the member list could not be fetched.
    """


class SendMessageError(StatusError):
    """
    Raised when a message fails to send.
    """


class CreateBotError(StatusError):
    """
    Raised when a new bot identity could not be created.
    """


def _describe(body: typing.Any) -> typing.Tuple[str, typing.Optional[str]]:
    if isinstance(body, dict):
        return str(body.get("message", "")), body.get("type")

    return str(body or ""), None
