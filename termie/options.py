"""
Configuration values for termie clients.

A client is configured with one ServerConfig per server it should
connect to, and logged in with a set of LoginOptions.
"""

import typing

import attr


def _check_host(instance, attribute, value):
    if not value:
        raise ValueError("Missing one of the required parameters: host")

    if not value.startswith(("http://", "https://")):
        raise ValueError(
            "Host must start with the http prefix (http:// or https://), got {}".format(
                repr(value)
            )
        )


def _check_present(instance, attribute, value):
    if value is None or value == "":
        raise ValueError(
            "Missing one of the required parameters: {}".format(attribute.name)
        )


@attr.s(auto_attribs=True, frozen=True)
class Transport:
    """
    The transport capability of a session: whether it talks to
    its server over TLS, and whether certificates are verified.

    Handed explicitly to the request gateway and the push channel.

        >>> Transport(secure=True).scheme
        'https'
        >>> Transport.for_host('http://localhost').secure
        False
    """

    secure: bool = False
    verify: bool = attr.ib(default=True, validator=attr.validators.instance_of(bool))

    @property
    def scheme(self) -> str:
        return "https" if self.secure else "http"

    @classmethod
    def for_host(cls, host: str, **kwargs) -> "Transport":
        return cls(secure=host.startswith("https"), **kwargs)

    def url(self, hostname: str, port: typing.Union[int, str], path: str = "") -> str:
        """
        Builds an URL for this transport.

            >>> Transport().url('localhost', 3000, '/channels')
            'http://localhost:3000/channels'
        """
        return "{}://{}:{}{}".format(self.scheme, hostname, port, path)


@attr.s(auto_attribs=True, frozen=True)
class ServerConfig:
    """
    The configuration of a single server.

    Arguments:
        token {str} -- The bot's token.
        host {str} -- The server's host, including the http prefix to use
                      (http:// or https://).
        port {Union[int, str]} -- The port of the server.
    """

    token: str = attr.ib(validator=_check_present)
    host: str = attr.ib(validator=_check_host)
    port: typing.Union[int, str] = attr.ib(validator=_check_present)

    @property
    def key(self) -> str:
        """The identity key of this server, 'host:port'."""
        return "{}:{}".format(self.host, self.port)

    @property
    def hostname(self) -> str:
        """The host without its http prefix."""
        return self.host.split("://", 1)[1]

    @property
    def secure(self) -> bool:
        return self.host.startswith("https")

    def transport(self) -> Transport:
        return Transport.for_host(self.host)


@attr.s(auto_attribs=True, frozen=True)
class LoginOptions:
    """
    Options for logging in.

    Keyword Arguments:
        reconnection_attempts {int} -- How many failed connection attempts to
                                       tolerate before giving up. (default: 5)

        timeout {float} -- The time, in seconds, to wait for each connection
                           attempt. (default: 5.0)

        reconnection_delay {float} -- The time, in seconds, to wait between
                                      failed connection attempts. (default: 1.0)
    """

    reconnection_attempts: int = attr.ib(default=5)
    timeout: float = 5.0
    reconnection_delay: float = 1.0

    @reconnection_attempts.validator
    def _check_attempts(self, attribute, value):
        if value < 1:
            raise ValueError("reconnection_attempts must be at least 1")


@attr.s(auto_attribs=True, frozen=True)
class BotCreationOptions:
    """
    Owner credentials and server location used to provision a new bot.

    Arguments:
        hostname {str} -- The hostname, without the http prefix.
        port {Union[int, str]} -- The port of the server.
        owner_uid {str} -- The UID of the bot's owner.
        owner_password {str} -- The password of the bot's owner.

    Keyword Arguments:
        secure {bool} -- Whether to use https. (default: False)
    """

    hostname: str
    port: typing.Union[int, str]
    owner_uid: str
    owner_password: str
    secure: bool = False

    def transport(self) -> Transport:
        return Transport(secure=self.secure)
