"""
termie: a trio client library for bots on Termie chat servers.

Connects to one or many servers, keeps track of their channels and
members, and relays messages and presence changes to your code.
"""

from .channel import PushChannel, SocketIOChannel
from .client import Client
from .errors import (
    AuthError,
    ConnectError,
    CreateBotError,
    GetChannelsError,
    GetMembersError,
    NotAuthenticatedError,
    RequestError,
    SendMessageError,
    SessionStateError,
    TermieError,
)
from .events import EventHub
from .gateway import RequestGateway
from .models import LURKERS, SERVER, BotIdentity, Channel, Member, Message
from .options import BotCreationOptions, LoginOptions, ServerConfig, Transport
from .session import Session, SessionState

__all__ = [
    "AuthError",
    "BotCreationOptions",
    "BotIdentity",
    "Channel",
    "Client",
    "ConnectError",
    "CreateBotError",
    "EventHub",
    "GetChannelsError",
    "GetMembersError",
    "LURKERS",
    "LoginOptions",
    "Member",
    "Message",
    "NotAuthenticatedError",
    "PushChannel",
    "RequestError",
    "RequestGateway",
    "SERVER",
    "SendMessageError",
    "ServerConfig",
    "Session",
    "SessionState",
    "SessionStateError",
    "SocketIOChannel",
    "TermieError",
    "Transport",
]
