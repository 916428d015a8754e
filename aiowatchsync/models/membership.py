"""
Membership messages for the watch sync protocol.

These messages move a user in and out of a room and attach a display name
to a user id. The server never relays them; every membership change is
followed by a stats snapshot to the affected room instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .types import ClientMessage


# Client -> Server: join
@dataclass
class JoinMessage(ClientMessage):
    """Message sent by the client to join a room."""

    user: str
    """Identifier of the joining user, chosen by the client."""
    room: str
    """Identifier of the room to join."""
    type: Literal["join"] = "join"


# Client -> Server: leave
@dataclass
class LeaveMessage(ClientMessage):
    """Message sent by the client to leave a room."""

    user: str
    """Identifier of the leaving user."""
    room: str
    """Identifier of the room to leave."""
    type: Literal["leave"] = "leave"


# Client -> Server: update_name
@dataclass
class UpdateNameMessage(ClientMessage):
    """Message sent by the client to set or clear its display name."""

    user: str
    """Identifier of the user the name belongs to."""
    name: str | None = None
    """New display name, omitted or null to clear it."""
    type: Literal["update_name"] = "update_name"
