"""Models for the watch sync protocol."""

from __future__ import annotations

__all__ = [
    "ClientMessage",
    "JoinMessage",
    "LeaveMessage",
    "PauseMessage",
    "PlayMessage",
    "ServerMessage",
    "StatsMessage",
    "UpdateNameMessage",
    "membership",
    "playback",
    "room",
    "types",
]

from . import membership, playback, room, types
from .membership import JoinMessage, LeaveMessage, UpdateNameMessage
from .playback import PauseMessage, PlayMessage
from .room import StatsMessage
from .types import ClientMessage, ServerMessage
