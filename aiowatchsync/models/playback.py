"""
Playback messages for the watch sync protocol.

Play and pause are sent by a client and relayed unchanged to every live
member of the room after the room state was updated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .types import ClientMessage


# Client -> Server, Server -> Room: play
@dataclass
class PlayMessage(ClientMessage):
    """Message to start playback at a position."""

    seconds: float
    """Playback position in seconds at the moment given by timestamp."""
    timestamp: int
    """Wall clock time of the sender in milliseconds when seconds was accurate."""
    room: str
    """Identifier of the room."""
    user: str
    """Identifier of the user issuing the command."""
    type: Literal["play"] = "play"


# Client -> Server, Server -> Room: pause
@dataclass
class PauseMessage(ClientMessage):
    """Message to pause playback."""

    room: str
    """Identifier of the room."""
    user: str
    """Identifier of the user issuing the command."""
    type: Literal["pause"] = "pause"
