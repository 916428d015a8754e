"""Room state messages sent by the server."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from .types import ServerMessage


# Server -> Client: stats
@dataclass
class StatsMessage(ServerMessage):
    """
    Snapshot of a room, sent after every event that changed it.

    Clients compute the current position as
    ``seconds + (now - timestamp) / 1000`` while playing, and ``seconds`` otherwise.
    """

    room: str
    """Identifier of the room."""
    users: list[str] = field(default_factory=list)
    """Live members in join order, by display name when one is set."""
    playing: bool = False
    """Whether playback is running."""
    seconds: float = 0.0
    """Playback position in seconds at the moment given by timestamp."""
    timestamp: int = 0
    """Wall clock time in milliseconds when seconds was accurate."""
    type: Literal["stats"] = "stats"
