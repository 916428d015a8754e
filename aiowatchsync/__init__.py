"""aiowatchsync: keeps clients watching the same media in sync."""

from __future__ import annotations

# Re-export the server for easy import
from aiowatchsync.server import (
    BroadcastDispatcher,
    HubEvent,
    PlaybackState,
    RoomHub,
    RoomRegistry,
)

__all__ = [
    "BroadcastDispatcher",
    "HubEvent",
    "PlaybackState",
    "RoomHub",
    "RoomRegistry",
]
