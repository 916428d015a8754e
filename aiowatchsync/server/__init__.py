"""
Room synchronization server.

RoomHub keeps every client watching the same room in sync:
- Tracking which clients are present in which room
- Applying play and pause events to the room's playback state
- Relaying events and broadcasting room snapshots to all members
"""

__all__ = [
    "BroadcastDispatcher",
    "ConnectionClosedEvent",
    "ConnectionOpenedEvent",
    "ConnectionSession",
    "HubEvent",
    "Member",
    "NameTable",
    "PlaybackState",
    "ReconcileResult",
    "Room",
    "RoomCreatedEvent",
    "RoomDeletedEvent",
    "RoomHub",
    "RoomReconciler",
    "RoomRegistry",
    "SyncConnection",
    "is_live",
    "live_members",
]

from .dispatcher import BroadcastDispatcher
from .hub import (
    ConnectionClosedEvent,
    ConnectionOpenedEvent,
    HubEvent,
    RoomCreatedEvent,
    RoomDeletedEvent,
    RoomHub,
)
from .presence import NameTable, is_live, live_members
from .reconciler import ReconcileResult, RoomReconciler
from .registry import Member, PlaybackState, Room, RoomRegistry, SyncConnection
from .session import ConnectionSession
