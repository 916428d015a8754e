"""Applies client events to the room registry."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from aiowatchsync.models import (
    ClientMessage,
    JoinMessage,
    LeaveMessage,
    PauseMessage,
    PlayMessage,
    UpdateNameMessage,
)

from .presence import NameTable
from .registry import Member, RoomRegistry, SyncConnection

logger = logging.getLogger(__name__)


def wall_clock_ms() -> int:
    """Return the current wall clock time in milliseconds."""
    return int(time.time() * 1000)


@dataclass
class ReconcileResult:
    """Outcome of applying one event."""

    room: str
    """The room the event affected, its snapshot has to be broadcast."""
    relay: ClientMessage | None = None
    """Message to relay to the room before the snapshot, if any."""


class RoomReconciler:
    """
    Transition function from incoming events to room state.

    Every method mutates the registry synchronously and reports which room
    was affected. Sending is left to the caller.
    """

    _registry: RoomRegistry
    _names: NameTable
    _clock: Callable[[], int]

    def __init__(
        self,
        registry: RoomRegistry,
        names: NameTable,
        clock: Callable[[], int] = wall_clock_ms,
    ) -> None:
        """
        Initialize the reconciler.

        Args:
            registry: The registry to mutate.
            names: The display name table to update.
            clock: Returns the wall clock in milliseconds, used to stamp pauses.
        """
        self._registry = registry
        self._names = names
        self._clock = clock

    def apply(self, message: ClientMessage, connection: SyncConnection) -> ReconcileResult | None:
        """
        Apply a single client event.

        Returns None when the event does not call for a snapshot, either because
        it does not touch a room or because it was ignored.
        """
        match message:
            case JoinMessage(user=user, room=room):
                return self.join(user, room, connection)
            case LeaveMessage(user=user, room=room):
                return self.leave(user, room)
            case PlayMessage():
                return self.play(message)
            case PauseMessage():
                return self.pause(message)
            case UpdateNameMessage(user=user, name=name):
                self.update_name(user, name, connection)
                return None
        logger.debug("No transition for %s", type(message).__name__)
        return None

    def join(
        self, user_id: str, room_id: str, connection: SyncConnection
    ) -> ReconcileResult | None:
        """Add the user to the room."""
        if not room_id:
            logger.debug("Ignoring join of %s without a room", user_id)
            return None
        logger.info("%s joined %s", user_id, room_id)
        self._registry.join(room_id, Member(user_id, connection))
        return ReconcileResult(room_id)

    def leave(self, user_id: str, room_id: str) -> ReconcileResult | None:
        """Remove the user from the room."""
        if not room_id:
            logger.debug("Ignoring leave of %s without a room", user_id)
            return None
        logger.info("%s left %s", user_id, room_id)
        self._registry.leave(room_id, user_id)
        return ReconcileResult(room_id)

    def play(self, message: PlayMessage) -> ReconcileResult | None:
        """
        Start playback at the position given by the client.

        The timestamp is the sender's clock and is stored as is, so every
        receiver computes the same target position. It is not checked against
        the server clock, a skewed or forged timestamp shifts the whole room.
        """
        room = self._registry.get(message.room)
        if room is None:
            logger.debug("Ignoring play for unknown room %s", message.room)
            return None
        logger.info("%s play at %s in %s", message.user, message.seconds, message.room)
        room.state.playing = True
        room.state.position_seconds = message.seconds
        room.state.reference_timestamp_ms = message.timestamp
        return ReconcileResult(message.room, relay=message)

    def pause(self, message: PauseMessage) -> ReconcileResult | None:
        """Pause playback, keeping the last known position."""
        room = self._registry.get(message.room)
        if room is None:
            logger.debug("Ignoring pause for unknown room %s", message.room)
            return None
        logger.info("%s paused %s", message.user, message.room)
        room.state.playing = False
        room.state.reference_timestamp_ms = self._clock()
        return ReconcileResult(message.room, relay=message)

    def update_name(
        self, user_id: str, name: str | None, connection: SyncConnection | None = None
    ) -> None:
        """Set or clear the display name of a user, owned by the connection that sent it."""
        self._names.set_name(user_id, name, owner=connection)
