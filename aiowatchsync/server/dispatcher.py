"""Fans messages out to the live members of a room."""

from __future__ import annotations

import logging

from aiowatchsync.models import ClientMessage, ServerMessage, StatsMessage

from .presence import NameTable, live_members
from .registry import RoomRegistry

logger = logging.getLogger(__name__)


class BroadcastDispatcher:
    """Best-effort delivery of messages to rooms."""

    _registry: RoomRegistry
    _names: NameTable

    def __init__(self, registry: RoomRegistry, names: NameTable) -> None:
        """Initialize the dispatcher for the given registry."""
        self._registry = registry
        self._names = names

    def compute_snapshot(self, room_id: str) -> StatsMessage | None:
        """Build the stats message of a room, None if the room does not exist."""
        room = self._registry.get(room_id)
        if room is None:
            return None
        return StatsMessage(
            room=room_id,
            users=self._registry.snapshot_members(room_id, self._names),
            playing=room.state.playing,
            seconds=room.state.position_seconds,
            timestamp=room.state.reference_timestamp_ms,
        )

    def send(self, room_id: str, message: ClientMessage | ServerMessage) -> int:
        """
        Send a message to every live member of a room.

        The message is serialized once. Each member is handed the text on its
        own; a member that fails is logged and skipped, and nothing is raised
        to the caller.

        Returns the number of members the message was handed to.
        """
        room = self._registry.get(room_id)
        if room is None:
            logger.debug("Not sending %s, room %s does not exist", type(message).__name__, room_id)
            return 0

        data = message.to_json()
        delivered = 0
        for member in live_members(room.members):
            try:
                member.connection.send_message(data)
            except Exception:
                # NOTE: one failing member must not stop delivery to the others
                logger.warning(
                    "Failed to send %s to %s in room %s",
                    type(message).__name__,
                    member.user_id,
                    room_id,
                    exc_info=True,
                )
                continue
            delivered += 1
        logger.debug("Sent %s to %d members of %s", type(message).__name__, delivered, room_id)
        return delivered

    def broadcast_snapshot(self, room_id: str) -> int:
        """Send the current stats of a room to its members, if the room exists."""
        snapshot = self.compute_snapshot(room_id)
        if snapshot is None:
            return 0
        return self.send(room_id, snapshot)
