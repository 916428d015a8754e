"""In-memory registry of rooms, their members and their playback state."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Protocol

from .presence import NameTable, is_live, live_members

logger = logging.getLogger(__name__)


class SyncConnection(Protocol):
    """The part of a client connection the registry and dispatcher rely on."""

    @property
    def closed(self) -> bool:
        """Whether the connection is closed or closing."""
        ...

    def send_message(self, data: str) -> None:
        """Enqueue a text frame without waiting for it to be written."""
        ...


@dataclass
class PlaybackState:
    """Last known playback state of a room."""

    playing: bool = False
    """Whether playback is running."""
    position_seconds: float = 0.0
    """Playback position in seconds at reference_timestamp_ms."""
    reference_timestamp_ms: int = 0
    """Wall clock time in milliseconds when position_seconds was accurate."""


@dataclass
class Member:
    """A connection's association with a room under a user id."""

    user_id: str
    connection: SyncConnection


@dataclass
class Room:
    """Members of a room in join order together with its playback state."""

    members: list[Member] = field(default_factory=list)
    state: PlaybackState = field(default_factory=PlaybackState)


class RoomRegistry:
    """
    Maps room identifiers to rooms.

    A room is created on the first join and deleted as soon as it has no live
    member left. Every mutator that can empty a room checks this before
    returning, so no empty room is ever observable between two events.
    Membership changes never touch the playback state.
    """

    _rooms: dict[str, Room]

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._rooms = {}

    def get(self, room_id: str) -> Room | None:
        """Get the room with the given id, None if it does not exist."""
        return self._rooms.get(room_id)

    @property
    def rooms(self) -> Iterator[str]:
        """Iterate over the ids of all existing rooms."""
        return iter(list(self._rooms))

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)

    def join(self, room_id: str, member: Member) -> bool:
        """
        Add a member to a room, creating the room if needed.

        Entries whose connection closed are dropped first. If a live entry with
        the same user id exists nothing is added; when that entry belongs to a
        different connection it is rebound to the new one.

        Returns True if a new entry was appended.
        """
        room = self._rooms.get(room_id)
        if room is None:
            logger.debug("Creating room %s", room_id)
            room = self._rooms[room_id] = Room()
        else:
            room.members = live_members(room.members)

        added = True
        for existing in room.members:
            if existing.user_id != member.user_id:
                continue
            if existing.connection is not member.connection:
                logger.debug("Rebinding %s in room %s to a new connection", member.user_id, room_id)
                existing.connection = member.connection
            added = False
            break
        else:
            room.members.append(member)
            logger.debug("Added %s to room %s", member.user_id, room_id)

        # A closed connection joining leaves nothing live behind
        self._delete_if_empty(room_id)
        return added

    def leave(self, room_id: str, user_id: str) -> bool:
        """
        Remove a user from a room.

        Removes the first entry matching the user id regardless of liveness.
        Deletes the room if no live member is left.

        Returns True if an entry was removed.
        """
        room = self._rooms.get(room_id)
        if room is None:
            return False

        removed = False
        for index, member in enumerate(room.members):
            if member.user_id == user_id:
                del room.members[index]
                removed = True
                logger.debug("Removed %s from room %s", user_id, room_id)
                break

        self._delete_if_empty(room_id)
        return removed

    def remove_connection(self, room_id: str, connection: SyncConnection) -> bool:
        """
        Remove every entry of a room bound to the given connection.

        The user ids of the entries do not matter, a connection may have joined
        under a different id than the one it uses now. Entries of other
        connections with the same user id stay. Deletes the room if no live
        member is left, even when nothing was removed.

        Returns True if an entry was removed.
        """
        room = self._rooms.get(room_id)
        if room is None:
            return False

        kept = [member for member in room.members if member.connection is not connection]
        removed = len(kept) != len(room.members)
        if removed:
            room.members = kept
            logger.debug("Removed connection entries from room %s", room_id)

        self._delete_if_empty(room_id)
        return removed

    def live_member_count(self, room_id: str) -> int:
        """Return the number of members with an open connection, 0 for an absent room."""
        room = self._rooms.get(room_id)
        if room is None:
            return 0
        return sum(1 for member in room.members if is_live(member))

    def snapshot_members(self, room_id: str, names: NameTable | None = None) -> list[str]:
        """
        Return the live members of a room in join order.

        Members are listed by user id, or by display name when a name table is
        given and holds a name for them.
        """
        room = self._rooms.get(room_id)
        if room is None:
            return []
        members = live_members(room.members)
        if names is None:
            return [member.user_id for member in members]
        return [names.display_name(member.user_id) for member in members]

    def _delete_if_empty(self, room_id: str) -> None:
        if self.live_member_count(room_id) == 0 and self._rooms.pop(room_id, None) is not None:
            logger.debug("Deleted room %s, no live members left", room_id)
