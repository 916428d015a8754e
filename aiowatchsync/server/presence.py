"""Liveness of room members and the display name table."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .registry import Member

logger = logging.getLogger(__name__)


def is_live(member: Member) -> bool:
    """
    Return whether the member's connection is still open.

    Connections can close between two events, so this is always read from the
    connection itself and never cached.
    """
    return not member.connection.closed


def live_members(members: Iterable[Member]) -> list[Member]:
    """Return the members with an open connection, keeping their order."""
    return [member for member in members if is_live(member)]


class NameTable:
    """
    Display names of users, independent of room membership.

    A name remembers the connection that set it. Clearing on behalf of a
    connection only removes a name that connection owns, so an old connection
    going away cannot wipe the name a newer connection of the same user set.
    """

    _names: dict[str, str]
    _owners: dict[str, object]

    def __init__(self) -> None:
        """Initialize an empty name table."""
        self._names = {}
        self._owners = {}

    def set_name(self, user_id: str, name: str | None, owner: object | None = None) -> None:
        """Set the display name of a user, or clear it when name is None or empty."""
        if not name:
            self.clear_name(user_id)
            return
        logger.debug("Setting name of %s to %s", user_id, name)
        self._names[user_id] = name
        if owner is None:
            _ = self._owners.pop(user_id, None)
        else:
            self._owners[user_id] = owner

    def clear_name(self, user_id: str, owner: object | None = None) -> None:
        """
        Remove the display name of a user, if any.

        With an owner given, the name is only removed if that owner set it.
        """
        if owner is not None and self._owners.get(user_id) is not owner:
            return
        _ = self._owners.pop(user_id, None)
        if self._names.pop(user_id, None) is not None:
            logger.debug("Cleared name of %s", user_id)

    def get(self, user_id: str) -> str | None:
        """Get the display name of a user, None if no name is set."""
        return self._names.get(user_id)

    def display_name(self, user_id: str) -> str:
        """Get the display name of a user, falling back to the user id."""
        return self._names.get(user_id, user_id)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._names

    def __len__(self) -> int:
        return len(self._names)
