"""Room hub tying the registry, reconciler, dispatcher and client sessions together."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass

from aiohttp import web

from aiowatchsync.models import ClientMessage

from .dispatcher import BroadcastDispatcher
from .presence import NameTable
from .reconciler import RoomReconciler, wall_clock_ms
from .registry import RoomRegistry, SyncConnection
from .session import ConnectionSession

HEARTBEAT_INTERVAL = 20.0

logger = logging.getLogger(__name__)


class HubEvent:
    """Base event type used by RoomHub.add_event_listener()."""


@dataclass
class ConnectionOpenedEvent(HubEvent):
    """A client connected."""

    remote: str | None


@dataclass
class ConnectionClosedEvent(HubEvent):
    """A client disconnected."""

    remote: str | None


@dataclass
class RoomCreatedEvent(HubEvent):
    """A room got its first member."""

    room: str


@dataclass
class RoomDeletedEvent(HubEvent):
    """The last live member left a room and it was removed."""

    room: str


class RoomHub:
    """
    Owns all room state of the server and the sessions mutating it.

    There is a single hub per process in practice, but nothing is global so
    independent hubs can live side by side.
    """

    loop: asyncio.AbstractEventLoop
    heartbeat_interval: float | None
    """Seconds between pings sent to each client, None disables heartbeats.

    A client that does not answer a ping within half the interval is disconnected.
    """
    _registry: RoomRegistry
    _names: NameTable
    _reconciler: RoomReconciler
    _dispatcher: BroadcastDispatcher
    _sessions: set[ConnectionSession]
    _connection_count: int
    _event_cbs: list[Callable[[HubEvent], Coroutine[None, None, None]]]

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        *,
        heartbeat_interval: float | None = HEARTBEAT_INTERVAL,
        clock: Callable[[], int] = wall_clock_ms,
    ) -> None:
        """
        Initialize a new RoomHub.

        Args:
            loop: The event loop sessions and event callbacks run on.
            heartbeat_interval: Seconds between pings, None to disable them. Clients
                missing a pong are disconnected.
            clock: Returns the wall clock in milliseconds.
        """
        self.loop = loop
        self.heartbeat_interval = heartbeat_interval
        self._registry = RoomRegistry()
        self._names = NameTable()
        self._reconciler = RoomReconciler(self._registry, self._names, clock)
        self._dispatcher = BroadcastDispatcher(self._registry, self._names)
        self._sessions = set()
        self._connection_count = 0
        self._event_cbs = []
        logger.debug("RoomHub initialized: heartbeat_interval=%s", heartbeat_interval)

    @property
    def registry(self) -> RoomRegistry:
        """The registry holding all rooms."""
        return self._registry

    @property
    def names(self) -> NameTable:
        """The display names of all users."""
        return self._names

    @property
    def dispatcher(self) -> BroadcastDispatcher:
        """The dispatcher used to reach room members."""
        return self._dispatcher

    @property
    def connection_count(self) -> int:
        """Number of currently open connections."""
        return self._connection_count

    @property
    def sessions(self) -> set[ConnectionSession]:
        """Get the set of all connected sessions."""
        return self._sessions

    def create_app(self, path: str = "/") -> web.Application:
        """Create an aiohttp application serving the sync WebSocket at path."""
        app = web.Application()
        app.router.add_get(path, self.on_client_connect)
        return app

    async def on_client_connect(self, request: web.Request) -> web.WebSocketResponse:
        """Handle an incoming WebSocket connection from a client."""
        logger.debug("Incoming connection from %s", request.remote)
        session = ConnectionSession(self, request)
        return await session.handle_client()

    def handle_message(self, connection: SyncConnection, message: ClientMessage) -> None:
        """
        Apply an event from a connection and notify the affected room.

        Play and pause are relayed to the room first, then every event touching
        a room is followed by a fresh snapshot of that room. The snapshot goes
        to the room named by the event, which for a leave is no longer the room
        the sender tracks.
        """
        room_id = getattr(message, "room", None)
        existed = room_id in self._registry
        result = self._reconciler.apply(message, connection)
        if room_id is not None:
            self._signal_room_change(room_id, existed=existed)
        if result is None:
            return
        if result.relay is not None:
            self._dispatcher.send(result.room, result.relay)
        self._dispatcher.broadcast_snapshot(result.room)

    def leave_room(self, connection: SyncConnection, room_id: str) -> None:
        """
        Remove the entries of this connection from a room and notify who is left.

        Used when a connection goes away or moves to another room. Entries are
        matched by connection, not by user id, so a newer connection of the
        same user stays in the room and an entry joined under an earlier id is
        still removed.
        """
        existed = room_id in self._registry
        removed = self._registry.remove_connection(room_id, connection)
        if removed:
            logger.info("Connection left %s", room_id)
        self._signal_room_change(room_id, existed=existed)
        if removed:
            self._dispatcher.broadcast_snapshot(room_id)

    def add_event_listener(
        self, callback: Callable[[HubEvent], Coroutine[None, None, None]]
    ) -> Callable[[], None]:
        """Register a callback to listen for state changes of the hub.

        State changes include:
        - A client connected or disconnected
        - A room was created or deleted

        Returns a function to remove the listener.
        """
        self._event_cbs.append(callback)
        return lambda: self._event_cbs.remove(callback)

    def _signal_event(self, event: HubEvent) -> None:
        for cb in self._event_cbs:
            _ = self.loop.create_task(cb(event))  # Fire and forget event callback

    def _signal_room_change(self, room_id: str, *, existed: bool) -> None:
        exists = room_id in self._registry
        if exists and not existed:
            logger.info("Room %s created", room_id)
            self._signal_event(RoomCreatedEvent(room_id))
        elif existed and not exists:
            logger.info("Room %s deleted", room_id)
            self._signal_event(RoomDeletedEvent(room_id))

    def _on_session_open(self, session: ConnectionSession) -> None:
        if session in self._sessions:
            return
        self._sessions.add(session)
        self._connection_count += 1
        logger.info(
            "Client connected from %s (%d connections)", session.remote, self._connection_count
        )
        self._signal_event(ConnectionOpenedEvent(session.remote))

    def _on_session_close(self, session: ConnectionSession) -> None:
        if session not in self._sessions:
            return
        self._sessions.remove(session)
        self._connection_count -= 1
        logger.info(
            "Client from %s disconnected (%d connections)", session.remote, self._connection_count
        )
        self._signal_event(ConnectionClosedEvent(session.remote))
