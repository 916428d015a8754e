"""Represents a single client connection to the sync server."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import TYPE_CHECKING, cast

from aiohttp import WSMessage, WSMsgType, web

from aiowatchsync.models import ClientMessage, JoinMessage, LeaveMessage, UpdateNameMessage

MAX_PENDING_MSG = 512
SETUP_TIMEOUT = 10

logger = logging.getLogger(__name__)

# The cyclic import is not an issue during runtime, so hide it
# pyright: reportImportCycles=none
if TYPE_CHECKING:
    from .hub import RoomHub


class ConnectionSession:
    """
    One client connection and the room it believes it is in.

    Inbound messages are handled strictly in the order they arrive. Outbound
    messages are queued and written by a separate task, so a slow client never
    holds up the rest of the server.
    """

    _hub: RoomHub
    """Reference to the RoomHub instance this session belongs to."""
    _request: web.Request
    _wsock: web.WebSocketResponse
    _writer_task: asyncio.Task[None] | None = None
    """Task responsible for writing queued messages to the WebSocket."""
    _to_write: asyncio.Queue[str]
    """Queue for serialized messages to be sent to the client."""
    _closing: bool = False
    _disconnected: bool = False
    _logger: logging.Logger
    user_id: str | None
    """User id this connection identified as, None until join or update_name."""
    room: str | None
    """Room this connection is in, None when it is in no room."""
    _joined: set[str]
    """Rooms this connection may still have registry entries in."""

    def __init__(self, hub: RoomHub, request: web.Request) -> None:
        """
        DO NOT CALL THIS CONSTRUCTOR. INTERNAL USE ONLY.

        Use RoomHub.on_client_connect instead.
        """
        self._hub = hub
        self._request = request
        # aiohttp pings the client and closes the socket when a pong is missed
        self._wsock = web.WebSocketResponse(heartbeat=hub.heartbeat_interval)
        self._to_write = asyncio.Queue(maxsize=MAX_PENDING_MSG)
        self._logger = logger.getChild(f"unknown-{request.remote}")
        self.user_id = None
        self.room = None
        self._joined = set()

    @property
    def closed(self) -> bool:
        """Whether this connection is closed or in the process of closing."""
        return self._closing or self._wsock.closed

    @property
    def remote(self) -> str | None:
        """Remote address of the client."""
        return self._request.remote

    def send_message(self, data: str) -> None:
        """
        Enqueue a serialized message to be sent to the client.

        Never waits. Messages for a closed connection or beyond the queue limit
        are dropped.
        """
        if self.closed:
            self._logger.debug("Connection closed, dropping message")
            return
        try:
            self._to_write.put_nowait(data)
        except asyncio.QueueFull:
            self._logger.warning("Outgoing queue full, dropping message")

    async def handle_client(self) -> web.WebSocketResponse:
        """
        Handle the complete websocket connection lifecycle.

        Cleanup runs however the connection ends, so an abrupt disconnect
        leaves the registry in the same state as an explicit leave.
        """
        try:
            await self._setup_connection()
            await self._run_message_loop()
        finally:
            await self._cleanup_connection()
        return self._wsock

    async def disconnect(self) -> None:
        """Stop the writer task, leave every joined room and close the connection."""
        if self._disconnected:
            return
        self._disconnected = True
        self._closing = True
        self._logger.debug("Disconnecting client")

        if self._writer_task is not None and not self._writer_task.done():
            _ = self._writer_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._writer_task

        if self._wsock.prepared and not self._wsock.closed:
            _ = await self._wsock.close()  # Don't care about close result

        if self.user_id is not None:
            self._hub.names.clear_name(self.user_id, owner=self)
        for room in sorted(self._joined):
            self._leave_room(room)
        self.user_id = None
        self.room = None

        self._hub._on_session_close(self)  # noqa: SLF001
        self._logger.info("Client disconnected")

    async def _setup_connection(self) -> None:
        """Establish WebSocket connection and start the writer task."""
        self._hub._on_session_open(self)  # noqa: SLF001
        try:
            async with asyncio.timeout(SETUP_TIMEOUT):
                _ = await self._wsock.prepare(self._request)
        except TimeoutError:
            self._logger.warning("Timeout preparing request")
            raise

        self._logger.info("Connection established")
        self._writer_task = self._hub.loop.create_task(self._writer())

    async def _run_message_loop(self) -> None:
        """Receive and handle messages until the connection goes away."""
        wsock = self._wsock
        writer_task = self._writer_task
        assert writer_task is not None  # for type checking
        receive_task: asyncio.Task[WSMessage] | None = None
        try:
            while not wsock.closed:
                # Wait for either a message or the writer to end (meaning the client
                # disconnected)
                receive_task = self._hub.loop.create_task(wsock.receive())
                done, _ = await asyncio.wait(
                    [receive_task, writer_task],
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if receive_task not in done:
                    self._logger.debug("Writer task ended, closing connection")
                    break

                try:
                    msg = await receive_task
                except (ConnectionError, TimeoutError) as err:
                    self._logger.error("Error receiving message: %s", err)
                    break

                if msg.type in (WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED):
                    break
                if msg.type == WSMsgType.ERROR:
                    self._logger.debug("WebSocket error: %s", wsock.exception())
                    break
                if msg.type != WSMsgType.TEXT:
                    continue

                try:
                    message = ClientMessage.from_json(cast("str", msg.data))
                except Exception:
                    # NOTE: malformed or unknown payloads are ignored, the connection stays open
                    self._logger.warning("Ignoring malformed message: %.200s", msg.data)
                    continue

                try:
                    self._handle_message(message)
                except Exception:
                    self._logger.exception("Error handling %s", type(message).__name__)
            self._logger.debug("wsock was closed")

        except asyncio.CancelledError:
            self._logger.debug("Connection closed by client")
        except Exception:
            self._logger.exception("Unexpected error inside websocket API")
        finally:
            if receive_task and not receive_task.done():
                _ = receive_task.cancel()  # Don't care about cancellation result

    def _handle_message(self, message: ClientMessage) -> None:
        """Update what this connection tracks, then hand the event to the hub."""
        self._logger.debug("Received %s", type(message).__name__)
        match message:
            case JoinMessage(user=user, room=room) if room:
                if self.room is not None and self.room != room:
                    # Only one room per connection, move out of the previous one
                    self._leave_room(self.room)
                self._set_user(user)
                self.room = room
                self._joined.add(room)
            case LeaveMessage(user=user, room=room):
                # A leave for another user id leaves this connection's entry in place
                if room == self.room and user == self.user_id:
                    self.room = None
                    self._joined.discard(room)
            case UpdateNameMessage(user=user):
                self._set_user(user)
        self._hub.handle_message(self, message)

    def _leave_room(self, room: str) -> None:
        self._joined.discard(room)
        self._hub.leave_room(self, room)

    def _set_user(self, user_id: str) -> None:
        if user_id != self.user_id:
            self.user_id = user_id
            self._logger = logger.getChild(f"{user_id}-{self.remote}")

    async def _writer(self) -> None:
        """Write outgoing messages from the queue."""
        wsock = self._wsock
        try:
            while not wsock.closed and not self._closing:
                data = await self._to_write.get()
                try:
                    await wsock.send_str(data)
                except ConnectionError:
                    self._logger.warning("Connection error sending data, ending writer task")
                    self._closing = True
                    break
            self._logger.debug("WebSocket connection was closed, ending writer task")
        except Exception:
            self._logger.exception("Error in writer task for client")

    async def _cleanup_connection(self) -> None:
        """Clean up WebSocket connection and tasks."""
        try:
            if self._wsock.prepared and not self._wsock.closed:
                _ = await self._wsock.close()  # Don't care about close result
        except Exception:
            self._logger.exception("Failed to close websocket")
        await self.disconnect()
