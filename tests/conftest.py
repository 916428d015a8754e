"""Shared fixtures for the aiowatchsync tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from typing import Any

import orjson
import pytest
from aiohttp.test_utils import TestClient, TestServer

from aiowatchsync.server import NameTable, RoomHub, RoomRegistry

PAUSE_CLOCK_MS = 5_000


class FakeConnection:
    """In-memory stand-in for a client connection."""

    def __init__(self, *, closed: bool = False) -> None:
        self.closed = closed
        self.sent: list[str] = []

    def send_message(self, data: str) -> None:
        self.sent.append(data)

    def messages(self) -> list[dict[str, Any]]:
        return [orjson.loads(data) for data in self.sent]

    def types(self) -> list[str]:
        return [message["type"] for message in self.messages()]


class BrokenConnection(FakeConnection):
    """Connection whose sends always fail."""

    def send_message(self, data: str) -> None:
        raise ConnectionResetError("Cannot write to closing transport")


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def names() -> NameTable:
    return NameTable()


@pytest.fixture
async def hub() -> RoomHub:
    return RoomHub(
        asyncio.get_running_loop(),
        heartbeat_interval=None,
        clock=lambda: PAUSE_CLOCK_MS,
    )


@pytest.fixture
async def client(hub: RoomHub) -> AsyncGenerator[TestClient, None]:
    test_client = TestClient(TestServer(hub.create_app()))
    await test_client.start_server()
    yield test_client
    await test_client.close()


async def wait_for(predicate, timeout: float = 2.0) -> None:
    """Wait until predicate() is true, the server handles messages asynchronously."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)
