"""Command-line interface for running the watch sync server."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Sequence

from aiohttp import web

from aiowatchsync.server import RoomHub

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8080
DEFAULT_HOST = "0.0.0.0"  # noqa: S104


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the watch sync server."""
    parser = argparse.ArgumentParser(description="Run a watch sync server")
    parser.add_argument(
        "port",
        nargs="?",
        type=int,
        default=DEFAULT_PORT,
        help=f"Port to listen on (default: {DEFAULT_PORT})",
    )
    return parser.parse_args(argv)


async def main_async(argv: Sequence[str] | None = None) -> int:
    """Serve until interrupted."""
    args = parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    loop = asyncio.get_running_loop()
    hub = RoomHub(loop)
    runner = web.AppRunner(hub.create_app())
    await runner.setup()

    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        site = web.TCPSite(runner, DEFAULT_HOST, args.port)
        await site.start()
        logger.info("Listening on ws://%s:%d", DEFAULT_HOST, args.port)
        await stop.wait()
        logger.debug("Received interrupt signal, shutting down...")
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await runner.cleanup()

    return 0


def main() -> int:
    """Run the watch sync server."""
    return asyncio.run(main_async(sys.argv[1:]))


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
