"""Echoes of Logos entry point."""

import asyncio
import logging
import signal

from src.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


async def serve() -> None:
    """Run the web server until SIGINT/SIGTERM."""
    from src.web.server import WebServer

    server = WebServer()
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await server.start()
    try:
        await stop.wait()
    finally:
        await server.stop()


def main() -> None:
    """Start the conversation service."""
    logger.info("Starting Echoes of Logos with model %s...", settings.default_chat_model)
    asyncio.run(serve())


if __name__ == "__main__":
    main()
