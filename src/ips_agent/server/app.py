"""
WebSocket server for the IPS Agent.

The server owns one delivery channel and one router, registers every connection
with the channel, and hands each inbound frame to the router as its own task so
that slow requests do not hold up other messages.
"""

import asyncio
from typing import Optional, Set
import logging

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosedError

from ..models.config import AgentConfig
from ..tools.archiver import ArchiveBuilder
from ..tools.locator import DirectoryLocator
from .channel import DeliveryChannel, describe_peer
from .router import MessageRouter


class AgentServer:
    """
    WebSocket endpoint serving archive requests.

    Attributes:
        config: Effective agent configuration
        channel: Connected peers and delivery operations
        router: Inbound message dispatcher
    """

    def __init__(self, config: AgentConfig,
                 locator: Optional[DirectoryLocator] = None,
                 builder: Optional[ArchiveBuilder] = None):
        self.config = config
        self.channel = DeliveryChannel()
        self.router = MessageRouter(
            channel=self.channel,
            locator=locator or DirectoryLocator(config.search),
            builder=builder or ArchiveBuilder(config.archive),
            target_file_name=config.search.target_file_name,
        )
        self._tasks: Set[asyncio.Task] = set()
        self._server: Optional[Server] = None
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def handler(self, connection: ServerConnection) -> None:
        """Serve one peer connection until it closes."""
        self.channel.on_connect(connection)
        try:
            async for message in connection:
                self.dispatch(connection, message)
        except ConnectionClosedError as e:
            self.logger.warning(f"Connection error from {describe_peer(connection)}: {e}")
        finally:
            self.channel.on_disconnect(connection)

    def dispatch(self, connection: ServerConnection, message) -> asyncio.Task:
        """Run the router for one frame in the background."""
        task = asyncio.create_task(self.router.handle(connection, message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def start(self) -> Server:
        """Start listening on the configured host and port."""
        self._server = await serve(
            self.handler,
            self.config.server.host,
            self.config.server.port,
            max_size=self.config.server.max_message_size,
        )
        self.logger.info(
            f"WebSocket server started on {self.config.server.host}:{self.config.server.port}"
        )
        return self._server

    async def serve_forever(self) -> None:
        """Start the server and run until cancelled."""
        server = await self.start()
        try:
            await server.serve_forever()
        finally:
            await self.close()

    async def close(self) -> None:
        """Stop accepting connections and wait for in-flight requests."""
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self.logger.info("WebSocket server stopped")
