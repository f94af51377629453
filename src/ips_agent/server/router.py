"""
Inbound message router for the IPS Agent.

Each inbound frame is decoded and dispatched on its own: a direct path request
builds an unfiltered archive right away, a device request first locates the
installation and then builds a device-scoped archive. The router holds no state
between messages.
"""

import asyncio
from typing import Optional, Union
import logging

from websockets.asyncio.server import ServerConnection

from ..errors import ArchiveError, DecodeError
from ..models.archive import ArchiveJob
from ..models.messages import (
    DeviceNameRequest,
    FileFoundReply,
    FileNotFoundReply,
    FilePathRequest,
    StatusReply,
    decode_message,
)
from ..models.config import DEFAULT_TARGET_FILE_NAME
from ..tools.archiver import ArchiveBuilder
from ..tools.locator import DirectoryLocator
from .channel import DeliveryChannel, describe_peer


SUCCESS_MESSAGE = "Filtered ZIP successfully created and sent."


class MessageRouter:
    """
    Dispatches decoded peer requests to the locator and the archive builder.

    Blocking work (directory walks, archive writes, reading the archive back)
    runs in worker threads so the event loop keeps serving other peers.
    """

    def __init__(self, channel: DeliveryChannel, locator: DirectoryLocator,
                 builder: ArchiveBuilder, target_file_name: str = DEFAULT_TARGET_FILE_NAME):
        """
        Initialize the router.

        Args:
            channel: Channel used for replies and broadcasts
            locator: Locator used for device requests
            builder: Archive builder
            target_file_name: Artifact that marks the installation directory
        """
        self.channel = channel
        self.locator = locator
        self.builder = builder
        self.target_file_name = target_file_name
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def handle(self, peer: ServerConnection, raw: Union[str, bytes]) -> None:
        """
        Process one inbound frame from a peer.

        Never raises: every failure ends in a reply to the peer or a log entry.
        """
        try:
            message = decode_message(raw)
        except DecodeError as e:
            self.logger.warning(f"Malformed message from {describe_peer(peer)}: {e}")
            await self.channel.reply(peer, StatusReply.error(str(e)))
            return

        if message is None:
            self.logger.debug(f"Ignoring unrecognized message from {describe_peer(peer)}")
            return

        try:
            if isinstance(message, FilePathRequest):
                await self.handle_file_path(peer, message)
            elif isinstance(message, DeviceNameRequest):
                await self.handle_device_name(peer, message)
        except Exception as e:
            self.logger.exception(f"Unexpected error handling message from {describe_peer(peer)}")
            await self.channel.reply(peer, StatusReply.error(str(e) or e.__class__.__name__))

    async def handle_file_path(self, peer: ServerConnection, request: FilePathRequest) -> None:
        """Build and deliver an unfiltered archive of the requested directory."""
        self.logger.info(f"Received folder path from {describe_peer(peer)}: {request.file_path}")
        job = self.builder.create_job(request.file_path, device_filter=None)
        await self.build_and_deliver(peer, job)

    async def handle_device_name(self, peer: ServerConnection, request: DeviceNameRequest) -> None:
        """Locate the installation, then build and deliver a device-scoped archive."""
        self.logger.info(f"Received device name from {describe_peer(peer)}: {request.device_name}")

        result = await asyncio.to_thread(self.locator.locate, self.target_file_name)
        if not result.found:
            await self.channel.reply(peer, FileNotFoundReply(file_name=self.target_file_name))
            return

        await self.channel.reply(peer, FileFoundReply(file_name=self.target_file_name, directory=result.directory))
        job = self.builder.create_job(result.directory, device_filter=request.device_name)
        await self.build_and_deliver(peer, job)

    async def build_and_deliver(self, peer: ServerConnection, job: ArchiveJob) -> Optional[int]:
        """
        Build an archive, broadcast it, and report the outcome to the requester.

        Returns:
            Number of peers that received the archive, or None if the build failed
        """
        try:
            artifact = await asyncio.to_thread(self.builder.build, job)
        except ArchiveError as e:
            await self.channel.reply(peer, StatusReply.error(str(e)))
            return None

        delivered = await self.channel.broadcast(artifact.read_bytes())
        self.logger.info(f"ZIP successfully sent: {artifact.path}")
        await self.channel.reply(peer, StatusReply.success(SUCCESS_MESSAGE))
        return delivered
