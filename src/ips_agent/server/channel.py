"""
Peer delivery channel for the IPS Agent.

The channel owns the set of connected peers. It broadcasts finished archives to
every open peer and sends JSON status replies to a single peer.
"""

import json
from typing import Any, Dict, List, Set, Union
import logging

from websockets.asyncio.server import ServerConnection, broadcast as fan_out
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from ..errors import DeliveryError
from ..models.messages import WireModel


class DeliveryChannel:
    """
    Set of connected peers plus the operations that write to them.

    Peers are added on connect and removed on close or error. Delivery is best
    effort: a peer that is not open, or whose send fails, is skipped.
    """

    def __init__(self):
        self._peers: Set[ServerConnection] = set()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def peers(self) -> List[ServerConnection]:
        """Snapshot of the connected peers."""
        return list(self._peers)

    def __len__(self) -> int:
        return len(self._peers)

    def on_connect(self, peer: ServerConnection) -> None:
        self._peers.add(peer)
        self.logger.info(f"Peer connected: {describe_peer(peer)} ({len(self._peers)} open)")

    def on_disconnect(self, peer: ServerConnection) -> None:
        self._peers.discard(peer)
        self.logger.info(f"Peer disconnected: {describe_peer(peer)} ({len(self._peers)} open)")

    async def broadcast(self, payload: bytes) -> int:
        """
        Send a binary payload to every open peer.

        The payload is queued on each connection without waiting for it to
        drain, so a slow reader never holds up the others. A peer that cannot
        take the frame right now is skipped.

        Args:
            payload: Bytes to deliver

        Returns:
            Number of peers the payload was sent to
        """
        peers = self.peers
        recipients = [peer for peer in peers if peer.state is State.OPEN]
        skipped = len(peers) - len(recipients)
        if skipped:
            self.logger.debug(f"Skipping {skipped} peer(s) that are not open")

        failed = 0
        try:
            fan_out(recipients, payload, raise_exceptions=True)
        except ExceptionGroup as group:
            failed = len(group.exceptions)
            for error in group.exceptions:
                cause = error.__cause__ or error
                self.logger.warning(f"Broadcast skipped a peer: {cause}")

        delivered = len(recipients) - failed
        self.logger.info(f"Broadcast {len(payload)} bytes to {delivered} peer(s)")
        return delivered

    async def reply(self, peer: ServerConnection, message: Union[WireModel, Dict[str, Any]]) -> bool:
        """
        Send one JSON message to a single peer.

        Args:
            peer: Recipient
            message: Wire model or plain dictionary

        Returns:
            True if the message was sent
        """
        if isinstance(message, WireModel):
            text = message.to_json()
        else:
            text = json.dumps(message)

        try:
            await self._send(peer, text)
        except DeliveryError as e:
            self.logger.warning(str(e))
            return False
        return True

    async def _send(self, peer: ServerConnection, data: Union[str, bytes]) -> None:
        try:
            await peer.send(data)
        except (ConnectionClosed, OSError) as e:
            raise DeliveryError(f"Delivery to {describe_peer(peer)} failed: {e}") from e


def describe_peer(peer: Any) -> str:
    """Printable peer address."""
    address = getattr(peer, 'remote_address', None)
    if isinstance(address, tuple) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address) if address else repr(peer)
