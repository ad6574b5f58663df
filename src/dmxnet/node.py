"""dmxnet node.

Binds the Art-Net listen port, answers ArtPoll discovery, and creates
ArtDmx senders.
"""

import asyncio
import logging
from typing import Any, Callable

from dmxnet.config import NodeConfig, SenderConfig, is_broadcast
from dmxnet.discovery import ControllerRegistry
from dmxnet.protocol import (
    ArtDmxPacket,
    ArtNetPacket,
    ArtPollPacket,
    ArtPollReplyPacket,
)
from dmxnet.sender import ArtNetSender
from dmxnet.transport import ArtNetListener, DatagramSender

logger = logging.getLogger(__name__)

# Callback for received ArtDmx frames: packet, (host, port)
DmxHandler = Callable[[ArtDmxPacket, tuple[str, int]], None]


def log_level(verbose: int) -> int:
    """Map a verbosity count to a logging level."""
    if verbose > 1:
        return logging.DEBUG
    if verbose > 0:
        return logging.INFO
    return logging.WARNING


class ArtNetNode:
    """An Art-Net node.

    This node:
    - Listens for Art-Net packets on the configured port
    - Tracks polling controllers and broadcasts ArtPollReply
    - Hands received ArtDmx frames to an optional handler
    - Creates senders, each with its own outbound socket
    """

    def __init__(self, config: NodeConfig | None = None):
        self.config = config or NodeConfig()

        logging.getLogger("dmxnet").setLevel(log_level(self.config.verbose))
        logger.info(f"Started with options {self.config.model_dump_json()}")
        logger.debug(f"Interfaces: {[i.model_dump(mode='json') for i in self.config.interfaces]}")

        self._listener = ArtNetListener(
            host=self.config.listen_host, port=self.config.listen_port
        )
        self._listener.handler = self.handle_packet

        # Socket for broadcasting ArtPollReply
        self._reply_socket = DatagramSender(broadcast=True)
        self.registry = ControllerRegistry(self._reply_socket, self.config)

        self.dmx_handler: DmxHandler | None = None

        self._senders: list[ArtNetSender] = []
        self._running = False

    def handle_packet(self, packet: ArtNetPacket, addr: tuple[str, int]) -> None:
        """Dispatch a decoded packet by type."""
        if isinstance(packet, ArtPollPacket):
            logger.debug(f"Detected ArtPoll from {addr[0]}")
            self.registry.handle_poll(addr[0], packet)
        elif isinstance(packet, ArtDmxPacket):
            logger.debug(
                f"Detected ArtDmx from {addr[0]}: net {packet.net}, "
                f"subuni {packet.subuni}, seq {packet.sequence}, {len(packet.data)} channels"
            )
            if self.dmx_handler:
                self.dmx_handler(packet, addr)
        elif isinstance(packet, ArtPollReplyPacket):
            logger.debug(f"Detected ArtPollReply from {addr[0]}: {packet.short_name}")

    def new_sender(self, config: SenderConfig | None = None, **kwargs: Any) -> ArtNetSender:
        """Create a sender with its own socket.

        Either pass a SenderConfig or its fields as keyword arguments.
        The sender is not started.
        """
        if config is None:
            config = SenderConfig(**kwargs)

        transport = DatagramSender(
            broadcast=is_broadcast(config.host, self.config.interfaces)
        )
        transport.open()

        sender = ArtNetSender(transport, config)
        self._senders.append(sender)
        logger.info(f"New sender with params: {config.model_dump_json()}")
        return sender

    async def add_sender(self, config: SenderConfig | None = None, **kwargs: Any) -> ArtNetSender:
        """Create and start a sender."""
        sender = self.new_sender(config, **kwargs)
        await sender.start()
        return sender

    @property
    def senders(self) -> list[ArtNetSender]:
        return list(self._senders)

    async def start(self) -> None:
        """Start listening and the controller sweep."""
        if self._running:
            return

        self._reply_socket.open()
        await self._listener.start()
        await self.registry.start()
        self._running = True

    async def stop(self) -> None:
        """Stop senders, the sweep and the listener."""
        if not self._running and not self._senders:
            return

        logger.info("Stopping node")
        self._running = False

        for sender in self._senders:
            await sender.stop()
        self._senders.clear()

        await self.registry.stop()
        await self._listener.stop()
        self._reply_socket.close()
        logger.info("Node stopped")

    async def run(self) -> None:
        """Run the node until cancelled."""
        await self.start()
        try:
            while self._running:
                await asyncio.sleep(0.1)
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def listen_port(self) -> int:
        return self._listener.actual_port

    def get_stats(self) -> dict[str, Any]:
        """Get node statistics."""
        return {
            "running": self._running,
            "listen_port": self.listen_port,
            "listener": self._listener.get_stats(),
            "discovery": self.registry.get_stats(),
            "senders": [s.get_stats() for s in self._senders],
        }
