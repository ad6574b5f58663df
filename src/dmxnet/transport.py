"""UDP transport for Art-Net packets."""

import asyncio
import logging
import socket
from typing import Callable, Protocol

from dmxnet.exceptions import TransportError
from dmxnet.protocol import ArtNetPacket, parse_artnet_packet

logger = logging.getLogger(__name__)


# Callback for parsed packets: packet, (host, port)
PacketHandler = Callable[[ArtNetPacket, tuple[str, int]], None]


class PacketTransport(Protocol):
    """Outbound datagram capability handed to senders and the registry."""

    def send(self, data: bytes, address: tuple[str, int]) -> int: ...

    def close(self) -> None: ...


class DatagramSender:
    """Non-blocking UDP socket for outbound Art-Net packets."""

    def __init__(self, broadcast: bool = True):
        self.broadcast = broadcast

        self._socket: socket.socket | None = None

        # Statistics
        self._packets_sent = 0
        self._bytes_sent = 0
        self._send_errors = 0

    def open(self) -> None:
        """Open UDP socket for sending."""
        if self._socket is not None:
            return

        self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

        if self.broadcast:
            self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)

        # Don't block
        self._socket.setblocking(False)
        logger.debug(f"Sender socket opened (broadcast={self.broadcast})")

    def close(self) -> None:
        """Close UDP socket."""
        if self._socket:
            self._socket.close()
            self._socket = None
            logger.debug(
                f"Sender socket closed. Stats: {self._packets_sent} packets, "
                f"{self._bytes_sent} bytes, {self._send_errors} errors"
            )

    def send(self, data: bytes, address: tuple[str, int]) -> int:
        """Send one datagram.

        Returns:
            Number of bytes sent

        Raises:
            TransportError: socket closed or sendto failed
        """
        if self._socket is None:
            raise TransportError(address, "socket not open")

        try:
            sent = self._socket.sendto(data, address)
        except OSError as e:
            self._send_errors += 1
            raise TransportError(address, str(e)) from e

        self._packets_sent += 1
        self._bytes_sent += sent
        return sent

    @property
    def is_open(self) -> bool:
        return self._socket is not None

    def get_stats(self) -> dict:
        return {
            "packets_sent": self._packets_sent,
            "bytes_sent": self._bytes_sent,
            "send_errors": self._send_errors,
        }


class ArtNetProtocol(asyncio.DatagramProtocol):
    """Decodes inbound datagrams and hands valid packets to a handler."""

    def __init__(self, handler: PacketHandler):
        self.handler = handler
        self.packets_received = 0
        self.packets_dropped = 0

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        logger.debug(f"Got UDP from {addr[0]}:{addr[1]}, {len(data)} bytes")

        packet = parse_artnet_packet(data)
        if packet is None:
            self.packets_dropped += 1
            return

        self.packets_received += 1
        try:
            self.handler(packet, addr)
        except TransportError as e:
            logger.warning(f"Reply to {addr[0]} failed: {e}")
        except Exception as e:
            logger.error(f"Error processing packet from {addr}: {e}")

    def error_received(self, exc: Exception) -> None:
        logger.warning(f"Listener socket error: {exc}")


class ArtNetListener:
    """UDP receiver for Art-Net packets on the listen port."""

    def __init__(self, host: str = "0.0.0.0", port: int = 6454):
        self.host = host
        self.port = port
        self.handler: PacketHandler | None = None

        self._transport: asyncio.DatagramTransport | None = None
        self._protocol: ArtNetProtocol | None = None

    @property
    def actual_port(self) -> int:
        """Get the actual bound port."""
        if self._transport:
            return self._transport.get_extra_info("sockname")[1]
        return self.port

    def _dispatch(self, packet: ArtNetPacket, addr: tuple[str, int]) -> None:
        if self.handler:
            self.handler(packet, addr)

    async def start(self) -> None:
        """Start the listener."""
        loop = asyncio.get_running_loop()

        self._transport, self._protocol = await loop.create_datagram_endpoint(
            lambda: ArtNetProtocol(self._dispatch),
            local_addr=(self.host, self.port),
            family=socket.AF_INET,
            reuse_port=hasattr(socket, "SO_REUSEPORT"),
            allow_broadcast=True,
        )
        logger.info(f"Listening on {self.host}:{self.actual_port}")

    async def stop(self) -> None:
        """Stop the listener."""
        if self._transport:
            self._transport.close()
            self._transport = None
            self._protocol = None
            logger.info("Listener stopped")

    @property
    def is_running(self) -> bool:
        return self._transport is not None

    def get_stats(self) -> dict:
        if self._protocol is None:
            return {"packets_received": 0, "packets_dropped": 0}
        return {
            "packets_received": self._protocol.packets_received,
            "packets_dropped": self._protocol.packets_dropped,
        }
