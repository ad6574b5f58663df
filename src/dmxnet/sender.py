"""Art-Net UDP Sender.

Holds one universe of 512 DMX channels and sends it as ArtDmx packets,
on every change and on a fixed keepalive interval.
"""

import asyncio
import logging
from numbers import Integral

import numpy as np

from dmxnet.config import SenderConfig
from dmxnet.exceptions import OutOfRangeError, TransportError
from dmxnet.protocol import DMX_CHANNELS, UniverseAddress, build_artdmx
from dmxnet.transport import PacketTransport

logger = logging.getLogger(__name__)

MAX_CHANNEL = DMX_CHANNELS - 1
MAX_VALUE = 255


def _check_channel(name: str, channel: int) -> None:
    if not isinstance(channel, Integral) or not 0 <= channel <= MAX_CHANNEL:
        raise OutOfRangeError(name, channel, 0, MAX_CHANNEL)


def _check_value(value: int) -> None:
    if not isinstance(value, Integral) or not 0 <= value <= MAX_VALUE:
        raise OutOfRangeError("value", value, 0, MAX_VALUE)


class ArtNetSender:
    """Sends one DMX universe to an Art-Net destination.

    Handles:
    - Channel state (512 channels, all 0 at start)
    - Sequence number management (1-255 wrapping, 0 never sent)
    - Keepalive retransmission while idle
    """

    def __init__(self, transport: PacketTransport, config: SenderConfig | None = None):
        self.config = config or SenderConfig()
        self._transport = transport

        self._channels = np.zeros(DMX_CHANNELS, dtype=np.uint8)
        self._sequence: int = 1  # 0 = disabled, 1-255 wrapping
        self._keepalive_task: asyncio.Task | None = None
        self._running = False
        self._stopped = False

        # Statistics
        self._frames_sent = 0
        self._send_errors = 0

    @property
    def destination(self) -> tuple[str, int]:
        return (str(self.config.host), self.config.port)

    @property
    def address(self) -> UniverseAddress:
        subuni = self.config.port_subuni
        return UniverseAddress(self.config.net, (subuni >> 4) & 0x0F, subuni & 0x0F)

    @property
    def channels(self) -> np.ndarray:
        """Read-only view of the current channel values."""
        view = self._channels.view()
        view.flags.writeable = False
        return view

    @property
    def sequence(self) -> int:
        """Sequence number the next frame will carry."""
        return self._sequence

    def build_frame(self) -> bytes:
        """Encode the current universe as an ArtDmx packet."""
        return build_artdmx(
            subuni=self.config.port_subuni,
            net=self.config.net,
            data=self._channels.tobytes(),
            sequence=self._sequence,
        )

    def transmit(self) -> int:
        """Send the current frame once.

        Returns:
            Number of bytes sent

        Raises:
            TransportError: the send failed; the sequence still advances
        """
        packet = self.build_frame()
        self._sequence = (self._sequence % 255) + 1

        logger.debug(f"Packet content: {packet.hex()}")

        try:
            sent = self._transport.send(packet, self.destination)
        except TransportError:
            self._send_errors += 1
            raise

        self._frames_sent += 1
        logger.debug(f"ArtDmx frame sent to {self.destination[0]}:{self.destination[1]}")
        return sent

    def set_channel(self, channel: int, value: int) -> int:
        """Set one channel and send the frame immediately."""
        self.prep_channel(channel, value)
        return self.transmit()

    def prep_channel(self, channel: int, value: int) -> None:
        """Set one channel without sending, for batched edits."""
        _check_channel("channel", channel)
        _check_value(value)
        self._channels[channel] = value

    def fill_channels(self, start: int, stop: int, value: int) -> int:
        """Set channels start..stop (inclusive) to value and send."""
        _check_channel("start", start)
        _check_channel("stop", stop)
        _check_value(value)
        if start > stop:
            raise OutOfRangeError("start", start, 0, stop)

        self._channels[start : stop + 1] = value
        return self.transmit()

    async def _keepalive_loop(self) -> None:
        """Resend the current frame on a fixed interval."""
        interval = self.config.refresh_interval
        while self._running:
            await asyncio.sleep(interval)
            try:
                self.transmit()
            except TransportError as e:
                logger.error(f"Keepalive frame failed: {e}")

    async def start(self) -> None:
        """Send the first frame and start the keepalive loop.

        Raises:
            RuntimeError: the sender was stopped; its socket is closed
        """
        if self._stopped:
            raise RuntimeError("Sender stopped. Create a new sender to resume output.")
        if self._running:
            return

        self._running = True
        logger.info(
            f"Sender started: net {self.config.net}, subuni {self.config.port_subuni}, "
            f"destination {self.destination[0]}:{self.destination[1]}"
        )

        try:
            self.transmit()
        except TransportError as e:
            logger.error(f"Initial frame failed: {e}")

        self._keepalive_task = asyncio.create_task(self._keepalive_loop())

    async def stop(self) -> None:
        """Stop the keepalive loop and release the socket."""
        self._running = False
        self._stopped = True

        if self._keepalive_task:
            self._keepalive_task.cancel()
            try:
                await self._keepalive_task
            except asyncio.CancelledError:
                pass
            self._keepalive_task = None

        self._transport.close()
        logger.info(
            f"Sender stopped. Stats: {self._frames_sent} frames, {self._send_errors} errors"
        )

    def get_stats(self) -> dict:
        """Get sender statistics."""
        return {
            "running": self._running,
            "frames_sent": self._frames_sent,
            "send_errors": self._send_errors,
            "sequence": self._sequence,
        }

    @property
    def is_running(self) -> bool:
        return self._running
