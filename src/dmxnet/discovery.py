"""ArtPoll discovery: controller registry and ArtPollReply announcements."""

import asyncio
import logging
import time
from dataclasses import dataclass

from dmxnet.config import LIMITED_BROADCAST, NodeConfig
from dmxnet.exceptions import TransportError
from dmxnet.protocol import ARTNET_PORT, ArtPollPacket, build_artpoll_reply
from dmxnet.transport import PacketTransport

logger = logging.getLogger(__name__)


@dataclass
class ControllerRecord:
    """A remote controller seen polling the network."""

    address: str
    family: str
    last_poll: float
    alive: bool
    diagnostics_unicast: bool
    diagnostics_enabled: bool
    unilateral: bool
    priority: int

    def age(self, now: float | None = None) -> float:
        """Seconds since the last poll."""
        return (time.time() if now is None else now) - self.last_poll


class ControllerRegistry:
    """Tracks controllers by address and answers their polls.

    Every valid ArtPoll refreshes the sender's record and triggers an
    ArtPollReply broadcast. A background sweep flags records whose last poll
    is older than the timeout; records are never removed.
    """

    def __init__(self, transport: PacketTransport, config: NodeConfig | None = None):
        self.config = config or NodeConfig()
        self._transport = transport

        self._controllers: dict[str, ControllerRecord] = {}
        self._sweep_task: asyncio.Task | None = None

        self._replies_sent = 0

    @property
    def controllers(self) -> list[ControllerRecord]:
        """All known controllers, alive or stale."""
        return list(self._controllers.values())

    @property
    def alive_controllers(self) -> list[ControllerRecord]:
        return [c for c in self._controllers.values() if c.alive]

    def get(self, address: str) -> ControllerRecord | None:
        return self._controllers.get(address)

    def __len__(self) -> int:
        return len(self._controllers)

    def handle_poll(
        self,
        address: str,
        poll: ArtPollPacket,
        family: str = "IPv4",
        now: float | None = None,
    ) -> ControllerRecord:
        """Record a poll from address and broadcast a reply.

        Raises:
            TransportError: the reply could not be sent; the record is kept
        """
        record = ControllerRecord(
            address=address,
            family=family,
            last_poll=time.time() if now is None else now,
            alive=True,
            diagnostics_unicast=poll.diagnostics_unicast,
            diagnostics_enabled=poll.diagnostics_enabled,
            unilateral=poll.unilateral,
            priority=poll.priority,
        )

        is_new = address not in self._controllers
        self._controllers[address] = record
        logger.debug(
            f"{'New' if is_new else 'Refreshed'} controller {address}, "
            f"{len(self._controllers)} known"
        )

        self.send_reply()
        return record

    def _reply_targets(self) -> list[tuple[str, str]]:
        """(source ip, broadcast ip) pairs, one per known interface."""
        if not self.config.interfaces:
            return [("0.0.0.0", LIMITED_BROADCAST)]
        return [
            (str(iface.address), str(iface.broadcast))
            for iface in self.config.interfaces
        ]

    def build_reply(self, ip_address: str) -> bytes:
        """Build this node's ArtPollReply for one interface address."""
        return build_artpoll_reply(
            ip_address=ip_address,
            port=self.config.listen_port,
            short_name=self.config.short_name,
            long_name=self.config.long_name,
            node_report=self.config.node_report,
            oem_code=self.config.oem,
            firmware_version=self.config.firmware_version,
            net_switch=self.config.net_switch,
            sub_switch=self.config.sub_switch,
        )

    def send_reply(self) -> int:
        """Broadcast an ArtPollReply on every known interface.

        A failure on one interface does not stop the others.

        Returns:
            Number of replies sent

        Raises:
            TransportError: the first failed send, after all interfaces were tried
        """
        sent = 0
        failure: TransportError | None = None
        for source_ip, broadcast_ip in self._reply_targets():
            packet = self.build_reply(source_ip)
            logger.debug(f"Packet content: {packet.hex()}")
            try:
                self._transport.send(packet, (broadcast_ip, ARTNET_PORT))
            except TransportError as e:
                logger.warning(f"ArtPollReply to {broadcast_ip} failed: {e}")
                if failure is None:
                    failure = e
                continue
            sent += 1
            logger.info(f"ArtPollReply sent to {broadcast_ip}")

        self._replies_sent += sent
        if failure is not None:
            raise failure
        return sent

    def sweep(self, now: float | None = None) -> list[ControllerRecord]:
        """Flag controllers that have not polled within the timeout.

        Returns:
            Records that went stale during this sweep
        """
        now = time.time() if now is None else now
        logger.debug(f"Check controller alive, count {len(self._controllers)}")

        expired = []
        for record in self._controllers.values():
            if record.alive and now - record.last_poll > self.config.controller_timeout:
                record.alive = False
                expired.append(record)
                logger.info(f"Controller {record.address} stale")

        return expired

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.sweep_interval)
            self.sweep()

    async def start(self) -> None:
        """Start the periodic liveness sweep."""
        if self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        """Stop the periodic liveness sweep."""
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

    def get_stats(self) -> dict:
        return {
            "controllers": len(self._controllers),
            "alive": len(self.alive_controllers),
            "replies_sent": self._replies_sent,
        }
