"""Tests for ControllerRegistry."""

import asyncio

import pytest

from dmxnet.config import NetworkInterfaceInfo, NodeConfig
from dmxnet.discovery import ControllerRegistry
from dmxnet.exceptions import TransportError
from dmxnet.protocol import ArtPollPacket, ArtPollReplyPacket, parse_artnet_packet
from tests.helpers import FakeTransport


@pytest.fixture
def registry(transport: FakeTransport) -> ControllerRegistry:
    return ControllerRegistry(transport)


def poll(talk_to_me: int = 0, priority: int = 0) -> ArtPollPacket:
    return ArtPollPacket(version=14, talk_to_me=talk_to_me, priority=priority)


class TestHandlePoll:
    def test_new_controller(self, registry: ControllerRegistry) -> None:
        record = registry.handle_poll("10.0.0.1", poll(0b00001010, 7), now=100.0)

        assert registry.controllers == [record]
        assert record.address == "10.0.0.1"
        assert record.family == "IPv4"
        assert record.last_poll == 100.0
        assert record.alive
        assert record.diagnostics_unicast
        assert not record.diagnostics_enabled
        assert record.unilateral
        assert record.priority == 7

    def test_repoll_updates_single_record(self, registry: ControllerRegistry) -> None:
        registry.handle_poll("10.0.0.1", poll(priority=1), now=100.0)
        registry.handle_poll("10.0.0.1", poll(priority=2), now=110.0)

        assert len(registry) == 1
        record = registry.get("10.0.0.1")
        assert record.last_poll == 110.0
        assert record.priority == 2

    def test_distinct_addresses(self, registry: ControllerRegistry) -> None:
        registry.handle_poll("10.0.0.1", poll(), now=100.0)
        registry.handle_poll("10.0.0.2", poll(), now=100.0)

        assert len(registry) == 2
        assert {c.address for c in registry.controllers} == {"10.0.0.1", "10.0.0.2"}

    def test_reply_broadcast(
        self, registry: ControllerRegistry, transport: FakeTransport
    ) -> None:
        registry.handle_poll("10.0.0.1", poll(), now=100.0)

        assert len(transport.sent) == 1
        data, address = transport.sent[0]
        assert address == ("255.255.255.255", 6454)

        reply = parse_artnet_packet(data)
        assert isinstance(reply, ArtPollReplyPacket)
        assert reply.ip_address == (0, 0, 0, 0)
        assert reply.oem == 0x2908
        assert reply.short_name == "dmxnet node"

    def test_reply_per_interface(self, transport: FakeTransport) -> None:
        config = NodeConfig(
            oem=0x1234,
            interfaces=[
                NetworkInterfaceInfo.from_cidr("192.168.1.20/24"),
                NetworkInterfaceInfo.from_cidr("10.1.2.3/16"),
            ],
        )
        registry = ControllerRegistry(transport, config)

        registry.handle_poll("192.168.1.5", poll())

        assert [address for _, address in transport.sent] == [
            ("192.168.1.255", 6454),
            ("10.1.255.255", 6454),
        ]
        replies = [parse_artnet_packet(data) for data, _ in transport.sent]
        assert replies[0].ip_address == (192, 168, 1, 20)
        assert replies[1].bind_ip == (10, 1, 2, 3)
        assert replies[1].oem == 0x1234

    def test_reply_failure_keeps_record(self, failing_transport: FakeTransport) -> None:
        registry = ControllerRegistry(failing_transport)

        with pytest.raises(TransportError):
            registry.handle_poll("10.0.0.1", poll(), now=100.0)

        assert registry.get("10.0.0.1") is not None

    def test_reply_failure_on_one_interface(self) -> None:
        class OneBadRoute(FakeTransport):
            def send(self, data: bytes, address: tuple[str, int]) -> int:
                if address == ("192.168.1.255", 6454):
                    raise TransportError(address, "network unreachable")
                return super().send(data, address)

        transport = OneBadRoute()
        config = NodeConfig(
            interfaces=[
                NetworkInterfaceInfo.from_cidr("192.168.1.20/24"),
                NetworkInterfaceInfo.from_cidr("10.1.2.3/16"),
            ],
        )
        registry = ControllerRegistry(transport, config)

        with pytest.raises(TransportError):
            registry.handle_poll("192.168.1.5", poll())

        assert [address for _, address in transport.sent] == [("10.1.255.255", 6454)]
        assert registry.get_stats()["replies_sent"] == 1
        assert registry.get("192.168.1.5") is not None


class TestSweep:
    def test_threshold(self, registry: ControllerRegistry) -> None:
        registry.handle_poll("10.0.0.1", poll(), now=1000.0 - 61)
        registry.handle_poll("10.0.0.2", poll(), now=1000.0 - 59)

        expired = registry.sweep(now=1000.0)

        assert [r.address for r in expired] == ["10.0.0.1"]
        assert not registry.get("10.0.0.1").alive
        assert registry.get("10.0.0.2").alive

    def test_stale_records_are_kept(self, registry: ControllerRegistry) -> None:
        registry.handle_poll("10.0.0.1", poll(), now=0.0)

        registry.sweep(now=1000.0)
        registry.sweep(now=2000.0)

        assert len(registry) == 1
        assert registry.alive_controllers == []

    def test_repoll_revives(self, registry: ControllerRegistry) -> None:
        registry.handle_poll("10.0.0.1", poll(), now=0.0)
        registry.sweep(now=100.0)

        registry.handle_poll("10.0.0.1", poll(), now=101.0)

        assert registry.get("10.0.0.1").alive

    def test_sweep_sends_nothing(
        self, registry: ControllerRegistry, transport: FakeTransport
    ) -> None:
        registry.handle_poll("10.0.0.1", poll(), now=0.0)
        transport.sent.clear()

        registry.sweep(now=100.0)

        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_sweep_loop(self, transport: FakeTransport) -> None:
        config = NodeConfig(controller_timeout=0.01, sweep_interval=0.02)
        registry = ControllerRegistry(transport, config)
        registry.handle_poll("10.0.0.1", poll())

        await registry.start()
        await asyncio.sleep(0.1)
        await registry.stop()

        assert not registry.get("10.0.0.1").alive
