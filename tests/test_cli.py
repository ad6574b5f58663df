"""Tests for the command-line driver."""

from ipaddress import IPv4Address

import pytest
from rich.console import Console
from rich.panel import Panel

from dmxnet import cli
from dmxnet.cli import config_from_args, main, parse_args, render_controllers
from dmxnet.config import DmxnetConfig, NodeConfig, SenderConfig
from dmxnet.discovery import ControllerRegistry
from dmxnet.exceptions import OutOfRangeError
from dmxnet.node import ArtNetNode
from dmxnet.protocol import ArtPollPacket
from tests.helpers import FakeTransport


def test_node_only_by_default() -> None:
    config = config_from_args(parse_args([]))

    assert config.node.listen_port == 6454
    assert config.node.oem == 0x2908
    assert config.senders == []


def test_sender_from_flags() -> None:
    args = parse_args(
        [
            "--net", "2",
            "--subnet", "1",
            "--universe", "5",
            "--host", "192.168.1.255",
            "--oem", "0x1234",
            "--interface", "192.168.1.20/24",
            "-vv",
        ]
    )
    config = config_from_args(args)

    assert config.node.verbose == 2
    assert config.node.oem == 0x1234
    assert config.node.interfaces[0].address == IPv4Address("192.168.1.20")
    assert len(config.senders) == 1
    assert config.senders[0].net == 2
    assert config.senders[0].port_subuni == 0x15
    assert config.senders[0].host == IPv4Address("192.168.1.255")


def test_fill_implies_sender() -> None:
    args = parse_args(["--fill", "0", "9", "255"])
    config = config_from_args(args)

    assert args.fill == [0, 9, 255]
    assert len(config.senders) == 1


def test_render_controllers() -> None:
    registry = ControllerRegistry(FakeTransport())
    assert isinstance(render_controllers(registry), Panel)

    registry.handle_poll("10.0.0.1", ArtPollPacket(version=14, talk_to_me=0b0010, priority=5))
    registry.handle_poll("10.0.0.2", ArtPollPacket(version=14), now=0.0)
    registry.sweep()

    console = Console(record=True, width=120)
    console.print(render_controllers(registry))
    output = console.export_text()

    assert "10.0.0.1" in output
    assert "alive" in output
    assert "stale" in output
    assert "unilateral" in output


@pytest.mark.parametrize(
    ("flags", "field", "expected"),
    [
        (["--universe", "3"], "universe", 3),
        (["--subnet", "2"], "subnet", 2),
        (["--host", "10.0.0.7"], "host", IPv4Address("10.0.0.7")),
        (["--port", "6455"], "port", 6455),
    ],
)
def test_any_sender_flag_creates_sender(flags: list[str], field: str, expected: object) -> None:
    config = config_from_args(parse_args(flags))

    assert len(config.senders) == 1
    assert getattr(config.senders[0], field) == expected
    assert config.senders[0].net == 0


def test_main_rejects_invalid_flags() -> None:
    assert main(["--universe", "16"]) == 1


@pytest.mark.asyncio
async def test_run_stops_node_when_fill_invalid(monkeypatch: pytest.MonkeyPatch) -> None:
    nodes: list[ArtNetNode] = []

    class RecordingNode(ArtNetNode):
        def __init__(self, config: NodeConfig) -> None:
            super().__init__(config)
            nodes.append(self)

    monkeypatch.setattr(cli, "ArtNetNode", RecordingNode)
    config = DmxnetConfig(
        node=NodeConfig(listen_host="127.0.0.1", listen_port=0),
        senders=[SenderConfig(host="127.0.0.1", port=9, refresh_interval=10.0)],
    )

    with pytest.raises(OutOfRangeError):
        await cli.run(config, [0, 600, 1], False)

    assert len(nodes) == 1
    assert not nodes[0].is_running
    assert nodes[0].senders == []
