"""Test doubles and raw packet builders."""

import struct

from dmxnet.exceptions import TransportError
from dmxnet.protocol import ARTNET_HEADER


class FakeTransport:
    """Records outbound datagrams instead of sending them."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[bytes, tuple[str, int]]] = []
        self.closed = False

    def send(self, data: bytes, address: tuple[str, int]) -> int:
        if self.fail:
            raise TransportError(address, "network unreachable")
        self.sent.append((data, address))
        return len(data)

    def close(self) -> None:
        self.closed = True


def make_poll(version: int = 14, talk_to_me: int = 0, priority: int = 0) -> bytes:
    """Build a raw ArtPoll with the version stored low byte first."""
    return (
        ARTNET_HEADER
        + struct.pack("<H", 0x2000)
        + bytes([version & 0xFF, version >> 8, talk_to_me, priority])
    )
