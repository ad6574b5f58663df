"""Art-Net Protocol Implementation.

Packet builders and parser for the three packet kinds dmxnet speaks:
ArtDmx (0x5000), ArtPoll (0x2000) and ArtPollReply (0x2100).
Reference: https://art-net.org.uk/downloads/art-net.pdf
"""

import logging
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import NamedTuple

logger = logging.getLogger(__name__)

# Art-Net constants
ARTNET_PORT = 6454
ARTNET_HEADER = b"Art-Net\x00"
ARTNET_VERSION = 14  # Minimum supported protocol version
DMX_CHANNELS = 512

MIN_PACKET_SIZE = 10  # Header + OpCode
ARTPOLL_SIZE = 14
ARTDMX_HEADER_SIZE = 18
ARTPOLL_REPLY_SIZE = 239
ARTPOLL_REPLY_MIN_SIZE = 207  # Up to and including the MAC address

# TalkToMe flag bits
TTM_DIAG_UNICAST = 0b00001000
TTM_DIAG_ENABLE = 0b00000100
TTM_UNILATERAL = 0b00000010

# Port type: can input onto the Art-Net network, DMX512
PORT_TYPE_INPUT_DMX = 0b01000000


class OpCode(IntEnum):
    """Art-Net operation codes (little-endian in packets)."""

    POLL = 0x2000
    POLL_REPLY = 0x2100
    DMX = 0x5000


@dataclass
class ArtDmxPacket:
    """ArtDmx packet (OpCode 0x5000).

    Contains DMX512 channel data for a single universe.
    """

    sequence: int  # 0 = disabled, 1-255 wrapping sequence
    physical: int  # Physical input port (informational)
    subuni: int  # (SubNet << 4) | Universe
    net: int  # 0-127
    data: bytes  # DMX channel data

    @property
    def subnet(self) -> int:
        return (self.subuni >> 4) & 0x0F

    @property
    def universe(self) -> int:
        return self.subuni & 0x0F

    @property
    def address(self) -> "UniverseAddress":
        return UniverseAddress(self.net, self.subnet, self.universe)


@dataclass
class ArtPollPacket:
    """ArtPoll packet (OpCode 0x2000).

    Discovery request broadcast by controllers.
    """

    version: int
    talk_to_me: int = 0  # Flags for response behavior
    priority: int = 0  # Minimum diagnostic priority

    @property
    def diagnostics_unicast(self) -> bool:
        return bool(self.talk_to_me & TTM_DIAG_UNICAST)

    @property
    def diagnostics_enabled(self) -> bool:
        return bool(self.talk_to_me & TTM_DIAG_ENABLE)

    @property
    def unilateral(self) -> bool:
        return bool(self.talk_to_me & TTM_UNILATERAL)


@dataclass
class ArtPollReplyPacket:
    """ArtPollReply packet (OpCode 0x2100).

    Node announcement in response to ArtPoll.
    """

    ip_address: tuple[int, int, int, int]
    port: int
    version: int
    net_switch: int
    sub_switch: int
    oem: int
    ubea_version: int
    status1: int
    esta_code: int
    short_name: str  # 17 chars max, null-terminated
    long_name: str  # 63 chars max, null-terminated
    node_report: str  # 63 chars max, null-terminated
    num_ports: int
    port_types: bytes  # 4 bytes
    good_input: bytes  # 4 bytes
    good_output: bytes  # 4 bytes
    sw_in: bytes  # 4 bytes (universe for each input)
    sw_out: bytes  # 4 bytes (universe for each output)
    style: int
    mac_address: bytes  # 6 bytes
    bind_ip: tuple[int, int, int, int]
    bind_index: int
    status2: int


ArtNetPacket = ArtDmxPacket | ArtPollPacket | ArtPollReplyPacket


class UniverseAddress(NamedTuple):
    """Port-address broken into components."""

    net: int  # 0-127
    subnet: int  # 0-15
    universe: int  # 0-15

    @property
    def subuni(self) -> int:
        """SubNet and Universe packed into one byte."""
        return ((self.subnet & 0x0F) << 4) | (self.universe & 0x0F)

    def to_int(self) -> int:
        """Convert to 15-bit integer."""
        return ((self.net & 0x7F) << 8) | self.subuni

    @classmethod
    def from_int(cls, value: int) -> "UniverseAddress":
        """Parse from 15-bit integer."""
        return cls(
            net=(value >> 8) & 0x7F,
            subnet=(value >> 4) & 0x0F,
            universe=value & 0x0F,
        )


def _ip_bytes(ip_address: str) -> bytes:
    return bytes(int(octet) for octet in ip_address.split("."))


def _padded(text: str, size: int) -> bytes:
    """Encode text as a null-terminated, zero-padded fixed-size field."""
    raw = text.encode("ascii", errors="replace")[: size - 1]
    return raw.ljust(size, b"\x00")


def _cstring(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("ascii", errors="replace")


def build_artdmx(
    subuni: int,
    net: int,
    data: bytes,
    sequence: int = 0,
    physical: int = 0,
) -> bytes:
    """Build an ArtDmx packet carrying a full 512-channel universe.

    Args:
        subuni: (SubNet << 4) | Universe
        net: Net (0-127)
        data: DMX channel data, padded with zeros to 512 channels
        sequence: Sequence number (0=disabled, 1-255)
        physical: Physical port number (informational)

    Returns:
        Complete Art-Net packet ready for UDP transmission
    """
    if len(data) > DMX_CHANNELS:
        raise ValueError(f"ArtDmx payload exceeds {DMX_CHANNELS} channels: {len(data)}")

    # Header: "Art-Net\0" (8 bytes)
    # OpCode: 0x5000 (2 bytes, little-endian)
    # ProtVer: 14 (2 bytes, big-endian)
    # Sequence, Physical, SubUni, Net: 1 byte each
    # Length: 2 bytes big-endian
    # Data: DMX channels
    packet = bytearray(ARTDMX_HEADER_SIZE + DMX_CHANNELS)
    packet[0:8] = ARTNET_HEADER
    struct.pack_into("<H", packet, 8, OpCode.DMX)
    struct.pack_into(">H", packet, 10, ARTNET_VERSION)
    packet[12] = sequence & 0xFF
    packet[13] = physical & 0xFF
    packet[14] = subuni & 0xFF
    packet[15] = net & 0x7F
    struct.pack_into(">H", packet, 16, DMX_CHANNELS)
    packet[18 : 18 + len(data)] = data

    return bytes(packet)


def build_artpoll_reply(
    ip_address: str,
    port: int,
    short_name: str,
    long_name: str,
    node_report: str = "#0000 [0000] Running",
    oem_code: int = 0x2908,
    firmware_version: int = 0x0001,
    net_switch: int = 0x01,
    sub_switch: int = 0x01,
    esta_code: int = 0x0000,
    status1: int = 0x00,
    status2: int = 0x00,
    bind_index: int = 1,
    mac_address: bytes = b"\x00\x00\x00\x00\x00\x00",
) -> bytes:
    """Build an ArtPollReply packet.

    Multi-byte fields after the OpCode are packed big-endian. The node
    advertises four DMX input ports on universes 0-3.

    Args:
        ip_address: Node IPv4 address, also used as BindIp
        port: Port number reported in the reply
        short_name: Short name (max 17 chars)
        long_name: Long name (max 63 chars)
        node_report: Node status text (max 63 chars)
        oem_code: OEM code

    Returns:
        Complete 239-byte Art-Net packet
    """
    ip = _ip_bytes(ip_address)

    packet = bytearray(ARTPOLL_REPLY_SIZE)
    packet[0:8] = ARTNET_HEADER
    struct.pack_into("<H", packet, 8, OpCode.POLL_REPLY)

    # IP address and port
    packet[10:14] = ip
    struct.pack_into(">H", packet, 14, port)

    struct.pack_into(">H", packet, 16, firmware_version)
    packet[18] = net_switch & 0x7F
    packet[19] = sub_switch & 0x0F
    struct.pack_into(">H", packet, 20, oem_code)
    packet[22] = 0  # UBEA version
    packet[23] = status1
    struct.pack_into(">H", packet, 24, esta_code)

    packet[26:44] = _padded(short_name, 18)
    packet[44:108] = _padded(long_name, 64)
    packet[108:172] = _padded(node_report, 64)

    struct.pack_into(">H", packet, 172, 4)
    packet[174:178] = bytes([PORT_TYPE_INPUT_DMX] * 4)
    packet[178:182] = b"\x00\x00\x00\x00"  # GoodInput
    packet[182:186] = b"\x00\x00\x00\x00"  # GoodOutput
    packet[186:190] = bytes([0, 1, 2, 3])  # SwIn
    packet[190:194] = bytes([0, 1, 2, 3])  # SwOut

    # SwVideo, SwMacro, SwRemote, Spare x3, Style: all zero (194-200)

    packet[201:207] = mac_address[:6].ljust(6, b"\x00")
    packet[207:211] = ip
    packet[211] = bind_index
    packet[212] = status2

    # 213-238 filler

    return bytes(packet)


def _parse_artdmx(data: bytes) -> ArtDmxPacket | None:
    if len(data) < ARTDMX_HEADER_SIZE:
        logger.debug("ArtDmx too small")
        return None

    length = struct.unpack_from(">H", data, 16)[0]
    if len(data) < ARTDMX_HEADER_SIZE + length:
        logger.debug(f"ArtDmx truncated: length {length}, got {len(data) - 18} bytes")
        return None

    return ArtDmxPacket(
        sequence=data[12],
        physical=data[13],
        subuni=data[14],
        net=data[15],
        data=bytes(data[18 : 18 + length]),
    )


def _parse_artpoll(data: bytes) -> ArtPollPacket | None:
    if len(data) < ARTPOLL_SIZE:
        logger.debug("ArtPoll too small")
        return None

    # Low byte first
    version = data[10] + data[11] * 256
    if version < ARTNET_VERSION:
        logger.debug(f"Unsupported ArtPoll protocol version {version}")
        return None

    return ArtPollPacket(version=version, talk_to_me=data[12], priority=data[13])


def _parse_artpoll_reply(data: bytes) -> ArtPollReplyPacket | None:
    if len(data) < ARTPOLL_REPLY_MIN_SIZE:
        logger.debug("ArtPollReply too small")
        return None

    if len(data) >= 213:
        bind_ip = tuple(data[207:211])
        bind_index = data[211]
        status2 = data[212]
    else:
        bind_ip = (0, 0, 0, 0)
        bind_index = 0
        status2 = 0

    return ArtPollReplyPacket(
        ip_address=tuple(data[10:14]),
        port=struct.unpack_from(">H", data, 14)[0],
        version=struct.unpack_from(">H", data, 16)[0],
        net_switch=data[18],
        sub_switch=data[19],
        oem=struct.unpack_from(">H", data, 20)[0],
        ubea_version=data[22],
        status1=data[23],
        esta_code=struct.unpack_from(">H", data, 24)[0],
        short_name=_cstring(data[26:44]),
        long_name=_cstring(data[44:108]),
        node_report=_cstring(data[108:172]),
        num_ports=struct.unpack_from(">H", data, 172)[0],
        port_types=bytes(data[174:178]),
        good_input=bytes(data[178:182]),
        good_output=bytes(data[182:186]),
        sw_in=bytes(data[186:190]),
        sw_out=bytes(data[190:194]),
        style=data[200],
        mac_address=bytes(data[201:207]),
        bind_ip=bind_ip,
        bind_index=bind_index,
        status2=status2,
    )


def parse_artnet_packet(data: bytes) -> ArtNetPacket | None:
    """Parse an incoming Art-Net packet.

    Never raises: anything malformed or unsupported yields None.

    Args:
        data: Raw UDP packet data

    Returns:
        Parsed packet object or None if invalid/unsupported
    """
    if len(data) < MIN_PACKET_SIZE:
        logger.debug("Payload too short")
        return None

    if data[0:8] != ARTNET_HEADER:
        logger.debug("Invalid header")
        return None

    opcode = struct.unpack_from("<H", data, 8)[0]
    if opcode == 0:
        logger.debug("Invalid OpCode")
        return None

    if opcode == OpCode.DMX:
        return _parse_artdmx(data)
    elif opcode == OpCode.POLL:
        return _parse_artpoll(data)
    elif opcode == OpCode.POLL_REPLY:
        return _parse_artpoll_reply(data)

    logger.debug(f"OpCode 0x{opcode:04x} not implemented")
    return None
