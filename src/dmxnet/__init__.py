"""dmxnet - Art-Net node for Python.

Provides:
- ArtNetSender: sends one DMX universe as ArtDmx with keepalive
- ControllerRegistry: ArtPoll discovery with liveness tracking
- ArtNetNode: listener that ties discovery and senders together
"""

from dmxnet.config import (
    DmxnetConfig,
    NetworkInterfaceInfo,
    NodeConfig,
    SenderConfig,
    load_config,
)
from dmxnet.discovery import ControllerRecord, ControllerRegistry
from dmxnet.exceptions import (
    DmxnetError,
    InvalidConfigurationError,
    OutOfRangeError,
    TransportError,
)
from dmxnet.node import ArtNetNode
from dmxnet.protocol import (
    ARTNET_PORT,
    ArtDmxPacket,
    ArtPollPacket,
    ArtPollReplyPacket,
    OpCode,
    UniverseAddress,
    build_artdmx,
    build_artpoll_reply,
    parse_artnet_packet,
)
from dmxnet.sender import ArtNetSender

__version__ = "0.1.0"

__all__ = [
    "ARTNET_PORT",
    "ArtDmxPacket",
    "ArtNetNode",
    "ArtNetSender",
    "ArtPollPacket",
    "ArtPollReplyPacket",
    "ControllerRecord",
    "ControllerRegistry",
    "DmxnetConfig",
    "DmxnetError",
    "InvalidConfigurationError",
    "NetworkInterfaceInfo",
    "NodeConfig",
    "OpCode",
    "OutOfRangeError",
    "SenderConfig",
    "TransportError",
    "UniverseAddress",
    "build_artdmx",
    "build_artpoll_reply",
    "load_config",
    "parse_artnet_packet",
]
