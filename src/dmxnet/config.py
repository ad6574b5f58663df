"""Configuration models for dmxnet nodes and senders."""

import ipaddress
from ipaddress import IPv4Address
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from dmxnet.protocol import ARTNET_PORT

LIMITED_BROADCAST = "255.255.255.255"


class NetworkInterfaceInfo(BaseModel):
    """One local IPv4 interface."""

    address: IPv4Address
    netmask: IPv4Address
    broadcast: IPv4Address

    @classmethod
    def from_cidr(cls, cidr: str) -> "NetworkInterfaceInfo":
        """Build from an interface address in CIDR notation, e.g. 10.0.0.5/24."""
        iface = ipaddress.IPv4Interface(cidr)
        return cls(
            address=iface.ip,
            netmask=iface.netmask,
            broadcast=iface.network.broadcast_address,
        )


class SenderConfig(BaseModel):
    """Configuration for one ArtDmx output universe."""

    net: int = Field(default=0, ge=0, le=127)
    subnet: int = Field(default=0, ge=0, le=15)
    universe: int = Field(default=0, ge=0, le=15)
    subuni: int | None = Field(default=None, ge=0, le=255)  # Pre-combined SubNet/Universe

    # Destination
    host: IPv4Address = IPv4Address(LIMITED_BROADCAST)
    port: int = Field(default=ARTNET_PORT, ge=1, le=65535)

    # Keepalive period in seconds
    refresh_interval: float = Field(default=1.0, gt=0)

    @property
    def port_subuni(self) -> int:
        """SubNet/Universe byte sent on the wire."""
        if self.subuni is not None:
            return self.subuni
        return (self.subnet << 4) | self.universe


class NodeConfig(BaseModel):
    """Configuration for a dmxnet node."""

    verbose: int = Field(default=0, ge=0)
    oem: int = Field(default=0x2908, ge=0, le=0xFFFF)

    # Listener
    listen_host: str = "0.0.0.0"
    listen_port: int = Field(default=ARTNET_PORT, ge=0, le=65535)  # 0 = auto

    # ArtPollReply identity
    short_name: str = Field(default="dmxnet node", max_length=17)
    long_name: str = Field(default="dmxnet python artnet", max_length=63)
    node_report: str = Field(default="#0000 [0000] Running", max_length=63)
    firmware_version: int = Field(default=0x0001, ge=0, le=0xFFFF)
    net_switch: int = Field(default=1, ge=0, le=127)
    sub_switch: int = Field(default=1, ge=0, le=15)

    # Local interfaces used for poll replies
    interfaces: list[NetworkInterfaceInfo] = Field(default_factory=list)

    # Liveness
    controller_timeout: float = Field(default=60.0, gt=0)
    sweep_interval: float = Field(default=30.0, gt=0)


class DmxnetConfig(BaseModel):
    """Node configuration plus the senders to start with it."""

    node: NodeConfig = Field(default_factory=NodeConfig)
    senders: list[SenderConfig] = Field(default_factory=list)


def is_broadcast(
    host: IPv4Address | str,
    interfaces: list[NetworkInterfaceInfo] | None = None,
) -> bool:
    """Check whether a destination address is a broadcast address.

    The limited broadcast address always counts. With known interfaces, only
    their directed broadcast addresses count; without any, an address whose
    last octet is 255 is assumed to be a directed broadcast.
    """
    address = IPv4Address(str(host))
    if address == IPv4Address(LIMITED_BROADCAST):
        return True
    if interfaces:
        return any(address == iface.broadcast for iface in interfaces)
    return address.packed[3] == 255


def load_config(path: Path) -> DmxnetConfig:
    """Load configuration from YAML file.

    Layout::

        node:
          verbose: 1
          listen_port: 6454
          interfaces: ["192.168.1.20/24"]
        senders:
          - {net: 0, subnet: 0, universe: 1, host: 192.168.1.255}
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    config_dict: dict[str, Any] = {}

    if "node" in data:
        node = dict(data["node"] or {})
        if "interfaces" in node:
            node["interfaces"] = [
                NetworkInterfaceInfo.from_cidr(iface) if isinstance(iface, str) else iface
                for iface in node["interfaces"]
            ]
        config_dict["node"] = node

    if "senders" in data:
        config_dict["senders"] = data["senders"] or []

    return DmxnetConfig(**config_dict)
