# This file is part of coreos-metadata. See LICENSE for license information.
"""Normalized network configuration shared by every provider.

Providers describe interfaces with the types below; net.networkd turns
them into systemd-networkd units.
"""

import ipaddress
from typing import List, NamedTuple, Optional, Union

DEFAULT_PRIORITY = 10

# Default routes per address family
IPV4_DEFAULT = ipaddress.ip_network("0.0.0.0/0")
IPV6_DEFAULT = ipaddress.ip_network("::/0")

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPInterface = Union[ipaddress.IPv4Interface, ipaddress.IPv6Interface]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


class Route(NamedTuple):
    destination: IPNetwork
    gateway: IPAddress


class Interface(NamedTuple):
    name: Optional[str] = None
    mac_address: Optional[str] = None
    priority: int = DEFAULT_PRIORITY
    dhcp: Optional[str] = None
    addresses: List[IPInterface] = []
    routes: List[Route] = []
    nameservers: List[IPAddress] = []
    bond: Optional[str] = None

    @property
    def selector(self):
        """Stable identity used to name the unit file."""
        if self.name:
            return self.name
        if self.mac_address:
            return self.mac_address.replace(":", "").lower()
        raise ValueError("Interface needs a name or a mac address")


class Device(NamedTuple):
    name: str
    kind: str
    mac_address: Optional[str] = None
    priority: int = DEFAULT_PRIORITY
    bond_mode: Optional[str] = None


class NetworkConfig(NamedTuple):
    interfaces: List[Interface] = []
    devices: List[Device] = []


def ip_interface(address, netmask_or_prefix=None):
    """Return an ipaddress interface object for address.

    netmask_or_prefix may be a dotted netmask, a prefix length or None when
    address already carries one (e.g. '10.0.0.2/24').
    """
    if netmask_or_prefix is None or netmask_or_prefix == "":
        return ipaddress.ip_interface(address)
    return ipaddress.ip_interface("%s/%s" % (address, netmask_or_prefix))
