# This file is part of coreos-metadata. See LICENSE for license information.

import ipaddress
import logging

from coreosmetadata import net
from coreosmetadata.exceptions import InvalidMetadata
from coreosmetadata.net.networkd import BOND_MODES
from coreosmetadata.providers import (
    MetadataProvider,
    normalize_pubkey_data,
    parse_ip_address,
    parse_json,
    set_attribute,
)

LOG = logging.getLogger(__name__)

BOND_NAME = "bond0"
NAMESERVERS = ("147.75.207.207", "147.75.207.208")
# Private addresses are only routed within the project network
PRIVATE_IPV4_NETWORK = ipaddress.ip_network("10.0.0.0/8")


def _address_family(entry):
    try:
        return int(entry.get("address_family", 4))
    except (TypeError, ValueError) as e:
        raise InvalidMetadata("invalid address family in %s" % entry) from e


def _address_interface(entry):
    if not entry.get("address"):
        raise InvalidMetadata("address entry without address: %s" % entry)
    prefix = entry.get("cidr")
    if prefix is None:
        prefix = entry.get("netmask")
    try:
        return net.ip_interface(entry["address"], prefix)
    except ValueError as e:
        raise InvalidMetadata("invalid address %s: %s" % (entry, e)) from e


def convert_network_configuration(network):
    """Convert the Packet network description into a NetworkConfig.

    Every physical interface is enslaved to a single bond which carries all
    of the addresses.
    """
    interfaces = network.get("interfaces") or []
    if not interfaces:
        raise InvalidMetadata("no network interfaces in metadata")
    for iface in interfaces:
        if not iface.get("mac"):
            raise InvalidMetadata("interface without mac: %s" % iface)

    mode = (network.get("bonding") or {}).get("mode")
    bond_mode = None
    if mode is not None:
        try:
            bond_mode = BOND_MODES[int(mode)]
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidMetadata("unsupported bonding mode %r" % mode) from e

    addresses = []
    routes = []
    for entry in network.get("addresses") or []:
        addr = _address_interface(entry)
        addresses.append(addr)
        if not entry.get("gateway"):
            continue
        gateway = parse_ip_address(entry["gateway"], "gateway")
        if entry.get("public"):
            destination = (
                net.IPV6_DEFAULT if addr.version == 6 else net.IPV4_DEFAULT
            )
        elif addr.version == 4:
            destination = PRIVATE_IPV4_NETWORK
        else:
            continue
        routes.append(net.Route(destination, gateway))

    bond = net.Device(
        name=BOND_NAME,
        kind="bond",
        mac_address=interfaces[0]["mac"],
        bond_mode=bond_mode,
    )
    members = [
        net.Interface(mac_address=iface["mac"], bond=BOND_NAME)
        for iface in interfaces
    ]
    bond_iface = net.Interface(
        name=BOND_NAME,
        addresses=addresses,
        routes=routes,
        nameservers=[parse_ip_address(n, "nameserver") for n in NAMESERVERS],
    )
    return net.NetworkConfig(interfaces=[bond_iface] + members, devices=[bond])


class PacketProvider(MetadataProvider):

    name = "packet"

    def _get_data(self):
        response = self.readurl(self.ds_cfg["metadata_url"])
        self.metadata = parse_json(response.contents, "packet metadata")

    def _get_attributes(self):
        attrs = {}
        set_attribute(
            attrs, "COREOS_PACKET_HOSTNAME", self.metadata.get("hostname")
        )
        counts = {}
        network = self.metadata.get("network") or {}
        for entry in network.get("addresses") or []:
            family = _address_family(entry)
            if family == 4 and entry.get("public"):
                prefix = "COREOS_PACKET_IPV4_PUBLIC"
            elif family == 4:
                prefix = "COREOS_PACKET_IPV4_PRIVATE"
            elif family == 6 and entry.get("public"):
                prefix = "COREOS_PACKET_IPV6_PUBLIC"
            else:
                continue
            index = counts.get(prefix, 0)
            counts[prefix] = index + 1
            set_attribute(
                attrs, "%s_%d" % (prefix, index), entry.get("address")
            )
        return attrs

    def _get_ssh_keys(self):
        return normalize_pubkey_data(self.metadata.get("ssh_keys"))

    def _get_hostname(self):
        return self.metadata.get("hostname")

    def _get_network_units(self):
        return convert_network_configuration(
            self.metadata.get("network") or {}
        )
