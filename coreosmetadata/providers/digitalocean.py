# Author: Ben Howard  <bh@digitalocean.com>
#
# This file is part of coreos-metadata. See LICENSE for license information.

import logging
from collections import OrderedDict

from coreosmetadata import net
from coreosmetadata.exceptions import InvalidMetadata
from coreosmetadata.providers import (
    MetadataProvider,
    normalize_pubkey_data,
    parse_ip_address,
    parse_json,
    set_attribute,
)

LOG = logging.getLogger(__name__)

# (interface type, address key) -> attribute prefix
ADDRESS_ATTRIBUTES = (
    ("public", "anchor_ipv4", "COREOS_DIGITALOCEAN_IPV4_ANCHOR"),
    ("public", "ipv4", "COREOS_DIGITALOCEAN_IPV4_PUBLIC"),
    ("private", "ipv4", "COREOS_DIGITALOCEAN_IPV4_PRIVATE"),
    ("public", "ipv6", "COREOS_DIGITALOCEAN_IPV6_PUBLIC"),
    ("private", "ipv6", "COREOS_DIGITALOCEAN_IPV6_PRIVATE"),
)


def _subnet_interface(pcfg):
    """ipaddress interface of an ipv4/ipv6/anchor_ipv4 entry."""
    address = pcfg.get("ip_address")
    if not address:
        raise InvalidMetadata("address entry without ip_address: %s" % pcfg)
    try:
        if ":" in address:
            return net.ip_interface(address, pcfg.get("cidr"))
        return net.ip_interface(address, pcfg.get("netmask"))
    except ValueError as e:
        raise InvalidMetadata(
            "invalid address entry %s: %s" % (pcfg, e)
        ) from e


def convert_network_configuration(interfaces, dns_servers):
    """Convert the DigitalOcean interfaces description into a NetworkConfig.

    Example JSON:
     {'public': [
           {'mac': '04:01:58:27:7f:01',
            'ipv4': {'gateway': '45.55.32.1',
                     'netmask': '255.255.224.0',
                     'ip_address': '45.55.50.93'},
            'anchor_ipv4': {
                     'gateway': '10.17.0.1',
                     'netmask': '255.255.0.0',
                     'ip_address': '10.17.0.9'},
            'type': 'public',
            'ipv6': {'gateway': '....',
                     'ip_address': '....',
                     'cidr': 64}}
        ],
       'private': [
           {'mac': '04:01:58:27:7f:02',
            'ipv4': {'gateway': '10.132.0.1',
                     'netmask': '255.255.0.0',
                     'ip_address': '10.132.75.35'},
            'type': 'private'}
        ]
     }

    Each mac gets one unit. Only public, non anchor subnets get a default
    route through their gateway.
    """
    nameservers = [parse_ip_address(n, "nameserver") for n in dns_servers]

    by_mac = OrderedDict()
    for nic_type in sorted(interfaces):
        for nic in interfaces[nic_type]:
            mac_address = nic.get("mac")
            if not mac_address:
                raise InvalidMetadata("interface without mac: %s" % nic)
            entry = by_mac.setdefault(
                mac_address.lower(), {"addresses": [], "routes": []}
            )
            for netdef in ("ipv4", "ipv6", "anchor_ipv4", "anchor_ipv6"):
                raw_subnet = nic.get(netdef)
                if not raw_subnet:
                    continue
                addr = _subnet_interface(raw_subnet)
                entry["addresses"].append(addr)
                gateway = raw_subnet.get("gateway")
                if nic_type != "public" or "anchor" in netdef or not gateway:
                    continue
                destination = (
                    net.IPV6_DEFAULT if addr.version == 6 else net.IPV4_DEFAULT
                )
                gateway = parse_ip_address(gateway, "gateway")
                entry["routes"].append(net.Route(destination, gateway))
            LOG.debug(
                "nic %s (%s) configuration: %s", mac_address, nic_type, entry
            )

    return net.NetworkConfig(
        interfaces=[
            net.Interface(
                mac_address=mac_address,
                addresses=entry["addresses"],
                routes=entry["routes"],
                nameservers=nameservers,
            )
            for mac_address, entry in by_mac.items()
        ]
    )


class DigitalOceanProvider(MetadataProvider):

    name = "digitalocean"

    def _get_data(self):
        response = self.readurl(self.ds_cfg["metadata_url"])
        self.metadata = parse_json(response.contents, "droplet metadata")

    def _get_attributes(self):
        md = self.metadata
        attrs = {}
        set_attribute(
            attrs, "COREOS_DIGITALOCEAN_HOSTNAME", md.get("hostname")
        )
        set_attribute(attrs, "COREOS_DIGITALOCEAN_REGION", md.get("region"))
        interfaces = md.get("interfaces") or {}
        for nic_type, netdef, prefix in ADDRESS_ATTRIBUTES:
            for i, nic in enumerate(interfaces.get(nic_type) or []):
                subnet = nic.get(netdef) or {}
                set_attribute(
                    attrs, "%s_%d" % (prefix, i), subnet.get("ip_address")
                )
        return attrs

    def _get_ssh_keys(self):
        return normalize_pubkey_data(self.metadata.get("public_keys"))

    def _get_hostname(self):
        return self.metadata.get("hostname")

    def _get_network_units(self):
        dns = self.metadata.get("dns") or {}
        return convert_network_configuration(
            self.metadata.get("interfaces") or {},
            dns.get("nameservers") or [],
        )
