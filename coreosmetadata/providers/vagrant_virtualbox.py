# This file is part of coreos-metadata. See LICENSE for license information.

import logging
import re
import socket

from coreosmetadata import subp
from coreosmetadata.providers import (
    MetadataProvider,
    NotYetAvailable,
    set_attribute,
)

LOG = logging.getLogger(__name__)

INET_RE = re.compile(r"\sinet\s+(?P<address>[0-9.]+)(/\d+)?\s")


def parse_ipv4_address(ip_output):
    """First address of `ip -o -4 addr show` output, or None."""
    match = INET_RE.search(ip_output)
    if match:
        return match.group("address")
    return None


def get_ipv4_address(interface):
    cmd = ["ip", "-o", "-4", "addr", "show", "dev", interface]
    (out, _err) = subp.subp(cmd)
    address = parse_ipv4_address(out)
    if not address:
        raise NotYetAvailable("no ipv4 address on %s" % interface)
    LOG.debug("Found address %s on %s", address, interface)
    return address


class VagrantVirtualboxProvider(MetadataProvider):

    name = "vagrant-virtualbox"

    def _get_data(self):
        interface = self.ds_cfg.get("interface", "eth1")
        # The private network address shows up once vagrant configured it
        self.private_ipv4 = self.wait_for(
            lambda: get_ipv4_address(interface),
            "an ipv4 address on %s" % interface,
        )
        self.system_hostname = socket.gethostname()

    def _get_attributes(self):
        attrs = {}
        set_attribute(
            attrs, "COREOS_VAGRANT_VIRTUALBOX_PRIVATE_IPV4", self.private_ipv4
        )
        set_attribute(
            attrs, "COREOS_VAGRANT_VIRTUALBOX_HOSTNAME", self.system_hostname
        )
        return attrs

    def _get_hostname(self):
        return self.system_hostname
