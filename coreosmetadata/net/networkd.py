# Copyright (C) 2021-2022 VMware Inc.
#
# This file is part of coreos-metadata. See LICENSE for license information.

import glob
import logging
import os
from collections import OrderedDict
from typing import Dict

from coreosmetadata import atomic_helper, util
from coreosmetadata.net import Device, Interface, NetworkConfig

LOG = logging.getLogger(__name__)

UNIT_INFIX = "-coreos-metadata-"
UNIT_SUFFIXES = (".network", ".netdev")

BOND_MODES = {
    0: "balance-rr",
    1: "active-backup",
    2: "balance-xor",
    3: "broadcast",
    4: "802.3ad",
    5: "balance-tlb",
    6: "balance-alb",
}


class CfgParser:
    # Sections rendered once per entry rather than once per unit
    repeated_sections = ("Address", "Route")

    def __init__(self, sections):
        self.conf_dict = OrderedDict((sec, []) for sec in sections)

    def update_section(self, sec, key, val):
        entries = self.conf_dict[sec]
        entries.append(key + "=" + str(val))
        # remove duplicates from list
        self.conf_dict[sec] = sorted(dict.fromkeys(entries))

    def add_repeated_section(self, sec, pairs):
        """Add one [sec] block made of pairs, e.g. one per route."""
        block = "\n".join(k + "=" + str(v) for k, v in pairs)
        if block not in self.conf_dict[sec]:
            self.conf_dict[sec].append(block)
            self.conf_dict[sec].sort()

    def get_final_conf(self):
        contents = ""
        for k, v in self.conf_dict.items():
            if not v:
                continue
            if k in self.repeated_sections:
                for e in v:
                    contents += "[" + k + "]\n"
                    contents += e + "\n"
                    contents += "\n"
            else:
                contents += "[" + k + "]\n"
                for e in v:
                    contents += e + "\n"
                contents += "\n"

        return contents.rstrip("\n") + "\n"


def unit_name(priority, selector, suffix):
    return "%02d%s%s%s" % (priority, UNIT_INFIX, selector, suffix)


class Renderer:
    """
    Renders a NetworkConfig as systemd-networkd units, one file per
    interface or virtual device, named after the interface identity.
    """

    def render_interface(self, iface: Interface) -> str:
        cfg = CfgParser(["Match", "Network", "Address", "Route"])
        if iface.name:
            cfg.update_section("Match", "Name", iface.name)
        if iface.mac_address:
            cfg.update_section(
                "Match", "MACAddress", iface.mac_address.lower()
            )
        if iface.dhcp:
            cfg.update_section("Network", "DHCP", iface.dhcp)
        if iface.nameservers:
            cfg.update_section(
                "Network", "DNS", " ".join(str(n) for n in iface.nameservers)
            )
        if iface.bond:
            cfg.update_section("Network", "Bond", iface.bond)
        for addr in iface.addresses:
            cfg.add_repeated_section("Address", [("Address", addr)])
        for route in iface.routes:
            cfg.add_repeated_section(
                "Route",
                [
                    ("Destination", route.destination),
                    ("Gateway", route.gateway),
                ],
            )
        return cfg.get_final_conf()

    def render_device(self, dev: Device) -> str:
        cfg = CfgParser(["NetDev", "Bond"])
        cfg.update_section("NetDev", "Name", dev.name)
        cfg.update_section("NetDev", "Kind", dev.kind)
        if dev.mac_address:
            cfg.update_section("NetDev", "MACAddress", dev.mac_address.lower())
        if dev.kind == "bond":
            if dev.bond_mode:
                cfg.update_section("Bond", "Mode", dev.bond_mode)
            cfg.update_section("Bond", "MIIMonitorSec", ".1")
            cfg.update_section("Bond", "UpDelaySec", ".2")
            cfg.update_section("Bond", "DownDelaySec", ".2")
        return cfg.get_final_conf()

    def render_content(self, config: NetworkConfig) -> Dict[str, str]:
        """Return a mapping of unit file name to unit contents."""
        ret_dict = {}
        for dev in config.devices:
            fname = unit_name(dev.priority, dev.name, ".netdev")
            ret_dict[fname] = self.render_device(dev)
        for iface in config.interfaces:
            fname = unit_name(iface.priority, iface.selector, ".network")
            if fname in ret_dict:
                raise ValueError(
                    "Duplicate network unit %s for interface %s"
                    % (fname, iface.selector)
                )
            ret_dict[fname] = self.render_interface(iface)
        return ret_dict

    def render_network_config(self, config: NetworkConfig, network_dir):
        """Write the units for config into network_dir.

        Units from a previous run which are not part of config are removed
        before the new units are written.

        @return: sorted list of the unit paths written.
        """
        util.ensure_dir(network_dir)
        units = self.render_content(config)
        for stale in sorted(set(existing_units(network_dir)) - set(units)):
            LOG.debug("Removing stale network unit %s", stale)
            util.del_file(os.path.join(network_dir, stale))

        written = []
        for fname, contents in sorted(units.items()):
            path = os.path.join(network_dir, fname)
            LOG.debug("Writing network unit %s", path)
            atomic_helper.write_file(path, contents, omode="w")
            written.append(path)
        return written


def existing_units(network_dir):
    """Names of the units in network_dir owned by coreos-metadata."""
    names = []
    for suffix in UNIT_SUFFIXES:
        pattern = os.path.join(network_dir, "*%s*%s" % (UNIT_INFIX, suffix))
        names.extend(os.path.basename(p) for p in glob.glob(pattern))
    return sorted(names)
