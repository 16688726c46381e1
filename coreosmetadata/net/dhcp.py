# Copyright (C) 2017 Canonical Ltd.
#
# This file is part of coreos-metadata. See LICENSE for license information.

import logging
import os
import socket
import struct
from io import StringIO

import configobj

from coreosmetadata import settings, util

LOG = logging.getLogger(__name__)


def networkd_parse_lease(content):
    """Parse a systemd lease file content as in /run/systemd/netif/leases/

    Parse this (almost) ini style file even though it says:
      # This is private data. Do not parse.

    Simply return a dictionary of key/values."""

    return dict(configobj.ConfigObj(StringIO(content), list_values=False))


def networkd_load_leases(leases_d=None):
    """Return a dictionary of dictionaries representing each lease
    found in lease_d.

    The top level key will be the filename, which is typically the ifindex."""

    if leases_d is None:
        leases_d = settings.NETWORKD_LEASES_DIR

    ret = {}
    if not os.path.isdir(leases_d):
        return ret
    for lfile in os.listdir(leases_d):
        ret[lfile] = networkd_parse_lease(
            util.load_text_file(os.path.join(leases_d, lfile))
        )
    return ret


def networkd_get_option_from_leases(keyname, leases_d=None):
    if leases_d is None:
        leases_d = settings.NETWORKD_LEASES_DIR
    leases = networkd_load_leases(leases_d=leases_d)
    for _ifindex, data in sorted(leases.items()):
        if data.get(keyname):
            return data[keyname]
    return None


def get_ip_from_lease_value(lease_value):
    """Decode an address stored as hex in a lease, e.g. networkd writes
    option 245 as '624c3620' and dhclient as '62:4c:36:20'."""
    unescaped_value = lease_value.replace("\\", "")
    if len(unescaped_value) > 4:
        hex_string = ""
        for hex_pair in unescaped_value.split(":"):
            if len(hex_pair) == 1:
                hex_pair = "0" + hex_pair
            hex_string += hex_pair
        packed_bytes = struct.pack(">L", int(hex_string, 16))
    else:
        packed_bytes = unescaped_value.encode("utf-8")
    return socket.inet_ntoa(packed_bytes)
