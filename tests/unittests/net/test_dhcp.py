# This file is part of coreos-metadata. See LICENSE for license information.

import pytest

from coreosmetadata.net import dhcp
from tests.unittests.helpers import populate_dir

LEASE_ETH0 = """\
# This is private data. Do not parse.
ADDRESS=10.1.2.3
NETMASK=255.255.255.0
ROUTER=10.1.2.1
SERVER_ADDRESS=10.1.2.1
OPTION_245=624c3620
"""

LEASE_ETH1 = """\
# This is private data. Do not parse.
ADDRESS=192.168.5.10
NETMASK=255.255.255.0
SERVER_ADDRESS=192.168.5.1
"""


class TestNetworkdLeases:
    def test_parse_lease(self):
        lease = dhcp.networkd_parse_lease(LEASE_ETH0)
        assert "10.1.2.3" == lease["ADDRESS"]
        assert "624c3620" == lease["OPTION_245"]
        assert 5 == len(lease)

    def test_value_with_commas_is_kept_whole(self):
        lease = dhcp.networkd_parse_lease("DNS=10.0.0.2,10.0.0.3\n")
        assert "10.0.0.2,10.0.0.3" == lease["DNS"]

    def test_load_leases(self, tmp_path):
        populate_dir(str(tmp_path), {"2": LEASE_ETH0, "3": LEASE_ETH1})
        leases = dhcp.networkd_load_leases(str(tmp_path))
        assert ["2", "3"] == sorted(leases)
        assert "192.168.5.1" == leases["3"]["SERVER_ADDRESS"]

    def test_load_leases_missing_directory(self, tmp_path):
        assert {} == dhcp.networkd_load_leases(str(tmp_path / "leases"))

    def test_option_from_first_lease_carrying_it(self, tmp_path):
        populate_dir(str(tmp_path), {"3": LEASE_ETH1, "2": LEASE_ETH0})
        assert "10.1.2.1" == dhcp.networkd_get_option_from_leases(
            "SERVER_ADDRESS", leases_d=str(tmp_path)
        )
        assert "624c3620" == dhcp.networkd_get_option_from_leases(
            "OPTION_245", leases_d=str(tmp_path)
        )

    def test_option_absent(self, tmp_path):
        populate_dir(str(tmp_path), {"3": LEASE_ETH1})
        assert (
            dhcp.networkd_get_option_from_leases(
                "OPTION_245", leases_d=str(tmp_path)
            )
            is None
        )


class TestGetIpFromLeaseValue:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("624c3620", "98.76.54.32"),
            ("62:4c:36:20", "98.76.54.32"),
            ("a8:3f:81:10", "168.63.129.16"),
            ("a8:3f:81:1", "168.63.129.1"),
        ],
    )
    def test_hex_values(self, value, expected):
        assert expected == dhcp.get_ip_from_lease_value(value)

    def test_packed_value(self):
        assert "98.76.54.32" == dhcp.get_ip_from_lease_value("bL6 ")

    def test_garbage(self):
        with pytest.raises(ValueError):
            dhcp.get_ip_from_lease_value("not-an-address")
