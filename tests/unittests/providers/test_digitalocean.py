# Author: Ben Howard  <bh@digitalocean.com>
#
# This file is part of coreos-metadata. See LICENSE for license information.

import copy
import ipaddress

import pytest
import responses

from coreosmetadata import net
from coreosmetadata.exceptions import InvalidMetadata
from coreosmetadata.net import networkd
from coreosmetadata.providers import digitalocean
from tests.unittests.helpers import get_cfg

METADATA_URL = "http://169.254.169.254/metadata/v1.json"

DO_META = {
    "droplet_id": 2000000,
    "hostname": "coreos-droplet",
    "region": "nyc3",
    "public_keys": [
        "ssh-rsa AAAAB3NzaC1yc2EAAAADAQAB me@laptop",
        "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5 me@desktop",
    ],
    "dns": {"nameservers": ["2001:4860:4860::8844", "8.8.8.8"]},
    "interfaces": {
        "public": [
            {
                "mac": "04:01:57:D1:9E:01",
                "type": "public",
                "ipv4": {
                    "ip_address": "45.55.249.133",
                    "netmask": "255.255.192.0",
                    "gateway": "45.55.192.1",
                },
                "anchor_ipv4": {
                    "ip_address": "10.17.0.5",
                    "netmask": "255.255.0.0",
                    "gateway": "10.17.0.1",
                },
                "ipv6": {
                    "ip_address": "2604:A880:0800:0000:1000:0000:0000:0001",
                    "cidr": 64,
                    "gateway": "2604:A880:0800:0000:0000:0000:0000:0001",
                },
            }
        ],
        "private": [
            {
                "mac": "04:01:57:d1:9e:02",
                "type": "private",
                "ipv4": {
                    "ip_address": "10.132.6.205",
                    "netmask": "255.255.0.0",
                    "gateway": "10.132.0.1",
                },
            }
        ],
    },
}


@pytest.fixture
def droplet(mocked_responses):
    def _droplet(meta=DO_META):
        mocked_responses.add(responses.GET, METADATA_URL, json=meta)
        return digitalocean.DigitalOceanProvider(get_cfg())

    return _droplet


class TestDigitalOceanProvider:
    def test_attributes(self, droplet):
        assert {
            "COREOS_DIGITALOCEAN_HOSTNAME": "coreos-droplet",
            "COREOS_DIGITALOCEAN_REGION": "nyc3",
            "COREOS_DIGITALOCEAN_IPV4_ANCHOR_0": "10.17.0.5",
            "COREOS_DIGITALOCEAN_IPV4_PUBLIC_0": "45.55.249.133",
            "COREOS_DIGITALOCEAN_IPV4_PRIVATE_0": "10.132.6.205",
            "COREOS_DIGITALOCEAN_IPV6_PUBLIC_0": (
                "2604:A880:0800:0000:1000:0000:0000:0001"
            ),
        } == droplet().attributes()

    def test_ssh_keys_and_hostname(self, droplet):
        provider = droplet()
        assert DO_META["public_keys"] == provider.ssh_keys()
        assert "coreos-droplet" == provider.hostname()

    def test_network_units(self, droplet):
        config = droplet().network_units()
        assert [] == config.devices
        private, public = config.interfaces
        assert "04:01:57:d1:9e:01" == public.mac_address
        assert [
            ipaddress.ip_interface("45.55.249.133/18"),
            ipaddress.ip_interface("2604:a880:800:0:1000::1/64"),
            ipaddress.ip_interface("10.17.0.5/16"),
        ] == public.addresses
        assert [
            net.Route(
                net.IPV4_DEFAULT, ipaddress.ip_address("45.55.192.1")
            ),
            net.Route(
                net.IPV6_DEFAULT, ipaddress.ip_address("2604:a880:800::1")
            ),
        ] == public.routes
        assert "04:01:57:d1:9e:02" == private.mac_address
        assert [] == private.routes
        for iface in (public, private):
            assert [
                ipaddress.ip_address("2001:4860:4860::8844"),
                ipaddress.ip_address("8.8.8.8"),
            ] == iface.nameservers

    def test_no_interfaces(self, droplet):
        meta = copy.deepcopy(DO_META)
        del meta["interfaces"]
        provider = droplet(meta)
        assert net.NetworkConfig(interfaces=[]) == provider.network_units()
        assert {
            "COREOS_DIGITALOCEAN_HOSTNAME": "coreos-droplet",
            "COREOS_DIGITALOCEAN_REGION": "nyc3",
        } == provider.attributes()

    def test_invalid_json(self, mocked_responses):
        mocked_responses.add(responses.GET, METADATA_URL, body="{not json")
        with pytest.raises(InvalidMetadata, match="droplet metadata"):
            digitalocean.DigitalOceanProvider(get_cfg())

    def test_bad_address_reported_when_asked(self, droplet):
        meta = copy.deepcopy(DO_META)
        meta["interfaces"]["private"][0]["ipv4"]["ip_address"] = "10.132.6"
        provider = droplet(meta)
        assert "nyc3" == provider.attributes()["COREOS_DIGITALOCEAN_REGION"]
        with pytest.raises(InvalidMetadata):
            provider.network_units()

    def test_single_string_key(self, droplet):
        meta = copy.deepcopy(DO_META)
        meta["public_keys"] = "ssh-rsa AAAAB3NzaC1yc2EAAAADAQAB me@laptop\n"
        assert [
            "ssh-rsa AAAAB3NzaC1yc2EAAAADAQAB me@laptop"
        ] == droplet(meta).ssh_keys()

    @pytest.mark.parametrize("keys", [{"key": "ssh-rsa AAAA"}, ["ok", 7]])
    def test_keys_of_unexpected_shape(self, droplet, keys):
        meta = copy.deepcopy(DO_META)
        meta["public_keys"] = keys
        provider = droplet(meta)
        with pytest.raises(InvalidMetadata, match="ssh key"):
            provider.ssh_keys()
        assert "coreos-droplet" == provider.hostname()

    def test_address_of_unexpected_shape(self, droplet):
        meta = copy.deepcopy(DO_META)
        meta["interfaces"]["public"][0]["ipv4"] = "45.55.249.133"
        provider = droplet(meta)
        with pytest.raises(InvalidMetadata, match="digitalocean"):
            provider.attributes()
        with pytest.raises(InvalidMetadata):
            provider.network_units()
        assert "coreos-droplet" == provider.hostname()


class TestConvertNetworkConfiguration:
    def test_same_mac_merges(self):
        interfaces = {
            "public": [
                {
                    "mac": "04:01:57:d1:9e:01",
                    "ipv4": {
                        "ip_address": "45.55.249.133",
                        "netmask": "255.255.192.0",
                    },
                }
            ],
            "private": [
                {
                    "mac": "04:01:57:D1:9E:01",
                    "ipv4": {
                        "ip_address": "10.132.6.205",
                        "netmask": "255.255.0.0",
                    },
                }
            ],
        }
        config = digitalocean.convert_network_configuration(interfaces, [])
        assert 1 == len(config.interfaces)
        assert 2 == len(config.interfaces[0].addresses)
        # no gateway, no route
        assert [] == config.interfaces[0].routes

    def test_missing_mac(self):
        with pytest.raises(InvalidMetadata, match="without mac"):
            digitalocean.convert_network_configuration(
                {"public": [{"ipv4": {"ip_address": "1.2.3.4"}}]}, []
            )

    def test_invalid_nameserver(self):
        with pytest.raises(InvalidMetadata, match="nameserver"):
            digitalocean.convert_network_configuration({}, ["dns.example"])

    def test_renders_units(self):
        config = digitalocean.convert_network_configuration(
            DO_META["interfaces"], ["8.8.8.8"]
        )
        contents = networkd.Renderer().render_content(config)
        assert [
            "10-coreos-metadata-040157d19e01.network",
            "10-coreos-metadata-040157d19e02.network",
        ] == sorted(contents)
