# This file is part of coreos-metadata. See LICENSE for license information.

from unittest import mock

import pytest

from coreosmetadata import util
from coreosmetadata.exceptions import InvalidMetadata, UnsupportedEnvironment
from coreosmetadata.providers import cloudstack
from tests.unittests.helpers import get_cfg, populate_dir, register_metadata

M_PATH = "coreosmetadata.providers.cloudstack."

METADATA = {
    "availability-zone": "zone1",
    "instance-id": "8a1ee7a7-3ff1-4c2b-bb7e-43e2d2a7ef33",
    "service-offering": "Medium Instance",
    "cloud-identifier": "CloudStack-{b5b9d54e}",
    "local-hostname": "vm-1",
    "local-ipv4": "10.1.1.20",
    "public-hostname": "185.19.28.5",
    "public-ipv4": "185.19.28.5",
    "vm-id": "8a1ee7a7-3ff1-4c2b-bb7e-43e2d2a7ef33",
    "public-keys": "ssh-rsa AAAAB3Nza one@host\n\nssh-ed25519 AAAAC3Nz two\n",
}

EXPECTED_ATTRIBUTES = {
    "COREOS_CLOUDSTACK_AVAILABILITY_ZONE": "zone1",
    "COREOS_CLOUDSTACK_INSTANCE_ID": "8a1ee7a7-3ff1-4c2b-bb7e-43e2d2a7ef33",
    "COREOS_CLOUDSTACK_SERVICE_OFFERING": "Medium Instance",
    "COREOS_CLOUDSTACK_CLOUD_IDENTIFIER": "CloudStack-{b5b9d54e}",
    "COREOS_CLOUDSTACK_LOCAL_HOSTNAME": "vm-1",
    "COREOS_CLOUDSTACK_IPV4_LOCAL": "10.1.1.20",
    "COREOS_CLOUDSTACK_PUBLIC_HOSTNAME": "185.19.28.5",
    "COREOS_CLOUDSTACK_IPV4_PUBLIC": "185.19.28.5",
    "COREOS_CLOUDSTACK_VM_ID": "8a1ee7a7-3ff1-4c2b-bb7e-43e2d2a7ef33",
}

EXPECTED_KEYS = ["ssh-rsa AAAAB3Nza one@host", "ssh-ed25519 AAAAC3Nz two"]


class TestCloudStackMetadataProvider:
    def test_metadata_url_from_leases(self, mocked_responses, tmp_path):
        populate_dir(
            str(tmp_path),
            {"2": "ADDRESS=10.1.1.20\nSERVER_ADDRESS=10.1.1.1\n"},
        )
        register_metadata(
            mocked_responses, "http://10.1.1.1/latest/meta-data/", METADATA
        )
        provider = cloudstack.CloudStackMetadataProvider(
            get_cfg(cloudstack_metadata={"leases_dir": str(tmp_path)})
        )
        assert EXPECTED_ATTRIBUTES == provider.attributes()
        assert EXPECTED_KEYS == provider.ssh_keys()
        assert provider.hostname() is None
        assert provider.network_units() is None

    def test_metadata_url_from_config(self, mocked_responses):
        url = "http://10.9.9.9/latest/meta-data/"
        register_metadata(mocked_responses, url, METADATA)
        provider = cloudstack.CloudStackMetadataProvider(
            get_cfg(cloudstack_metadata={"metadata_url": url})
        )
        assert EXPECTED_ATTRIBUTES == provider.attributes()

    def test_no_lease(self, tmp_path, m_sleep):
        with pytest.raises(UnsupportedEnvironment, match="virtual router"):
            cloudstack.CloudStackMetadataProvider(
                get_cfg(
                    attempts=3,
                    cloudstack_metadata={"leases_dir": str(tmp_path)},
                )
            )
        assert 2 == m_sleep.call_count

    def test_lease_shows_up_late(self, mocked_responses, tmp_path, m_sleep):
        populate_dir(str(tmp_path), {"2": "SERVER_ADDRESS=10.1.1.1\n"})
        register_metadata(
            mocked_responses, "http://10.1.1.1/latest/meta-data/", METADATA
        )
        with mock.patch(
            M_PATH + "dhcp.networkd_get_option_from_leases",
            side_effect=[None, "10.1.1.1"],
        ):
            provider = cloudstack.CloudStackMetadataProvider(
                get_cfg(cloudstack_metadata={"leases_dir": str(tmp_path)})
            )
        assert 1 == m_sleep.call_count
        assert EXPECTED_KEYS == provider.ssh_keys()


def populate_config_drive(path, metadata=None, keys=None):
    metadata = METADATA if metadata is None else metadata
    files = {}
    for key, value in metadata.items():
        if key == "public-keys":
            continue
        fname = key.replace("-", "_") + ".txt"
        files[cloudstack.CONFIG_DRIVE_METADATA_DIR + "/" + fname] = value
    if keys is not None:
        files[cloudstack.CONFIG_DRIVE_METADATA_DIR + "/public_keys.txt"] = keys
    populate_dir(path, files)


class TestReadConfigDrive:
    def test_read(self, tmp_path):
        populate_config_drive(str(tmp_path), keys=METADATA["public-keys"])
        metadata, keys = cloudstack.read_config_drive(str(tmp_path))
        assert "zone1" == metadata["availability-zone"]
        assert "vm-1" == metadata["local-hostname"]
        assert EXPECTED_KEYS == keys

    def test_partial(self, tmp_path):
        populate_config_drive(str(tmp_path), {"instance-id": "i-1\n"})
        metadata, keys = cloudstack.read_config_drive(str(tmp_path))
        assert {"instance-id": "i-1"} == metadata
        assert [] == keys

    def test_not_a_config_drive(self, tmp_path):
        with pytest.raises(InvalidMetadata):
            cloudstack.read_config_drive(str(tmp_path))


class TestCloudStackConfigDriveProvider:
    @pytest.fixture
    def m_find_devs(self):
        with mock.patch(M_PATH + "util.find_devs_with") as m_find:
            m_find.return_value = ["/dev/sr0"]
            yield m_find

    def test_facets(self, m_find_devs, tmp_path):
        populate_config_drive(str(tmp_path), keys=METADATA["public-keys"])

        def fake_mount_cb(device, callback):
            assert "/dev/sr0" == device
            return callback(str(tmp_path))

        with mock.patch(M_PATH + "util.mount_cb", side_effect=fake_mount_cb):
            provider = cloudstack.CloudStackConfigDriveProvider(get_cfg())
        assert EXPECTED_ATTRIBUTES == provider.attributes()
        assert EXPECTED_KEYS == provider.ssh_keys()
        assert provider.hostname() is None
        m_find_devs.assert_called_with("LABEL=config-2", no_cache=True)

    def test_first_device_sorted(self, m_find_devs):
        m_find_devs.return_value = ["/dev/vdb", "/dev/sr0"]
        assert "/dev/sr0" == cloudstack.find_config_drive("config-2")

    def test_no_device(self, m_find_devs, m_sleep):
        m_find_devs.return_value = []
        with pytest.raises(UnsupportedEnvironment, match="config-2"):
            cloudstack.CloudStackConfigDriveProvider(get_cfg())
        assert 2 == m_find_devs.call_count
        assert 1 == m_sleep.call_count

    def test_mount_failure(self, m_find_devs):
        with mock.patch(
            M_PATH + "util.mount_cb",
            side_effect=util.MountFailedError("bad fs"),
        ):
            with pytest.raises(UnsupportedEnvironment, match="/dev/sr0"):
                cloudstack.CloudStackConfigDriveProvider(get_cfg())

    def test_wrong_contents(self, m_find_devs, tmp_path):
        with mock.patch(
            M_PATH + "util.mount_cb",
            side_effect=lambda dev, cb: cb(str(tmp_path)),
        ):
            with pytest.raises(InvalidMetadata):
                cloudstack.CloudStackConfigDriveProvider(get_cfg())


class TestParsePublicKeys:
    def test_parse(self):
        assert EXPECTED_KEYS == cloudstack.parse_public_keys(
            METADATA["public-keys"]
        )

    @pytest.mark.parametrize("blob", [None, "", "\n \n"])
    def test_empty(self, blob):
        assert [] == cloudstack.parse_public_keys(blob)
