# Copyright (C) 2012 Canonical Ltd.
# Copyright (C) 2012 Cosmin Luta
# Copyright (C) 2012 Yahoo! Inc.
# Copyright (C) 2012 Gerard Dethier
# Copyright (C) 2015 Hewlett-Packard Development Company, L.P.
#
# This file is part of coreos-metadata. See LICENSE for license information.

import logging
import os

from coreosmetadata import util
from coreosmetadata.exceptions import InvalidMetadata, UnsupportedEnvironment
from coreosmetadata.net import dhcp
from coreosmetadata.providers import (
    MetadataProvider,
    NotYetAvailable,
    set_attribute,
)
from coreosmetadata.providers.helpers.ec2 import MetadataReader

LOG = logging.getLogger(__name__)

# meta-data key -> attribute name, the config drive spells keys with '_'
ATTRIBUTES = (
    ("availability-zone", "COREOS_CLOUDSTACK_AVAILABILITY_ZONE"),
    ("instance-id", "COREOS_CLOUDSTACK_INSTANCE_ID"),
    ("service-offering", "COREOS_CLOUDSTACK_SERVICE_OFFERING"),
    ("cloud-identifier", "COREOS_CLOUDSTACK_CLOUD_IDENTIFIER"),
    ("local-hostname", "COREOS_CLOUDSTACK_LOCAL_HOSTNAME"),
    ("local-ipv4", "COREOS_CLOUDSTACK_IPV4_LOCAL"),
    ("public-hostname", "COREOS_CLOUDSTACK_PUBLIC_HOSTNAME"),
    ("public-ipv4", "COREOS_CLOUDSTACK_IPV4_PUBLIC"),
    ("vm-id", "COREOS_CLOUDSTACK_VM_ID"),
)

CONFIG_DRIVE_METADATA_DIR = "cloudstack/metadata"


def parse_public_keys(blob):
    """One key per non-empty line."""
    if not blob:
        return []
    return [line.strip() for line in blob.splitlines() if line.strip()]


def cloudstack_attributes(metadata):
    attrs = {}
    for key, attr in ATTRIBUTES:
        set_attribute(attrs, attr, metadata.get(key))
    return attrs


def get_vr_address(leases_dir):
    # The virtual router serving the metadata is the DHCP server
    address = dhcp.networkd_get_option_from_leases(
        "SERVER_ADDRESS", leases_d=leases_dir
    )
    if not address:
        raise NotYetAvailable(
            "no SERVER_ADDRESS in networkd leases (%s)" % leases_dir
        )
    LOG.debug("Found SERVER_ADDRESS '%s' via networkd_leases", address)
    return address


class CloudStackMetadataProvider(MetadataProvider):

    name = "cloudstack-metadata"

    def _get_data(self):
        url = self.ds_cfg.get("metadata_url")
        if not url:
            leases_dir = self.ds_cfg.get("leases_dir")
            server = self.wait_for(
                lambda: get_vr_address(leases_dir),
                "the cloudstack virtual router",
            )
            url = "http://%s/latest/meta-data/" % server
        reader = MetadataReader(self, url)
        self.metadata = reader.get_many(key for key, _attr in ATTRIBUTES)
        self.public_keys = parse_public_keys(reader.get("public-keys"))

    def _get_attributes(self):
        return cloudstack_attributes(self.metadata)

    def _get_ssh_keys(self):
        return list(self.public_keys)


def read_config_drive(source_dir):
    """Read the cloudstack metadata files of a mounted config drive.

    @return: (metadata dict keyed like the meta-data service, ssh keys)
    """
    md_dir = os.path.join(source_dir, CONFIG_DRIVE_METADATA_DIR)
    if not os.path.isdir(md_dir):
        raise InvalidMetadata("%s is not a cloudstack config drive" % md_dir)
    metadata = {}
    for key, _attr in ATTRIBUTES:
        fname = os.path.join(md_dir, key.replace("-", "_") + ".txt")
        try:
            metadata[key] = util.load_text_file(fname).strip()
        except FileNotFoundError:
            LOG.debug("Config drive has no %s", fname)
    keys_fn = os.path.join(md_dir, "public_keys.txt")
    keys = parse_public_keys(util.load_text_file(keys_fn, quiet=True))
    return metadata, keys


class CloudStackConfigDriveProvider(MetadataProvider):

    name = "cloudstack-configdrive"

    def _get_data(self):
        label = self.ds_cfg.get("label", "config-2")
        device = self.wait_for(
            lambda: find_config_drive(label), "device %s" % label
        )
        LOG.debug("Reading config drive %s", device)
        try:
            self.metadata, self.public_keys = util.mount_cb(
                device, read_config_drive
            )
        except util.MountFailedError as e:
            raise UnsupportedEnvironment(
                "failed to mount config drive %s" % device
            ) from e

    def _get_attributes(self):
        return cloudstack_attributes(self.metadata)

    def _get_ssh_keys(self):
        return list(self.public_keys)


def find_config_drive(label):
    devices = util.find_devs_with("LABEL=%s" % label, no_cache=True)
    if not devices:
        raise NotYetAvailable("no device labelled %s" % label)
    return sorted(devices)[0]
