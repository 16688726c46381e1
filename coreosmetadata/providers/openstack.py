# Copyright (C) 2014 Yahoo! Inc.
#
# This file is part of coreos-metadata. See LICENSE for license information.

from coreosmetadata.providers import MetadataProvider, set_attribute
from coreosmetadata.providers.helpers.ec2 import MetadataReader

# OpenStack serves an EC2 compatible tree next to its own json documents
ATTRIBUTES = (
    ("instance-id", "COREOS_OPENSTACK_INSTANCE_ID"),
    ("local-ipv4", "COREOS_OPENSTACK_IPV4_LOCAL"),
    ("public-ipv4", "COREOS_OPENSTACK_IPV4_PUBLIC"),
    ("hostname", "COREOS_OPENSTACK_HOSTNAME"),
    ("instance-type", "COREOS_OPENSTACK_INSTANCE_TYPE"),
    ("placement/availability-zone", "COREOS_OPENSTACK_AVAILABILITY_ZONE"),
)


class OpenStackMetadataProvider(MetadataProvider):

    name = "openstack-metadata"

    def _get_data(self):
        reader = MetadataReader(self, self.ds_cfg["metadata_url"])
        self.metadata = reader.get_many(key for key, _attr in ATTRIBUTES)
        self.public_keys = reader.public_keys()

    def _get_attributes(self):
        attrs = {}
        for key, attr in ATTRIBUTES:
            set_attribute(attrs, attr, self.metadata.get(key))
        return attrs

    def _get_ssh_keys(self):
        return list(self.public_keys)

    def _get_hostname(self):
        return self.metadata.get("hostname")
