# Copyright (C) 2009-2010 Canonical Ltd.
# Copyright (C) 2012 Hewlett-Packard Development Company, L.P.
# Copyright (C) 2012 Yahoo! Inc.
#
# This file is part of coreos-metadata. See LICENSE for license information.

import logging

from coreosmetadata.providers import MetadataProvider, set_attribute
from coreosmetadata.providers.helpers.ec2 import MetadataReader

LOG = logging.getLogger(__name__)

# meta-data key -> attribute name
ATTRIBUTES = (
    ("instance-id", "COREOS_EC2_INSTANCE_ID"),
    ("local-ipv4", "COREOS_EC2_IPV4_LOCAL"),
    ("public-ipv4", "COREOS_EC2_IPV4_PUBLIC"),
    ("hostname", "COREOS_EC2_HOSTNAME"),
    ("public-hostname", "COREOS_EC2_PUBLIC_HOSTNAME"),
    ("placement/availability-zone", "COREOS_EC2_AVAILABILITY_ZONE"),
)


def region_from_zone(zone):
    """'us-east-1a' -> 'us-east-1'"""
    if not zone:
        return None
    return zone.rstrip("abcdefghijklmnopqrstuvwxyz") or None


class EC2Provider(MetadataProvider):

    name = "ec2"

    def _get_data(self):
        reader = MetadataReader(self, self.ds_cfg["metadata_url"])
        self.metadata = reader.get_many(key for key, _attr in ATTRIBUTES)
        self.public_keys = reader.public_keys()

    def _get_attributes(self):
        attrs = {}
        for key, attr in ATTRIBUTES:
            set_attribute(attrs, attr, self.metadata.get(key))
        set_attribute(
            attrs,
            "COREOS_EC2_REGION",
            region_from_zone(
                self.metadata.get("placement/availability-zone")
            ),
        )
        return attrs

    def _get_ssh_keys(self):
        return list(self.public_keys)

    def _get_hostname(self):
        return self.metadata.get("hostname")
