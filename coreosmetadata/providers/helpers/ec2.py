# Copyright (C) 2012 Yahoo! Inc.
#
# This file is part of coreos-metadata. See LICENSE for license information.
"""Reader for the EC2 style meta-data tree.

EC2, OpenStack and CloudStack all serve the same layout: one plain text
document per key below a base url, with the ssh keys listed under
public-keys/ as '<index>=<name>' lines.
"""

import logging

from coreosmetadata import url_helper

LOG = logging.getLogger(__name__)


class MetadataReader:
    def __init__(self, provider, base_url):
        self.provider = provider
        self.base_url = base_url

    def get(self, key):
        """Value of key, or None when the service does not have it."""
        url = url_helper.combine_url(self.base_url, key)
        value = self.provider.read_optional(url)
        if value is None:
            LOG.debug("Metadata key %s not present", key)
            return None
        return value.strip()

    def get_many(self, keys):
        """Map each of keys to its value, leaving missing keys out."""
        ret = {}
        for key in keys:
            value = self.get(key)
            if value is not None:
                ret[key] = value
        return ret

    def public_keys(self):
        listing = self.get("public-keys")
        if not listing:
            return []
        keys = []
        for line in listing.splitlines():
            index, _sep, _name = line.strip().partition("=")
            if not index:
                continue
            key = self.get("public-keys/%s/openssh-key" % index)
            if key:
                keys.append(key)
        return keys
