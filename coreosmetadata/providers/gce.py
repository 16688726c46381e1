# Author: Vaidas Jablonskis <jablonskis@gmail.com>
#
# This file is part of coreos-metadata. See LICENSE for license information.

import logging

from coreosmetadata import url_helper
from coreosmetadata.exceptions import InvalidMetadata
from coreosmetadata.providers import (
    MetadataProvider,
    parse_json,
    set_attribute,
)

LOG = logging.getLogger(__name__)

HEADERS = {"Metadata-Flavor": "Google"}


class GoogleMetadataFetcher:
    def __init__(self, provider, metadata_address):
        self.provider = provider
        self.metadata_address = metadata_address

    def get_value(self, path, is_recursive=False):
        """Text of path, None when the server does not have it."""
        url = url_helper.combine_url(self.metadata_address, path)
        if is_recursive:
            url += "/?recursive=true"
        return self.provider.read_optional(url, headers=HEADERS)


def _parse_public_keys(public_keys_data):
    # Entries are '<user>:<public key>', the key is granted whatever the user
    public_keys = []
    for public_key in public_keys_data:
        if not public_key.strip():
            continue
        user, sep, key = public_key.partition(":")
        if not sep or not key.strip():
            LOG.debug("Skipping malformed ssh key entry for %r", user)
            continue
        public_keys.append(key.strip())
    return public_keys


class GCEProvider(MetadataProvider):

    name = "gce"

    # url_map: (our-key, path, required, is_recursive)
    url_map = [
        ("hostname", "instance/hostname", True, False),
        (
            "ip-external",
            "instance/network-interfaces/0/access-configs/0/external-ip",
            False,
            False,
        ),
        ("ip-local", "instance/network-interfaces/0/ip", False, False),
        ("instance-data", "instance/attributes", False, True),
        ("project-data", "project/attributes", False, True),
    ]

    def _get_data(self):
        fetcher = GoogleMetadataFetcher(self, self.ds_cfg["metadata_url"])
        md = {}
        for (mkey, path, required, is_recursive) in self.url_map:
            value = fetcher.get_value(path, is_recursive)
            if required and value is None:
                raise InvalidMetadata(
                    "required key %s returned nothing" % mkey
                )
            md[mkey] = value
        self.metadata = md

    def _get_attributes(self):
        attrs = {}
        set_attribute(attrs, "COREOS_GCE_HOSTNAME", self.metadata["hostname"])
        set_attribute(
            attrs, "COREOS_GCE_IP_EXTERNAL_0", self.metadata["ip-external"]
        )
        set_attribute(
            attrs, "COREOS_GCE_IP_LOCAL_0", self.metadata["ip-local"]
        )
        return attrs

    def _get_ssh_keys(self):
        instance_data = parse_json(
            self.metadata["instance-data"] or "{}", "instance attributes"
        )
        project_data = parse_json(
            self.metadata["project-data"] or "{}", "project attributes"
        )
        valid_keys = [
            instance_data.get("sshKeys"),
            instance_data.get("ssh-keys"),
        ]
        block_project = instance_data.get("block-project-ssh-keys", "")
        if str(block_project).lower() != "true":
            valid_keys.append(project_data.get("ssh-keys"))
            valid_keys.append(project_data.get("sshKeys"))
        public_keys_data = "\n".join([key for key in valid_keys if key])
        return _parse_public_keys(public_keys_data.splitlines())

    def _get_hostname(self):
        return self.metadata["hostname"]
