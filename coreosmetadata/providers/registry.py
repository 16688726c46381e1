# This file is part of coreos-metadata. See LICENSE for license information.

import logging

from coreosmetadata.exceptions import UnknownProvider
from coreosmetadata.providers import MetadataProvider
from coreosmetadata.providers.azure import AzureProvider
from coreosmetadata.providers.cloudstack import (
    CloudStackConfigDriveProvider,
    CloudStackMetadataProvider,
)
from coreosmetadata.providers.digitalocean import DigitalOceanProvider
from coreosmetadata.providers.ec2 import EC2Provider
from coreosmetadata.providers.gce import GCEProvider
from coreosmetadata.providers.openstack import OpenStackMetadataProvider
from coreosmetadata.providers.packet import PacketProvider
from coreosmetadata.providers.vagrant_virtualbox import (
    VagrantVirtualboxProvider,
)

LOG = logging.getLogger(__name__)

# Every supported platform, adding one means adding it here
PROVIDERS = {
    cls.name: cls
    for cls in (
        AzureProvider,
        CloudStackMetadataProvider,
        CloudStackConfigDriveProvider,
        DigitalOceanProvider,
        EC2Provider,
        GCEProvider,
        OpenStackMetadataProvider,
        PacketProvider,
        VagrantVirtualboxProvider,
    )
}


def list_providers():
    return sorted(PROVIDERS)


def resolve(name, cfg=None) -> MetadataProvider:
    """Construct the provider registered under name.

    Construction fetches the metadata.

    @raises UnknownProvider: when name is not registered, before any I/O.
    """
    try:
        cls = PROVIDERS[name]
    except KeyError:
        raise UnknownProvider(name) from None
    LOG.debug("Using provider %s for '%s'", cls.__name__, name)
    return cls(cfg)
