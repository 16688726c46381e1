# Copyright (C) 2013 Canonical Ltd.
#
# This file is part of coreos-metadata. See LICENSE for license information.

import logging

from coreosmetadata.exceptions import UnsupportedEnvironment
from coreosmetadata.net import dhcp
from coreosmetadata.providers import MetadataProvider, set_attribute
from coreosmetadata.providers.helpers import azure

LOG = logging.getLogger(__name__)


def get_wireserver_endpoint(leases_dir=None):
    """Wireserver address from DHCP option 245, or the well known address
    when no lease carries it."""
    value = dhcp.networkd_get_option_from_leases(
        "OPTION_245", leases_d=leases_dir
    )
    if not value:
        LOG.debug(
            "No OPTION_245 in networkd leases, using %s",
            azure.DEFAULT_WIRESERVER_ENDPOINT,
        )
        return azure.DEFAULT_WIRESERVER_ENDPOINT
    try:
        endpoint = dhcp.get_ip_from_lease_value(value)
    except (ValueError, OSError) as e:
        raise UnsupportedEnvironment(
            "invalid wireserver address %r in networkd leases" % value
        ) from e
    LOG.debug("Found wireserver endpoint %s via networkd_leases", endpoint)
    return endpoint


class AzureProvider(MetadataProvider):

    name = "azure"

    def _get_data(self):
        self.endpoint = self.ds_cfg.get(
            "wireserver_endpoint"
        ) or get_wireserver_endpoint(self.ds_cfg.get("leases_dir"))
        self.client = azure.AzureEndpointHttpClient(self)

        versions = azure.parse_versions(
            self.client.get("http://%s/?comp=versions" % self.endpoint)
        )
        if azure.PROTOCOL_VERSION not in versions:
            raise UnsupportedEnvironment(
                "wireserver %s does not support protocol version %s (%s)"
                % (self.endpoint, azure.PROTOCOL_VERSION, ", ".join(versions))
            )

        LOG.debug("Fetching GoalState from %s", self.endpoint)
        self.goal_state = azure.GoalState(
            self.client.get(
                "http://%s/machine/?comp=goalstate" % self.endpoint
            )
        )
        self.shared_config = None
        if self.goal_state.shared_config_url:
            self.shared_config = azure.SharedConfig(
                self.client.get(self.goal_state.shared_config_url),
                self.goal_state.instance_id,
            )

    def _get_attributes(self):
        attrs = {}
        if self.shared_config is not None:
            set_attribute(
                attrs,
                "COREOS_AZURE_IPV4_DYNAMIC",
                self.shared_config.dynamic_ipv4,
            )
            set_attribute(
                attrs,
                "COREOS_AZURE_IPV4_VIRTUAL",
                self.shared_config.virtual_ipv4,
            )
        return attrs

    def _get_ssh_keys(self):
        url = self.goal_state.certificates_url
        if not url:
            LOG.debug("GoalState has no certificates")
            return []
        with azure.OpenSSLManager() as openssl_manager:
            certificates_xml = self.client.get(
                url, certificate=openssl_manager.certificate
            )
            return openssl_manager.parse_certificates(certificates_xml)
