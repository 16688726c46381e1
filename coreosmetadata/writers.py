# This file is part of coreos-metadata. See LICENSE for license information.
"""Persist the facets of a provider to the host.

Each writer is independent: it either completes or raises WriteError naming
the path it failed on. A facet of None means the platform does not provide
it and nothing is written.
"""

import logging
import os

from coreosmetadata import atomic_helper, ssh_util
from coreosmetadata.exceptions import WriteError
from coreosmetadata.net import networkd

LOG = logging.getLogger(__name__)


def render_attributes(attrs):
    return "".join("%s=%s\n" % (k, attrs[k]) for k in sorted(attrs))


def write_attributes(path, attrs):
    LOG.debug("Writing %d attribute(s) to %s", len(attrs), path)
    try:
        _ensure_parent(path)
        atomic_helper.write_file(
            path, render_attributes(attrs), mode=0o644, omode="w"
        )
    except OSError as e:
        raise WriteError("failed to write attributes", path) from e


def write_ssh_keys(user, keys):
    """Merge keys into the managed block of user's authorized_keys.

    @return: path of the authorized_keys file, None when keys is None.
    """
    if keys is None:
        LOG.debug("No ssh keys provided, not touching %s's keys", user)
        return None
    try:
        return ssh_util.setup_user_keys(keys, user)
    except RuntimeError as e:
        raise WriteError("failed to look up ssh directory", user) from e
    except OSError as e:
        raise WriteError(
            "failed to write ssh keys", e.filename or user
        ) from e


def write_hostname(path, hostname):
    if hostname is None:
        LOG.debug("No hostname provided, not writing %s", path)
        return
    try:
        _ensure_parent(path)
        atomic_helper.write_file(
            path, hostname.strip() + "\n", mode=0o644, omode="w"
        )
    except OSError as e:
        raise WriteError("failed to write hostname", path) from e


def write_network_units(directory, config):
    """Write config as networkd units, pruning the units of a previous run.

    @return: sorted paths written, None when config is None.
    """
    if config is None:
        LOG.debug("No network config provided, leaving %s alone", directory)
        return None
    try:
        return networkd.Renderer().render_network_config(config, directory)
    except (OSError, ValueError) as e:
        raise WriteError("failed to write network units", directory) from e


def _ensure_parent(path):
    parent = os.path.dirname(path)
    if parent and not os.path.isdir(parent):
        os.makedirs(parent)
