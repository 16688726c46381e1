# Copyright (C) 2012 Canonical Ltd.
# Copyright (C) 2012 Hewlett-Packard Development Company, L.P.
# Copyright (C) 2012 Yahoo! Inc.
#
# This file is part of coreos-metadata. See LICENSE for license information.

import abc
import ipaddress
import logging
import re
from typing import Dict, List, Optional

from coreosmetadata import retry, subp, url_helper, util
from coreosmetadata.exceptions import (
    InvalidMetadata,
    RetrievalError,
    UnreachableProvider,
    UnsupportedEnvironment,
)
from coreosmetadata.net import NetworkConfig

LOG = logging.getLogger(__name__)

UNSET = "_unset"

# RFC 1123 host name: dot separated labels of letters, digits and hyphens
HOSTNAME_MAX_LEN = 253
_LABEL = r"[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?"
HOSTNAME_RE = re.compile(r"^%s(\.%s)*\.?$" % (_LABEL, _LABEL), re.I)


def normalize_hostname(hostname):
    """Return hostname stripped of surrounding whitespace, or None when
    empty.

    @raises InvalidMetadata: if hostname is not a valid DNS name.
    """
    if hostname is None:
        return None
    hostname = hostname.strip()
    if not hostname:
        return None
    if len(hostname) > HOSTNAME_MAX_LEN or not HOSTNAME_RE.match(hostname):
        raise InvalidMetadata("invalid hostname %r" % hostname)
    return hostname


class NotYetAvailable(UnsupportedEnvironment):
    """A boot time resource (lease, device, address) which may still show
    up."""

    retryable = True


def parse_ip_address(value, what="address"):
    try:
        return ipaddress.ip_address(str(value).strip())
    except ValueError as e:
        raise InvalidMetadata("invalid %s: %s" % (what, e)) from e


def parse_json(blob, what="metadata"):
    try:
        return util.load_json(blob)
    except (ValueError, TypeError) as e:
        raise InvalidMetadata("failed to parse %s: %s" % (what, e)) from e


class MetadataProvider(metaclass=abc.ABCMeta):
    """A platform's metadata service, fetched once at construction.

    Subclasses implement _get_data() to discover and fetch the raw metadata
    and the _get_* facet methods to normalize it. Facets a platform does not
    have are reported as None by the default implementations.
    """

    # Registry name of the provider, e.g. 'ec2'
    name: str = ""

    def __init__(self, cfg=None):
        self.sys_cfg = util.mergemanydict([cfg or {}, util.get_builtin_cfg()])
        self.ds_cfg = util.get_cfg_by_path(
            self.sys_cfg, ["providers", self.name], {}
        )
        retries = util.get_cfg_by_path(self.sys_cfg, "retries", {})
        self.attempts = int(retries.get("attempts", 10))
        self.url_params = {
            "retries": max(self.attempts - 1, 0),
            "sec_between": retries.get("sec_between", 1),
            "max_sec_between": retries.get("max_sec_between", 5),
            "timeout": self.sys_cfg.get("timeout", 10),
        }
        self._cache: Dict[str, object] = {}
        LOG.debug("Fetching metadata for provider %s", self.name)
        self._guarded(self._get_data)

    def __str__(self):
        return "%s [%s]" % (self.__class__.__name__, self.name)

    @abc.abstractmethod
    def _get_data(self) -> None:
        """Discover the metadata service and fetch the metadata."""

    def _guarded(self, func):
        """Run func, reporting transport and command failures as
        RetrievalError and documents of an unexpected shape or encoding as
        InvalidMetadata."""
        try:
            return func()
        except RetrievalError:
            raise
        except url_helper.UrlError as e:
            raise UnreachableProvider(
                "failed to fetch %s: %s" % (e.url, e)
            ) from e
        except subp.ProcessExecutionError as e:
            raise RetrievalError("command %s failed" % (e.cmd,)) from e
        except (LookupError, TypeError, AttributeError, ValueError) as e:
            raise InvalidMetadata(
                "malformed metadata for provider %s: %s" % (self.name, e)
            ) from e

    def _memoize(self, facet, func):
        value = self._cache.get(facet, UNSET)
        if value is UNSET:
            value = self._guarded(func)
            self._cache[facet] = value
        return value

    def wait_for(self, func, what):
        """Call func() until it stops raising NotYetAvailable.

        @raises UnsupportedEnvironment: if what never became available.
        """
        try:
            return retry.retry_call(
                func,
                attempts=self.attempts,
                sec_between=self.url_params["sec_between"],
                max_sec_between=self.url_params["max_sec_between"],
                description="waiting for %s" % what,
            )
        except retry.RetriesExhausted as e:
            raise UnsupportedEnvironment("%s not found" % what) from e

    def readurl(self, url, headers=None):
        return url_helper.readurl(url, headers=headers, **self.url_params)

    def read_optional(self, url, headers=None):
        """Contents of url as text, None when the url does not exist."""
        resp = url_helper.read_optional(
            url, headers=headers, **self.url_params
        )
        if resp is None:
            return None
        return util.decode_binary(resp.contents)

    def attributes(self) -> Dict[str, str]:
        return self._memoize("attributes", self._get_attributes)

    def ssh_keys(self) -> Optional[List[str]]:
        return self._memoize("ssh_keys", self._get_ssh_keys)

    def hostname(self) -> Optional[str]:
        return self._memoize(
            "hostname", lambda: normalize_hostname(self._get_hostname())
        )

    def network_units(self) -> Optional[NetworkConfig]:
        return self._memoize("network_units", self._get_network_units)

    @abc.abstractmethod
    def _get_attributes(self) -> Dict[str, str]:
        pass

    def _get_ssh_keys(self) -> Optional[List[str]]:
        return None

    def _get_hostname(self) -> Optional[str]:
        return None

    def _get_network_units(self) -> Optional[NetworkConfig]:
        return None


def set_attribute(attrs, key, value):
    """Set attrs[key] to the stripped value, skipping missing values."""
    if value is None:
        return
    value = str(value).strip()
    if value:
        attrs[key] = value


def normalize_pubkey_data(pubkey_data):
    """Return the ssh keys of a metadata value as a list of stripped lines.

    A string holds one key per line; a list holds one key per entry. Empty
    entries are skipped.

    @raises InvalidMetadata: for any other shape.
    """
    if not pubkey_data:
        return []
    if isinstance(pubkey_data, str):
        pubkey_data = pubkey_data.splitlines()
    if not isinstance(pubkey_data, list):
        raise InvalidMetadata(
            "ssh keys must be a list, got %s" % type(pubkey_data).__name__
        )
    keys = []
    for key_body in pubkey_data:
        if not isinstance(key_body, str):
            raise InvalidMetadata("invalid ssh key entry: %r" % (key_body,))
        if key_body.strip():
            keys.append(key_body.strip())
    return keys
