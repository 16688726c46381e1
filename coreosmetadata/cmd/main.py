#!/usr/bin/env python3

# This file is part of coreos-metadata. See LICENSE for license information.

"""Fetch the metadata of the cloud this machine booted on and write it out
as host configuration."""

import argparse
import logging
import sys

from coreosmetadata import settings, util, version, writers
from coreosmetadata.exceptions import (
    ConfigurationError,
    MetadataError,
    StageError,
    format_error_chain,
)
from coreosmetadata.log import loggers
from coreosmetadata.providers import registry

NAME = "coreos-metadata"

LOG = logging.getLogger(__name__)

STAGE_INIT = "initialization"
STAGE_FETCH = "fetching metadata from provider"
STAGE_ATTRIBUTES = "writing metadata attributes"
STAGE_SSH_KEYS = "writing ssh keys"
STAGE_HOSTNAME = "writing hostname"
STAGE_NETWORK_UNITS = "writing network units"


def get_parser(parser=None):
    """Build or extend an arg parser for the coreos-metadata utility.

    @param parser: Optional existing ArgumentParser instance which will be
        extended to support the args of this utility.

    @returns: ArgumentParser with proper argument configuration.
    """
    if not parser:
        parser = argparse.ArgumentParser(
            prog=NAME,
            description="Fetch and write out cloud provider metadata",
        )
    parser.add_argument(
        "--provider",
        type=str,
        help="The name of the cloud provider (one of: %s)"
        % ", ".join(registry.list_providers()),
    )
    parser.add_argument(
        "--cmdline",
        action="store_true",
        default=False,
        help=(
            "Read the cloud provider from the %s kernel parameter"
            % settings.CMDLINE_OEM_FLAG
        ),
    )
    parser.add_argument(
        "--cmdline-file",
        type=str,
        default=settings.CMDLINE_PATH,
        help=argparse.SUPPRESS,
    )
    parser.add_argument(
        "--attributes",
        type=str,
        metavar="PATH",
        help="The file into which the metadata attributes are written",
    )
    parser.add_argument(
        "--ssh-keys",
        type=str,
        metavar="USER",
        help="Update SSH keys for the given user",
    )
    parser.add_argument(
        "--hostname",
        type=str,
        metavar="PATH",
        help="The file into which the hostname should be written",
    )
    parser.add_argument(
        "--network-units",
        type=str,
        metavar="DIR",
        help="The directory into which network units are written",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=settings.DEFAULT_CONFIG,
        help="Path to a yaml configuration file. Default is %s"
        % settings.DEFAULT_CONFIG,
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Log debug messages",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s " + version.version_string(),
    )
    return parser


def get_provider_name(args):
    """An explicit --provider wins over --cmdline.

    @raises ConfigurationError: if neither was given, or the kernel command
        line does not name a provider.
    """
    if args.provider:
        return args.provider
    if args.cmdline:
        return util.get_cmdline_value(
            settings.CMDLINE_OEM_FLAG, args.cmdline_file
        )
    raise ConfigurationError(
        "Must set either --provider or --cmdline to select a provider"
    )


def load_config(path):
    return util.mergemanydict([util.read_conf(path), util.get_builtin_cfg()])


def _with_stage(stage, error):
    err = StageError(stage)
    err.__cause__ = error
    return err


def run(args, log=LOG):
    """Fetch the metadata and write every requested output.

    Each output is attempted even when a previous one failed.

    @raises StageError: when no provider could be selected or its metadata
        could not be fetched.
    @return: list of StageError, one per output which could not be written.
    """
    try:
        name = get_provider_name(args)
        cfg = load_config(args.config)
    except MetadataError as e:
        raise StageError(STAGE_INIT) from e

    log.info("Fetching metadata from provider %s", name)
    try:
        provider = registry.resolve(name, cfg)
    except MetadataError as e:
        raise StageError(STAGE_FETCH) from e

    outputs = [
        (
            STAGE_ATTRIBUTES,
            args.attributes,
            lambda: writers.write_attributes(
                args.attributes, provider.attributes()
            ),
        ),
        (
            STAGE_SSH_KEYS,
            args.ssh_keys,
            lambda: writers.write_ssh_keys(args.ssh_keys, provider.ssh_keys()),
        ),
        (
            STAGE_HOSTNAME,
            args.hostname,
            lambda: writers.write_hostname(args.hostname, provider.hostname()),
        ),
        (
            STAGE_NETWORK_UNITS,
            args.network_units,
            lambda: writers.write_network_units(
                args.network_units, provider.network_units()
            ),
        ),
    ]

    failures = []
    for stage, target, write in outputs:
        if not target:
            continue
        log.debug("%s to %s", stage, target)
        try:
            write()
        except MetadataError as e:
            failures.append(_with_stage(stage, e))
    return failures


def handle_args(name, args, log=LOG):
    """Handle calls to the 'coreos-metadata' cli.

    @return: 0 on success, 1 on any failure.
    """
    handler = loggers.setup_basic_logging(
        logging.DEBUG if args.debug else logging.INFO
    )
    try:
        try:
            failures = run(args, log=log)
        except StageError as e:
            failures = [e]
        for failure in failures:
            log.error("%s", format_error_chain(failure))
        if failures:
            return 1
        log.debug("%s finished successfully", name)
        return 0
    finally:
        loggers.teardown_logging(handler)


def main():
    """Tool to write out cloud provider metadata."""
    parser = get_parser()
    sys.exit(handle_args(NAME, parser.parse_args()))


if __name__ == "__main__":
    main()
