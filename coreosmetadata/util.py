# Copyright (C) 2012 Canonical Ltd.
# Copyright (C) 2012 Hewlett-Packard Development Company, L.P.
# Copyright (C) 2012 Yahoo! Inc.
#
# This file is part of coreos-metadata. See LICENSE for license information.

import contextlib
import copy as obj_copy
import json
import logging
import os
import shutil
from errno import ENOENT
from typing import Dict, Mapping, Sequence, Union

import yaml

from coreosmetadata import settings, subp, temp_utils
from coreosmetadata.exceptions import ConfigurationError
from coreosmetadata.log.loggers import logexc

LOG = logging.getLogger(__name__)


class MountFailedError(Exception):
    pass


def decode_binary(blob: Union[str, bytes], encoding="utf-8") -> str:
    # Converts a binary type into a text type using given encoding.
    return blob if isinstance(blob, str) else blob.decode(encoding=encoding)


def load_binary_file(fname, *, quiet: bool = False) -> bytes:
    LOG.debug("Reading from %s (quiet=%s)", fname, quiet)
    try:
        with open(fname, "rb") as ifh:
            contents = ifh.read()
    except FileNotFoundError:
        if not quiet:
            raise
        contents = b""
    LOG.debug("Read %s bytes from %s", len(contents), fname)
    return contents


def load_text_file(fname, *, quiet: bool = False) -> str:
    return decode_binary(load_binary_file(fname, quiet=quiet))


def load_json(text, root_types=(dict,)):
    decoded = json.loads(decode_binary(text))
    if not isinstance(decoded, tuple(root_types)):
        expected_types = ", ".join([str(t) for t in root_types])
        raise TypeError(
            "(%s) root types expected, got %s instead"
            % (expected_types, type(decoded))
        )
    return decoded


def read_conf(fname) -> Dict:
    """Read a yaml config file and convert it to a dict.

    A missing file is an empty config; anything other than a mapping at the
    top level is a ConfigurationError.
    """
    try:
        config_file = load_text_file(fname)
    except FileNotFoundError:
        return {}
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(
            "Failed reading config %s: %s" % (fname, e)
        ) from e
    try:
        loaded = yaml.safe_load(config_file)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            "Failed loading yaml config %s: %s" % (fname, e)
        ) from e
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(
            "Config %s is not a mapping, got %s instead"
            % (fname, type(loaded).__name__)
        )
    return loaded


def get_builtin_cfg():
    # Deep copy so that others can't modify
    return obj_copy.deepcopy(settings.CFG_BUILTIN)


def mergemanydict(sources: Sequence[Mapping], reverse=False) -> dict:
    """Merge multiple dicts recursively.

    Values are never replaced once set, so the highest priority source must
    be specified first. Nested dicts are merged key by key; lists and
    scalars are taken whole from the first source that has them.

    mergemanydict([{"a": 1, "d": {"a": 1}}, {"a": 10, "d": {"f": 10}}])
    results in {"a": 1, "d": {"a": 1, "f": 10}}
    """
    if reverse:
        sources = list(reversed(sources))
    merged_cfg: dict = {}
    for cfg in sources:
        if cfg:
            merged_cfg = _merge_into(merged_cfg, cfg)
    return merged_cfg


def _merge_into(merged, cfg):
    for key, value in cfg.items():
        if key not in merged:
            merged[key] = obj_copy.deepcopy(value)
        elif isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _merge_into(merged[key], value)
    return merged


def get_cfg_by_path(yobj, keyp, default=None):
    """Return the value of the item at path C{keyp} in C{yobj}.

    example:
      get_cfg_by_path({'a': {'b': {'num': 4}}}, 'a/b/num') == 4
      get_cfg_by_path({'a': {'b': {'num': 4}}}, 'c/d') == None

    @param yobj: A dictionary.
    @param keyp: A path inside yobj.  it can be a '/' delimited string,
                 or an iterable.
    @param default: The default to return if the path does not exist.
    @return: The value of the item at keyp."
    is not found."""

    if isinstance(keyp, str):
        keyp = keyp.split("/")
    cur = yobj
    for tok in keyp:
        if not isinstance(cur, dict) or tok not in cur:
            return default
        cur = cur[tok]
    return cur


def get_cmdline_value(key, path=settings.CMDLINE_PATH):
    """Return the value of key in the space separated key=value parameter
    list found in path.

    @raises ConfigurationError: if the file cannot be read or does not
        contain key.
    """
    try:
        contents = load_text_file(path)
    except (IOError, OSError) as e:
        raise ConfigurationError(
            "Failed to read cmdline file (%s)" % path
        ) from e

    for param in contents.split():
        name, sep, value = param.partition("=")
        if sep and name == key:
            return value

    raise ConfigurationError(
        "Couldn't find '%s' flag in cmdline file (%s)" % (key, path)
    )


def ensure_dir(path, mode=None):
    if not os.path.isdir(path):
        os.makedirs(path)
    chmod(path, mode)


def chmod(path, mode):
    if path and mode:
        os.chmod(path, mode)


def chownbyid(fname, uid=None, gid=None):
    if uid in [None, -1] and gid in [None, -1]:
        # Nothing to do
        return
    LOG.debug("Changing the ownership of %s to %s:%s", fname, uid, gid)
    os.chown(fname, uid, gid)


def del_file(path):
    LOG.debug("Attempting to remove %s", path)
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


def del_dir(path):
    LOG.debug("Recursively deleting %s", path)
    shutil.rmtree(path)


def find_devs_with(criteria=None, oformat="device", no_cache=False):
    """
    find devices matching given criteria (via blkid)
    criteria can be *one* of:
      TYPE=<filesystem>
      LABEL=<label>
      UUID=<uuid>
    """
    options = []
    if criteria:
        options.append("-t%s" % (criteria))
    if no_cache:
        # Start with a clean cache so devices that are gone are not reported
        options.extend(["-c", "/dev/null"])
    if oformat:
        options.append("-o%s" % (oformat))
    cmd = ["blkid"] + options
    # See man blkid for why 2 is added
    try:
        (out, _err) = subp.subp(cmd, rcs=[0, 2])
    except subp.ProcessExecutionError as e:
        if e.errno == ENOENT:
            # blkid not found...
            out = ""
        else:
            raise
    entries = []
    for line in out.splitlines():
        line = line.strip()
        if line:
            entries.append(line)
    return entries


def mounts():
    mounted = {}
    try:
        mount_locs = load_text_file("/proc/mounts").splitlines()
        for mpline in mount_locs:
            try:
                (dev, mp, fstype, opts, _freq, _passno) = mpline.split()
            except ValueError:
                continue
            # If the name of the mount point contains spaces these
            # can be escaped as '\040', so undo that..
            mp = mp.replace("\\040", " ")
            mounted[dev] = {
                "fstype": fstype,
                "mountpoint": mp,
                "opts": opts,
            }
        LOG.debug("Fetched %s mounts from /proc/mounts", mounted)
    except (IOError, OSError):
        logexc(LOG, "Failed fetching mount points")
    return mounted


@contextlib.contextmanager
def unmounter(umount):
    try:
        yield umount
    finally:
        if umount:
            umount_cmd = ["umount", umount]
            subp.subp(umount_cmd)


def mount_cb(device, callback, mtype=None):
    """
    Mount the device read-only, call method 'callback' passing the directory
    in which it was mounted, then unmount.  Return whatever 'callback'
    returned.

    mtype is a filesystem type.  it may be a list, string (a single fsname)
    or None for 'auto'.
    """
    if isinstance(mtype, str):
        mtypes = [mtype]
    elif isinstance(mtype, (list, tuple)):
        mtypes = list(mtype)
    elif mtype is None:
        mtypes = ["auto"]
    else:
        raise TypeError(
            "Unsupported type provided for mtype parameter: {_type}".format(
                _type=type(mtype)
            )
        )

    mounted = mounts()
    with temp_utils.tempdir() as tmpd:
        umount = False
        if os.path.realpath(device) in mounted:
            mountpoint = mounted[os.path.realpath(device)]["mountpoint"]
        else:
            failure_reason = None
            for mtype in mtypes:
                mountpoint = None
                mountcmd = ["mount", "-o", "ro", "-t", mtype, device, tmpd]
                try:
                    subp.subp(mountcmd)
                    umount = tmpd  # This forces it to be unmounted (when set)
                    mountpoint = tmpd
                    break
                except (IOError, OSError) as exc:
                    LOG.debug(
                        "Failed to mount device: '%s' with type: '%s' "
                        "using mount command: '%s', "
                        "which caused exception: %s",
                        device,
                        mtype,
                        " ".join(mountcmd),
                        exc,
                    )
                    failure_reason = exc
            if not mountpoint:
                raise MountFailedError(
                    "Failed mounting %s to %s due to: %s"
                    % (device, tmpd, failure_reason)
                )

        # Be nice and ensure it ends with a slash
        if not mountpoint.endswith("/"):
            mountpoint += "/"
        with unmounter(umount):
            return callback(mountpoint)
