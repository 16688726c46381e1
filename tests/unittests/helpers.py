# This file is part of coreos-metadata. See LICENSE for license information.

import os

import responses

from coreosmetadata import util


def get_cfg(attempts=2, **providers):
    """Builtin config with a short retry budget.

    Keyword arguments update the config of the named provider, e.g.
    get_cfg(ec2={"metadata_url": "http://md/"}).
    """
    cfg = util.get_builtin_cfg()
    cfg["retries"]["attempts"] = attempts
    for name, overrides in providers.items():
        cfg["providers"][name.replace("_", "-")].update(overrides)
    return cfg


def populate_dir(path, files):
    """Write files, a mapping of relative path to contents, below path."""
    for name, content in files.items():
        p = os.path.join(path, name)
        util.ensure_dir(os.path.dirname(p))
        mode = "wb" if isinstance(content, bytes) else "w"
        with open(p, mode) as fp:
            fp.write(content)


def dir2dict(startdir):
    """Map each file below startdir (relative path) to its text."""
    flist = {}
    for root, _dirs, files in os.walk(startdir):
        for fname in files:
            fpath = os.path.join(root, fname)
            key = os.path.relpath(fpath, startdir)
            flist[key] = util.load_text_file(fpath)
    return flist


def register_metadata(rsps, base_url, tree):
    """Serve tree, a mapping of key to value, below base_url.

    A value of None answers 404 like a metadata service does for keys it
    does not have.
    """
    for key, value in tree.items():
        if value is None:
            rsps.add(responses.GET, base_url + key, status=404)
        else:
            rsps.add(responses.GET, base_url + key, body=value)
