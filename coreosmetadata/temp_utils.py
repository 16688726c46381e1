# This file is part of coreos-metadata. See LICENSE for license information.

import contextlib
import os
import shutil
import tempfile

_ROOT_TMPDIR = "/run/coreos-metadata/tmp"


def get_tmp_ancestor(odir=None):
    if odir is not None:
        return odir
    if os.getuid() == 0:
        return _ROOT_TMPDIR
    return os.environ.get("TMPDIR", "/tmp")


def _tempfile_dir_arg(odir=None):
    """Return the proper 'dir' argument for tempfile functions.

    When root, /run/coreos-metadata/tmp is used to avoid any cleaning that a
    distro boot might do on /tmp (such as systemd-tmpfiles-clean).
    """
    tdir = get_tmp_ancestor(odir)
    if not os.path.isdir(tdir):
        os.makedirs(tdir)
        os.chmod(tdir, 0o1777)
    return tdir


@contextlib.contextmanager
def tempdir(rmtree_ignore_errors=False, **kwargs):
    tdir = mkdtemp(**kwargs)
    try:
        yield tdir
    finally:
        shutil.rmtree(tdir, ignore_errors=rmtree_ignore_errors)


def mkdtemp(dir=None, **kwargs):
    dir = _tempfile_dir_arg(dir)
    return tempfile.mkdtemp(dir=dir, **kwargs)
