# This file is part of coreos-metadata. See LICENSE for license information.

import logging
import os
import tempfile

from coreosmetadata import util

_DEF_PERMS = 0o644
LOG = logging.getLogger(__name__)


def write_file(
    filename,
    content,
    mode=_DEF_PERMS,
    omode="wb",
    uid=None,
    gid=None,
):
    """open a temporary file next to filename in mode omode, write content,
    set permissions to mode (and ownership to uid:gid when given), then
    rename it over filename.

    Readers of filename observe either the old or the new content, never a
    partially written file.
    """
    tf = None
    try:
        dirname = os.path.dirname(os.path.abspath(filename))
        util.ensure_dir(dirname)
        tf = tempfile.NamedTemporaryFile(
            dir=dirname, delete=False, mode=omode, prefix=".tmp-"
        )
        LOG.debug(
            "Atomically writing to file %s (via temporary file %s) - %s: [%o]"
            " %d bytes/chars",
            filename,
            tf.name,
            omode,
            mode,
            len(content),
        )
        tf.write(content)
        tf.flush()
        os.fsync(tf.fileno())
        tf.close()
        os.chmod(tf.name, mode)
        util.chownbyid(tf.name, uid, gid)
        os.rename(tf.name, filename)
    except Exception as e:
        if tf is not None:
            tf.close()
            util.del_file(tf.name)
        raise e
