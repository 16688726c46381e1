# Copyright (C) 2012 Canonical Ltd.
# Copyright (C) 2012 Hewlett-Packard Development Company, L.P.
# Copyright (C) 2012 Yahoo! Inc.
#
# This file is part of coreos-metadata. See LICENSE for license information.

import logging
import sys
from contextlib import suppress

DEFAULT_LOG_FORMAT = "%(asctime)s - %(filename)s[%(levelname)s]: %(message)s"


def setup_basic_logging(level=logging.DEBUG, formatter=None, logger=None):
    """Attach a stderr handler to logger (the root logger by default).

    @return: the handler, so the caller can remove it once the run is over.
    """
    formatter = formatter or logging.Formatter(DEFAULT_LOG_FORMAT)
    root = logger or logging.getLogger()
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.setLevel(level)
    root.addHandler(console)
    root.setLevel(level)
    return console


def teardown_logging(handler, logger=None):
    root = logger or logging.getLogger()
    flush_loggers(root)
    root.removeHandler(handler)


def flush_loggers(root):
    if not root:
        return
    for h in root.handlers:
        if isinstance(h, (logging.StreamHandler)):
            with suppress(IOError):
                h.flush()
    flush_loggers(root.parent)


def logexc(
    log, msg, *args, log_level: int = logging.WARNING, exc_info=True
) -> None:
    log.log(log_level, msg, *args)
    log.debug(msg, exc_info=exc_info, *args)
