# This file is part of coreos-metadata. See LICENSE for license information.
"""Common utility functions for interacting with subprocess."""

import collections
import logging
import subprocess
import time
from typing import List, Union

LOG = logging.getLogger(__name__)

SubpResult = collections.namedtuple("SubpResult", ["stdout", "stderr"])


class ProcessExecutionError(IOError):
    MESSAGE_TMPL = (
        "%(description)s\n"
        "Command: %(cmd)s\n"
        "Exit code: %(exit_code)s\n"
        "Reason: %(reason)s\n"
        "Stdout: %(stdout)s\n"
        "Stderr: %(stderr)s"
    )
    empty_attr = "-"

    def __init__(
        self,
        stdout=None,
        stderr=None,
        exit_code=None,
        cmd=None,
        description=None,
        reason=None,
        errno=None,
    ):
        self.cmd = cmd or self.empty_attr
        self.description = (
            description or "Unexpected error while running command."
        )
        self.exit_code = (
            exit_code if isinstance(exit_code, int) else self.empty_attr
        )
        self.stderr = self._ensure_string(stderr or self.empty_attr)
        self.stdout = self._ensure_string(stdout or self.empty_attr)
        self.reason = reason or self.empty_attr
        if errno:
            self.errno = errno
        message = self.MESSAGE_TMPL % {
            "description": self.description,
            "cmd": self.cmd,
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "reason": self.reason,
        }
        IOError.__init__(self, message)

    def _ensure_string(self, text):
        """
        if data is bytes object, decode
        """
        return text.decode() if isinstance(text, bytes) else text


def subp(
    args: Union[str, List[str]],
    *,
    data=None,
    rcs=None,
    shell=False,
    decode="replace",
    timeout=None,
) -> SubpResult:
    """Run a subprocess, capturing its output.

    :param args: command to run in a list. [cmd, arg1, arg2...]
    :param data: input to the command, made available on its stdin.
    :param rcs:
        a list of allowed return codes.  If subprocess exits with a value not
        in this list, a ProcessExecutionError will be raised.
    :param shell: boolean indicating if this should be run with a shell.
    :param decode:
        if False, no decoding will be done and returned stdout and stderr will
        be bytes.  Other allowed values are 'strict', 'ignore', and 'replace'.
    :param timeout: maximum time for the subprocess to run, passed directly to
        the timeout parameter of Popen.communicate()

    :return SubpResult(stdout, stderr)
    """
    if rcs is None:
        rcs = [0]

    LOG.debug(
        "Running command %s with allowed return codes %s (shell=%s)",
        args,
        rcs,
        shell,
    )

    if data is None:
        # using devnull assures any reads get null, rather
        # than possibly waiting on input.
        stdin = subprocess.DEVNULL
    else:
        stdin = subprocess.PIPE
        if not isinstance(data, bytes):
            data = data.encode()

    try:
        before = time.monotonic()
        sp = subprocess.Popen(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=stdin,
            shell=shell,
        )
        out, err = sp.communicate(data, timeout=timeout)
        total = time.monotonic() - before
        if total > 0.1:
            LOG.debug("%s took %.3ss to run", args, total)
    except OSError as e:
        raise ProcessExecutionError(
            cmd=args,
            reason=e,
            errno=e.errno,
        ) from e
    if decode:

        def ldecode(data, m="utf-8"):
            return data.decode(m, decode) if isinstance(data, bytes) else data

        out = ldecode(out)
        err = ldecode(err)

    rc = sp.returncode
    if rc not in rcs:
        raise ProcessExecutionError(
            stdout=out, stderr=err, exit_code=rc, cmd=args
        )
    return SubpResult(out, err)

