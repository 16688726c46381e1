# This file is part of coreos-metadata. See LICENSE for license information.
"""Bounded retry with capped exponential backoff.

Every metadata service call goes through retry_call(). Whether a failure is
worth another attempt is decided by the ``retryable`` predicate; the default
honours a ``retryable`` attribute on the raised exception (set by
url_helper.UrlError and by providers for their own transient conditions)
and treats raw requests connection failures and timeouts as transient.
"""

import logging
import time

from requests import exceptions

from coreosmetadata.exceptions import UnreachableProvider

LOG = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 10
DEFAULT_SEC_BETWEEN = 1
DEFAULT_MAX_SEC_BETWEEN = 5
# Backoff never drops below this many seconds
MIN_SEC_BETWEEN = 1


class RetriesExhausted(UnreachableProvider):
    def __init__(self, attempts, description=None):
        self.attempts = attempts
        self.description = description
        msg = "maximum number of attempts (%d) reached" % attempts
        if description:
            msg = "%s: %s" % (description, msg)
        super().__init__(msg)


def is_retryable(error):
    retryable = getattr(error, "retryable", None)
    if retryable is not None:
        return bool(retryable)
    return isinstance(
        error, (exceptions.ConnectionError, exceptions.Timeout)
    )


def backoff(attempt, sec_between, max_sec_between):
    """Seconds to sleep after the given (0 based) failed attempt."""
    delay = sec_between * (2**attempt)
    return max(MIN_SEC_BETWEEN, min(delay, max_sec_between))


def retry_call(
    func,
    *,
    attempts=DEFAULT_ATTEMPTS,
    sec_between=DEFAULT_SEC_BETWEEN,
    max_sec_between=DEFAULT_MAX_SEC_BETWEEN,
    retryable=is_retryable,
    description=None,
):
    """Call func() until it succeeds, it raises a non-retryable error or
    attempts calls have been made.

    :param func: callable performing a single attempt.
    :param attempts: maximum number of calls, at least 1.
    :param sec_between: initial delay between attempts, doubled after each
        failure.
    :param max_sec_between: cap on the delay between attempts.
    :param retryable: predicate deciding if an exception is transient.
    :param description: human readable name of the operation, used in logs
        and in the RetriesExhausted message.
    :raises RetriesExhausted: chained to the last error once every attempt
        failed with a retryable error.
    :return: whatever func returned.
    """
    attempts = max(int(attempts), 1)
    description = description or getattr(func, "__name__", repr(func))
    for attempt in range(attempts):
        try:
            return func()
        except Exception as e:
            if not retryable(e):
                LOG.debug(
                    "[%s/%s] %s failed permanently: %s",
                    attempt + 1,
                    attempts,
                    description,
                    e,
                )
                raise
            if attempt + 1 >= attempts:
                LOG.warning(
                    "[%s/%s] %s failed, giving up: %s",
                    attempt + 1,
                    attempts,
                    description,
                    e,
                )
                raise RetriesExhausted(attempts, description) from e
            sleep_time = backoff(attempt, sec_between, max_sec_between)
            LOG.info(
                "[%s/%s] %s failed: %s. Retrying in %s seconds",
                attempt + 1,
                attempts,
                description,
                e,
                sleep_time,
            )
            time.sleep(sleep_time)
