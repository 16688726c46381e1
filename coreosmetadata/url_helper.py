# Copyright (C) 2012 Canonical Ltd.
# Copyright (C) 2012 Hewlett-Packard Development Company, L.P.
# Copyright (C) 2012 Yahoo! Inc.
#
# This file is part of coreos-metadata. See LICENSE for license information.

import logging
from http.client import NOT_FOUND
from typing import Any, Mapping, Optional
from urllib.parse import quote, urlparse, urlunparse

import requests
from requests import exceptions

from coreosmetadata import retry, version

LOG = logging.getLogger(__name__)


def _cleanurl(url):
    parsed_url = list(urlparse(url, scheme="http"))
    if not parsed_url[1] and parsed_url[2]:
        # Swap these since this seems to be a common
        # occurrence when given urls like 'www.google.com'
        parsed_url[1] = parsed_url[2]
        parsed_url[2] = ""
    return urlunparse(parsed_url)


def combine_url(base, *add_ons):
    def combine_single(url, add_on):
        url_parsed = list(urlparse(url))
        path = url_parsed[2]
        if path and not path.endswith("/"):
            path += "/"
        path += quote(str(add_on), safe="/:")
        url_parsed[2] = path
        return urlunparse(url_parsed)

    url = base
    for add_on in add_ons:
        url = combine_single(url, add_on)
    return url


class UrlResponse:
    def __init__(self, response: requests.Response):
        self._response = response

    @property
    def contents(self) -> bytes:
        if self._response.content is None:
            return b""
        return self._response.content

    @property
    def url(self) -> str:
        return self._response.url

    def ok(self, redirects_ok=False) -> bool:
        upper = 300
        if redirects_ok:
            upper = 400
        if 200 <= self.code < upper:
            return True
        else:
            return False

    @property
    def headers(self):
        return self._response.headers

    @property
    def code(self) -> int:
        return self._response.status_code

    def __str__(self):
        return self._response.text


class UrlError(IOError):
    def __init__(
        self,
        cause: Any,  # This SHOULD be an exception to wrap, but can be anything
        code: Optional[int] = None,
        headers: Optional[Mapping] = None,
        url: Optional[str] = None,
        retryable: Optional[bool] = None,
    ):
        IOError.__init__(self, str(cause))
        self.cause = cause
        self.code = code
        self.headers: Mapping = {} if headers is None else headers
        self.url = url
        self._retryable = retryable

    @property
    def retryable(self) -> bool:
        """Connection level failures and 5xx responses are transient;
        any other HTTP status is a permanent client error."""
        if self._retryable is not None:
            return self._retryable
        if self.code is None:
            return True
        return self.code >= 500


def _read_once(session, req_args, url, check_status):
    try:
        response = session.request(**req_args)
        if check_status:
            response.raise_for_status()
    except exceptions.SSLError as e:
        # ssl exceptions are not going to get fixed by waiting a
        # few seconds
        raise UrlError(e, url=url, retryable=False) from e
    except exceptions.HTTPError as e:
        raise UrlError(
            e,
            code=e.response.status_code,
            headers=e.response.headers,
            url=url,
        ) from e
    except exceptions.RequestException as e:
        raise UrlError(e, url=url) from e
    LOG.debug(
        "Read from %s (%s, %sb)",
        url,
        response.status_code,
        len(response.content),
    )
    return UrlResponse(response)


def readurl(
    url,
    *,
    data=None,
    timeout=None,
    retries=0,
    sec_between=1,
    max_sec_between=retry.DEFAULT_MAX_SEC_BETWEEN,
    headers=None,
    check_status=True,
    allow_redirects=True,
    session=None,
    request_method="",
) -> UrlResponse:
    """Wrapper around requests.Session to read the url and retry if necessary

    :param url: Mandatory url to request.
    :param data: Optional form data to post the URL. Will set request_method
        to 'POST' if present.
    :param timeout: Timeout in seconds to wait for a response. May be a tuple
        if specifying (connection timeout, read timeout).
    :param retries: Number of times to retry on a transient error (connection
        failure, timeout or 5xx status). Default is to fail with 0 retries.
    :param sec_between: Initial delay between attempts, see retry.retry_call.
    :param max_sec_between: Cap on the delay between attempts.
    :param headers: Optional dict of headers to send during request
    :param check_status: Optional boolean set True to raise when HTTPError
        occurs. Default: True.
    :param allow_redirects: Optional boolean passed straight to Session.request
        as 'allow_redirects'. Default: True.
    :param session: Optional exiting requests.Session instance to reuse.
    :param request_method: String passed as 'method' to Session.request.
        Typically GET, or POST. Default: POST if data is provided, GET
        otherwise.
    :raises UrlError: on a permanent failure.
    :raises retry.RetriesExhausted: when every attempt failed transiently,
        chained to the last UrlError.
    """
    url = _cleanurl(url)
    req_args = {
        "url": url,
        "allow_redirects": allow_redirects,
    }
    if not request_method:
        request_method = "POST" if data else "GET"
    req_args["method"] = request_method
    if timeout is not None:
        if isinstance(timeout, tuple):
            req_args["timeout"] = timeout
        else:
            req_args["timeout"] = max(float(timeout), 0)
    if data:
        req_args["data"] = data

    headers = headers.copy() if headers is not None else {}
    if "User-Agent" not in headers:
        headers["User-Agent"] = "coreos-metadata/%s" % (
            version.version_string()
        )
    req_args["headers"] = headers

    if session is None:
        session = requests.Session()

    LOG.debug("%s '%s' with %s retries", request_method, url, retries)
    return retry.retry_call(
        lambda: _read_once(session, req_args, url, check_status),
        attempts=int(retries) + 1,
        sec_between=sec_between,
        max_sec_between=max_sec_between,
        description="fetching %s" % url,
    )


def read_optional(url, **kwargs) -> Optional[UrlResponse]:
    """readurl() which returns None if the url does not exist (404)."""
    try:
        return readurl(url, **kwargs)
    except UrlError as e:
        if e.code == NOT_FOUND:
            LOG.debug("%s does not exist", url)
            return None
        raise
