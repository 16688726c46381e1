"""Global conftest.py

This conftest is used for the unit tests in ``tests/unittests/``.

Any imports that are performed at the top-level here must be installed
wherever these tests run: that is to say, they must be listed in
``test-requirements.txt``.
"""
from unittest import mock

import pytest

from coreosmetadata import subp


class UnexpectedSubpError(BaseException):
    """Error thrown when subp.subp is unexpectedly used.

    We inherit from BaseException so it doesn't get silently swallowed
    by other error handlers.
    """


def closest_marker_args_or(request, marker_name: str, default):
    """Get the args for closest ``marker_name`` or return ``default``"""
    marker = request.node.get_closest_marker(marker_name)
    if marker is not None:
        return marker.args
    return default


@pytest.fixture(autouse=True)
def disable_subp_usage(request):
    """
    Across all tests, ensure that subp.subp is not invoked.

    Any test-local patching of ``coreosmetadata.subp.subp`` overrides this
    one, so tests mocking commands are written normally.

    To allow ``subp.subp`` usage for a specific command, use the
    ``allow_subp_for`` mark::

        @pytest.mark.allow_subp_for("ip")
        def test_ip(self):
            subp.subp(["ip", "addr"])
    """
    allow_subp_for = closest_marker_args_or(request, "allow_subp_for", ())
    real_subp = subp.subp

    def side_effect(args, *other_args, **kwargs):
        cmd = args[0] if isinstance(args, (list, tuple)) else args
        if cmd not in allow_subp_for:
            raise UnexpectedSubpError(
                "Unexpectedly used subp.subp to call {} (allowed:"
                " {})".format(cmd, ",".join(allow_subp_for))
            )
        return real_subp(args, *other_args, **kwargs)

    with mock.patch("coreosmetadata.subp.subp", autospec=True) as m_subp:
        m_subp.side_effect = side_effect
        yield


@pytest.fixture(autouse=True)
def m_sleep():
    """Backoff between retries never sleeps in tests."""
    with mock.patch("coreosmetadata.retry.time.sleep") as m_sleep:
        yield m_sleep


@pytest.fixture
def mocked_responses():
    import responses as _responses

    with _responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps
