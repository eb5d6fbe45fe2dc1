"""Tests for the gateway read and lock polling retry policies."""

import pytest
import requests

from storefront.domain.errors import ExternalServiceError
from storefront.services.payment_gateway import RazorpayGateway
from storefront.utils.retry import lock_poll


class _ScriptedSession:
    """Answers GETs with the given status codes, in order."""

    def __init__(self, statuses):
        self.statuses = list(statuses)
        self.calls = 0
        self.auth = None

    def get(self, url, timeout):
        self.calls += 1
        resp = requests.Response()
        resp.status_code = self.statuses.pop(0)
        resp.url = url
        resp._content = b'{"id": "pay_1", "method": "upi"}'
        return resp


def _gateway(session):
    return RazorpayGateway(base_url="https://gateway.test/v1", key_id="k", key_secret="s", session=session)


class TestGatewayReadRetry:
    def test_server_errors_are_retried(self):
        session = _ScriptedSession([503, 502, 200])
        assert _gateway(session).fetch_payment("pay_1")["method"] == "upi"
        assert session.calls == 3

    def test_client_errors_are_not_retried(self):
        session = _ScriptedSession([404])
        with pytest.raises(ExternalServiceError):
            _gateway(session).fetch_payment("pay_1")
        assert session.calls == 1


class TestLockPoll:
    def test_gives_up_with_false(self):
        assert lock_poll(0.05)(lambda: False) is False

    def test_polls_until_acquired(self):
        answers = iter([False, False, True])
        assert lock_poll(1)(lambda: next(answers)) is True
