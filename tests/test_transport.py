"""Tests for the retrying transport's 429 handling."""

from __future__ import annotations

from email.utils import formatdate
from unittest.mock import MagicMock

import pytest
import requests

from scripts.okta_ingestion.transport import (
    RETRY_COUNT_HEADER,
    RETRY_FOR_HEADER,
    RetryingTransport,
    TransportListener,
)
from tests.fakes import ORG_URL, FakeSession, make_response

DATE_EPOCH = 1_700_000_000


def too_many_requests(reset=DATE_EPOCH + 10, request_id="req-1"):
    headers = {"date": formatdate(DATE_EPOCH, usegmt=True)}
    if reset is not None:
        headers["x-rate-limit-reset"] = str(reset)
    if request_id:
        headers["x-okta-request-id"] = request_id
    return make_response(status=429, reason="Too Many Requests", headers=headers)


def prepared(session):
    return session.prepare_request(requests.Request("GET", ORG_URL + "api/v1/users"))


@pytest.fixture
def listener():
    return MagicMock(spec=TransportListener)


class TestRetryDelay:
    def test_uses_response_date(self):
        assert RetryingTransport.retry_delay_ms(too_many_requests()) == 11_000

    def test_reset_in_the_past_waits_one_second(self):
        response = too_many_requests(reset=DATE_EPOCH - 30)
        assert RetryingTransport.retry_delay_ms(response) == 1000

    def test_missing_reset_gives_none(self):
        assert RetryingTransport.retry_delay_ms(too_many_requests(reset=None)) is None


class TestSend:
    def test_success_passes_through(self, listener):
        ok = make_response(body=[{"id": "u1"}])
        session = FakeSession([ok])
        transport = RetryingTransport(session, listener=listener)

        assert transport.send(prepared(session)) is ok
        listener.on_backoff.assert_not_called()
        listener.on_resume.assert_not_called()

    def test_429_backs_off_then_retries(self, listener):
        limited = too_many_requests()
        ok = make_response()
        session = FakeSession([limited, ok])
        sleep = MagicMock()
        transport = RetryingTransport(session, listener=listener, sleep=sleep)
        request = prepared(session)

        assert transport.send(request) is ok

        sleep.assert_called_once_with(11.0)
        listener.on_backoff.assert_called_once_with(request, limited, "req-1", 11_000)
        listener.on_resume.assert_called_once_with(request, "req-1")
        assert len(session.sent) == 2
        retry = session.sent[1]
        assert retry.headers[RETRY_FOR_HEADER] == "req-1"
        assert retry.headers[RETRY_COUNT_HEADER] == "1"
        assert RETRY_FOR_HEADER not in session.sent[0].headers

    def test_gives_up_after_max_retries(self, listener):
        session = FakeSession([too_many_requests() for _ in range(3)])
        transport = RetryingTransport(
            session, listener=listener, max_retries=2, sleep=MagicMock()
        )

        response = transport.send(prepared(session))

        assert response.status_code == 429
        assert len(session.sent) == 3
        assert listener.on_backoff.call_count == 2
        assert session.sent[2].headers[RETRY_COUNT_HEADER] == "2"

    def test_zero_retries_returns_first_429(self, listener):
        session = FakeSession([too_many_requests()])
        transport = RetryingTransport(session, listener=listener, max_retries=0)
        assert transport.send(prepared(session)).status_code == 429
        listener.on_backoff.assert_not_called()

    def test_429_without_reset_is_not_retried(self, listener):
        session = FakeSession([too_many_requests(reset=None)])
        sleep = MagicMock()
        transport = RetryingTransport(session, listener=listener, sleep=sleep)

        assert transport.send(prepared(session)).status_code == 429
        sleep.assert_not_called()
        assert len(session.sent) == 1

    def test_missing_request_id_still_counts_retries(self, listener):
        session = FakeSession([too_many_requests(request_id=None), make_response()])
        transport = RetryingTransport(session, listener=listener, sleep=MagicMock())
        transport.send(prepared(session))

        retry = session.sent[1]
        assert RETRY_FOR_HEADER not in retry.headers
        assert retry.headers[RETRY_COUNT_HEADER] == "1"

    def test_connection_error_propagates(self):
        error = requests.ConnectionError("refused")
        session = FakeSession([error])
        transport = RetryingTransport(session)
        with pytest.raises(requests.ConnectionError) as excinfo:
            transport.send(prepared(session))
        assert excinfo.value is error

    def test_default_listener_is_silent(self):
        session = FakeSession([too_many_requests(), make_response()])
        transport = RetryingTransport(session, sleep=MagicMock())
        assert transport.send(prepared(session)).status_code == 200
