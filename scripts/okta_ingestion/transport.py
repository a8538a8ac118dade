"""HTTP transport for the Okta API with 429 backoff/retry."""

from __future__ import annotations

import logging
import time
from email.utils import parsedate_to_datetime
from typing import Callable, Optional

import requests

logger = logging.getLogger("ingestion.okta.transport")

DEFAULT_MAX_RETRIES = 2

REQUEST_ID_HEADER = "x-okta-request-id"
RETRY_FOR_HEADER = "X-Okta-Retry-For"
RETRY_COUNT_HEADER = "X-Okta-Retry-Count"


class TransportListener:
    """Observer for transport backoff/resume cycles. Default methods do nothing."""

    def on_backoff(
        self,
        request: requests.PreparedRequest,
        response: requests.Response,
        request_id: Optional[str],
        delay_ms: int,
    ) -> None:
        pass

    def on_resume(
        self, request: requests.PreparedRequest, request_id: Optional[str]
    ) -> None:
        pass


class RetryingTransport:
    """Send prepared requests on a Session, retrying 429s after the window resets.

    The wait before a retry runs until ``x-rate-limit-reset`` as seen from the
    response's own ``Date`` header, plus one second. Once ``max_retries`` is
    used up the 429 response is handed back to the caller. Connection errors
    from requests propagate as-is.
    """

    def __init__(
        self,
        session: requests.Session,
        listener: Optional[TransportListener] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session
        self.listener = listener or TransportListener()
        self.max_retries = max_retries
        self._sleep = sleep

    def send(self, request: requests.PreparedRequest) -> requests.Response:
        retry_count = 0
        request_id: Optional[str] = None
        while True:
            response = self.session.send(request)
            if response.status_code != 429 or retry_count >= self.max_retries:
                return response

            delay_ms = self.retry_delay_ms(response)
            if delay_ms is None:
                logger.warning(
                    "Rate limited without a usable reset header, not retrying",
                    extra={"url": request.url},
                )
                return response

            if request_id is None:
                request_id = response.headers.get(REQUEST_ID_HEADER)
            self.listener.on_backoff(request, response, request_id, delay_ms)
            response.close()
            self._sleep(delay_ms / 1000.0)

            retry_count += 1
            if request_id:
                request.headers[RETRY_FOR_HEADER] = request_id
            request.headers[RETRY_COUNT_HEADER] = str(retry_count)
            self.listener.on_resume(request, request_id)

    @staticmethod
    def retry_delay_ms(response: requests.Response) -> Optional[int]:
        """Milliseconds to wait before retrying a 429, or None if it can't be told."""
        try:
            reset_ms = int(response.headers.get("x-rate-limit-reset", "")) * 1000
        except ValueError:
            return None

        now_ms = int(time.time() * 1000)
        date_header = response.headers.get("date")
        if date_header:
            try:
                now_ms = int(parsedate_to_datetime(date_header).timestamp() * 1000)
            except (TypeError, ValueError):
                pass
        return max(reset_ms - now_ms, 0) + 1000
