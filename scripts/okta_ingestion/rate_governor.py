"""Adaptive request-rate governor.

Wraps a transport and holds back outgoing requests once Okta reports that the
current rate-limit window is nearly spent. Two response headers drive it:

  x-rate-limit-remaining   requests left in the current window
  x-rate-limit-reset       unix time (seconds) at which the window resets

When the remaining count drops to ``minimum_rate_limit_remaining`` or below,
every further request waits until one second past the reset instant.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

logger = logging.getLogger("ingestion.okta.rate_governor")

DEFAULT_MINIMUM_RATE_LIMIT_REMAINING = 5

RATE_LIMIT_REMAINING_HEADER = "x-rate-limit-remaining"
RATE_LIMIT_RESET_HEADER = "x-rate-limit-reset"

THROTTLE_MESSAGE = (
    "Minimum rate-limit-remaining header reached; temporarily throttling requests"
)


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


def _header_int(response: Any, name: str) -> Optional[int]:
    """Read an integer header, returning None when absent or not a number."""
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    raw = headers.get(name)
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


class RateGovernor:
    """Gate requests on a single "do not send before" deadline.

    ``transport`` is anything with a ``send(request) -> response`` method.
    Responses and transport exceptions are passed back untouched.

    ``request_after`` is epoch milliseconds, or None when no throttle has been
    set. Header-driven updates only move it later, and a response above the
    threshold leaves an older deadline in place. ``delay_requests`` overrides it
    either way.
    """

    def __init__(
        self,
        transport: Any,
        minimum_rate_limit_remaining: Optional[int] = None,
        log: Optional[logging.Logger] = None,
        clock: Callable[[], int] = _wall_clock_ms,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.transport = transport
        if minimum_rate_limit_remaining is None:
            minimum_rate_limit_remaining = DEFAULT_MINIMUM_RATE_LIMIT_REMAINING
        self.minimum_rate_limit_remaining = minimum_rate_limit_remaining
        self.request_after: Optional[int] = None
        self._log = log or logger
        self._clock = clock
        self._sleep = sleep
        # Guards read-compute-write of request_after when a governor is
        # shared between threads. Waiting happens outside the lock.
        self._lock = threading.Lock()

    def dispatch(self, request: Any) -> Any:
        """Wait out any active throttle, send the request, then re-read the headers."""
        now = self._clock()
        with self._lock:
            request_after = self.request_after
        if request_after is not None and request_after > now:
            self._wait_until(request_after)

        self._log.debug(
            "Okta client initiated request",
            extra={"url": getattr(request, "url", None)},
        )
        response = self.transport.send(request)
        self._log.debug("Okta client received response")

        self._update_from_response(response)
        return response

    def delay_requests(self, delay_ms: int) -> None:
        """Hold back every request for ``delay_ms`` from now, whatever the headers said."""
        with self._lock:
            self.request_after = self._clock() + delay_ms

    def is_throttle_active(self) -> bool:
        now = self._clock()
        with self._lock:
            request_after = self.request_after
        return request_after is not None and request_after > now

    def _wait_until(self, deadline_ms: int) -> None:
        # sleep() may return early; only the clock decides when we are done.
        remaining = deadline_ms - self._clock()
        while remaining > 0:
            self._sleep(remaining / 1000.0)
            remaining = deadline_ms - self._clock()

    def _update_from_response(self, response: Any) -> None:
        remaining = _header_int(response, RATE_LIMIT_REMAINING_HEADER)
        if remaining is None or remaining > self.minimum_rate_limit_remaining:
            return
        reset = _header_int(response, RATE_LIMIT_RESET_HEADER)
        if reset is None:
            return

        request_after = reset * 1000 + 1000
        with self._lock:
            # Buckets differ per endpoint; a later-resetting one stays in force.
            if self.request_after is None or request_after > self.request_after:
                self.request_after = request_after
        self._log.info(
            THROTTLE_MESSAGE,
            extra={
                "minimum_rate_limit_remaining": self.minimum_rate_limit_remaining,
                "request_after": request_after,
                "url": getattr(response, "url", None),
            },
        )
