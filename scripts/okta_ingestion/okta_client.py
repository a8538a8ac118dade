"""Okta REST client: Session -> RetryingTransport -> RateGovernor."""

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

import requests

from scripts.okta_ingestion.config import OktaConfig
from scripts.okta_ingestion.errors import OktaApiError
from scripts.okta_ingestion.rate_governor import RateGovernor
from scripts.okta_ingestion.transport import RetryingTransport, TransportListener

logger = logging.getLogger("ingestion.okta.client")


class LoggingTransportListener(TransportListener):
    """Log the transport's backoff/resume cycles."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger

    def on_backoff(self, request, response, request_id, delay_ms) -> None:
        self._log.info(
            "Okta client backoff",
            extra={"delay_ms": delay_ms, "request_id": request_id, "url": request.url},
        )

    def on_resume(self, request, request_id) -> None:
        self._log.info(
            "Okta client resuming",
            extra={"request_id": request_id, "url": request.url},
        )


class OktaClient:
    """Lists Okta collections, following Link rel="next" pagination."""

    def __init__(
        self,
        org_url: str,
        session: requests.Session,
        governor: RateGovernor,
        page_size: int = 200,
    ) -> None:
        self.org_url = org_url
        self._base = org_url.rstrip("/")
        self._session = session
        self.governor = governor
        self._page_size = page_size

    def _get(self, url: str, params: Optional[dict] = None) -> requests.Response:
        prepared = self._session.prepare_request(
            requests.Request("GET", url, params=params)
        )
        response = self.governor.dispatch(prepared)
        if not response.ok:
            raise OktaApiError.from_response(response)
        return response

    def _paginate(self, path: str, params: Optional[dict] = None) -> Iterator[dict]:
        """Yield every item of a collection, one page at a time."""
        url = f"{self._base}{path}"
        page_params: Optional[dict] = dict(params or {})
        page_params.setdefault("limit", str(self._page_size))

        while url:
            response = self._get(url, page_params)
            for item in response.json():
                yield item
            # The next link already carries the query string and cursor
            url = response.links.get("next", {}).get("url", "")
            page_params = None

    def list_users(self, filter: Optional[str] = None) -> Iterator[dict]:
        params = {"filter": filter} if filter else None
        return self._paginate("/api/v1/users", params)

    def list_groups(self) -> Iterator[dict]:
        return self._paginate("/api/v1/groups")

    def list_applications(self) -> Iterator[dict]:
        return self._paginate("/api/v1/apps")

    def list_user_groups(self, user_id: str) -> Iterator[dict]:
        return self._paginate(f"/api/v1/users/{user_id}/groups")

    def list_factors(self, user_id: str) -> Iterator[dict]:
        # The factors endpoint is not paginated and rejects `limit`
        response = self._get(f"{self._base}/api/v1/users/{user_id}/factors")
        return iter(response.json())

    def list_application_group_assignments(self, app_id: str) -> Iterator[dict]:
        return self._paginate(f"/api/v1/apps/{app_id}/groups")

    def list_application_users(self, app_id: str) -> Iterator[dict]:
        return self._paginate(f"/api/v1/apps/{app_id}/users")


def create_okta_client(
    config: OktaConfig,
    minimum_rate_limit_remaining: Optional[int] = None,
    session: Optional[requests.Session] = None,
    **governor_kwargs: Any,
) -> OktaClient:
    """Build a client whose requests go through the rate governor.

    ``minimum_rate_limit_remaining`` overrides the configured threshold.
    """
    session = session or requests.Session()
    session.headers.update({
        "Authorization": f"SSWS {config.api_token}",
        "Accept": "application/json",
        "Content-Type": "application/json",
    })
    transport = RetryingTransport(
        session,
        listener=LoggingTransportListener(),
        max_retries=config.max_retries,
    )
    if minimum_rate_limit_remaining is None:
        minimum_rate_limit_remaining = config.minimum_rate_limit_remaining
    governor = RateGovernor(
        transport,
        minimum_rate_limit_remaining=minimum_rate_limit_remaining,
        **governor_kwargs,
    )
    return OktaClient(config.org_url, session, governor, page_size=config.page_size)
