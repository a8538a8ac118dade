"""Exception types raised by the Okta ingestion connector."""

from __future__ import annotations

from typing import Any, Optional


class IntegrationError(Exception):
    """Base class for connector errors."""


class ConfigError(IntegrationError, ValueError):
    """A required setting is missing or malformed."""


class OktaApiError(IntegrationError):
    """Okta answered with a non-2xx status."""

    def __init__(
        self,
        status: int,
        status_text: str,
        url: str,
        error_code: Optional[str] = None,
        error_summary: Optional[str] = None,
    ) -> None:
        self.status = status
        self.status_text = status_text
        self.url = url
        self.error_code = error_code
        self.error_summary = error_summary
        detail = f": {error_summary}" if error_summary else ""
        super().__init__(f"Okta API {status} {status_text} for {url}{detail}")

    @classmethod
    def from_response(cls, response: Any) -> "OktaApiError":
        """Build from a requests.Response, reading Okta's JSON error body if present."""
        code = summary = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = body.get("errorCode")
            summary = body.get("errorSummary")
        return cls(
            status=response.status_code,
            status_text=response.reason or "",
            url=response.url,
            error_code=code,
            error_summary=summary,
        )


class ProviderAuthenticationError(IntegrationError):
    """Credentials were rejected, or the org could not be reached to check them."""

    def __init__(
        self,
        endpoint: str,
        status: Optional[int] = None,
        status_text: Optional[str] = None,
    ) -> None:
        self.endpoint = endpoint
        self.status = status
        self.status_text = status_text
        super().__init__(
            f"Provider authentication failed at {endpoint}: {status} {status_text}"
        )


class MissingKeyError(IntegrationError):
    """An entity referenced by a relationship has not been collected."""


class DuplicateKeyError(IntegrationError):
    """An entity or relationship key was added to the job state twice."""
