"""Resource iteration over the Okta API for the graph mapping steps."""

from __future__ import annotations

import logging
from typing import Callable, Optional
from urllib.parse import urljoin

import requests

from scripts.okta_ingestion.config import OktaConfig
from scripts.okta_ingestion.errors import OktaApiError, ProviderAuthenticationError
from scripts.okta_ingestion.okta_client import OktaClient, create_okta_client

logger = logging.getLogger("ingestion.okta.api")

ResourceIteratee = Callable[[dict], None]

DEPROVISIONED_FILTER = 'status eq "DEPROVISIONED"'


class APIClient:
    """Wraps OktaClient with the iteration patterns the steps need."""

    def __init__(self, config: OktaConfig, okta_client: Optional[OktaClient] = None) -> None:
        self.config = config
        self.okta_client = okta_client or create_okta_client(config)

    def verify_authentication(self) -> None:
        """Make one cheap request to prove the token works.

        Every org has at least the Everyone group, so the first page of
        groups always comes back for a valid token.
        """
        endpoint = urljoin(self.config.org_url, "/api/v1/groups")
        try:
            next(iter(self.okta_client.list_groups()), None)
        except OktaApiError as exc:
            raise ProviderAuthenticationError(
                endpoint=endpoint, status=exc.status, status_text=exc.status_text
            ) from exc
        except requests.RequestException as exc:
            raise ProviderAuthenticationError(endpoint=endpoint) from exc

    def iterate_users(self, iteratee: ResourceIteratee) -> None:
        """Active and suspended users first, then the deprovisioned ones.

        Okta leaves DEPROVISIONED users out of an unfiltered listing.
        """
        for user in self.okta_client.list_users():
            iteratee(user)
        for user in self.okta_client.list_users(filter=DEPROVISIONED_FILTER):
            iteratee(user)

    def iterate_groups(self, iteratee: ResourceIteratee) -> None:
        for group in self.okta_client.list_groups():
            iteratee(group)

    def iterate_applications(self, iteratee: ResourceIteratee) -> None:
        for app in self.okta_client.list_applications():
            iteratee(app)

    def get_groups_for_user(self, user_id: str) -> list[dict]:
        return list(self.okta_client.list_user_groups(user_id))

    def get_devices_for_user(self, user_id: str) -> list[dict]:
        """MFA factors enrolled by the user."""
        return list(self.okta_client.list_factors(user_id))

    def get_groups_for_app(self, app_id: str) -> list[dict]:
        return list(self.okta_client.list_application_group_assignments(app_id))

    def get_users_for_app(self, app_id: str) -> list[dict]:
        return list(self.okta_client.list_application_users(app_id))
