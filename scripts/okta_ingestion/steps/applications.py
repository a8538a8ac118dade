"""Applications and their group/user assignments."""

from __future__ import annotations

import logging
from urllib.parse import urljoin

from scripts.okta_ingestion.graph import (
    ASSIGNED,
    HAS,
    create_direct_relationship,
    create_entity,
)
from scripts.okta_ingestion.steps.account import DATA_ACCOUNT_ENTITY
from scripts.okta_ingestion.util import get_okta_account_admin_url, parse_time_property_value

logger = logging.getLogger("ingestion.okta.steps.applications")

APPLICATION_ENTITY_TYPE = "okta_application"


def _assign(job_state, app_entity: dict, member_key: str, properties: dict) -> None:
    """Link an already collected group or user to the app."""
    member = job_state.find_entity(member_key)
    if member is None:
        logger.warning(
            "Application %s assigned to unknown principal %s",
            app_entity["_key"],
            member_key,
        )
        return
    job_state.add_relationship(
        create_direct_relationship(ASSIGNED, member, app_entity, properties)
    )


def fetch_applications(context) -> None:
    job_state = context.job_state
    api_client = context.api_client
    account = job_state.get_data(DATA_ACCOUNT_ENTITY)
    admin_url = get_okta_account_admin_url(context.config.org_url)

    def handle_app(app: dict) -> None:
        app_entity = job_state.add_entity(
            create_entity(
                source=app,
                assign={
                    "_key": app["id"],
                    "_type": APPLICATION_ENTITY_TYPE,
                    "_class": "Application",
                    "id": app["id"],
                    "name": app.get("label") or app.get("name"),
                    "displayName": app.get("label") or app.get("name"),
                    "shortName": app.get("name"),
                    "webLink": urljoin(
                        admin_url, f"/admin/app/{app.get('name')}/instance/{app['id']}"
                    ),
                    "status": app.get("status"),
                    "active": app.get("status") == "ACTIVE",
                    "signOnMode": app.get("signOnMode"),
                    "createdOn": parse_time_property_value(app.get("created")),
                    "lastUpdatedOn": parse_time_property_value(app.get("lastUpdated")),
                },
            )
        )
        job_state.add_relationship(create_direct_relationship(HAS, account, app_entity))

        for assignment in api_client.get_groups_for_app(app["id"]):
            _assign(
                job_state,
                app_entity,
                assignment["id"],
                {"priority": assignment.get("priority")},
            )

        for app_user in api_client.get_users_for_app(app["id"]):
            credentials = app_user.get("credentials") or {}
            _assign(
                job_state,
                app_entity,
                app_user["id"],
                {
                    "scope": app_user.get("scope"),
                    "status": app_user.get("status"),
                    "appUserName": credentials.get("userName"),
                },
            )

    api_client.iterate_applications(handle_app)
