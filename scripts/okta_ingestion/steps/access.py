"""Users, groups, group memberships and MFA devices."""

from __future__ import annotations

import logging
from urllib.parse import urljoin

from scripts.okta_ingestion.errors import MissingKeyError
from scripts.okta_ingestion.graph import (
    ASSIGNED,
    HAS,
    create_direct_relationship,
    create_entity,
)
from scripts.okta_ingestion.steps.account import DATA_ACCOUNT_ENTITY
from scripts.okta_ingestion.util import (
    convert_credential_emails,
    get_okta_account_admin_url,
    parse_time_property_value,
)

logger = logging.getLogger("ingestion.okta.steps.access")

USER_ENTITY_TYPE = "okta_user"
USER_GROUP_ENTITY_TYPE = "okta_user_group"
APP_USER_GROUP_ENTITY_TYPE = "okta_app_user_group"
MFA_DEVICE_ENTITY_TYPE = "mfa_device"

USER_TIME_FIELDS = (
    "created",
    "activated",
    "statusChanged",
    "lastLogin",
    "lastUpdated",
    "passwordChanged",
)
GROUP_TIME_FIELDS = ("created", "lastUpdated", "lastMembershipUpdated")


def _timestamps(resource: dict, fields: tuple) -> dict:
    """Each Okta timestamp as epoch ms under both its own name and an `On` suffix."""
    values = {}
    for field in fields:
        value = parse_time_property_value(resource.get(field))
        values[field] = value
        values[f"{field}On"] = value
    return values


def _user_entity(user: dict, admin_url: str) -> dict:
    profile = user.get("profile") or {}
    login = profile.get("login") or ""
    email = profile.get("email")
    emails = convert_credential_emails(user.get("credentials")) or {}
    # Credentials may hold recovery questions and provider details; keep them out of raw data
    source = {k: v for k, v in user.items() if k != "credentials"}

    return create_entity(
        source=source,
        assign={
            "_key": user["id"],
            "_type": USER_ENTITY_TYPE,
            "_class": "User",
            "name": f"{profile.get('firstName', '')} {profile.get('lastName', '')}".strip(),
            "displayName": login,
            "webLink": urljoin(admin_url, f"/admin/user/profile/view/{user['id']}"),
            "id": user["id"],
            "username": login.split("@")[0],
            "email": email.lower() if email else None,
            "verifiedEmails": emails.get("verified_emails"),
            "unverifiedEmails": emails.get("unverified_emails"),
            "status": user.get("status"),
            "active": user.get("status") == "ACTIVE",
            **_timestamps(user, USER_TIME_FIELDS),
        },
    )


def _device_entity(device: dict) -> dict:
    provider = device.get("provider")
    factor_type = device.get("factorType")
    profile = device.get("profile") or {}
    return create_entity(
        source=device,
        assign={
            "_key": device["id"],
            "_type": MFA_DEVICE_ENTITY_TYPE,
            "_class": ["Key", "AccessKey"],
            "displayName": f"{provider} {factor_type}",
            "id": device["id"],
            "factorType": factor_type,
            "provider": provider,
            "vendorName": device.get("vendorName"),
            "device": profile.get("name"),
            "deviceType": profile.get("deviceType") or profile.get("platform"),
            "status": device.get("status"),
            "created": device.get("created"),
            "lastUpdated": device.get("lastUpdated"),
            "createdOn": parse_time_property_value(device.get("created")),
            "lastUpdatedOn": parse_time_property_value(device.get("lastUpdated")),
            "active": device.get("status") == "ACTIVE",
        },
    )


def fetch_groups(context) -> None:
    job_state = context.job_state
    account = job_state.get_data(DATA_ACCOUNT_ENTITY)
    admin_url = get_okta_account_admin_url(context.config.org_url)

    def handle_group(group: dict) -> None:
        profile = group.get("profile") or {}
        entity_type = (
            APP_USER_GROUP_ENTITY_TYPE
            if group.get("type") == "APP_GROUP"
            else USER_GROUP_ENTITY_TYPE
        )
        group_entity = job_state.add_entity(
            create_entity(
                source=group,
                assign={
                    "_key": group["id"],
                    "_type": entity_type,
                    "_class": "UserGroup",
                    "id": group["id"],
                    "webLink": urljoin(admin_url, f"/admin/group/{group['id']}"),
                    "displayName": profile.get("name"),
                    **_timestamps(group, GROUP_TIME_FIELDS),
                    "objectClass": group.get("objectClass"),
                    "type": group.get("type"),
                    "name": profile.get("name"),
                    "description": profile.get("description"),
                },
            )
        )
        job_state.add_relationship(
            create_direct_relationship(HAS, account, group_entity)
        )

    context.api_client.iterate_groups(handle_group)


def fetch_users(context) -> None:
    job_state = context.job_state
    api_client = context.api_client
    account = job_state.get_data(DATA_ACCOUNT_ENTITY)
    admin_url = get_okta_account_admin_url(context.config.org_url)

    def handle_user(user: dict) -> None:
        if job_state.has_key(user["id"]):
            logger.debug("Skipping user already collected: %s", user["id"])
            return
        user_entity = job_state.add_entity(_user_entity(user, admin_url))
        job_state.add_relationship(create_direct_relationship(HAS, account, user_entity))

        for group in api_client.get_groups_for_user(user["id"]):
            group_entity = job_state.find_entity(group["id"])
            if group_entity is None:
                raise MissingKeyError(
                    f"Expected group with key to exist (key={group['id']})"
                )
            job_state.add_relationship(
                create_direct_relationship(HAS, group_entity, user_entity)
            )

        # Okta refuses factor listings for deprovisioned users
        if user.get("status") == "DEPROVISIONED":
            return
        for device in api_client.get_devices_for_user(user["id"]):
            device_entity = job_state.find_entity(device["id"])
            if device_entity is None:
                device_entity = job_state.add_entity(_device_entity(device))
            job_state.add_relationship(
                create_direct_relationship(ASSIGNED, user_entity, device_entity)
            )

    api_client.iterate_users(handle_user)
