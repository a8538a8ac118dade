"""The Okta account entity every other entity hangs off."""

from __future__ import annotations

import re

from scripts.okta_ingestion.graph import create_entity

ACCOUNT_ENTITY_TYPE = "okta_account"
DATA_ACCOUNT_ENTITY = "DATA_ACCOUNT_ENTITY"


def fetch_account_details(context) -> None:
    config = context.config
    account_id = re.sub(r"^https?://", "", config.org_url)
    account = context.job_state.add_entity(
        create_entity(
            source={
                "id": f"okta-account:{config.instance_name}",
                "name": "Okta Account",
            },
            assign={
                "_key": f"okta_account_{account_id}",
                "_type": ACCOUNT_ENTITY_TYPE,
                "_class": "Account",
                "name": f"Okta - {config.instance_name}",
                "displayName": f"Okta - {config.instance_name}",
                "webLink": config.org_url,
                "accountId": account_id,
            },
        )
    )
    context.job_state.set_data(DATA_ACCOUNT_ENTITY, account)
