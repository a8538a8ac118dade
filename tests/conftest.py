from __future__ import annotations

import pytest

from scripts.okta_ingestion.config import OktaConfig
from tests.fakes import ORG_URL, ManualClock


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def okta_config() -> OktaConfig:
    return OktaConfig(org_url=ORG_URL, api_token="fake-api-key", instance_name="test")
