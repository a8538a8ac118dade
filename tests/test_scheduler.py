from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from scripts.okta_ingestion.config import DatabaseConfig, IngestionConfig, SchedulerConfig
from scripts.okta_ingestion.scheduler import build_scheduler, sync_okta

PROVIDER_PATH = "scripts.okta_ingestion.providers.okta.OktaProvider"


@pytest.fixture
def ingestion_config(okta_config):
    return IngestionConfig(
        tenant_id="tenant-1",
        database=DatabaseConfig(url="postgresql://localhost/test"),
        okta=okta_config,
        scheduler=SchedulerConfig(okta_interval_min=15, max_retries=2),
    )


class TestSyncOkta:
    def test_success_first_try(self, ingestion_config):
        sleep = MagicMock()
        with patch(PROVIDER_PATH) as provider_cls:
            assert sync_okta(ingestion_config, MagicMock(), sleep=sleep) is True
        provider_cls.return_value.sync_with_tracking.assert_called_once_with()
        sleep.assert_not_called()

    def test_retries_with_backoff(self, ingestion_config):
        sleep = MagicMock()
        with patch(PROVIDER_PATH) as provider_cls:
            provider_cls.return_value.sync_with_tracking.side_effect = [
                RuntimeError("boom"),
                RuntimeError("boom"),
                {"okta_user": 1},
            ]
            assert sync_okta(ingestion_config, MagicMock(), sleep=sleep) is True
        assert [c.args[0] for c in sleep.call_args_list] == [30, 60]

    def test_gives_up(self, ingestion_config):
        sleep = MagicMock()
        with patch(PROVIDER_PATH) as provider_cls:
            provider_cls.return_value.sync_with_tracking.side_effect = RuntimeError("boom")
            assert sync_okta(ingestion_config, MagicMock(), sleep=sleep) is False
        assert provider_cls.return_value.sync_with_tracking.call_count == 3


def test_build_scheduler_registers_interval_job(ingestion_config):
    scheduler = build_scheduler(ingestion_config, MagicMock())
    jobs = scheduler.get_jobs()
    assert [j.id for j in jobs] == ["okta"]
    assert jobs[0].trigger.interval.total_seconds() == 15 * 60
    assert jobs[0].max_instances == 1
