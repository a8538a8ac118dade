"""APScheduler-based interval scheduling for the Okta sync."""

from __future__ import annotations

import logging
import time

from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.blocking import BlockingScheduler

from scripts.okta_ingestion.config import IngestionConfig
from scripts.okta_ingestion.db import Database

logger = logging.getLogger("ingestion.scheduler")

RETRY_BACKOFF_BASE_S = 30


def sync_okta(config: IngestionConfig, db: Database, sleep=time.sleep) -> bool:
    """Run one sync, retrying with exponential backoff. Returns True on success."""
    from scripts.okta_ingestion.providers.okta import OktaProvider

    max_retries = config.scheduler.max_retries
    for attempt in range(max_retries + 1):
        try:
            OktaProvider(config, db).sync_with_tracking()
            return True
        except Exception as exc:
            if attempt < max_retries:
                delay = RETRY_BACKOFF_BASE_S * (2 ** attempt)
                logger.warning(
                    "Okta sync failed (attempt %d/%d), retrying in %ds: %s",
                    attempt + 1, max_retries, delay, exc,
                )
                sleep(delay)
            else:
                logger.error("Okta sync failed after %d retries: %s", max_retries, exc)
    return False


def _on_job_error(event) -> None:
    logger.error("Job %s raised an exception: %s", event.job_id, event.exception)


def build_scheduler(config: IngestionConfig, db: Database) -> BlockingScheduler:
    scheduler = BlockingScheduler()
    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    scheduler.add_job(
        sync_okta,
        "interval",
        minutes=config.scheduler.okta_interval_min,
        args=[config, db],
        id="okta",
        max_instances=1,
        misfire_grace_time=config.scheduler.misfire_grace_time,
    )
    return scheduler


def start_scheduler(config: IngestionConfig, db: Database) -> None:
    """Block running the Okta sync every OKTA_SYNC_INTERVAL_MIN minutes."""
    scheduler = build_scheduler(config, db)
    logger.info("Starting scheduler with jobs: %s", [j.id for j in scheduler.get_jobs()])
    scheduler.start()
