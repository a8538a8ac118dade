"""Graph mapping steps, run in dependency order: account, groups, users, apps."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from scripts.okta_ingestion.api_client import APIClient
from scripts.okta_ingestion.config import OktaConfig
from scripts.okta_ingestion.graph import JobState
from scripts.okta_ingestion.steps.access import fetch_groups, fetch_users
from scripts.okta_ingestion.steps.account import fetch_account_details
from scripts.okta_ingestion.steps.applications import fetch_applications

logger = logging.getLogger("ingestion.okta.steps")


@dataclass
class StepContext:
    config: OktaConfig
    api_client: APIClient
    job_state: JobState


StepHandler = Callable[[StepContext], None]


# Users look up their groups; applications look up both.
STEPS: list[tuple[str, StepHandler]] = [
    ("fetch-account", fetch_account_details),
    ("fetch-groups", fetch_groups),
    ("fetch-users", fetch_users),
    ("fetch-applications", fetch_applications),
]


def run_steps(context: StepContext) -> JobState:
    """Run every step against one job state. The first failing step aborts the run."""
    for step_id, handler in STEPS:
        started = time.monotonic()
        logger.info("Starting step %s", step_id, extra={"step": step_id})
        handler(context)
        logger.info(
            "Finished step %s",
            step_id,
            extra={"step": step_id, "duration_s": round(time.monotonic() - started, 3)},
        )
    return context.job_state
