"""Configuration via environment variables with cloud-native secret support.

The Okta API token may be given literally or as a secret reference
(aws-secret://name#key, gcp-secret://name), resolved at load time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from scripts.okta_ingestion.errors import ConfigError
from scripts.okta_ingestion.rate_governor import DEFAULT_MINIMUM_RATE_LIMIT_REMAINING
from scripts.okta_ingestion.secrets import resolve_database_url, resolve_secret
from scripts.okta_ingestion.transport import DEFAULT_MAX_RETRIES


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    min_connections: int = 2
    max_connections: int = 10


@dataclass(frozen=True)
class OktaConfig:
    org_url: str
    api_token: str
    instance_name: str = "okta"
    # Throttle once x-rate-limit-remaining drops to this value
    minimum_rate_limit_remaining: int = DEFAULT_MINIMUM_RATE_LIMIT_REMAINING
    max_retries: int = DEFAULT_MAX_RETRIES
    page_size: int = 200


@dataclass(frozen=True)
class SchedulerConfig:
    okta_interval_min: int = 60
    misfire_grace_time: int = 300
    max_retries: int = 3


@dataclass(frozen=True)
class IngestionConfig:
    tenant_id: str
    database: DatabaseConfig
    okta: OktaConfig
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    batch_size: int = 500


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def load_okta_config() -> OktaConfig:
    """Load only the Okta settings. Enough for `verify`, which needs no database."""
    load_dotenv()

    org_url = os.environ.get("OKTA_ORG_URL", "")
    if not org_url:
        raise ConfigError("OKTA_ORG_URL environment variable is required")
    if not org_url.startswith(("https://", "http://")):
        raise ConfigError(f"OKTA_ORG_URL must be an http(s) URL, got {org_url!r}")

    token_raw = os.environ.get("OKTA_API_KEY", "")
    if not token_raw:
        raise ConfigError("OKTA_API_KEY environment variable is required")

    return OktaConfig(
        org_url=org_url if org_url.endswith("/") else org_url + "/",
        api_token=resolve_secret(token_raw),
        instance_name=os.environ.get("INSTANCE_NAME", "okta"),
        minimum_rate_limit_remaining=_int_env(
            "OKTA_MINIMUM_RATE_LIMIT_REMAINING", DEFAULT_MINIMUM_RATE_LIMIT_REMAINING
        ),
        max_retries=_int_env("OKTA_MAX_RETRIES", DEFAULT_MAX_RETRIES),
        page_size=_int_env("OKTA_PAGE_SIZE", 200),
    )


def load_config() -> IngestionConfig:
    """Load the full configuration from environment variables (and .env locally)."""
    load_dotenv()

    tenant_id = os.environ.get("TENANT_ID", "")
    if not tenant_id:
        raise ConfigError("TENANT_ID environment variable is required")

    okta = load_okta_config()

    database = DatabaseConfig(
        url=resolve_database_url(),
        min_connections=_int_env("DB_MIN_CONNECTIONS", 2),
        max_connections=_int_env("DB_MAX_CONNECTIONS", 10),
    )

    scheduler = SchedulerConfig(
        okta_interval_min=_int_env("OKTA_SYNC_INTERVAL_MIN", 60),
        misfire_grace_time=_int_env("SCHEDULER_MISFIRE_GRACE_TIME", 300),
        max_retries=_int_env("SCHEDULER_MAX_RETRIES", 3),
    )

    return IngestionConfig(
        tenant_id=tenant_id,
        database=database,
        okta=okta,
        scheduler=scheduler,
        batch_size=_int_env("INGESTION_BATCH_SIZE", 500),
    )
