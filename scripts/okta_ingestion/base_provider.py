"""Base class for providers: run tracking around sync()."""

from __future__ import annotations

import logging
import time
import traceback
from abc import ABC, abstractmethod
from typing import Any

from scripts.okta_ingestion.config import IngestionConfig
from scripts.okta_ingestion.db import Database

logger = logging.getLogger("ingestion.provider")


class BaseProvider(ABC):
    """Subclasses set PROVIDER_NAME and implement sync().

    sync() may set ``records_deleted`` for the run record.
    """

    PROVIDER_NAME: str = ""

    def __init__(self, config: IngestionConfig, db: Database) -> None:
        self.config = config
        self.db = db
        self.tenant_id = config.tenant_id
        self.batch_size = config.batch_size
        self.records_deleted = 0

    @abstractmethod
    def sync(self) -> dict[str, int]:
        """Run the provider sync. Returns {type: records_upserted}."""

    def sync_with_tracking(self) -> dict[str, int]:
        """Wrap sync() in an ingestion_runs row; failures are recorded and re-raised."""
        run_id = self.db.record_run_start(
            tenant_id=self.tenant_id,
            provider=self.PROVIDER_NAME,
        )
        started = time.monotonic()
        self.records_deleted = 0
        try:
            results = self.sync()
        except Exception as exc:
            self.db.record_run_end(
                run_id=run_id,
                tenant_id=self.tenant_id,
                status="FAILED",
                error_message=str(exc)[:1000],
                error_detail={"traceback": traceback.format_exc()},
            )
            logger.error(
                "Sync failed: %s",
                exc,
                extra={"provider": self.PROVIDER_NAME, "run_id": run_id},
            )
            raise

        total = sum(results.values())
        self.db.record_run_end(
            run_id=run_id,
            tenant_id=self.tenant_id,
            status="SUCCESS",
            records_upserted=total,
            records_deleted=self.records_deleted,
        )
        logger.info(
            "Sync complete",
            extra={
                "provider": self.PROVIDER_NAME,
                "records": total,
                "run_id": run_id,
                "duration_s": round(time.monotonic() - started, 3),
            },
        )
        return results

    def _batch_rows(self, rows: list[Any], size: int | None = None) -> list[list[Any]]:
        size = size or self.batch_size
        return [rows[i : i + size] for i in range(0, len(rows), size)]
