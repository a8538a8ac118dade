"""Okta provider: collect the identity graph and persist it."""

from __future__ import annotations

import json
import logging
from typing import Optional

from scripts.okta_ingestion.api_client import APIClient
from scripts.okta_ingestion.base_provider import BaseProvider
from scripts.okta_ingestion.config import IngestionConfig
from scripts.okta_ingestion.db import Database
from scripts.okta_ingestion.graph import JobState, entity_classes
from scripts.okta_ingestion.steps import StepContext, run_steps

logger = logging.getLogger("ingestion.okta")

ENTITY_TABLE = "okta_entities"
RELATIONSHIP_TABLE = "okta_relationships"


def _split_reserved(obj: dict) -> dict:
    """Properties only: the underscore-prefixed graph fields are stored in columns."""
    return {k: v for k, v in obj.items() if not k.startswith("_")}


class OktaProvider(BaseProvider):
    PROVIDER_NAME = "okta"

    def __init__(
        self,
        config: IngestionConfig,
        db: Database,
        api_client: Optional[APIClient] = None,
    ) -> None:
        super().__init__(config, db)
        self.api_client = api_client or APIClient(config.okta)

    def collect(self) -> JobState:
        """Run the mapping steps against the Okta API without touching the database."""
        context = StepContext(
            config=self.config.okta,
            api_client=self.api_client,
            job_state=JobState(),
        )
        return run_steps(context)

    def sync(self) -> dict[str, int]:
        sync_started = self.db.now()
        job_state = self.collect()

        self._upsert_entities(job_state.collected_entities)
        self._upsert_relationships(job_state.collected_relationships)

        self.records_deleted = self.db.mark_stale_deleted(
            ENTITY_TABLE, self.tenant_id, sync_started
        ) + self.db.mark_stale_deleted(RELATIONSHIP_TABLE, self.tenant_id, sync_started)

        results = job_state.counts_by_type()
        logger.info("Collected Okta graph: %s", results, extra={"provider": self.PROVIDER_NAME})
        return results

    def _upsert_entities(self, entities: list[dict]) -> int:
        total = 0
        columns = [
            "tenant_id", "entity_key", "entity_type", "entity_class",
            "properties", "raw_response",
        ]
        conflict = ["tenant_id", "entity_key"]
        update = ["entity_type", "entity_class", "properties", "raw_response"]
        for batch in self._batch_rows(entities):
            rows = []
            for e in batch:
                raw = e.get("_rawData") or [{}]
                rows.append((
                    self.tenant_id,
                    e["_key"],
                    e["_type"],
                    entity_classes(e),
                    json.dumps(_split_reserved(e)),
                    json.dumps(raw[0].get("rawData")),
                ))
            with self.db.transaction() as cur:
                total += self.db.upsert_batch(
                    cur, ENTITY_TABLE, columns, rows, conflict, update
                )
        return total

    def _upsert_relationships(self, relationships: list[dict]) -> int:
        total = 0
        columns = [
            "tenant_id", "relationship_key", "relationship_type",
            "relationship_class", "from_entity_key", "to_entity_key", "properties",
        ]
        conflict = ["tenant_id", "relationship_key"]
        update = [
            "relationship_type", "relationship_class", "from_entity_key",
            "to_entity_key", "properties",
        ]
        for batch in self._batch_rows(relationships):
            rows = []
            for r in batch:
                rows.append((
                    self.tenant_id,
                    r["_key"],
                    r["_type"],
                    r["_class"],
                    r["_fromEntityKey"],
                    r["_toEntityKey"],
                    json.dumps(_split_reserved(r)),
                ))
            with self.db.transaction() as cur:
                total += self.db.upsert_batch(
                    cur, RELATIONSHIP_TABLE, columns, rows, conflict, update
                )
        return total
