"""PostgreSQL access: connection pool, batch upserts, stale-row cleanup, run tracking."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Generator, Optional, Sequence

import psycopg2
import psycopg2.extras
import psycopg2.pool

from scripts.okta_ingestion.config import DatabaseConfig

logger = logging.getLogger("ingestion.db")


class Database:
    """ThreadedConnectionPool plus the handful of statements the sync needs."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._pool = psycopg2.pool.ThreadedConnectionPool(
            minconn=config.min_connections,
            maxconn=config.max_connections,
            dsn=config.url,
        )

    def close(self) -> None:
        self._pool.closeall()

    @contextmanager
    def connection(self) -> Generator:
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Generator:
        """Yield a cursor; commit on clean exit, roll back on any exception."""
        with self.connection() as conn:
            try:
                with conn.cursor() as cur:
                    yield cur
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def now(self) -> datetime:
        """Database clock, so stale-row cutoffs agree with NOW() in upserts."""
        with self.transaction() as cur:
            cur.execute("SELECT NOW()")
            return cur.fetchone()[0]

    def upsert_batch(
        self,
        cur,
        table: str,
        columns: list[str],
        rows: Sequence[tuple],
        conflict_columns: list[str],
        update_columns: list[str],
    ) -> int:
        """INSERT ... ON CONFLICT DO UPDATE for a batch of rows via execute_values.

        Updated rows get fresh timestamps and are un-deleted. Returns rowcount.
        """
        if not rows:
            return 0

        set_clauses = ", ".join(f"{c} = EXCLUDED.{c}" for c in update_columns)
        set_clauses += ", updated_at = NOW(), last_synced_at = NOW(), deleted_at = NULL"
        sql = (
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES %s "
            f"ON CONFLICT ({', '.join(conflict_columns)}) DO UPDATE SET {set_clauses}"
        )
        # One statement for the whole batch so rowcount covers every row
        psycopg2.extras.execute_values(cur, sql, rows, page_size=len(rows))
        return cur.rowcount

    def mark_stale_deleted(self, table: str, tenant_id: str, synced_before: datetime) -> int:
        """Soft-delete rows that the latest sync did not touch."""
        with self.transaction() as cur:
            cur.execute(
                f"""UPDATE {table}
                    SET deleted_at = NOW()
                    WHERE tenant_id = %s
                      AND last_synced_at < %s
                      AND deleted_at IS NULL""",
                (tenant_id, synced_before),
            )
            deleted = cur.rowcount
        if deleted:
            logger.info("Soft-deleted %d stale rows from %s", deleted, table)
        return deleted

    # ------------------------------------------------------------------
    # Ingestion run tracking
    # ------------------------------------------------------------------

    def record_run_start(
        self,
        tenant_id: str,
        provider: str,
        metadata: Optional[dict] = None,
    ) -> str:
        """Insert an ingestion_runs row in RUNNING state and return its id."""
        run_id = str(uuid.uuid4())
        with self.transaction() as cur:
            cur.execute(
                """INSERT INTO ingestion_runs
                   (id, tenant_id, provider, status, run_metadata)
                   VALUES (%s, %s, %s, 'RUNNING', %s)""",
                (run_id, tenant_id, provider, psycopg2.extras.Json(metadata or {})),
            )
        return run_id

    def record_run_end(
        self,
        run_id: str,
        tenant_id: str,
        status: str,
        records_upserted: int = 0,
        records_deleted: int = 0,
        error_message: Optional[str] = None,
        error_detail: Optional[dict] = None,
    ) -> None:
        with self.transaction() as cur:
            cur.execute(
                """UPDATE ingestion_runs
                   SET status = %s,
                       finished_at = NOW(),
                       records_upserted = %s,
                       records_deleted = %s,
                       error_message = %s,
                       error_detail = %s
                   WHERE id = %s AND tenant_id = %s""",
                (
                    status,
                    records_upserted,
                    records_deleted,
                    error_message,
                    psycopg2.extras.Json(error_detail) if error_detail else None,
                    run_id,
                    tenant_id,
                ),
            )

    def get_recent_runs(self, tenant_id: str, limit: int = 10) -> list[dict[str, Any]]:
        with self.transaction() as cur:
            cur.execute(
                """SELECT id, provider, status, started_at, finished_at,
                          records_upserted, records_deleted, error_message
                   FROM ingestion_runs
                   WHERE tenant_id = %s
                   ORDER BY started_at DESC LIMIT %s""",
                (tenant_id, limit),
            )
            cols = [d[0] for d in cur.description]
            return [dict(zip(cols, row)) for row in cur.fetchall()]
