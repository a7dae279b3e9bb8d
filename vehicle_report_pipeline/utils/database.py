"""
Database utilities for the Vehicle Report Pipeline

Provides the PostgreSQL record store: connection pooling, inspection and
evidence reads, processing job persistence with atomic claims, and report
upserts. The schema lives in ``sql/schema.sql``.
"""

import json
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Iterable

import asyncpg

from ..core.exceptions import DatabaseError
from ..models.inspection import Inspection, InspectionStatus
from ..models.job import Job
from .store import RecordStore

SCHEMA_PATH = Path(__file__).resolve().parent.parent / "sql" / "schema.sql"

# Serialises claims per inspection; the second of two racing claims waits,
# then sees the first job already processing.
CLAIM_NEXT_JOB_SQL = """
    UPDATE processing_jobs
    SET status = 'processing', started_at = $3
    WHERE id = (
        SELECT id FROM processing_jobs
        WHERE inspection_id = $1 AND status = 'pending'
        ORDER BY sequence_order ASC
        LIMIT 1
        FOR UPDATE
    )
    AND status = 'pending'
    AND sequence_order > $2
    AND NOT EXISTS (
        SELECT 1 FROM processing_jobs
        WHERE inspection_id = $1 AND status = 'processing'
    )
    RETURNING *
"""


async def _init_connection(connection: asyncpg.Connection):
    for type_name in ("json", "jsonb"):
        await connection.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog"
        )


class DatabaseManager(RecordStore):
    """
    PostgreSQL-backed record store.

    Provides high-level methods for inspection, job and report state with
    connection pooling and transactional job claims.
    """

    def __init__(self, connection_string: str, pool_size: int = 10, max_overflow: int = 20):
        """
        Initialize database manager.

        Args:
            connection_string: PostgreSQL connection string
            pool_size: Base connection pool size
            max_overflow: Maximum additional connections
        """
        self.connection_string = connection_string
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.pool: Optional[asyncpg.Pool] = None

    async def initialize(self) -> None:
        """Initialize database connection pool."""
        if self.pool:
            return
        try:
            self.pool = await asyncpg.create_pool(
                self.connection_string,
                min_size=1,
                max_size=self.pool_size + self.max_overflow,
                command_timeout=60,
                init=_init_connection
            )
        except Exception as e:
            raise DatabaseError("initialization", f"Failed to create connection pool: {str(e)}")

    async def close(self) -> None:
        """Close database connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None

    async def is_healthy(self) -> bool:
        """Check database connectivity."""
        if not self.pool:
            return False
        try:
            async with self.pool.acquire() as connection:
                await connection.execute("SELECT 1")
                return True
        except (asyncpg.PostgresError, OSError):
            return False

    @asynccontextmanager
    async def get_connection(self):
        """Get a database connection from the pool."""
        if not self.pool:
            raise DatabaseError("connection", "Database pool not initialized")

        async with self.pool.acquire() as connection:
            yield connection

    async def apply_schema(self, schema_path: Path = SCHEMA_PATH) -> None:
        """Create tables and indexes if they do not exist."""
        try:
            async with self.get_connection() as conn:
                await conn.execute(schema_path.read_text(encoding="utf-8"))
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("apply_schema", str(e))

    # Inspection Methods
    async def get_inspection(self, inspection_id: str) -> Optional[Inspection]:
        """Get an inspection by ID."""
        try:
            async with self.get_connection() as conn:
                row = await conn.fetchrow(
                    "SELECT id, vin, mileage, zip, email, status, created_at, updated_at "
                    "FROM inspections WHERE id = $1",
                    inspection_id
                )
                if row:
                    return Inspection.from_dict(dict(row))
                return None
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("get_inspection", str(e), table="inspections")

    async def update_inspection_status(self, inspection_id: str, status: InspectionStatus) -> None:
        """Set an inspection's status."""
        try:
            async with self.get_connection() as conn:
                await conn.execute(
                    "UPDATE inspections SET status = $2, updated_at = $3 WHERE id = $1",
                    inspection_id, status.value, datetime.utcnow()
                )
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("update_inspection_status", str(e), table="inspections")

    async def transition_inspection(
        self,
        inspection_id: str,
        status: InspectionStatus,
        unless: Iterable[InspectionStatus] = ()
    ) -> bool:
        """Conditionally set an inspection's status."""
        excluded = [value.value for value in unless]
        try:
            async with self.get_connection() as conn:
                row = await conn.fetchrow(
                    """
                    UPDATE inspections SET status = $2, updated_at = $3
                    WHERE id = $1 AND NOT (status = ANY($4::text[]))
                    RETURNING id
                    """,
                    inspection_id, status.value, datetime.utcnow(), excluded
                )
                return row is not None
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("transition_inspection", str(e), table="inspections")

    async def fetch_evidence(self, inspection_id: str) -> Dict[str, List[Dict[str, Any]]]:
        """Load photos, OBD2 codes and title images for an inspection."""
        try:
            async with self.get_connection() as conn:
                photos = await conn.fetch(
                    "SELECT id, path, converted_path, category, storage FROM photos "
                    "WHERE inspection_id = $1 ORDER BY created_at, id",
                    inspection_id
                )
                obd2_codes = await conn.fetch(
                    "SELECT id, code, description, screenshot_path, converted_path, storage FROM obd2_codes "
                    "WHERE inspection_id = $1 ORDER BY created_at, id",
                    inspection_id
                )
                title_images = await conn.fetch(
                    "SELECT id, path, converted_path, storage FROM title_images "
                    "WHERE inspection_id = $1 ORDER BY created_at, id",
                    inspection_id
                )
                return {
                    "photos": [dict(row) for row in photos],
                    "obd2_codes": [dict(row) for row in obd2_codes],
                    "title_images": [dict(row) for row in title_images],
                }
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("fetch_evidence", str(e))

    # Job Management Methods
    async def insert_jobs(self, jobs: List[Job]) -> None:
        """Insert a whole job list in one transaction."""
        try:
            async with self.get_connection() as conn:
                async with conn.transaction():
                    await conn.executemany(
                        """
                        INSERT INTO processing_jobs (
                            id, inspection_id, job_type, sequence_order, chunk_index,
                            total_chunks, chunk_data, status, retry_count, created_at
                        ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                        """,
                        [
                            (
                                job.job_id, job.inspection_id, job.job_type.value,
                                job.sequence_order, job.chunk_index, job.total_chunks,
                                job.chunk_data, job.status.value, job.retry_count,
                                job.created_at
                            )
                            for job in jobs
                        ]
                    )
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("insert_jobs", str(e), table="processing_jobs")

    async def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job by ID."""
        try:
            async with self.get_connection() as conn:
                row = await conn.fetchrow("SELECT * FROM processing_jobs WHERE id = $1", job_id)
                if row:
                    return Job.from_dict(dict(row))
                return None
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("get_job", str(e), table="processing_jobs")

    async def list_jobs(self, inspection_id: str) -> List[Job]:
        """Get all jobs of an inspection in sequence order."""
        try:
            async with self.get_connection() as conn:
                rows = await conn.fetch(
                    "SELECT * FROM processing_jobs WHERE inspection_id = $1 ORDER BY sequence_order ASC",
                    inspection_id
                )
                return [Job.from_dict(dict(row)) for row in rows]
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("list_jobs", str(e), table="processing_jobs")

    async def claim_next_pending_job(
        self,
        inspection_id: str,
        completed_sequence_order: int,
        started_at: datetime
    ) -> Optional[Job]:
        """Atomically claim the next pending job of an inspection."""
        try:
            async with self.get_connection() as conn:
                async with conn.transaction():
                    await conn.execute(
                        "SELECT pg_advisory_xact_lock(hashtext($1))", str(inspection_id)
                    )
                    row = await conn.fetchrow(
                        CLAIM_NEXT_JOB_SQL, inspection_id, completed_sequence_order, started_at
                    )
                    if row:
                        return Job.from_dict(dict(row))
                    return None
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("claim_next_pending_job", str(e), table="processing_jobs")

    async def update_job(self, job: Job) -> bool:
        """Write a job's terminal state if it is still processing."""
        try:
            async with self.get_connection() as conn:
                row = await conn.fetchrow(
                    """
                    UPDATE processing_jobs SET
                        status = $2,
                        chunk_result = $3,
                        error_message = $4,
                        cost = $5,
                        total_tokens = $6,
                        web_search_count = $7,
                        web_search_results = $8,
                        completed_at = $9
                    WHERE id = $1 AND status = 'processing'
                    RETURNING id
                    """,
                    job.job_id, job.status.value, job.chunk_result, job.error_message,
                    job.cost, job.total_tokens, job.web_search_count,
                    job.web_search_results, job.completed_at
                )
                return row is not None
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("update_job", str(e), table="processing_jobs")

    async def count_open_jobs(self, inspection_id: str) -> int:
        try:
            async with self.get_connection() as conn:
                return await conn.fetchval(
                    "SELECT COUNT(*) FROM processing_jobs "
                    "WHERE inspection_id = $1 AND status IN ('pending', 'processing')",
                    inspection_id
                )
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("count_open_jobs", str(e), table="processing_jobs")

    async def get_completed_result(self, inspection_id: str, sequence_order: int) -> Optional[Dict[str, Any]]:
        try:
            async with self.get_connection() as conn:
                return await conn.fetchval(
                    "SELECT chunk_result FROM processing_jobs "
                    "WHERE inspection_id = $1 AND sequence_order = $2 AND status = 'completed'",
                    inspection_id, sequence_order
                )
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("get_completed_result", str(e), table="processing_jobs")

    async def get_latest_chunk_result(self, inspection_id: str) -> Optional[Dict[str, Any]]:
        try:
            async with self.get_connection() as conn:
                return await conn.fetchval(
                    "SELECT chunk_result FROM processing_jobs "
                    "WHERE inspection_id = $1 AND job_type = 'chunk_analysis' AND status = 'completed' "
                    "AND chunk_result IS NOT NULL AND chunk_result <> '{}'::jsonb "
                    "ORDER BY sequence_order DESC LIMIT 1",
                    inspection_id
                )
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("get_latest_chunk_result", str(e), table="processing_jobs")

    async def find_stale_jobs(self, started_before: datetime) -> List[Job]:
        try:
            async with self.get_connection() as conn:
                rows = await conn.fetch(
                    "SELECT * FROM processing_jobs WHERE status = 'processing' AND started_at < $1 "
                    "ORDER BY started_at ASC",
                    started_before
                )
                return [Job.from_dict(dict(row)) for row in rows]
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("find_stale_jobs", str(e), table="processing_jobs")

    async def find_stalled_finalizations(self, updated_before: datetime) -> List[str]:
        try:
            async with self.get_connection() as conn:
                rows = await conn.fetch(
                    "SELECT id FROM inspections WHERE status = 'finalizing' AND updated_at < $1 "
                    "ORDER BY updated_at ASC",
                    updated_before
                )
                return [str(row["id"]) for row in rows]
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("find_stalled_finalizations", str(e), table="inspections")

    # Report Methods
    async def upsert_report(self, inspection_id: str, report: Dict[str, Any]) -> None:
        """Insert or update the report of an inspection."""
        now = datetime.utcnow()
        try:
            async with self.get_connection() as conn:
                await conn.execute(
                    """
                    INSERT INTO reports (
                        inspection_id, summary_json, summary, cost, total_tokens,
                        web_search_count, web_search_results, ai_model, created_at, updated_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $9)
                    ON CONFLICT (inspection_id) DO UPDATE SET
                        summary_json = EXCLUDED.summary_json,
                        summary = EXCLUDED.summary,
                        cost = EXCLUDED.cost,
                        total_tokens = EXCLUDED.total_tokens,
                        web_search_count = EXCLUDED.web_search_count,
                        web_search_results = EXCLUDED.web_search_results,
                        ai_model = EXCLUDED.ai_model,
                        updated_at = EXCLUDED.updated_at
                    """,
                    inspection_id, report.get("summary_json"), report.get("summary"),
                    report.get("cost", 0.0), report.get("total_tokens", 0),
                    report.get("web_search_count", 0), report.get("web_search_results", []),
                    report.get("ai_model"), now
                )
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("upsert_report", str(e), table="reports")

    async def get_report(self, inspection_id: str) -> Optional[Dict[str, Any]]:
        try:
            async with self.get_connection() as conn:
                row = await conn.fetchrow("SELECT * FROM reports WHERE inspection_id = $1", inspection_id)
                return dict(row) if row else None
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("get_report", str(e), table="reports")
