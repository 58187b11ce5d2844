"""
Job Store - durable ingestion job tracking.

Each job carries the same processing status enum and integer progress as the
paper it ingests. Jobs are persisted to PostgreSQL so they survive restarts;
without a database they live in memory.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import uuid4

from models.graph import ProcessingStatus
from retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

DB_RETRY_POLICY = RetryPolicy(max_attempts=3, base_delay=0.5, multiplier=2.0)

INTERRUPTED_ERROR = "Server restarted during job execution. Please retry."


@dataclass
class IngestionJob:
    """An ingestion request and its progress."""
    id: str
    job_type: str  # "arxiv" or "bulk"
    paper_id: Optional[str] = None
    status: ProcessingStatus = ProcessingStatus.PENDING
    progress: int = 0
    message: str = ""
    result: Optional[dict] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "job_type": self.job_type,
            "paper_id": self.paper_id,
            "status": self.status.value,
            "progress": self.progress,
            "message": self.message,
            "result": self.result,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "metadata": self.metadata,
        }


class JobStore:
    """
    Persistent job store using PostgreSQL.

    Falls back to in-memory storage if database is unavailable.
    """

    CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS ingestion_jobs (
        id UUID PRIMARY KEY,
        job_type VARCHAR(20) NOT NULL,
        paper_id UUID,
        status VARCHAR(32) NOT NULL DEFAULT 'pending',
        progress INTEGER DEFAULT 0,
        message TEXT,
        result JSONB,
        error TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        started_at TIMESTAMP,
        completed_at TIMESTAMP,
        metadata JSONB DEFAULT '{}'::jsonb
    );

    CREATE INDEX IF NOT EXISTS idx_ingestion_jobs_status ON ingestion_jobs(status);
    CREATE INDEX IF NOT EXISTS idx_ingestion_jobs_created ON ingestion_jobs(created_at DESC);
    """

    def __init__(self, db_connection=None, retry_policy: Optional[RetryPolicy] = None):
        self.db = db_connection
        self.retry_policy = retry_policy or DB_RETRY_POLICY
        self._memory_store: dict[str, IngestionJob] = {}

    async def _db_execute_with_retry(self, operation_name: str, query: str, *args) -> bool:
        """Execute a write with retries. Returns False if every attempt failed."""
        try:
            await self.retry_policy.run(
                lambda: self.db.execute(query, *args),
                operation_name=f"DB {operation_name}",
            )
            return True
        except Exception as e:
            logger.error(f"DB {operation_name} gave up: {type(e).__name__}")
            return False

    async def init_table(self) -> None:
        """Create jobs table if it doesn't exist."""
        if self.db:
            try:
                await self.db.execute(self.CREATE_TABLE_SQL)
                logger.info("Ingestion jobs table initialized")
            except Exception as e:
                logger.warning(f"Failed to create ingestion jobs table: {type(e).__name__}")

    @staticmethod
    def _parse_json_field(value) -> Optional[dict]:
        """Parse a JSON field that might be a string or already a dict."""
        if value is None:
            return None
        if isinstance(value, dict):
            return value
        if isinstance(value, str):
            try:
                return json.loads(value)
            except (json.JSONDecodeError, TypeError):
                return None
        return None

    def _row_to_job(self, row) -> IngestionJob:
        return IngestionJob(
            id=str(row["id"]),
            job_type=row["job_type"],
            paper_id=str(row["paper_id"]) if row["paper_id"] else None,
            status=ProcessingStatus(row["status"]),
            progress=row["progress"] or 0,
            message=row["message"] or "",
            result=self._parse_json_field(row["result"]),
            error=row["error"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
            metadata=self._parse_json_field(row["metadata"]) or {},
        )

    async def create_job(
        self,
        job_type: str,
        paper_id: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> IngestionJob:
        job = IngestionJob(
            id=str(uuid4()),
            job_type=job_type,
            paper_id=paper_id,
            metadata=metadata or {},
        )

        if self.db:
            success = await self._db_execute_with_retry(
                "create_job",
                """
                INSERT INTO ingestion_jobs (id, job_type, paper_id, status, progress, message, metadata,
                                            created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                """,
                job.id,
                job.job_type,
                job.paper_id,
                job.status.value,
                job.progress,
                job.message,
                json.dumps(job.metadata),
                job.created_at,
                job.updated_at,
            )
            if not success:
                logger.warning(f"Job {job.id} stored in memory only (DB unavailable)")
                self._memory_store[job.id] = job
        else:
            self._memory_store[job.id] = job

        return job

    async def get_job(self, job_id: str) -> Optional[IngestionJob]:
        """Get job by ID."""
        if self.db:
            try:
                row = await self.db.fetchrow("SELECT * FROM ingestion_jobs WHERE id = $1", job_id)
                if row:
                    return self._row_to_job(row)
            except Exception as e:
                logger.warning(f"Failed to get job from DB: {type(e).__name__}")

        return self._memory_store.get(job_id)

    async def update_job(
        self,
        job_id: str,
        status: Optional[ProcessingStatus] = None,
        progress: Optional[int] = None,
        message: Optional[str] = None,
        result: Optional[dict] = None,
        error: Optional[str] = None,
        paper_id: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Optional[IngestionJob]:
        """Update a job. Metadata is merged into the existing metadata."""
        job = await self.get_job(job_id)
        if not job:
            return None

        if status is not None:
            status = ProcessingStatus(status)
            if status != ProcessingStatus.PENDING and not job.started_at:
                job.started_at = datetime.now()
            if status.is_terminal:
                job.completed_at = datetime.now()
            job.status = status

        if progress is not None:
            job.progress = max(0, min(100, int(progress)))
        if message is not None:
            job.message = message
        if result is not None:
            job.result = result
        if error is not None:
            job.error = error
        if paper_id is not None:
            job.paper_id = paper_id
        if metadata is not None:
            job.metadata = {**job.metadata, **metadata}

        job.updated_at = datetime.now()

        if self.db:
            success = await self._db_execute_with_retry(
                "update_job",
                """
                UPDATE ingestion_jobs
                SET status = $2, progress = $3, message = $4, result = $5, error = $6,
                    paper_id = $7, updated_at = $8, started_at = $9, completed_at = $10, metadata = $11
                WHERE id = $1
                """,
                job_id,
                job.status.value,
                job.progress,
                job.message,
                json.dumps(job.result) if job.result else None,
                job.error,
                job.paper_id,
                job.updated_at,
                job.started_at,
                job.completed_at,
                json.dumps(job.metadata),
            )
            if not success:
                logger.warning(f"Job {job_id} update stored in memory only")
                self._memory_store[job_id] = job
        else:
            self._memory_store[job_id] = job

        return job

    async def list_jobs(self, status: Optional[ProcessingStatus] = None, limit: int = 50) -> list[IngestionJob]:
        """List jobs, newest first."""
        if self.db:
            try:
                if status:
                    rows = await self.db.fetch(
                        "SELECT * FROM ingestion_jobs WHERE status = $1 ORDER BY created_at DESC LIMIT $2",
                        ProcessingStatus(status).value,
                        limit,
                    )
                else:
                    rows = await self.db.fetch(
                        "SELECT * FROM ingestion_jobs ORDER BY created_at DESC LIMIT $1", limit
                    )
                return [self._row_to_job(row) for row in rows]
            except Exception as e:
                logger.warning(f"Failed to list jobs from DB: {type(e).__name__}")

        memory_jobs = list(self._memory_store.values())
        if status:
            memory_jobs = [j for j in memory_jobs if j.status == status]
        return sorted(memory_jobs, key=lambda j: j.created_at, reverse=True)[:limit]

    async def mark_running_as_interrupted(self) -> int:
        """
        Fail every non-terminal job on startup.

        Background tasks die with the process, so a job that was still in
        flight will never finish on its own.
        """
        terminal = [ProcessingStatus.COMPLETED.value, ProcessingStatus.FAILED.value]
        if self.db:
            try:
                result = await self.db.execute(
                    """
                    UPDATE ingestion_jobs
                    SET status = 'failed', error = $1, updated_at = NOW(), completed_at = NOW()
                    WHERE status <> ALL($2::text[])
                    """,
                    INTERRUPTED_ERROR,
                    terminal,
                )
                # Parse "UPDATE N" to get count
                count = int(result.split()[-1]) if result else 0
                if count > 0:
                    logger.warning(f"Marked {count} unfinished ingestion jobs as failed (server restart)")
                return count
            except Exception as e:
                logger.warning(f"Failed to mark unfinished jobs as failed: {type(e).__name__}: {e}")
                return 0

        count = 0
        for job in self._memory_store.values():
            if not job.status.is_terminal:
                job.status = ProcessingStatus.FAILED
                job.error = INTERRUPTED_ERROR
                job.updated_at = job.completed_at = datetime.now()
                count += 1
        return count
