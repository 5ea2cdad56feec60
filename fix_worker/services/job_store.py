"""
Job Store
=========
Durable job records, project coordinates and the source index, via
SQLAlchemy Core.

Tables:
    fix_jobs                — one row per job (status/progress/result lifecycle)
    projects                — owner/repo/token of each project's repository
    source_code_embeddings  — indexed files of a project (path + summary)

The worker only reads and updates jobs by id. It never deletes or lists
them; creating rows is the producer's job (create_job exists for producers
and tests).

Every update stamps ``updated_at``. Updating an unknown id raises
JobNotFoundError.
"""
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import (
    JSON, Column, DateTime, Integer, MetaData, String, Table, Text,
    create_engine, insert, select, update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from fix_worker.core.config import DATABASE_URL
from fix_worker.core.errors import JobNotFoundError
from fix_worker.models.job import IndexedFile, JobRecord, ProjectRecord

logger = logging.getLogger(__name__)

metadata = MetaData()

fix_jobs = Table(
    "fix_jobs",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("project_id", String(64), index=True),
    Column("status", String(16), nullable=False, default="QUEUED"),
    Column("progress", Integer, nullable=False, default=0),
    Column("current_file", Text),
    Column("result", JSON),
    Column("error", Text),
    Column("created_at", DateTime(timezone=True)),
    Column("updated_at", DateTime(timezone=True)),
    Column("completed_at", DateTime(timezone=True)),
)

projects = Table(
    "projects",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("github_owner", String(255), nullable=False),
    Column("github_repo", String(255), nullable=False),
    Column("github_access_token", Text),
)

source_code_embeddings = Table(
    "source_code_embeddings",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("project_id", String(64), nullable=False, index=True),
    Column("file_name", Text, nullable=False),
    Column("summary", Text),
)

_UPDATABLE = frozenset({"status", "progress", "current_file", "result", "error", "completed_at"})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def make_engine(url: str) -> Engine:
    """Engine for ``url``; in-memory SQLite shares one connection across threads."""
    if url.startswith("sqlite") and ":memory:" in url:
        return create_engine(
            url, connect_args={"check_same_thread": False}, poolclass=StaticPool,
        )
    return create_engine(url, pool_pre_ping=True)


class JobStore:
    """Job, project and source-index persistence facade."""

    def __init__(self, url: Optional[str] = DATABASE_URL, engine: Optional[Engine] = None) -> None:
        if engine is None and not url:
            raise ValueError("JobStore needs a database URL or an engine")
        self.engine = engine or make_engine(url)

    def create_schema(self) -> None:
        metadata.create_all(self.engine)

    def close(self) -> None:
        self.engine.dispose()
        logger.info("Job store connection closed")

    # -----------------------------------------------------------------------
    # Jobs
    # -----------------------------------------------------------------------
    def create_job(self, job_id: str, project_id: str = "") -> None:
        now = utc_now()
        with self.engine.begin() as conn:
            conn.execute(insert(fix_jobs).values(
                id=job_id, project_id=project_id, status="QUEUED", progress=0,
                created_at=now, updated_at=now,
            ))

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        with self.engine.connect() as conn:
            row = conn.execute(select(fix_jobs).where(fix_jobs.c.id == job_id)).mappings().first()
        if row is None:
            return None
        return JobRecord(
            id=row["id"],
            status=row["status"],
            progress=row["progress"],
            current_file=row["current_file"],
            result=row["result"],
            error=row["error"],
            updated_at=row["updated_at"],
            completed_at=row["completed_at"],
        )

    def update_job(self, job_id: str, **fields: Any) -> None:
        """
        Update the given fields of a job and stamp ``updated_at``.

        Parameters
        ----------
        job_id : str
            Job identity.
        **fields
            Any of status, progress, current_file, result, error, completed_at.

        Raises
        ------
        ValueError
            For a field name outside the updatable set.
        JobNotFoundError
            When no row has ``job_id``.
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update job field(s): {', '.join(sorted(unknown))}")

        values = dict(fields, updated_at=utc_now())
        with self.engine.begin() as conn:
            result = conn.execute(update(fix_jobs).where(fix_jobs.c.id == job_id).values(**values))
            if result.rowcount != 1:
                raise JobNotFoundError(f"Job {job_id} not found")
        logger.debug("Updated job %s: %s", job_id, sorted(fields))

    # -----------------------------------------------------------------------
    # Projects / source index
    # -----------------------------------------------------------------------
    def add_project(self, project: ProjectRecord) -> None:
        with self.engine.begin() as conn:
            conn.execute(insert(projects).values(**project.model_dump()))

    def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        with self.engine.connect() as conn:
            row = conn.execute(select(projects).where(projects.c.id == project_id)).mappings().first()
        if row is None:
            return None
        return ProjectRecord(**dict(row))

    def add_indexed_file(self, project_id: str, file_name: str, summary: str = "") -> None:
        with self.engine.begin() as conn:
            conn.execute(insert(source_code_embeddings).values(
                project_id=project_id, file_name=file_name, summary=summary,
            ))

    def list_indexed_files(self, project_id: str, limit: int = 50) -> List[IndexedFile]:
        """Up to ``limit`` (path, summary) rows of the project's source index."""
        query = (
            select(source_code_embeddings.c.file_name, source_code_embeddings.c.summary)
            .where(source_code_embeddings.c.project_id == project_id)
            .order_by(source_code_embeddings.c.id)
            .limit(limit)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).all()
        return [IndexedFile(file_name=row.file_name, summary=row.summary or "") for row in rows]
