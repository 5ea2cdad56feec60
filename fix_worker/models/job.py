"""
Job Models
==========
Pydantic models for the queue payload and the persisted job record.

Wire names follow the queue/job-record contract (camelCase); Python code uses
the snake_case attribute names.

Fields (JobPayload):
    job_id          — identity of the persisted job record
    project_id      — project owning the repository (source index + host lookup)
    question        — free-text issue description
    summary         — free-text issue summary (may be empty)
    files           — ordered candidate FileReferences
    job_type        — FIX or FILE_CREATION
    is_create_mode  — legacy flag; true also routes to the feature path
"""
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

JobStatus = Literal["QUEUED", "PROCESSING", "COMPLETED", "FAILED"]
JobKind = Literal["FIX", "FILE_CREATION"]


class FileReference(BaseModel):
    """A candidate file delivered with the job. Immutable."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    file_name: str = Field(default="", alias="fileName")
    source_code: str = Field(default="", alias="sourceCode")
    summary: Optional[str] = ""
    # Embedding similarity in [0, 1]; absent in some payloads
    similarity: Optional[float] = 0.0


class ScoredFile(BaseModel):
    """A FileReference with its derived priority score (never persisted)."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    file: FileReference
    priority_score: float = Field(default=0.0, alias="priorityScore")

    @property
    def file_name(self) -> str:
        return self.file.file_name


class JobPayload(BaseModel):
    """One dequeued job."""
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    project_id: str = Field(default="", alias="projectId")
    question: str = ""
    summary: str = ""
    files: List[FileReference] = Field(default_factory=list)
    job_type: JobKind = Field(default="FIX", alias="jobType")
    is_create_mode: bool = Field(default=False, alias="isCreateMode")

    @property
    def is_creation(self) -> bool:
        """Creation jobs go through the orchestration path."""
        return self.job_type == "FILE_CREATION" or self.is_create_mode


class JobRecord(BaseModel):
    """Snapshot of a persisted job as read back from the store."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    status: JobStatus = "QUEUED"
    progress: int = 0
    current_file: Optional[str] = Field(default=None, alias="currentFile")
    result: Optional[Any] = None
    error: Optional[str] = None
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    completed_at: Optional[datetime] = Field(default=None, alias="completedAt")


class ProjectRecord(BaseModel):
    """Source-hosting coordinates of a project."""
    id: str
    github_owner: str = ""
    github_repo: str = ""
    github_access_token: Optional[str] = None


class IndexedFile(BaseModel):
    """One row of the project's source index (path + summary only)."""
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName")
    summary: str = ""
