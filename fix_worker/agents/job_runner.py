"""
Job Runner
==========
Runs one dequeued job to a terminal state.

Lifecycle:
    QUEUED ──► PROCESSING ──► COMPLETED  (result written, progress 100)
                          └─► FAILED     (error message written)

Dispatch:
    - Creation jobs (jobType FILE_CREATION or isCreateMode) → FeatureOrchestrator
    - Everything else → per-file fix flow:
        select files → for each: progress + currentFile, generate fix
        → collect the fixes that need changes → {"fixes": [...]}

Error Policy:
    - An error on one file is logged and that file is skipped
    - Any other error marks the job FAILED and is NOT re-raised
    - A failure to write the job record itself propagates to the supervisor
"""
import logging
from typing import Any, Dict, List, Optional

from fix_worker.agents.feature_orchestrator import FeatureOrchestrator
from fix_worker.agents.fix_agent import FixAgent
from fix_worker.core.constants import PROGRESS_COMPLETE
from fix_worker.models.fix_result import CodeFix
from fix_worker.models.job import JobPayload
from fix_worker.services.file_selector import select_files
from fix_worker.services.job_store import utc_now

logger = logging.getLogger(__name__)


class JobRunner:
    """
    Executes jobs against the store, the fix agent and the orchestrator.

    Parameters
    ----------
    store : JobStore
        Job record persistence.
    fix_agent : FixAgent
        Per-file fix generator.
    orchestrator : FeatureOrchestrator
        Feature-implementation planner/executor.
    """

    def __init__(self, store, fix_agent: FixAgent, orchestrator: FeatureOrchestrator) -> None:
        self.store = store
        self.fix_agent = fix_agent
        self.orchestrator = orchestrator

    async def run(self, job: JobPayload) -> Optional[Dict[str, Any]]:
        """
        Process ``job`` and record its outcome.

        Returns
        -------
        dict or None
            The result payload written on success, None when the job failed.
        """
        kind = "FILE_CREATION" if job.is_creation else "FIX"
        logger.info("Processing job %s (%s)", job.job_id, kind)
        self.store.update_job(job.job_id, status="PROCESSING")

        try:
            if job.is_creation:
                result = await self.orchestrator.run(job)
            else:
                result = await self.run_fix_job(job)
        except Exception as e:
            logger.error("Job %s failed: %s", job.job_id, e, exc_info=True)
            self.store.update_job(
                job.job_id,
                status="FAILED",
                error=str(e) or e.__class__.__name__,
                completed_at=utc_now(),
            )
            return None

        self.store.update_job(
            job.job_id,
            status="COMPLETED",
            progress=PROGRESS_COMPLETE,
            current_file=None,
            result=result,
            completed_at=utc_now(),
        )
        logger.info("Job %s completed", job.job_id)
        return result

    async def run_fix_job(self, job: JobPayload) -> Dict[str, Any]:
        """Select files, fix each one, and build the {"fixes": [...]} payload."""
        selected = select_files(job.files, job.question)
        logger.info("Processing top %d prioritized files for job %s", len(selected), job.job_id)

        fixes: List[CodeFix] = []
        for index, item in enumerate(selected):
            file = item.file
            self.store.update_job(
                job.job_id,
                progress=round(index / len(selected) * 100),
                current_file=file.file_name,
            )
            try:
                fix = await self.fix_agent.generate_fix(file, job.question, job.summary)
            except Exception as e:
                logger.error("Error processing file %s: %s", file.file_name, e, exc_info=True)
                continue

            if fix.needs_fix:
                fixes.append(CodeFix(
                    file_name=file.file_name,
                    original_code=file.source_code,
                    fixed_code=fix.fixed_code,
                    summary=file.summary,
                    explanation=fix.explanation,
                    changes=fix.changes,
                    line_changes=fix.line_changes,
                ))
                logger.info("Generated fix for %s", file.file_name)
            else:
                logger.info("No fix needed for %s", file.file_name)

        logger.info("Job %s produced %d fix(es)", job.job_id, len(fixes))
        return {"fixes": [fix.model_dump(by_alias=True) for fix in fixes]}
