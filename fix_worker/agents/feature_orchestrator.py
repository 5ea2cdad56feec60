"""
Feature Orchestrator
====================
Plans and executes feature-implementation ("file creation") jobs.

State Machine:
    PLANNING ──► REDIRECTED   (no plan, or a plan with nothing to execute)
       │
       └──────► EXECUTING ──► FINALIZED (result returned to the job runner)

Execution Phases and progress bands:
    planning        5
    new files       10 .. 29   "Creating {path}..."
    modifications   30 .. 49   "Updating {path}..."
    dependencies    50 .. 69
    configuration   70 .. 99
    completion      100        (written by the job runner)

Within a phase, progress interpolates on that phase's own steps and stays
inside its band. Reported progress never decreases and a value is only
written when it moves forward, so the sequence a client sees is strictly
increasing.

Error Policy:
    - A plan reply that cannot be parsed (strict or repaired) means "no
      orchestration needed" → REDIRECT
    - Model transport failures propagate; the job runner marks the job FAILED
    - Source-host failures while fetching a file to modify never fail the
      job: the modification prompt gets a visible placeholder instead
"""
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from fix_worker.core.config import MODEL_MAX_TOKENS, MODEL_TEMPERATURE, REPO_CONTEXT_FILE_LIMIT
from fix_worker.core.constants import (
    ACTION_ORCHESTRATED, ACTION_REDIRECT, ORIGINAL_CONTENT_UNAVAILABLE, REDIRECT_MESSAGE,
    PROGRESS_PLANNING, PROGRESS_CREATION, PROGRESS_MODIFICATION, PROGRESS_DEPENDENCIES,
    PROGRESS_CONFIGURATION, PROGRESS_COMPLETE,
)
from fix_worker.core.errors import SourceHostError
from fix_worker.llm.client import LLMClient
from fix_worker.llm.language_rules import LanguageRules, get_language_rules
from fix_worker.llm.prompts import build_modification_prompt, build_new_file_prompt, build_plan_prompt
from fix_worker.models.job import JobPayload
from fix_worker.models.plan import (
    ConfigurationChange, ConfigurationChangeResult, CreatedFile, DependencyPackage,
    DependencyUpdate, DependencyUpdateResult, FeatureAnalysis, FileModification,
    ModifiedFile, NewFileSpec, OrchestrationPlan, RepositoryContext,
)
from fix_worker.parser.response_parser import (
    FEATURE_PLAN_SCHEMA, FILE_GENERATION_SCHEMA, MODIFICATION_SCHEMA, parse_response,
)
from fix_worker.services.github_service import GitHubService
from fix_worker.services.repo_context import load_repository_context

logger = logging.getLogger(__name__)

DEFAULT_DEPENDENCY_EXPLANATION = "Dependencies added for new feature"
CONFIGURATION_EXPLANATION = "Configuration updated for new feature"
DEFAULT_SUMMARY = "Orchestrated implementation completed"


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------
def band_progress(done: int, total: int, band_start: int, band_end: int) -> int:
    """
    Progress after ``done`` of the ``total`` steps of one phase.

    Interpolates linearly across [band_start, band_end) and stops one short
    of band_end, which belongs to the next phase.
    """
    if total <= 0:
        return band_start
    raw = band_start + round((band_end - band_start) * done / total)
    return max(band_start, min(raw, band_end - 1))


class ProgressTracker:
    """Writes monotonically increasing progress and activity labels for one job."""

    def __init__(self, store, job_id: str) -> None:
        self.store = store
        self.job_id = job_id
        self.last = 0

    def report(self, value: int, label: Optional[str] = None) -> None:
        fields: Dict[str, Any] = {}
        if value > self.last:
            self.last = value
            fields["progress"] = value
        if label is not None:
            fields["current_file"] = label
        if fields:
            self.store.update_job(self.job_id, **fields)
            logger.info("Job %s progress %d%% %s", self.job_id, self.last, label or "")


# ---------------------------------------------------------------------------
# Plan coercion
# ---------------------------------------------------------------------------
def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _items(value: Any) -> List[Dict[str, Any]]:
    return [item for item in value if isinstance(item, dict)] if isinstance(value, list) else []


def coerce_plan(raw: Any) -> Optional[OrchestrationPlan]:
    """
    Build an OrchestrationPlan from the model's loosely-typed plan object.

    Entries without a path/file are dropped; scalar fields are coerced to
    text. Returns None when ``raw`` is not an object.
    """
    if not isinstance(raw, dict):
        return None

    new_files = [
        NewFileSpec(
            path=_text(item.get("path")),
            type=_text(item.get("type")) or "component",
            description=_text(item.get("description")),
            priority=_text(item.get("priority")) or "medium",
            dependencies=item.get("dependencies"),
        )
        for item in _items(raw.get("newFiles")) if item.get("path")
    ]
    modified_files = [
        FileModification(path=_text(item["path"]), reason=_text(item.get("reason")), changes=item.get("changes"))
        for item in _items(raw.get("modifiedFiles")) if item.get("path")
    ]
    dependency_updates = [
        DependencyUpdate(
            file=_text(item["file"]),
            packages=[
                DependencyPackage(
                    name=_text(pkg["name"]),
                    version=_text(pkg.get("version")),
                    reason=_text(pkg.get("reason")),
                )
                for pkg in _items(item.get("packages")) if pkg.get("name")
            ],
        )
        for item in _items(raw.get("dependencyUpdates")) if item.get("file")
    ]
    configuration_changes = [
        ConfigurationChange(file=_text(item["file"]), changes=item.get("changes"))
        for item in _items(raw.get("configurationChanges")) if item.get("file")
    ]
    return OrchestrationPlan(
        new_files=new_files,
        modified_files=modified_files,
        dependency_updates=dependency_updates,
        configuration_changes=configuration_changes,
        integration_steps=raw.get("integrationSteps"),
    )


# ---------------------------------------------------------------------------
# Feature Orchestrator
# ---------------------------------------------------------------------------
class FeatureOrchestrator:
    """
    Runs one feature-implementation job from plan to result payload.

    Parameters
    ----------
    client : LLMClient
        Model client.
    store : JobStore
        Job/project/source-index store (progress writes, project lookup).
    github : GitHubService
        Source-host client used to fetch files that will be modified.
    """

    def __init__(
        self,
        client: LLMClient,
        store,
        github: Optional[GitHubService] = None,
        temperature: float = MODEL_TEMPERATURE,
        max_tokens: int = MODEL_MAX_TOKENS,
        context_file_limit: int = REPO_CONTEXT_FILE_LIMIT,
    ) -> None:
        self.client = client
        self.store = store
        self.github = github or GitHubService()
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.context_file_limit = context_file_limit

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    async def run(self, job: JobPayload) -> Dict[str, Any]:
        """
        Plan and execute ``job``.

        Returns
        -------
        dict
            The job's result payload: either the REDIRECT action or the
            ORCHESTRATED_IMPLEMENTATION action with its plan results.
        """
        tracker = ProgressTracker(self.store, job.job_id)
        tracker.report(PROGRESS_PLANNING, "Planning orchestrated implementation...")

        context = load_repository_context(self.store, job.project_id, limit=self.context_file_limit)
        rules = get_language_rules(context.primary_language)
        analysis = await self.analyze(job.question, job.summary, context, rules)

        if analysis is None or analysis.plan is None or analysis.plan.is_empty:
            logger.info("Job %s needs no orchestration, redirecting to fix flow", job.job_id)
            return {"action": ACTION_REDIRECT, "message": REDIRECT_MESSAGE}

        plan = analysis.plan
        logger.info(
            "Executing plan for job %s (%d steps): %d new, %d modified, %d dependency, %d configuration, %d integration",
            job.job_id, plan.total_steps, len(plan.new_files), len(plan.modified_files),
            len(plan.dependency_updates), len(plan.configuration_changes), len(plan.integration_steps),
        )

        created: List[CreatedFile] = []
        if plan.new_files:
            total = len(plan.new_files)
            tracker.report(PROGRESS_CREATION, "Creating new files...")
            for done, spec in enumerate(plan.new_files):
                tracker.report(band_progress(done, total, PROGRESS_CREATION, PROGRESS_MODIFICATION), f"Creating {spec.path}...")
                created.append(await self.generate_new_file(spec, context, job.question))
                tracker.report(band_progress(done + 1, total, PROGRESS_CREATION, PROGRESS_MODIFICATION))

        modified: List[ModifiedFile] = []
        if plan.modified_files:
            total = len(plan.modified_files)
            tracker.report(PROGRESS_MODIFICATION, "Updating existing files...")
            for done, modification in enumerate(plan.modified_files):
                tracker.report(band_progress(done, total, PROGRESS_MODIFICATION, PROGRESS_DEPENDENCIES), f"Updating {modification.path}...")
                modified.append(await self.generate_modification(modification, job.question, job.project_id))
                tracker.report(band_progress(done + 1, total, PROGRESS_MODIFICATION, PROGRESS_DEPENDENCIES))

        dependencies: List[DependencyUpdateResult] = []
        if plan.dependency_updates:
            total = len(plan.dependency_updates)
            tracker.report(PROGRESS_DEPENDENCIES, "Updating dependencies...")
            for done, update in enumerate(plan.dependency_updates, start=1):
                dependencies.append(summarize_dependency_update(update))
                tracker.report(band_progress(done, total, PROGRESS_DEPENDENCIES, PROGRESS_CONFIGURATION))

        configuration: List[ConfigurationChangeResult] = []
        if plan.configuration_changes:
            total = len(plan.configuration_changes)
            tracker.report(PROGRESS_CONFIGURATION, "Updating configuration files...")
            for done, change in enumerate(plan.configuration_changes, start=1):
                configuration.append(ConfigurationChangeResult(
                    file_name=change.file, changes=list(change.changes), explanation=CONFIGURATION_EXPLANATION,
                ))
                tracker.report(band_progress(done, total, PROGRESS_CONFIGURATION, PROGRESS_COMPLETE))

        logger.info(
            "Job %s orchestration done: %d created, %d modified, %d dependency, %d configuration",
            job.job_id, len(created), len(modified), len(dependencies), len(configuration),
        )
        return {
            "action": ACTION_ORCHESTRATED,
            "orchestratedPlan": {
                "newFiles": [item.model_dump(by_alias=True) for item in created],
                "modifiedFiles": [item.model_dump(by_alias=True) for item in modified],
                "dependencyUpdates": [item.model_dump(by_alias=True) for item in dependencies],
                "configurationChanges": [item.model_dump(by_alias=True) for item in configuration],
                "integrationSteps": list(plan.integration_steps),
                "summary": analysis.reasoning or DEFAULT_SUMMARY,
            },
        }

    # -------------------------------------------------------------------
    # Planning
    # -------------------------------------------------------------------
    async def analyze(
        self,
        question: str,
        summary: str,
        context: RepositoryContext,
        rules: LanguageRules,
    ) -> Optional[FeatureAnalysis]:
        """Ask for a cross-file plan; None when the reply cannot be parsed."""
        prompt = build_plan_prompt(question, summary, context, rules)
        logger.info("Planning orchestrated implementation for a %s project", context.primary_language)
        raw = await self.client.complete(prompt, temperature=self.temperature, max_tokens=self.max_tokens)

        parsed = parse_response(raw, FEATURE_PLAN_SCHEMA, allow_extraction=False)
        if not parsed.ok:
            logger.warning("Feature plan could not be parsed")
            return None

        data = parsed.data
        try:
            analysis = FeatureAnalysis(
                needs_new_files=data["needsNewFiles"],
                reasoning=data["reasoning"],
                plan=coerce_plan(data.get("orchestratedPlan")),
                summary=data["summary"],
                estimated_files=data["estimatedFiles"],
            )
        except ValidationError as e:
            logger.warning("Feature plan failed validation: %s", e)
            return None

        if analysis.plan is not None:
            logger.info(
                "Plan (%s): needsNewFiles=%s, %d step(s)",
                parsed.strategy, analysis.needs_new_files, analysis.plan.total_steps,
            )
        return analysis

    # -------------------------------------------------------------------
    # New files
    # -------------------------------------------------------------------
    async def generate_new_file(self, spec: NewFileSpec, context: RepositoryContext, question: str) -> CreatedFile:
        """Generate the full body of one planned file."""
        prompt = build_new_file_prompt(spec, context, question)
        raw = await self.client.complete(prompt, temperature=self.temperature, max_tokens=self.max_tokens)
        parsed = parse_response(raw, FILE_GENERATION_SCHEMA)
        data = parsed.data

        dependencies = list(spec.dependencies)
        for name in data["dependencies"]:
            if name not in dependencies:
                dependencies.append(name)

        logger.info("Generated %s (%d chars, %s)", spec.path, len(data["code"]), parsed.strategy)
        return CreatedFile(
            file_name=spec.path,
            content=data["code"],
            explanation=data["explanation"],
            file_type=spec.type,
            dependencies=dependencies,
        )

    # -------------------------------------------------------------------
    # Modifications
    # -------------------------------------------------------------------
    async def fetch_original(self, path: str, project_id: str) -> str:
        """Current content of ``path`` or the visible placeholder."""
        project = self.store.get_project(project_id) if project_id else None
        if project is None:
            logger.warning("Project %s not found, modifying %s without its content", project_id, path)
            return ORIGINAL_CONTENT_UNAVAILABLE
        try:
            content = await self.github.get_file_content(
                project.github_owner, project.github_repo, path, project.github_access_token,
            )
        except SourceHostError as e:
            logger.warning("Could not fetch %s: %s", path, e)
            return ORIGINAL_CONTENT_UNAVAILABLE
        if content is None:
            return ORIGINAL_CONTENT_UNAVAILABLE
        return content

    async def generate_modification(
        self,
        modification: FileModification,
        question: str,
        project_id: str,
    ) -> ModifiedFile:
        """Produce the modified body of an existing file."""
        original = await self.fetch_original(modification.path, project_id)
        prompt = build_modification_prompt(modification, question, original)
        raw = await self.client.complete(prompt, temperature=self.temperature, max_tokens=self.max_tokens)

        parsed = parse_response(raw, MODIFICATION_SCHEMA, allow_extraction=False)
        if not parsed.ok:
            logger.warning("Modification reply for %s could not be parsed, returning original", modification.path)
            return ModifiedFile(
                file_name=modification.path,
                original_code=original,
                fixed_code=original,
                changes=[{
                    "lineNumber": 1,
                    "type": "modify",
                    "oldContent": "",
                    "newContent": "",
                    "reason": modification.reason,
                }],
                explanation=modification.reason,
                summary=f"Need to manually modify {modification.path}",
            )

        data = parsed.data
        return ModifiedFile(
            file_name=modification.path,
            original_code=original,
            fixed_code=data["fixedCode"] or original,
            changes=[change for change in data["changes"] if isinstance(change, dict)],
            explanation=data["explanation"],
            summary=data["summary"] or f"Modified {modification.path}",
        )


def summarize_dependency_update(update: DependencyUpdate) -> DependencyUpdateResult:
    """Transcribe a dependency update; every package reason is kept."""
    reasons = [pkg.reason for pkg in update.packages if pkg.reason]
    return DependencyUpdateResult(
        file_name=update.file,
        dependencies=list(update.packages),
        explanation=reasons[0] if reasons else DEFAULT_DEPENDENCY_EXPLANATION,
        reasons=reasons,
    )
