"""
Orchestration Plan Models
=========================
Pydantic models for feature-implementation jobs.

The plan is produced once per job by the planner and never mutated. Its
sub-lists determine the total step count used for progress weighting:

    new_files + modified_files + dependency_updates
    + configuration_changes + integration_steps

Integration steps are advisory only: they are counted and echoed in the
result, never executed.

The *Result models are the records written into the job's result payload.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _text_list(value) -> List[str]:
    """Coerce a model-supplied list to a list of non-empty strings."""
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and str(item).strip()]


class NewFileSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    path: str = ""
    type: str = "component"
    description: str = ""
    priority: str = "medium"
    dependencies: List[str] = Field(default_factory=list)

    @field_validator("dependencies", mode="before")
    @classmethod
    def coerce_dependencies(cls, value):
        return _text_list(value)


class FileModification(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    path: str
    reason: str = ""
    changes: List[str] = Field(default_factory=list)

    @field_validator("changes", mode="before")
    @classmethod
    def coerce_changes(cls, value):
        return _text_list(value)


class DependencyPackage(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    version: str = ""
    reason: str = ""


class DependencyUpdate(BaseModel):
    model_config = ConfigDict(frozen=True)

    file: str
    packages: List[DependencyPackage] = Field(default_factory=list)


class ConfigurationChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    file: str
    changes: List[str] = Field(default_factory=list)

    @field_validator("changes", mode="before")
    @classmethod
    def coerce_changes(cls, value):
        return _text_list(value)


class OrchestrationPlan(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    new_files: List[NewFileSpec] = Field(default_factory=list, alias="newFiles")
    modified_files: List[FileModification] = Field(default_factory=list, alias="modifiedFiles")
    dependency_updates: List[DependencyUpdate] = Field(default_factory=list, alias="dependencyUpdates")
    configuration_changes: List[ConfigurationChange] = Field(
        default_factory=list, alias="configurationChanges"
    )
    integration_steps: List[str] = Field(default_factory=list, alias="integrationSteps")

    @field_validator("integration_steps", mode="before")
    @classmethod
    def coerce_steps(cls, value):
        return _text_list(value)

    @property
    def total_steps(self) -> int:
        return (
            len(self.new_files)
            + len(self.modified_files)
            + len(self.dependency_updates)
            + len(self.configuration_changes)
            + len(self.integration_steps)
        )

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to execute (integration notes alone don't count)."""
        return not (
            self.new_files
            or self.modified_files
            or self.dependency_updates
            or self.configuration_changes
        )


class FeatureAnalysis(BaseModel):
    """The planner's envelope around the plan."""
    model_config = ConfigDict(populate_by_name=True)

    needs_new_files: bool = Field(default=False, alias="needsNewFiles")
    reasoning: str = ""
    plan: Optional[OrchestrationPlan] = Field(default=None, alias="orchestratedPlan")
    summary: str = ""
    estimated_files: str = Field(default="0", alias="estimatedFiles")


class RepositoryContext(BaseModel):
    """Lightweight view of a repository used to steer feature planning."""
    model_config = ConfigDict(populate_by_name=True)

    files: List[Dict[str, str]] = Field(default_factory=list)
    directories: List[str] = Field(default_factory=list)
    frameworks: List[str] = Field(default_factory=lambda: ["javascript"])
    primary_language: str = Field(default="javascript", alias="primaryLanguage")
    patterns: Dict[str, bool] = Field(default_factory=dict)
    file_count: int = Field(default=0, alias="fileCount")
    common_paths: Dict[str, str] = Field(default_factory=dict, alias="commonPaths")


# ---------------------------------------------------------------------------
# Result records
# ---------------------------------------------------------------------------
class CreatedFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName")
    content: str = ""
    explanation: str = ""
    file_type: str = Field(default="", alias="fileType")
    dependencies: List[str] = Field(default_factory=list)


class ModifiedFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName")
    original_code: str = Field(default="", alias="originalCode")
    fixed_code: str = Field(default="", alias="fixedCode")
    changes: List[dict] = Field(default_factory=list)
    explanation: str = ""
    summary: str = ""
    type: str = "MODIFY"


class DependencyUpdateResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName")
    dependencies: List[DependencyPackage] = Field(default_factory=list)
    explanation: str = ""
    reasons: List[str] = Field(default_factory=list)


class ConfigurationChangeResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName")
    changes: List[str] = Field(default_factory=list)
    explanation: str = ""
