"""
Fix Result Model
=================
Pydantic models tracking the outcome of a per-file fix attempt.

Fields (FixResult):
    needs_fix       — True if the model found the issue in this file
    fixed_code      — full reconstructed file body, None when nothing was applied
    explanation     — human-readable explanation from the model
    changes         — short descriptions of each change
    line_changes    — the LineEdits that were actually applied

Invariants:
    - needs_fix and at least one LineEdit supplied → fixed_code is not None
    - LineEdit application failed → needs_fix False, fixed_code None
      (a patch that could not be mechanically verified is never emitted)

CodeFix is the record stored in the job result for every file that needed a fix.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

LineAction = Literal["remove", "replace", "add"]


class LineEdit(BaseModel):
    """One atomic edit against a 1-based line of an immutable snapshot."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    line_number: int = Field(alias="lineNumber")
    action: LineAction
    original_line: Optional[str] = Field(default=None, alias="originalLine")
    new_line: Optional[str] = Field(default=None, alias="newLine")


class FixResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    needs_fix: bool = Field(default=False, alias="needsFix")
    fixed_code: Optional[str] = Field(default=None, alias="fixedCode")
    explanation: str = ""
    changes: List[str] = Field(default_factory=list)
    line_changes: List[LineEdit] = Field(default_factory=list, alias="lineChanges")


class CodeFix(BaseModel):
    """Per-file entry of a fix job's result payload."""
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName")
    original_code: str = Field(alias="originalCode")
    fixed_code: Optional[str] = Field(default=None, alias="fixedCode")
    summary: Optional[str] = ""
    explanation: str = ""
    changes: List[str] = Field(default_factory=list)
    line_changes: List[LineEdit] = Field(default_factory=list, alias="lineChanges")
