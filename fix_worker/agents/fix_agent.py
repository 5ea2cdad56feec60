"""
Fix Agent
=========
Generates a minimal, line-level fix for one file using the LLM client.

Pipeline (per file):
    1. Render the file with line numbers, within the character budget
    2. Build the minimal-edit prompt (issue context + numbered code)
    3. Call the model (temperature 0.1, large output budget)
    4. Parse the reply: strict → repaired → field-extracted → unparseable
    5. Convert lineChanges to LineEdits and apply them to the ORIGINAL text
    6. Fail safe: if the edits cannot be applied, the whole fix is discarded

Core Philosophy:
    - The model never rewrites the file; it names lines and the worker
      reconstructs the body mechanically
    - A patch that could not be applied is never emitted
    - Edits into lines the model was not shown are dropped

The FixAgent never raises: model failures and unexpected errors become a
FixResult with needs_fix False and an explanation.
"""
import logging
from typing import List, Optional, Tuple

from pydantic import ValidationError

from fix_worker.core.config import MAX_CODE_CHARS, MODEL_MAX_TOKENS, MODEL_TEMPERATURE
from fix_worker.core.errors import PatchApplicationError
from fix_worker.llm.client import LLMClient
from fix_worker.llm.prompts import NumberedCode, build_fix_prompt, render_numbered_code
from fix_worker.models.fix_result import FixResult, LineEdit
from fix_worker.models.job import FileReference
from fix_worker.parser.response_parser import FIX_RESPONSE_SCHEMA, parse_response
from fix_worker.utils.line_patch import apply_line_edits

logger = logging.getLogger(__name__)

UNPARSEABLE_EXPLANATION = "Could not parse AI response - file may not need fixes"
EXTRACTED_EXPLANATION = "Partial data extraction used due to malformed JSON"


# ---------------------------------------------------------------------------
# Fix Agent
# ---------------------------------------------------------------------------
class FixAgent:
    """
    Proposes and applies line-level fixes for single files.

    Parameters
    ----------
    client : LLMClient
        Model client (injected; any object with an async ``complete``).
    max_code_chars : int
        Budget for the numbered rendering of one file.
    temperature : float
        Sampling temperature for fix prompts.
    max_tokens : int
        Output budget for fix replies.
    """

    def __init__(
        self,
        client: Optional[LLMClient] = None,
        max_code_chars: int = MAX_CODE_CHARS,
        temperature: float = MODEL_TEMPERATURE,
        max_tokens: int = MODEL_MAX_TOKENS,
    ) -> None:
        self.client = client or LLMClient()
        self.max_code_chars = max_code_chars
        self.temperature = temperature
        self.max_tokens = max_tokens

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    async def generate_fix(self, file: FileReference, question: str, summary: str = "") -> FixResult:
        """
        Ask the model for a fix to ``file`` and apply it.

        Parameters
        ----------
        file : FileReference
            The candidate file (its source is never mutated).
        question : str
            The issue description.
        summary : str
            The issue summary; may be empty.

        Returns
        -------
        FixResult
            ``fixed_code`` is set only when at least one edit was applied.
        """
        try:
            numbered = render_numbered_code(file.source_code, self.max_code_chars)
            prompt = build_fix_prompt(file, question, summary, numbered)

            logger.info("Generating fix for %s (%d lines)", file.file_name, numbered.total_lines)
            raw = await self.client.complete(prompt, temperature=self.temperature, max_tokens=self.max_tokens)
            logger.info("Model reply for %s: %d chars", file.file_name, len(raw or ""))

            parsed = parse_response(raw, FIX_RESPONSE_SCHEMA)
            logger.info("Parsed reply for %s via %s strategy", file.file_name, parsed.strategy)

            if not parsed.ok:
                return FixResult(needs_fix=False, explanation=UNPARSEABLE_EXPLANATION)

            data = parsed.data
            explanation = data["explanation"]
            if parsed.strategy == "extracted" and explanation == FIX_RESPONSE_SCHEMA.strings["explanation"]:
                explanation = EXTRACTED_EXPLANATION

            result = FixResult(
                needs_fix=data["needsFix"],
                explanation=explanation,
                changes=data["changes"],
            )
            raw_edits = data["lineChanges"]
            if result.needs_fix and raw_edits:
                result = self._apply(file, numbered, raw_edits, result)
            return result

        except Exception as e:
            logger.error("Failed to generate fix for %s: %s", file.file_name, e, exc_info=True)
            return FixResult(needs_fix=False, explanation=f"Error generating fix: {e}")

    # -------------------------------------------------------------------
    # Patch application
    # -------------------------------------------------------------------
    def _apply(
        self,
        file: FileReference,
        numbered: NumberedCode,
        raw_edits: list,
        result: FixResult,
    ) -> FixResult:
        """Convert, window-filter and apply edits; discard the fix on any failure."""
        try:
            edits = [LineEdit.model_validate(item) for item in raw_edits]
            edits, hidden = _visible_edits(edits, numbered)
            if hidden:
                logger.warning(
                    "Dropped %d edit(s) for %s referencing lines beyond the visible %d",
                    hidden, file.file_name, numbered.visible_lines,
                )
            if not edits:
                return result.model_copy(update={
                    "needs_fix": False,
                    "fixed_code": None,
                    "explanation": f"{result.explanation} (All edits referenced lines that were not shown)",
                })

            for edit in edits:
                logger.debug("Edit %s at line %d for %s", edit.action, edit.line_number, file.file_name)
            fixed_code = apply_line_edits(file.source_code, edits)

        except (ValidationError, PatchApplicationError, TypeError, ValueError) as e:
            logger.error("Failed to apply line changes for %s: %s", file.file_name, e)
            return result.model_copy(update={
                "needs_fix": False,
                "fixed_code": None,
                "line_changes": [],
                "explanation": f"{result.explanation} (Error applying changes: {e})",
            })

        logger.info("Applied %d line change(s) to %s", len(edits), file.file_name)
        return result.model_copy(update={"fixed_code": fixed_code, "line_changes": edits})


def _visible_edits(edits: List[LineEdit], numbered: NumberedCode) -> Tuple[List[LineEdit], int]:
    """Keep edits whose line the model could see; returns (kept, dropped_count)."""
    if not numbered.truncated:
        return edits, 0
    kept = [edit for edit in edits if edit.line_number <= numbered.visible_lines]
    return kept, len(edits) - len(kept)
