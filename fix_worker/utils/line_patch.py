"""
Line Patch
==========
Applies sparse, 1-based LineEdits to an immutable text snapshot.

Line numbers always refer to the ORIGINAL text. Edits are therefore applied
bottom-up (descending line number) so that an edit never shifts the index of
an edit that has yet to run.

Ordering within one line number is fixed by ACTION_RANK and then by content,
so the result does not depend on the order the model listed the edits in:

    add     — runs first, inserts after the original line
    replace — then rewrites the original line
    remove  — runs last

Out-of-range edits are skipped (the model often refers to lines that the
truncated prompt never showed it). Anything that cannot be applied
mechanically raises PatchApplicationError and the caller discards the fix.
"""
import logging
from typing import Iterable, List, Optional

from fix_worker.core.errors import PatchApplicationError
from fix_worker.models.fix_result import LineEdit

logger = logging.getLogger(__name__)

ACTION_RANK = {"add": 0, "replace": 1, "remove": 2}


def _sort_key(edit: LineEdit):
    return (
        -edit.line_number,
        ACTION_RANK.get(edit.action, len(ACTION_RANK)),
        edit.new_line or "",
        edit.original_line or "",
    )


def order_edits(edits: Iterable[LineEdit]) -> List[LineEdit]:
    """Return edits in application order (descending line, then action rank)."""
    return sorted(edits, key=_sort_key)


def apply_line_edits(original_text: str, edits: Iterable[LineEdit]) -> str:
    """
    Apply LineEdits to ``original_text`` and return the new body.

    Parameters
    ----------
    original_text : str
        File contents; split on ``\\n`` only (``\\r`` stays part of the line).
    edits : iterable of LineEdit
        Edits against 1-based line numbers of ``original_text``.

    Returns
    -------
    str
        The patched text, rejoined with ``\\n``. An empty edit list returns
        the input unchanged.

    Raises
    ------
    PatchApplicationError
        If a replace/add carries no new content or an edit is otherwise
        unusable.
    """
    lines = original_text.split("\n")

    for edit in order_edits(edits):
        index = edit.line_number - 1

        if edit.action == "remove":
            if 0 <= index < len(lines):
                del lines[index]
            else:
                logger.debug("Skipping out-of-range remove at line %d", edit.line_number)

        elif edit.action == "replace":
            new_line = _require_content(edit)
            if 0 <= index < len(lines):
                if edit.original_line is not None and lines[index].strip() != edit.original_line.strip():
                    logger.debug(
                        "Line %d differs from the reported original, replacing anyway",
                        edit.line_number,
                    )
                lines[index] = new_line
            else:
                logger.debug("Skipping out-of-range replace at line %d", edit.line_number)

        elif edit.action == "add":
            new_line = _require_content(edit)
            # Inserting after line N puts the new line at index N
            if 0 <= index <= len(lines):
                lines.insert(index + 1, new_line)
            else:
                logger.debug("Skipping out-of-range add at line %d", edit.line_number)

        else:
            raise PatchApplicationError(f"Unknown line action: {edit.action!r}")

    return "\n".join(lines)


def _require_content(edit: LineEdit) -> str:
    new_line: Optional[str] = edit.new_line
    if new_line is None:
        raise PatchApplicationError(
            f"{edit.action} at line {edit.line_number} has no new content"
        )
    return new_line
