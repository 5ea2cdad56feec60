"""
File Selector
=============
Picks which candidate files of a fix job are sent to the model.

Budget by issue length (characters):
    < 100  → 3 files
    < 300  → 4 files
    else   → 5 files

Candidates are scored, stably sorted by descending score (ties keep their
delivery order) and cut to the budget.
"""
import logging
from typing import List, Sequence

from fix_worker.models.job import FileReference, ScoredFile
from fix_worker.services.file_scoring import score_file

logger = logging.getLogger(__name__)

SHORT_ISSUE_CHARS = 100
MEDIUM_ISSUE_CHARS = 300


def file_budget(issue_text: str) -> int:
    length = len(issue_text or "")
    if length < SHORT_ISSUE_CHARS:
        return 3
    if length < MEDIUM_ISSUE_CHARS:
        return 4
    return 5


def prioritize_files(files: Sequence[FileReference], issue_text: str) -> List[ScoredFile]:
    """Score every candidate and sort, highest priority first."""
    scored = [ScoredFile(file=file, priority_score=score_file(file, issue_text)) for file in files]
    # sorted() is stable, so equal scores keep delivery order
    return sorted(scored, key=lambda item: item.priority_score, reverse=True)


def select_files(files: Sequence[FileReference], issue_text: str) -> List[ScoredFile]:
    """
    Return the top ``file_budget(issue_text)`` candidates.

    Parameters
    ----------
    files : sequence of FileReference
        Candidates in delivery order.
    issue_text : str
        The issue description (drives both scoring and the budget).

    Returns
    -------
    list of ScoredFile
        At most ``file_budget(issue_text)`` entries, sorted descending.
    """
    ranked = prioritize_files(files, issue_text)
    budget = file_budget(issue_text)

    logger.info("Prioritized %d candidate files (budget: %d)", len(ranked), budget)
    for index, item in enumerate(ranked):
        marker = "selected" if index < budget else "skipped"
        logger.info("  [%s] %s (score: %.3f)", marker, item.file_name, item.priority_score)

    return ranked[:budget]
