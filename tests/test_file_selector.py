"""
File Selector Unit Tests
========================
Covers:
    - Budget by issue length (boundaries at 100 and 300 characters)
    - Descending order with stable ties
    - Cut to budget
"""
import pytest

from fix_worker.models.job import FileReference
from fix_worker.services.file_selector import file_budget, prioritize_files, select_files


def _make_file(name: str, similarity: float = 0.5) -> FileReference:
    return FileReference(file_name=name, source_code="x = 1\n", similarity=similarity)


# ---------------------------------------------------------------------------
# 1. Budget
# ---------------------------------------------------------------------------
class TestFileBudget:

    @pytest.mark.parametrize("length,expected", [
        (0, 3),
        (99, 3),
        (100, 4),
        (299, 4),
        (300, 5),
        (2000, 5),
    ])
    def test_budget_boundaries(self, length, expected):
        assert file_budget("a" * length) == expected

    def test_none_issue_is_short(self):
        assert file_budget(None) == 3


# ---------------------------------------------------------------------------
# 2. Selection
# ---------------------------------------------------------------------------
class TestSelectFiles:
    """Scoring, ordering and the budget cut together."""

    def test_seven_files_short_issue_selects_three(self):
        files = [_make_file(f"lib/module{i}.txt", similarity=i / 10) for i in range(7)]
        selected = select_files(files, "a" * 50)
        assert len(selected) == 3
        assert [item.file_name for item in selected] == [
            "lib/module6.txt", "lib/module5.txt", "lib/module4.txt",
        ]

    def test_sorted_descending(self):
        files = [
            _make_file("README.md", 0.9),
            _make_file("src/auth/login.ts", 0.6),
            _make_file("lib/misc.txt", 0.7),
        ]
        ranked = prioritize_files(files, "login broken")
        scores = [item.priority_score for item in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_ties_keep_delivery_order(self):
        files = [_make_file(f"lib/same{i}.txt", 0.5) for i in range(4)]
        ranked = prioritize_files(files, "")
        assert [item.file_name for item in ranked] == [f.file_name for f in files]

    def test_fewer_candidates_than_budget(self):
        files = [_make_file("lib/only.txt")]
        assert len(select_files(files, "short")) == 1

    def test_no_candidates(self):
        assert select_files([], "anything") == []

    def test_selected_keeps_original_reference(self):
        file = _make_file("lib/keep.txt")
        selected = select_files([file], "")
        assert selected[0].file is file
