"""
Fix Agent Unit Tests
====================
Covers:
    - Numbered rendering and truncation disclosure
    - Successful line-level fix (reconstructed from the original text)
    - needsFix without edits
    - Patch application failure discards the whole fix
    - Unparseable and partially extracted replies
    - Model errors never propagate
    - Edits into lines the model was not shown are dropped
    - Markdown fences carried by edits reach the patched file
"""
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from fix_worker.agents.fix_agent import (
    EXTRACTED_EXPLANATION,
    UNPARSEABLE_EXPLANATION,
    FixAgent,
)
from fix_worker.core.errors import ModelClientError
from fix_worker.llm.client import LLMClient
from fix_worker.llm.prompts import build_fix_prompt, render_numbered_code
from fix_worker.models.job import FileReference

SAMPLE_SOURCE = "\n".join(f"line {i}" for i in range(1, 11))


def _make_file(source: str = SAMPLE_SOURCE, name: str = "src/app.ts") -> FileReference:
    return FileReference(file_name=name, source_code=source, summary="App entry", similarity=0.8)


def _make_client(reply=None, error=None) -> MagicMock:
    client = MagicMock(spec=LLMClient)
    if error is not None:
        client.complete = AsyncMock(side_effect=error)
    else:
        client.complete = AsyncMock(return_value=reply)
    return client


def _reply(**fields) -> str:
    data = {"needsFix": True, "explanation": "Fixes the bug", "changes": ["change"], "lineChanges": []}
    data.update(fields)
    return json.dumps(data)


def _run(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# 1. Numbered rendering
# ---------------------------------------------------------------------------
class TestNumberedRendering:

    def test_all_lines_numbered(self):
        numbered = render_numbered_code(SAMPLE_SOURCE, max_chars=10_000)
        assert numbered.text.split("\n")[0] == "1: line 1"
        assert numbered.total_lines == 10
        assert numbered.visible_lines == 10
        assert not numbered.truncated

    def test_truncated_at_line_boundary(self):
        numbered = render_numbered_code(SAMPLE_SOURCE, max_chars=30)
        assert numbered.visible_lines == 3
        assert numbered.truncated
        assert "lines 4-10 are not shown" in numbered.text
        assert "4: line 4" not in numbered.text

    def test_oversized_first_line_still_shown(self):
        numbered = render_numbered_code("x" * 100, max_chars=20)
        assert numbered.visible_lines == 1
        assert len(numbered.text) == 20

    def test_prompt_discloses_truncation(self):
        numbered = render_numbered_code(SAMPLE_SOURCE, max_chars=30)
        prompt = build_fix_prompt(_make_file(), "bug", "", numbered)
        assert "Only lines 1-3 of 10 are shown" in prompt

    def test_prompt_includes_summary_context(self):
        numbered = render_numbered_code(SAMPLE_SOURCE)
        prompt = build_fix_prompt(_make_file(), "why crash", "Crash on load", numbered)
        assert "Issue Context: Crash on load" in prompt
        assert "Original Question: why crash" in prompt


# ---------------------------------------------------------------------------
# 2. Successful fix
# ---------------------------------------------------------------------------
class TestGenerateFix:

    def test_remove_line_five(self):
        reply = _reply(lineChanges=[{"lineNumber": 5, "action": "remove", "originalLine": "line 5"}])
        agent = FixAgent(client=_make_client(reply))
        result = _run(agent.generate_fix(_make_file(), "line 5 is unused"))

        assert result.needs_fix is True
        lines = result.fixed_code.split("\n")
        assert len(lines) == 9
        assert "line 5" not in lines
        assert len(result.line_changes) == 1
        assert result.explanation == "Fixes the bug"

    def test_prompt_sent_with_numbered_code(self):
        client = _make_client(_reply(needsFix=False))
        _run(FixAgent(client=client).generate_fix(_make_file(), "bug"))
        prompt = client.complete.call_args.args[0]
        assert "5: line 5" in prompt
        assert client.complete.call_args.kwargs["temperature"] == pytest.approx(0.1)

    def test_no_fix_needed(self):
        agent = FixAgent(client=_make_client(_reply(needsFix=False)))
        result = _run(agent.generate_fix(_make_file(), "bug"))
        assert result.needs_fix is False
        assert result.fixed_code is None

    def test_needs_fix_without_edits_has_no_code(self):
        agent = FixAgent(client=_make_client(_reply(lineChanges=[])))
        result = _run(agent.generate_fix(_make_file(), "bug"))
        assert result.needs_fix is True
        assert result.fixed_code is None

    def test_source_not_mutated(self):
        file = _make_file()
        reply = _reply(lineChanges=[{"lineNumber": 1, "action": "replace", "newLine": "first"}])
        _run(FixAgent(client=_make_client(reply)).generate_fix(file, "bug"))
        assert file.source_code == SAMPLE_SOURCE

    def test_fence_in_new_line_kept(self):
        readme = "# Title\n\nUsage:\nnpm i\n"
        reply = _reply(lineChanges=[{"lineNumber": 3, "action": "add", "newLine": "```bash"}])
        agent = FixAgent(client=_make_client(reply))
        result = _run(agent.generate_fix(_make_file(readme, name="README.md"), "usage block is not fenced"))

        assert result.needs_fix is True
        assert result.fixed_code.split("\n")[3] == "```bash"
        assert "\nbash\n" not in result.fixed_code

    def test_fenced_reply_with_fence_in_value(self):
        readme = "# Title\n\nUsage:\nnpm i\n"
        reply = _reply(lineChanges=[{"lineNumber": 4, "action": "add", "newLine": "```"}])
        agent = FixAgent(client=_make_client(f"```json\n{reply}\n```"))
        result = _run(agent.generate_fix(_make_file(readme, name="README.md"), "fence not closed"))
        assert result.fixed_code.split("\n")[4] == "```"


# ---------------------------------------------------------------------------
# 3. Fail-safe behaviour
# ---------------------------------------------------------------------------
class TestFailSafe:
    """Anything that cannot be applied mechanically is never emitted."""

    def test_replace_without_new_line_discards_fix(self):
        reply = _reply(lineChanges=[
            {"lineNumber": 2, "action": "remove"},
            {"lineNumber": 4, "action": "replace", "originalLine": "line 4"},
        ])
        result = _run(FixAgent(client=_make_client(reply)).generate_fix(_make_file(), "bug"))
        assert result.needs_fix is False
        assert result.fixed_code is None
        assert result.line_changes == []
        assert "Error applying changes" in result.explanation

    def test_unknown_action_discards_fix(self):
        reply = _reply(lineChanges=[{"lineNumber": 2, "action": "move", "newLine": "x"}])
        result = _run(FixAgent(client=_make_client(reply)).generate_fix(_make_file(), "bug"))
        assert result.needs_fix is False
        assert result.fixed_code is None

    def test_unparseable_reply(self):
        agent = FixAgent(client=_make_client("The file looks fine to me."))
        result = _run(agent.generate_fix(_make_file(), "bug"))
        assert result.needs_fix is False
        assert result.explanation == UNPARSEABLE_EXPLANATION

    def test_extracted_reply_explanation(self):
        agent = FixAgent(client=_make_client('{"needsFix": false "changes": []}'))
        result = _run(agent.generate_fix(_make_file(), "bug"))
        assert result.needs_fix is False
        assert result.explanation == EXTRACTED_EXPLANATION

    def test_truncated_reply_is_repaired(self):
        reply = '{"needsFix": true, "lineChanges": [{"lineNumber": 3, "action": "remove"}], "explanation": "Rem'
        result = _run(FixAgent(client=_make_client(reply)).generate_fix(_make_file(), "bug"))
        assert result.needs_fix is True
        assert "line 3" not in result.fixed_code.split("\n")

    def test_model_error_never_raises(self):
        agent = FixAgent(client=_make_client(error=ModelClientError("All providers failed")))
        result = _run(agent.generate_fix(_make_file(), "bug"))
        assert result.needs_fix is False
        assert result.explanation.startswith("Error generating fix")


# ---------------------------------------------------------------------------
# 4. Truncation window
# ---------------------------------------------------------------------------
class TestTruncationWindow:

    def test_hidden_edits_dropped(self):
        reply = _reply(lineChanges=[
            {"lineNumber": 2, "action": "replace", "newLine": "two"},
            {"lineNumber": 8, "action": "remove"},
        ])
        agent = FixAgent(client=_make_client(reply), max_code_chars=30)
        result = _run(agent.generate_fix(_make_file(), "bug"))
        lines = result.fixed_code.split("\n")
        assert lines[1] == "two"
        assert "line 8" in lines
        assert [edit.line_number for edit in result.line_changes] == [2]

    def test_only_hidden_edits_means_no_fix(self):
        reply = _reply(lineChanges=[{"lineNumber": 9, "action": "remove"}])
        agent = FixAgent(client=_make_client(reply), max_code_chars=30)
        result = _run(agent.generate_fix(_make_file(), "bug"))
        assert result.needs_fix is False
        assert result.fixed_code is None
        assert "not shown" in result.explanation
