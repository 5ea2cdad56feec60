"""
LLM Prompts
===========
Centralised store for every prompt the worker sends.

Prompt Families:
    - Fix prompt          — line-numbered file + issue, asks for sparse LineEdits
    - Feature plan prompt — repository context + language conventions, asks for
                            a cross-file OrchestrationPlan
    - New-file prompt     — language-specific generation instructions
    - Modification prompt — current file content + rationale, asks for the full
                            modified body

Minimal Diff Enforcement (fix prompt):
    - Model answers with LineEdits against the numbered lines it was shown
    - "Make ONLY the minimal line changes needed" is a hard rule
    - No markdown, no prose outside the JSON object

Truncation Disclosure:
    Files whose numbered rendering exceeds the budget are cut at a line
    boundary. The marker names the hidden line range so the model knows those
    lines exist but must not be edited; edits into the hidden range are
    discarded before patching.
"""
import logging
from dataclasses import dataclass

from fix_worker.core.config import MAX_CODE_CHARS
from fix_worker.llm.language_rules import LanguageRules
from fix_worker.models.job import FileReference
from fix_worker.models.plan import FileModification, NewFileSpec, RepositoryContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Numbered Rendering
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class NumberedCode:
    """Line-numbered rendering of a file, possibly truncated."""
    text: str
    total_lines: int
    visible_lines: int

    @property
    def truncated(self) -> bool:
        return self.visible_lines < self.total_lines


def truncation_marker(visible_lines: int, total_lines: int) -> str:
    return (
        f"// ... (code truncated for analysis: lines {visible_lines + 1}-{total_lines} "
        f"are not shown; do not reference them)"
    )


def render_numbered_code(source_code: str, max_chars: int = MAX_CODE_CHARS) -> NumberedCode:
    """
    Render ``source_code`` as ``"N: line"`` rows within ``max_chars``.

    Whole lines only. If not even the first line fits, it is shown cut at the
    budget so the model still sees something of the file.
    """
    lines = source_code.split("\n")
    rendered: list[str] = []
    used = 0
    for number, line in enumerate(lines, start=1):
        row = f"{number}: {line}"
        cost = len(row) + (1 if rendered else 0)
        if used + cost > max_chars:
            break
        rendered.append(row)
        used += cost

    if not rendered and lines:
        rendered.append(f"1: {lines[0]}"[:max_chars])

    visible = len(rendered)
    text = "\n".join(rendered)
    if visible < len(lines):
        text += "\n" + truncation_marker(visible, len(lines))
        logger.info("Truncated numbered code to %d of %d lines", visible, len(lines))
    return NumberedCode(text=text, total_lines=len(lines), visible_lines=visible)


# ---------------------------------------------------------------------------
# Fix Prompt
# ---------------------------------------------------------------------------
FIX_RESPONSE_FORMAT = """{
  "needsFix": boolean,
  "lineChanges": [
    {
      "lineNumber": number,
      "action": "remove" | "replace" | "add",
      "originalLine": "original line content",
      "newLine": "new line content (if action is replace or add)"
    }
  ],
  "explanation": "specific explanation of the exact issue and minimal fix applied",
  "changes": ["array of specific changes made"]
}"""

FIX_RULES = (
    "IMPORTANT RULES:\n"
    "- Make ONLY the minimal line changes needed to fix the SPECIFIC issue mentioned\n"
    "- DO NOT make any other improvements, optimizations, or style changes\n"
    '- If the issue is "X is defined but never used" - ONLY remove the unused import/variable line\n'
    "- If the issue is a type error - ONLY fix the specific type on that line\n"
    "- If the issue is a syntax error - ONLY fix the specific syntax on that line\n"
    "- DO NOT refactor, reorganize, or improve code beyond the specific issue\n"
    "- Use line numbers to specify exactly which lines to change\n"
    "- For remove action: just specify lineNumber and originalLine\n"
    "- For replace action: specify lineNumber, originalLine, and newLine\n"
    "- For add action: specify lineNumber (to add after), and newLine\n"
    "- Never reference line numbers that were not shown to you\n"
    "- If no fix is needed for the specific issue, set needsFix to false\n"
    "- The response must be parseable JSON - no markdown blocks or extra text"
)


def build_issue_context(question: str, summary: str) -> str:
    if summary:
        return f"Issue Context: {summary}\n\nOriginal Question: {question}"
    return question


def build_fix_prompt(
    file: FileReference,
    question: str,
    summary: str,
    numbered: NumberedCode,
) -> str:
    """
    Build the minimal-edit fix prompt for one file.

    Parameters
    ----------
    file : FileReference
        The file under analysis (name and summary are shown).
    question : str
        The issue description.
    summary : str
        The issue summary; may be empty.
    numbered : NumberedCode
        Output of render_numbered_code for the file.

    Returns
    -------
    str
        Formatted prompt string.
    """
    parts: list[str] = [
        "You are an expert senior software engineer analyzing code to fix issues.",
        f"Context: {build_issue_context(question, summary)}",
        f"File: {file.file_name}\nSummary: {file.summary or ''}",
        f"Code with line numbers:\n```\n{numbered.text}\n```",
    ]
    if numbered.truncated:
        parts.append(
            f"NOTE: Only lines 1-{numbered.visible_lines} of {numbered.total_lines} are shown. "
            "Edits to lines that were not shown will be ignored."
        )
    parts.append(
        "Analyze this code and determine if it needs to be fixed based on the SPECIFIC "
        "issue mentioned in the context. Focus ONLY on the exact problem described.\n\n"
        "Instead of rewriting entire file, identify the specific lines that need changes."
    )
    parts.append(
        "CRITICAL: You must respond with ONLY a valid JSON object. No markdown formatting, "
        "no explanations, no text outside the JSON object."
    )
    parts.append(f"Respond with valid JSON in this exact format:\n{FIX_RESPONSE_FORMAT}")
    parts.append(FIX_RULES)
    return "\n\n".join(parts)


# ---------------------------------------------------------------------------
# Feature Plan Prompt
# ---------------------------------------------------------------------------
def build_plan_prompt(
    question: str,
    summary: str,
    context: RepositoryContext,
    rules: LanguageRules,
) -> str:
    """Ask for a complete, cross-file implementation plan."""
    summary_line = f'Summary: "{summary}"\n' if summary else ""
    frameworks = ", ".join(context.frameworks) or "Unknown"
    directories = ", ".join(context.directories) or "Unknown"

    return f"""Plan a COMPLETE, ORCHESTRATED implementation for this feature request:

Request: "{question}"
{summary_line}
Project Details:
- Language: {context.primary_language}
- Dependency File: {rules.dependency_file}
- Main Entry: {rules.main_file}
- Import Pattern: {rules.import_pattern}

Repository Context:
- Frameworks: {frameworks}
- File Count: {context.file_count}
- Existing Directories: {directories}

You must plan ALL COORDINATED CHANGES needed for a working feature:

Respond with a JSON object:
{{
  "needsNewFiles": boolean,
  "reasoning": "explanation of the orchestrated approach",
  "orchestratedPlan": {{
    "newFiles": [
      {{
        "path": "{rules.example_path}",
        "type": "{rules.file_types}",
        "description": "what this file will do",
        "priority": "high|medium|low",
        "dependencies": ["list of packages this file needs"]
      }}
    ],
    "modifiedFiles": [
      {{
        "path": "{rules.main_file}",
        "reason": "why this file needs modification",
        "changes": ["import new component", "register service", "add route"]
      }}
    ],
    "dependencyUpdates": [
      {{
        "file": "{rules.dependency_file}",
        "packages": [
          {{"name": "package-name", "version": "^1.0.0", "reason": "needed for X feature"}}
        ]
      }}
    ],
    "configurationChanges": [
      {{
        "file": "config file path",
        "changes": ["add environment variables", "update settings"]
      }}
    ],
    "integrationSteps": [
      "Step 1: Import in main file",
      "Step 2: Export from index",
      "Step 3: Update configuration"
    ]
  }},
  "summary": "Complete feature implementation plan",
  "estimatedFiles": "total number of files that will be created/modified"
}}

CRITICAL: This must be a COMPLETE working feature, not isolated files!
Think about:
1. What new files need to be created?
2. What existing files need imports/exports updated?
3. What dependencies need to be added ({rules.package_manager}, format: {rules.dependency_format})?
4. What configuration files need updates (e.g. {", ".join(rules.config_files)})?
5. How does this integrate with the existing codebase (e.g. {", ".join(rules.integration_files)})?

If the request only needs changes to existing code and no new files, set
needsNewFiles to false and leave every list in orchestratedPlan empty.
"""


# ---------------------------------------------------------------------------
# New-File Prompt
# ---------------------------------------------------------------------------
_LANGUAGE_REQUIREMENTS = {
    "python": (
        "Python",
        [
            "Generate COMPLETE, working Python code",
            "Follow PEP 8 style guidelines",
            "Include proper docstrings",
            "Add type hints if appropriate",
            "Include proper imports",
            "Add error handling with try/except",
            "Include proper class/function structure",
        ],
        "Classes: PascalCase; functions: snake_case; constants: UPPER_CASE; "
        "add __init__.py imports if needed",
    ),
    "go": (
        "Go",
        [
            "Generate COMPLETE, working Go code",
            "Follow Go conventions (gofmt style)",
            "Include proper package declaration",
            "Add proper imports",
            "Include error handling",
            "Add godoc comments",
            "Include proper struct/interface definitions",
        ],
        "Package: lowercase; functions: CamelCase for public, camelCase for private",
    ),
    "rust": (
        "Rust",
        [
            "Generate COMPLETE, working Rust code",
            "Follow Rust conventions (rustfmt style)",
            "Include proper use statements",
            "Add proper error handling with Result<T, E>",
            "Include doc comments with ///",
            "Handle ownership and borrowing correctly",
        ],
        "Types: PascalCase; functions and variables: snake_case; constants: UPPER_CASE",
    ),
    "cpp": (
        "C++",
        [
            "Generate COMPLETE, working C++ code",
            "Include proper header guards or #pragma once",
            "Add proper #include statements",
            "Include proper namespace declarations",
            "Add error handling with exceptions",
            "Use modern C++ features appropriately",
        ],
        "Classes: PascalCase; functions: camelCase or snake_case; constants: UPPER_CASE",
    ),
    "java": (
        "Java",
        [
            "Generate COMPLETE, working Java code",
            "Include proper package declaration",
            "Add proper imports",
            "Add error handling with try/catch",
            "Include JavaDoc comments",
        ],
        "Classes: PascalCase; methods and variables: camelCase; constants: UPPER_CASE",
    ),
}

NEW_FILE_RESPONSE_FORMAT = """Respond with JSON:
{
  "code": "complete file content here",
  "explanation": "what this file does and how it works",
  "dependencies": ["package names if any new deps needed"]
}"""


def build_new_file_prompt(spec: NewFileSpec, context: RepositoryContext, question: str) -> str:
    """Language-specific generation prompt for one planned file."""
    header = (
        f"File: {spec.path}\n"
        f"Type: {spec.type}\n"
        f"Description: {spec.description}\n"
        f'Original Request: "{question}"'
    )
    language = context.primary_language.lower()

    if language in _LANGUAGE_REQUIREMENTS:
        label, requirements, naming = _LANGUAGE_REQUIREMENTS[language]
        project = ""
    else:
        use_typescript = context.patterns.get("useTypeScript", language == "typescript")
        label = "TypeScript" if use_typescript else "JavaScript"
        requirements = [
            f"Generate COMPLETE, working {label} code",
            "Follow the project's existing patterns",
            "Include proper imports and exports",
            "Add TypeScript types if applicable",
            "Include basic error handling",
            "Add helpful comments",
        ]
        naming = ""
        project = (
            "Project Context:\n"
            f"- Framework: {', '.join(context.frameworks)}\n"
            f"- Uses TypeScript: {str(bool(use_typescript)).lower()}"
        )

    numbered = "\n".join(f"{i}. {item}" for i, item in enumerate(requirements, start=1))
    parts = [f"Generate a complete {label} {spec.type} for this request:", header]
    if project:
        parts.append(project)
    parts.append(f"Requirements:\n{numbered}")
    if naming:
        parts.append(f"Naming: {naming}")
    parts.append(NEW_FILE_RESPONSE_FORMAT)
    return "\n\n".join(parts)


# ---------------------------------------------------------------------------
# Modification Prompt
# ---------------------------------------------------------------------------
MODIFICATION_RESPONSE_FORMAT = """{
  "fixedCode": "// Complete modified file content here",
  "changes": [
    {
      "lineNumber": 1,
      "type": "add",
      "newContent": "import { NewService } from './services/NewService';",
      "reason": "Import the new service"
    },
    {
      "lineNumber": 45,
      "type": "modify",
      "oldContent": "const routes = [existingRoute];",
      "newContent": "const routes = [existingRoute, newRoute];",
      "reason": "Add new route to routes array"
    }
  ],
  "explanation": "Brief explanation of why these changes are needed",
  "summary": "Short summary of what was modified"
}"""


def build_modification_prompt(
    modification: FileModification,
    question: str,
    original_code: str,
) -> str:
    """Ask for the complete modified body of an existing file."""
    instructions = (
        "\n".join(f"- {change}" for change in modification.changes)
        or "Generate appropriate modifications based on the reason."
    )
    parts = [
        "You need to modify an existing file for orchestrated feature integration.",
        f"File to modify: {modification.path}\n"
        f"Reason: {modification.reason}\n"
        f'Original request: "{question}"',
        f"Specific instructions:\n{instructions}",
        f"CURRENT FILE CONTENT:\n```\n{original_code}\n```",
        "Generate the complete MODIFIED file content with the necessary changes for the "
        "feature integration. The modifications should include things like:\n"
        "- Adding import statements for new components/services\n"
        "- Registering new routes or middleware\n"
        "- Adding exports for new modules\n"
        "- Integrating new functionality into existing code",
        f"Provide your response as JSON with this structure:\n{MODIFICATION_RESPONSE_FORMAT}",
        "IMPORTANT: Return the COMPLETE modified file content in fixedCode, not just the changes.",
    ]
    return "\n\n".join(parts)
