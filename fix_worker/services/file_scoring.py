"""
File Scoring
============
Ranks candidate files by how likely they are to contain the reported issue.

score = similarity
      + Σ path rules          (what kind of file is this?)
      + Σ issue-context rules (does the issue talk about this file?)
clamped at 0.

Rules are data: each one is a named predicate plus an additive adjustment,
evaluated in table order. Because every adjustment is additive, the order
only matters for the final clamp, never for the total.

Path rules see the lowercased path. Context rules see the lowercased path,
the lowercased issue text and the lowercased file summary.

Deterministic and side-effect free. A file without a name scores its
similarity alone.
"""
import logging
import re
from dataclasses import dataclass
from typing import Callable, List

from fix_worker.models.job import FileReference

logger = logging.getLogger(__name__)

PathPredicate = Callable[[str], bool]
ContextPredicate = Callable[[str, str], bool]


# ---------------------------------------------------------------------------
# Predicate Builders
# ---------------------------------------------------------------------------
def contains(*needles: str) -> PathPredicate:
    return lambda path: any(needle in path for needle in needles)


def ends_with(*suffixes: str) -> PathPredicate:
    return lambda path: path.endswith(suffixes)


def either(*predicates: PathPredicate) -> PathPredicate:
    return lambda path: any(predicate(path) for predicate in predicates)


def both(*predicates: PathPredicate) -> PathPredicate:
    return lambda path: all(predicate(path) for predicate in predicates)


def lacks(needle: str) -> PathPredicate:
    return lambda path: needle not in path


def issue_mentions(words: tuple, paths: PathPredicate) -> ContextPredicate:
    """Issue text contains any of ``words`` AND the path satisfies ``paths``."""
    return lambda path, issue: any(word in issue for word in words) and paths(path)


# ---------------------------------------------------------------------------
# Rule Tables
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PathRule:
    name: str
    predicate: PathPredicate
    adjustment: float


@dataclass(frozen=True)
class ContextRule:
    name: str
    predicate: ContextPredicate
    adjustment: float


PATH_RULES: List[PathRule] = [
    # Generated / build output
    PathRule("db_generated", contains(
        "migrations/", "_migrations/", "schema.rb", "schema.sql", "_gen.go",
        "_generated.go", "models_gen.py", "_pb2.py", "prisma/migrations/",
        "sequelize/migrations/", "knex/migrations/", "typeorm/migration/",
        "alembic/versions/", "flyway/sql/",
    ), -0.4),
    PathRule("language_generated", either(
        contains(
            "_generated/", "target/debug/", "target/release/", "__pycache__/",
            "node_modules/", ".next/", "dist/", "build/", "cmake-build-",
        ),
        ends_with(
            ".d.ts", "_pb.py", "_pb2.py", ".pb.go", "_gen.go", "_generated.rs",
            ".rs.in", ".pyc", ".o", ".so",
        ),
        both(contains("vendor/"), contains(".go")),
    ), -0.3),

    # Documentation
    PathRule("documentation", either(
        ends_with(
            "readme.md", "readme.txt", "changelog.md", "changelog.txt", "license",
            "license.md", "contributing.md", "authors.md", "todo.md", "notes.md",
        ),
        both(ends_with(".md"), contains("docs/", "documentation/")),
    ), -0.3),

    # Ecosystem manifests
    PathRule("js_config", ends_with(
        "package.json", "package-lock.json", "yarn.lock", "pnpm-lock.yaml",
        "tsconfig.json", ".eslintrc.js", "webpack.config.js", "vite.config.js",
        "next.config.js", "tailwind.config.js",
    ), -0.2),
    PathRule("python_config", ends_with(
        "requirements.txt", "pyproject.toml", "setup.py", "setup.cfg", "pipfile",
        "pipfile.lock", "poetry.lock", "conda.yaml",
    ), -0.2),
    PathRule("go_config", ends_with("go.mod", "go.sum", "go.work", "go.work.sum"), -0.2),
    PathRule("rust_config", ends_with("cargo.toml", "cargo.lock"), -0.2),
    PathRule("cpp_config", ends_with(
        "cmakelists.txt", "makefile", ".cmake", "conanfile.txt", "vcpkg.json",
    ), -0.2),

    # Tests
    PathRule("test_file", either(
        contains(
            ".test.", ".spec.", "__tests__/", "/tests/", "/test/", "_test.go",
            "_test.py", "test_", "spec/", "testing/",
        ),
        ends_with("_test.rs", "_unittest.cpp"),
    ), -0.1),

    # Entrypoints
    PathRule("js_entrypoint", contains(
        "page.tsx", "index.tsx", "layout.tsx", "app.tsx", "main.js", "index.js",
        "server.js", "app.js",
    ), 0.2),
    PathRule("python_entrypoint", either(
        ends_with("main.py", "__init__.py", "app.py", "server.py", "manage.py"),
        contains("wsgi.py", "asgi.py"),
    ), 0.2),
    PathRule("go_entrypoint", ends_with("main.go", "server.go", "app.go", "cmd.go"), 0.2),
    PathRule("rust_entrypoint", ends_with("main.rs", "lib.rs", "mod.rs"), 0.2),
    PathRule("cpp_entrypoint", ends_with("main.cpp", "main.cc", "main.c", "app.cpp"), 0.2),

    # Components / modules
    PathRule("ui_component", either(
        ends_with(".tsx", ".jsx"), contains("/components/", "/ui/"),
    ), 0.1),
    PathRule("python_module", both(
        ends_with(".py"), lacks("test"),
        contains("/models/", "/views/", "/controllers/", "/services/"),
    ), 0.1),
    PathRule("go_package", both(
        ends_with(".go"), lacks("test"),
        contains("/pkg/", "/internal/", "/cmd/", "/api/"),
    ), 0.1),

    # API / handlers (one row per ecosystem; a path may hit several)
    PathRule("js_api", contains(
        "/api/", "route.ts", "server.ts", "middleware.ts", "handler.js", "controller.js",
    ), 0.15),
    PathRule("python_api", contains(
        "views.py", "urls.py", "api.py", "routes.py", "handlers.py", "endpoints.py",
    ), 0.15),
    PathRule("go_api", contains(
        "handler.go", "router.go", "controller.go", "middleware.go", "/api/", "/handlers/",
    ), 0.15),
    PathRule("rust_api", contains("handler.rs", "router.rs", "controller.rs", "/api/"), 0.15),
]

_C_FAMILY = ends_with(".cpp", ".cc", ".c", ".h", ".hpp")

CONTEXT_RULES: List[ContextRule] = [
    # Keyword ↔ directory co-occurrence
    ContextRule("frontend", issue_mentions(
        ("component", "ui", "frontend"),
        contains("/components/", "/ui/", "/widgets/"),
    ), 0.1),
    ContextRule("api", issue_mentions(
        ("api", "endpoint", "server", "backend"),
        contains("/api/", "/handlers/", "/controllers/", "/routes/", "/endpoints/", "/views/"),
    ), 0.1),
    ContextRule("database", issue_mentions(
        ("database", "model", "schema", "query"),
        contains("/models/", "/schemas/", "/db/", "/database/", "/entities/", "/repository/"),
    ), 0.1),
    ContextRule("service", issue_mentions(
        ("service", "business", "logic", "utility"),
        contains("/services/", "/utils/", "/helpers/", "/lib/", "/core/", "/pkg/"),
    ), 0.1),
    ContextRule("auth", issue_mentions(
        ("auth", "login", "security", "jwt"),
        contains("/auth/", "/security/", "/middleware/", "auth.", "jwt.", "login."),
    ), 0.15),
    ContextRule("config", issue_mentions(
        ("config", "setting", "environment"),
        contains("/config/", "/settings/", "/env/", ".config.", ".env"),
    ), 0.05),
    ContextRule("testing", issue_mentions(
        ("test", "testing", "spec"),
        contains("/test/", "/tests/", "/__tests__/", ".test.", ".spec."),
    ), 0.05),

    # Language vocabulary
    ContextRule("django_flask", issue_mentions(
        ("django", "flask"), contains("views.py", "urls.py", "models.py"),
    ), 0.1),
    ContextRule("go_concurrency", issue_mentions(
        ("goroutine", "channel", "go func"), ends_with(".go"),
    ), 0.1),
    ContextRule("rust_toolchain", issue_mentions(
        ("cargo", "crate", "rust"), ends_with(".rs"),
    ), 0.1),
    ContextRule("cpp_toolchain", issue_mentions(
        ("cmake", "makefile", "gcc", "clang"), _C_FAMILY,
    ), 0.1),
]

FILE_NAME_MENTION_BOOST = 0.3
IDENTIFIER_MENTION_BOOST = 0.2

_COMPONENT_TOKEN_RE = re.compile(r"[A-Z][a-zA-Z]+")
_FUNCTION_TOKEN_RE = re.compile(r"\b[a-z][a-zA-Z]+\(")


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------
def identifier_tokens(issue_text: str) -> List[str]:
    """
    Component-like (``LoginForm``) and call-like (``validate(``) tokens from
    the issue text, lowercased, with duplicates kept (each occurrence counts).
    """
    tokens = _COMPONENT_TOKEN_RE.findall(issue_text) + _FUNCTION_TOKEN_RE.findall(issue_text)
    return [token.replace("(", "").lower() for token in tokens]


def score_file(file: FileReference, issue_text: str) -> float:
    """
    Compute the priority score of ``file`` for ``issue_text``.

    Parameters
    ----------
    file : FileReference
        Candidate file (name, summary and similarity are used).
    issue_text : str
        The issue description.

    Returns
    -------
    float
        Non-negative priority; higher means more likely to hold the issue.
    """
    score = file.similarity or 0.0
    if not file.file_name:
        return max(0.0, score)

    path = file.file_name.lower()
    issue = (issue_text or "").lower()
    summary = (file.summary or "").lower()

    for rule in PATH_RULES:
        if rule.predicate(path):
            score += rule.adjustment

    base_name = path.rsplit("/", 1)[-1]
    if base_name and base_name in issue:
        score += FILE_NAME_MENTION_BOOST

    for token in identifier_tokens(issue_text or ""):
        if token in path or token in summary:
            score += IDENTIFIER_MENTION_BOOST

    for rule in CONTEXT_RULES:
        if rule.predicate(path, issue):
            score += rule.adjustment

    return max(0.0, score)


def matched_rules(file: FileReference, issue_text: str) -> List[str]:
    """Names of the table rules that fired for ``file`` (for logging and debugging)."""
    if not file.file_name:
        return []
    path = file.file_name.lower()
    issue = (issue_text or "").lower()
    names = [rule.name for rule in PATH_RULES if rule.predicate(path)]
    names.extend(rule.name for rule in CONTEXT_RULES if rule.predicate(path, issue))
    return names
