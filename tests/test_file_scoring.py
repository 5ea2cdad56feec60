"""
File Scoring Unit Tests
=======================
Covers:
    - Clamp at zero
    - Determinism
    - Individual path rules (generated, docs, manifests, tests, entrypoints, API)
    - Issue-context boosts (file name, identifiers, domain keywords, vocabulary)
    - Missing file name
"""
import pytest

from fix_worker.models.job import FileReference
from fix_worker.services.file_scoring import (
    CONTEXT_RULES,
    PATH_RULES,
    identifier_tokens,
    matched_rules,
    score_file,
)


def _make_file(name: str, similarity: float = 0.5, summary: str = "") -> FileReference:
    return FileReference(file_name=name, source_code="", summary=summary, similarity=similarity)


def _rule(name: str):
    for rule in PATH_RULES + CONTEXT_RULES:
        if rule.name == name:
            return rule
    return None


# ---------------------------------------------------------------------------
# 1. Invariants
# ---------------------------------------------------------------------------
class TestScoreInvariants:
    """Score is non-negative and deterministic."""

    @pytest.mark.parametrize("name", [
        "prisma/migrations/001_init/migration.sql",
        "node_modules/lib/dist/index.d.ts",
        "docs/README.md",
        "package-lock.json",
        "",
    ])
    def test_score_never_negative(self, name):
        assert score_file(_make_file(name, similarity=0.0), "anything") >= 0.0

    def test_score_is_deterministic(self):
        file = _make_file("src/components/LoginForm.tsx", summary="login form")
        issue = "LoginForm crashes when validate( is called"
        assert score_file(file, issue) == score_file(file, issue)

    def test_missing_name_scores_similarity_only(self):
        file = _make_file("", similarity=0.42)
        assert score_file(file, "fix README.md in auth") == pytest.approx(0.42)

    def test_missing_similarity_treated_as_zero(self):
        file = FileReference(file_name="src/utils/format.py", similarity=None)
        assert score_file(file, "unrelated") == pytest.approx(0.0)

    def test_rule_names_are_unique(self):
        names = [rule.name for rule in PATH_RULES + CONTEXT_RULES]
        assert len(names) == len(set(names))


# ---------------------------------------------------------------------------
# 2. Path Rules
# ---------------------------------------------------------------------------
class TestPathRules:
    """Each table rule fires on its paths and adjusts by its amount."""

    @pytest.mark.parametrize("path,rule", [
        ("db/migrations/0001.sql", "db_generated"),
        ("proto/user_pb2.py", "db_generated"),
        ("web/dist/bundle.js", "language_generated"),
        ("vendor/github.com/x/y.go", "language_generated"),
        ("docs/guide.md", "documentation"),
        ("README.md", "documentation"),
        ("tsconfig.json", "js_config"),
        ("pyproject.toml", "python_config"),
        ("go.sum", "go_config"),
        ("Cargo.toml", "rust_config"),
        ("CMakeLists.txt", "cpp_config"),
        ("src/__tests__/app.test.js", "test_file"),
        ("src/app/page.tsx", "js_entrypoint"),
        ("service/app.py", "python_entrypoint"),
        ("cmd/main.go", "go_entrypoint"),
        ("src/lib.rs", "rust_entrypoint"),
        ("src/main.cpp", "cpp_entrypoint"),
        ("src/ui/Button.jsx", "ui_component"),
        ("backend/services/billing.py", "python_module"),
        ("core/internal/store.go", "go_package"),
        ("app/api/route.ts", "js_api"),
        ("backend/routes.py", "python_api"),
        ("server/router.go", "go_api"),
        ("src/handler.rs", "rust_api"),
    ])
    def test_rule_fires(self, path, rule):
        assert rule in matched_rules(_make_file(path), "")

    def test_python_module_excludes_tests(self):
        assert "python_module" not in matched_rules(_make_file("app/services/test_billing.py"), "")

    def test_generated_file_loses_priority(self):
        plain = score_file(_make_file("src/schema.ts", 0.8), "")
        generated = score_file(_make_file("alembic/versions/abc.py", 0.8), "")
        assert generated < plain

    def test_api_rules_are_cumulative(self):
        # "/api/" appears in the JS, Go and Rust API tables
        file = _make_file("src/api/users.txt", similarity=0.0)
        assert score_file(file, "") == pytest.approx(3 * 0.15)

    def test_adjustment_values(self):
        assert _rule("db_generated").adjustment == pytest.approx(-0.4)
        assert _rule("auth").adjustment == pytest.approx(0.15)
        assert _rule("config").adjustment == pytest.approx(0.05)
        assert _rule("no_such_rule") is None


# ---------------------------------------------------------------------------
# 3. Issue Context
# ---------------------------------------------------------------------------
class TestIssueContext:
    """Boosts driven by the issue text."""

    def test_file_name_mention(self):
        file = _make_file("lib/helpers.txt", similarity=0.0)
        assert score_file(file, "crash in helpers.txt on start") == pytest.approx(0.3)

    def test_identifier_tokens(self):
        tokens = identifier_tokens("LoginForm breaks when validate( runs")
        assert tokens == ["loginform", "validate"]

    def test_identifier_matches_summary(self):
        file = _make_file("lib/x.txt", similarity=0.0, summary="Renders the LoginForm")
        assert score_file(file, "LoginForm is broken") == pytest.approx(0.2)

    def test_each_identifier_occurrence_counts(self):
        file = _make_file("lib/cart.txt", similarity=0.0)
        assert score_file(file, "Cart total wrong, Cart empty") == pytest.approx(0.4)

    def test_auth_context(self):
        file = _make_file("src/auth/session.txt", similarity=0.0)
        assert "auth" in matched_rules(file, "jwt token not refreshed")

    def test_domain_keyword_needs_matching_directory(self):
        file = _make_file("src/misc/session.txt", similarity=0.0)
        assert "auth" not in matched_rules(file, "jwt token not refreshed")

    def test_language_vocabulary(self):
        assert "go_concurrency" in matched_rules(_make_file("pkg/pool.go"), "goroutine leak")
        assert "rust_toolchain" in matched_rules(_make_file("src/parse.rs"), "cargo build fails")
        assert "cpp_toolchain" in matched_rules(_make_file("src/io.hpp"), "clang warning")
        assert "django_flask" in matched_rules(_make_file("shop/models.py"), "django admin crash")


# ---------------------------------------------------------------------------
# 4. Scenario
# ---------------------------------------------------------------------------
class TestScenario:
    """Relevant source beats documentation for the same similarity."""

    def test_login_source_beats_readme(self):
        issue = "fix JWT expiration bug in login"
        login = score_file(_make_file("src/auth/login.ts", 0.5), issue)
        readme = score_file(_make_file("README.md", 0.5), issue)
        assert login > readme
