"""
Language Conventions
====================
Per-language project conventions used to steer feature planning and new-file
generation (where dependencies live, what the entry point looks like, how
imports are written).

Lookup is by primary language; anything unknown (including "javascript" and
"typescript") gets the JavaScript/TypeScript conventions.
"""
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class LanguageRules:
    language: str
    dependency_file: str
    main_file: str
    index_file: str
    import_pattern: str
    example_path: str
    file_types: str
    config_files: Tuple[str, ...]
    test_dir: str
    package_manager: str
    dependency_format: str
    integration_files: Tuple[str, ...]


_RULES = {
    "python": LanguageRules(
        language="python",
        dependency_file="requirements.txt",
        main_file="src/main.py",
        index_file="src/__init__.py",
        import_pattern="from .services.email_service import EmailService",
        example_path="src/services/email_service.py",
        file_types="service|model|utility|api|handler|middleware",
        config_files=("setup.py", "pyproject.toml", "config.py"),
        test_dir="tests/",
        package_manager="pip",
        dependency_format="package==version",
        integration_files=("src/__init__.py", "src/main.py", "config.py"),
    ),
    "go": LanguageRules(
        language="go",
        dependency_file="go.mod",
        main_file="cmd/main.go",
        index_file="cmd/main.go",
        import_pattern='import "github.com/user/repo/pkg/services"',
        example_path="pkg/services/email.go",
        file_types="service|handler|model|utility|package|cmd",
        config_files=("go.mod", "go.sum", "config/config.go"),
        test_dir="*_test.go",
        package_manager="go mod",
        dependency_format="require github.com/package/name version",
        integration_files=("cmd/main.go", "internal/app/app.go"),
    ),
    "rust": LanguageRules(
        language="rust",
        dependency_file="Cargo.toml",
        main_file="src/main.rs",
        index_file="src/lib.rs",
        import_pattern="use crate::services::email::EmailService;",
        example_path="src/services/email.rs",
        file_types="service|model|utility|handler|module",
        config_files=("Cargo.toml", "Cargo.lock", "src/config.rs"),
        test_dir="tests/",
        package_manager="cargo",
        dependency_format='package = "version"',
        integration_files=("src/lib.rs", "src/main.rs", "src/mod.rs"),
    ),
    "cpp": LanguageRules(
        language="cpp",
        dependency_file="CMakeLists.txt",
        main_file="src/main.cpp",
        index_file="src/main.cpp",
        import_pattern='#include "services/EmailService.h"',
        example_path="src/services/EmailService.cpp",
        file_types="service|model|utility|handler|class",
        config_files=("CMakeLists.txt", "vcpkg.json", "config.hpp"),
        test_dir="tests/",
        package_manager="cmake/vcpkg",
        dependency_format="find_package(PackageName REQUIRED)",
        integration_files=("src/main.cpp", "include/common.h"),
    ),
    "java": LanguageRules(
        language="java",
        dependency_file="pom.xml",
        main_file="src/main/java/Main.java",
        index_file="src/main/java/Main.java",
        import_pattern="import com.project.services.EmailService;",
        example_path="src/main/java/services/EmailService.java",
        file_types="service|model|utility|controller|component",
        config_files=("pom.xml", "application.properties", "application.yml"),
        test_dir="src/test/java/",
        package_manager="maven",
        dependency_format="<dependency><groupId>group</groupId><artifactId>artifact</artifactId></dependency>",
        integration_files=("src/main/java/Main.java", "src/main/java/config/AppConfig.java"),
    ),
}

JAVASCRIPT_RULES = LanguageRules(
    language="javascript",
    dependency_file="package.json",
    main_file="src/App.tsx",
    index_file="src/index.ts",
    import_pattern='import { EmailService } from "./services/emailService";',
    example_path="src/services/emailService.ts",
    file_types="component|service|utility|api|hook|page",
    config_files=("package.json", "tsconfig.json", ".env"),
    test_dir="src/__tests__/",
    package_manager="npm",
    dependency_format='"package": "^version"',
    integration_files=("src/index.ts", "src/App.tsx", "src/routes/index.ts"),
)


def get_language_rules(language: str) -> LanguageRules:
    return _RULES.get((language or "").lower(), JAVASCRIPT_RULES)
