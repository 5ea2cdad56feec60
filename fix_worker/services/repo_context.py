"""
Repository Context
==================
Builds a lightweight RepositoryContext from the project's source index.

Detection Strategy:
    - Primary language: most common source extension wins (first in table
      order on ties); TypeScript is preferred over JavaScript whenever any
      TypeScript file exists
    - Frameworks: path signals (next.config / pages/ / app/ → nextjs, src/*.tsx
      → react, nuxt.config / .vue → nuxt, angular.json / .component. →
      angular); none detected → ["javascript"]
    - Directories: unique parent directories, sorted, first 20
    - Patterns: useTypeScript / hasComponents / hasUtils / hasApi / hasStyles
    - Common paths: parent directory of the first component-ish and the first
      util/lib-ish file

If the index cannot be read, a JavaScript/TypeScript default context is used
so planning can still proceed.
"""
import logging
from typing import Dict, List, Sequence

from fix_worker.core.config import REPO_CONTEXT_DIRECTORY_LIMIT, REPO_CONTEXT_FILE_LIMIT
from fix_worker.models.job import IndexedFile
from fix_worker.models.plan import RepositoryContext

logger = logging.getLogger(__name__)

# Ordered: earlier languages win ties
_LANGUAGE_EXTENSIONS = (
    ("python", (".py",)),
    ("go", (".go",)),
    ("rust", (".rs",)),
    ("cpp", (".cpp", ".cc", ".c")),
    ("java", (".java",)),
    ("javascript", (".js", ".jsx")),
    ("typescript", (".ts", ".tsx")),
)


def detect_language(paths: Sequence[str]) -> str:
    counts = {language: 0 for language, _ in _LANGUAGE_EXTENSIONS}
    for path in paths:
        for language, extensions in _LANGUAGE_EXTENSIONS:
            if path.endswith(extensions):
                counts[language] += 1

    primary = "javascript"
    best = 0
    for language, _ in _LANGUAGE_EXTENSIONS:
        if counts[language] > best:
            best = counts[language]
            primary = language

    if counts["typescript"] > 0 and primary == "javascript":
        primary = "typescript"
    return primary


def detect_frameworks(paths: Sequence[str]) -> List[str]:
    frameworks: List[str] = []
    if any("next.config" in p or "pages/" in p or "app/" in p for p in paths):
        frameworks.append("nextjs")
    if any("src/" in p and ".tsx" in p for p in paths):
        frameworks.append("react")
    if any("nuxt.config" in p or ".vue" in p for p in paths):
        frameworks.append("nuxt")
    if any("angular.json" in p or ".component." in p for p in paths):
        frameworks.append("angular")
    return frameworks or ["javascript"]


def detect_patterns(paths: Sequence[str]) -> Dict[str, bool]:
    return {
        "useTypeScript": any(".ts" in p for p in paths),
        "hasComponents": any("components/" in p for p in paths),
        "hasUtils": any("utils/" in p or "lib/" in p for p in paths),
        "hasApi": any("api/" in p or "endpoints/" in p for p in paths),
        "hasStyles": any(".css" in p or ".scss" in p for p in paths),
    }


def _parent(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


def common_paths(paths: Sequence[str]) -> Dict[str, str]:
    found: Dict[str, str] = {}
    for path in paths:
        if "component" in path:
            found["components"] = _parent(path)
            break
    for path in paths:
        if "util" in path or "lib" in path:
            found["utils"] = _parent(path)
            break
    return found


def common_directories(paths: Sequence[str], limit: int = REPO_CONTEXT_DIRECTORY_LIMIT) -> List[str]:
    return sorted({_parent(p) for p in paths if _parent(p)})[:limit]


def build_repository_context(files: Sequence[IndexedFile]) -> RepositoryContext:
    """Derive the planning context from indexed (path, summary) rows."""
    paths = [f.file_name for f in files if f.file_name]
    return RepositoryContext(
        files=[{"fileName": f.file_name, "summary": f.summary} for f in files],
        directories=common_directories(paths),
        frameworks=detect_frameworks(paths),
        primary_language=detect_language(paths),
        patterns=detect_patterns(paths),
        file_count=len(files),
        common_paths=common_paths(paths),
    )


def default_repository_context() -> RepositoryContext:
    """Context used when the source index is unavailable."""
    return RepositoryContext(
        files=[],
        directories=["src/components", "src/utils", "src/pages"],
        frameworks=["javascript"],
        primary_language="javascript",
        patterns={
            "useTypeScript": True,
            "hasComponents": False,
            "hasUtils": False,
            "hasApi": False,
            "hasStyles": False,
        },
        file_count=0,
        common_paths={},
    )


def load_repository_context(store, project_id: str, limit: int = REPO_CONTEXT_FILE_LIMIT) -> RepositoryContext:
    """
    Read up to ``limit`` indexed files for ``project_id`` and build the context.

    Any store error is logged and the default context is returned.
    """
    try:
        files = store.list_indexed_files(project_id, limit=limit)
    except Exception as e:
        logger.error("Error reading source index for project %s: %s", project_id, e)
        return default_repository_context()

    context = build_repository_context(files)
    logger.info(
        "Repository context for %s: %d files, language=%s, frameworks=%s",
        project_id, context.file_count, context.primary_language, context.frameworks,
    )
    return context
