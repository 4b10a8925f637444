"""Glob-style matching of changed file paths.

Unlike ``fnmatch``, ``*`` never crosses a directory separator and ``**``
spans any number of directories (including none), so ``auth/**/*`` matches
both ``auth/login.ts`` and ``auth/oauth/google.ts``. Matches are anchored
to the whole path.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Translate a glob pattern into an anchored regular expression."""
    parts: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]
        if pattern.startswith("**", i):
            i += 2
            if i < n and pattern[i] == "/":
                # "**/" also matches zero directories
                parts.append("(?:.*/)?")
                i += 1
            else:
                parts.append(".*")
            continue
        if char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(char))
        i += 1
    return re.compile("".join(parts) + r"\Z")


def match_path(path: str, pattern: str) -> bool:
    """Return True if ``path`` matches the glob ``pattern`` in full."""
    return compile_glob(pattern).match(path) is not None


def match_any(path: str, patterns: Iterable[str]) -> str | None:
    """Return the first pattern that matches ``path``, or None."""
    for pattern in patterns:
        if match_path(path, pattern):
            return pattern
    return None


DEPENDENCY_MANIFESTS = frozenset({
    "package.json",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "requirements.txt",
    "Pipfile",
    "Pipfile.lock",
    "pyproject.toml",
    "poetry.lock",
    "setup.py",
    "pom.xml",
    "build.gradle",
    "build.gradle.kts",
    "go.mod",
    "go.sum",
    "Cargo.toml",
    "Cargo.lock",
    "Gemfile",
    "Gemfile.lock",
    "composer.json",
    "composer.lock",
})


def is_dependency_manifest(path: str) -> bool:
    """True for package manifests and lockfiles, by file name."""
    return path.rsplit("/", 1)[-1] in DEPENDENCY_MANIFESTS
