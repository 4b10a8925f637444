"""Security scanner - secrets, injection patterns and dependency changes.

Only lines the pull request adds are scanned; removed and context lines
are ignored. Detection is purely regex based.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from gatekeeper.analysis.paths import is_dependency_manifest
from gatekeeper.models import (
    Confidence,
    FileChange,
    Finding,
    FindingType,
    PullRequestSnapshot,
    Severity,
)

if TYPE_CHECKING:
    from gatekeeper.config import SecurityConfig

logger = logging.getLogger("gatekeeper.security")

SCRIPT_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs")
INJECTION_SNIPPET_LENGTH = 60


@dataclass(frozen=True)
class SecretPattern:
    name: str
    regex: re.Pattern[str]
    confidence: Confidence
    description: str


@dataclass(frozen=True)
class InjectionPattern:
    name: str
    regex: re.Pattern[str]
    severity: Severity
    description: str


SECRET_PATTERNS: tuple[SecretPattern, ...] = (
    SecretPattern(
        "aws_access_key",
        re.compile(r"AKIA[0-9A-Z]{16}"),
        Confidence.HIGH,
        "AWS Access Key detected",
    ),
    SecretPattern(
        "aws_secret_key",
        re.compile(r"[0-9a-zA-Z/+]{40}"),
        Confidence.HIGH,
        "Possible AWS Secret Key",
    ),
    SecretPattern(
        "github_pat",
        re.compile(r"ghp_[a-zA-Z0-9]{36}"),
        Confidence.HIGH,
        "GitHub Personal Access Token detected",
    ),
    SecretPattern(
        "slack_token",
        re.compile(r"xox[baprs]-[a-zA-Z0-9-]+"),
        Confidence.HIGH,
        "Slack Token detected",
    ),
    SecretPattern(
        "generic_api_key",
        re.compile(r"(?:api|token|secret|key)\s*[=:]\s*['\"`][a-zA-Z0-9_-]{20,}['\"`]", re.IGNORECASE),
        Confidence.MEDIUM,
        "Possible API key or secret",
    ),
    SecretPattern(
        "database_url",
        re.compile(r"(?:mongodb|mysql|postgres|redis)://[^:\s]+:[^@\s]+@"),
        Confidence.HIGH,
        "Database connection string with credentials",
    ),
)

INJECTION_PATTERNS: tuple[InjectionPattern, ...] = (
    InjectionPattern(
        "sql_injection",
        re.compile(r"(?:execute|exec|query)\s*\(\s*['\"`].*?\$\{.*?\}", re.IGNORECASE),
        Severity.CRITICAL,
        "Possible SQL injection via template literal",
    ),
    InjectionPattern(
        "command_injection",
        re.compile(r"(?:exec|spawn)\s*\(\s*['\"`].*?\$\{.*?\}", re.IGNORECASE),
        Severity.CRITICAL,
        "Possible command injection via template literal",
    ),
    InjectionPattern(
        "unsafe_inner_html",
        re.compile(r"\.innerHTML\s*=\s*.*?\$"),
        Severity.HIGH,
        "Possible XSS via innerHTML",
    ),
    InjectionPattern(
        "dangerous_exec",
        re.compile(r"(?:execSync|exec)\s*\(\s*.*?\+"),
        Severity.HIGH,
        "Possible command injection via concatenation",
    ),
)


def mask_value(value: str) -> str:
    """Keep the first and last four characters of a secret.

    Values shorter than eight characters are returned as-is.
    """
    if len(value) < 8:
        return value
    return value[:4] + "****" + value[-4:]


class SecurityScanner:
    """Scans the added lines of a pull request for security issues."""

    def __init__(self, config: SecurityConfig) -> None:
        self.config = config

    def scan(self, pr: PullRequestSnapshot) -> list[Finding]:
        findings: list[Finding] = []
        if not self.config.enabled:
            return findings

        if self.config.scan_secrets:
            findings.extend(self.scan_secrets(pr.files))
        if self.config.scan_injections:
            findings.extend(self.scan_injections(pr.files))
        if self.config.scan_dependencies:
            findings.extend(self.scan_dependencies(pr.files))

        logger.debug("PR #%s: %d security finding(s)", pr.number, len(findings))
        return findings

    def scan_secrets(self, files: list[FileChange]) -> list[Finding]:
        findings: list[Finding] = []
        for file in files:
            for line_no, content in file.iter_added_lines():
                # One secret can satisfy several patterns; report the first only
                reported: list[tuple[int, int]] = []
                for pattern in SECRET_PATTERNS:
                    match = pattern.regex.search(content)
                    if match is None or _overlaps(match.span(), reported):
                        continue
                    reported.append(match.span())
                    severity = (
                        Severity.CRITICAL if pattern.confidence == Confidence.HIGH else Severity.HIGH
                    )
                    findings.append(Finding(
                        type=FindingType.SECRET,
                        pattern=pattern.name,
                        severity=severity,
                        confidence=pattern.confidence,
                        location=f"{file.path}:{line_no}",
                        snippet=mask_value(match.group(0)),
                        description=pattern.description,
                    ))
        return findings

    def scan_injections(self, files: list[FileChange]) -> list[Finding]:
        findings: list[Finding] = []
        for file in files:
            if not file.path.endswith(SCRIPT_EXTENSIONS):
                continue
            for line_no, content in file.iter_added_lines():
                for pattern in INJECTION_PATTERNS:
                    if pattern.regex.search(content) is None:
                        continue
                    findings.append(Finding(
                        type=FindingType.INJECTION,
                        pattern=pattern.name,
                        severity=pattern.severity,
                        confidence=Confidence.MEDIUM,
                        location=f"{file.path}:{line_no}",
                        snippet=content[:INJECTION_SNIPPET_LENGTH],
                        description=pattern.description,
                    ))
        return findings

    def scan_dependencies(self, files: list[FileChange]) -> list[Finding]:
        # Manifest changes are flagged for an external audit; no advisory lookup here
        return [
            Finding(
                type=FindingType.DEPENDENCY,
                severity=self.config.dependency_severity_threshold,
                confidence=Confidence.LOW,
                location=file.path,
                snippet="Dependency file changed - run vulnerability scan",
                description="Dependency changes detected. Run npm audit or an equivalent scanner.",
            )
            for file in files
            if is_dependency_manifest(file.path)
        ]


def _overlaps(span: tuple[int, int], spans: list[tuple[int, int]]) -> bool:
    start, end = span
    return any(start < other_end and other_start < end for other_start, other_end in spans)
