"""Blast radius calculator - how much of the system a change can break.

The score combines three sub-scores:

  - code impact: files and lines touched, adjusted by critical/safe path rules
  - test impact: how much test code moved
  - dependency impact: lines added to package manifests

and then multiplies the sum by every risk signal (blocked paths, config
and auth files) before clamping to 0-100.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from gatekeeper.analysis.paths import is_dependency_manifest, match_path
from gatekeeper.models import (
    BlastRadiusResult,
    CodeImpactDetails,
    DependencyImpactDetails,
    FileChange,
    ImpactLevel,
    PullRequestSnapshot,
    RiskSignal,
    RiskSignalType,
    TestImpactDetails,
)

if TYPE_CHECKING:
    from gatekeeper.config import TeamConfig

logger = logging.getLogger("gatekeeper.blast_radius")

DEFAULT_CRITICAL_BASE_SCORE = 10.0
SAFE_PATH_REDUCTION = 5.0
MAX_CRITICAL_PATH_IMPACT = 10
MAX_SAFE_PATH_REDUCTION = 10

BLOCKED_PATH_MULTIPLIER = 2.0
CONFIG_CHANGE_MULTIPLIER = 1.5
AUTH_CHANGE_MULTIPLIER = 2.5

CONFIG_PATTERNS = (".env", "docker", "k8s", "kubernetes", "terraform", "infrastructure")
AUTH_PATTERNS = ("auth", "login", "password", "credential")
TEST_PATTERNS = ("test", "spec", "__tests__")


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_test_file(path: str) -> bool:
    lowered = path.lower()
    return any(p in lowered for p in TEST_PATTERNS)


def count_added_lines(patch: str | None) -> int:
    """Count '+' lines in a unified diff, ignoring '+++' headers."""
    if not patch:
        return 0
    return sum(
        1 for line in patch.split("\n") if line.startswith("+") and not line.startswith("+++")
    )


class BlastRadiusCalculator:
    """Computes the 0-100 blast radius score for a pull request."""

    def __init__(self, team_config: TeamConfig) -> None:
        self.config = team_config

    def calculate(self, pr: PullRequestSnapshot) -> BlastRadiusResult:
        code_impact = self._code_impact(pr)
        test_impact = self._test_impact(pr.files)
        dependency_impact = self._dependency_impact(pr.files)
        risk_signals = self.detect_risk_signals(pr.files)

        raw = float(code_impact.score + test_impact.score + dependency_impact.score)
        for signal in risk_signals:
            raw *= signal.multiplier

        score = min(100, max(0, round_half_up(raw)))
        logger.debug(
            "PR #%s blast radius: code=%d test=%d deps=%d signals=%d -> %d",
            pr.number, code_impact.score, test_impact.score,
            dependency_impact.score, len(risk_signals), score,
        )

        return BlastRadiusResult(
            score=score,
            code_impact=code_impact,
            test_impact=test_impact,
            dependency_impact=dependency_impact,
            risk_signals=risk_signals,
        )

    # -----------------------------------------------------------------
    # Code impact
    # -----------------------------------------------------------------

    def _code_impact(self, pr: PullRequestSnapshot) -> CodeImpactDetails:
        file_count = pr.file_count
        line_count = pr.line_count

        if not pr.files:
            return CodeImpactDetails(score=0, level=ImpactLevel.LOW)

        score = 0.0

        # Files changed (0-15 points)
        if file_count <= 2:
            score += 5
        elif file_count <= 5:
            score += 10
        elif file_count <= 10:
            score += 13
        else:
            score += 15

        # Lines touched (0-15 points)
        if line_count <= 50:
            score += 3
        elif line_count <= 200:
            score += 7
        elif line_count <= 500:
            score += 11
        else:
            score += 15

        critical_impact, critical_weight = self._critical_path_impact(pr.files)
        safe_reduction, safe_weight = self._safe_path_reduction(pr.files)

        score = max(0.0, score + critical_impact - safe_reduction)
        path_weight = critical_weight * safe_weight
        final = round_half_up(score * path_weight)

        if final > 30:
            level = ImpactLevel.CRITICAL
        elif final > 20:
            level = ImpactLevel.HIGH
        elif final > 10:
            level = ImpactLevel.MEDIUM
        else:
            level = ImpactLevel.LOW

        return CodeImpactDetails(
            score=final,
            level=level,
            file_count=file_count,
            line_count=line_count,
            critical_path_impact=critical_impact,
            safe_path_reduction=safe_reduction,
            path_weight=path_weight,
        )

    def _critical_path_impact(self, files: list[FileChange]) -> tuple[float, float]:
        """Return (capped impact points, strongest matched multiplier)."""
        impact = 0.0
        weight = 1.0
        for file in files:
            for pattern, rule in self.config.critical_paths.items():
                if not match_path(file.path, pattern):
                    continue
                base = rule.base_score if rule.base_score is not None else DEFAULT_CRITICAL_BASE_SCORE
                impact += base * rule.multiplier
                weight = max(weight, rule.multiplier)
        return min(MAX_CRITICAL_PATH_IMPACT, impact), weight

    def _safe_path_reduction(self, files: list[FileChange]) -> tuple[int, float]:
        """Return (capped reduction points, weakest matched multiplier).

        The multiplier only applies when every file sits under a safe rule;
        a mixed change gets the capped reduction alone.
        """
        reduction = 0.0
        weight = 1.0
        all_safe = True
        for file in files:
            matched = False
            for pattern, rule in self.config.safe_paths.items():
                if not match_path(file.path, pattern):
                    continue
                matched = True
                reduction += SAFE_PATH_REDUCTION * rule.multiplier
                weight = min(weight, rule.multiplier)
            all_safe = all_safe and matched
        if not all_safe:
            weight = 1.0
        return min(MAX_SAFE_PATH_REDUCTION, round_half_up(reduction)), weight

    # -----------------------------------------------------------------
    # Test and dependency impact
    # -----------------------------------------------------------------

    def _test_impact(self, files: list[FileChange]) -> TestImpactDetails:
        test_files = [f for f in files if is_test_file(f.path)]
        count = len(test_files)

        score = 0.0
        if count == 0:
            score += 0
        elif count <= 3:
            score += 3
        elif count <= 10:
            score += 7
        else:
            score += 15

        test_additions = sum(f.additions for f in test_files)
        if test_additions > 0:
            score += min(10.0, test_additions / 50)

        if score > 10:
            level = ImpactLevel.HIGH
        elif score > 5:
            level = ImpactLevel.MEDIUM
        else:
            level = ImpactLevel.LOW

        return TestImpactDetails(
            score=min(30, round_half_up(score)),
            level=level,
            test_files=count,
            test_additions=test_additions,
        )

    def _dependency_impact(self, files: list[FileChange]) -> DependencyImpactDetails:
        dep_files = [f for f in files if is_dependency_manifest(f.path)]

        score = 0
        added_total = 0
        for file in dep_files:
            added = count_added_lines(file.patch)
            added_total += added
            score += min(20, added)

        if score > 15:
            level = ImpactLevel.HIGH
        elif score > 5:
            level = ImpactLevel.MEDIUM
        else:
            level = ImpactLevel.LOW

        return DependencyImpactDetails(
            score=min(30, score),
            level=level,
            dep_files=len(dep_files),
            dep_additions=added_total,
        )

    # -----------------------------------------------------------------
    # Risk signals
    # -----------------------------------------------------------------

    def detect_risk_signals(self, files: list[FileChange]) -> list[RiskSignal]:
        """Find sensitive files. A file may raise several signals."""
        signals: list[RiskSignal] = []

        for pattern in self.config.blocked_paths:
            for file in files:
                if match_path(file.path, pattern):
                    signals.append(RiskSignal(
                        type=RiskSignalType.BLOCKED_PATH,
                        multiplier=BLOCKED_PATH_MULTIPLIER,
                        file=file.path,
                        pattern=pattern,
                    ))

        for file in files:
            lowered = file.path.lower()
            if any(p in lowered for p in CONFIG_PATTERNS):
                signals.append(RiskSignal(
                    type=RiskSignalType.CONFIG_CHANGE,
                    multiplier=CONFIG_CHANGE_MULTIPLIER,
                    file=file.path,
                ))

        for file in files:
            lowered = file.path.lower()
            if any(p in lowered for p in AUTH_PATTERNS):
                signals.append(RiskSignal(
                    type=RiskSignalType.AUTH_CHANGE,
                    multiplier=AUTH_CHANGE_MULTIPLIER,
                    file=file.path,
                ))

        return signals
