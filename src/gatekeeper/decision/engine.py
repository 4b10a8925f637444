"""Decision engine - turns scores, findings and policy results into an action.

Confidence is a weighted sum of per-factor scores. When neither approvals
nor CI status are known the three core factors share the whole weight
(0.40 / 0.30 / 0.30). When either signal is supplied the core factors
drop to 0.35 / 0.25 / 0.25 and only the supplied signals add their weight
(approvals 0.10, CI 0.05), so with one signal missing the best possible
confidence is below 1.0. Downstream thresholds are tuned to that scale.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING

from gatekeeper.decision.recommendations import (
    build_summary,
    generate_next_steps,
    generate_recommendations,
)
from gatekeeper.models import (
    Approval,
    BlastRadiusResult,
    CIStatus,
    Decision,
    DecisionAction,
    DecisionFactor,
    Finding,
    Reasoning,
    Severity,
)
from gatekeeper.policy.models import PolicyAction, PolicyResult, PolicyStatus

if TYPE_CHECKING:
    from gatekeeper.config import DecisionConfig, TeamConfig

logger = logging.getLogger("gatekeeper.decision")

CORE_WEIGHTS = {"security_findings": 0.40, "blast_radius": 0.30, "policy_compliance": 0.30}
CORE_WEIGHTS_WITH_SIGNALS = {
    "security_findings": 0.35,
    "blast_radius": 0.25,
    "policy_compliance": 0.25,
}
APPROVALS_WEIGHT = 0.10
CI_STATUS_WEIGHT = 0.05


class DecisionEngine:
    """Synthesizes the final merge decision."""

    def __init__(
        self,
        decision_config: DecisionConfig,
        team_config: TeamConfig,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.decision_config = decision_config
        self.team_config = team_config
        self._new_id = id_factory or (lambda: str(uuid.uuid4()))

    def make(
        self,
        blast_radius: BlastRadiusResult,
        security_findings: list[Finding],
        policy_results: list[PolicyResult],
        approvals: list[Approval] | None = None,
        ci_status: CIStatus | None = None,
    ) -> Decision:
        has_signals = approvals is not None or ci_status is not None
        weights = CORE_WEIGHTS_WITH_SIGNALS if has_signals else CORE_WEIGHTS

        factors = [
            evaluate_security(security_findings),
            evaluate_blast_radius(blast_radius),
            evaluate_policies(policy_results),
        ]
        confidence = sum(f.score * weights[f.factor] for f in factors)

        if approvals is not None:
            approval_factor = evaluate_approvals(approvals)
            factors.append(approval_factor)
            confidence += approval_factor.score * APPROVALS_WEIGHT

        if ci_status is not None:
            ci_factor = evaluate_ci_status(ci_status)
            factors.append(ci_factor)
            confidence += ci_factor.score * CI_STATUS_WEIGHT

        confidence = round(min(1.0, max(0.0, confidence)), 4)

        action, overridden = self.determine_action(
            blast_radius, security_findings, policy_results, ci_status
        )
        if (
            not overridden
            and self.decision_config.fallback_to_review
            and confidence < self.decision_config.min_confidence
        ):
            logger.debug(
                "Confidence %.2f below %.2f, %s -> require_review",
                confidence, self.decision_config.min_confidence, action.value,
            )
            action = DecisionAction.REQUIRE_REVIEW

        return Decision(
            decision_id=self._new_id(),
            action=action,
            confidence=confidence,
            reasoning=Reasoning(summary=build_summary(action), factors=factors),
            recommendations=generate_recommendations(
                action, security_findings, policy_results, ci_status
            ),
            next_steps=generate_next_steps(action, security_findings, ci_status),
        )

    def determine_action(
        self,
        blast_radius: BlastRadiusResult,
        security_findings: list[Finding],
        policy_results: list[PolicyResult],
        ci_status: CIStatus | None = None,
    ) -> tuple[DecisionAction, bool]:
        """Pick the action. The flag is True when a hard override decided it."""
        if any(f.severity == Severity.CRITICAL for f in security_findings):
            return DecisionAction.BLOCK, True
        if any(r.action == PolicyAction.BLOCK for r in policy_results):
            return DecisionAction.BLOCK, True
        if ci_status is not None and ci_status.is_failing:
            return DecisionAction.BLOCK, True

        thresholds = self.team_config.thresholds
        score = blast_radius.score
        if score <= thresholds.auto_approve:
            return DecisionAction.AUTO_APPROVE, False
        if score <= thresholds.auto_approve_with_comment:
            return DecisionAction.AUTO_APPROVE_COMMENT, False
        if score <= thresholds.requires_review:
            return DecisionAction.REQUIRE_REVIEW, False
        if score <= thresholds.requires_senior_review:
            return DecisionAction.REQUIRE_SENIOR_REVIEW, False
        return DecisionAction.BLOCK, False


# =========================================================================
# Factors
# =========================================================================


def evaluate_security(findings: list[Finding]) -> DecisionFactor:
    if not findings:
        return DecisionFactor(
            factor="security_findings", impact="none", score=1.0,
            details="No security findings",
        )

    critical = sum(1 for f in findings if f.severity == Severity.CRITICAL)
    high = sum(1 for f in findings if f.severity == Severity.HIGH)

    if critical:
        return DecisionFactor(
            factor="security_findings", impact="critical", score=0.0,
            details=f"{critical} critical security finding(s)",
        )
    if high:
        return DecisionFactor(
            factor="security_findings", impact="high", score=0.2,
            details=f"{high} high severity security finding(s)",
        )
    return DecisionFactor(
        factor="security_findings", impact="medium", score=0.6,
        details=f"{len(findings)} security finding(s) of lower severity",
    )


_BLAST_RADIUS_BANDS = (
    (20, "low", 1.0, "minimal impact"),
    (40, "low-medium", 0.8, "low to medium impact"),
    (60, "medium", 0.6, "medium impact"),
    (80, "medium-high", 0.4, "medium to high impact"),
)


def evaluate_blast_radius(blast_radius: BlastRadiusResult) -> DecisionFactor:
    score = blast_radius.score
    for ceiling, impact, factor_score, text in _BLAST_RADIUS_BANDS:
        if score <= ceiling:
            return DecisionFactor(
                factor="blast_radius", impact=impact, score=factor_score,
                details=f"Blast radius {score}: {text}",
            )
    return DecisionFactor(
        factor="blast_radius", impact="high", score=0.2,
        details=f"Blast radius {score}: high impact",
    )


def evaluate_policies(results: list[PolicyResult]) -> DecisionFactor:
    applicable = [r for r in results if r.status != PolicyStatus.SKIPPED]
    if not applicable:
        return DecisionFactor(
            factor="policy_compliance", impact="none", score=1.0,
            details="No policies applicable",
        )

    failed = sum(1 for r in applicable if r.status == PolicyStatus.FAILED)
    warnings = sum(1 for r in applicable if r.status == PolicyStatus.WARNING)

    if failed:
        return DecisionFactor(
            factor="policy_compliance", impact="critical", score=0.0,
            details=f"{failed} policy violation(s) detected",
        )
    if warnings:
        return DecisionFactor(
            factor="policy_compliance", impact="medium", score=0.7,
            details=f"{warnings} policy warning(s)",
        )
    return DecisionFactor(
        factor="policy_compliance", impact="none", score=1.0,
        details=f"All {len(applicable)} applicable policies passed",
    )


def evaluate_approvals(approvals: list[Approval]) -> DecisionFactor:
    count = len(approvals)
    if count == 0:
        return DecisionFactor(
            factor="approvals", impact="none", score=0.5, details="No approvals yet",
        )
    if count >= 2:
        return DecisionFactor(
            factor="approvals", impact="none", score=1.0,
            details=f"{count} approval(s) from team members",
        )
    return DecisionFactor(
        factor="approvals", impact="low", score=0.7, details=f"{count} approval(s)",
    )


def evaluate_ci_status(ci_status: CIStatus) -> DecisionFactor:
    state = ci_status.normalized_state
    if state == "success":
        return DecisionFactor(
            factor="ci_status", impact="none", score=1.0, details="All CI checks passed",
        )
    if state == "pending":
        return DecisionFactor(
            factor="ci_status", impact="medium", score=0.5, details="CI checks in progress",
        )
    if ci_status.is_failing:
        failed = sum(1 for s in ci_status.statuses if s.state.lower() in ("failure", "error"))
        return DecisionFactor(
            factor="ci_status", impact="high", score=0.0,
            details=f"{failed} CI check(s) failed",
        )
    return DecisionFactor(
        factor="ci_status", impact="low", score=0.6, details=f"CI status: {state}",
    )
