"""Human-readable summary, recommendations and next steps for a decision."""

from __future__ import annotations

from gatekeeper.models import CIStatus, DecisionAction, Finding, Severity
from gatekeeper.policy.models import PolicyResult, PolicyStatus

SUMMARIES = {
    DecisionAction.AUTO_APPROVE: "Safe change - auto-approved",
    DecisionAction.AUTO_APPROVE_COMMENT: "Safe change - auto-approved with comment",
    DecisionAction.REQUIRE_REVIEW: "Requires human review",
    DecisionAction.REQUIRE_SENIOR_REVIEW: "Requires senior review",
    DecisionAction.BLOCK: "Change blocked - review required",
}

ACTION_RECOMMENDATIONS = {
    DecisionAction.AUTO_APPROVE: "Consider running tests manually for extra confidence",
    DecisionAction.REQUIRE_REVIEW: "Request review from at least one team member",
    DecisionAction.REQUIRE_SENIOR_REVIEW: "Request review from a senior engineer or tech lead",
    DecisionAction.BLOCK: "Address all blocking issues before attempting merge",
}


def build_summary(action: DecisionAction) -> str:
    return SUMMARIES[action]


def generate_recommendations(
    action: DecisionAction,
    findings: list[Finding],
    policy_results: list[PolicyResult],
    ci_status: CIStatus | None = None,
) -> list[str]:
    recommendations: list[str] = []

    if findings:
        recommendations.append("Review and fix security findings before merging")
    if any(r.status == PolicyStatus.FAILED for r in policy_results):
        recommendations.append("Address policy violations before merging")
    if ci_status is not None and ci_status.is_failing:
        recommendations.append("Fix failing CI checks before merging")
    if ci_status is not None and ci_status.is_pending:
        recommendations.append("Wait for CI checks to complete")

    if action in ACTION_RECOMMENDATIONS:
        recommendations.append(ACTION_RECOMMENDATIONS[action])
    return recommendations


def generate_next_steps(
    action: DecisionAction,
    findings: list[Finding],
    ci_status: CIStatus | None = None,
) -> list[str]:
    steps: list[str] = []

    if any(f.severity == Severity.CRITICAL for f in findings):
        steps.append("Immediately fix critical security vulnerabilities")
    if ci_status is not None and ci_status.is_failing:
        steps.append("Fix failing CI checks")
    if ci_status is not None and ci_status.is_pending:
        steps.append("Wait for CI checks to complete")

    if action == DecisionAction.BLOCK:
        steps.append("Re-run analysis after fixes")
    elif action in (DecisionAction.REQUIRE_REVIEW, DecisionAction.REQUIRE_SENIOR_REVIEW):
        steps.append("Update PR description with changes made")
        steps.append("Request review from appropriate team members")
    else:
        steps.append("Monitor CI checks for any failures")
    return steps
