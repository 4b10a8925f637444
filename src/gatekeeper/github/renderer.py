"""Markdown renderer for the gatekeeper decision.

Generates a GitHub-flavored markdown comment with:
  - Decision badge (action, confidence, blast radius)
  - Decision factors table
  - Blast radius breakdown and risk signals
  - Security findings and policy results
  - Recommendations and next steps
"""

from __future__ import annotations

from gatekeeper.models import BlastRadiusResult, DecisionAction, Finding
from gatekeeper.pipeline import AnalysisResult
from gatekeeper.policy.models import PolicyResult, PolicyStatus

_ACTION_BADGES = {
    DecisionAction.AUTO_APPROVE: ("🟢", "AUTO-APPROVE"),
    DecisionAction.AUTO_APPROVE_COMMENT: ("🟢", "AUTO-APPROVE (WITH COMMENT)"),
    DecisionAction.REQUIRE_REVIEW: ("🟡", "REVIEW REQUIRED"),
    DecisionAction.REQUIRE_SENIOR_REVIEW: ("🟠", "SENIOR REVIEW REQUIRED"),
    DecisionAction.BLOCK: ("⛔", "BLOCKED"),
}

_POLICY_ICONS = {
    PolicyStatus.PASSED: "✅",
    PolicyStatus.WARNING: "⚠️",
    PolicyStatus.FAILED: "🚫",
    PolicyStatus.SKIPPED: "⏭️",
}

MAX_FINDINGS = 20


def render_decision_comment(result: AnalysisResult) -> str:
    """Render the full analysis as a GitHub markdown comment."""
    decision = result.decision
    sections: list[str] = []

    sections.append("## PR Gatekeeper")
    sections.append("")

    emoji, label = action_badge(decision.action)
    sections.append("| Decision | Confidence | Blast Radius | Findings |")
    sections.append("|:---:|:---:|:---:|:---:|")
    sections.append(
        f"| {emoji} **{label}** | "
        f"{decision.confidence:.0%} | "
        f"{result.blast_radius.score}/100 | "
        f"{len(result.security_findings)} |"
    )
    sections.append("")
    sections.append(f"> {decision.reasoning.summary}")
    sections.append("")

    # Decision factors
    sections.append("### Decision Factors")
    sections.append("")
    sections.append("| Factor | Impact | Score | Details |")
    sections.append("|:-------|:-------|:-----:|:--------|")
    for factor in decision.reasoning.factors:
        sections.append(
            f"| {factor.factor} | {factor.impact} | {factor.score:.2f} | {factor.details} |"
        )
    sections.append("")

    sections.extend(_render_blast_radius(result.blast_radius))

    if result.security_findings:
        sections.extend(_render_findings(result.security_findings))

    applicable = [r for r in result.policy_results if r.status != PolicyStatus.SKIPPED]
    if applicable:
        sections.extend(_render_policies(applicable))

    if decision.recommendations:
        sections.append("### Recommendations")
        sections.append("")
        for rec in decision.recommendations:
            sections.append(f"- {rec}")
        sections.append("")

    if decision.next_steps:
        sections.append("### Next Steps")
        sections.append("")
        for i, step in enumerate(decision.next_steps, start=1):
            sections.append(f"{i}. {step}")
        sections.append("")

    sections.append(_footer(decision.decision_id))
    return "\n".join(sections)


def action_badge(action: DecisionAction) -> tuple[str, str]:
    """Return (emoji, label) for a decision action."""
    return _ACTION_BADGES[action]


def _render_blast_radius(blast_radius: BlastRadiusResult) -> list[str]:
    lines = ["<details>", f"<summary>Blast radius: {blast_radius.score}/100</summary>", ""]
    lines.append("| Component | Score | Level |")
    lines.append("|:----------|:-----:|:-----:|")
    lines.append(f"| Code | {blast_radius.code_impact.score} | {blast_radius.code_impact.level.value} |")
    lines.append(f"| Tests | {blast_radius.test_impact.score} | {blast_radius.test_impact.level.value} |")
    lines.append(
        f"| Dependencies | {blast_radius.dependency_impact.score} | "
        f"{blast_radius.dependency_impact.level.value} |"
    )
    lines.append("")

    if blast_radius.risk_signals:
        lines.append("**Risk signals:**")
        for signal in blast_radius.risk_signals:
            lines.append(f"- `{signal.file}`: {signal.type.value} (x{signal.multiplier:g})")
        lines.append("")

    lines.append("</details>")
    lines.append("")
    return lines


def _render_findings(findings: list[Finding]) -> list[str]:
    lines = ["### Security Findings", ""]
    lines.append("| Severity | Type | Location | Description |")
    lines.append("|:--------:|:-----|:---------|:------------|")
    for finding in findings[:MAX_FINDINGS]:
        lines.append(
            f"| {finding.severity.value} | {finding.type.value} | "
            f"`{finding.location}` | {finding.description} |"
        )
    if len(findings) > MAX_FINDINGS:
        lines.append(f"| | | | ... and {len(findings) - MAX_FINDINGS} more |")
    lines.append("")
    return lines


def _render_policies(results: list[PolicyResult]) -> list[str]:
    lines = ["### Policies", ""]
    for result in results:
        icon = _POLICY_ICONS[result.status]
        lines.append(f"- {icon} **{result.name}**: {result.status.value}")
        for outcome in result.validations:
            if outcome.status == PolicyStatus.FAILED and outcome.message:
                lines.append(f"  - {outcome.message}")
    lines.append("")
    return lines


def _footer(decision_id: str) -> str:
    return f"---\n*PR Gatekeeper decision `{decision_id}`*"
