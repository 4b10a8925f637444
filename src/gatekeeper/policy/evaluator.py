"""Policy evaluator - branch-scoped rules built from typed validations."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from gatekeeper.analysis.paths import match_any
from gatekeeper.models import BlastRadiusResult, Finding, PullRequestSnapshot, Severity
from gatekeeper.policy.models import (
    BlastRadiusValidation,
    BlockedPathValidation,
    ChangelogValidation,
    FileCountValidation,
    JiraTicketValidation,
    PolicyAction,
    PolicyResult,
    PolicyRule,
    PolicyStatus,
    RuleConditions,
    SecurityValidation,
    Validation,
    ValidationOutcome,
)

if TYPE_CHECKING:
    from gatekeeper.config import PoliciesConfig

logger = logging.getLogger("gatekeeper.policy")

PROTECTED_BRANCHES = ["main", "production", "master"]

JIRA_KEY_PATTERNS = (
    re.compile(r"\b[a-z]+-\d+\b", re.IGNORECASE),  # PROJ-123
    re.compile(r"\[[a-z]+-\d+\]", re.IGNORECASE),  # [PROJ-123]
    re.compile(r"\([a-z]+-\d+\)", re.IGNORECASE),  # (PROJ-123)
)

CHANGELOG_PATTERNS = (
    re.compile(r"##\s*changelog", re.IGNORECASE),
    re.compile(r"changelog:\s*", re.IGNORECASE),
    re.compile(r"changes:\s*", re.IGNORECASE),
    re.compile(r"what's new:", re.IGNORECASE),
    re.compile(r"what changed:", re.IGNORECASE),
)


@dataclass(frozen=True)
class BuiltinRule:
    """A rule plus the feature flag that turns it on."""

    enabled: Callable[[PoliciesConfig], bool]
    rule: PolicyRule


def _protected() -> RuleConditions:
    return RuleConditions(target_branch=PROTECTED_BRANCHES)


BUILTIN_RULES: tuple[BuiltinRule, ...] = (
    BuiltinRule(
        enabled=lambda c: "SOC2" in c.frameworks,
        rule=PolicyRule(
            rule_id="soc2-no-secrets",
            name="SOC 2: No Hardcoded Secrets",
            category="security",
            conditions=_protected(),
            validations=[SecurityValidation(min_severity=Severity.CRITICAL, block=True)],
        ),
    ),
    BuiltinRule(
        enabled=lambda c: "SOC2" in c.frameworks,
        rule=PolicyRule(
            rule_id="soc2-blast-radius",
            name="SOC 2: Blast Radius Check",
            category="workflow",
            conditions=_protected(),
            validations=[BlastRadiusValidation(max_score=80, action=PolicyAction.WARN)],
        ),
    ),
    BuiltinRule(
        enabled=lambda c: True,
        rule=PolicyRule(
            rule_id="branch-protection",
            name="Branch Protection",
            category="workflow",
            conditions=_protected(),
            validations=[FileCountValidation(max_files=100)],
        ),
    ),
    BuiltinRule(
        enabled=lambda c: c.require_jira_ticket,
        rule=PolicyRule(
            rule_id="jira-ticket-required",
            name="Jira Ticket Required",
            category="workflow",
            conditions=_protected(),
            validations=[JiraTicketValidation()],
        ),
    ),
    BuiltinRule(
        enabled=lambda c: c.require_changelog,
        rule=PolicyRule(
            rule_id="changelog-required",
            name="Changelog Required",
            category="documentation",
            conditions=_protected(),
            validations=[ChangelogValidation()],
        ),
    ),
)


def build_rules(config: PoliciesConfig) -> list[PolicyRule]:
    """Select the built-in rules enabled by ``config`` and append custom rules."""
    rules = [entry.rule for entry in BUILTIN_RULES if entry.enabled(config)]
    rules.extend(config.rules)
    return rules


def reduce_outcomes(outcomes: list[ValidationOutcome]) -> tuple[PolicyStatus, PolicyAction | None]:
    """Fold validation outcomes into a rule status and action."""
    failed = [o for o in outcomes if o.status == PolicyStatus.FAILED]
    if any(o.action == PolicyAction.BLOCK for o in failed):
        return PolicyStatus.FAILED, PolicyAction.BLOCK
    if failed:
        return PolicyStatus.WARNING, PolicyAction.WARN
    return PolicyStatus.PASSED, None


class PolicyEvaluator:
    """Evaluates the configured policy rules against a pull request.

    The rule list is assembled once, at construction.
    """

    def __init__(self, config: PoliciesConfig) -> None:
        self.config = config
        self.rules: tuple[PolicyRule, ...] = tuple(build_rules(config))

    def evaluate(
        self,
        pr: PullRequestSnapshot,
        blast_radius: BlastRadiusResult,
        findings: list[Finding],
    ) -> list[PolicyResult]:
        if not self.config.enabled:
            return []

        results = [self.evaluate_rule(rule, pr, blast_radius, findings) for rule in self.rules]
        logger.debug(
            "PR #%s: %d rule(s), statuses %s",
            pr.number, len(results), [r.status.value for r in results],
        )
        return results

    def evaluate_rule(
        self,
        rule: PolicyRule,
        pr: PullRequestSnapshot,
        blast_radius: BlastRadiusResult,
        findings: list[Finding],
    ) -> PolicyResult:
        if not rule.applies_to(pr.target_branch):
            return PolicyResult(
                rule_id=rule.rule_id,
                name=rule.name,
                status=PolicyStatus.SKIPPED,
                reason="Rule conditions not met",
            )

        outcomes = [
            run_validation(validation, pr, blast_radius, findings)
            for validation in rule.validations
        ]
        status, action = reduce_outcomes(outcomes)

        return PolicyResult(
            rule_id=rule.rule_id,
            name=rule.name,
            status=status,
            action=action,
            validations=outcomes,
            message=_rule_message(rule, status),
        )


def run_validation(
    validation: Validation,
    pr: PullRequestSnapshot,
    blast_radius: BlastRadiusResult,
    findings: list[Finding],
) -> ValidationOutcome:
    """Dispatch on the validation kind. Unknown kinds are skipped."""
    if isinstance(validation, BlastRadiusValidation):
        return _validate_blast_radius(validation, blast_radius)
    if isinstance(validation, SecurityValidation):
        return _validate_security(validation, findings)
    if isinstance(validation, BlockedPathValidation):
        return _validate_blocked_path(validation, pr)
    if isinstance(validation, FileCountValidation):
        return _validate_file_count(validation, pr)
    if isinstance(validation, JiraTicketValidation):
        return _validate_jira_ticket(validation, pr)
    if isinstance(validation, ChangelogValidation):
        return _validate_changelog(validation, pr)
    return ValidationOutcome(
        type=validation.type,
        status=PolicyStatus.SKIPPED,
        reason="Unknown validation type",
    )


def _passed(kind: str) -> ValidationOutcome:
    return ValidationOutcome(type=kind, status=PolicyStatus.PASSED)


def _validate_blast_radius(
    validation: BlastRadiusValidation, blast_radius: BlastRadiusResult
) -> ValidationOutcome:
    if blast_radius.score > validation.max_score:
        return ValidationOutcome(
            type=validation.type,
            status=PolicyStatus.FAILED,
            action=validation.action,
            message=(
                f"Blast radius score {blast_radius.score} exceeds threshold "
                f"{validation.max_score}"
            ),
        )
    return _passed(validation.type)


def _validate_security(
    validation: SecurityValidation, findings: list[Finding]
) -> ValidationOutcome:
    severe = [f for f in findings if f.severity >= validation.min_severity]
    if severe:
        return ValidationOutcome(
            type=validation.type,
            status=PolicyStatus.FAILED,
            action=PolicyAction.BLOCK if validation.block else PolicyAction.WARN,
            message=(
                f"Found {len(severe)} {validation.min_severity.value}+ severity "
                f"security issue(s)"
            ),
        )
    return _passed(validation.type)


def _validate_blocked_path(
    validation: BlockedPathValidation, pr: PullRequestSnapshot
) -> ValidationOutcome:
    for file in pr.files:
        pattern = match_any(file.path, validation.paths)
        if pattern is not None:
            return ValidationOutcome(
                type=validation.type,
                status=PolicyStatus.FAILED,
                action=PolicyAction.BLOCK,
                message=f"File {file.path} matches blocked pattern {pattern}",
            )
    return _passed(validation.type)


def _validate_file_count(
    validation: FileCountValidation, pr: PullRequestSnapshot
) -> ValidationOutcome:
    if pr.file_count > validation.max_files:
        return ValidationOutcome(
            type=validation.type,
            status=PolicyStatus.FAILED,
            action=PolicyAction.WARN,
            message=f"{pr.file_count} files changed exceeds threshold {validation.max_files}",
        )
    return _passed(validation.type)


def _validate_jira_ticket(
    validation: JiraTicketValidation, pr: PullRequestSnapshot
) -> ValidationOutcome:
    body = pr.body or ""
    if any(p.search(body) for p in JIRA_KEY_PATTERNS):
        return _passed(validation.type)
    return ValidationOutcome(
        type=validation.type,
        status=PolicyStatus.FAILED,
        action=validation.action,
        message="PR description must include a Jira ticket reference (e.g., PROJ-123)",
    )


def _validate_changelog(
    validation: ChangelogValidation, pr: PullRequestSnapshot
) -> ValidationOutcome:
    body = pr.body or ""
    if any(p.search(body) for p in CHANGELOG_PATTERNS):
        return _passed(validation.type)
    return ValidationOutcome(
        type=validation.type,
        status=PolicyStatus.FAILED,
        action=validation.action,
        message="PR description must include a changelog section",
    )


def _rule_message(rule: PolicyRule, status: PolicyStatus) -> str:
    label = {
        PolicyStatus.PASSED: "passed",
        PolicyStatus.WARNING: "warning",
        PolicyStatus.FAILED: "blocked",
    }.get(status, status.value)
    return f"{rule.name}: {label}"
