"""Data models for policy rules, validations and their outcomes."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import Discriminator, Field, Tag, model_validator

from gatekeeper.models import FrozenModel, Severity


class PolicyAction(str, Enum):
    BLOCK = "block"
    WARN = "warn"


class PolicyStatus(str, Enum):
    PASSED = "passed"
    WARNING = "warning"
    FAILED = "failed"
    SKIPPED = "skipped"


# =========================================================================
# Validation kinds
# =========================================================================


class BlastRadiusValidation(FrozenModel):
    """Fails when the blast radius score exceeds ``max_score``."""

    type: Literal["blast_radius"] = "blast_radius"
    max_score: int = 60
    action: PolicyAction = PolicyAction.WARN


class SecurityValidation(FrozenModel):
    """Fails when any finding is at or above ``min_severity``.

    Without an explicit ``min_severity``, blocking rules only trip on
    critical findings and warning rules on medium ones.
    """

    type: Literal["security"] = "security"
    min_severity: Severity = Severity.MEDIUM
    block: bool = False

    @model_validator(mode="before")
    @classmethod
    def _default_min_severity(cls, data: Any) -> Any:
        if isinstance(data, dict) and "min_severity" not in data and "minSeverity" not in data:
            data = dict(data)
            data["min_severity"] = Severity.CRITICAL if data.get("block") is True else Severity.MEDIUM
        return data


class BlockedPathValidation(FrozenModel):
    """Fails (always blocking) when a changed file matches one of ``paths``."""

    type: Literal["blocked_path"] = "blocked_path"
    paths: list[str] = Field(default_factory=list)


class FileCountValidation(FrozenModel):
    type: Literal["file_count"] = "file_count"
    max_files: int = 50


class JiraTicketValidation(FrozenModel):
    """Requires an issue key such as ``PROJ-123`` in the PR description."""

    type: Literal["jira_ticket"] = "jira_ticket"
    action: PolicyAction = PolicyAction.BLOCK


class ChangelogValidation(FrozenModel):
    """Requires a changelog section in the PR description."""

    type: Literal["changelog"] = "changelog"
    action: PolicyAction = PolicyAction.BLOCK


class UnknownValidation(FrozenModel):
    """Any validation type this version does not understand. Always skipped."""

    type: str


_VALIDATION_KINDS = (
    "blast_radius",
    "security",
    "blocked_path",
    "file_count",
    "jira_ticket",
    "changelog",
)


def _validation_tag(value: Any) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return kind if kind in _VALIDATION_KINDS else "unknown"


Validation = Annotated[
    Union[
        Annotated[BlastRadiusValidation, Tag("blast_radius")],
        Annotated[SecurityValidation, Tag("security")],
        Annotated[BlockedPathValidation, Tag("blocked_path")],
        Annotated[FileCountValidation, Tag("file_count")],
        Annotated[JiraTicketValidation, Tag("jira_ticket")],
        Annotated[ChangelogValidation, Tag("changelog")],
        Annotated[UnknownValidation, Tag("unknown")],
    ],
    Discriminator(_validation_tag),
]


# =========================================================================
# Rules and outcomes
# =========================================================================


class RuleConditions(FrozenModel):
    """When a rule applies. ``None`` means no restriction."""

    target_branch: str | list[str] | None = None

    def matches(self, target_branch: str) -> bool:
        if self.target_branch is None:
            return True
        targets = (
            [self.target_branch] if isinstance(self.target_branch, str) else self.target_branch
        )
        return target_branch in targets


class PolicyRule(FrozenModel):
    """A named, branch-scoped set of validations."""

    rule_id: str
    name: str
    category: str = "workflow"
    conditions: RuleConditions | None = None
    validations: list[Validation] = Field(default_factory=list)

    def applies_to(self, target_branch: str) -> bool:
        return self.conditions is None or self.conditions.matches(target_branch)


class ValidationOutcome(FrozenModel):
    type: str
    status: PolicyStatus
    action: PolicyAction | None = None
    message: str = ""
    reason: str | None = None


class PolicyResult(FrozenModel):
    """Outcome of one rule, reduced from its validation outcomes."""

    rule_id: str
    name: str
    status: PolicyStatus
    action: PolicyAction | None = None
    validations: list[ValidationOutcome] = Field(default_factory=list)
    message: str = ""
    reason: str | None = None
