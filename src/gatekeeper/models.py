"""Data models for pull requests, impact scores, findings and decisions.

Every model here is immutable value data: each one is produced by exactly
one pipeline stage and only read by the stages after it.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class FrozenModel(BaseModel):
    """Base for value models. Accepts snake_case or camelCase keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class FileStatus(str, Enum):
    """How a file was touched by the change."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"


class ImpactLevel(str, Enum):
    """Qualitative level of a blast radius sub-score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Severity(str, Enum):
    """Finding severity, totally ordered low < medium < high < critical."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class Confidence(str, Enum):
    """How sure a detector is about a finding."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class FindingType(str, Enum):
    SECRET = "secret"
    INJECTION = "injection"
    DEPENDENCY = "dependency"


class RiskSignalType(str, Enum):
    BLOCKED_PATH = "blocked_path"
    CONFIG_CHANGE = "config_change"
    AUTH_CHANGE = "auth_change"
    CRITICAL_PATH = "critical_path"


class DecisionAction(str, Enum):
    """Final merge decision, from most to least permissive."""

    AUTO_APPROVE = "auto_approve"
    AUTO_APPROVE_COMMENT = "auto_approve_comment"
    REQUIRE_REVIEW = "require_review"
    REQUIRE_SENIOR_REVIEW = "require_senior_review"
    BLOCK = "block"


# =========================================================================
# Pull request snapshot
# =========================================================================


class FileChange(FrozenModel):
    """A single file changed by the pull request."""

    path: str = Field(validation_alias=AliasChoices("path", "filename"))
    status: FileStatus = FileStatus.MODIFIED
    additions: int = 0
    deletions: int = 0
    changes: int = 0
    patch: str | None = None  # Unified diff hunks, when the API returned them
    previous_path: str | None = None  # For renames

    @model_validator(mode="before")
    @classmethod
    def _default_changes(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("changes"):
            data = dict(data)
            data["changes"] = data.get("additions", 0) + data.get("deletions", 0)
        return data

    @property
    def added_lines(self) -> list[str]:
        """Content of the lines this change adds, without the leading '+'."""
        return [content for _, content in self.iter_added_lines()]

    def iter_added_lines(self):
        """Yield (patch_line_number, content) for every added line in the patch.

        Line numbers are 1-based positions within the patch text. Diff
        headers ('+++') are not additions.
        """
        if not self.patch:
            return
        for index, line in enumerate(self.patch.split("\n"), start=1):
            if line.startswith("+") and not line.startswith("+++"):
                yield index, line[1:]


class PullRequestSnapshot(FrozenModel):
    """Everything the pipeline knows about a pull request.

    Aggregate ``additions``/``deletions`` come from the hosting API; when
    they are not supplied they are summed from the files.
    """

    number: int
    title: str = ""
    body: str | None = None
    author: str = ""
    source_branch: str = ""
    target_branch: str = "main"
    additions: int = 0
    deletions: int = 0
    url: str | None = None
    files: list[FileChange] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _default_totals(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        files = data.get("files") or []
        for key in ("additions", "deletions"):
            if data.get(key) is None:
                data = dict(data)
                data[key] = sum(
                    (f.get(key, 0) if isinstance(f, dict) else getattr(f, key, 0))
                    for f in files
                )
        return data

    @property
    def file_count(self) -> int:
        return len(self.files)

    @property
    def line_count(self) -> int:
        return self.additions + self.deletions


class Approval(FrozenModel):
    """An approving review on the pull request."""

    user: str
    submitted_at: str = ""
    id: int = 0


class StatusCheck(FrozenModel):
    context: str
    state: str
    description: str | None = None


class CIStatus(FrozenModel):
    """Combined commit status for the pull request head."""

    state: str
    total_count: int = 0
    statuses: list[StatusCheck] = Field(default_factory=list)

    @property
    def normalized_state(self) -> str:
        return self.state.lower()

    @property
    def is_failing(self) -> bool:
        return self.normalized_state in ("failure", "error")

    @property
    def is_pending(self) -> bool:
        return self.normalized_state == "pending"


# =========================================================================
# Blast radius
# =========================================================================


class RiskSignal(FrozenModel):
    """A contextual multiplier triggered by a sensitive file."""

    type: RiskSignalType
    multiplier: float
    file: str
    pattern: str | None = None


class CodeImpactDetails(FrozenModel):
    score: int
    level: ImpactLevel
    file_count: int = 0
    line_count: int = 0
    critical_path_impact: float = 0.0
    safe_path_reduction: int = 0
    path_weight: float = 1.0  # Strongest critical / weakest safe multiplier applied


class TestImpactDetails(FrozenModel):
    __test__ = False  # Not a pytest test class

    score: int
    level: ImpactLevel
    test_files: int = 0
    test_additions: int = 0


class DependencyImpactDetails(FrozenModel):
    score: int
    level: ImpactLevel
    dep_files: int = 0
    dep_additions: int = 0


class BlastRadiusResult(FrozenModel):
    """Overall impact score (0-100) with its three sub-scores."""

    score: int
    code_impact: CodeImpactDetails
    test_impact: TestImpactDetails
    dependency_impact: DependencyImpactDetails
    risk_signals: list[RiskSignal] = Field(default_factory=list)

    @property
    def levels(self) -> dict[str, ImpactLevel]:
        return {
            "code": self.code_impact.level,
            "test": self.test_impact.level,
            "dependency": self.dependency_impact.level,
        }

    @property
    def multiplier(self) -> float:
        """Product of all risk signal multipliers."""
        product = 1.0
        for signal in self.risk_signals:
            product *= signal.multiplier
        return product


# =========================================================================
# Security findings
# =========================================================================


class Finding(FrozenModel):
    """A single security-relevant detection in the diff."""

    type: FindingType
    pattern: str | None = None
    severity: Severity
    confidence: Confidence
    location: str  # "path:line" or just "path"
    snippet: str = ""
    description: str = ""

    @property
    def file(self) -> str:
        return self.location.rsplit(":", 1)[0] if ":" in self.location else self.location


# =========================================================================
# Decision
# =========================================================================


class DecisionFactor(FrozenModel):
    """One named input to the decision confidence."""

    factor: str
    impact: str
    score: float
    details: str = ""


class Reasoning(FrozenModel):
    summary: str
    factors: list[DecisionFactor] = Field(default_factory=list)


class Decision(FrozenModel):
    """The merge decision for one analysis run."""

    decision_id: str
    action: DecisionAction
    confidence: float
    reasoning: Reasoning
    recommendations: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)

    @property
    def factors(self) -> list[DecisionFactor]:
        return self.reasoning.factors

    def factor(self, name: str) -> DecisionFactor | None:
        for factor in self.reasoning.factors:
            if factor.factor == name:
                return factor
        return None

