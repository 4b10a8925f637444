"""Configuration management for PR Gatekeeper."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from gatekeeper.exceptions import ConfigError
from gatekeeper.models import Severity
from gatekeeper.policy.models import PolicyRule

GATEKEEPER_DIR = ".gatekeeper"
CONFIG_FILE = "config.json"
AUDIT_DIR = "audit"


class _Section(BaseModel):
    # Keys may be snake_case or camelCase
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class GitHubConfig(_Section):
    """GitHub API access (through the ``gh`` CLI)."""

    token_env: str = "GITHUB_TOKEN"
    base_url: str | None = None  # GitHub Enterprise host, e.g. "github.example.com"
    max_attempts: int = 3
    timeout: int = 30

    @property
    def token(self) -> str | None:
        return os.environ.get(self.token_env) or os.environ.get("GH_TOKEN")


class TeamThresholds(_Section):
    """Blast radius score ceilings for each decision band."""

    auto_approve: int = 20
    auto_approve_with_comment: int = 40
    requires_review: int = 60
    requires_senior_review: int = 80

    @model_validator(mode="after")
    def _check_order(self) -> TeamThresholds:
        ordered = [
            ("auto_approve", self.auto_approve),
            ("auto_approve_with_comment", self.auto_approve_with_comment),
            ("requires_review", self.requires_review),
            ("requires_senior_review", self.requires_senior_review),
        ]
        for name, value in ordered:
            if value < 0 or value > 100:
                raise ValueError(f"Invalid thresholds: {name} must be between 0 and 100")
        for (lower_name, lower), (upper_name, upper) in zip(ordered, ordered[1:]):
            if lower >= upper:
                raise ValueError(
                    f"Invalid thresholds: {lower_name} must be less than {upper_name}"
                )
        return self


class PathRule(_Section):
    """Score adjustment for files matching a glob pattern."""

    base_score: float | None = None
    multiplier: float = 1.0


class TeamConfig(_Section):
    """Per-team scoring configuration."""

    team_id: str = "default"
    thresholds: TeamThresholds = Field(default_factory=TeamThresholds)
    critical_paths: dict[str, PathRule] = Field(default_factory=dict)
    safe_paths: dict[str, PathRule] = Field(default_factory=dict)
    blocked_paths: list[str] = Field(default_factory=list)


class SecurityConfig(_Section):
    """Toggles for the security scanner."""

    enabled: bool = True
    scan_secrets: bool = True
    scan_dependencies: bool = True
    scan_injections: bool = True
    # Severity given to dependency manifest findings
    dependency_severity_threshold: Severity = Severity.MEDIUM


class PoliciesConfig(_Section):
    """Which policy rules are active."""

    enabled: bool = True
    frameworks: list[str] = Field(default_factory=list)  # e.g. ["SOC2"]
    require_jira_ticket: bool = False
    require_changelog: bool = False
    rules: list[PolicyRule] = Field(default_factory=list)  # custom rules, run after built-ins


class DecisionConfig(_Section):
    min_confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    fallback_to_review: bool = True


class AuditConfig(_Section):
    enabled: bool = True
    log_path: str = f"{GATEKEEPER_DIR}/{AUDIT_DIR}"
    retention_days: int = 90


class GatekeeperConfig(_Section):
    """Full configuration."""

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    team: TeamConfig = Field(default_factory=TeamConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    policies: PoliciesConfig = Field(default_factory=PoliciesConfig)
    decision: DecisionConfig = Field(default_factory=DecisionConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)


def get_gatekeeper_dir(root: Path) -> Path:
    """Get the .gatekeeper directory for a project root."""
    return root / GATEKEEPER_DIR


def default_config_path(root: Path | None = None) -> Path:
    return get_gatekeeper_dir(root or Path.cwd()) / CONFIG_FILE


def parse_config(data: dict[str, Any]) -> GatekeeperConfig:
    """Validate a raw config mapping, raising ConfigError on bad values."""
    try:
        return GatekeeperConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def load_config(path: Path | None = None) -> GatekeeperConfig:
    """Load configuration from a JSON file.

    ``path`` may be the file itself or a project root containing
    ``.gatekeeper/config.json``. A missing file yields the defaults.
    """
    config_path = path or default_config_path()
    if config_path.is_dir():
        config_path = default_config_path(config_path)
    if not config_path.exists():
        return GatekeeperConfig()
    try:
        data = json.loads(config_path.read_text())
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file {config_path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a JSON object")
    return parse_config(data)


def save_config(root: Path, config: GatekeeperConfig) -> Path:
    """Save configuration to .gatekeeper/config.json."""
    gk_dir = get_gatekeeper_dir(root)
    gk_dir.mkdir(parents=True, exist_ok=True)
    config_path = gk_dir / CONFIG_FILE
    config_path.write_text(json.dumps(config.model_dump(mode="json"), indent=2))
    return config_path


def set_config_value(config: GatekeeperConfig, key: str, value: Any) -> GatekeeperConfig:
    """Set a nested config value using dot notation (e.g., 'decision.min_confidence')."""
    parts = key.split(".")
    data = config.model_dump(mode="json")
    target = data
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            raise KeyError(f"Invalid config key: {key}")
        target = target[part]
    if parts[-1] not in target:
        raise KeyError(f"Invalid config key: {key}")
    target[parts[-1]] = value
    return parse_config(data)
