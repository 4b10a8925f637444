"""Tests for configuration management."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from gatekeeper.config import (
    GatekeeperConfig,
    GitHubConfig,
    TeamThresholds,
    default_config_path,
    load_config,
    parse_config,
    save_config,
    set_config_value,
)
from gatekeeper.exceptions import ConfigError
from gatekeeper.models import Severity
from gatekeeper.policy.models import FileCountValidation


class TestConfig:
    def test_default_config(self):
        config = GatekeeperConfig()
        assert config.team.thresholds.auto_approve == 20
        assert config.team.thresholds.requires_senior_review == 80
        assert config.security.dependency_severity_threshold == Severity.MEDIUM
        assert config.decision.min_confidence == 0.7
        assert config.decision.fallback_to_review is True
        assert config.audit.log_path == ".gatekeeper/audit"
        assert config.audit.retention_days == 90
        assert config.policies.frameworks == []

    def test_save_and_load(self, tmp_path: Path):
        config = set_config_value(GatekeeperConfig(), "team.team_id", "payments")
        saved = save_config(tmp_path, config)
        assert saved == default_config_path(tmp_path)

        loaded = load_config(tmp_path)
        assert loaded.team.team_id == "payments"

    def test_load_file_path(self, tmp_path: Path):
        path = tmp_path / "gatekeeper.json"
        path.write_text(json.dumps({"decision": {"min_confidence": 0.5}}))
        assert load_config(path).decision.min_confidence == 0.5

    def test_missing_file_gives_defaults(self, tmp_path: Path):
        assert load_config(tmp_path) == GatekeeperConfig()

    def test_camel_case_keys(self):
        config = parse_config({
            "team": {
                "teamId": "platform",
                "criticalPaths": {"auth/**": {"baseScore": 50, "multiplier": 2}},
                "blockedPaths": ["secrets/**"],
            },
            "security": {"dependencySeverityThreshold": "high"},
            "policies": {
                "requireJiraTicket": True,
                "rules": [{"ruleId": "small", "name": "Small", "validations": [{"type": "file_count"}]}],
            },
            "decision": {"minConfidence": 0.6, "fallbackToReview": False},
        })
        assert config.team.team_id == "platform"
        assert config.team.critical_paths["auth/**"].base_score == 50
        assert config.team.blocked_paths == ["secrets/**"]
        assert config.security.dependency_severity_threshold == Severity.HIGH
        assert config.policies.require_jira_ticket is True
        assert isinstance(config.policies.rules[0].validations[0], FileCountValidation)
        assert config.decision.fallback_to_review is False


class TestValidation:
    def test_thresholds_must_increase(self):
        with pytest.raises(ConfigError):
            parse_config({"team": {"thresholds": {"auto_approve": 50, "auto_approve_with_comment": 40}}})

    def test_thresholds_in_range(self):
        with pytest.raises(ValueError):
            TeamThresholds(requires_senior_review=120)

    def test_unknown_severity(self):
        with pytest.raises(ConfigError):
            parse_config({"security": {"dependency_severity_threshold": "severe"}})

    def test_min_confidence_range(self):
        with pytest.raises(ConfigError):
            parse_config({"decision": {"min_confidence": 1.5}})

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_non_object_json(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigError):
            load_config(path)


class TestSetConfigValue:
    def test_set_nested(self):
        updated = set_config_value(GatekeeperConfig(), "decision.min_confidence", 0.5)
        assert updated.decision.min_confidence == 0.5

    def test_set_deeply_nested(self):
        updated = set_config_value(GatekeeperConfig(), "team.thresholds.auto_approve", 10)
        assert updated.team.thresholds.auto_approve == 10

    def test_set_invalid_key(self):
        with pytest.raises(KeyError):
            set_config_value(GatekeeperConfig(), "nonexistent.key", "value")

    def test_set_invalid_value(self):
        with pytest.raises(ConfigError):
            set_config_value(GatekeeperConfig(), "team.thresholds.auto_approve", 90)


class TestGitHubConfig:
    def test_token_from_env(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghs_example")
        assert GitHubConfig().token == "ghs_example"

    def test_gh_token_fallback(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("GH_TOKEN", "gho_example")
        assert GitHubConfig().token == "gho_example"

    def test_custom_env_var(self, monkeypatch):
        monkeypatch.setenv("CI_GITHUB_TOKEN", "ghs_custom")
        assert GitHubConfig(token_env="CI_GITHUB_TOKEN").token == "ghs_custom"
