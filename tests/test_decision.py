"""Tests for the decision engine."""

from __future__ import annotations

import uuid

import pytest

from gatekeeper.config import DecisionConfig, TeamConfig
from gatekeeper.decision import DecisionEngine
from gatekeeper.models import (
    Approval,
    CIStatus,
    Confidence,
    DecisionAction,
    Finding,
    FindingType,
    Severity,
    StatusCheck,
)
from gatekeeper.policy.models import PolicyAction, PolicyResult, PolicyStatus


def _finding(severity: Severity) -> Finding:
    return Finding(
        type=FindingType.SECRET,
        severity=severity,
        confidence=Confidence.HIGH,
        location="app.py:1",
    )


def _policy(status: PolicyStatus, action: PolicyAction | None = None) -> PolicyResult:
    return PolicyResult(rule_id="rule", name="Rule", status=status, action=action)


def _approvals(count: int) -> list[Approval]:
    return [Approval(user=f"reviewer{i}", id=i) for i in range(count)]


@pytest.fixture
def engine() -> DecisionEngine:
    return DecisionEngine(DecisionConfig(), TeamConfig(), id_factory=lambda: "decision-1")


class TestThresholds:
    def test_low_score_auto_approves(self, engine, make_blast_radius):
        decision = engine.make(make_blast_radius(12), [], [])
        assert decision.action == DecisionAction.AUTO_APPROVE
        assert decision.confidence == pytest.approx(1.0)

    @pytest.mark.parametrize(
        "score,action",
        [
            (20, DecisionAction.AUTO_APPROVE),
            (21, DecisionAction.AUTO_APPROVE_COMMENT),
            (40, DecisionAction.AUTO_APPROVE_COMMENT),
            (50, DecisionAction.REQUIRE_REVIEW),
            (70, DecisionAction.REQUIRE_SENIOR_REVIEW),
            (90, DecisionAction.BLOCK),
        ],
    )
    def test_threshold_bands(self, engine, make_blast_radius, score, action):
        assert engine.make(make_blast_radius(score), [], []).action == action

    def test_custom_thresholds(self, make_blast_radius):
        team = TeamConfig.model_validate({
            "thresholds": {
                "autoApprove": 5,
                "autoApproveWithComment": 10,
                "requiresReview": 15,
                "requiresSeniorReview": 30,
            }
        })
        engine = DecisionEngine(DecisionConfig(), team)
        assert engine.make(make_blast_radius(12), [], []).action == DecisionAction.REQUIRE_REVIEW


class TestOverrides:
    def test_critical_finding_blocks(self, engine, make_blast_radius):
        decision = engine.make(make_blast_radius(0), [_finding(Severity.CRITICAL)], [])
        assert decision.action == DecisionAction.BLOCK
        # 0.4 * 0.0 + 0.3 * 1.0 + 0.3 * 1.0
        assert decision.confidence == pytest.approx(0.6)

    def test_blocking_policy_blocks(self, engine, make_blast_radius):
        policies = [_policy(PolicyStatus.FAILED, PolicyAction.BLOCK)]
        assert engine.make(make_blast_radius(5), [], policies).action == DecisionAction.BLOCK

    def test_warning_policy_does_not_block(self, engine, make_blast_radius):
        policies = [_policy(PolicyStatus.WARNING, PolicyAction.WARN)]
        decision = engine.make(make_blast_radius(5), [], policies)
        assert decision.action == DecisionAction.AUTO_APPROVE
        assert decision.factor("policy_compliance").score == pytest.approx(0.7)

    @pytest.mark.parametrize("state", ["failure", "error", "FAILURE"])
    def test_failing_ci_blocks(self, engine, make_blast_radius, state):
        decision = engine.make(make_blast_radius(5), [], [], ci_status=CIStatus(state=state))
        assert decision.action == DecisionAction.BLOCK

    def test_override_not_softened_by_low_confidence(self, engine, make_blast_radius):
        findings = [_finding(Severity.CRITICAL)]
        policies = [_policy(PolicyStatus.FAILED, PolicyAction.BLOCK)]
        decision = engine.make(make_blast_radius(95), findings, policies)
        assert decision.confidence < 0.7
        assert decision.action == DecisionAction.BLOCK


class TestLowConfidence:
    def test_falls_back_to_review(self, engine, make_blast_radius):
        decision = engine.make(make_blast_radius(90), [_finding(Severity.HIGH)], [])
        # 0.4 * 0.2 + 0.3 * 0.2 + 0.3 * 1.0
        assert decision.confidence == pytest.approx(0.44)
        assert decision.action == DecisionAction.REQUIRE_REVIEW

    def test_fallback_disabled(self, make_blast_radius):
        engine = DecisionEngine(DecisionConfig(fallback_to_review=False), TeamConfig())
        decision = engine.make(make_blast_radius(90), [_finding(Severity.HIGH)], [])
        assert decision.action == DecisionAction.BLOCK


class TestConfidenceScale:
    """Confidence is not renormalized when optional signals are missing."""

    def test_no_signals_tops_out_at_one(self, engine, make_blast_radius):
        assert engine.make(make_blast_radius(0), [], []).confidence == pytest.approx(1.0)

    def test_approvals_only_tops_out_below_one(self, engine, make_blast_radius):
        decision = engine.make(make_blast_radius(0), [], [], approvals=_approvals(2))
        assert decision.confidence == pytest.approx(0.95)

    def test_ci_only_tops_out_below_one(self, engine, make_blast_radius):
        decision = engine.make(make_blast_radius(0), [], [], ci_status=CIStatus(state="success"))
        assert decision.confidence == pytest.approx(0.90)

    def test_both_signals(self, engine, make_blast_radius):
        decision = engine.make(
            make_blast_radius(0), [], [],
            approvals=_approvals(2), ci_status=CIStatus(state="success"),
        )
        assert decision.confidence == pytest.approx(1.0)

    @pytest.mark.parametrize("count,score", [(0, 0.5), (1, 0.7), (3, 1.0)])
    def test_approval_factor(self, engine, make_blast_radius, count, score):
        decision = engine.make(make_blast_radius(0), [], [], approvals=_approvals(count))
        assert decision.factor("approvals").score == pytest.approx(score)

    @pytest.mark.parametrize(
        "state,score", [("success", 1.0), ("pending", 0.5), ("error", 0.0), ("unknown", 0.6)]
    )
    def test_ci_factor(self, engine, make_blast_radius, state, score):
        decision = engine.make(make_blast_radius(0), [], [], ci_status=CIStatus(state=state))
        assert decision.factor("ci_status").score == pytest.approx(score)

    def test_ci_factor_counts_failed_checks(self, engine, make_blast_radius):
        ci = CIStatus(
            state="failure",
            statuses=[
                StatusCheck(context="lint", state="success"),
                StatusCheck(context="tests", state="failure"),
                StatusCheck(context="build", state="error"),
            ],
        )
        decision = engine.make(make_blast_radius(0), [], [], ci_status=ci)
        assert decision.factor("ci_status").details == "2 CI check(s) failed"

    @pytest.mark.parametrize(
        "score,factor_score",
        [(20, 1.0), (40, 0.8), (60, 0.6), (80, 0.4), (81, 0.2)],
    )
    def test_blast_radius_bands(self, engine, make_blast_radius, score, factor_score):
        decision = engine.make(make_blast_radius(score), [], [])
        assert decision.factor("blast_radius").score == pytest.approx(factor_score)

    def test_security_factor_lower_severity(self, engine, make_blast_radius):
        decision = engine.make(make_blast_radius(0), [_finding(Severity.MEDIUM)], [])
        assert decision.factor("security_findings").score == pytest.approx(0.6)

    def test_skipped_policies_ignored(self, engine, make_blast_radius):
        decision = engine.make(make_blast_radius(0), [], [_policy(PolicyStatus.SKIPPED)])
        factor = decision.factor("policy_compliance")
        assert factor.score == pytest.approx(1.0)
        assert factor.details == "No policies applicable"

    def test_factor_order(self, engine, make_blast_radius):
        decision = engine.make(
            make_blast_radius(0), [], [],
            approvals=_approvals(1), ci_status=CIStatus(state="success"),
        )
        assert [f.factor for f in decision.factors] == [
            "security_findings",
            "blast_radius",
            "policy_compliance",
            "approvals",
            "ci_status",
        ]


class TestRecommendations:
    def test_auto_approve(self, engine, make_blast_radius):
        decision = engine.make(make_blast_radius(5), [], [])
        assert decision.reasoning.summary == "Safe change - auto-approved"
        assert decision.recommendations == ["Consider running tests manually for extra confidence"]
        assert decision.next_steps == ["Monitor CI checks for any failures"]

    def test_auto_approve_with_comment(self, engine, make_blast_radius):
        decision = engine.make(make_blast_radius(30), [], [])
        assert decision.recommendations == []
        assert decision.next_steps == ["Monitor CI checks for any failures"]

    def test_senior_review(self, engine, make_blast_radius):
        decision = engine.make(make_blast_radius(70), [], [])
        assert decision.recommendations == ["Request review from a senior engineer or tech lead"]
        assert decision.next_steps == [
            "Update PR description with changes made",
            "Request review from appropriate team members",
        ]

    def test_block_on_critical(self, engine, make_blast_radius):
        decision = engine.make(make_blast_radius(0), [_finding(Severity.CRITICAL)], [])
        assert decision.reasoning.summary == "Change blocked - review required"
        assert decision.recommendations == [
            "Review and fix security findings before merging",
            "Address all blocking issues before attempting merge",
        ]
        assert decision.next_steps == [
            "Immediately fix critical security vulnerabilities",
            "Re-run analysis after fixes",
        ]

    def test_ci_pending(self, engine, make_blast_radius):
        decision = engine.make(make_blast_radius(5), [], [], ci_status=CIStatus(state="pending"))
        assert "Wait for CI checks to complete" in decision.recommendations
        assert "Wait for CI checks to complete" in decision.next_steps

    def test_policy_violation(self, engine, make_blast_radius):
        policies = [_policy(PolicyStatus.FAILED, PolicyAction.BLOCK)]
        decision = engine.make(make_blast_radius(5), [], policies)
        assert decision.recommendations[0] == "Address policy violations before merging"


class TestDecisionId:
    def test_injected_id(self, engine, make_blast_radius):
        assert engine.make(make_blast_radius(5), [], []).decision_id == "decision-1"

    def test_default_uuid(self, make_blast_radius):
        engine = DecisionEngine(DecisionConfig(), TeamConfig())
        first = engine.make(make_blast_radius(5), [], [])
        second = engine.make(make_blast_radius(5), [], [])
        uuid.UUID(first.decision_id)
        assert first.decision_id != second.decision_id
        assert first.model_dump(exclude={"decision_id"}) == second.model_dump(exclude={"decision_id"})
