"""Tests for the end-to-end pipeline."""

from __future__ import annotations

import pytest
from conftest import AWS_KEY_LINE, added_patch

from gatekeeper.config import GatekeeperConfig, PoliciesConfig
from gatekeeper.exceptions import PRNotFoundError
from gatekeeper.models import Approval, CIStatus, DecisionAction, FindingType
from gatekeeper.pipeline import STAGES, Gatekeeper
from gatekeeper.policy.models import PolicyStatus


@pytest.fixture
def sample_pr(make_pr, make_file):
    return make_pr(
        [
            make_file("src/auth/session.py", additions=40, deletions=10),
            make_file("tests/test_session.py", additions=60),
            make_file("package.json", patch=added_patch('"left-pad": "^1.3.0",')),
        ],
        body="Fixes AUTH-12",
    )


class FakeClient:
    """Stands in for GitHubClient."""

    def __init__(self, pr, approvals=None, ci_status=None):
        self.pr = pr
        self.approvals = approvals
        self.ci_status = ci_status
        self.calls: list[tuple] = []

    def get_pr(self, owner, repo, number):
        self.calls.append(("get_pr", owner, repo, number))
        if number != self.pr.number:
            raise PRNotFoundError(owner, repo, number)
        return self.pr

    def get_approvals(self, owner, repo, number):
        return self.approvals

    def get_status_checks(self, owner, repo, number):
        return self.ci_status


class TestEvaluate:
    def test_stage_outputs(self, sample_pr):
        result = Gatekeeper().evaluate(sample_pr)
        assert result.pr == sample_pr
        assert result.blast_radius.score > 0
        assert [f.type for f in result.security_findings] == [FindingType.DEPENDENCY]
        assert [r.rule_id for r in result.policy_results] == ["branch-protection"]
        assert result.decision.action in DecisionAction
        assert result.approvals is None
        assert result.ci_status is None

    def test_critical_finding_forces_block(self, make_pr, make_file):
        pr = make_pr([make_file("docs/notes.md", additions=1, patch=added_patch(AWS_KEY_LINE))])
        result = Gatekeeper().evaluate(pr)
        assert result.blast_radius.score <= 20
        assert result.decision.action == DecisionAction.BLOCK

    def test_small_clean_change_auto_approves(self, make_pr, make_file):
        pr = make_pr([make_file("docs/README.md", additions=5, deletions=2)])
        result = Gatekeeper().evaluate(pr)
        assert result.blast_radius.score == 8
        assert result.decision.action == DecisionAction.AUTO_APPROVE

    def test_policies_see_scanner_output(self, make_pr, make_file):
        config = GatekeeperConfig(policies=PoliciesConfig(frameworks=["SOC2"]))
        pr = make_pr([make_file("app.ts", patch=added_patch(AWS_KEY_LINE))])
        result = Gatekeeper(config).evaluate(pr)
        statuses = {r.rule_id: r.status for r in result.policy_results}
        assert statuses["soc2-no-secrets"] == PolicyStatus.FAILED

    def test_signals_passed_through(self, sample_pr):
        approvals = [Approval(user="alice")]
        ci = CIStatus(state="success")
        result = Gatekeeper().evaluate(sample_pr, approvals=approvals, ci_status=ci)
        assert result.approvals == approvals
        assert result.decision.factor("ci_status") is not None


class TestDeterminism:
    def test_identical_inputs_identical_outputs(self, sample_pr):
        gatekeeper = Gatekeeper(id_factory=lambda: "fixed")
        assert gatekeeper.evaluate(sample_pr) == gatekeeper.evaluate(sample_pr)

    def test_only_decision_id_differs(self, sample_pr):
        gatekeeper = Gatekeeper()
        first = gatekeeper.evaluate(sample_pr).model_dump()
        second = gatekeeper.evaluate(sample_pr).model_dump()
        assert first["decision"].pop("decision_id") != second["decision"].pop("decision_id")
        assert first == second

    def test_parallel_matches_sequential(self, sample_pr):
        gatekeeper = Gatekeeper(id_factory=lambda: "fixed")
        assert gatekeeper.evaluate(sample_pr, parallel=True) == gatekeeper.evaluate(sample_pr)


class TestProgress:
    @pytest.mark.parametrize("parallel", [False, True])
    def test_reports_every_stage(self, sample_pr, parallel):
        events = []
        Gatekeeper().evaluate(
            sample_pr, parallel=parallel, on_progress=lambda *e: events.append(e)
        )
        assert events == [(stage, i, len(STAGES)) for i, stage in enumerate(STAGES, start=1)]


class TestAnalyze:
    def test_fetches_and_evaluates(self, sample_pr):
        client = FakeClient(
            sample_pr,
            approvals=[Approval(user="alice"), Approval(user="bob")],
            ci_status=CIStatus(state="pending"),
        )
        result = Gatekeeper().analyze(client, "acme", "api", sample_pr.number)
        assert client.calls == [("get_pr", "acme", "api", sample_pr.number)]
        assert len(result.approvals) == 2
        assert result.ci_status.is_pending
        assert "Wait for CI checks to complete" in result.decision.next_steps

    def test_missing_pr_propagates(self, sample_pr):
        with pytest.raises(PRNotFoundError):
            Gatekeeper().analyze(FakeClient(sample_pr), "acme", "api", 999)
