"""The risk-evaluation pipeline.

Stages run in a fixed order: the blast radius scorer and the security
scanner (independent of each other), then the policy rules, then the
decision engine. Everything here is in-memory; fetching the snapshot and
reporting the result are the caller's job.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

from pydantic import Field

from gatekeeper.analysis.blast_radius import BlastRadiusCalculator
from gatekeeper.analysis.security import SecurityScanner
from gatekeeper.config import GatekeeperConfig
from gatekeeper.decision.engine import DecisionEngine
from gatekeeper.models import (
    Approval,
    BlastRadiusResult,
    CIStatus,
    Decision,
    Finding,
    FrozenModel,
    PullRequestSnapshot,
)
from gatekeeper.policy.evaluator import PolicyEvaluator
from gatekeeper.policy.models import PolicyResult

if TYPE_CHECKING:
    from gatekeeper.github.client import GitHubClient

logger = logging.getLogger("gatekeeper.pipeline")

ProgressCallback = Callable[[str, int, int], None]

STAGES = ("blast_radius", "security", "policies", "decision")


class AnalysisResult(FrozenModel):
    """Everything one pipeline run produced for a pull request."""

    pr: PullRequestSnapshot
    blast_radius: BlastRadiusResult
    security_findings: list[Finding] = Field(default_factory=list)
    policy_results: list[PolicyResult] = Field(default_factory=list)
    decision: Decision
    approvals: list[Approval] | None = None
    ci_status: CIStatus | None = None


class Gatekeeper:
    """Wires the four stages together for one configuration."""

    def __init__(
        self,
        config: GatekeeperConfig | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.config = config or GatekeeperConfig()
        self.calculator = BlastRadiusCalculator(self.config.team)
        self.scanner = SecurityScanner(self.config.security)
        self.policies = PolicyEvaluator(self.config.policies)
        self.engine = DecisionEngine(self.config.decision, self.config.team, id_factory=id_factory)

    def evaluate(
        self,
        pr: PullRequestSnapshot,
        approvals: list[Approval] | None = None,
        ci_status: CIStatus | None = None,
        on_progress: ProgressCallback | None = None,
        parallel: bool = False,
    ) -> AnalysisResult:
        """Run every stage over a snapshot.

        Args:
            pr: The pull request to evaluate.
            approvals: Approving reviews, or None when unknown.
            ci_status: Combined CI status, or None when unknown.
            on_progress: Optional callback(stage, current, total), called
                as each stage completes.
            parallel: Score and scan on two worker threads.

        Returns:
            The AnalysisResult holding every stage's output.
        """
        total = len(STAGES)
        done = 0

        def report(stage: str) -> None:
            nonlocal done
            done += 1
            if on_progress:
                on_progress(stage, done, total)

        start = time.time()
        if parallel:
            with ThreadPoolExecutor(max_workers=2) as pool:
                blast_future = pool.submit(self.calculator.calculate, pr)
                findings_future = pool.submit(self.scanner.scan, pr)
                blast_radius = blast_future.result()
                findings = findings_future.result()
            report("blast_radius")
            report("security")
        else:
            blast_radius = self.calculator.calculate(pr)
            report("blast_radius")
            findings = self.scanner.scan(pr)
            report("security")

        policy_results = self.policies.evaluate(pr, blast_radius, findings)
        report("policies")

        decision = self.engine.make(
            blast_radius, findings, policy_results, approvals=approvals, ci_status=ci_status
        )
        report("decision")

        logger.debug(
            "PR #%s evaluated in %.3fs: %s (confidence %.2f)",
            pr.number, time.time() - start, decision.action.value, decision.confidence,
        )
        return AnalysisResult(
            pr=pr,
            blast_radius=blast_radius,
            security_findings=findings,
            policy_results=policy_results,
            decision=decision,
            approvals=approvals,
            ci_status=ci_status,
        )

    def analyze(
        self,
        client: GitHubClient,
        owner: str,
        repo: str,
        number: int,
        on_progress: ProgressCallback | None = None,
    ) -> AnalysisResult:
        """Fetch a pull request with its review signals and evaluate it."""
        pr = client.get_pr(owner, repo, number)
        approvals = client.get_approvals(owner, repo, number)
        ci_status = client.get_status_checks(owner, repo, number)
        return self.evaluate(
            pr, approvals=approvals, ci_status=ci_status, on_progress=on_progress, parallel=True
        )
