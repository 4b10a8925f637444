"""Append-only audit trail of gatekeeper decisions.

One JSON object per line, one file per UTC day, under ``audit.log_path``.
Writing the trail never fails an analysis: I/O errors are logged and
dropped.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from gatekeeper.models import Severity
from gatekeeper.policy.models import PolicyStatus

if TYPE_CHECKING:
    from gatekeeper.config import AuditConfig
    from gatekeeper.pipeline import AnalysisResult

logger = logging.getLogger("gatekeeper.audit")


def build_entry(result: AnalysisResult, timestamp: datetime) -> dict[str, Any]:
    """Summarize an analysis into one audit record."""
    pr = result.pr
    blast = result.blast_radius
    findings = result.security_findings
    policies = result.policy_results
    decision = result.decision

    return {
        "timestamp": timestamp.isoformat(),
        "decision_id": decision.decision_id,
        "pr": {
            "number": pr.number,
            "title": pr.title,
            "author": pr.author,
            "repo": f"{pr.source_branch} -> {pr.target_branch}",
        },
        "blast_radius": {
            "score": blast.score,
            "code_impact": blast.code_impact.level.value,
            "test_impact": blast.test_impact.level.value,
            "dependency_impact": blast.dependency_impact.level.value,
        },
        "security": {
            "findings": len(findings),
            "critical": sum(1 for f in findings if f.severity == Severity.CRITICAL),
            "high": sum(1 for f in findings if f.severity == Severity.HIGH),
        },
        "policies": {
            "total": len(policies),
            "passed": sum(1 for r in policies if r.status == PolicyStatus.PASSED),
            "failed": sum(1 for r in policies if r.status == PolicyStatus.FAILED),
            "warnings": sum(1 for r in policies if r.status == PolicyStatus.WARNING),
        },
        "decision": {
            "action": decision.action.value,
            "confidence": decision.confidence,
            "summary": decision.reasoning.summary,
        },
    }


class AuditLogger:
    """Writes decision records and prunes expired log files."""

    def __init__(self, config: AuditConfig, root: Path | None = None) -> None:
        self.config = config
        log_path = Path(config.log_path)
        self.log_dir = log_path if log_path.is_absolute() or root is None else root / log_path

    def log(self, result: AnalysisResult, now: datetime | None = None) -> Path | None:
        """Append one record for ``result``. Returns the file written, if any."""
        if not self.config.enabled:
            return None

        now = now or datetime.now(timezone.utc)
        path = self.log_dir / f"{now.strftime('%Y-%m-%d')}.jsonl"
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(json.dumps(build_entry(result, now)) + "\n")
        except OSError as e:
            logger.warning("Failed to write audit log %s: %s", path, e)
            return None

        self.prune_old_logs(now)
        return path

    def prune_old_logs(self, now: datetime | None = None) -> list[Path]:
        """Delete day files last modified more than ``retention_days`` ago."""
        now = now or datetime.now(timezone.utc)
        cutoff = (now - timedelta(days=self.config.retention_days)).timestamp()
        removed: list[Path] = []

        try:
            candidates = sorted(self.log_dir.glob("*.jsonl"))
        except OSError as e:
            logger.warning("Failed to list audit logs in %s: %s", self.log_dir, e)
            return removed

        for path in candidates:
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed.append(path)
            except OSError as e:
                logger.warning("Failed to prune audit log %s: %s", path, e)

        if removed:
            logger.debug("Pruned %d audit log(s)", len(removed))
        return removed

    def read_entries(self, day: str) -> list[dict[str, Any]]:
        """Records written on ``day`` (YYYY-MM-DD), oldest first."""
        path = self.log_dir / f"{day}.jsonl"
        if not path.exists():
            return []
        return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]
