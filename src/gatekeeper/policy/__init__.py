"""Policy rules - configurable, branch-scoped validations that can warn or block."""

from gatekeeper.policy.evaluator import PolicyEvaluator, build_rules
from gatekeeper.policy.models import PolicyResult, PolicyRule, PolicyStatus, ValidationOutcome

__all__ = [
    "PolicyEvaluator",
    "PolicyResult",
    "PolicyRule",
    "PolicyStatus",
    "ValidationOutcome",
    "build_rules",
]
