"""Decision engine - weighted confidence and the final merge action."""

from gatekeeper.decision.engine import DecisionEngine

__all__ = ["DecisionEngine"]
