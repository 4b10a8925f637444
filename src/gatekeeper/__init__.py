"""PR Gatekeeper - risk-based triage for pull requests."""

__version__ = "0.1.0"
