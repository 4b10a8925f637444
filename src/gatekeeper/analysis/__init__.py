"""Risk analysis of a pull request: blast radius scoring and security scanning."""

from gatekeeper.analysis.blast_radius import BlastRadiusCalculator
from gatekeeper.analysis.paths import match_path
from gatekeeper.analysis.security import SecurityScanner

__all__ = ["BlastRadiusCalculator", "SecurityScanner", "match_path"]
