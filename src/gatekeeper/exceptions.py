"""Custom exceptions for PR Gatekeeper."""

from __future__ import annotations


class GatekeeperError(Exception):
    """Base exception for all PR Gatekeeper errors."""


class ConfigError(GatekeeperError):
    """Configuration-related errors."""


class GitHubError(GatekeeperError):
    """Errors talking to the code-hosting API."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status  # HTTP status, when known


class PRNotFoundError(GitHubError):
    """Raised when the requested pull request does not exist."""

    def __init__(self, owner: str, repo: str, number: int):
        super().__init__(f"PR #{number} not found in {owner}/{repo}", status=404)
        self.owner = owner
        self.repo = repo
        self.number = number


class TransientGitHubError(GitHubError):
    """Rate limiting, timeouts and other errors worth retrying."""


class GitError(GatekeeperError):
    """Local git invocation errors."""
