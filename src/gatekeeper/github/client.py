"""GitHub access through the ``gh`` CLI.

Every call shells out to ``gh api`` so authentication, enterprise hosts and
proxies follow the user's existing ``gh`` setup. Transient failures (rate
limits, 5xx, timeouts) are retried with exponential backoff.
"""

from __future__ import annotations

import json
import logging
import os
import re
import subprocess
from typing import Any

from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from gatekeeper.config import GitHubConfig
from gatekeeper.exceptions import GitHubError, PRNotFoundError, TransientGitHubError
from gatekeeper.models import (
    Approval,
    CIStatus,
    FileChange,
    FileStatus,
    PullRequestSnapshot,
    StatusCheck,
)

logger = logging.getLogger("gatekeeper.github")

COMMENT_MARKER = "<!-- pr-gatekeeper -->"

_HTTP_STATUS = re.compile(r"HTTP (\d{3})")


class GitHubClient:
    """Fetches pull request data and posts decision comments."""

    def __init__(self, config: GitHubConfig | None = None) -> None:
        self.config = config or GitHubConfig()

    # -----------------------------------------------------------------
    # Pull request data
    # -----------------------------------------------------------------

    def get_pr(self, owner: str, repo: str, number: int) -> PullRequestSnapshot:
        """Fetch a pull request and its changed files.

        Raises PRNotFoundError for unknown PRs and TransientGitHubError when
        retries are exhausted.
        """
        try:
            pr = self._api_json(f"repos/{owner}/{repo}/pulls/{number}")
            files = self._api_lines(f"repos/{owner}/{repo}/pulls/{number}/files", jq=".[]")
        except GitHubError as e:
            if e.status == 404:
                raise PRNotFoundError(owner, repo, number) from e
            raise

        return PullRequestSnapshot(
            number=pr["number"],
            title=pr.get("title") or "",
            body=pr.get("body"),
            author=(pr.get("user") or {}).get("login", ""),
            source_branch=pr["head"]["ref"],
            target_branch=pr["base"]["ref"],
            additions=pr.get("additions", 0),
            deletions=pr.get("deletions", 0),
            url=pr.get("html_url"),
            files=[
                FileChange(
                    path=f["filename"],
                    status=_file_status(f.get("status")),
                    additions=f.get("additions", 0),
                    deletions=f.get("deletions", 0),
                    changes=f.get("changes", 0),
                    patch=f.get("patch"),
                    previous_path=f.get("previous_filename"),
                )
                for f in files
            ],
        )

    def get_approvals(self, owner: str, repo: str, number: int) -> list[Approval] | None:
        """Approving reviews, or None when they could not be fetched."""
        try:
            reviews = self._api_lines(
                f"repos/{owner}/{repo}/pulls/{number}/reviews",
                jq='.[] | select(.state == "APPROVED")',
            )
        except GitHubError as e:
            logger.warning("Failed to fetch approvals for #%s: %s", number, e)
            return None
        return [
            Approval(
                user=(r.get("user") or {}).get("login", ""),
                submitted_at=r.get("submitted_at") or "",
                id=r.get("id", 0),
            )
            for r in reviews
        ]

    def get_status_checks(self, owner: str, repo: str, number: int) -> CIStatus | None:
        """Combined commit status of the PR head, or None when unavailable."""
        try:
            pr = self._api_json(f"repos/{owner}/{repo}/pulls/{number}")
            status = self._api_json(f"repos/{owner}/{repo}/commits/{pr['head']['sha']}/status")
        except GitHubError as e:
            logger.warning("Failed to fetch status checks for #%s: %s", number, e)
            return None
        return CIStatus(
            state=status.get("state", "unknown"),
            total_count=status.get("total_count", 0),
            statuses=[
                StatusCheck(
                    context=s.get("context", ""),
                    state=s.get("state", ""),
                    description=s.get("description"),
                )
                for s in status.get("statuses", [])
            ],
        )

    # -----------------------------------------------------------------
    # Comments
    # -----------------------------------------------------------------

    def post_comment(self, owner: str, repo: str, number: int, body: str) -> None:
        """Create the gatekeeper comment on a PR, or update the previous one."""
        marked = f"{COMMENT_MARKER}\n{body}"
        existing = self._api_lines(
            f"repos/{owner}/{repo}/issues/{number}/comments",
            jq=f'.[] | select(.body | startswith("{COMMENT_MARKER}"))',
        )
        if existing:
            self._gh([
                "api", "--method", "PATCH",
                f"repos/{owner}/{repo}/issues/comments/{existing[0]['id']}",
                "-f", f"body={marked}",
            ])
        else:
            self._gh([
                "api", "--method", "POST",
                f"repos/{owner}/{repo}/issues/{number}/comments",
                "-f", f"body={marked}",
            ])

    # -----------------------------------------------------------------
    # gh plumbing
    # -----------------------------------------------------------------

    def _api_json(self, endpoint: str) -> dict[str, Any]:
        return json.loads(self._gh(["api", endpoint]))

    def _api_lines(self, endpoint: str, jq: str) -> list[dict[str, Any]]:
        """Paginated endpoint, one JSON object per selected element."""
        output = self._gh(["api", "--paginate", endpoint, "--jq", f"{jq} | @json"])
        return [json.loads(line) for line in output.splitlines() if line.strip()]

    def _gh(self, args: list[str]) -> str:
        retrying = Retrying(
            retry=retry_if_exception_type(TransientGitHubError),
            stop=stop_after_attempt(max(1, self.config.max_attempts)),
            wait=wait_exponential_jitter(initial=0.5, max=8.0),
            reraise=True,
        )
        return retrying(self._run_gh, args)

    def _run_gh(self, args: list[str]) -> str:
        cmd = ["gh", *args]
        if self.config.base_url:
            cmd[2:2] = ["--hostname", self.config.base_url]

        env = dict(os.environ)
        token = self.config.token
        if token:
            env["GH_TOKEN"] = token

        logger.debug("Running %s", " ".join(cmd[:3]))
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.config.timeout, env=env,
            )
        except FileNotFoundError as e:
            raise GitHubError("The GitHub CLI ('gh') is not installed or not on PATH") from e
        except subprocess.TimeoutExpired as e:
            raise TransientGitHubError(f"gh api timed out after {self.config.timeout}s") from e

        if result.returncode != 0:
            raise _classify_error(result.stderr)
        return result.stdout


def _file_status(value: str | None) -> FileStatus:
    # "copied", "changed" and "unchanged" have no counterpart
    try:
        return FileStatus(value or "modified")
    except ValueError:
        return FileStatus.MODIFIED


def _classify_error(stderr: str) -> GitHubError:
    message = stderr.strip() or "gh api failed"
    match = _HTTP_STATUS.search(message)
    status = int(match.group(1)) if match else None

    lowered = message.lower()
    if (
        (status is not None and (status == 429 or status >= 500))
        or "rate limit" in lowered
        or "timeout" in lowered
        or "connection" in lowered
    ):
        return TransientGitHubError(message, status=status)
    return GitHubError(message, status=status)
