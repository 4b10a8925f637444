"""Git diff parser - build a PR snapshot from a local unified diff.

Lets the pipeline run on a branch before a pull request exists: the diff
between ``base`` and ``head`` is split per file, with the hunk lines kept
as the file's patch text, in the same shape the GitHub API returns.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from gatekeeper.exceptions import GitError
from gatekeeper.models import FileChange, FileStatus, PullRequestSnapshot


@dataclass
class _FileDiff:
    """Mutable accumulator for one file while parsing."""
    path: str
    status: FileStatus = FileStatus.MODIFIED
    previous_path: str | None = None
    patch_lines: list[str] = field(default_factory=list)
    additions: int = 0
    deletions: int = 0
    in_hunk: bool = False

    def freeze(self) -> FileChange:
        return FileChange(
            path=self.path,
            status=self.status,
            additions=self.additions,
            deletions=self.deletions,
            patch="\n".join(self.patch_lines) if self.patch_lines else None,
            previous_path=self.previous_path,
        )


def parse_diff(diff_text: str) -> list[FileChange]:
    """Parse unified diff text into FileChange objects."""
    files: list[FileChange] = []
    current: _FileDiff | None = None

    for line in diff_text.splitlines():
        # New file header
        if line.startswith("diff --git"):
            if current:
                files.append(current.freeze())
            parts = line.split(" b/")
            current = _FileDiff(path=parts[-1] if len(parts) > 1 else "")
            continue

        if current is None:
            continue

        if not current.in_hunk:
            # File status markers
            if line.startswith("new file"):
                current.status = FileStatus.ADDED
            elif line.startswith("deleted file"):
                current.status = FileStatus.REMOVED
            elif line.startswith("rename from "):
                current.previous_path = line[len("rename from "):]
                current.status = FileStatus.RENAMED
            elif line.startswith("rename to "):
                current.path = line[len("rename to "):]
            elif line.startswith("+++ b/"):
                current.path = line[6:]

        if line.startswith("@@"):
            current.in_hunk = True
            current.patch_lines.append(line)
        elif current.in_hunk:
            current.patch_lines.append(line)
            if line.startswith("+"):
                current.additions += 1
            elif line.startswith("-"):
                current.deletions += 1

    if current:
        files.append(current.freeze())

    return files


def _git(root: Path, *args: str) -> str:
    try:
        result = subprocess.run(
            ["git", *args], cwd=root, capture_output=True, text=True, timeout=30,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        raise GitError(f"git {args[0]} failed: {e}") from e
    if result.returncode != 0:
        raise GitError(f"git {' '.join(args)} failed: {result.stderr.strip()}")
    return result.stdout


def get_git_diff(root: Path, base: str = "main", head: str = "HEAD") -> str:
    """Get the diff between the merge base of ``base`` and ``head``."""
    try:
        return _git(root, "diff", f"{base}...{head}")
    except GitError:
        # Fallback: diff against base directly (no common ancestor)
        return _git(root, "diff", base, head)


def snapshot_from_git(root: Path, base: str = "main", head: str = "HEAD") -> PullRequestSnapshot:
    """Build a snapshot for the local change set ``base...head``."""
    files = parse_diff(get_git_diff(root, base, head))
    source = _git(root, "rev-parse", "--abbrev-ref", head).strip()
    subject = _git(root, "log", "-1", "--format=%s", head).strip()
    body = _git(root, "log", "-1", "--format=%b", head).strip()
    author = _git(root, "log", "-1", "--format=%an", head).strip()

    return PullRequestSnapshot(
        number=0,
        title=subject,
        body=body or None,
        author=author,
        source_branch=source,
        target_branch=base.split("/")[-1],
        additions=sum(f.additions for f in files),
        deletions=sum(f.deletions for f in files),
        files=files,
    )
