"""Git context for a session: current branch, HEAD and commits since a hash.

Every query is best-effort. Outside a repository, without git installed or
on timeout the result is simply empty.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from pydantic import BaseModel

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 2
MAX_COMMITS = 20


class GitContext(BaseModel):
    branch: str = ""
    hash: str = ""


class CommitInfo(BaseModel):
    hash: str
    message: str = ""

    def __str__(self) -> str:
        return f"{self.hash} {self.message}".rstrip()


def run_git(cwd: str | Path, *args: str, timeout: float = GIT_TIMEOUT_SECONDS) -> str:
    """Run a git command in cwd and return its stripped stdout.

    Returns:
        Command output, or "" on any failure
    """
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        logger.debug("git %s timed out in %s", args[0] if args else "", cwd)
        return ""
    except OSError as e:
        logger.debug("git unavailable in %s: %s", cwd, e)
        return ""
    if result.returncode != 0:
        return ""
    return result.stdout.strip()


def capture(cwd: str | Path) -> GitContext:
    """Current branch name and short HEAD hash for cwd."""
    if not cwd:
        return GitContext()
    return GitContext(
        branch=run_git(cwd, "rev-parse", "--abbrev-ref", "HEAD"),
        hash=run_git(cwd, "rev-parse", "--short", "HEAD"),
    )


def commits_since(cwd: str | Path, start_hash: str) -> list[CommitInfo]:
    """Commits between start_hash and HEAD, newest first, at most 20."""
    if not cwd or not start_hash:
        return []

    output = run_git(cwd, "log", "--oneline", f"{start_hash}..HEAD")
    commits: list[CommitInfo] = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        commit_hash, _, message = line.partition(" ")
        commits.append(CommitInfo(hash=commit_hash, message=message))
        if len(commits) >= MAX_COMMITS:
            break
    return commits
