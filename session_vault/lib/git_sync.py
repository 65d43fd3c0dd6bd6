"""Commit and push vault changes after a response is logged.

Only runs when git_auto_push is enabled and the vault lives inside a git
repository. Concurrent hook processes (or devices syncing the same vault)
are serialized through .git/claude-sync.lock; a process that finds the
lock held skips its sync, since the holder will pick up its changes.
All failures are silent apart from debug logging.
"""

from __future__ import annotations

import logging
import subprocess
import time
from datetime import datetime
from pathlib import Path

from filelock import SoftFileLock, Timeout

from session_vault.lib.settings import HookConfig, load_settings

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = "claude-sync.lock"
STALE_LOCK_SECONDS = 5 * 60
SYNC_TIMEOUT_SECONDS = 30


def find_git_root(start: str | Path) -> Path | None:
    """Walk up from start to the first directory containing a .git dir."""
    current = Path(start).resolve()
    for candidate in (current, *current.parents):
        if (candidate / ".git").is_dir():
            return candidate
    return None


def remove_stale_lock(lock_path: Path, max_age: float = STALE_LOCK_SECONDS) -> bool:
    """Delete a lock file left behind by a process that died mid-sync."""
    try:
        age = time.time() - lock_path.stat().st_mtime
    except OSError:
        return False
    if age <= max_age:
        return False
    try:
        lock_path.unlink()
    except OSError as e:
        logger.debug("Could not remove stale sync lock %s: %s", lock_path, e)
        return False
    logger.info("Removed stale sync lock %s", lock_path)
    return True


class _Deadline:
    """Shared time budget for the git commands of one sync."""

    def __init__(self, seconds: float):
        self.expires = time.monotonic() + seconds

    def remaining(self) -> float:
        return max(self.expires - time.monotonic(), 0.0)


def _git(root: Path, deadline: _Deadline, *args: str) -> int | None:
    """Run git -C root args. Returns the exit code, None if it could not run."""
    remaining = deadline.remaining()
    if remaining <= 0:
        return None
    try:
        result = subprocess.run(
            ["git", "-C", str(root), *args],
            capture_output=True,
            text=True,
            timeout=remaining,
            check=False,
        )
    except subprocess.TimeoutExpired:
        logger.debug("git %s timed out", args[0])
        return None
    except OSError as e:
        logger.debug("git unavailable: %s", e)
        return None
    return result.returncode


def commit_and_push(root: Path, now: datetime | None = None) -> bool:
    """Stage everything under root, commit and push (push is best-effort).

    Returns:
        True if a commit was made
    """
    deadline = _Deadline(SYNC_TIMEOUT_SECONDS)
    if _git(root, deadline, "add", "-A") != 0:
        return False
    if _git(root, deadline, "diff", "--cached", "--quiet") == 0:
        logger.debug("Nothing staged in %s", root)
        return False

    now = now or datetime.now()
    message = f"claude: sync session {now:%H:%M}"
    if _git(root, deadline, "commit", "-m", message) != 0:
        return False
    if _git(root, deadline, "push") != 0:
        logger.debug("Push from %s failed", root)
    return True


def sync_vault(vault_dir: str | Path) -> bool:
    """Commit and push the repository containing vault_dir under the sync lock.

    Returns:
        True if a commit was made
    """
    root = find_git_root(vault_dir)
    if root is None:
        logger.debug("Vault %s is not inside a git repository", vault_dir)
        return False

    lock_path = root / ".git" / LOCK_FILE_NAME
    remove_stale_lock(lock_path)
    try:
        with SoftFileLock(lock_path, timeout=0):
            return commit_and_push(root)
    except Timeout:
        logger.debug("Sync already in progress for %s", root)
        return False


def sync_if_enabled(vault_dir: str | Path, config: HookConfig | None = None) -> bool:
    """sync_vault() when git_auto_push is configured."""
    if config is None:
        config = load_settings()
    if not config.git_auto_push:
        return False
    return sync_vault(vault_dir)
