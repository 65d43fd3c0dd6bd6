"""Session path utilities - single source of truth for state file locations.

Session state lives in a shared temp area as one small text file per session:

    <state dir>/claude_session_<session_id>.txt

The state dir is the system temp dir unless CLAUDE_HOOKS_STATE_DIR is set.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

SESSION_FILE_PREFIX = "claude_session_"
SESSION_FILE_SUFFIX = ".txt"


def get_session_state_dir() -> Path:
    """Get the directory holding session state files."""
    override = os.environ.get("CLAUDE_HOOKS_STATE_DIR")
    if override:
        return Path(override)
    return Path(tempfile.gettempdir())


def get_session_file_path(session_id: str) -> Path:
    """Get the state file path for a session.

    Args:
        session_id: Opaque session identifier (usually a UUID)

    Returns:
        Path to claude_session_<session_id>.txt in the state dir
    """
    return get_session_state_dir() / f"{SESSION_FILE_PREFIX}{session_id}{SESSION_FILE_SUFFIX}"


def get_session_file_glob() -> str:
    """Glob pattern matching every session state file in the state dir."""
    return f"{SESSION_FILE_PREFIX}*{SESSION_FILE_SUFFIX}"


def get_claude_projects_dir() -> Path:
    """Directory where the assistant stores per-project transcripts."""
    return Path.home() / ".claude" / "projects"
