"""Per-session state file management.

Maps a session id to the vault note it writes into, plus a few running
counters needed across hook invocations (prompt number, git branch, the HEAD
hash commits are detected from, and the working directory).

File format (line-oriented, one file per session):

    line 1: note file path
    line 2: prompt count
    line 3: branch            (may be empty)
    line 4: start commit hash (may be empty)
    line 5: working directory (may be empty)

Older writers only produced the first two lines; those records still load,
with the remaining fields empty.

IMPORTANT: Every failure here is soft. A hook must never abort because its
state file is missing, corrupt or unwritable; callers simply carry on as if
no session existed.
"""

from __future__ import annotations

import logging
import os
import tempfile
import time
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from session_vault.lib.session_paths import (
    get_session_file_glob,
    get_session_file_path,
    get_session_state_dir,
)

logger = logging.getLogger(__name__)

# Stale state files are removed after 24 hours
STALE_AGE_SECONDS = 24 * 60 * 60

# Minimum lines for a usable record (legacy 2-line format)
MIN_RECORD_LINES = 2
RECORD_LINES = 5


class SessionStateFormatError(ValueError):
    """State file exists but cannot be interpreted."""


class SessionState(BaseModel):
    """State for one assistant session."""

    session_id: str
    note_path: str
    prompt_count: int = Field(default=1, ge=1)
    branch: str = ""
    start_hash: str = ""
    cwd: str = ""

    @classmethod
    def parse(cls, session_id: str, text: str) -> SessionState:
        """Parse a state record.

        Raises:
            SessionStateFormatError: fewer than 2 lines or a bad prompt count
        """
        lines = [line.strip() for line in text.splitlines()]
        if len(lines) < MIN_RECORD_LINES:
            raise SessionStateFormatError("invalid session state format")
        lines += [""] * (RECORD_LINES - len(lines))

        try:
            return cls(
                session_id=session_id,
                note_path=lines[0],
                prompt_count=int(lines[1]),
                branch=lines[2],
                start_hash=lines[3],
                cwd=lines[4],
            )
        except (ValueError, ValidationError) as e:
            raise SessionStateFormatError(f"invalid prompt count: {lines[1]!r}") from e

    def render(self) -> str:
        """Serialize to the 5-line record (empty placeholders kept)."""
        return "\n".join(
            [
                self.note_path,
                str(self.prompt_count),
                self.branch,
                self.start_hash,
                self.cwd,
            ]
        )

    @classmethod
    def load(cls, session_id: str) -> SessionState | None:
        """Load session state from disk.

        Returns:
            SessionState, or None when absent or unusable
        """
        path = get_session_file_path(session_id)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Failed to read session state %s: %s", path, e)
            return None

        try:
            return cls.parse(session_id, text)
        except SessionStateFormatError as e:
            logger.warning("Ignoring session state %s: %s", path, e)
            return None

    def save(self) -> bool:
        """Write state atomically, replacing any previous record.

        Returns:
            True on success, False if the file could not be written
        """
        path = get_session_file_path(self.session_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path_str = tempfile.mkstemp(
                prefix=".claude_session-", suffix=".tmp", dir=str(path.parent)
            )
        except OSError as e:
            logger.warning("Failed to create session state temp file: %s", e)
            return False

        temp_path = Path(temp_path_str)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                f.write(self.render())
            temp_path.replace(path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            logger.warning("Failed to write session state %s: %s", path, e)
            return False
        return True


def read_session(session_id: str) -> SessionState | None:
    """Read state for a session (None when absent or unusable)."""
    return SessionState.load(session_id)


def write_session(
    session_id: str,
    note_path: str | Path,
    prompt_count: int,
    branch: str = "",
    start_hash: str = "",
    cwd: str = "",
) -> bool:
    """Overwrite the state record for a session."""
    try:
        state = SessionState(
            session_id=session_id,
            note_path=str(note_path),
            prompt_count=prompt_count,
            branch=branch or "",
            start_hash=start_hash or "",
            cwd=cwd or "",
        )
    except ValidationError as e:
        logger.warning("Refusing to write invalid session state: %s", e)
        return False
    return state.save()


def cleanup_stale(age_seconds: int = STALE_AGE_SECONDS) -> int:
    """Delete session state files older than age_seconds.

    Returns:
        Number of files deleted
    """
    state_dir = get_session_state_dir()
    if not state_dir.exists():
        return 0

    deleted = 0
    cutoff = time.time() - age_seconds
    for f in state_dir.glob(get_session_file_glob()):
        try:
            if f.stat().st_mtime < cutoff:
                f.unlink()
                deleted += 1
        except OSError:
            pass  # Ignore cleanup errors
    return deleted
