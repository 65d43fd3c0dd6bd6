"""Lightweight session-note metadata shared by the daily index and reports.

Notes are scanned from <vault>/<project>/<YYYY-MM-DD>_<HHMM>[...].md and only
the handful of frontmatter fields the rollups need are extracted. CRLF notes
(written on another device of a synced vault) parse the same as LF ones.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from pathlib import Path

from pydantic import BaseModel, Field

from session_vault.lib.frontmatter import FrontmatterDocument
from session_vault.lib.session_note import USER_MARKER

logger = logging.getLogger(__name__)

SESSION_FILE_GLOB = "????-??-??_*.md"

_HOURS_RE = re.compile(r"(\d+)h")
_MINUTES_RE = re.compile(r"(\d+)min")
_START_TIME_RE = re.compile(r"^\d{2}:\d{2}")


class SessionMeta(BaseModel):
    """Frontmatter summary of one session note."""

    project: str
    date: str  # "2026-02-17"
    rel_path: str = ""  # "Coding/2026-02-17_1430" (vault-relative, no extension)
    time: str = ""  # "14:30", from the filename
    session_id: str = ""
    start_time: str = ""
    duration: str = ""  # "25min"
    duration_min: int = 0
    model: str = ""
    tools: dict[str, int] = Field(default_factory=dict)
    tokens_in: int = 0
    tokens_out: int = 0
    cache_read: int = 0
    cache_creation: int = 0
    est_cost: str = ""  # "$0.23"
    cost: float = 0.0
    files_touched: list[str] = Field(default_factory=list)
    commits: int = 0
    branch: str = ""
    prompts: int = 0

    @property
    def tool_total(self) -> int:
        return sum(self.tools.values())


def parse_duration_min(text: str) -> int:
    """Parse "25min", "1h 30min" or "2h" into minutes (0 if unparsable)."""
    total = 0
    if m := _HOURS_RE.search(text):
        total += int(m.group(1)) * 60
    if m := _MINUTES_RE.search(text):
        total += int(m.group(1))
    return total


def parse_cost(text: str) -> float:
    """Parse "$0.23" into 0.23 (0.0 if unparsable)."""
    try:
        return float(text.strip().removeprefix("$"))
    except ValueError:
        return 0.0


def time_from_filename(file_name: str, date_str: str) -> str:
    """Time of day from a note filename, e.g. 2026-02-12_0915.md -> 09:15."""
    after = file_name.removeprefix(f"{date_str}_")
    digits = after[:4]
    if len(digits) == 4 and digits.isdigit():
        return f"{digits[:2]}:{digits[2:]}"
    return ""


def _int_field(doc: FrontmatterDocument, key: str) -> int:
    value = doc.scalar(key)
    if not value:
        return 0
    try:
        return int(value)
    except ValueError:
        return 0


def parse_session_meta(content: str, project: str, date_str: str) -> SessionMeta:
    """Extract rollup metadata from a note's text.

    Prompt count is the number of user callouts in the note.
    """
    content = content.replace("\r", "")
    meta = SessionMeta(project=project, date=date_str)
    meta.prompts = content.count(USER_MARKER)

    doc = FrontmatterDocument.parse(content)
    if doc is None:
        return meta

    meta.session_id = doc.scalar("session_id") or ""
    start_time = doc.scalar("start_time") or ""
    if _START_TIME_RE.match(start_time):
        meta.start_time = start_time[:5]
    meta.duration = doc.scalar("duration") or ""
    meta.duration_min = parse_duration_min(meta.duration)
    meta.model = doc.scalar("model") or ""
    meta.branch = doc.scalar("branch") or ""
    meta.tools = doc.int_mapping("tools")
    meta.tokens_in = _int_field(doc, "tokens_in")
    meta.tokens_out = _int_field(doc, "tokens_out")
    meta.cache_read = _int_field(doc, "cache_read")
    meta.cache_creation = _int_field(doc, "cache_creation")
    meta.est_cost = doc.scalar("estimated_cost") or ""
    meta.cost = parse_cost(meta.est_cost) if meta.est_cost else 0.0
    meta.files_touched = doc.list_items("files_touched")
    meta.commits = len(doc.list_items("commits"))
    return meta


def read_session_meta(path: Path, vault_dir: Path, project: str, date_str: str) -> SessionMeta | None:
    """Read and parse one note. None if it cannot be read."""
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Failed to read session note %s: %s", path, e)
        return None

    meta = parse_session_meta(content, project, date_str)
    meta.time = time_from_filename(path.name, date_str)
    try:
        rel = path.relative_to(vault_dir)
    except ValueError:
        rel = Path(project) / path.name
    meta.rel_path = rel.with_suffix("").as_posix()
    return meta


def scan_sessions(vault_dir: str | Path, start: date, end: date) -> list[SessionMeta]:
    """Find and parse every session note dated within [start, end].

    Each immediate subdirectory of the vault is a project.
    """
    vault = Path(vault_dir)
    try:
        project_dirs = sorted(p for p in vault.iterdir() if p.is_dir())
    except OSError as e:
        logger.debug("Cannot list vault %s: %s", vault, e)
        return []

    start_str = start.isoformat()
    end_str = end.isoformat()
    sessions: list[SessionMeta] = []
    for project_dir in project_dirs:
        for match in sorted(project_dir.glob(SESSION_FILE_GLOB)):
            file_date = match.name[:10]
            if file_date < start_str or file_date > end_str:
                continue
            meta = read_session_meta(match, vault, project_dir.name, file_date)
            if meta is not None:
                sessions.append(meta)
    return sessions
