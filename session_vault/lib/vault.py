"""Vault layout helpers: naming new session notes and linking resumed ones."""

from __future__ import annotations

import itertools
import json
import logging
import re
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

# Lines of a transcript searched for the parent session reference
PARENT_LOOKUP_LINES = 20


def new_note_path(project_dir: Path, now: datetime, slug: str = "") -> Path | None:
    """First free <date>_<HHMM>[_<slug>][_<n>].md path in project_dir.

    The collision counter starts at 2.

    Returns:
        The path, or None if project_dir cannot be inspected
    """
    stem = f"{now:%Y-%m-%d}_{now:%H%M}"
    if slug:
        stem = f"{stem}_{slug}"
    candidate = project_dir / f"{stem}.md"
    counter = 2
    try:
        while candidate.exists():
            candidate = project_dir / f"{stem}_{counter}.md"
            counter += 1
    except OSError as e:
        logger.warning("Cannot choose a note name in %s: %s", project_dir, e)
        return None
    return candidate


def find_transcript(session_id: str, projects_dir: Path) -> Path | None:
    """Locate <session_id>.jsonl anywhere under the transcripts directory."""
    if not session_id or not projects_dir.is_dir():
        return None
    return next(iter(sorted(projects_dir.rglob(f"{session_id}.jsonl"))), None)


def read_parent_id(transcript: Path) -> str:
    """First parentUuid found in the opening lines of a transcript."""
    try:
        with transcript.open(encoding="utf-8", errors="replace") as f:
            head = list(itertools.islice(f, PARENT_LOOKUP_LINES))
    except OSError as e:
        logger.debug("Cannot read transcript %s: %s", transcript, e)
        return ""

    for line in head:
        line = line.strip()
        if not line:
            continue
        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(event, dict):
            parent = event.get("parentUuid")
            if isinstance(parent, str) and parent:
                return parent
    return ""


def find_note_by_session_id(session_id: str, vault_dir: Path) -> str:
    """Vault-relative path (no extension) of the note recording session_id."""
    pattern = re.compile(rf"(?m)^session_id:\s*{re.escape(session_id)}\s*$")
    for note in sorted(vault_dir.rglob("*.md")):
        try:
            content = note.read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue
        if pattern.search(content):
            return note.relative_to(vault_dir).with_suffix("").as_posix()
    return ""


def find_parent_session(session_id: str, projects_dir: Path, vault_dir: Path) -> str:
    """Note of the session this one was resumed from, or "".

    Returns:
        Vault-relative path without extension, e.g. "Coding/2026-02-12_0915"
    """
    transcript = find_transcript(session_id, projects_dir)
    if transcript is None:
        return ""
    parent_id = read_parent_id(transcript)
    if not parent_id:
        return ""
    return find_note_by_session_id(parent_id, vault_dir)
