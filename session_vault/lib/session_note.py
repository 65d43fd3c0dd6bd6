"""Session note writer.

Formats the Obsidian callout blocks appended to a session note and performs
the small in-place edits a note receives over its lifetime (duration, the
one-time topic summary).

Callout markers:
    [!user]    user prompt (expanded)
    [!claude]  assistant response (collapsed)
    [!plan]    assistant plan (collapsed)
    [!git]     commits made during the turn (collapsed)
    [!summary] topics covered so far (expanded, inserted once)
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime
from pathlib import Path

from session_vault.lib.frontmatter import (
    DELIMITER,
    HEADING_PREFIX,
    FrontmatterDocument,
    StatsFields,
    update_frontmatter_stats,
)

logger = logging.getLogger(__name__)

USER_MARKER = "[!user]"
SUMMARY_MARKER = "[!summary]"
SECTION_SEPARATOR = f"\n\n{DELIMITER}\n"

_START_TIME_RE = re.compile(r"^(\d{2}):(\d{2})")


def format_callout_content(text: str) -> str:
    """Prefix every line with "> "."""
    return "\n".join(f"> {line}" for line in text.split("\n"))


def format_prompt_entry(prompt_num: int, time_str: str, cwd: str, prompt_text: str) -> str:
    return (
        f"\n> {USER_MARKER}+ #{prompt_num} - You ({time_str})\n"
        f"> **cwd**: ``{cwd}``\n"
        ">\n"
        f"{format_callout_content(prompt_text)}"
        f"{SECTION_SEPARATOR}"
    )


def format_plan_entry(time_str: str, plan_text: str) -> str:
    return (
        f"\n> [!plan]- Claude's Plan ({time_str})\n"
        f"{format_callout_content(plan_text)}"
        f"{SECTION_SEPARATOR}"
    )


def format_response_entry(time_str: str, response_text: str) -> str:
    return (
        f"\n> [!claude]- Claude ({time_str})\n"
        f"{format_callout_content(response_text)}"
        f"{SECTION_SEPARATOR}"
    )


def format_commits_entry(time_str: str, commits: list[str]) -> str:
    """Commits as a collapsed git callout; empty string for no commits."""
    if not commits:
        return ""
    items = "".join(f"> - `{c}`\n" for c in commits)
    return f"\n> [!git]- Commits ({time_str})\n{items}\n{DELIMITER}\n"


def format_summary_block(topics: list[str]) -> str:
    """Topics callout inserted above the first separator of a note.

    The separator it sits on already exists in the note, so the block
    carries none of its own.
    """
    if not topics:
        return ""
    items = "".join(f"> - {topic}\n" for topic in topics)
    return f"> {SUMMARY_MARKER}+ Topics covered\n{items}"


# --- File operations ---


def _read(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to read session note %s: %s", path, e)
        return None


def _write(path: Path, content: str) -> bool:
    try:
        path.write_text(content, encoding="utf-8", newline="")
    except OSError as e:
        logger.warning("Failed to write session note %s: %s", path, e)
        return False
    return True


def file_exists(path: str | Path) -> bool:
    """Path.is_file() that treats unusable paths (too long, bad parent) as missing."""
    try:
        return Path(path).is_file()
    except OSError as e:
        logger.debug("Cannot stat %s: %s", path, e)
        return False


def create_note(note_path: str | Path, header: str) -> bool:
    """Create a new note holding only its frontmatter header."""
    path = Path(note_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("Failed to create note directory %s: %s", path.parent, e)
        return False
    return _write(path, header)


def append_to_note(note_path: str | Path, text: str) -> bool:
    """Append text to an existing note. Missing notes are not created."""
    path = Path(note_path)
    if not text:
        return True
    if not file_exists(path):
        logger.debug("Session note %s missing, not appending", path)
        return False
    try:
        with path.open("a", encoding="utf-8", newline="") as f:
            f.write(text)
    except OSError as e:
        logger.warning("Failed to append to session note %s: %s", path, e)
        return False
    return True


def compute_duration_minutes(start_time: str, now: datetime) -> int | None:
    """Whole minutes between an "HH:MM" start today and now (minimum 1)."""
    m = _START_TIME_RE.match(start_time.strip())
    if not m:
        return None
    try:
        start = now.replace(hour=int(m.group(1)), minute=int(m.group(2)), second=0, microsecond=0)
    except ValueError:
        return None
    minutes = math.floor((now - start).total_seconds() / 60)
    return max(minutes, 1)


def update_duration(note_path: str | Path, now: datetime) -> bool:
    """Refresh the note's `duration:` field from its `start_time:`.

    The field is replaced in place, or inserted right after `start_time:`.

    Returns:
        True if the note was rewritten
    """
    path = Path(note_path)
    content = _read(path)
    if content is None:
        return False

    doc = FrontmatterDocument.parse(content)
    if doc is None:
        return False
    start_time = doc.scalar("start_time")
    if start_time is None:
        return False
    minutes = compute_duration_minutes(start_time, now)
    if minutes is None:
        logger.debug("Unparsable start_time %r in %s", start_time, path)
        return False

    if not doc.set_scalar("duration", f"{minutes}min", after="start_time"):
        return False
    return _write(path, doc.render())


def insert_summary_text(content: str, block: str) -> str:
    """Place block just above the first separator after the session heading.

    Returns content unchanged when a summary callout already sits between
    those anchors or either anchor is missing. Prompts quoting the marker
    further down the note do not count.
    """
    if not block:
        return content

    lines = content.split("\n")
    heading = next(
        (i for i, line in enumerate(lines) if line.startswith(HEADING_PREFIX)), None
    )
    if heading is None:
        return content
    separator = next(
        (i for i in range(heading + 1, len(lines)) if lines[i].strip() == DELIMITER), None
    )
    if separator is None:
        return content
    if any(line.startswith(f"> {SUMMARY_MARKER}") for line in lines[heading + 1 : separator]):
        return content

    block_lines = block.rstrip("\n").split("\n")
    if lines[separator - 1].strip():
        block_lines.insert(0, "")
    lines[separator:separator] = [*block_lines, ""]
    return "\n".join(lines)


def insert_summary_block(note_path: str | Path, block: str) -> bool:
    """Insert a one-time summary block into a note file.

    Returns:
        True if the note was rewritten
    """
    path = Path(note_path)
    content = _read(path)
    if content is None:
        return False
    updated = insert_summary_text(content, block)
    if updated == content:
        return False
    return _write(path, updated)


def update_note_stats(note_path: str | Path, stats: StatsFields) -> bool:
    """Rewrite the note's stats fields.

    Commits already recorded in the note are kept ahead of stats.commits,
    so each turn only needs to supply the commits it detected.

    Returns:
        True if the note was rewritten
    """
    path = Path(note_path)
    content = _read(path)
    if content is None:
        return False
    doc = FrontmatterDocument.parse(content)
    if doc is None:
        return False

    known = doc.list_items("commits")
    merged = stats.model_copy(
        update={"commits": known + [c for c in stats.commits if c not in known]}
    )
    updated = update_frontmatter_stats(content, merged)
    if updated == content:
        return False
    return _write(path, updated)
