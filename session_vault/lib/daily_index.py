"""Daily index of session notes.

Rebuilds <vault>/<YYYY-MM-DD>.md from scratch on every call:

    ---
    date: 2026-02-12
    tags:
      - claude-daily
    ---

    # Claude Sessions - 2026-02-12

    ## Coding
    - [[Coding/2026-02-12_1742|17:42]] (10min, 4 prompts, 35 tools, ~$0.23)

Projects are listed case-insensitively by name, sessions by time of day.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

from session_vault.lib.session_meta import SessionMeta, scan_sessions
from session_vault.lib.session_state import read_session

logger = logging.getLogger(__name__)

DAILY_TAG = "claude-daily"


def resolve_prompt_count(meta: SessionMeta) -> int:
    """Tracked prompt count from session state, else the note's user callouts."""
    if meta.session_id:
        state = read_session(meta.session_id)
        if state is not None and state.prompt_count > 0:
            return state.prompt_count
    return meta.prompts


def format_entry(meta: SessionMeta, prompts: int) -> str:
    """One bullet line linking to a session note."""
    parts = []
    if meta.duration:
        parts.append(meta.duration)
    if prompts > 0:
        parts.append(f"{prompts} prompts")
    if meta.tool_total > 0:
        parts.append(f"{meta.tool_total} tools")
    if meta.est_cost:
        parts.append(f"~{meta.est_cost}")
    suffix = f" ({', '.join(parts)})" if parts else ""
    return f"- [[{meta.rel_path}|{meta.time}]]{suffix}"


def build_daily_index(sessions: list[SessionMeta], date_str: str) -> str:
    """Render the daily index markdown for a day's sessions."""
    ordered = sorted(sessions, key=lambda s: s.time)
    grouped: dict[str, list[SessionMeta]] = {}
    for session in ordered:
        grouped.setdefault(session.project, []).append(session)

    lines = [
        "---",
        f"date: {date_str}",
        "tags:",
        f"  - {DAILY_TAG}",
        "---",
        "",
        f"# Claude Sessions - {date_str}",
    ]
    for project in sorted(grouped, key=lambda name: (name.lower(), name)):
        lines += ["", f"## {project}"]
        lines += [format_entry(s, resolve_prompt_count(s)) for s in grouped[project]]
    return "\n".join(lines) + "\n"


def rebuild_daily_index(vault_dir: str | Path, day: date) -> Path | None:
    """Regenerate the daily index for a date.

    Nothing is written (and any existing index is left alone) when no
    session notes match.

    Returns:
        Path of the written index, or None
    """
    vault = Path(vault_dir)
    sessions = scan_sessions(vault, day, day)
    if not sessions:
        return None

    date_str = day.isoformat()
    index_path = vault / f"{date_str}.md"
    try:
        index_path.write_text(build_daily_index(sessions, date_str), encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to write daily index %s: %s", index_path, e)
        return None
    return index_path
