"""Tests for session note metadata scanning."""

from datetime import date
from pathlib import Path

import pytest

from session_vault.lib.session_meta import (
    parse_cost,
    parse_duration_min,
    parse_session_meta,
    scan_sessions,
    time_from_filename,
)

NOTE = """---
date: 2026-02-17
session_id: sess-1
project: Coding
start_time: 14:30
duration: 1h 5min
branch: main
model: opus
tools:
  Edit: 5
  Read: 10
tokens_in: 45000
tokens_out: 12000
estimated_cost: "$0.23"
files_touched:
  - /src/a.py
  - /src/b.py
commits:
  - abc1234 Fix
tags:
  - claude-session
---

# Claude Session - Coding

---

> [!user]+ #1 - You (14:30:00)
> hi

---

> [!user]+ #2 - You (14:40:00)
> again

---
"""


def write_note(vault: Path, project: str, name: str, content: str = NOTE) -> Path:
    path = vault / project / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_parse_session_meta_fields() -> None:
    meta = parse_session_meta(NOTE, "Coding", "2026-02-17")
    assert meta.session_id == "sess-1"
    assert meta.start_time == "14:30"
    assert meta.duration == "1h 5min"
    assert meta.duration_min == 65
    assert meta.model == "opus"
    assert meta.branch == "main"
    assert meta.tools == {"Edit": 5, "Read": 10}
    assert meta.tool_total == 15
    assert (meta.tokens_in, meta.tokens_out) == (45000, 12000)
    assert meta.est_cost == "$0.23"
    assert meta.cost == pytest.approx(0.23)
    assert meta.files_touched == ["/src/a.py", "/src/b.py"]
    assert meta.commits == 1
    assert meta.prompts == 2


def test_parse_session_meta_crlf() -> None:
    meta = parse_session_meta(NOTE.replace("\n", "\r\n"), "Coding", "2026-02-17")
    assert meta.duration == "1h 5min"
    assert meta.tools == {"Edit": 5, "Read": 10}
    assert meta.est_cost == "$0.23"


def test_parse_session_meta_without_frontmatter() -> None:
    meta = parse_session_meta("", "Coding", "2026-02-17")
    assert meta.project == "Coding"
    assert meta.tool_total == 0
    assert meta.duration_min == 0


@pytest.mark.parametrize(
    ("text", "minutes"),
    [("25min", 25), ("1h 30min", 90), ("2h", 120), ("", 0), ("soon", 0)],
)
def test_parse_duration_min(text: str, minutes: int) -> None:
    assert parse_duration_min(text) == minutes


def test_parse_cost() -> None:
    assert parse_cost("$1.50") == pytest.approx(1.5)
    assert parse_cost("free") == 0.0


def test_time_from_filename() -> None:
    assert time_from_filename("2026-02-12_0915.md", "2026-02-12") == "09:15"
    assert time_from_filename("2026-02-12_0915_fix-the-bug.md", "2026-02-12") == "09:15"
    assert time_from_filename("2026-02-12_ab.md", "2026-02-12") == ""


def test_scan_sessions_filters_by_date(vault: Path) -> None:
    write_note(vault, "Coding", "2026-02-17_1430.md")
    write_note(vault, "Coding", "2026-02-18_0900_next-day.md")
    write_note(vault, "Writing", "2026-02-17_0800.md")
    write_note(vault, "Coding", "notes.md")
    (vault / "2026-02-17.md").write_text("daily index, not a session", encoding="utf-8")

    sessions = scan_sessions(vault, date(2026, 2, 17), date(2026, 2, 17))
    assert sorted(s.rel_path for s in sessions) == ["Coding/2026-02-17_1430", "Writing/2026-02-17_0800"]
    assert {s.time for s in sessions} == {"14:30", "08:00"}

    week = scan_sessions(vault, date(2026, 2, 16), date(2026, 2, 22))
    assert len(week) == 3


def test_scan_sessions_missing_vault(tmp_path: Path) -> None:
    assert scan_sessions(tmp_path / "nope", date(2026, 2, 1), date(2026, 2, 28)) == []
