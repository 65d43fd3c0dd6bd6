"""Tests for session note entries and in-place note edits."""

from datetime import datetime
from pathlib import Path

from session_vault.lib.frontmatter import FrontmatterData, FrontmatterDocument, StatsFields, build_frontmatter
from session_vault.lib.session_note import (
    append_to_note,
    compute_duration_minutes,
    create_note,
    file_exists,
    format_commits_entry,
    format_plan_entry,
    format_prompt_entry,
    format_response_entry,
    format_summary_block,
    insert_summary_block,
    insert_summary_text,
    update_duration,
    update_note_stats,
)


def make_note(tmp_path: Path, start_time: str = "17:42") -> Path:
    note = tmp_path / "Coding" / "2026-02-17_1742.md"
    header = build_frontmatter(
        FrontmatterData(date="2026-02-17", session_id="abc", project="Coding", start_time=start_time)
    )
    assert create_note(note, header)
    return note


# --- Entry formatting ---


def test_format_prompt_entry() -> None:
    entry = format_prompt_entry(2, "14:30:05", "/src/app", "line one\nline two")
    assert entry == (
        "\n> [!user]+ #2 - You (14:30:05)\n"
        "> **cwd**: ``/src/app``\n"
        ">\n"
        "> line one\n"
        "> line two\n"
        "\n"
        "---\n"
    )


def test_format_response_entry() -> None:
    assert format_response_entry("14:31:00", "Done.") == (
        "\n> [!claude]- Claude (14:31:00)\n> Done.\n\n---\n"
    )


def test_format_plan_entry() -> None:
    assert format_plan_entry("14:31:00", "Step 1\nStep 2") == (
        "\n> [!plan]- Claude's Plan (14:31:00)\n> Step 1\n> Step 2\n\n---\n"
    )


def test_format_commits_entry() -> None:
    entry = format_commits_entry("14:31", ["abc1234 Fix bug", "def5678 Add test"])
    assert entry == (
        "\n> [!git]- Commits (14:31)\n"
        "> - `abc1234 Fix bug`\n"
        "> - `def5678 Add test`\n"
        "\n"
        "---\n"
    )
    assert format_commits_entry("14:31", []) == ""


def test_format_summary_block() -> None:
    assert format_summary_block(["Fix login", "Add tests"]) == (
        "> [!summary]+ Topics covered\n> - Fix login\n> - Add tests\n"
    )
    assert format_summary_block([]) == ""


# --- File operations ---


def test_append_requires_existing_note(tmp_path: Path) -> None:
    missing = tmp_path / "missing.md"
    assert not append_to_note(missing, "text")
    assert not missing.exists()


def test_append_adds_text(tmp_path: Path) -> None:
    note = make_note(tmp_path)
    before = note.read_text(encoding="utf-8")
    assert append_to_note(note, "extra\n")
    assert note.read_text(encoding="utf-8") == before + "extra\n"


def test_compute_duration_minutes() -> None:
    now = datetime(2026, 2, 17, 17, 52, 30)
    assert compute_duration_minutes("17:42", now) == 10
    assert compute_duration_minutes("17:52", now) == 1, "minimum is one minute"
    assert compute_duration_minutes("garbage", now) is None


def test_update_duration_inserts_then_replaces(tmp_path: Path) -> None:
    note = make_note(tmp_path)

    assert update_duration(note, datetime(2026, 2, 17, 17, 52))
    assert "start_time: 17:42\nduration: 10min\n" in note.read_text(encoding="utf-8")

    assert update_duration(note, datetime(2026, 2, 17, 18, 12))
    content = note.read_text(encoding="utf-8")
    assert "duration: 30min" in content
    assert content.count("duration:") == 1


def test_update_duration_without_start_time(tmp_path: Path) -> None:
    note = tmp_path / "plain.md"
    note.write_text("---\ndate: 2026-02-17\n---\nbody\n", encoding="utf-8")
    assert not update_duration(note, datetime(2026, 2, 17, 18, 0))


def test_insert_summary_above_first_separator() -> None:
    content = (
        "---\ndate: x\n---\n\n# Claude Session - Coding\n\n---\n\n> [!user]+ #1 - You\n> hi\n\n---\n"
    )
    updated = insert_summary_text(content, format_summary_block(["a", "b"]))
    assert updated == (
        "---\ndate: x\n---\n\n# Claude Session - Coding\n\n"
        "> [!summary]+ Topics covered\n> - a\n> - b\n\n"
        "---\n\n> [!user]+ #1 - You\n> hi\n\n---\n"
    )


def test_insert_summary_only_once(tmp_path: Path) -> None:
    note = make_note(tmp_path)
    assert insert_summary_block(note, format_summary_block(["a", "b", "c"]))
    assert not insert_summary_block(note, format_summary_block(["d", "e", "f"]))
    content = note.read_text(encoding="utf-8")
    assert content.count("[!summary]") == 1
    assert "> - d" not in content


def test_insert_summary_needs_heading() -> None:
    content = "---\ndate: x\n---\nno heading\n---\n"
    assert insert_summary_text(content, "> [!summary]+ Topics covered\n") == content


def test_update_note_stats_accumulates_commits(tmp_path: Path) -> None:
    note = make_note(tmp_path)

    assert update_note_stats(note, StatsFields(tools={"Read": 1}, commits=["aaa1111 first"]))
    assert update_note_stats(
        note, StatsFields(tools={"Read": 4}, commits=["bbb2222 second", "aaa1111 first"])
    )

    doc = FrontmatterDocument.parse(note.read_text(encoding="utf-8"))
    assert doc is not None
    assert doc.list_items("commits") == ["aaa1111 first", "bbb2222 second"]
    assert doc.int_mapping("tools") == {"Read": 4}


def test_update_note_stats_unchanged_is_not_rewritten(tmp_path: Path) -> None:
    note = make_note(tmp_path)
    stats = StatsFields(model="opus")
    assert update_note_stats(note, stats)
    assert not update_note_stats(note, stats)


def test_unusable_paths_count_as_missing(tmp_path: Path) -> None:
    """A name over the filesystem limit is a soft miss, never an OSError."""
    too_long = tmp_path / ("x" * 300 + ".md")
    assert not file_exists(too_long)
    assert not append_to_note(too_long, "text")
    assert file_exists(make_note(tmp_path))


def test_summary_marker_quoted_in_a_prompt_is_not_a_summary() -> None:
    content = (
        "---\ndate: x\n---\n\n# Claude Session - Coding\n\n---\n\n"
        "> [!user]+ #1 - You\n> [!summary] how do callouts work?\n\n---\n"
    )
    updated = insert_summary_text(content, format_summary_block(["a", "b", "c"]))
    assert "# Claude Session - Coding\n\n> [!summary]+ Topics covered\n> - a\n" in updated
    assert insert_summary_text(updated, format_summary_block(["d"])) == updated
