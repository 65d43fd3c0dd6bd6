"""Frontmatter codec for session notes.

Session notes start with a YAML-like block:

    ---
    date: 2026-02-17
    session_id: abc-123
    project: Coding
    start_time: 14:30
    duration: 25min
    branch: main
    tools:
      Edit: 5
      Read: 10
    ...
    tags:
      - claude-session
      - coding
    ---

The block is split from the body once (FrontmatterDocument) and fields are
read or replaced against that isolated block only, so a pattern for one field
can never match inside another field's value or inside the note body. This is
deliberately not a YAML parser: fields are top-level "key: value" lines with
optional indented continuation lines, and everything unknown is kept verbatim.
"""

from __future__ import annotations

import posixpath

from pydantic import BaseModel, Field

from session_vault.lib.sanitize import project_tag

DELIMITER = "---"
BASE_TAG = "claude-session"
HEADING_PREFIX = "# Claude Session - "

# Fields rewritten as a unit on every stats update, in render order
STATS_FIELDS = (
    "branch",
    "model",
    "tools",
    "tokens_in",
    "tokens_out",
    "cache_read",
    "cache_creation",
    "estimated_cost",
    "files_touched",
    "commits",
)


class StatsFields(BaseModel):
    """Replaceable frontmatter fields. Zero/empty values are omitted."""

    branch: str = ""
    model: str = ""
    tools: dict[str, int] = Field(default_factory=dict)
    tokens_in: int = 0
    tokens_out: int = 0
    cache_read: int = 0
    cache_creation: int = 0
    estimated_cost: str = ""  # "$0.23"
    files_touched: list[str] = Field(default_factory=list)
    commits: list[str] = Field(default_factory=list)


class FrontmatterData(StatsFields):
    """Everything needed to render a new session note header."""

    date: str
    session_id: str
    project: str
    start_time: str
    resumed_from: str = ""


def render_stats_fields(data: StatsFields) -> list[str]:
    """Render the stats fields as frontmatter lines, skipping empty ones."""
    lines: list[str] = []
    if data.branch:
        lines.append(f"branch: {data.branch}")
    if data.model:
        lines.append(f"model: {data.model}")
    if data.tools:
        lines.append("tools:")
        for name in sorted(data.tools):
            lines.append(f"  {name}: {data.tools[name]}")
    if data.tokens_in > 0:
        lines.append(f"tokens_in: {data.tokens_in}")
    if data.tokens_out > 0:
        lines.append(f"tokens_out: {data.tokens_out}")
    if data.cache_read > 0:
        lines.append(f"cache_read: {data.cache_read}")
    if data.cache_creation > 0:
        lines.append(f"cache_creation: {data.cache_creation}")
    if data.estimated_cost:
        lines.append(f'estimated_cost: "{data.estimated_cost}"')
    if data.files_touched:
        lines.append("files_touched:")
        lines.extend(f"  - {f}" for f in data.files_touched)
    if data.commits:
        lines.append("commits:")
        lines.extend(f"  - {c}" for c in data.commits)
    return lines


def build_frontmatter(data: FrontmatterData) -> str:
    """Render the frontmatter, heading and first separator of a new note."""
    lines = [
        DELIMITER,
        f"date: {data.date}",
        f"session_id: {data.session_id}",
        f"project: {data.project}",
        f"start_time: {data.start_time}",
    ]
    if data.resumed_from:
        lines.append(f'resumed_from: "[[{data.resumed_from}]]"')
    lines.extend(render_stats_fields(data))
    lines += [
        "tags:",
        f"  - {BASE_TAG}",
        f"  - {project_tag(data.project)}",
        DELIMITER,
        "",
        HEADING_PREFIX + data.project,
    ]
    if data.resumed_from:
        parent_name = posixpath.basename(data.resumed_from)
        lines.append(f"Resumed from [[{data.resumed_from}|{parent_name}]]")
    lines += ["", DELIMITER, ""]
    return "\n".join(lines)


# --- Structured access ---


def _line_key(line: str) -> str | None:
    """Key of a top-level "key: value" line, None for anything else."""
    if not line or line[0].isspace() or line.startswith("-") or line.startswith("#"):
        return None
    key, sep, _ = line.partition(":")
    if not sep:
        return None
    return key.strip() or None


def _is_continuation(line: str) -> bool:
    return bool(line) and (line[0] in " \t" or line.startswith("- "))


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


class FrontmatterDocument:
    """A note split into frontmatter lines and everything after them.

    `lines` are the lines between the delimiters; `rest` starts with the
    closing delimiter line. Rendering joins them back unchanged.
    """

    def __init__(self, lines: list[str], rest: list[str]):
        self.lines = lines
        self.rest = rest

    @classmethod
    def parse(cls, text: str) -> FrontmatterDocument | None:
        """Split text at its frontmatter delimiters.

        Returns:
            None if text does not open with a "---" line or the block is
            never closed.
        """
        all_lines = text.split("\n")
        if not all_lines or all_lines[0].rstrip("\r") != DELIMITER:
            return None
        for idx in range(1, len(all_lines)):
            if all_lines[idx].strip() == DELIMITER:
                return cls(all_lines[1:idx], all_lines[idx:])
        return None

    def render(self) -> str:
        return "\n".join([DELIMITER, *self.lines, *self.rest])

    @property
    def body(self) -> str:
        """Everything after the closing delimiter line."""
        return "\n".join(self.rest[1:])

    def _find(self, key: str) -> int | None:
        for idx, line in enumerate(self.lines):
            if _line_key(line) == key:
                return idx
        return None

    def _block_end(self, start: int) -> int:
        end = start + 1
        while end < len(self.lines) and _is_continuation(self.lines[end]):
            end += 1
        return end

    def has(self, key: str) -> bool:
        return self._find(key) is not None

    def scalar(self, key: str) -> str | None:
        """Inline value of a field, quotes removed. None if absent."""
        idx = self._find(key)
        if idx is None:
            return None
        value = self.lines[idx].partition(":")[2].strip()
        return _unquote(value)

    def block(self, key: str) -> list[str]:
        """Stripped continuation lines under a field."""
        idx = self._find(key)
        if idx is None:
            return []
        return [line.strip() for line in self.lines[idx + 1 : self._block_end(idx)]]

    def list_items(self, key: str) -> list[str]:
        """Items of a "- item" list field."""
        return [line[2:].strip() for line in self.block(key) if line.startswith("- ")]

    def int_mapping(self, key: str) -> dict[str, int]:
        """Entries of a "name: count" mapping field. Bad counts are skipped."""
        result: dict[str, int] = {}
        for line in self.block(key):
            name, sep, value = line.partition(":")
            if not sep:
                continue
            try:
                result[name.strip()] = int(value.strip())
            except ValueError:
                continue
        return result

    def set_scalar(self, key: str, value: str, after: str | None = None) -> bool:
        """Replace a field's line, or insert it after another field.

        Returns:
            False if the field is absent and `after` is absent too
        """
        idx = self._find(key)
        if idx is not None:
            self.lines[idx : self._block_end(idx)] = [f"{key}: {value}"]
            return True
        if after is None:
            return False
        anchor = self._find(after)
        if anchor is None:
            return False
        self.lines.insert(anchor + 1, f"{key}: {value}")
        return True

    def remove_fields(self, keys: tuple[str, ...] | set[str]) -> None:
        """Drop fields (with their continuation lines), keep all else in order."""
        kept: list[str] = []
        skipping = False
        for line in self.lines:
            key = _line_key(line)
            if key is not None and key in keys:
                skipping = True
                continue
            if skipping and _is_continuation(line):
                continue
            skipping = False
            kept.append(line)
        self.lines = kept

    def insert_before(self, key: str, new_lines: list[str]) -> None:
        """Insert lines before a field, or at the end if it is absent."""
        idx = self._find(key)
        if idx is None:
            idx = len(self.lines)
        self.lines[idx:idx] = new_lines


def update_frontmatter_stats(content: str, stats: StatsFields) -> str:
    """Replace the stats fields of an existing note in place.

    Every known stats field is removed (with its indented items) and the
    fresh rendering is inserted just before `tags:`. Unknown fields and the
    body are untouched. Calling it twice with the same stats is a no-op.

    Returns:
        Updated note text, or content unchanged when it has no frontmatter
    """
    doc = FrontmatterDocument.parse(content)
    if doc is None:
        return content
    doc.remove_fields(set(STATS_FIELDS))
    doc.insert_before("tags", render_stats_fields(stats))
    return doc.render()


def format_token_count(n: int) -> str:
    """Format token counts with a K suffix (floored)."""
    if n >= 1000:
        return f"{n // 1000}K"
    return str(n)


def format_stats_line(
    tool_counts: dict[str, int], tokens_in: int, tokens_out: int, est_cost: str
) -> str:
    """Compact two-line usage summary for the note body.

    Example:
        > **35 tool calls** | **45K in / 12K out tokens** | ~$0.23
        > Read(15) Edit(12) Bash(8)
    """
    total_tools = sum(tool_counts.values())
    if total_tools == 0 and tokens_in == 0:
        return ""

    summary = f"> **{total_tools} tool calls**"
    if tokens_in > 0 or tokens_out > 0:
        summary += (
            f" | **{format_token_count(tokens_in)} in / "
            f"{format_token_count(tokens_out)} out tokens**"
        )
    if est_cost:
        summary += f" | ~{est_cost}"
    out = summary + "\n"

    if total_tools > 0:
        ranked = sorted(tool_counts.items(), key=lambda item: (-item[1], item[0]))
        out += "> " + " ".join(f"{name}({count})" for name, count in ranked) + "\n"
    return out
