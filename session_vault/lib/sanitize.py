"""Text sanitizers for prompt and transcript content.

Prompts arrive with host-injected XML wrappers (system reminders, slash-command
echoes, ...) that should never reach the vault. These helpers strip them,
bound the size of what gets written, and turn free text into names that are
safe to use as folders, filenames and tags.
"""

from __future__ import annotations

import re

# Wrapper tags injected by the assistant host. Content between the tags is dropped.
SYSTEM_TAGS = (
    "system-reminder",
    "task-notification",
    "claude-mem-context",
    "context-window-budget",
    "skill-reminders",
    "local-command-caveat",
    "command-name",
    "command-message",
    "command-args",
    "local-command-stdout",
)

_SYSTEM_TAG_PATTERNS = [
    re.compile(rf"<{tag}>.*?</{tag}>", re.DOTALL) for tag in SYSTEM_TAGS
]

_UNSAFE_NAME_RE = re.compile(r'[\\/:*?"<>|]')
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE_RE = re.compile(r"\s+")
_HYPHEN_RUN_RE = re.compile(r"-{2,}")

UNNAMED_PROJECT = "unnamed"
SLUG_MAX_WORDS = 6
SLUG_MAX_CHARS = 50
TOPIC_ELLIPSIS = "..."


def strip_system_tags(text: str) -> str:
    """Remove every known system wrapper tag (with its content) from text.

    Each tag pattern is applied in turn, so nested or overlapping wrappers of
    different names are all removed.
    """
    for pattern in _SYSTEM_TAG_PATTERNS:
        text = pattern.sub("", text)
    return text.strip()


def truncate(text: str, max_len: int) -> str:
    """Cut text to max_len chars, noting the original length.

    Args:
        text: Text to bound
        max_len: Maximum number of characters kept

    Returns:
        text unchanged when short enough, else the first max_len chars plus
        a "(truncated, N chars total)" note.
    """
    if len(text) <= max_len:
        return text
    return f"{text[:max_len]}\n\n... (truncated, {len(text)} chars total)"


def truncate_simple(text: str, max_len: int) -> str:
    """Like truncate() but with a fixed suffix and no character count."""
    if len(text) <= max_len:
        return text
    return text[:max_len] + "\n\n... (truncated)"


def truncate_topic(text: str, max_len: int) -> str:
    """Word-aware truncation for one-line topic summaries."""
    if len(text) <= max_len:
        return text
    cut = text[:max_len]
    boundary = cut.rfind(" ")
    if boundary > 0:
        cut = cut[:boundary]
    return cut.rstrip() + TOPIC_ELLIPSIS


def sanitize_project_name(name: str) -> str:
    """Make a directory basename safe to use as a vault folder.

    Leading dots are stripped because Obsidian hides dotfolders.
    """
    name = name.lstrip(".")
    if not name:
        name = UNNAMED_PROJECT
    return _UNSAFE_NAME_RE.sub("_", name)


def generate_title_slug(text: str) -> str:
    """Build a short hyphenated slug from the first line of text.

    At most 6 words and 50 characters, so the slug always fits in a filename.

    Examples:
        "Fix the authentication bug in JWT" -> "fix-the-authentication-bug-in-jwt"
        "Fix: bug #1 (urgent) [NOW]" -> "fix-bug-1-urgent-now"
        "foo - bar" -> "foo-bar"
    """
    if not text or not text.strip():
        return ""
    first_line = text.strip().splitlines()[0].lower()
    cleaned = _SLUG_STRIP_RE.sub("", first_line)
    words = [w for w in cleaned.split() if w.strip("-")][:SLUG_MAX_WORDS]
    slug = _HYPHEN_RUN_RE.sub("-", "-".join(words))
    return slug[:SLUG_MAX_CHARS].strip("-")


def project_tag(project: str) -> str:
    """Lower-case tag for a project, whitespace runs collapsed to one hyphen."""
    return _WHITESPACE_RE.sub("-", project).lower()
