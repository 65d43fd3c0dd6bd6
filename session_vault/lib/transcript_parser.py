"""Transcript parser for the assistant's JSONL session log.

The transcript is append-only and owned by the assistant host; each line is a
single JSON event. This module reads it three ways:

- find_last_assistant_reply(): backward walk for the newest reply and plan
- extract_user_topics(): forward walk for the first few user prompts
- parse_transcript(): full forward pass aggregating usage into SessionStats

Malformed lines are always skipped. Sidechain (subagent) events never count
toward session statistics.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from session_vault.lib.sanitize import strip_system_tags, truncate_topic

logger = logging.getLogger(__name__)

# Backward search window for the newest reply
MAX_LOOKBACK_LINES = 200

# Reply lookup retries while the host may still be flushing the transcript
REPLY_RETRY_ATTEMPTS = 3
REPLY_RETRY_DELAY_SECONDS = 0.5

TOPIC_MAX_LEN = 100
DEFAULT_TOPIC_LIMIT = 10

# Tools whose input names a file, keyed by the parameter holding the path
FILE_PATH_PARAMS = {
    "Read": "file_path",
    "Edit": "file_path",
    "MultiEdit": "file_path",
    "Write": "file_path",
    "Grep": "path",
    "Glob": "path",
}

CACHE_READ_FACTOR = 0.1
CACHE_CREATION_FACTOR = 1.25
DEFAULT_MODEL_FAMILY = "sonnet"


@dataclass(frozen=True)
class ModelRates:
    """Per-million-token pricing for a model family."""

    input: float
    output: float


RATES_BY_MODEL = {
    "opus": ModelRates(5.0, 25.0),
    "sonnet": ModelRates(3.0, 15.0),
    "haiku": ModelRates(1.0, 5.0),
}


class SessionStats(BaseModel):
    """Aggregated usage for one transcript."""

    tool_counts: dict[str, int] = Field(default_factory=dict)
    files_touched: list[str] = Field(default_factory=list)
    tokens_in: int = 0
    tokens_out: int = 0
    cache_read: int = 0
    cache_creation: int = 0
    estimated_cost: float = 0.0
    model: str = ""  # "opus", "sonnet", "haiku", or "" if unknown

    @property
    def total_tool_calls(self) -> int:
        return sum(self.tool_counts.values())

    @property
    def cost_label(self) -> str:
        """Cost formatted for frontmatter ("$0.23"), empty when zero."""
        if self.estimated_cost <= 0:
            return ""
        return f"${self.estimated_cost:.2f}"


# --- Helpers ---


def normalize_model(raw: str) -> str:
    """Extract the model family from a full model id.

    e.g. "claude-opus-4-6" -> "opus", "claude-sonnet-4-5-20250929" -> "sonnet".
    """
    lower = raw.lower()
    for family in ("opus", "sonnet", "haiku"):
        if family in lower:
            return family
    return ""


def resolve_rates(model: str) -> ModelRates:
    """Pricing for a model family, defaulting to Sonnet."""
    return RATES_BY_MODEL.get(model, RATES_BY_MODEL[DEFAULT_MODEL_FAMILY])


def estimate_cost(
    model: str, tokens_in: int, tokens_out: int, cache_read: int, cache_creation: int
) -> float:
    """Estimate spend in dollars from separated token classes."""
    rates = resolve_rates(model)
    return (
        tokens_in / 1e6 * rates.input
        + cache_read / 1e6 * (rates.input * CACHE_READ_FACTOR)
        + cache_creation / 1e6 * (rates.input * CACHE_CREATION_FACTOR)
        + tokens_out / 1e6 * rates.output
    )


def normalize_path(path: str) -> str:
    return path.replace("\\", "/")


def _parse_event(line: str) -> dict[str, Any] | None:
    line = line.strip()
    if not line:
        return None
    try:
        event = json.loads(line)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed transcript line")
        return None
    if not isinstance(event, dict):
        return None
    return event


def _iter_events(lines: list[str]) -> Iterator[dict[str, Any]]:
    for line in lines:
        event = _parse_event(line)
        if event is not None:
            yield event


def _message(event: dict[str, Any]) -> dict[str, Any]:
    message = event.get("message")
    return message if isinstance(message, dict) else {}


def _content_blocks(message: dict[str, Any]) -> list[dict[str, Any]]:
    content = message.get("content")
    if not isinstance(content, list):
        return []
    return [b for b in content if isinstance(b, dict)]


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    return 0


def _is_assistant(event: dict[str, Any]) -> bool:
    return event.get("type") == "assistant" and _message(event).get("role") == "assistant"


def _user_text(event: dict[str, Any]) -> str | None:
    """First text of a user prompt event, or None if it is not a prompt.

    Tool results also arrive as user events; those carry no text block.
    """
    if event.get("type") != "user":
        return None
    message = _message(event)
    if message.get("role") != "user":
        return None

    content = message.get("content")
    if isinstance(content, str):
        return content
    for block in _content_blocks(message):
        if block.get("type") == "text" and isinstance(block.get("text"), str):
            return block["text"]
    return None


def _read_lines(path: Path) -> list[str]:
    return path.read_text(encoding="utf-8", errors="replace").splitlines()


# --- Public API ---


def find_last_assistant_reply(
    path: str | Path, max_lines: int = MAX_LOOKBACK_LINES
) -> tuple[str, str]:
    """Find the newest assistant text reply and plan in a transcript.

    Walks backwards over at most max_lines lines. The reply is the text blocks
    of the newest assistant event joined with blank lines. The plan is the
    newest non-empty planContent seen within the current turn, which ends at
    the user prompt preceding the reply.

    Args:
        path: Transcript JSONL path
        max_lines: Backward search window

    Returns:
        (response_text, plan_text); either may be empty. Both are empty when
        the transcript cannot be read.
    """
    try:
        lines = _read_lines(Path(path))
    except OSError as e:
        logger.warning("Failed to read transcript %s: %s", path, e)
        return "", ""

    response_text = ""
    plan_text = ""
    for line in reversed(lines[-max_lines:] if max_lines > 0 else []):
        event = _parse_event(line)
        if event is None:
            continue

        plan = event.get("planContent")
        if not plan_text and isinstance(plan, str) and plan:
            plan_text = plan

        if response_text:
            # Reply found: keep looking for a plan until this turn's prompt
            if plan_text or _user_text(event) is not None:
                break
            continue

        if _is_assistant(event):
            texts = [
                b["text"]
                for b in _content_blocks(_message(event))
                if b.get("type") == "text" and isinstance(b.get("text"), str) and b["text"]
            ]
            if texts:
                response_text = "\n\n".join(texts)
                if plan_text:
                    break

    return response_text, plan_text


def find_last_assistant_reply_with_retry(
    path: str | Path,
    attempts: int = REPLY_RETRY_ATTEMPTS,
    delay: float = REPLY_RETRY_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[str, str]:
    """find_last_assistant_reply(), retried while both outputs are empty.

    The host may not have flushed the final reply when the Stop hook fires.
    """
    response_text, plan_text = "", ""
    for attempt in range(attempts):
        response_text, plan_text = find_last_assistant_reply(path)
        if response_text or plan_text:
            break
        if attempt < attempts - 1:
            sleep(delay)
    return response_text, plan_text


def extract_user_topics(path: str | Path, limit: int = DEFAULT_TOPIC_LIMIT) -> list[str]:
    """Collect one-line topics from the first user prompts of a session.

    Each topic is the first line of the prompt's text (system tags stripped),
    truncated at a word boundary to 100 chars. Prompts with no usable text
    are skipped.

    Returns:
        Up to limit topics, oldest first. Empty if the file cannot be read.
    """
    try:
        lines = _read_lines(Path(path))
    except OSError as e:
        logger.warning("Failed to read transcript %s: %s", path, e)
        return []

    topics: list[str] = []
    for event in _iter_events(lines):
        if len(topics) >= limit:
            break
        if event.get("isSidechain"):
            continue
        text = _user_text(event)
        if text is None:
            continue
        text = strip_system_tags(text)
        if not text:
            continue
        first_line = text.splitlines()[0].strip()
        if first_line:
            topics.append(truncate_topic(first_line, TOPIC_MAX_LEN))
    return topics


def parse_transcript(path: str | Path) -> SessionStats:
    """Aggregate usage statistics over every main-chain assistant event.

    The model family comes from the first event that names a model. Cost is
    computed with that family's rates (Sonnet if unknown) and separates
    cache reads and cache creation from plain input tokens.

    Raises:
        OSError: If the transcript cannot be read
    """
    lines = _read_lines(Path(path))

    stats = SessionStats()
    files: set[str] = set()
    model = ""

    for event in _iter_events(lines):
        if event.get("isSidechain"):
            continue
        if not _is_assistant(event):
            continue

        message = _message(event)
        raw_model = message.get("model")
        if not model and isinstance(raw_model, str) and raw_model:
            model = normalize_model(raw_model)

        usage = message.get("usage")
        if isinstance(usage, dict):
            stats.tokens_in += _as_int(usage.get("input_tokens"))
            stats.tokens_out += _as_int(usage.get("output_tokens"))
            stats.cache_read += _as_int(usage.get("cache_read_input_tokens"))
            stats.cache_creation += _as_int(usage.get("cache_creation_input_tokens"))

        for block in _content_blocks(message):
            name = block.get("name")
            if block.get("type") != "tool_use" or not isinstance(name, str) or not name:
                continue
            stats.tool_counts[name] = stats.tool_counts.get(name, 0) + 1

            param = FILE_PATH_PARAMS.get(name)
            tool_input = block.get("input")
            if param and isinstance(tool_input, dict):
                file_path = tool_input.get(param)
                if isinstance(file_path, str) and file_path:
                    files.add(normalize_path(file_path))

    stats.model = model
    stats.files_touched = sorted(files)
    stats.estimated_cost = estimate_cost(
        model, stats.tokens_in, stats.tokens_out, stats.cache_read, stats.cache_creation
    )
    return stats
