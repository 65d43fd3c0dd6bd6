"""Tests for transcript parsing: stats, cost, reply and topic extraction."""

import math

import pytest

from session_vault.lib.transcript_parser import (
    SessionStats,
    estimate_cost,
    extract_user_topics,
    find_last_assistant_reply,
    find_last_assistant_reply_with_retry,
    normalize_model,
    parse_transcript,
)


def assistant(content, usage=None, model=None, **extra) -> dict:
    message = {"role": "assistant", "content": content}
    if usage is not None:
        message["usage"] = usage
    if model is not None:
        message["model"] = model
    return {"type": "assistant", "message": message, **extra}


def user(content, **extra) -> dict:
    return {"type": "user", "message": {"role": "user", "content": content}, **extra}


def tool_use(name: str, **tool_input) -> dict:
    return {"type": "tool_use", "name": name, "input": tool_input}


def text(value: str) -> dict:
    return {"type": "text", "text": value}


# --- parse_transcript ---


def test_tool_counts(write_jsonl) -> None:
    path = write_jsonl(
        [
            assistant(
                [tool_use("Read", file_path="/foo/bar.go"), tool_use("Edit", file_path="/foo/bar.go")],
                {"input_tokens": 100, "output_tokens": 50},
            ),
            assistant(
                [tool_use("Read", file_path="/foo/baz.go"), tool_use("Bash", command="ls")],
                {"input_tokens": 200, "output_tokens": 100},
            ),
        ]
    )
    stats = parse_transcript(path)
    assert stats.tool_counts == {"Read": 2, "Edit": 1, "Bash": 1}
    assert stats.total_tool_calls == 4


def test_token_sums(write_jsonl) -> None:
    path = write_jsonl(
        [
            assistant(
                [text("hello")],
                {
                    "input_tokens": 1000,
                    "output_tokens": 500,
                    "cache_read_input_tokens": 200,
                    "cache_creation_input_tokens": 100,
                },
            ),
            assistant(
                [text("world")],
                {
                    "input_tokens": 2000,
                    "output_tokens": 1000,
                    "cache_read_input_tokens": 300,
                    "cache_creation_input_tokens": 50,
                },
            ),
        ]
    )
    stats = parse_transcript(path)
    assert (stats.tokens_in, stats.tokens_out) == (3000, 1500)
    assert (stats.cache_read, stats.cache_creation) == (500, 150)


def test_files_touched_are_deduplicated_and_sorted(write_jsonl) -> None:
    path = write_jsonl(
        [
            assistant([tool_use("Read", file_path="/foo/bar.go"), tool_use("Edit", file_path="/foo/bar.go")]),
            assistant([tool_use("Grep", path="C:\\src\\pkg"), tool_use("Read", file_path="/foo/a.go")]),
        ]
    )
    stats = parse_transcript(path)
    assert stats.files_touched == ["/foo/a.go", "/foo/bar.go", "C:/src/pkg"]


def test_cost_defaults_to_sonnet_rates(write_jsonl) -> None:
    """No model field: 1M in at $3/M + 100K out at $15/M."""
    path = write_jsonl([assistant([text("hi")], {"input_tokens": 1_000_000, "output_tokens": 100_000})])
    stats = parse_transcript(path)
    assert stats.model == ""
    assert math.isclose(stats.estimated_cost, 4.5, abs_tol=0.01)


def test_model_detection_and_opus_pricing(write_jsonl) -> None:
    path = write_jsonl(
        [
            assistant(
                [text("hi")],
                {"input_tokens": 1_000_000, "output_tokens": 100_000},
                model="claude-opus-4-6",
            )
        ]
    )
    stats = parse_transcript(path)
    assert stats.model == "opus"
    assert math.isclose(stats.estimated_cost, 7.5, abs_tol=0.01)


def test_cache_tokens_are_cheaper_than_input(write_jsonl) -> None:
    """Cache reads bill at 10% and cache writes at 125% of the input rate."""
    path = write_jsonl(
        [
            assistant(
                [text("hi")],
                {
                    "input_tokens": 3,
                    "output_tokens": 2,
                    "cache_read_input_tokens": 10773,
                    "cache_creation_input_tokens": 14829,
                },
                model="claude-opus-4-6",
            )
        ]
    )
    stats = parse_transcript(path)
    assert math.isclose(stats.estimated_cost, 0.098, abs_tol=0.001)
    naive = (3 + 10773 + 14829) / 1e6 * 5.0
    assert stats.estimated_cost < naive


def test_empty_transcript(write_jsonl) -> None:
    stats = parse_transcript(write_jsonl([]))
    assert stats.total_tool_calls == 0
    assert stats.tokens_in == 0
    assert stats.estimated_cost == 0


def test_malformed_lines_are_skipped(write_jsonl) -> None:
    path = write_jsonl(
        [
            "this is not json",
            assistant([text("ok")], {"input_tokens": 100, "output_tokens": 50}),
            "{malformed json too",
            "[1, 2, 3]",
        ]
    )
    assert parse_transcript(path).tokens_in == 100


def test_sidechain_events_are_excluded(write_jsonl) -> None:
    path = write_jsonl(
        [
            assistant(
                [text("sidechain"), tool_use("Read", file_path="/sub.go")],
                {"input_tokens": 5000, "output_tokens": 2000},
                isSidechain=True,
            ),
            assistant([text("main")], {"input_tokens": 100, "output_tokens": 50}),
        ]
    )
    stats = parse_transcript(path)
    assert stats.tokens_in == 100
    assert stats.tokens_out == 50
    assert stats.tool_counts == {}
    assert stats.files_touched == []


def test_non_assistant_events_do_not_count(write_jsonl) -> None:
    path = write_jsonl(
        [
            user("hello"),
            {"type": "assistant", "message": {"role": "user", "usage": {"input_tokens": 999}}},
            assistant([text("ok")], {"input_tokens": 10}),
        ]
    )
    assert parse_transcript(path).tokens_in == 10


def test_unreadable_transcript_raises(tmp_path) -> None:
    with pytest.raises(OSError):
        parse_transcript(tmp_path / "missing.jsonl")


def test_normalize_model_and_estimate_cost() -> None:
    assert normalize_model("claude-sonnet-4-5-20250929") == "sonnet"
    assert normalize_model("claude-3-5-haiku") == "haiku"
    assert normalize_model("gpt-something") == ""
    assert math.isclose(estimate_cost("haiku", 1_000_000, 1_000_000, 0, 0), 6.0)


def test_cost_label() -> None:
    assert SessionStats(estimated_cost=0.234).cost_label == "$0.23"
    assert SessionStats().cost_label == ""


# --- find_last_assistant_reply ---


def test_reply_joins_text_blocks_and_finds_plan(write_jsonl) -> None:
    path = write_jsonl(
        [
            user("first"),
            assistant([text("old reply")]),
            user("second"),
            {
                "type": "user",
                "planContent": "Step 1: Do X",
                "message": {"role": "user", "content": [{"type": "tool_result", "content": "ok"}]},
            },
            assistant([text("Part one"), tool_use("Read", file_path="/a"), text("Part two")]),
        ]
    )
    response, plan = find_last_assistant_reply(path)
    assert response == "Part one\n\nPart two"
    assert plan == "Step 1: Do X"


def test_plan_from_earlier_turn_is_not_reported(write_jsonl) -> None:
    path = write_jsonl(
        [
            {"type": "system", "planContent": "old plan"},
            user("first"),
            assistant([text("first reply")]),
            user("second"),
            assistant([text("second reply")]),
        ]
    )
    assert find_last_assistant_reply(path) == ("second reply", "")


def test_reply_skips_tool_only_assistant_events(write_jsonl) -> None:
    path = write_jsonl(
        [
            user("go"),
            assistant([text("Here is the answer")]),
            assistant([tool_use("Bash", command="ls")]),
        ]
    )
    assert find_last_assistant_reply(path)[0] == "Here is the answer"


def test_reply_lookback_window(write_jsonl) -> None:
    path = write_jsonl([assistant([text("too far back")])] + [user("filler")] * 5)
    assert find_last_assistant_reply(path, max_lines=3) == ("", "")


def test_reply_unreadable_file_is_empty(tmp_path) -> None:
    assert find_last_assistant_reply(tmp_path / "missing.jsonl") == ("", "")


def test_reply_retry_sleeps_between_empty_attempts(tmp_path) -> None:
    sleeps: list[float] = []
    result = find_last_assistant_reply_with_retry(tmp_path / "missing.jsonl", sleep=sleeps.append)
    assert result == ("", "")
    assert sleeps == [0.5, 0.5]


def test_reply_retry_stops_on_success(write_jsonl) -> None:
    path = write_jsonl([assistant([text("done")])])
    sleeps: list[float] = []
    assert find_last_assistant_reply_with_retry(path, sleep=sleeps.append) == ("done", "")
    assert sleeps == []


# --- extract_user_topics ---


def test_extract_user_topics(write_jsonl) -> None:
    path = write_jsonl(
        [
            user("<system-reminder>noise</system-reminder>Fix the login bug\nwith more detail"),
            assistant([text("ok")]),
            user([{"type": "tool_result", "content": "output"}]),
            user("<system-reminder>only noise</system-reminder>"),
            user("ignored subagent prompt", isSidechain=True),
            user([text("Add tests")]),
        ]
    )
    assert extract_user_topics(path) == ["Fix the login bug", "Add tests"]


def test_extract_user_topics_limit_and_length(write_jsonl) -> None:
    long_prompt = "word " * 40
    path = write_jsonl([user(f"topic {i}") for i in range(12)] + [user(long_prompt)])
    topics = extract_user_topics(path)
    assert len(topics) == 10
    assert topics[0] == "topic 0"

    long_topics = extract_user_topics(write_jsonl([user(long_prompt)], name="long.jsonl"))
    assert long_topics[0].endswith("...")
    assert len(long_topics[0]) <= 103
