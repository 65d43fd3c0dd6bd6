#!/usr/bin/env python3
"""
Obsidian session logger for the assistant's prompt and stop hooks.

Subcommands:
- log-prompt (UserPromptSubmit): creates the session note on the first
  prompt of a session, then appends every prompt as a [!user] callout.
- log-response (Stop): appends usage stats, the plan, the reply and any new
  commits, refreshes the note's frontmatter, then rebuilds the daily index
  and the weekly/monthly reports and syncs the vault.

Vault layout:
    <vault>/<project>/<YYYY-MM-DD>_<HHMM>[_<slug>].md   session notes
    <vault>/<YYYY-MM-DD>.md                              daily index
    <vault>/Weekly-<start>-to-<end>.md                   weekly report
    <vault>/Monthly-<YYYY-MM>.md                         monthly report

Exit codes:
    0: Always. Failures are logged to stderr and never block the assistant.
"""

from __future__ import annotations

import argparse
import logging
from datetime import datetime
from pathlib import Path

from session_vault.hooks.schemas import PromptInput, StopInput
from session_vault.lib import git_context
from session_vault.lib.daily_index import rebuild_daily_index
from session_vault.lib.frontmatter import (
    FrontmatterData,
    StatsFields,
    build_frontmatter,
    format_stats_line,
)
from session_vault.lib.git_sync import sync_if_enabled
from session_vault.lib.hook_utils import configure_logging, fail_open, read_hook_input
from session_vault.lib.reports import (
    rebuild_monthly_stats_if_stale,
    rebuild_weekly_stats_if_stale,
)
from session_vault.lib.sanitize import (
    generate_title_slug,
    sanitize_project_name,
    strip_system_tags,
    truncate,
    truncate_simple,
)
from session_vault.lib.session_note import (
    append_to_note,
    create_note,
    file_exists,
    format_commits_entry,
    format_plan_entry,
    format_prompt_entry,
    format_response_entry,
    format_summary_block,
    insert_summary_block,
    update_duration,
    update_note_stats,
)
from session_vault.lib.session_paths import get_claude_projects_dir
from session_vault.lib.session_state import cleanup_stale, read_session, write_session
from session_vault.lib.settings import HookConfig, load_settings, vault_dir
from session_vault.lib.transcript_parser import (
    SessionStats,
    extract_user_topics,
    find_last_assistant_reply_with_retry,
    parse_transcript,
)
from session_vault.lib.vault import find_parent_session, new_note_path

logger = logging.getLogger(__name__)

# --- Limits ---

PROMPT_MAX_CHARS = 5000
PLAN_MAX_CHARS = 5000
RESPONSE_MAX_CHARS = 3000

# Topic summary is inserted once the session has this many prompts
SUMMARY_MIN_TOPICS = 3


# --- log-prompt ---


def start_note(payload: PromptInput, vault: Path, prompt: str, now: datetime) -> Path | None:
    """Create the note, then the state record, for a new session.

    No state is recorded unless the note exists, so a failed start leaves
    the next prompt free to try again.
    """
    project = sanitize_project_name(Path(payload.cwd).name)
    project_dir = vault / project
    note_path = new_note_path(project_dir, now, generate_title_slug(prompt))
    if note_path is None:
        return None

    git = git_context.capture(payload.cwd)
    resumed_from = find_parent_session(payload.session_id, get_claude_projects_dir(), vault)
    header = build_frontmatter(
        FrontmatterData(
            date=f"{now:%Y-%m-%d}",
            session_id=payload.session_id,
            project=project,
            start_time=f"{now:%H:%M}",
            resumed_from=resumed_from,
            branch=git.branch,
        )
    )
    if not create_note(note_path, header):
        return None
    write_session(payload.session_id, note_path, 1, git.branch, git.hash, payload.cwd)
    logger.info("Started session note %s", note_path)
    return note_path


def log_prompt(
    payload: PromptInput, config: HookConfig | None = None, now: datetime | None = None
) -> Path | None:
    """Record a user prompt in the session's note.

    Returns:
        Path of the note written to, or None if nothing was logged
    """
    prompt = strip_system_tags(payload.prompt)
    if not prompt:
        return None
    prompt = truncate(prompt, PROMPT_MAX_CHARS)

    vault = vault_dir(config)
    if vault is None:
        logger.debug("No vault configured")
        return None
    try:
        vault.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("Cannot create vault %s: %s", vault, e)
        return None

    now = now or datetime.now()
    cleanup_stale()

    state = read_session(payload.session_id)
    if state is not None:
        note_path = Path(state.note_path)
        prompt_num = state.prompt_count + 1
        write_session(
            payload.session_id, note_path, prompt_num, state.branch, state.start_hash, state.cwd
        )
    else:
        note_path = start_note(payload, vault, prompt, now)
        if note_path is None:
            return None
        prompt_num = 1

    entry = format_prompt_entry(prompt_num, f"{now:%H:%M:%S}", payload.cwd, prompt)
    if not append_to_note(note_path, entry):
        return None
    return note_path


# --- log-response ---


def _load_stats(transcript: Path) -> SessionStats | None:
    try:
        stats = parse_transcript(transcript)
    except OSError as e:
        logger.warning("Cannot parse transcript %s: %s", transcript, e)
        return None
    return stats if stats.total_tool_calls > 0 else None


def log_response(
    payload: StopInput, config: HookConfig | None = None, now: datetime | None = None
) -> bool:
    """Record the assistant's turn in the session's note and refresh rollups.

    Returns:
        True if the session note was updated
    """
    if not payload.transcript_path:
        return False
    transcript = Path(payload.transcript_path)
    if not file_exists(transcript):
        return False

    state = read_session(payload.session_id)
    if state is None:
        return False
    note_path = Path(state.note_path)
    if not file_exists(note_path):
        logger.debug("Session note %s is gone", note_path)
        return False

    if config is None:
        config = load_settings()
    now = now or datetime.now()
    time_str = f"{now:%H:%M:%S}"

    response_text, plan_text = find_last_assistant_reply_with_retry(transcript)
    stats = _load_stats(transcript)

    output = ""
    if stats is not None:
        stats_line = format_stats_line(
            stats.tool_counts, stats.tokens_in, stats.tokens_out, stats.cost_label
        )
        if stats_line:
            output += "\n" + stats_line
    if plan_text:
        output += format_plan_entry(time_str, truncate_simple(plan_text, PLAN_MAX_CHARS))
    if response_text:
        output += format_response_entry(time_str, truncate(response_text, RESPONSE_MAX_CHARS))

    commit_lines: list[str] = []
    if state.start_hash and state.cwd:
        commits = git_context.commits_since(state.cwd, state.start_hash)
        commit_lines = [str(c) for c in commits]
        if commits:
            # Next turn only reports commits made after this one
            head = git_context.capture(state.cwd)
            if head.hash:
                write_session(
                    payload.session_id,
                    state.note_path,
                    state.prompt_count,
                    state.branch,
                    head.hash,
                    state.cwd,
                )
    output += format_commits_entry(f"{now:%H:%M}", commit_lines)

    if output and not append_to_note(note_path, output):
        return False

    update_duration(note_path, now)
    if stats is not None:
        update_note_stats(
            note_path,
            StatsFields(
                branch=state.branch,
                model=stats.model,
                tools=stats.tool_counts,
                tokens_in=stats.tokens_in,
                tokens_out=stats.tokens_out,
                cache_read=stats.cache_read,
                cache_creation=stats.cache_creation,
                estimated_cost=stats.cost_label,
                files_touched=stats.files_touched,
                commits=commit_lines,
            ),
        )

    topics = extract_user_topics(transcript)
    if len(topics) >= SUMMARY_MIN_TOPICS:
        insert_summary_block(note_path, format_summary_block(topics))

    refresh_vault(config, now)
    return True


def refresh_vault(config: HookConfig, now: datetime) -> None:
    """Rebuild the rollup files and sync the vault."""
    vault = vault_dir(config)
    if vault is None:
        return
    rebuild_daily_index(vault, now.date())
    rebuild_weekly_stats_if_stale(vault, now)
    rebuild_monthly_stats_if_stale(vault, now)
    sync_if_enabled(vault, config)


# --- Entry point ---


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="claude-obsidian", description="Log assistant sessions to an Obsidian vault"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("log-prompt", help="Log a user prompt (UserPromptSubmit hook)")
    subparsers.add_parser("log-response", help="Log the assistant's reply (Stop hook)")
    return parser


@fail_open
def main(argv: list[str] | None = None) -> int:
    configure_logging()
    try:
        args = build_parser().parse_args(argv)
    except SystemExit:
        return 0

    if args.command == "log-prompt":
        prompt_input = read_hook_input(PromptInput)
        if prompt_input is not None:
            log_prompt(prompt_input)
    elif args.command == "log-response":
        stop_input = read_hook_input(StopInput)
        if stop_input is not None:
            log_response(stop_input)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
