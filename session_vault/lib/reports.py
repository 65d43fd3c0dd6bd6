"""Weekly and monthly usage reports.

Both reports are regenerated in full from the session notes in range and
rewritten at most once per day:

- Weekly-<monday>-to-<today>.md covers the ISO week to date. As the week
  advances the previous day's file (same Monday, earlier end) is removed.
- Monthly-<YYYY-MM>.md covers the calendar month to date.

No report is written for a range with no sessions.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path

from session_vault.lib.frontmatter import format_token_count
from session_vault.lib.session_meta import SessionMeta, scan_sessions

logger = logging.getLogger(__name__)

WEEKLY_TAG = "claude-weekly"
MONTHLY_TAG = "claude-monthly"
TOP_FILES_LIMIT = 20
DAYS_PER_MONTH_WEEK = 7


@dataclass
class ProjectTotals:
    name: str
    sessions: int = 0
    time_min: int = 0
    cost: float = 0.0
    tools: int = 0
    commits: int = 0


@dataclass
class PeriodTotals:
    """Sessions rolled up over a day or a week-of-month."""

    label: str
    sessions: int = 0
    time_min: int = 0
    cost: float = 0.0
    projects: Counter = field(default_factory=Counter)
    tool_counts: Counter = field(default_factory=Counter)

    def add(self, session: SessionMeta) -> None:
        self.sessions += 1
        self.time_min += session.duration_min
        self.cost += session.cost
        self.projects[session.project] += 1
        self.tool_counts.update(session.tools)

    @property
    def focus(self) -> str:
        """Project with the most sessions, ties broken by name."""
        if not self.projects:
            return ""
        return min(self.projects.items(), key=lambda item: (-item[1], item[0]))[0]


# --- Helpers ---


def week_start(day: date) -> date:
    """Monday of the week containing day."""
    return day - timedelta(days=day.weekday())


def format_duration(total_min: int) -> str:
    """Render minutes as 0m, 30m, ~1h or ~1h 30m."""
    if total_min <= 0:
        return "0m"
    hours, minutes = divmod(total_min, 60)
    if hours and minutes:
        return f"~{hours}h {minutes}m"
    if hours:
        return f"~{hours}h"
    return f"{minutes}m"


def is_stale_today(path: Path, now: datetime) -> bool:
    """True if path is missing or was last modified before today."""
    try:
        mtime = path.stat().st_mtime
    except OSError:
        return True
    return datetime.fromtimestamp(mtime).date() != now.date()


def _money(value: float) -> str:
    return f"~${value:.2f}"


def _ranked(counts: Counter) -> list[tuple[str, int]]:
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


# --- Aggregation ---


def aggregate_projects(sessions: list[SessionMeta]) -> list[ProjectTotals]:
    """Per-project totals, most sessions first then by name."""
    by_project: dict[str, ProjectTotals] = {}
    for s in sessions:
        totals = by_project.setdefault(s.project, ProjectTotals(s.project))
        totals.sessions += 1
        totals.time_min += s.duration_min
        totals.cost += s.cost
        totals.tools += s.tool_total
        totals.commits += s.commits
    return sorted(by_project.values(), key=lambda p: (-p.sessions, p.name))


def aggregate_tool_usage(sessions: list[SessionMeta]) -> list[tuple[str, int]]:
    counts: Counter = Counter()
    for s in sessions:
        counts.update(s.tools)
    return _ranked(counts)


def aggregate_files(sessions: list[SessionMeta]) -> list[tuple[str, int]]:
    """Files by the number of sessions that touched them."""
    counts: Counter = Counter()
    for s in sessions:
        counts.update(s.files_touched)
    return _ranked(counts)


def aggregate_daily(sessions: list[SessionMeta]) -> list[PeriodTotals]:
    by_date: dict[str, PeriodTotals] = {}
    for s in sessions:
        by_date.setdefault(s.date, PeriodTotals(s.date)).add(s)
    return [by_date[d] for d in sorted(by_date)]


def busiest_day(sessions: list[SessionMeta]) -> tuple[str, int, float]:
    """(date, sessions, cost) of the day with most sessions, earliest on ties."""
    days = aggregate_daily(sessions)
    if not days:
        return "", 0, 0.0
    best = min(days, key=lambda d: (-d.sessions, d.label))
    return best.label, best.sessions, best.cost


def busiest_hour(sessions: list[SessionMeta]) -> tuple[int, int]:
    """(hour, sessions) of the most common start hour, earliest on ties."""
    hours: Counter = Counter()
    for s in sessions:
        if len(s.start_time) >= 2 and s.start_time[:2].isdigit():
            hours[int(s.start_time[:2])] += 1
    if not hours:
        return 0, 0
    return min(hours.items(), key=lambda item: (-item[1], item[0]))


def month_last_day(month_start: date) -> int:
    next_month = (month_start.replace(day=28) + timedelta(days=4)).replace(day=1)
    return (next_month - timedelta(days=1)).day


def build_weekly_breakdown(sessions: list[SessionMeta], month_start: date) -> list[PeriodTotals]:
    """Week-of-month rollups (days 1-7, 8-14, ...) up to the last active week.

    Weeks without sessions in between are kept with zero totals.
    """
    by_week: dict[int, list[SessionMeta]] = {}
    for s in sessions:
        try:
            day = date.fromisoformat(s.date).day
        except ValueError:
            continue
        by_week.setdefault((day - 1) // DAYS_PER_MONTH_WEEK + 1, []).append(s)
    if not by_week:
        return []

    last_day = month_last_day(month_start)
    abbrev = month_start.strftime("%b")
    weeks = []
    for week in range(1, max(by_week) + 1):
        first = (week - 1) * DAYS_PER_MONTH_WEEK + 1
        last = min(week * DAYS_PER_MONTH_WEEK, last_day)
        totals = PeriodTotals(f"{abbrev} {first}-{last}")
        for s in by_week.get(week, []):
            totals.add(s)
        weeks.append(totals)
    return weeks


# --- Report sections ---


def _projects_section(projects: list[ProjectTotals]) -> list[str]:
    out = [
        "## Projects",
        "",
        "| Project | Sessions | Time | Cost | Tools | Commits |",
        "|---------|----------|------|------|-------|---------|",
    ]
    for p in projects:
        out.append(
            f"| {p.name} | {p.sessions} | {format_duration(p.time_min)} | "
            f"{_money(p.cost)} | {p.tools} | {p.commits} |"
        )
    return out + [""]


def _tool_usage_section(tools: list[tuple[str, int]], total_tools: int) -> list[str]:
    if not tools:
        return []
    out = ["## Tool Usage", "", "| Tool | Count | % |", "|------|-------|---|"]
    for name, count in tools:
        pct = count / total_tools * 100 if total_tools > 0 else 0.0
        out.append(f"| {name} | {count} | {pct:.0f}% |")
    return out + [""]


def _tool_evolution_section(tools: list[tuple[str, int]], weeks: list[PeriodTotals]) -> list[str]:
    if not tools or len(weeks) < 2:
        return []
    header = "| Tool |" + "".join(f" {w.label} |" for w in weeks) + " Total |"
    rule = "|------|" + "--------|" * len(weeks) + "-------|"
    out = ["## Tool Usage Evolution", "", header, rule]
    for name, count in tools:
        cells = "".join(f" {w.tool_counts.get(name, 0)} |" for w in weeks)
        out.append(f"| {name} |{cells} {count} |")
    return out + [""]


def _files_section(files: list[tuple[str, int]]) -> list[str]:
    if not files:
        return []
    out = ["## Most Touched Files", "", "| File | Times Accessed |", "|------|---------------|"]
    out += [f"| {path} | {count} |" for path, count in files[:TOP_FILES_LIMIT]]
    return out + [""]


def _streaks_section(sessions: list[SessionMeta], active_days: int, total_days: int) -> list[str]:
    out = ["## Streaks & Trends", "", f"- **Active days**: {active_days}/{total_days} days"]
    day, day_sessions, day_cost = busiest_day(sessions)
    if day:
        out.append(f"- **Busiest day**: {day} ({day_sessions} sessions, {_money(day_cost)})")
    hour, hour_sessions = busiest_hour(sessions)
    if hour_sessions > 0:
        out.append(f"- **Busiest hour**: {hour}:00 ({hour_sessions} sessions)")
    if sessions:
        total_min = sum(s.duration_min for s in sessions)
        out.append(f"- **Avg session length**: {total_min // len(sessions)}min")
    return out + [""]


def _cost_section(projects: list[ProjectTotals], total_cost: float) -> list[str]:
    out = ["## Cost Analysis", "", "| Project | Cost | % of Total |", "|---------|------|------------|"]
    for p in projects:
        out.append(f"| {p.name} | {_money(p.cost)} | {p.cost / total_cost * 100:.0f}% |")
    return out


def _daily_section(sessions: list[SessionMeta]) -> list[str]:
    out = [
        "## Daily Breakdown",
        "",
        "| Date | Sessions | Time | Cost | Top Project |",
        "|------|----------|------|------|-------------|",
    ]
    for d in aggregate_daily(sessions):
        out.append(
            f"| {d.label} | {d.sessions} | {format_duration(d.time_min)} | "
            f"{_money(d.cost)} | {d.focus} |"
        )
    return out + [""]


def _frontmatter(fields: list[str], tag: str) -> list[str]:
    return ["---", *fields, "auto_generated: true", "tags:", f"  - {tag}", "---", ""]


# --- Report builders ---


def build_weekly_report(sessions: list[SessionMeta], start: date, end: date) -> str:
    """Render the weekly report for sessions dated start..end."""
    start_str, end_str = start.isoformat(), end.isoformat()
    active_days = len({s.date for s in sessions})
    total_days = (end - start).days + 1
    total_min = sum(s.duration_min for s in sessions)
    total_cost = sum(s.cost for s in sessions)
    total_tools = sum(s.tool_total for s in sessions)
    projects = aggregate_projects(sessions)

    out = _frontmatter([f'date_range: "{start_str} to {end_str}"', "type: weekly-stats"], WEEKLY_TAG)
    out += [
        f"# Weekly Stats: {start_str} to {end_str}",
        "",
        "> *Auto-generated. Run `/weekly` for narrative version.*",
        "",
        "## Overview",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Sessions | {len(sessions)} |",
        f"| Active Days | {active_days}/{total_days} |",
        f"| Total Time | {format_duration(total_min)} |",
        f"| Total Cost | {_money(total_cost)} |",
        f"| Tokens In | {format_token_count(sum(s.tokens_in for s in sessions))} |",
        f"| Tokens Out | {format_token_count(sum(s.tokens_out for s in sessions))} |",
        f"| Tool Calls | {total_tools} |",
        f"| Commits | {sum(s.commits for s in sessions)} |",
        "",
    ]
    out += _projects_section(projects)
    out += _tool_usage_section(aggregate_tool_usage(sessions), total_tools)
    out += _files_section(aggregate_files(sessions))
    out += _streaks_section(sessions, active_days, total_days)
    if total_cost > 0:
        out += _cost_section(projects, total_cost) + [""]
    out += _daily_section(sessions)
    return "\n".join(out) + "\n"


def build_monthly_report(sessions: list[SessionMeta], month_start: date) -> str:
    """Render the monthly report for sessions of month_start's month.

    Active days are counted against the days from the 1st through the
    latest session date.
    """
    active_days = len({s.date for s in sessions})
    total_min = sum(s.duration_min for s in sessions)
    total_cost = sum(s.cost for s in sessions)
    total_tools = sum(s.tool_total for s in sessions)
    projects = aggregate_projects(sessions)
    weeks = build_weekly_breakdown(sessions, month_start)
    tools = aggregate_tool_usage(sessions)

    last_date = month_start
    for s in sessions:
        try:
            last_date = max(last_date, date.fromisoformat(s.date))
        except ValueError:
            continue
    total_days = (last_date - month_start).days + 1

    tokens_in = format_token_count(sum(s.tokens_in for s in sessions))
    tokens_out = format_token_count(sum(s.tokens_out for s in sessions))
    out = _frontmatter([f'month: "{month_start:%Y-%m}"', "type: monthly-stats"], MONTHLY_TAG)
    out += [
        f"# Monthly Stats: {month_start:%B %Y}",
        "",
        "> *Auto-generated. Run `/monthly` for narrative version.*",
        "",
        "## Summary",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Total Sessions | {len(sessions)} |",
        f"| Active Days | {active_days}/{total_days} |",
        f"| Total Time | {format_duration(total_min)} |",
        f"| Total Cost | {_money(total_cost)} |",
        f"| Tokens | {tokens_in} in / {tokens_out} out |",
        f"| Tool Calls | {total_tools} |",
        f"| Commits | {sum(s.commits for s in sessions)} |",
        f"| Projects | {len(projects)} |",
        "",
    ]
    out += _projects_section(projects)
    if weeks:
        out += [
            "## Weekly Breakdown",
            "",
            "| Week | Sessions | Time | Cost | Focus |",
            "|------|----------|------|------|-------|",
        ]
        for w in weeks:
            out.append(
                f"| {w.label} | {w.sessions} | {format_duration(w.time_min)} | "
                f"{_money(w.cost)} | {w.focus or '-'} |"
            )
        out.append("")
    out += _tool_usage_section(tools, total_tools)
    out += _tool_evolution_section(tools, weeks)
    out += _files_section(aggregate_files(sessions))
    out += _streaks_section(sessions, active_days, total_days)
    if total_cost > 0:
        out += _cost_section(projects, total_cost)
        if active_days > 0:
            out += ["", f"**Daily average**: {_money(total_cost / active_days)}/day (active days only)"]
        if weeks:
            out.append(f"**Weekly average**: {_money(total_cost / len(weeks))}/week")
        out.append("")
    out += _daily_section(sessions)
    return "\n".join(out) + "\n"


# --- Rebuild entry points ---


def _write_report(path: Path, text: str) -> Path | None:
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to write report %s: %s", path, e)
        return None
    return path


def remove_superseded_weekly(vault: Path, start: date, keep: str) -> int:
    """Delete weekly reports for the same Monday but an earlier end date."""
    removed = 0
    for old in vault.glob(f"Weekly-{start.isoformat()}-to-*.md"):
        if old.name == keep or not old.is_file():
            continue
        try:
            old.unlink()
            removed += 1
        except OSError as e:
            logger.debug("Could not remove superseded report %s: %s", old, e)
    return removed


def rebuild_weekly_stats_if_stale(vault_dir: str | Path, now: datetime) -> Path | None:
    """Regenerate this week's report unless it was already written today.

    Superseded files for the same week are cleaned up on every call.

    Returns:
        Path of the written report, or None if nothing was written
    """
    vault = Path(vault_dir)
    today = now.date()
    start = week_start(today)
    file_name = f"Weekly-{start.isoformat()}-to-{today.isoformat()}.md"
    report_path = vault / file_name

    remove_superseded_weekly(vault, start, keep=file_name)
    if not is_stale_today(report_path, now):
        return None

    sessions = scan_sessions(vault, start, today)
    if not sessions:
        return None
    return _write_report(report_path, build_weekly_report(sessions, start, today))


def rebuild_monthly_stats_if_stale(vault_dir: str | Path, now: datetime) -> Path | None:
    """Regenerate this month's report unless it was already written today.

    Returns:
        Path of the written report, or None if nothing was written
    """
    vault = Path(vault_dir)
    today = now.date()
    start = today.replace(day=1)
    report_path = vault / f"Monthly-{start:%Y-%m}.md"
    if not is_stale_today(report_path, now):
        return None

    sessions = scan_sessions(vault, start, today)
    if not sessions:
        return None
    return _write_report(report_path, build_monthly_report(sessions, start))
