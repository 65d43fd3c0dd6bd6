#!/usr/bin/env python3
"""
Desktop notification hook (Stop / Notification events).

Usage:
    claude-notify [--title TITLE] [--message MESSAGE]

Skipped while the terminal running the assistant has focus, unless
skip_when_focused is turned off. Delivery is best-effort through the
platform's own notifier; nothing is reported when it fails.
"""

from __future__ import annotations

import argparse
import logging
import os
import shutil
import subprocess
import sys

from session_vault.lib.focus import terminal_is_focused
from session_vault.lib.hook_utils import configure_logging, fail_open
from session_vault.lib.settings import HookConfig, load_settings

logger = logging.getLogger(__name__)

APP_NAME = "Claude Code"
DEFAULT_TITLE = "Claude"
DEFAULT_MESSAGE = "Task completed!"
NOTIFY_TIMEOUT_SECONDS = 5

_POWERSHELL_TOAST = """
[Windows.UI.Notifications.ToastNotificationManager, Windows.UI.Notifications, ContentType = WindowsRuntime] | Out-Null
$template = [Windows.UI.Notifications.ToastNotificationManager]::GetTemplateContent([Windows.UI.Notifications.ToastTemplateType]::ToastText02)
$text = $template.GetElementsByTagName('text')
$text.Item(0).AppendChild($template.CreateTextNode($env:CLAUDE_NOTIFY_TITLE)) | Out-Null
$text.Item(1).AppendChild($template.CreateTextNode($env:CLAUDE_NOTIFY_MESSAGE)) | Out-Null
$toast = [Windows.UI.Notifications.ToastNotification]::new($template)
[Windows.UI.Notifications.ToastNotificationManager]::CreateToastNotifier($env:CLAUDE_NOTIFY_APP).Show($toast)
"""


def _applescript_string(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def notification_command(
    title: str, message: str, platform: str | None = None
) -> tuple[list[str], dict[str, str]] | None:
    """Command (and extra environment) that shows a notification.

    Returns:
        (argv, env) or None when the platform has no supported notifier
    """
    platform = platform or sys.platform
    if platform == "darwin":
        script = (
            f"display notification {_applescript_string(message)} "
            f"with title {_applescript_string(title)}"
        )
        return ["osascript", "-e", script], {}
    if platform == "win32":
        env = {
            "CLAUDE_NOTIFY_TITLE": title,
            "CLAUDE_NOTIFY_MESSAGE": message,
            "CLAUDE_NOTIFY_APP": APP_NAME,
        }
        return ["powershell", "-NoProfile", "-NonInteractive", "-Command", _POWERSHELL_TOAST], env
    if shutil.which("notify-send"):
        return ["notify-send", "--app-name", APP_NAME, title, message], {}
    return None


def send_notification(title: str, message: str) -> bool:
    """Show a desktop notification. Returns True if the notifier succeeded."""
    command = notification_command(title, message)
    if command is None:
        logger.debug("No desktop notifier available on %s", sys.platform)
        return False

    argv, extra_env = command
    env = {**os.environ, **extra_env} if extra_env else None
    try:
        result = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            timeout=NOTIFY_TIMEOUT_SECONDS,
            check=False,
            env=env,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("Notifier %s failed: %s", argv[0], e)
        return False
    if result.returncode != 0:
        logger.debug("Notifier %s exited %d: %s", argv[0], result.returncode, result.stderr.strip())
        return False
    return True


def should_notify(config: HookConfig) -> bool:
    return not (config.skip_when_focused and terminal_is_focused())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="claude-notify", description="Desktop notification hook")
    parser.add_argument("--title", default=DEFAULT_TITLE, help="Notification title")
    parser.add_argument("--message", default=DEFAULT_MESSAGE, help="Notification body")
    return parser


@fail_open
def main(argv: list[str] | None = None) -> int:
    configure_logging()
    try:
        args, _ = build_parser().parse_known_args(argv)
    except SystemExit:
        return 0
    if not should_notify(load_settings()):
        logger.debug("Terminal focused, skipping notification")
        return 0
    send_notification(args.title, args.message)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
