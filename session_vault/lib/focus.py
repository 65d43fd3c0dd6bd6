"""Terminal focus detection for desktop notifications.

The terminal counts as focused when the foreground window belongs to one of
this process's ancestors (hook -> shell -> terminal). Only Windows exposes
the foreground window here; elsewhere the terminal is never reported as
focused, so notifications are always shown.
"""

from __future__ import annotations

import ctypes
import logging
import os
import sys

import psutil

logger = logging.getLogger(__name__)

MAX_ANCESTOR_DEPTH = 20


def ancestor_pids(pid: int | None = None, max_depth: int = MAX_ANCESTOR_DEPTH) -> list[int]:
    """PIDs of pid's parent chain, nearest first, at most max_depth long."""
    try:
        process = psutil.Process(pid if pid is not None else os.getpid())
        parents = process.parents()
    except (psutil.Error, OSError) as e:
        logger.debug("Cannot walk process ancestors: %s", e)
        return []

    pids: list[int] = []
    for parent in parents[:max_depth]:
        if parent.pid == 0 or parent.pid in pids:
            break
        pids.append(parent.pid)
    return pids


def foreground_window_pid() -> int | None:
    """PID owning the foreground window (Windows only)."""
    if sys.platform != "win32":
        return None
    try:
        user32 = ctypes.windll.user32
        hwnd = user32.GetForegroundWindow()
        if not hwnd:
            return None
        pid = ctypes.c_ulong(0)
        user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
    except (AttributeError, OSError) as e:
        logger.debug("Foreground window lookup failed: %s", e)
        return None
    return pid.value or None


def terminal_is_focused() -> bool:
    """True if the foreground window belongs to an ancestor of this process."""
    fg_pid = foreground_window_pid()
    if fg_pid is None:
        return False
    return fg_pid in ancestor_pids()
