"""Shared utilities for hook entry points.

Provides:
- Logging setup (stderr only; stdout belongs to the hook protocol)
- Typed hook input parsing from stdin
- The fail-open boundary every entry point is wrapped in

Hooks run inline with the assistant, so a hook must never block or fail the
interaction: any unexpected exception ends the process quietly with exit 0.
"""

from __future__ import annotations

import functools
import json
import logging
import os
import sys
from collections.abc import Callable
from typing import IO, Any, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV_VAR = "CLAUDE_HOOKS_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

ModelT = TypeVar("ModelT", bound=BaseModel)


def configure_logging(level: str | None = None) -> None:
    """Send package logs to stderr at WARNING (or CLAUDE_HOOKS_LOG_LEVEL)."""
    name = (level or os.environ.get(LOG_LEVEL_ENV_VAR) or "WARNING").upper()
    resolved = logging.getLevelName(name)
    if not isinstance(resolved, int):
        resolved = logging.WARNING
    logging.basicConfig(level=resolved, format=LOG_FORMAT, stream=sys.stderr)


def read_hook_input(model: type[ModelT], stream: IO[str] | None = None) -> ModelT | None:
    """Parse the hook's JSON payload from stdin into model.

    Returns:
        The parsed payload, or None for empty, malformed or invalid input
    """
    stream = stream if stream is not None else sys.stdin
    try:
        raw = stream.read()
    except OSError as e:
        logger.debug("Failed to read hook input: %s", e)
        return None
    if not raw.strip():
        return None

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.debug("Hook input is not valid JSON: %s", e)
        return None
    if not isinstance(data, dict):
        return None

    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.debug("Hook input failed validation: %s", e)
        return None


def fail_open(func: Callable[..., Any]) -> Callable[..., int]:
    """Wrap an entry point so no exception escapes it.

    The wrapped function's return value is passed through (None becomes 0).
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> int:
        try:
            result = func(*args, **kwargs)
        except Exception:
            logger.debug("Hook %s failed", func.__name__, exc_info=True)
            return 0
        return result if isinstance(result, int) else 0

    return wrapper
