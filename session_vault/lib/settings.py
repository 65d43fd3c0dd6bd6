"""Hook configuration.

Values are layered, highest priority first:

1. Environment (CLAUDE_VAULT, vault directory only)
2. Project settings: $CLAUDE_PROJECT_DIR/.claude/claude-hooks.local.md
3. Global settings: ~/.claude/claude-hooks.local.md
4. Legacy ~/.claude/hooks/config.json
5. Built-in defaults

The .local.md files keep their settings in YAML frontmatter:

    ---
    vault_path: ~/Obsidian/Claude
    skip_when_focused: false
    git_auto_push: true
    ---

Missing, unreadable or malformed files contribute nothing.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel

logger = logging.getLogger(__name__)

SETTINGS_FILE_NAME = "claude-hooks.local.md"
VAULT_ENV_VAR = "CLAUDE_VAULT"
PROJECT_DIR_ENV_VAR = "CLAUDE_PROJECT_DIR"

_TRUE_STRINGS = {"true", "yes", "on", "1"}


class Settings(BaseModel):
    """One settings layer. None means "not set here"."""

    vault_path: str | None = None
    skip_when_focused: bool | None = None
    git_auto_push: bool | None = None

    def overlay(self, other: Settings) -> Settings:
        """Return self with every field set in other taking its place."""
        merged = self.model_copy()
        for name, value in other.model_dump(exclude_none=True).items():
            if name == "vault_path" and not value:
                continue
            setattr(merged, name, value)
        return merged


class HookConfig(BaseModel):
    """Resolved configuration used by the hooks."""

    vault_path: str = ""
    skip_when_focused: bool = True
    git_auto_push: bool = False


def parse_bool(value: Any) -> bool:
    """Interpret a YAML scalar as a boolean (true/yes/on/1)."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_STRINGS


def extract_frontmatter(content: str) -> str:
    """Text between the first two "---" lines, or "" if there is no pair."""
    start = None
    lines = content.splitlines()
    for idx, line in enumerate(lines):
        if line.strip() != "---":
            continue
        if start is None:
            start = idx
        else:
            return "\n".join(lines[start + 1 : idx])
    return ""


def read_settings_file(path: Path) -> Settings:
    """Parse one .local.md settings file."""
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        return Settings()

    try:
        data = yaml.safe_load(extract_frontmatter(content))
    except yaml.YAMLError as e:
        logger.warning("Ignoring malformed settings file %s: %s", path, e)
        return Settings()
    if not isinstance(data, dict):
        return Settings()

    settings = Settings()
    vault_path = data.get("vault_path")
    if vault_path is not None:
        settings.vault_path = str(vault_path).strip()
    if "skip_when_focused" in data:
        settings.skip_when_focused = parse_bool(data["skip_when_focused"])
    if "git_auto_push" in data:
        settings.git_auto_push = parse_bool(data["git_auto_push"])
    return settings


def read_legacy_config(path: Path) -> Settings:
    """Parse the legacy JSON config. Malformed JSON contributes nothing."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return Settings()
    if not isinstance(data, dict):
        return Settings()

    settings = Settings()
    if isinstance(data.get("skip_when_focused"), bool):
        settings.skip_when_focused = data["skip_when_focused"]
    if isinstance(data.get("git_auto_push"), bool):
        settings.git_auto_push = data["git_auto_push"]
    return settings


def global_settings_path() -> Path:
    return Path.home() / ".claude" / SETTINGS_FILE_NAME


def project_settings_path() -> Path | None:
    project_dir = os.environ.get(PROJECT_DIR_ENV_VAR)
    if not project_dir:
        return None
    return Path(project_dir) / ".claude" / SETTINGS_FILE_NAME


def legacy_config_path() -> Path:
    return Path.home() / ".claude" / "hooks" / "config.json"


def read_all_settings() -> Settings:
    """Merge the settings files, project over global over legacy."""
    merged = read_legacy_config(legacy_config_path())
    merged = merged.overlay(read_settings_file(global_settings_path()))
    project_path = project_settings_path()
    if project_path is not None:
        merged = merged.overlay(read_settings_file(project_path))
    return merged


def load_settings() -> HookConfig:
    """Resolve the effective hook configuration."""
    merged = read_all_settings()
    config = HookConfig()
    if merged.vault_path:
        config.vault_path = merged.vault_path
    if merged.skip_when_focused is not None:
        config.skip_when_focused = merged.skip_when_focused
    if merged.git_auto_push is not None:
        config.git_auto_push = merged.git_auto_push

    env_vault = os.environ.get(VAULT_ENV_VAR)
    if env_vault:
        config.vault_path = env_vault
    return config


def vault_dir(config: HookConfig | None = None) -> Path | None:
    """Configured vault directory, or None when no vault is set up."""
    if config is None:
        config = load_settings()
    if not config.vault_path:
        return None
    return Path(config.vault_path).expanduser()
