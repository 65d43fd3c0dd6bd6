"""Shared fixtures: every test runs against a throwaway HOME, state dir and vault."""

import json
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Redirect HOME and the session state dir so tests never touch the real machine."""
    home = tmp_path / "home"
    home.mkdir()
    state_dir = tmp_path / "state"
    state_dir.mkdir()

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.setenv("CLAUDE_HOOKS_STATE_DIR", str(state_dir))
    for var in ("CLAUDE_VAULT", "CLAUDE_PROJECT_DIR", "CLAUDE_HOOKS_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)

    # Commits in temp repos need an identity that does not come from ~/.gitconfig
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    return home


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    path = tmp_path / "vault"
    path.mkdir()
    return path


@pytest.fixture
def write_jsonl(tmp_path: Path):
    """Write transcript events (dicts or raw strings) to a JSONL file."""

    def _write(events: list, name: str = "transcript.jsonl") -> Path:
        path = tmp_path / name
        lines = [e if isinstance(e, str) else json.dumps(e) for e in events]
        path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
        return path

    return _write
