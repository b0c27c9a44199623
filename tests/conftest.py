"""Shared test fixtures for sheaf tests."""

import os
import subprocess
from pathlib import Path
from typing import NamedTuple

import pytest
from typer.testing import CliRunner

from sheaf.context import Context, build_context

GIT_ENV = {
    **os.environ,
    "GIT_AUTHOR_NAME": "Test",
    "GIT_AUTHOR_EMAIL": "test@test.com",
    "GIT_COMMITTER_NAME": "Test",
    "GIT_COMMITTER_EMAIL": "test@test.com",
}


def git(work_dir: Path, *args: str) -> str:
    """Run a git command in ``work_dir`` and return its stdout."""
    return subprocess.run(
        ["git", *args],
        cwd=work_dir, check=True, capture_output=True, text=True, env=GIT_ENV,
    ).stdout.strip()


def git_commit_all(work_dir: Path, message: str) -> str:
    """Stage all changes, commit, and return the new commit hash.

    Uses GIT_ENV for deterministic author/committer identity.
    """
    git(work_dir, "add", "-A")
    git(work_dir, "commit", "-m", message)
    return git(work_dir, "rev-parse", "HEAD")


def write_files(root: Path, files: dict[str, str]) -> None:
    """Write a mapping of relative path to content under ``root``."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)


class FakeRepo(NamedTuple):
    """An upstream git repository on local disk."""

    url: str
    work_dir: Path
    commit_hash: str


def create_git_repo(
    tmp_path: Path,
    name: str = "plugin",
    files: dict[str, str] | None = None,
    tag: str | None = None,
) -> FakeRepo:
    """Create an upstream git repo reachable through a file:// URL.

    The repo has a single commit on ``main`` containing ``files``
    (default: ``<name>.plugin.zsh``), optionally tagged.
    """
    work_dir = tmp_path / "upstream" / name
    work_dir.mkdir(parents=True)
    git(work_dir, "init", "-b", "main")
    write_files(work_dir, files or {f"{name}.plugin.zsh": f"echo {name}\n"})
    commit_hash = git_commit_all(work_dir, "Initial commit")
    if tag:
        git(work_dir, "tag", tag)
    return FakeRepo(url=work_dir.as_uri(), work_dir=work_dir, commit_hash=commit_hash)


def add_commit(repo: FakeRepo, files: dict[str, str], message: str = "Update") -> str:
    """Add a commit to an upstream repo and return its hash."""
    write_files(repo.work_dir, files)
    return git_commit_all(repo.work_dir, message)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's XDG and SHEAF settings out of every test."""
    for name in list(os.environ):
        if name.startswith(("XDG_", "SHEAF_")):
            monkeypatch.delenv(name)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """A fake home directory."""
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def ctx(home: Path) -> Context:
    """Context rooted in a fake home, with the config directory created."""
    context = build_context(home=home, env={})
    context.config_dir.mkdir(parents=True, exist_ok=True)
    return context
