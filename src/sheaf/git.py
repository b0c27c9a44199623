"""Git operations for sheaf.

Thin wrapper around the ``git`` command line used to clone, update and
check out plugin repositories. Every command runs non-interactively:
credentials must come from an SSH agent or a credential helper, never a
password prompt.
"""

import os
import subprocess
from pathlib import Path

from sheaf.config import GitReference, ReferenceKind
from sheaf.errors import GitError

DEFAULT_BRANCH_REF = "refs/remotes/origin/HEAD"


def _run(args: list[str], cwd: Path | None = None) -> str:
    """Run a git command and return its stdout.

    Raises:
        GitError: If git is missing or the command exits non-zero.
    """
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            check=True,
            capture_output=True,
            text=True,
            env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
        )
    except FileNotFoundError as e:
        msg = "git is not installed or not on PATH"
        raise GitError(msg) from e
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or e.stdout or "").strip() or f"exit code {e.returncode}"
        msg = f"git {args[0]} failed: {detail}"
        raise GitError(msg) from e
    return result.stdout


def reference_spec(reference: GitReference | None) -> str:
    """The revision expression git should resolve for a reference."""
    if reference is None:
        return DEFAULT_BRANCH_REF
    if reference.kind == ReferenceKind.BRANCH:
        return f"refs/remotes/origin/{reference.value}"
    if reference.kind == ReferenceKind.TAG:
        return f"refs/tags/{reference.value}"
    return reference.value


def reference_not_found(reference: GitReference | None) -> str:
    """Error message for a reference that does not resolve."""
    if reference is None:
        return "failed to find the default branch"
    kind = {
        ReferenceKind.BRANCH: "branch",
        ReferenceKind.TAG: "tag",
        ReferenceKind.REV: "revision",
    }[reference.kind]
    return f"failed to find {kind} `{reference.value}`"


class GitCli:
    """Git transport backed by the ``git`` executable."""

    def clone(self, url: str, dest: Path) -> None:
        """Clone ``url`` into ``dest``.

        Raises:
            GitError: If the clone fails.
        """
        _run(["clone", "--quiet", url, str(dest)])

    def fetch(self, repo: Path) -> None:
        """Fetch every branch and tag from origin and refresh ``origin/HEAD``.

        Raises:
            GitError: If the fetch fails.
        """
        _run(
            [
                "fetch",
                "--quiet",
                "--tags",
                "--force",
                "--prune",
                "origin",
                "+refs/heads/*:refs/remotes/origin/*",
            ],
            cwd=repo,
        )
        _run(["remote", "set-head", "origin", "--auto"], cwd=repo)

    def resolve(self, repo: Path, reference: GitReference | None) -> str | None:
        """Resolve a reference to a commit id, or None if it does not exist locally."""
        spec = reference_spec(reference)
        result = subprocess.run(
            ["git", "rev-parse", "--verify", "--quiet", f"{spec}^{{commit}}"],
            cwd=repo,
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def head(self, repo: Path) -> str:
        """Get the HEAD commit hash.

        Raises:
            GitError: If HEAD cannot be read.
        """
        return _run(["rev-parse", "HEAD"], cwd=repo).strip()

    def checkout(self, repo: Path, commit: str) -> None:
        """Force a detached checkout of ``commit``.

        Raises:
            GitError: If the checkout fails.
        """
        _run(["checkout", "--quiet", "--force", "--detach", commit], cwd=repo)

    def update_submodules(self, repo: Path) -> None:
        """Initialize and update submodules recursively.

        Raises:
            GitError: If a submodule cannot be updated.
        """
        if not (repo / ".gitmodules").exists():
            return
        _run(["submodule", "update", "--quiet", "--init", "--recursive"], cwd=repo)
