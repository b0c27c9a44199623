"""Install and update Git plugin sources.

Fresh installs clone into a temporary sibling directory that is renamed
into place only once the requested reference is checked out.
"""

from pathlib import Path

from sheaf.config import GitReference, Source
from sheaf.context import Context, LockMode
from sheaf.errors import SourceError
from sheaf.git import reference_not_found
from sheaf.paths import TempPath
from sheaf.transport import GitTransport, InstallOutcome, InstallStatus, LockedSource, git_dir

SHORT_SHA = 7


def _resolve_or_raise(git: GitTransport, repo: Path, reference: GitReference | None) -> str:
    commit = git.resolve(repo, reference)
    if commit is None:
        raise SourceError(reference_not_found(reference))
    return commit


def install_git(url: str, directory: Path, reference: GitReference | None, git: GitTransport) -> InstallOutcome:
    """Clone a repository into ``directory`` at the given reference.

    Any existing directory is replaced only once the clone succeeds.

    Raises:
        GitError: If cloning or checking out fails.
        SourceError: If the reference does not exist.
    """
    with TempPath(directory) as temp:
        git.clone(url, temp.path)
        commit = _resolve_or_raise(git, temp.path, reference)
        git.checkout(temp.path, commit)
        git.update_submodules(temp.path)
        temp.persist()
    return InstallOutcome(InstallStatus.CLONED, commit[:SHORT_SHA])


def update_git(directory: Path, reference: GitReference | None, mode: LockMode, git: GitTransport) -> InstallOutcome:
    """Bring an existing clone to the requested reference.

    In NORMAL mode origin is only contacted when the reference is not known
    locally. In UPDATE mode origin is always fetched first.

    Raises:
        GitError: If a git command fails.
        SourceError: If the reference does not exist.
    """
    if mode == LockMode.UPDATE:
        git.fetch(directory)
        commit = _resolve_or_raise(git, directory, reference)
    else:
        commit = git.resolve(directory, reference)
        if commit is None:
            git.fetch(directory)
            commit = _resolve_or_raise(git, directory, reference)

    head = git.head(directory)
    if commit == head:
        return InstallOutcome(InstallStatus.CHECKED)

    git.checkout(directory, commit)
    git.update_submodules(directory)
    return InstallOutcome(InstallStatus.UPDATED, f"{head[:SHORT_SHA]} to {commit[:SHORT_SHA]}")


def lock_git(source: Source, ctx: Context, git: GitTransport) -> LockedSource:
    """Ensure a Git source is cloned and checked out at its reference."""
    directory = git_dir(ctx.clone_dir, source.url, source.reference)
    if ctx.mode == LockMode.REINSTALL or not (directory / ".git").exists():
        outcome = install_git(source.url, directory, source.reference, git)
    else:
        outcome = update_git(directory, source.reference, ctx.mode, git)
    return LockedSource(dir=directory, outcome=outcome)
