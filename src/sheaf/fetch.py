"""Shared source install operations.

Dispatches to the correct installer (git, remote or local) based on the
source kind.
"""

from sheaf.config import Source, SourceKind
from sheaf.context import Context
from sheaf.git_source import lock_git
from sheaf.local_source import lock_local
from sheaf.remote_source import lock_remote
from sheaf.transport import Downloader, GitTransport, LockedSource


def ensure_installed(
    source: Source,
    ctx: Context,
    git: GitTransport,
    downloader: Downloader,
) -> LockedSource | None:
    """Ensure a source is present on disk and at the requested state.

    Args:
        source: The normalized source descriptor.
        ctx: Invocation context, including the lock mode.
        git: Git transport used for Git sources.
        downloader: HTTP transport used for remote sources.

    Returns:
        The locked source, or None for inline sources, which have nothing
        on disk.

    Raises:
        SourceError: If the source cannot be installed or located.
        OSError: On filesystem failures.
    """
    if source.kind == SourceKind.GIT:
        return lock_git(source, ctx, git)
    if source.kind == SourceKind.REMOTE:
        return lock_remote(source, ctx, downloader)
    if source.kind == SourceKind.LOCAL:
        return lock_local(source, ctx)
    return None
