"""Locate local plugin directories."""

import glob
from pathlib import Path

from sheaf.config import Source
from sheaf.context import Context
from sheaf.errors import SourceError
from sheaf.transport import LockedSource


def local_dir(source: Source, ctx: Context) -> Path:
    """The path a local source points at, before globbing.

    ``~`` is expanded and relative paths are taken relative to the config
    directory.
    """
    path = ctx.expand_tilde(Path(source.path))
    if not path.is_absolute():
        path = ctx.config_dir / path
    return path


def lock_local(source: Source, ctx: Context) -> LockedSource:
    """Check a local source.

    The path may be a glob, in which case it must match exactly one
    directory.

    Raises:
        SourceError: If the path is not a directory or the glob is ambiguous.
    """
    path = local_dir(source, ctx)
    if path.is_dir():
        return LockedSource(dir=path)

    pattern = str(path)
    if not glob.has_magic(pattern):
        msg = f"`{ctx.replace_home(path)}` is not a dir"
        raise SourceError(msg)

    dirs = sorted(Path(p) for p in glob.glob(pattern) if Path(p).is_dir())
    if len(dirs) != 1:
        msg = f"`{ctx.replace_home(path)}` matches {len(dirs)} directories"
        raise SourceError(msg)
    return LockedSource(dir=dirs[0])
