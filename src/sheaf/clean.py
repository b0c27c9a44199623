"""Remove clone and download directories no locked plugin uses."""

from pathlib import Path

from sheaf import cli_logger
from sheaf.context import Context
from sheaf.lock_schema import LockDocument
from sheaf.paths import remove_path


def _keep(document: LockDocument) -> set[Path]:
    keep: set[Path] = set()
    for plugin in document.plugins:
        for path in plugin.paths():
            keep.add(path)
            keep.update(path.parents)
    return keep


def _stale(root: Path, keep: set[Path], opaque: set[Path]) -> list[Path]:
    stale: list[Path] = []
    pending = [root]
    while pending:
        directory = pending.pop()
        for entry in sorted(directory.iterdir()):
            if entry not in keep:
                stale.append(entry)
            elif entry.is_dir() and not entry.is_symlink() and entry not in opaque:
                pending.append(entry)
    return stale


def clean(ctx: Context, document: LockDocument) -> list[Path]:
    """Remove stale entries under the clone and download directories.

    Anything that is neither used by a locked plugin nor a parent of
    something used is removed. Cloned repositories are kept whole.

    Returns:
        The removed paths.
    """
    keep = _keep(document)
    clones = {
        Path(p.source_dir)
        for p in document.plugins
        if p.source_dir is not None and ctx.clone_dir in Path(p.source_dir).parents
    }

    removed: list[Path] = []
    for root in (ctx.clone_dir, ctx.download_dir):
        if not root.is_dir():
            continue
        for path in _stale(root, keep, clones):
            remove_path(path)
            cli_logger.status("Removed", str(ctx.replace_home(path)))
            removed.append(path)
    return removed
