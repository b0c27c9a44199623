"""Filesystem path helpers."""

import shutil
from pathlib import Path
from types import TracebackType


def expand_tilde(path: Path, home: Path) -> Path:
    """Expand a leading ``~`` using the given home directory."""
    parts = path.parts
    if parts and parts[0] == "~":
        return home.joinpath(*parts[1:])
    return path


def replace_home(path: Path, home: Path) -> Path:
    """Replace the home directory prefix with ``~`` for display."""
    try:
        return Path("~") / path.relative_to(home)
    except ValueError:
        return path


def remove_path(path: Path) -> None:
    """Remove a file, symlink or directory tree if it exists."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


class TempPath:
    """A temporary sibling of a target path that is renamed into place.

    For a target ``repos/github.com/a/b`` the temporary path is
    ``repos/github.com/a/~b``. Work happens at the temporary path and only
    a successful ``persist()`` moves it over the target, so an interrupted
    install never leaves a half-written directory at the canonical location.

    Used as a context manager, the temporary path is removed on exit
    unless it was persisted.
    """

    def __init__(self, target: Path) -> None:
        self.target = target
        self.path = target.with_name(f"~{target.name}")
        self._persisted = False
        remove_path(self.path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def __enter__(self) -> "TempPath":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self._persisted:
            remove_path(self.path)

    def persist(self) -> Path:
        """Move the temporary path over the target and return the target."""
        remove_path(self.target)
        self.path.rename(self.target)
        self._persisted = True
        return self.target
