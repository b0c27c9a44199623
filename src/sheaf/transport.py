"""Transport protocols, install outcomes and on-disk source layout."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Protocol
from urllib.parse import quote, unquote, urlsplit

from sheaf.config import GitReference

LOCAL_HOST = "localhost"


class GitTransport(Protocol):
    """Protocol for the git operations needed to install a source."""

    def clone(self, url: str, dest: Path) -> None:
        """Clone ``url`` into ``dest``."""
        ...

    def fetch(self, repo: Path) -> None:
        """Fetch branches and tags from origin."""
        ...

    def resolve(self, repo: Path, reference: GitReference | None) -> str | None:
        """Resolve a reference to a commit id, or None if it is unknown."""
        ...

    def head(self, repo: Path) -> str:
        """The commit currently checked out."""
        ...

    def checkout(self, repo: Path, commit: str) -> None:
        """Check out a commit."""
        ...

    def update_submodules(self, repo: Path) -> None:
        """Initialize and update submodules."""
        ...


class Downloader(Protocol):
    """Protocol for downloading a remote file."""

    def download(self, url: str) -> bytes:
        """Download ``url`` and return the body. Non-2xx responses are errors."""
        ...


class InstallStatus(str, Enum):
    """What ensuring a source actually did."""

    CLONED = "Cloned"
    UPDATED = "Updated"
    FETCHED = "Fetched"
    CHECKED = "Checked"


@dataclass(frozen=True)
class InstallOutcome:
    """Result of ensuring a source is installed."""

    status: InstallStatus
    detail: str | None = None

    @property
    def changed(self) -> bool:
        """Whether anything on disk was written."""
        return self.status != InstallStatus.CHECKED


@dataclass(frozen=True)
class LockedSource:
    """A source that is present on disk.

    Attributes:
        dir: The source directory (clone, download directory or local dir).
        file: The downloaded file, for remote sources only.
        outcome: What was done to get it there.
    """

    dir: Path
    file: Path | None = None
    outcome: InstallOutcome = InstallOutcome(InstallStatus.CHECKED)


def _host(url: str) -> tuple[str, str]:
    parts = urlsplit(url)
    return parts.hostname or LOCAL_HOST, unquote(parts.path)


def _segments(path: str) -> list[str]:
    return [s for s in PurePosixPath(path).parts if s not in ("/", ".", "..")]


def git_dir(clone_dir: Path, url: str, reference: GitReference | None = None) -> Path:
    """Directory a Git source is cloned into: ``<clone_dir>/<host>/<url path>``.

    A source pinned to a branch, tag or revision gets its own checkout,
    ``<url path>@<kind>-<value>``, so two references to one repository never
    share a working tree.
    """
    host, path = _host(url)
    directory = clone_dir.joinpath(host, *_segments(path))
    if reference is None:
        return directory
    suffix = f"@{reference.kind.value}-{quote(reference.value, safe='')}"
    return directory.with_name(directory.name + suffix)


def remote_dir_and_file(download_dir: Path, url: str) -> tuple[Path, Path]:
    """Directory and file a remote source is downloaded to.

    The file is named after the last URL path segment, or ``index`` when the
    path is empty or ends with a slash.
    """
    host, path = _host(url)
    segments = _segments(path)
    if path.endswith("/") or not segments:
        name = "index"
    else:
        name = segments.pop()
    directory = download_dir.joinpath(host, *segments)
    return directory, directory / name
