"""Process-wide advisory lock on the data directory.

Prevents two invocations from installing into the same data directory at
the same time.
"""

import fcntl
from pathlib import Path
from types import TracebackType
from typing import IO

from sheaf import cli_logger
from sheaf.errors import LockBusyError


class FileMutex:
    """Exclusive ``flock`` on a file, held for the lifetime of the context.

    Args:
        path: The lock file, created if missing.
        wait: Block until the lock is free instead of failing.
    """

    def __init__(self, path: Path, wait: bool = True) -> None:
        self.path = path
        self.wait = wait
        self._handle: IO[str] | None = None

    def acquire(self) -> None:
        """Take the lock.

        Raises:
            LockBusyError: If the lock is held elsewhere and ``wait`` is False.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        handle = self.path.open("a+", encoding="utf-8")
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            if not self.wait:
                handle.close()
                msg = f"another sheaf process holds {self.path}"
                raise LockBusyError(msg) from e
            cli_logger.status("Blocking", f"waiting for file lock on {self.path}")
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        self._handle = handle

    def release(self) -> None:
        """Release the lock if held."""
        if self._handle is None:
            return
        fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        self._handle.close()
        self._handle = None

    @property
    def locked(self) -> bool:
        """Whether this instance currently holds the lock."""
        return self._handle is not None

    def __enter__(self) -> "FileMutex":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
