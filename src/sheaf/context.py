"""Invocation context: directories, profile and lock mode.

Resolution order for each directory:
1. Explicit CLI option
2. ``SHEAF_*`` environment variable
3. XDG directories, when any ``XDG_*`` variable is set
4. Default: ``~/.sheaf``
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

from sheaf.paths import expand_tilde, replace_home

APP_NAME = "sheaf"
CONFIG_FILENAME = "plugins.toml"
CLONE_DIRNAME = "repos"
DOWNLOAD_DIRNAME = "downloads"

XDG_VARS = ("XDG_CONFIG_HOME", "XDG_DATA_HOME", "XDG_CACHE_HOME", "XDG_STATE_HOME")


class LockMode(str, Enum):
    """How existing sources are treated during resolution."""

    NORMAL = "normal"
    UPDATE = "update"
    REINSTALL = "reinstall"

    @classmethod
    def from_flags(cls, update: bool, reinstall: bool) -> "LockMode":
        """Build a lock mode from the ``--update`` and ``--reinstall`` flags."""
        if update and reinstall:
            msg = "--update and --reinstall are mutually exclusive"
            raise ValueError(msg)
        if reinstall:
            return cls.REINSTALL
        if update:
            return cls.UPDATE
        return cls.NORMAL


@dataclass(frozen=True)
class Context:
    """Everything resolution needs to know about where things live."""

    home: Path
    config_dir: Path
    data_dir: Path
    config_file: Path
    lock_file: Path
    clone_dir: Path
    download_dir: Path
    profile: str | None = None
    mode: LockMode = LockMode.NORMAL

    def expand_tilde(self, path: Path) -> Path:
        """Expand ``~`` against this context's home directory."""
        return expand_tilde(path, self.home)

    def replace_home(self, path: Path) -> Path:
        """Shorten a path for display."""
        return replace_home(path, self.home)

    def with_mode(self, mode: LockMode) -> "Context":
        """Return a copy of this context with a different lock mode."""
        return replace(self, mode=mode)

    @property
    def mutex_file(self) -> Path:
        """Path of the process-wide advisory lock."""
        return self.data_dir / f".{APP_NAME}.lock"


def lock_file_name(profile: str | None) -> str:
    """Lock file name for a profile."""
    if profile:
        return f"plugins.{profile}.lock"
    return "plugins.lock"


def _env_path(env: Mapping[str, str], name: str, home: Path) -> Path | None:
    value = env.get(name)
    if value:
        return expand_tilde(Path(value), home)
    return None


def default_dirs(home: Path, env: Mapping[str, str]) -> tuple[Path, Path]:
    """Default config and data directories.

    Returns:
        A ``(config_dir, data_dir)`` tuple.
    """
    if any(env.get(var) for var in XDG_VARS):
        config_home = _env_path(env, "XDG_CONFIG_HOME", home) or home / ".config"
        data_home = _env_path(env, "XDG_DATA_HOME", home) or home / ".local" / "share"
        return config_home / APP_NAME, data_home / APP_NAME
    root = home / f".{APP_NAME}"
    return root, root


def build_context(
    *,
    home: Path | None = None,
    config_dir: Path | None = None,
    data_dir: Path | None = None,
    config_file: Path | None = None,
    lock_file: Path | None = None,
    clone_dir: Path | None = None,
    download_dir: Path | None = None,
    profile: str | None = None,
    mode: LockMode = LockMode.NORMAL,
    env: Mapping[str, str] | None = None,
) -> Context:
    """Resolve every directory for this invocation.

    Explicit arguments win over environment variables, which win over the
    defaults. All paths have ``~`` expanded against ``home``.
    """
    env = os.environ if env is None else env
    home = home or Path.home()

    def explicit(value: Path | None) -> Path | None:
        return expand_tilde(value, home) if value is not None else None

    default_config_dir, default_data_dir = default_dirs(home, env)
    config_dir = (
        explicit(config_dir) or _env_path(env, "SHEAF_CONFIG_DIR", home) or default_config_dir
    )
    data_dir = explicit(data_dir) or _env_path(env, "SHEAF_DATA_DIR", home) or default_data_dir
    config_file = (
        explicit(config_file)
        or _env_path(env, "SHEAF_CONFIG_FILE", home)
        or config_dir / CONFIG_FILENAME
    )
    profile = profile or env.get("SHEAF_PROFILE") or None

    return Context(
        home=home,
        config_dir=config_dir,
        data_dir=data_dir,
        config_file=config_file,
        lock_file=explicit(lock_file) or data_dir / lock_file_name(profile),
        clone_dir=explicit(clone_dir) or data_dir / CLONE_DIRNAME,
        download_dir=explicit(download_dir) or data_dir / DOWNLOAD_DIRNAME,
        profile=profile,
        mode=mode,
    )
