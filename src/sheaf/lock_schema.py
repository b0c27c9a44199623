"""Lock file schema definitions using Pydantic.

The lock file records the fully resolved state of every plugin: where its
source lives on disk, which files were matched and which templates apply.
It is written as YAML next to the plugin data and read back on the next run
to decide whether resolution can be skipped.
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from sheaf.context import Context
from sheaf.errors import CacheError, format_validation_errors
from sheaf.paths import TempPath
from sheaf.templates import Shell, TemplateDef


class LockedPlugin(BaseModel):
    """A resolved plugin entry in the lock file."""

    name: str
    source_dir: str | None = Field(default=None, description="Installed source, absent for inline")
    plugin_dir: str | None = Field(default=None, description="Sub-directory selected with `dir`")
    files: list[str] = Field(default_factory=list)
    apply: list[str] = Field(default_factory=list)
    hooks: dict[str, str] = Field(default_factory=dict)
    raw: str | None = Field(default=None, description="Script of an inline plugin")

    @property
    def dir(self) -> str | None:
        """The directory templates see as ``dir``."""
        return self.plugin_dir or self.source_dir

    @property
    def is_inline(self) -> bool:
        """Whether this plugin is an inline script."""
        return self.raw is not None

    def paths(self) -> list[Path]:
        """Every path this plugin needs on disk."""
        paths = [Path(p) for p in (self.source_dir, self.plugin_dir) if p is not None]
        paths.extend(Path(f) for f in self.files)
        return paths


class LockDocument(BaseModel):
    """Root schema for the lock file."""

    version: str
    fingerprint: str | None = Field(
        default=None,
        description="Config fingerprint; absent when the last resolution was partial",
    )
    home: str
    config_dir: str
    data_dir: str
    config_file: str
    lock_file: str
    clone_dir: str
    download_dir: str
    profile: str | None = None
    shell: Shell = Shell.ZSH
    plugins: list[LockedPlugin] = Field(default_factory=list)
    templates: dict[str, TemplateDef] = Field(default_factory=dict)

    def matches_context(self, ctx: Context) -> bool:
        """Whether this lock was produced for the same directories and profile."""
        return (
            self.home == str(ctx.home)
            and self.config_dir == str(ctx.config_dir)
            and self.data_dir == str(ctx.data_dir)
            and self.config_file == str(ctx.config_file)
            and self.lock_file == str(ctx.lock_file)
            and self.clone_dir == str(ctx.clone_dir)
            and self.download_dir == str(ctx.download_dir)
            and self.profile == ctx.profile
        )

    def missing_paths(self) -> list[Path]:
        """Recorded plugin directories and files that no longer exist."""
        return [p for plugin in self.plugins for p in plugin.paths() if not p.exists()]

    def verify(self, ctx: Context) -> bool:
        """Whether this lock can be used as-is for the given context."""
        return self.matches_context(ctx) and not self.missing_paths()


def context_fields(ctx: Context) -> dict[str, str | None]:
    """The context paths a lock document records."""
    return {
        "home": str(ctx.home),
        "config_dir": str(ctx.config_dir),
        "data_dir": str(ctx.data_dir),
        "config_file": str(ctx.config_file),
        "lock_file": str(ctx.lock_file),
        "clone_dir": str(ctx.clone_dir),
        "download_dir": str(ctx.download_dir),
        "profile": ctx.profile,
    }


def load_lock(path: Path) -> LockDocument:
    """Load and validate a lock file.

    Args:
        path: Path to the lock file.

    Returns:
        Validated LockDocument instance.

    Raises:
        FileNotFoundError: If the lock file does not exist.
        CacheError: If the file is unreadable, not YAML, or fails validation.
    """
    if not path.exists():
        msg = f"lock file not found at {path}"
        raise FileNotFoundError(msg)

    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        msg = f"failed to read lock file '{path}': {e}"
        raise CacheError(msg) from e

    try:
        return LockDocument.model_validate(data)
    except ValidationError as e:
        clean_errors = format_validation_errors(e)
        msg = f"Invalid lock file '{path}': {clean_errors}"
        raise CacheError(msg) from e


def dump_lock(document: LockDocument) -> str:
    """Serialize a lock document to YAML."""
    # Use mode="json" to serialize enums as their string values
    return yaml.dump(document.model_dump(mode="json"), default_flow_style=False, sort_keys=False)


def save_lock(document: LockDocument, path: Path) -> None:
    """Write a lock document, replacing any previous lock atomically."""
    with TempPath(path) as temp:
        temp.path.write_text(dump_lock(document))
        temp.persist()
