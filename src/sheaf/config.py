"""Config file schema and normalization.

The user writes ``plugins.toml``. It is parsed into ``RawConfig`` (a strict
Pydantic model mirroring the file) and then normalized into ``Config``, in
which GitHub and Gist sources are folded into plain Git sources and every
default has been filled in. All config problems surface here, before any
plugin is fetched.
"""

import tomllib
from enum import Enum
from pathlib import Path
from urllib.parse import urlsplit

from jinja2 import TemplateSyntaxError
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from sheaf.errors import ConfigError, format_validation_errors
from sheaf.templates import (
    DEFAULT_APPLY,
    Shell,
    TemplateDef,
    compile_template,
    effective_templates,
)

GITHUB_HOST = "github.com"
GIST_HOST = "gist.github.com"

SOURCE_FIELDS = ("git", "gist", "github", "remote", "local", "inline")
REFERENCE_FIELDS = ("branch", "tag", "rev")

DEFAULT_MATCH = {
    Shell.BASH: [
        "{{ name }}.plugin.bash",
        "{{ name }}.plugin.sh",
        "{{ name }}.bash",
        "{{ name }}.sh",
        "*.plugin.bash",
        "*.plugin.sh",
        "*.bash",
        "*.sh",
    ],
    Shell.ZSH: [
        "{{ name }}.plugin.zsh",
        "{{ name }}.zsh",
        "{{ name }}.sh",
        "{{ name }}.zsh-theme",
        "*.plugin.zsh",
        "*.zsh",
        "*.sh",
        "*.zsh-theme",
    ],
}


class StrictModel(BaseModel):
    """Base model that forbids extra fields."""

    model_config = ConfigDict(extra="forbid")


class FrozenModel(BaseModel):
    """Base model for immutable, normalized values."""

    model_config = ConfigDict(extra="forbid", frozen=True)


# ---------------------------------------------------------------------------
# Raw file schema
# ---------------------------------------------------------------------------


class GitProtocol(str, Enum):
    """Protocol used to build GitHub and Gist clone URLs."""

    GIT = "git"
    HTTPS = "https"
    SSH = "ssh"

    @property
    def prefix(self) -> str:
        """URL prefix for this protocol."""
        return {
            GitProtocol.GIT: "git://",
            GitProtocol.HTTPS: "https://",
            GitProtocol.SSH: "ssh://git@",
        }[self]


class RawPlugin(StrictModel):
    """A plugin table exactly as written in the config file."""

    git: str | None = None
    gist: str | None = None
    github: str | None = None
    remote: str | None = None
    local: str | None = None
    inline: str | None = None

    proto: GitProtocol | None = None
    branch: str | None = None
    tag: str | None = None
    rev: str | None = None

    dir: str | None = None
    use: list[str] | None = None
    apply: list[str] | None = None
    profiles: list[str] | None = None
    hooks: dict[str, str] | None = None


class RawConfig(StrictModel):
    """Root schema for ``plugins.toml``."""

    shell: Shell = Shell.ZSH
    match: list[str] | None = None
    apply: list[str] | None = None
    templates: dict[str, TemplateDef] = Field(default_factory=dict)
    plugins: dict[str, RawPlugin] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Normalized config
# ---------------------------------------------------------------------------


class SourceKind(str, Enum):
    """Kind of a normalized plugin source."""

    GIT = "git"
    REMOTE = "remote"
    LOCAL = "local"
    INLINE = "inline"


class ReferenceKind(str, Enum):
    """Kind of git reference to check out."""

    BRANCH = "branch"
    TAG = "tag"
    REV = "rev"


class GitReference(FrozenModel):
    """A branch, tag or revision to check out."""

    kind: ReferenceKind
    value: str

    def __str__(self) -> str:
        return f"@{self.value}"


class Source(FrozenModel):
    """Normalized source descriptor.

    Two plugins with equal descriptors share a single install. Exactly one
    of ``url``, ``path`` or ``raw`` is set, depending on ``kind``.
    """

    kind: SourceKind
    url: str | None = None
    reference: GitReference | None = None
    path: str | None = None
    raw: str | None = None

    def __str__(self) -> str:
        if self.kind == SourceKind.GIT:
            return f"{self.url}{self.reference or ''}"
        if self.kind == SourceKind.REMOTE:
            return str(self.url)
        if self.kind == SourceKind.LOCAL:
            return str(self.path)
        return "<inline>"

    @property
    def is_inline(self) -> bool:
        """Whether this source lives entirely in the config file."""
        return self.kind == SourceKind.INLINE


class PluginSpec(FrozenModel):
    """A configured plugin after normalization."""

    name: str
    source: Source
    dir: str | None = None
    use: tuple[str, ...] | None = None
    apply: tuple[str, ...] | None = None
    profiles: tuple[str, ...] | None = None
    hooks: dict[str, str] = Field(default_factory=dict)

    def matches_profile(self, profile: str | None) -> bool:
        """Whether this plugin is active for the given profile.

        Plugins without ``profiles`` are always active. Plugins with
        ``profiles`` are only active when the current profile is listed.
        """
        if not self.profiles:
            return True
        return profile is not None and profile in self.profiles


class Config(BaseModel):
    """The normalized user configuration."""

    shell: Shell = Shell.ZSH
    match: list[str] = Field(default_factory=lambda: list(DEFAULT_MATCH[Shell.ZSH]))
    apply: list[str] = Field(default_factory=lambda: list(DEFAULT_APPLY))
    templates: dict[str, TemplateDef] = Field(default_factory=dict)
    plugins: list[PluginSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_plugin_names(self) -> "Config":
        """Plugin names must be non-empty and unique."""
        seen: set[str] = set()
        for plugin in self.plugins:
            if not plugin.name.strip():
                msg = "plugin name cannot be empty"
                raise ValueError(msg)
            if plugin.name in seen:
                msg = f"duplicate plugin name `{plugin.name}`"
                raise ValueError(msg)
            seen.add(plugin.name)
        return self

    def effective_templates(self) -> dict[str, TemplateDef]:
        """Built-in templates for the shell with user templates merged over them."""
        return effective_templates(self.shell, self.templates)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def _check_url(url: str, what: str) -> str:
    parts = urlsplit(url)
    if not parts.scheme or not (parts.netloc or parts.path):
        msg = f"failed to parse `{url}` as a {what} URL"
        raise ConfigError(msg)
    return url


def _github_url(repository: str, proto: GitProtocol) -> str:
    owner, _, repo = repository.partition("/")
    if not owner or not repo or "/" in repo:
        msg = f"failed to parse `{repository}` as a GitHub repository, expected `owner/repo`"
        raise ConfigError(msg)
    return f"{proto.prefix}{GITHUB_HOST}/{owner}/{repo}"


def _gist_url(identifier: str, proto: GitProtocol) -> str:
    parts = identifier.split("/")
    if len(parts) > 2 or not all(parts):
        msg = f"failed to parse `{identifier}` as a Gist identifier"
        raise ConfigError(msg)
    return f"{proto.prefix}{GIST_HOST}/{identifier}"


def _reference(raw: RawPlugin) -> GitReference | None:
    given = [(kind, getattr(raw, kind.value)) for kind in ReferenceKind]
    given = [(kind, value) for kind, value in given if value is not None]
    if len(given) > 1:
        msg = "the `branch`, `tag`, and `rev` fields are mutually exclusive"
        raise ConfigError(msg)
    if not given:
        return None
    kind, value = given[0]
    return GitReference(kind=kind, value=value)


def _source(raw: RawPlugin) -> Source:
    present = [f for f in SOURCE_FIELDS if getattr(raw, f) is not None]
    if not present:
        msg = "plugin has no source fields"
        raise ConfigError(msg)
    if len(present) > 1:
        msg = "plugin has multiple source fields: " + ", ".join(f"`{f}`" for f in present)
        raise ConfigError(msg)

    kind = present[0]
    reference = _reference(raw)
    proto = raw.proto or GitProtocol.HTTPS

    if raw.proto is not None and kind not in ("github", "gist"):
        msg = "the `proto` field is not supported by this plugin type"
        raise ConfigError(msg)
    if reference is not None and kind not in ("git", "github", "gist"):
        msg = "the `branch`, `tag`, and `rev` fields are not supported by this plugin type"
        raise ConfigError(msg)

    if kind == "git":
        return Source(kind=SourceKind.GIT, url=_check_url(raw.git, "Git"), reference=reference)
    if kind == "github":
        return Source(kind=SourceKind.GIT, url=_github_url(raw.github, proto), reference=reference)
    if kind == "gist":
        return Source(kind=SourceKind.GIT, url=_gist_url(raw.gist, proto), reference=reference)
    if kind == "remote":
        return Source(kind=SourceKind.REMOTE, url=_check_url(raw.remote, "remote"))
    if kind == "local":
        return Source(kind=SourceKind.LOCAL, path=raw.local)
    return Source(kind=SourceKind.INLINE, raw=raw.inline)


def _check_template_names(names: list[str] | None, known: dict[str, TemplateDef]) -> None:
    for name in names or []:
        if name not in known:
            msg = f"unknown template `{name}`"
            raise ConfigError(msg)


def _compile(source: str, what: str) -> None:
    try:
        compile_template(source)
    except TemplateSyntaxError as e:
        msg = f"failed to compile {what}: {e}"
        raise ConfigError(msg) from e


def normalize_plugin(name: str, raw: RawPlugin, templates: dict[str, TemplateDef]) -> PluginSpec:
    """Normalize a single raw plugin table.

    Args:
        name: The plugin name (its key under ``[plugins]``).
        raw: The raw plugin table.
        templates: The effective template table, used to validate ``apply``.

    Returns:
        The normalized PluginSpec.

    Raises:
        ConfigError: If the plugin table is invalid.
    """
    source = _source(raw)

    if source.is_inline:
        unsupported = [
            ("`dir` field is", raw.dir is not None),
            ("`use` field is", raw.use is not None),
            ("`apply` field is", raw.apply is not None),
        ]
        for field_desc, is_set in unsupported:
            if is_set:
                msg = f"the {field_desc} not supported by inline plugins"
                raise ConfigError(msg)
        _compile(source.raw, "inline plugin")

    _check_template_names(raw.apply, templates)

    return PluginSpec(
        name=name,
        source=source,
        dir=raw.dir,
        use=tuple(raw.use) if raw.use is not None else None,
        apply=tuple(raw.apply) if raw.apply is not None else None,
        profiles=tuple(raw.profiles) if raw.profiles is not None else None,
        hooks=raw.hooks or {},
    )


def normalize(raw: RawConfig) -> Config:
    """Normalize a raw config into a Config.

    Raises:
        ConfigError: If any template or plugin is invalid.
    """
    for name, template in raw.templates.items():
        _compile(template.value, f"template `{name}`")

    templates = effective_templates(raw.shell, raw.templates)
    _check_template_names(raw.apply, templates)

    plugins = []
    for name, raw_plugin in raw.plugins.items():
        try:
            plugins.append(normalize_plugin(name, raw_plugin, templates))
        except ConfigError as e:
            msg = f"failed to normalize plugin `{name}`: {e}"
            raise ConfigError(msg) from e

    try:
        return Config(
            shell=raw.shell,
            match=raw.match if raw.match is not None else list(DEFAULT_MATCH[raw.shell]),
            apply=raw.apply if raw.apply is not None else list(DEFAULT_APPLY),
            templates=raw.templates,
            plugins=plugins,
        )
    except ValidationError as e:
        raise ConfigError(format_validation_errors(e)) from e


def parse_config(text: str) -> Config:
    """Parse and normalize config file contents.

    Raises:
        ConfigError: If the TOML is malformed or the config is invalid.
    """
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        msg = f"invalid TOML: {e}"
        raise ConfigError(msg) from e

    try:
        raw = RawConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(format_validation_errors(e)) from e

    return normalize(raw)


def load_config(path: Path) -> Config:
    """Load and validate ``plugins.toml``.

    Args:
        path: Path to the config file.

    Returns:
        Normalized Config.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ConfigError: If the config is invalid.
    """
    if not path.exists():
        msg = f"config file not found at {path}"
        raise FileNotFoundError(msg)

    try:
        return parse_config(path.read_text())
    except ConfigError as e:
        msg = f"invalid config '{path}': {e}"
        raise ConfigError(msg) from e
