"""Lock resolution.

Turns a normalized Config into a LockDocument. Every unique source is
installed once on a bounded thread pool; the worker that installed a
source then matches and renders every plugin that uses it. Failures are
isolated per plugin and results are collected back into declaration
order, whatever order the workers finish in.
"""

import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from jinja2 import TemplateError

from sheaf import __version__, cli_logger
from sheaf.config import Config, PluginSpec, Source, SourceKind
from sheaf.context import Context
from sheaf.errors import FetchError, MatchError, PluginError, RenderError, ResolveError
from sheaf.fetch import ensure_installed
from sheaf.git import GitCli
from sheaf.lock_cache import compute_fingerprint
from sheaf.lock_schema import LockDocument, LockedPlugin, context_fields
from sheaf.matcher import match_files
from sheaf.remote_source import UrllibDownloader
from sheaf.script import render_locked_plugin
from sheaf.templates import TemplateDef, render_string
from sheaf.transport import Downloader, GitTransport, LockedSource, git_dir, remote_dir_and_file

Slot = LockedPlugin | PluginError


@dataclass
class ResolveResult:
    """Result of resolving a config.

    Attributes:
        document: Lock document holding every plugin that resolved.
        errors: Per-plugin failures, in declaration order.
    """

    document: LockDocument
    errors: list[PluginError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Whether every active plugin resolved."""
        return not self.errors


class Resolver:
    """Resolves plugins for one invocation.

    Args:
        config: The normalized config.
        ctx: Directories, profile and lock mode.
        git: Git transport, defaults to the git CLI.
        downloader: HTTP transport, defaults to urllib.
        max_workers: Pool size, defaults to the number of CPUs.
    """

    def __init__(
        self,
        config: Config,
        ctx: Context,
        git: GitTransport | None = None,
        downloader: Downloader | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.config = config
        self.ctx = ctx
        self.git = git or GitCli()
        self.downloader = downloader or UrllibDownloader()
        self.max_workers = max_workers or os.cpu_count() or 1
        self.templates: dict[str, TemplateDef] = config.effective_templates()

    def active_plugins(self) -> list[PluginSpec]:
        """Plugins enabled for the current profile, in declaration order."""
        return [p for p in self.config.plugins if p.matches_profile(self.ctx.profile)]

    def _plugin_dir(self, plugin: PluginSpec, source_dir: Path) -> Path | None:
        if plugin.dir is None:
            return None
        variables = {"name": plugin.name, "data_dir": str(self.ctx.data_dir)}
        try:
            return source_dir / render_string(plugin.dir, variables)
        except TemplateError as e:
            raise RenderError(plugin.name, f"failed to render `dir`: {e}") from e

    def lock_plugin(self, plugin: PluginSpec, locked: LockedSource | None) -> LockedPlugin:
        """Match files for and render-check a plugin whose source is installed.

        The rendered fragment is discarded. Only the matched files go into
        the lock; a template that cannot render fails the plugin here instead
        of at shell startup.

        Raises:
            MatchError: If no file matches.
            RenderError: If a template fails to render.
        """
        if locked is None:
            entry = LockedPlugin(name=plugin.name, raw=plugin.source.raw, hooks=plugin.hooks)
        else:
            plugin_dir = self._plugin_dir(plugin, locked.dir)
            if locked.file is not None:
                files = [locked.file]
            else:
                use = list(plugin.use) if plugin.use is not None else None
                try:
                    files = match_files(plugin_dir or locked.dir, plugin.name, use, self.config.match)
                except OSError as e:
                    raise MatchError(plugin.name, str(e)) from e
            entry = LockedPlugin(
                name=plugin.name,
                source_dir=str(locked.dir),
                plugin_dir=str(plugin_dir) if plugin_dir is not None else None,
                files=[str(f) for f in files],
                apply=list(plugin.apply) if plugin.apply is not None else list(self.config.apply),
                hooks=plugin.hooks,
            )

        render_locked_plugin(entry, self.templates, str(self.ctx.data_dir))
        return entry

    def _report(self, source: Source, locked: LockedSource) -> None:
        outcome = locked.outcome
        subject = str(source)
        if outcome.detail:
            subject = f"{subject} ({outcome.detail})"
        cli_logger.status(
            outcome.status.value,
            subject,
            verbose=not outcome.changed,
        )

    def resolve_group(self, source: Source, members: list[tuple[int, PluginSpec]]) -> list[tuple[int, Slot]]:
        """Install one source and lock every plugin that shares it.

        Never raises for per-plugin failures: each member's slot holds either
        its LockedPlugin or the PluginError that stopped it.
        """
        locked: LockedSource | None = None
        if not source.is_inline:
            try:
                locked = ensure_installed(source, self.ctx, self.git, self.downloader)
            except Exception as e:
                # any install failure belongs to this source's plugins only
                cause = str(e) or type(e).__name__
                return [(index, FetchError(plugin.name, cause)) for index, plugin in members]
            self._report(source, locked)

        slots: list[tuple[int, Slot]] = []
        for index, plugin in members:
            try:
                slots.append((index, self.lock_plugin(plugin, locked)))
            except PluginError as e:
                slots.append((index, e))
        return slots

    def _target(self, source: Source) -> Path | None:
        """Where installing ``source`` writes, or None if it writes nothing."""
        if source.kind == SourceKind.GIT:
            return git_dir(self.ctx.clone_dir, source.url, source.reference)
        if source.kind == SourceKind.REMOTE:
            return remote_dir_and_file(self.ctx.download_dir, source.url)[1]
        return None

    def claim_targets(
        self, groups: dict[Source, list[tuple[int, PluginSpec]]]
    ) -> list[tuple[int, Slot]]:
        """Drop groups whose install target is already taken by another source.

        Different URLs for one repository (``https`` and ``ssh``, say) map to
        the same directory. The first source in declaration order keeps it;
        the plugins of every later one fail.
        """
        owners: dict[Path, Source] = {}
        failed: list[tuple[int, Slot]] = []
        for source in list(groups):
            target = self._target(source)
            if target is None:
                continue
            owner = owners.setdefault(target, source)
            if owner == source:
                continue
            cause = f"`{source}` installs to the same path as `{owner}`"
            failed.extend((index, FetchError(plugin.name, cause)) for index, plugin in groups.pop(source))
        return failed

    def resolve(self) -> ResolveResult:
        """Resolve every active plugin.

        Returns:
            A ResolveResult. A partial result carries no fingerprint so the
            next run resolves again.

        Raises:
            ResolveError: If there were plugins to resolve and none succeeded.
        """
        plugins = self.active_plugins()

        groups: dict[Source, list[tuple[int, PluginSpec]]] = {}
        inline: list[tuple[int, PluginSpec]] = []
        for index, plugin in enumerate(plugins):
            if plugin.source.is_inline:
                inline.append((index, plugin))
            else:
                groups.setdefault(plugin.source, []).append((index, plugin))

        slots: list[Slot | None] = [None] * len(plugins)
        for index, slot in self.claim_targets(groups):
            slots[index] = slot
        if groups:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures = [pool.submit(self.resolve_group, source, members) for source, members in groups.items()]
                for future in as_completed(futures):
                    for index, slot in future.result():
                        slots[index] = slot
        for index, plugin in inline:
            for _, slot in self.resolve_group(plugin.source, [(index, plugin)]):
                slots[index] = slot

        locked = [s for s in slots if isinstance(s, LockedPlugin)]
        errors = [s for s in slots if isinstance(s, PluginError)]
        if errors and not locked:
            raise ResolveError(errors)

        document = LockDocument(
            version=__version__,
            fingerprint=None if errors else compute_fingerprint(self.config, self.ctx),
            **context_fields(self.ctx),
            shell=self.config.shell,
            plugins=locked,
            templates=self.templates,
        )
        return ResolveResult(document=document, errors=errors)


def resolve(
    config: Config,
    ctx: Context,
    git: GitTransport | None = None,
    downloader: Downloader | None = None,
) -> ResolveResult:
    """Resolve a config into a lock document.

    Raises:
        ResolveError: If there were plugins to resolve and none succeeded.
    """
    return Resolver(config, ctx, git=git, downloader=downloader).resolve()
