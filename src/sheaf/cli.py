"""sheaf CLI entry point."""

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, NoReturn

import typer

from sheaf import __version__, cli_logger, exit_codes
from sheaf.clean import clean
from sheaf.config import Config, load_config
from sheaf.context import Context, LockMode, build_context
from sheaf.errors import PluginError, ResolveError, SheafError, handle_cli_error
from sheaf.lock_cache import compute_fingerprint, needs_relock, read_previous_lock
from sheaf.lock_schema import LockDocument, save_lock
from sheaf.mutex import FileMutex
from sheaf.resolver import resolve
from sheaf.script import render_script
from sheaf.templates import Shell

app = typer.Typer(
    name="sheaf",
    help="Fast, configurable shell plugin manager.",
    no_args_is_help=True,
)

STARTER_CONFIG = """\
# sheaf configuration file
#
# Declare your plugins below, run `sheaf lock` to install them and add
#
#   eval "$(sheaf source)"
#
# to your shell's rc file to load them.

shell = "{shell}"

[plugins]

# For example:
#
# [plugins.base16]
# github = "chriskempson/base16-shell"
"""


@dataclass
class GlobalOptions:
    """Options shared by every command."""

    home: Path | None = None
    config_dir: Path | None = None
    data_dir: Path | None = None
    config_file: Path | None = None
    lock_file: Path | None = None
    clone_dir: Path | None = None
    download_dir: Path | None = None
    profile: str | None = None
    no_wait: bool = False

    def context(self, mode: LockMode = LockMode.NORMAL) -> Context:
        """Build the invocation context from these options and the environment."""
        return build_context(
            home=self.home,
            config_dir=self.config_dir,
            data_dir=self.data_dir,
            config_file=self.config_file,
            lock_file=self.lock_file,
            clone_dir=self.clone_dir,
            download_dir=self.download_dir,
            profile=self.profile,
            mode=mode,
        )


def _fail(error: Exception) -> NoReturn:
    """Report an error and exit with its code."""
    raise typer.Exit(handle_cli_error(error)) from error


def _lock_mode(update: bool, reinstall: bool) -> LockMode:
    try:
        return LockMode.from_flags(update, reinstall)
    except ValueError as e:
        cli_logger.error(str(e))
        raise typer.Exit(exit_codes.INVALID_ARGS) from e


def require_config(ctx: Context) -> Config:
    """Load the config file.

    Raises:
        typer.Exit: With CONFIG_NOT_FOUND if there is no config file.
        typer.Exit: With CONFIG_INVALID if the config is invalid.
    """
    try:
        config = load_config(ctx.config_file)
    except FileNotFoundError as e:
        cli_logger.error(f"Config file not found at {ctx.replace_home(ctx.config_file)}")
        cli_logger.info("  Run [bold]sheaf init[/bold] first.")
        raise typer.Exit(exit_codes.CONFIG_NOT_FOUND) from e
    except SheafError as e:
        _fail(e)
    cli_logger.header("Loaded", ctx.replace_home(ctx.config_file))
    return config


def _report_errors(errors: list[PluginError]) -> None:
    for error in errors:
        cli_logger.error(str(error))


def relock(config: Config, ctx: Context) -> tuple[LockDocument | None, list[PluginError]]:
    """Resolve the config and write the lock file.

    Plugins that fail are left out of the written lock. When nothing
    resolves, the previous lock is returned untouched and nothing is
    written.

    Returns:
        The lock document to use (None if nothing resolved and there was no
        previous lock) and the per-plugin errors.
    """
    previous = read_previous_lock(ctx)
    try:
        result = resolve(config, ctx)
    except ResolveError as e:
        _report_errors(e.errors)
        cli_logger.error(str(e))
        if previous is not None:
            cli_logger.warning(f"Kept previous lock file {ctx.replace_home(ctx.lock_file)}")
        return previous, e.errors

    _report_errors(result.errors)
    document = result.document
    save_lock(document, ctx.lock_file)
    cli_logger.header("Locked", ctx.replace_home(ctx.lock_file))
    if result.ok:
        clean(ctx, document)
    return document, result.errors


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"sheaf {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    typer_ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option("--version", "-V", callback=version_callback, is_eager=True, help="Show sheaf version and exit."),
    ] = False,
    home: Annotated[Path | None, typer.Option(help="The home directory.")] = None,
    config_dir: Annotated[Path | None, typer.Option(help="The configuration directory.")] = None,
    data_dir: Annotated[Path | None, typer.Option(help="The data directory.")] = None,
    config_file: Annotated[Path | None, typer.Option(help="The config file.")] = None,
    lock_file: Annotated[Path | None, typer.Option(help="The lock file.")] = None,
    clone_dir: Annotated[Path | None, typer.Option(help="The directory where git sources are cloned to.")] = None,
    download_dir: Annotated[Path | None, typer.Option(help="The directory where remote sources are downloaded to.")] = None,
    profile: Annotated[str | None, typer.Option(help="The profile used for conditional plugins.")] = None,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Suppress any informational output.")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Use verbose output.")] = False,
    no_color: Annotated[bool, typer.Option("--no-color", help="Do not use ANSI colored output.")] = False,
    no_wait: Annotated[bool, typer.Option("--no-wait", help="Fail instead of waiting for another sheaf process.")] = False,
) -> None:
    """Fast, configurable shell plugin manager."""
    if quiet and verbose:
        cli_logger.error("--quiet and --verbose are mutually exclusive")
        raise typer.Exit(exit_codes.INVALID_ARGS)

    if quiet:
        verbosity = cli_logger.Verbosity.QUIET
    elif verbose:
        verbosity = cli_logger.Verbosity.VERBOSE
    else:
        verbosity = cli_logger.Verbosity.NORMAL
    cli_logger.configure(verbosity, no_color=no_color)

    typer_ctx.obj = GlobalOptions(
        home=home,
        config_dir=config_dir,
        data_dir=data_dir,
        config_file=config_file,
        lock_file=lock_file,
        clone_dir=clone_dir,
        download_dir=download_dir,
        profile=profile,
        no_wait=no_wait,
    )


@app.command()
def init(
    typer_ctx: typer.Context,
    shell: Annotated[Shell, typer.Option(help="The type of shell.")] = Shell.ZSH,
) -> None:
    """Initialize a new config file.

    If a config file already exists, this is a no-op.
    """
    ctx = typer_ctx.obj.context()
    path = ctx.config_file

    if path.exists():
        cli_logger.info(f"Config file already exists at {ctx.replace_home(path)}")
        raise typer.Exit(exit_codes.SUCCESS)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(STARTER_CONFIG.format(shell=shell.value))
    cli_logger.header("Initialized", ctx.replace_home(path))


@app.command()
def lock(
    typer_ctx: typer.Context,
    update: Annotated[bool, typer.Option("--update", help="Update all plugin sources.")] = False,
    reinstall: Annotated[bool, typer.Option("--reinstall", help="Reinstall all plugin sources.")] = False,
) -> None:
    """Install the plugins sources and generate the lock file.

    Stale clones and downloads are removed after a fully successful run.
    """
    options: GlobalOptions = typer_ctx.obj
    ctx = options.context(_lock_mode(update, reinstall))
    config = require_config(ctx)

    try:
        with FileMutex(ctx.mutex_file, wait=not options.no_wait):
            document, errors = relock(config, ctx)
    except SheafError as e:
        _fail(e)

    if document is None or errors:
        raise typer.Exit(exit_codes.RESOLVE_FAILED)


@app.command()
def source(
    typer_ctx: typer.Context,
    relock_flag: Annotated[bool, typer.Option("--relock", help="Regenerate the lock file.")] = False,
    update: Annotated[bool, typer.Option("--update", help="Update all plugin sources (implies --relock).")] = False,
    reinstall: Annotated[bool, typer.Option("--reinstall", help="Reinstall all plugin sources (implies --relock).")] = False,
) -> None:
    """Generate and print out the script.

    The lock file is reused when it is up to date with the config,
    otherwise plugins are resolved first.
    """
    options: GlobalOptions = typer_ctx.obj
    ctx = options.context(_lock_mode(update, reinstall))
    config = require_config(ctx)

    errors: list[PluginError] = []
    try:
        with FileMutex(ctx.mutex_file, wait=not options.no_wait):
            previous = read_previous_lock(ctx)
            if needs_relock(compute_fingerprint(config, ctx), previous, ctx, relock=relock_flag):
                document, errors = relock(config, ctx)
            else:
                document = previous
                cli_logger.header("Unlocked", ctx.replace_home(ctx.lock_file))
        if document is None:
            raise typer.Exit(exit_codes.RESOLVE_FAILED)
        script = render_script(document)
    except SheafError as e:
        _fail(e)

    typer.echo(script, nl=False)
    if errors:
        raise typer.Exit(exit_codes.RESOLVE_FAILED)


def main_cli() -> None:
    """CLI entry point with top-level exception handling.

    Wraps the Typer app to catch any unhandled exceptions and format them
    as clean error messages instead of raw tracebacks.
    """
    try:
        app()
    except Exception as e:
        sys.exit(handle_cli_error(e))


if __name__ == "__main__":
    main_cli()
