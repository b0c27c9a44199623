"""Error types and formatting utilities for sheaf.

Provides the exception hierarchy used while loading config and resolving
plugins, plus clean, user-friendly messages for Pydantic validation errors
and other exceptions reaching the CLI.
"""

import subprocess
import tomllib

import yaml
from pydantic import ValidationError

from sheaf import cli_logger, exit_codes


class SheafError(Exception):
    """Base class for all sheaf errors."""


class ConfigError(SheafError):
    """Raised when the config is invalid. Always raised before any fetching."""


class CacheError(SheafError):
    """Raised when a lock file exists but cannot be read or parsed."""


class SourceError(SheafError):
    """Raised when a plugin source cannot be installed or located."""


class GitError(SourceError):
    """Raised when a git command fails."""


class DownloadError(SourceError):
    """Raised when a remote file cannot be downloaded."""


class LockBusyError(SheafError):
    """Raised when another process holds the data directory lock and waiting is disabled."""


class PluginError(SheafError):
    """A failure isolated to a single plugin.

    Attributes:
        plugin_name: Name of the plugin that failed.
        cause: Human-readable root cause.
    """

    kind = "resolve"

    def __init__(self, plugin_name: str, cause: str) -> None:
        """Initialize with the failing plugin name and root cause."""
        self.plugin_name = plugin_name
        self.cause = cause
        super().__init__(f"failed to {self.kind} plugin `{plugin_name}`: {cause}")


class FetchError(PluginError):
    """Installing or updating a plugin's source failed."""

    kind = "install"


class MatchError(PluginError):
    """No file in the plugin directory matched any candidate pattern."""

    kind = "match files for"


class RenderError(PluginError):
    """A template could not be rendered for the plugin."""

    kind = "render"


class ResolveError(SheafError):
    """Raised when resolution produced no plugins at all.

    Attributes:
        errors: Every per-plugin failure, in declaration order.
    """

    def __init__(self, errors: list[PluginError]) -> None:
        """Initialize with the aggregated per-plugin errors."""
        self.errors = errors
        names = ", ".join(f"`{e.plugin_name}`" for e in errors)
        super().__init__(f"no plugins could be resolved ({len(errors)} failed: {names})")


def format_validation_errors(error: ValidationError) -> str:
    """Format Pydantic ValidationError into clean, user-friendly message.

    Removes Pydantic-specific URLs and technical jargon, producing a message
    suitable for CLI output.

    Args:
        error: The Pydantic ValidationError to format.

    Returns:
        A clean, human-readable error message.
    """
    messages = []

    for err in error.errors():
        # Get the field path (e.g., "plugins.pure.use.0" or just "shell")
        loc = ".".join(str(part) for part in err["loc"])

        error_type = err["type"]
        msg = err["msg"]

        if error_type == "missing":
            messages.append(f"'{loc}': field is required")
        elif error_type == "extra_forbidden":
            messages.append(f"'{loc}': unknown field")
        elif error_type == "string_type":
            messages.append(f"'{loc}': expected string")
        elif error_type == "list_type":
            messages.append(f"'{loc}': expected list")
        elif error_type == "bool_type":
            messages.append(f"'{loc}': expected boolean")
        elif error_type == "enum":
            messages.append(f"'{loc}': {msg[0].lower()}{msg[1:]}")
        else:
            # Strip pydantic's "Value error, " prefix from custom validators
            clean_msg = msg.removeprefix("Value error, ")
            messages.append(f"'{loc}': {clean_msg[0].lower()}{clean_msg[1:]}" if loc else clean_msg)

    if len(messages) == 1:
        return messages[0]

    return "; ".join(messages)


def handle_cli_error(error: Exception) -> int:
    """Handle an unhandled exception at the CLI boundary.

    Formats the error into a clean user-friendly message and returns
    an appropriate exit code. This is the last line of defense: it
    prevents raw tracebacks from reaching the user.

    Args:
        error: The exception to handle.

    Returns:
        An exit code from exit_codes.
    """
    if isinstance(error, ConfigError):
        cli_logger.error(f"Invalid config: {error}")
        return exit_codes.CONFIG_INVALID

    if isinstance(error, ValidationError):
        cli_logger.error(f"Invalid config: {format_validation_errors(error)}")
        return exit_codes.CONFIG_INVALID

    if isinstance(error, tomllib.TOMLDecodeError):
        cli_logger.error(f"Invalid TOML: {error}")
        return exit_codes.CONFIG_INVALID

    if isinstance(error, ResolveError):
        for plugin_error in error.errors:
            cli_logger.error(str(plugin_error))
        cli_logger.error(str(error))
        return exit_codes.RESOLVE_FAILED

    if isinstance(error, PluginError):
        cli_logger.error(str(error))
        return exit_codes.RESOLVE_FAILED

    if isinstance(error, LockBusyError):
        cli_logger.error(str(error))
        return exit_codes.LOCK_BUSY

    if isinstance(error, GitError):
        cli_logger.error(str(error))
        return exit_codes.GIT_ERROR

    if isinstance(error, subprocess.CalledProcessError):
        cmd_str = " ".join(str(c) for c in error.cmd) if isinstance(error.cmd, list) else str(error.cmd)
        cli_logger.error(f"Command failed (exit code {error.returncode}): {cmd_str}")
        return exit_codes.GENERAL_ERROR

    if isinstance(error, OSError):
        if error.filename:
            cli_logger.error(f"{error.strerror}: {error.filename}")
        else:
            cli_logger.error(str(error))
        return exit_codes.GENERAL_ERROR

    if isinstance(error, yaml.YAMLError):
        cli_logger.error(f"Invalid YAML: {error}")
        return exit_codes.GENERAL_ERROR

    cli_logger.error(f"Unexpected error: {error}")
    return exit_codes.GENERAL_ERROR
