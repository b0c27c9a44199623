"""Decide whether a previous lock can be reused."""

import hashlib
import json

from sheaf import __version__, cli_logger
from sheaf.config import Config
from sheaf.context import Context, LockMode
from sheaf.errors import CacheError
from sheaf.lock_schema import LockDocument, context_fields, load_lock


def compute_fingerprint(config: Config, ctx: Context) -> str:
    """Fingerprint the inputs that determine a lock document.

    Covers the full plugin list, the effective templates, the global match
    and apply settings, the directory layout, the active profile and the tool
    version.
    """
    payload = {
        "version": __version__,
        "shell": config.shell.value,
        "match": config.match,
        "apply": config.apply,
        "plugins": [plugin.model_dump(mode="json") for plugin in config.plugins],
        "templates": {
            name: template.model_dump(mode="json")
            for name, template in config.effective_templates().items()
        },
        **context_fields(ctx),
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode()).hexdigest()


def read_previous_lock(ctx: Context) -> LockDocument | None:
    """Read the lock file, treating a missing or corrupt file as no lock."""
    try:
        return load_lock(ctx.lock_file)
    except FileNotFoundError:
        return None
    except CacheError as e:
        cli_logger.warning(f"{e}; ignoring it")
        return None


def needs_relock(
    fingerprint: str,
    previous: LockDocument | None,
    ctx: Context,
    relock: bool = False,
) -> bool:
    """Whether a full resolution is required.

    The previous lock is reused only when nothing forces a relock, its
    fingerprint matches exactly and every path it records still exists.
    """
    if relock or ctx.mode != LockMode.NORMAL or previous is None:
        return True
    if previous.fingerprint != fingerprint:
        return True
    return not previous.verify(ctx)
