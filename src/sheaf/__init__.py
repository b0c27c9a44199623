"""sheaf - a fast, configurable shell plugin manager."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("sheaf-cli")
except PackageNotFoundError:
    __version__ = "0.0.0"
