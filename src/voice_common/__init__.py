"""Shared infrastructure for the voice scheduling services."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("voice-scheduling-services")
except PackageNotFoundError:  # pragma: no cover - fallback during local dev
    __version__ = "0.0.0"

__all__ = ["__version__"]
