"""pingsvc package bootstrap.

This module exposes lightweight metadata that other modules (and packaging
machinery) rely upon.
"""
from __future__ import annotations

__all__ = ["__version__", "get_version"]

# NOTE: The version is duplicated in ``pyproject.toml``.
__version__ = "0.1.0"


def get_version() -> str:
    """Return the current package version."""
    return __version__
