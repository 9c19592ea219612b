"""Startup privilege check."""
from __future__ import annotations

import os
from collections.abc import Callable

from .errors import InsufficientPrivilegeError


def is_root(geteuid: Callable[[], int] | None = None) -> bool:
    """Return ``True`` when running with an effective UID of 0."""
    return (geteuid or os.geteuid)() == 0


def require_root(geteuid: Callable[[], int] | None = None) -> None:
    """Raise :class:`InsufficientPrivilegeError` unless running as root."""
    if not is_root(geteuid):
        raise InsufficientPrivilegeError("This tool must be run as root (sudo).")


__all__ = ["is_root", "require_root"]
