"""Exception hierarchy shared by the pingsvc layers."""
from __future__ import annotations

from pathlib import Path


class PingServiceError(Exception):
    """Base class for errors reported to the operator."""


class InvalidIdentityError(PingServiceError, ValueError):
    """Raised when a target identity cannot be turned into a unit name."""


class InsufficientPrivilegeError(PingServiceError):
    """Raised when the process may not manage system services."""


class LifecycleError(PingServiceError):
    """A create transaction step failed.

    ``diagnostic`` carries the service manager's own error text so it can be
    shown to the operator verbatim. ``path`` names a unit file the failure
    left on disk, if any.
    """

    step = "unknown"

    def __init__(
        self,
        message: str,
        *,
        unit_name: str,
        diagnostic: str = "",
        path: Path | None = None,
    ) -> None:
        """Store the failing unit and the manager diagnostic."""
        super().__init__(message)
        self.message = message
        self.unit_name = unit_name
        self.diagnostic = diagnostic
        self.path = path

    def __str__(self) -> str:
        """Return the message with the diagnostic appended."""
        if self.diagnostic:
            return f"{self.message}: {self.diagnostic}"
        return self.message


class WriteError(LifecycleError):
    """The unit definition could not be written or removed."""

    step = "definition.write"


class ReloadError(LifecycleError):
    """The service manager failed to reload its unit index."""

    step = "systemd.reload"


class EnableError(LifecycleError):
    """The service manager refused to enable the unit."""

    step = "systemd.enable"


class StartError(LifecycleError):
    """The service manager failed to start the unit."""

    step = "systemd.start"


class SelectionError(PingServiceError, ValueError):
    """Raised when an operator's list selection is invalid."""


class OutOfRangeError(SelectionError):
    """The selected index is outside the listed range."""


class NotANumberError(SelectionError):
    """The selection is not a whole number."""


__all__ = [
    "EnableError",
    "InsufficientPrivilegeError",
    "InvalidIdentityError",
    "LifecycleError",
    "NotANumberError",
    "OutOfRangeError",
    "PingServiceError",
    "ReloadError",
    "SelectionError",
    "StartError",
    "WriteError",
]
