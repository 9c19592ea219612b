"""Unit repository: the only layer touching unit files and systemd."""
from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .errors import WriteError
from .identity import UNIT_GLOB, decode, is_managed_unit, normalize
from .providers.systemd import SystemdError, SystemdProvider
from .templates import TemplateEngine, TemplateRenderError

LOGGER = logging.getLogger(__name__)

UNIT_TEMPLATE = "systemd/ping.service.j2"
UNIT_FILE_MODE = 0o644


@dataclass(frozen=True, slots=True)
class UnitState:
    """Live view of one managed unit."""

    unit_name: str
    display_identity: str
    active: bool
    enabled: bool

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "unit": self.unit_name,
            "identity": self.display_identity,
            "active": self.active,
            "enabled": self.enabled,
        }


@dataclass(slots=True)
class UnitRepository:
    """Read, write and enumerate continuous-ping units."""

    systemd: SystemdProvider
    templates: TemplateEngine
    probe_bin: str = "/bin/ping"
    restart_sec: int = 10

    # Enumeration -------------------------------------------------------
    def list_managed(self) -> tuple[str, ...]:
        """Return managed unit names in the order systemd lists them.

        The manager is queried on every call; an empty tuple means there are
        no managed units.
        """
        names = self.systemd.list_unit_files(UNIT_GLOB)
        return tuple(name for name in names if is_managed_unit(name))

    def query_state(self, unit_name: str) -> UnitState:
        """Return active/enabled flags; any query failure reads as ``False``."""
        return UnitState(
            unit_name=unit_name,
            display_identity=decode(unit_name),
            active=self._safe_query(self.systemd.is_active, unit_name),
            enabled=self._safe_query(self.systemd.is_enabled, unit_name),
        )

    def describe_all(self) -> list[UnitState]:
        """Return the live state of every managed unit."""
        return [self.query_state(name) for name in self.list_managed()]

    # Definitions -------------------------------------------------------
    def unit_path(self, unit_name: str) -> Path:
        """Return where the definition for *unit_name* lives."""
        return self.systemd.unit_path(unit_name)

    def render_definition(self, identity: str) -> str:
        """Return the unit file text for *identity*."""
        return self.templates.render_to_string(UNIT_TEMPLATE, self._context(identity))

    def read_definition(self, unit_name: str) -> str | None:
        """Return the stored definition, or ``None`` when it does not exist."""
        try:
            return self.unit_path(unit_name).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def write_definition(self, unit_name: str, identity: str) -> Path:
        """Render and persist the definition for *unit_name*.

        The file must land directly inside the unit directory; names that
        would resolve anywhere else raise :class:`WriteError` before anything
        is created.
        """
        path = self.unit_path(unit_name)
        if path.parent != self.systemd.unit_dir or not is_managed_unit(path.name):
            raise WriteError(
                f"Refusing to write unit file {path}",
                unit_name=unit_name,
                diagnostic="unit name must be a plain continuous-ping-*.service file name",
            )
        try:
            self.templates.render_to_path(
                UNIT_TEMPLATE,
                path,
                self._context(identity),
                mode=UNIT_FILE_MODE,
            )
        except (OSError, TemplateRenderError) as exc:
            raise WriteError(
                f"Failed to write unit file {path}",
                unit_name=unit_name,
                diagnostic=str(exc),
            ) from exc
        LOGGER.debug("Wrote unit definition %s", path)
        return path

    def remove_definition(self, unit_name: str) -> bool:
        """Delete the definition file; return ``False`` if it was absent."""
        path = self.unit_path(unit_name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise WriteError(
                f"Failed to remove unit file {path}",
                unit_name=unit_name,
                diagnostic=str(exc),
            ) from exc
        LOGGER.debug("Removed unit definition %s", path)
        return True

    # Manager passthroughs ----------------------------------------------
    def reload(self, *, dry_run: bool = False) -> subprocess.CompletedProcess[str]:
        """Reload the manager's unit index."""
        return self.systemd.reload(dry_run=dry_run)

    def enable(self, unit_name: str, *, dry_run: bool = False) -> subprocess.CompletedProcess[str]:
        """Register *unit_name* for boot autostart."""
        return self.systemd.enable(unit_name, dry_run=dry_run)

    def disable(
        self,
        unit_name: str,
        *,
        now: bool = False,
        dry_run: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        """Deregister *unit_name* from boot autostart."""
        return self.systemd.disable(unit_name, now=now, dry_run=dry_run)

    def start(self, unit_name: str, *, dry_run: bool = False) -> subprocess.CompletedProcess[str]:
        """(Re)start *unit_name* now."""
        return self.systemd.start(unit_name, dry_run=dry_run)

    def stop(self, unit_name: str, *, dry_run: bool = False) -> subprocess.CompletedProcess[str]:
        """Stop *unit_name*."""
        return self.systemd.stop(unit_name, dry_run=dry_run)

    def status(self, unit_name: str) -> subprocess.CompletedProcess[str]:
        """Return systemd's human-readable status for *unit_name*."""
        return self.systemd.status(unit_name)

    def logs(
        self,
        unit_name: str,
        *,
        lines: int | None = None,
        since: str | None = None,
        follow: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        """Return (or, with *follow*, stream) the journal for *unit_name*."""
        return self.systemd.logs(unit_name, lines=lines, since=since, follow=follow)

    # ------------------------------------------------------------------
    def _context(self, identity: str) -> dict[str, object]:
        return {
            "identity": normalize(identity),
            "probe_bin": self.probe_bin,
            "restart_sec": self.restart_sec,
        }

    @staticmethod
    def _safe_query(query: Callable[[str], bool], unit_name: str) -> bool:
        try:
            return query(unit_name)
        except SystemdError as exc:
            LOGGER.debug("State query for %s failed: %s", unit_name, exc)
            return False


__all__ = ["UNIT_TEMPLATE", "UnitRepository", "UnitState"]
