"""Create/delete transactions for continuous-ping units.

``create`` is strict: each step runs only if the previous one succeeded, and
a failure after the definition was registered rolls the system back so a
later listing never shows a half-built unit. ``delete`` is best-effort: every
step runs regardless of earlier failures and problems are reported as
warnings, because the goal is to leave no trace.
"""
from __future__ import annotations

import re
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .errors import (
    EnableError,
    InvalidIdentityError,
    LifecycleError,
    NotANumberError,
    OutOfRangeError,
    ReloadError,
    StartError,
    WriteError,
)
from .exit_codes import ExitCode
from .identity import encode, is_managed_unit, normalize
from .logging import OperationScope, StructuredLogger
from .providers.systemd import SystemdError
from .repository import UnitRepository, UnitState

_NUMBER_RE = re.compile(r"[0-9]+")
_CREATE_STEPS = ("definition.write", "systemd.reload", "systemd.enable", "systemd.start")
_DELETE_STEPS = ("systemd.stop", "systemd.disable", "definition.remove", "systemd.reload")


@dataclass(frozen=True, slots=True)
class CreateResult:
    """Outcome of a successful :meth:`LifecycleOrchestrator.create`."""

    unit_name: str
    identity: str
    path: Path
    enabled: bool
    active: bool
    dry_run: bool = False


@dataclass(frozen=True, slots=True)
class DeleteResult:
    """Outcome of :meth:`LifecycleOrchestrator.delete`."""

    unit_name: str
    removed: bool
    warnings: tuple[str, ...] = ()
    dry_run: bool = False

    @property
    def clean(self) -> bool:
        """Return ``True`` when every cleanup step succeeded."""
        return not self.warnings


@dataclass(frozen=True, slots=True)
class EditGuidance:
    """Manual steps for editing a unit definition out of band."""

    unit_name: str
    path: Path
    exists: bool
    steps: tuple[tuple[str, str | None], ...] = field(default_factory=tuple)


def select_unit(choice: int | str, units: Sequence[str]) -> str:
    """Return the entry of *units* picked by the 1-based *choice*."""
    if isinstance(choice, bool):
        raise NotANumberError(f"Invalid choice {choice!r}: expected a number.")
    if isinstance(choice, int):
        index = choice
    else:
        text = str(choice).strip()
        if not _NUMBER_RE.fullmatch(text):
            raise NotANumberError(f"Invalid choice {choice!r}: expected a number.")
        index = int(text)
    if index < 1 or index > len(units):
        if units:
            raise OutOfRangeError(f"Invalid choice {index}: pick a number from 1 to {len(units)}.")
        raise OutOfRangeError(f"Invalid choice {index}: there is nothing to select.")
    return units[index - 1]


def resolve_unit_name(value: str) -> str:
    """Accept either a managed unit name or a target identity."""
    text = normalize(value)
    if is_managed_unit(text):
        return text
    return encode(text)


@dataclass(slots=True)
class LifecycleOrchestrator:
    """Run unit transactions against a :class:`UnitRepository`."""

    repository: UnitRepository
    logger: StructuredLogger

    def list_units(self) -> tuple[str, ...]:
        """Return the current managed unit names."""
        return self.repository.list_managed()

    def select(self, choice: int | str, units: Sequence[str]) -> str:
        """Pick one unit from an explicit listing; see :func:`select_unit`."""
        return select_unit(choice, units)

    def describe_units(self) -> list[UnitState]:
        """Return live state for every managed unit."""
        with self.logger.operation(
            "unit list",
            target={"kind": "unit", "scope": "all"},
        ) as op:
            states = self.repository.describe_all()
            op.success(f"Listed {len(states)} unit(s).", changed=0)
            return states

    def status(self, unit_name: str) -> subprocess.CompletedProcess[str]:
        """Return systemd's status report for *unit_name*."""
        with self.logger.operation(
            "unit status",
            args={"unit": unit_name},
            target={"kind": "unit", "name": unit_name},
        ) as op:
            result = self.repository.status(unit_name)
            op.add_step("systemd.status", status="success", detail=f"rc={result.returncode}")
            op.success("Reported unit status.", changed=0)
            return result

    def logs(
        self,
        unit_name: str,
        *,
        lines: int | None = None,
        since: str | None = None,
        follow: bool = False,
    ) -> subprocess.CompletedProcess[str] | None:
        """Fetch the journal for *unit_name*.

        With *follow* the journal streams until the operator presses Ctrl+C,
        which ends the command normally and returns ``None``.
        """
        with self.logger.operation(
            "unit logs",
            args={"unit": unit_name, "lines": lines, "since": since, "follow": follow},
            target={"kind": "unit", "name": unit_name},
        ) as op:
            try:
                result = self.repository.logs(unit_name, lines=lines, since=since, follow=follow)
            except KeyboardInterrupt:
                op.success("Stopped following logs.", changed=0)
                return None
            op.success("Fetched unit logs.", changed=0)
            return result

    # ------------------------------------------------------------------
    def create(self, identity: str, *, dry_run: bool = False) -> CreateResult:
        """Write, register, enable and start the unit for *identity*."""
        with self.logger.operation(
            "unit create",
            args={"identity": identity, "dry_run": dry_run},
            target={"kind": "unit"},
        ) as op:
            try:
                target = normalize(identity)
            except InvalidIdentityError as exc:
                op.error(str(exc), rc=ExitCode.VALIDATION)
                raise
            unit_name = encode(target)
            op.target["name"] = unit_name
            path = self.repository.unit_path(unit_name)

            if dry_run:
                for step in _CREATE_STEPS:
                    op.add_step(step, status="skipped", detail="dry-run")
                op.success("Unit create dry-run complete.", changed=0)
                return CreateResult(
                    unit_name=unit_name,
                    identity=target,
                    path=path,
                    enabled=False,
                    active=False,
                    dry_run=True,
                )

            try:
                self.repository.write_definition(unit_name, target)
            except WriteError as exc:
                raise self._failed(op, exc) from exc
            op.add_step("definition.write", status="success", detail=str(path))

            # A reload failure leaves the written definition in place.
            try:
                self.repository.reload()
            except SystemdError as exc:
                error = ReloadError(
                    "Failed to reload systemd daemon",
                    unit_name=unit_name,
                    diagnostic=str(exc),
                    path=path,
                )
                raise self._failed(op, error) from exc
            op.add_step("systemd.reload", status="success")

            try:
                self.repository.enable(unit_name)
            except SystemdError as exc:
                error = EnableError(
                    f"Failed to enable service {unit_name}",
                    unit_name=unit_name,
                    diagnostic=str(exc),
                )
                self._rollback(op, unit_name, disable=False)
                raise self._failed(op, error) from exc
            op.add_step("systemd.enable", status="success")

            try:
                self.repository.start(unit_name)
            except SystemdError as exc:
                error = StartError(
                    f"Failed to start service {unit_name}",
                    unit_name=unit_name,
                    diagnostic=str(exc),
                )
                self._rollback(op, unit_name, disable=True)
                raise self._failed(op, error) from exc
            op.add_step("systemd.start", status="success")

            state = self.repository.query_state(unit_name)
            op.success(
                f"Service {unit_name} created and activated.",
                changed=4,
                context={"enabled": state.enabled, "active": state.active},
            )
            return CreateResult(
                unit_name=unit_name,
                identity=target,
                path=path,
                enabled=state.enabled,
                active=state.active,
            )

    def delete(self, unit_name: str, *, dry_run: bool = False) -> DeleteResult:
        """Stop, disable and remove *unit_name*, tolerating step failures."""
        if not is_managed_unit(unit_name):
            raise InvalidIdentityError(f"'{unit_name}' is not a continuous-ping service unit.")

        with self.logger.operation(
            "unit delete",
            args={"unit": unit_name, "dry_run": dry_run},
            target={"kind": "unit", "name": unit_name},
        ) as op:
            if dry_run:
                for step in _DELETE_STEPS:
                    op.add_step(step, status="skipped", detail="dry-run")
                op.success("Unit delete dry-run complete.", changed=0)
                return DeleteResult(unit_name=unit_name, removed=False, dry_run=True)

            warnings: list[str] = []

            try:
                self.repository.stop(unit_name)
                op.add_step("systemd.stop", status="success")
            except SystemdError as exc:
                # Usually the unit was already stopped.
                warnings.append(f"stop: {exc}")
                op.add_step("systemd.stop", status="warning", detail=str(exc))

            try:
                self.repository.disable(unit_name)
                op.add_step("systemd.disable", status="success")
            except SystemdError as exc:
                warnings.append(f"disable: {exc}")
                op.add_step("systemd.disable", status="warning", detail=str(exc))

            removed = False
            try:
                removed = self.repository.remove_definition(unit_name)
                op.add_step(
                    "definition.remove",
                    status="success" if removed else "skipped",
                    detail=str(self.repository.unit_path(unit_name)) if removed else "absent",
                )
            except WriteError as exc:
                warnings.append(f"remove: {exc}")
                op.add_step("definition.remove", status="warning", detail=str(exc))

            try:
                self.repository.reload()
                op.add_step("systemd.reload", status="success")
            except SystemdError as exc:
                warnings.append(f"reload: {exc}")
                op.add_step("systemd.reload", status="warning", detail=str(exc))

            if warnings:
                op.warning(
                    f"Service {unit_name} deleted with warnings.",
                    warnings=warnings,
                    changed=int(removed),
                )
            else:
                op.success(f"Service {unit_name} deleted.", changed=int(removed))
            return DeleteResult(unit_name=unit_name, removed=removed, warnings=tuple(warnings))

    def edit_guidance(self, unit_name: str) -> EditGuidance:
        """Describe how an operator edits *unit_name* by hand."""
        path = self.repository.unit_path(unit_name)
        systemctl = self.repository.systemd.systemctl_bin
        probe_bin = self.repository.probe_bin
        steps: tuple[tuple[str, str | None], ...] = (
            ("Open the service file with a text editor (e.g., nano, vim):", f"sudo nano {path}"),
            (
                "Make your desired changes (e.g., the address in "
                f'ExecStart={probe_bin} "<NEW_IP>").',
                None,
            ),
            ("Save the file and exit the editor.", None),
            (
                "Reload the systemd daemon to apply changes to systemd's internal state:",
                f"sudo {systemctl} daemon-reload",
            ),
            (
                "Restart the service for the changes to take effect on the running process:",
                f"sudo {systemctl} restart {unit_name}",
            ),
        )
        return EditGuidance(unit_name=unit_name, path=path, exists=path.exists(), steps=steps)

    # ------------------------------------------------------------------
    def _rollback(self, op: OperationScope, unit_name: str, *, disable: bool) -> None:
        """Undo a partial create, newest manager state first; never raises."""
        if disable:
            try:
                self.repository.disable(unit_name, now=True)
                op.add_step("rollback.disable", status="success")
            except SystemdError as exc:
                op.add_step("rollback.disable", status="warning", detail=str(exc))
        try:
            self.repository.remove_definition(unit_name)
            op.add_step("rollback.remove", status="success")
        except WriteError as exc:
            op.add_step("rollback.remove", status="warning", detail=str(exc))
        try:
            self.repository.reload()
            op.add_step("rollback.reload", status="success")
        except SystemdError as exc:
            op.add_step("rollback.reload", status="warning", detail=str(exc))

    @staticmethod
    def _failed(op: OperationScope, error: LifecycleError) -> LifecycleError:
        op.add_step(error.step, status="error", detail=error.diagnostic or None)
        op.error(
            str(error),
            errors=[error.diagnostic or error.message],
            rc=ExitCode.PROVIDER,
        )
        return error


__all__ = [
    "CreateResult",
    "DeleteResult",
    "EditGuidance",
    "LifecycleOrchestrator",
    "resolve_unit_name",
    "select_unit",
]
