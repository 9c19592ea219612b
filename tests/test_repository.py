"""Tests for the unit repository."""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from pingsvc.errors import WriteError
from pingsvc.providers.systemd import SystemdError, SystemdProvider
from pingsvc.repository import UnitRepository
from pingsvc.templates import TemplateEngine

if TYPE_CHECKING:
    from conftest import FakeSystemctl

UNIT = "continuous-ping-8-8-8-8.service"


@pytest.fixture
def repository(unit_dir: Path) -> UnitRepository:
    """Return a repository writing into the temporary unit directory."""
    return UnitRepository(
        systemd=SystemdProvider(unit_dir=unit_dir),
        templates=TemplateEngine.with_overrides(None),
        probe_bin="/bin/ping",
        restart_sec=10,
    )


def test_write_definition_renders_unit(repository: UnitRepository, unit_dir: Path) -> None:
    """The definition file is written under the unit directory."""
    path = repository.write_definition(UNIT, "8.8.8.8")

    assert path == unit_dir / UNIT
    text = path.read_text(encoding="utf-8")
    assert 'ExecStart=/bin/ping "8.8.8.8"' in text
    assert oct(path.stat().st_mode & 0o777) == "0o644"
    assert repository.read_definition(UNIT) == text


def test_write_definition_is_idempotent(repository: UnitRepository, unit_dir: Path) -> None:
    """Writing the same definition twice leaves one identical file."""
    first = repository.write_definition(UNIT, "8.8.8.8").read_text(encoding="utf-8")
    second = repository.write_definition(UNIT, "8.8.8.8").read_text(encoding="utf-8")

    assert first == second
    assert [path.name for path in unit_dir.iterdir()] == [UNIT]


def test_write_definition_wraps_os_errors(
    repository: UnitRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Permission problems surface as WriteError."""

    def deny(*args: object, **kwargs: object) -> bool:
        raise PermissionError("Permission denied")

    monkeypatch.setattr(TemplateEngine, "render_to_path", deny)

    with pytest.raises(WriteError) as excinfo:
        repository.write_definition(UNIT, "8.8.8.8")

    assert excinfo.value.unit_name == UNIT
    assert "Permission denied" in excinfo.value.diagnostic


def test_remove_definition_is_idempotent(repository: UnitRepository, unit_dir: Path) -> None:
    """Removing an absent definition is a successful no-op."""
    repository.write_definition(UNIT, "8.8.8.8")

    assert repository.remove_definition(UNIT) is True
    assert repository.remove_definition(UNIT) is False
    assert not (unit_dir / UNIT).exists()
    assert repository.read_definition(UNIT) is None


def test_list_managed_filters_namespace(
    repository: UnitRepository,
    fake_systemctl: FakeSystemctl,
) -> None:
    """Only continuous-ping units are returned, in manager order."""
    fake_systemctl.loaded = {
        "continuous-ping-8-8-8-8.service",
        "continuous-ping-1-1-1-1.service",
    }

    assert repository.list_managed() == (
        "continuous-ping-1-1-1-1.service",
        "continuous-ping-8-8-8-8.service",
    )


def test_list_managed_empty(repository: UnitRepository, fake_systemctl: FakeSystemctl) -> None:
    """No matching units yields an empty tuple."""
    assert repository.list_managed() == ()


def test_query_state_reports_flags(
    repository: UnitRepository,
    fake_systemctl: FakeSystemctl,
) -> None:
    """Active and enabled flags come from the manager."""
    fake_systemctl.loaded = {UNIT}
    fake_systemctl.enabled = {UNIT}

    state = repository.query_state(UNIT)

    assert state.display_identity == "8.8.8.8"
    assert state.enabled is True
    assert state.active is False
    assert state.to_dict() == {
        "unit": UNIT,
        "identity": "8.8.8.8",
        "active": False,
        "enabled": True,
    }


def test_query_state_failure_reads_as_false(
    repository: UnitRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A failing state query is reported as inactive/disabled."""

    def broken(self: SystemdProvider, unit_name: str) -> bool:
        raise SystemdError("systemctl not found")

    monkeypatch.setattr(SystemdProvider, "is_active", broken)
    monkeypatch.setattr(SystemdProvider, "is_enabled", broken)

    state = repository.query_state(UNIT)

    assert state.active is False
    assert state.enabled is False


@pytest.mark.parametrize(
    "unit_name",
    [
        "continuous-ping-a/b.service",
        "continuous-ping-../../escape.service",
        "../continuous-ping-8-8-8-8.service",
    ],
)
def test_write_definition_stays_in_unit_dir(
    repository: UnitRepository,
    unit_dir: Path,
    unit_name: str,
) -> None:
    """Names that would leave the unit directory are refused before writing."""
    with pytest.raises(WriteError) as excinfo:
        repository.write_definition(unit_name, "8.8.8.8")

    assert excinfo.value.unit_name == unit_name
    assert list(unit_dir.rglob("*")) == []
    assert not (unit_dir.parent / "escape.service").exists()
    assert not (unit_dir.parent / UNIT).exists()


def test_write_definition_scoped_address(repository: UnitRepository, unit_dir: Path) -> None:
    """A zone index is written literally as '%%' inside the unit."""
    unit_name = "continuous-ping-fe80--1_eth0.service"

    path = repository.write_definition(unit_name, "fe80::1%eth0")

    assert path == unit_dir / unit_name
    assert 'ExecStart=/bin/ping "fe80::1%%eth0"' in path.read_text(encoding="utf-8")
