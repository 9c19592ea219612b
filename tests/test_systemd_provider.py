"""Tests for the systemd provider."""
from __future__ import annotations

import subprocess
from collections.abc import Sequence
from pathlib import Path

import pytest

from pingsvc.providers.systemd import SystemdError, SystemdProvider

UNIT = "continuous-ping-8-8-8-8.service"


class DummyResult:
    """Simple stand-in for ``subprocess.CompletedProcess``."""

    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        """Initialise the dummy result."""
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


@pytest.fixture
def provider(tmp_path: Path) -> SystemdProvider:
    """Return a provider instance scoped to the temporary path."""
    unit_dir = tmp_path / "systemd"
    unit_dir.mkdir()
    return SystemdProvider(unit_dir=unit_dir, systemctl_bin="systemctl")


def _capture_systemctl(
    monkeypatch: pytest.MonkeyPatch,
    result: DummyResult | None = None,
) -> list[tuple[str, str | None, tuple[str, ...], bool, bool]]:
    captured: list[tuple[str, str | None, tuple[str, ...], bool, bool]] = []

    def fake_systemctl(
        self: SystemdProvider,
        command: str,
        unit_or_pattern: str | None = None,
        *,
        options: Sequence[str] = (),
        check: bool = True,
        dry_run: bool = False,
    ) -> DummyResult:
        captured.append((command, unit_or_pattern, tuple(options), check, dry_run))
        return result or DummyResult(returncode=0)

    monkeypatch.setattr(SystemdProvider, "_systemctl", fake_systemctl)
    return captured


def test_unit_path_joins_unit_dir(provider: SystemdProvider) -> None:
    """Unit files live directly under the configured directory."""
    assert provider.unit_path(UNIT) == provider.unit_dir / UNIT


@pytest.mark.parametrize(
    ("method", "command"),
    [("enable", "enable"), ("disable", "disable"), ("start", "restart"), ("stop", "stop")],
)
def test_unit_management_calls_systemctl(
    monkeypatch: pytest.MonkeyPatch,
    provider: SystemdProvider,
    method: str,
    command: str,
) -> None:
    """Enable/disable/start/stop delegate to systemctl with the unit name."""
    captured = _capture_systemctl(monkeypatch)

    getattr(provider, method)(UNIT)

    assert captured == [(command, UNIT, (), True, False)]


def test_disable_now_stops_the_unit(
    monkeypatch: pytest.MonkeyPatch,
    provider: SystemdProvider,
) -> None:
    """``now=True`` maps to ``systemctl disable --now``."""
    captured = _capture_systemctl(monkeypatch)

    provider.disable(UNIT, now=True)

    assert captured == [("disable", UNIT, ("--now",), True, False)]


def test_reload_runs_daemon_reload(
    monkeypatch: pytest.MonkeyPatch,
    provider: SystemdProvider,
) -> None:
    """Reload issues a bare daemon-reload."""
    captured = _capture_systemctl(monkeypatch)

    provider.reload()

    assert captured == [("daemon-reload", None, (), True, False)]


def test_list_unit_files_parses_first_column(
    monkeypatch: pytest.MonkeyPatch,
    provider: SystemdProvider,
) -> None:
    """Unit names are taken from the first column in systemctl order."""
    stdout = (
        "continuous-ping-8-8-8-8.service enabled enabled\n"
        "\n"
        "continuous-ping-1-1-1-1.service disabled enabled\n"
    )
    captured = _capture_systemctl(monkeypatch, DummyResult(returncode=0, stdout=stdout))

    names = provider.list_unit_files("continuous-ping-*.service")

    assert names == ("continuous-ping-8-8-8-8.service", "continuous-ping-1-1-1-1.service")
    command, pattern, options, check, _ = captured[0]
    assert (command, pattern, check) == ("list-unit-files", "continuous-ping-*.service", False)
    assert "--no-legend" in options
    assert "--type=service" in options


def test_list_unit_files_empty_on_no_match(
    monkeypatch: pytest.MonkeyPatch,
    provider: SystemdProvider,
) -> None:
    """A non-zero exit with no output means nothing matched."""
    _capture_systemctl(monkeypatch, DummyResult(returncode=1))

    assert provider.list_unit_files("continuous-ping-*.service") == ()


@pytest.mark.parametrize(("returncode", "expected"), [(0, True), (3, False)])
def test_state_queries_use_exit_status(
    monkeypatch: pytest.MonkeyPatch,
    provider: SystemdProvider,
    returncode: int,
    expected: bool,
) -> None:
    """is-active/is-enabled map exit status 0 to True and never raise."""
    captured = _capture_systemctl(monkeypatch, DummyResult(returncode=returncode))

    assert provider.is_active(UNIT) is expected
    assert provider.is_enabled(UNIT) is expected
    assert captured == [
        ("is-active", UNIT, ("--quiet",), False, False),
        ("is-enabled", UNIT, ("--quiet",), False, False),
    ]


def test_status_uses_non_check(
    monkeypatch: pytest.MonkeyPatch,
    provider: SystemdProvider,
) -> None:
    """Status calls systemctl with ``check=False`` and returns the result."""
    captured = _capture_systemctl(monkeypatch, DummyResult(returncode=3, stdout="inactive"))

    result = provider.status(UNIT)

    assert captured == [("status", UNIT, ("--no-pager",), False, False)]
    assert result.stdout == "inactive"


def test_logs_invokes_journalctl(
    monkeypatch: pytest.MonkeyPatch,
    provider: SystemdProvider,
) -> None:
    """Logs helper shells out to journalctl with expected arguments."""
    captured: list[tuple[list[str], bool, bool]] = []

    def fake_journalctl(
        self: SystemdProvider,
        args: Sequence[str],
        *,
        check: bool = True,
        capture_output: bool = True,
    ) -> DummyResult:
        captured.append((list(args), check, capture_output))
        return DummyResult(returncode=0, stdout="log lines")

    monkeypatch.setattr(SystemdProvider, "_journalctl", fake_journalctl)

    provider.logs(UNIT, lines=50, since="2025-01-20")
    expected_args = ["--unit", UNIT, "--no-pager", "--lines", "50", "--since", "2025-01-20"]
    assert captured == [(expected_args, True, True)]

    captured.clear()
    provider.logs(UNIT, follow=True)
    assert captured == [(["--unit", UNIT, "--no-pager", "--follow"], False, False)]


def test_dry_run_skips_systemctl(
    monkeypatch: pytest.MonkeyPatch,
    provider: SystemdProvider,
) -> None:
    """Dry-run requests never reach subprocess and still report success."""

    def fail_run(*args: object, **kwargs: object) -> None:
        raise AssertionError("subprocess.run should not be called during dry-run")

    monkeypatch.setattr(subprocess, "run", fail_run)

    result = provider.enable(UNIT, dry_run=True)

    assert result.returncode == 0
    assert result.args == ["systemctl", "enable", UNIT]


def test_failed_command_raises_with_stderr(
    monkeypatch: pytest.MonkeyPatch,
    provider: SystemdProvider,
) -> None:
    """Checked commands surface systemctl's stderr in SystemdError."""

    def fake_run(args: list[str], **kwargs: object) -> DummyResult:
        return DummyResult(returncode=1, stderr="Unit file does not exist.\n")

    monkeypatch.setattr(subprocess, "run", fake_run)

    with pytest.raises(SystemdError, match="systemctl enable failed \\(exit 1\\): Unit file"):
        provider.enable(UNIT)


def test_missing_binary_raises(
    monkeypatch: pytest.MonkeyPatch,
    provider: SystemdProvider,
) -> None:
    """A missing systemctl binary is reported as SystemdError."""

    def fake_run(args: list[str], **kwargs: object) -> DummyResult:
        raise FileNotFoundError(args[0])

    monkeypatch.setattr(subprocess, "run", fake_run)

    with pytest.raises(SystemdError, match="not found"):
        provider.reload()
