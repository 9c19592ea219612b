"""Pytest configuration helpers for the test suite."""

from __future__ import annotations

import fnmatch
import os
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from pingsvc.cli import RuntimeContext, build_runtime
from pingsvc.config import load_config
from pingsvc.providers.systemd import SystemdError, SystemdProvider


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip expensive tests during mutation runs."""
    if not os.environ.get("MUTANT_UNDER_TEST"):
        return
    skip_marker = pytest.mark.skip(reason="Skipped during mutation run to avoid timeouts.")
    for item in items:
        if "mutation_timeout" in item.keywords:
            item.add_marker(skip_marker)


@dataclass
class FakeSystemctl:
    """In-memory stand-in for ``systemctl``/``journalctl``.

    Unit files live on disk under ``unit_dir``; ``daemon-reload`` snapshots
    them into ``loaded`` the way systemd does. ``failures`` maps a command
    (``"enable"``, ``"restart"``...) to the stderr text it should fail with.
    """

    unit_dir: Path
    loaded: set[str] = field(default_factory=set)
    enabled: set[str] = field(default_factory=set)
    active: set[str] = field(default_factory=set)
    failures: dict[str, str] = field(default_factory=dict)
    calls: list[list[str]] = field(default_factory=list)

    def commands(self) -> list[str]:
        """Return the systemctl sub-commands issued so far."""
        return [self._subcommand(call[1:]) for call in self.calls if call[0] != "journalctl"]

    def handle(self, args: Sequence[str]) -> subprocess.CompletedProcess[str]:
        argv = [Path(args[0]).name, *args[1:]]
        self.calls.append(argv)
        if argv[0] == "journalctl":
            return self._result(argv, 0, stdout="-- journal entries --\n")

        rest = argv[1:]
        command = self._subcommand(rest)
        positional = [item for item in rest[1:] if not item.startswith("--")]
        name = positional[0] if positional else ""

        if command in self.failures:
            return self._result(argv, 1, stderr=self.failures[command])

        if command == "daemon-reload":
            self.loaded = {path.name for path in self.unit_dir.glob("*.service")}
            return self._result(argv, 0)
        if command == "list-unit-files":
            rows = [
                f"{unit} {'enabled' if unit in self.enabled else 'disabled'} enabled"
                for unit in sorted(self.loaded)
                if fnmatch.fnmatch(unit, name)
            ]
            if not rows:
                return self._result(argv, 1)
            return self._result(argv, 0, stdout="\n".join(rows) + "\n")
        if command == "is-active":
            return self._result(argv, 0 if name in self.active else 3)
        if command == "is-enabled":
            return self._result(argv, 0 if name in self.enabled else 1)
        if command == "enable":
            if name not in self.loaded:
                message = f"Failed to enable unit: Unit file {name} does not exist."
                return self._result(argv, 1, stderr=message)
            self.enabled.add(name)
            return self._result(argv, 0)
        if command == "disable":
            if name not in self.loaded:
                message = f"Failed to disable unit: Unit file {name} does not exist."
                return self._result(argv, 1, stderr=message)
            self.enabled.discard(name)
            if "--now" in rest:
                self.active.discard(name)
            return self._result(argv, 0)
        if command == "restart":
            if name not in self.loaded:
                message = f"Failed to restart {name}: Unit {name} not found."
                return self._result(argv, 5, stderr=message)
            self.active.add(name)
            return self._result(argv, 0)
        if command == "stop":
            if name not in self.active and name not in self.loaded:
                message = f"Failed to stop {name}: Unit {name} not loaded."
                return self._result(argv, 5, stderr=message)
            self.active.discard(name)
            return self._result(argv, 0)
        if command == "status":
            state = "active (running)" if name in self.active else "inactive (dead)"
            rc = 0 if name in self.active else 3
            return self._result(argv, rc, stdout=f"● {name}\n   Active: {state}\n")
        return self._result(argv, 1, stderr=f"Unknown command {command}")

    def install(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Route every provider command through this fake."""
        fake = self

        def fake_run_command(
            provider: SystemdProvider,
            args: Sequence[str],
            *,
            check: bool,
            error_prefix: str,
            capture_output: bool,
            dry_run: bool,
        ) -> subprocess.CompletedProcess[str]:
            if dry_run:
                return subprocess.CompletedProcess(list(args), returncode=0, stdout="", stderr="")
            result = fake.handle(args)
            if check and result.returncode != 0:
                message = result.stderr.strip() or result.stdout.strip() or "no output"
                raise SystemdError(f"{error_prefix} failed (exit {result.returncode}): {message}")
            return result

        monkeypatch.setattr(SystemdProvider, "_run_command", fake_run_command)

    @staticmethod
    def _subcommand(rest: Sequence[str]) -> str:
        return rest[0] if rest else ""

    @staticmethod
    def _result(
        argv: Sequence[str],
        returncode: int,
        *,
        stdout: str = "",
        stderr: str = "",
    ) -> subprocess.CompletedProcess[str]:
        return subprocess.CompletedProcess(list(argv), returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def unit_dir(tmp_path: Path) -> Path:
    """Return an empty directory standing in for /etc/systemd/system."""
    path = tmp_path / "systemd"
    path.mkdir()
    return path


@pytest.fixture
def fake_systemctl(unit_dir: Path, monkeypatch: pytest.MonkeyPatch) -> FakeSystemctl:
    """Install a :class:`FakeSystemctl` behind every ``SystemdProvider``."""
    fake = FakeSystemctl(unit_dir=unit_dir)
    fake.install(monkeypatch)
    return fake


@pytest.fixture
def cli_env(tmp_path: Path, unit_dir: Path) -> dict[str, str]:
    """Environment variables pointing pingsvc at temporary directories."""
    return {
        "PINGSVC_CONFIG_FILE": str(tmp_path / "config.yml"),
        "PINGSVC_LOGS_DIR": str(tmp_path / "logs"),
        "PINGSVC_TEMPLATES_DIR": str(tmp_path / "templates"),
        "PINGSVC_REQUIRE_ROOT": "false",
        "PINGSVC_SYSTEMD__UNIT_DIR": str(unit_dir),
    }


@pytest.fixture
def runtime(cli_env: dict[str, str], fake_systemctl: FakeSystemctl) -> RuntimeContext:
    """Return a fully wired runtime backed by the fake manager."""
    return build_runtime(load_config(env=cli_env))
