"""Systemd provider wrapping ``systemctl`` and ``journalctl``."""
from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

LOGGER = logging.getLogger(__name__)


class SystemdError(RuntimeError):
    """Raised when systemd operations fail."""


@dataclass(slots=True)
class SystemdProvider:
    """Thin command interface to the systemd service manager."""

    unit_dir: Path = Path("/etc/systemd/system")
    systemctl_bin: str = "systemctl"
    journalctl_bin: str = "journalctl"

    def unit_path(self, unit_name: str) -> Path:
        """Return the full path for the unit file named *unit_name*."""
        return self.unit_dir / unit_name

    def list_unit_files(self, pattern: str) -> tuple[str, ...]:
        """Return service unit files matching *pattern* in systemctl order.

        ``systemctl list-unit-files`` exits non-zero on some releases when the
        pattern matches nothing, so the exit status is not treated as an error.
        """
        result = self._systemctl(
            "list-unit-files",
            pattern,
            options=("--type=service", "--all", "--no-legend", "--no-pager"),
            check=False,
        )
        names: list[str] = []
        for line in (result.stdout or "").splitlines():
            fields = line.split()
            if fields:
                names.append(fields[0])
        return tuple(names)

    def is_active(self, unit_name: str) -> bool:
        """Return ``True`` when systemd reports *unit_name* as active."""
        result = self._systemctl("is-active", unit_name, options=("--quiet",), check=False)
        return result.returncode == 0

    def is_enabled(self, unit_name: str) -> bool:
        """Return ``True`` when *unit_name* is enabled for boot."""
        result = self._systemctl("is-enabled", unit_name, options=("--quiet",), check=False)
        return result.returncode == 0

    def reload(self, *, dry_run: bool = False) -> subprocess.CompletedProcess[str]:
        """Ask systemd to re-read unit files."""
        return self._systemctl("daemon-reload", dry_run=dry_run)

    def enable(self, unit_name: str, *, dry_run: bool = False) -> subprocess.CompletedProcess[str]:
        """Enable the unit."""
        return self._systemctl("enable", unit_name, dry_run=dry_run)

    def disable(
        self,
        unit_name: str,
        *,
        now: bool = False,
        dry_run: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        """Disable the unit, also stopping it when *now* is set."""
        options = ("--now",) if now else ()
        return self._systemctl("disable", unit_name, options=options, dry_run=dry_run)

    def start(self, unit_name: str, *, dry_run: bool = False) -> subprocess.CompletedProcess[str]:
        """Start the unit, restarting it if it is already running."""
        return self._systemctl("restart", unit_name, dry_run=dry_run)

    def stop(self, unit_name: str, *, dry_run: bool = False) -> subprocess.CompletedProcess[str]:
        """Stop the unit."""
        return self._systemctl("stop", unit_name, dry_run=dry_run)

    def status(self, unit_name: str) -> subprocess.CompletedProcess[str]:
        """Return the status output for the unit."""
        return self._systemctl("status", unit_name, options=("--no-pager",), check=False)

    def logs(
        self,
        unit_name: str,
        *,
        lines: int | None = None,
        since: str | None = None,
        follow: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        """Return journalctl output for the unit.

        With *follow* the journal streams straight to the terminal until the
        operator interrupts it, and nothing is captured.
        """
        args: list[str] = ["--unit", unit_name, "--no-pager"]
        if lines is not None:
            args.extend(["--lines", str(lines)])
        if since is not None:
            args.extend(["--since", since])
        if follow:
            args.append("--follow")
        return self._journalctl(args, check=not follow, capture_output=not follow)

    # ------------------------------------------------------------------
    def _systemctl(
        self,
        command: str,
        unit_or_pattern: str | None = None,
        *,
        options: Sequence[str] = (),
        check: bool = True,
        dry_run: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        args: list[str] = [self.systemctl_bin, command, *options]
        if unit_or_pattern is not None:
            args.append(unit_or_pattern)
        return self._run_command(
            args,
            check=check,
            error_prefix=f"{self.systemctl_bin} {command}",
            capture_output=True,
            dry_run=dry_run,
        )

    def _journalctl(
        self,
        args: Sequence[str],
        *,
        check: bool = True,
        capture_output: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        command = [self.journalctl_bin, *args]
        joined = " ".join(args)
        return self._run_command(
            command,
            check=check,
            error_prefix=f"{self.journalctl_bin} {joined}".rstrip(),
            capture_output=capture_output,
            dry_run=False,
        )

    def _run_command(
        self,
        args: Sequence[str],
        *,
        check: bool,
        error_prefix: str,
        capture_output: bool,
        dry_run: bool,
    ) -> subprocess.CompletedProcess[str]:
        if dry_run:
            return subprocess.CompletedProcess(
                list(args),
                returncode=0,
                stdout="",
                stderr="",
            )
        LOGGER.debug("Running %s", " ".join(args))
        try:
            if capture_output:
                result = subprocess.run(  # noqa: S603, S607
                    list(args),
                    capture_output=True,
                    text=True,
                    check=False,
                )
            else:
                result = subprocess.run(  # noqa: S603, S607
                    list(args),
                    text=True,
                    check=False,
                )
        except FileNotFoundError as exc:
            raise SystemdError(f"{args[0]} not found: {exc}") from exc
        if check and result.returncode != 0:
            stdout = getattr(result, "stdout", "") or ""
            stderr = getattr(result, "stderr", "") or ""
            message = stderr.strip() or stdout.strip() or "no output"
            raise SystemdError(f"{error_prefix} failed (exit {result.returncode}): {message}")
        return result


__all__ = ["SystemdProvider", "SystemdError"]
