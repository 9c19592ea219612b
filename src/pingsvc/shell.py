"""Interactive menu for managing continuous-ping services.

The menu mirrors the non-interactive sub-commands. Every action that needs a
unit lists the managed units first and then asks for a 1-based number; the
listing is passed explicitly to the selection step, nothing is remembered
between actions.
"""
from __future__ import annotations

import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum

import typer
from rich.console import Console
from rich.table import Table

from .errors import (
    InvalidIdentityError,
    LifecycleError,
    ReloadError,
    SelectionError,
    StartError,
)
from .exit_codes import ExitCode
from .lifecycle import CreateResult, DeleteResult, EditGuidance, LifecycleOrchestrator
from .providers.systemd import SystemdError
from .repository import UnitState

PromptFn = Callable[[str], str]

MENU_ITEMS: tuple[tuple[str, str, str], ...] = (
    ("1", "List Ping Services", "cyan"),
    ("2", "Add New Ping Service", "green"),
    ("3", "Delete Ping Service", "red"),
    ("4", "View Service Logs (Live)", "yellow"),
    ("5", "View Service Status", "yellow"),
    ("6", "Edit Service (Show Guidance)", "cyan"),
    ("0", "Exit", "magenta"),
)


def default_prompt(text: str) -> str:
    """Read one line from the operator; raises ``typer.Abort`` on EOF."""
    return str(typer.prompt(text, default="", show_default=False))


class Confirmation(Enum):
    """Answer to a destructive-action confirmation prompt."""

    CONFIRMED = "confirmed"
    DECLINED = "declined"


@dataclass(slots=True)
class Confirmer:
    """Ask for an exact confirmation word before destructive actions."""

    prompt: PromptFn = default_prompt
    expected: str = "yes"

    def ask(self, question: str) -> Confirmation:
        """Return ``CONFIRMED`` only when the reply equals the expected word."""
        reply = self.prompt(f"{question} ({self.expected}/no)")
        if reply.strip() == self.expected:
            return Confirmation.CONFIRMED
        return Confirmation.DECLINED


# Rendering helpers shared with the CLI ---------------------------------------
def render_units(console: Console, states: Sequence[UnitState]) -> None:
    """Print a numbered table of managed units."""
    table = Table(
        title="Available Continuous Ping Services",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("#", justify="right", style="yellow")
    table.add_column("Service", style="cyan")
    table.add_column("IP", style="yellow")
    table.add_column("Status")
    table.add_column("Enabled")
    for index, state in enumerate(states, start=1):
        table.add_row(
            str(index),
            state.unit_name,
            state.display_identity,
            "[green]active[/green]" if state.active else "[red]inactive[/red]",
            "[green]enabled[/green]" if state.enabled else "[red]disabled[/red]",
        )
    console.print(table)


def render_created(console: Console, result: CreateResult, systemctl: str = "systemctl") -> None:
    """Print the summary for a freshly created unit."""
    console.print(
        f"[green]Service '{result.unit_name}' for IP '{result.identity}' "
        "created and activated.[/green]"
    )
    console.print(
        f"Enabled: {'yes' if result.enabled else 'no'}  "
        f"Active: {'yes' if result.active else 'no'}"
    )
    console.print("It will also start automatically on system boot.")
    console.print("[yellow]Useful commands for this service:[/yellow]")
    console.print(f"  To check status:   [cyan]sudo {systemctl} status {result.unit_name}[/cyan]")
    console.print(f"  To view live logs: [cyan]sudo journalctl -u {result.unit_name} -f[/cyan]")


def render_create_error(
    console: Console,
    exc: LifecycleError,
    systemctl: str = "systemctl",
) -> None:
    """Print a failed create along with the manager's diagnostic."""
    console.print(f"[red]{exc.message}.[/red]")
    if exc.diagnostic:
        console.print(f"[red]{exc.diagnostic}[/red]")
    if isinstance(exc, StartError):
        console.print("[yellow]You can check the status with:[/yellow]")
        console.print(f"  [cyan]sudo {systemctl} status {exc.unit_name}[/cyan]")
        console.print("[yellow]And logs with:[/yellow]")
        console.print(f"  [cyan]sudo journalctl -u {exc.unit_name}[/cyan]")
    if isinstance(exc, ReloadError) and exc.path is not None:
        console.print(
            f"[yellow]The unit file was left in place at {exc.path}. Remove it or run "
            f"'sudo {systemctl} daemon-reload' once the manager is reachable.[/yellow]"
        )
        return
    console.print("[yellow]No partial service was left registered.[/yellow]")


def render_deleted(console: Console, result: DeleteResult) -> None:
    """Print the outcome of a delete, including best-effort warnings."""
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    console.print(f"[green]Service '{result.unit_name}' deleted successfully.[/green]")


def render_guidance(console: Console, guidance: EditGuidance) -> None:
    """Print the manual edit steps for a unit."""
    console.print(f"[magenta]--- How to Edit Service '{guidance.unit_name}' ---[/magenta]")
    if not guidance.exists:
        console.print(f"[yellow]Note: {guidance.path} does not exist on disk.[/yellow]")
    for number, (text, command) in enumerate(guidance.steps, start=1):
        console.print(f"{number}. {text}")
        if command:
            console.print(f"  [cyan]➔ {command}[/cyan]")
    console.print("[magenta]-------------------------------------------[/magenta]")


def print_process_output(console: Console, result: subprocess.CompletedProcess[str]) -> None:
    """Echo captured stdout/stderr from a systemd command."""
    stdout = (getattr(result, "stdout", "") or "").rstrip()
    stderr = (getattr(result, "stderr", "") or "").rstrip()
    if stdout:
        console.print(stdout, markup=False, highlight=False)
    if stderr:
        console.print(stderr, style="red", markup=False, highlight=False)


# Menu loop -------------------------------------------------------------------
@dataclass(slots=True)
class InteractiveShell:
    """Numbered menu driving a :class:`LifecycleOrchestrator`."""

    orchestrator: LifecycleOrchestrator
    console: Console
    prompt: PromptFn = default_prompt
    confirmer: Confirmer = field(default_factory=Confirmer)

    def run(self) -> int:
        """Loop until the operator exits; return the process exit code."""
        actions: dict[str, Callable[[], None]] = {
            "1": self.list_services,
            "2": self.add_service,
            "3": self.delete_service,
            "4": self.view_logs,
            "5": self.view_status,
            "6": self.edit_guidance,
        }
        while True:
            self._render_menu()
            try:
                choice = self.prompt("Enter your choice").strip()
            except (typer.Abort, KeyboardInterrupt, EOFError):
                self.console.print()
                self.console.print("[blue]Exiting.[/blue]")
                return int(ExitCode.OK)
            if choice == "0":
                self.console.print("[blue]Exiting.[/blue]")
                return int(ExitCode.OK)
            action = actions.get(choice)
            if action is None:
                self.console.print("[red]Invalid option. Please try again.[/red]")
            else:
                try:
                    action()
                except SystemdError as exc:
                    self.console.print(f"[red]{exc}[/red]")
                except (typer.Abort, KeyboardInterrupt, EOFError):
                    self.console.print()
                    self.console.print("[yellow]Action cancelled.[/yellow]")
            try:
                self.prompt("Press Enter to continue...")
            except (typer.Abort, KeyboardInterrupt, EOFError):
                self.console.print()
                return int(ExitCode.OK)

    # Actions -----------------------------------------------------------
    def list_services(self) -> tuple[str, ...]:
        """Show the managed units and return their names in listed order."""
        states = self.orchestrator.describe_units()
        if not states:
            self.console.print("[yellow]No continuous-ping services found.[/yellow]")
            return ()
        render_units(self.console, states)
        return tuple(state.unit_name for state in states)

    def add_service(self) -> None:
        """Prompt for an address and create its unit."""
        identity = self.prompt("Enter the IP address to ping continuously").strip()
        if not identity:
            self.console.print("[yellow]No IP address entered. Aborting.[/yellow]")
            return
        self.console.print(f"[blue]Starting creation process for IP:[/blue] {identity}")
        try:
            result = self.orchestrator.create(identity)
        except InvalidIdentityError as exc:
            self.console.print(f"[red]{exc}[/red]")
            return
        except LifecycleError as exc:
            render_create_error(self.console, exc, self._systemctl)
            return
        render_created(self.console, result, self._systemctl)

    def delete_service(self) -> None:
        """Pick a unit, confirm, then delete it."""
        unit_name = self._pick("Enter the number of the service to delete")
        if unit_name is None:
            return
        answer = self.confirmer.ask(f"Are you sure you want to delete service '{unit_name}'?")
        if answer is not Confirmation.CONFIRMED:
            self.console.print("[blue]Deletion aborted.[/blue]")
            return
        render_deleted(self.console, self.orchestrator.delete(unit_name))

    def view_logs(self) -> None:
        """Pick a unit and follow its journal until interrupted."""
        unit_name = self._pick("Enter the number of the service to view logs for")
        if unit_name is None:
            return
        self.console.print(
            f"[blue]Showing live logs for {unit_name}. Press [red]Ctrl+C[/red] to exit.[/blue]"
        )
        try:
            self.orchestrator.logs(unit_name, follow=True)
        except SystemdError as exc:
            self.console.print(f"[red]{exc}[/red]")

    def view_status(self) -> None:
        """Pick a unit and show systemd's status report."""
        unit_name = self._pick("Enter the number of the service to view status for")
        if unit_name is None:
            return
        self.console.print(f"[blue]Status for {unit_name}:[/blue]")
        try:
            result = self.orchestrator.status(unit_name)
        except SystemdError as exc:
            self.console.print(f"[red]{exc}[/red]")
            return
        print_process_output(self.console, result)

    def edit_guidance(self) -> None:
        """Pick a unit and explain how to edit it by hand."""
        unit_name = self._pick("Enter the number of the service file you want to edit")
        if unit_name is None:
            return
        render_guidance(self.console, self.orchestrator.edit_guidance(unit_name))

    # ------------------------------------------------------------------
    @property
    def _systemctl(self) -> str:
        return self.orchestrator.repository.systemd.systemctl_bin

    def _pick(self, question: str) -> str | None:
        units = self.list_services()
        if not units:
            return None
        choice = self.prompt(question)
        try:
            return self.orchestrator.select(choice, units)
        except SelectionError as exc:
            self.console.print(f"[red]{exc} Aborting.[/red]")
            return None

    def _render_menu(self) -> None:
        self.console.print()
        self.console.print("[magenta]========== Ping Service Manager ==========[/magenta]")
        for key, label, style in MENU_ITEMS:
            self.console.print(f"[blue]  {key}.[/blue] [{style}]{label}[/{style}]")
        self.console.print("[magenta]==========================================[/magenta]")


__all__ = [
    "Confirmation",
    "Confirmer",
    "InteractiveShell",
    "render_create_error",
    "render_created",
    "render_deleted",
    "render_guidance",
    "render_units",
]
