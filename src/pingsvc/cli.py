"""Typer-powered command line for ``pingsvc``.

Running ``pingsvc`` without a sub-command opens the interactive menu. The
sub-commands offer the same operations for scripted use.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console

from . import get_version
from .config import AppConfig, ConfigError, load_config
from .errors import InsufficientPrivilegeError, InvalidIdentityError, LifecycleError
from .exit_codes import ExitCode
from .lifecycle import LifecycleOrchestrator, resolve_unit_name
from .logging import StructuredLogger
from .privileges import require_root
from .providers import SystemdError, SystemdProvider
from .repository import UnitRepository
from .shell import (
    Confirmation,
    Confirmer,
    InteractiveShell,
    print_process_output,
    render_create_error,
    render_created,
    render_deleted,
    render_guidance,
    render_units,
)
from .templates import TemplateEngine

console = Console()

app = typer.Typer(
    add_completion=False,
    help="Manage continuous-ping probes running as systemd services.",
)
config_app = typer.Typer(help="Inspect pingsvc configuration.")
app.add_typer(config_app, name="config")

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to pingsvc's YAML config file.",
)
DRY_RUN_OPTION = typer.Option(
    False,
    "--dry-run",
    help="Report the actions that would be taken without applying changes.",
)
TARGET_ARGUMENT = typer.Argument(
    ...,
    help="Unit name (continuous-ping-*.service) or the IP address it pings.",
)


@dataclass
class RuntimeContext:
    """Aggregated runtime objects shared by commands."""

    config: AppConfig
    logger: StructuredLogger
    templates: TemplateEngine
    systemd: SystemdProvider
    repository: UnitRepository
    orchestrator: LifecycleOrchestrator


def build_runtime(config: AppConfig) -> RuntimeContext:
    """Wire the provider, repository and orchestrator for *config*."""
    logger = StructuredLogger(config.logs_dir)
    templates = TemplateEngine.with_overrides(config.templates_dir)
    systemd = SystemdProvider(
        unit_dir=config.systemd.unit_dir,
        systemctl_bin=config.systemd.systemctl_bin,
        journalctl_bin=config.systemd.journalctl_bin,
    )
    repository = UnitRepository(
        systemd=systemd,
        templates=templates,
        probe_bin=config.probe.binary,
        restart_sec=config.probe.restart_sec,
    )
    orchestrator = LifecycleOrchestrator(repository=repository, logger=logger)
    return RuntimeContext(
        config=config,
        logger=logger,
        templates=templates,
        systemd=systemd,
        repository=repository,
        orchestrator=orchestrator,
    )


def _ensure_runtime(ctx: typer.Context, config_file: Path | None) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime
    try:
        config = load_config(config_file=config_file)
    except ConfigError as exc:
        _fail(f"Configuration error: {exc}", rc=ExitCode.VALIDATION)
    runtime = build_runtime(config)
    ctx.obj = runtime
    return runtime


def _get_runtime(ctx: typer.Context) -> RuntimeContext:
    runtime = ctx.obj
    if not isinstance(runtime, RuntimeContext):
        runtime = _ensure_runtime(ctx, None)
    _check_privileges(runtime)
    return runtime


def _check_privileges(runtime: RuntimeContext) -> None:
    # Invoked from command bodies only; --help never reaches this.
    if not runtime.config.require_root:
        return
    try:
        require_root()
    except InsufficientPrivilegeError as exc:
        _fail(str(exc), rc=ExitCode.PRIVILEGE)


def _fail(message: str, *, rc: int = ExitCode.VALIDATION) -> NoReturn:
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(code=int(rc))


def _resolve_target(value: str) -> str:
    try:
        return resolve_unit_name(value)
    except InvalidIdentityError as exc:
        _fail(str(exc), rc=ExitCode.VALIDATION)


def _require_unit(runtime: RuntimeContext, value: str) -> str:
    unit_name = _resolve_target(value)
    try:
        units = runtime.orchestrator.list_units()
    except SystemdError as exc:
        _fail(f"Unable to query systemd: {exc}", rc=ExitCode.ENVIRONMENT)
    if unit_name not in units:
        _fail(f"Service '{unit_name}' not found.", rc=ExitCode.VALIDATION)
    return unit_name


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the pingsvc version and exit.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
) -> None:
    """Entry point callback invoked for every CLI execution."""
    if version:
        console.print(f"pingsvc {get_version()}")
        raise typer.Exit(code=0)

    runtime = _ensure_runtime(ctx, config_file)
    if ctx.invoked_subcommand is None:
        _check_privileges(runtime)
        shell = InteractiveShell(orchestrator=runtime.orchestrator, console=console)
        raise typer.Exit(code=shell.run())


@app.command()
def menu(ctx: typer.Context) -> None:
    """Open the interactive service menu."""
    runtime = _get_runtime(ctx)
    shell = InteractiveShell(orchestrator=runtime.orchestrator, console=console)
    raise typer.Exit(code=shell.run())


@app.command("list")
def list_command(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit services as JSON instead of a table.",
    ),
) -> None:
    """List managed continuous-ping services."""
    runtime = _get_runtime(ctx)
    try:
        states = runtime.orchestrator.describe_units()
    except SystemdError as exc:
        _fail(f"Unable to query systemd: {exc}", rc=ExitCode.ENVIRONMENT)
    if json_output:
        console.print_json(data={"services": [state.to_dict() for state in states]})
        return
    if not states:
        console.print("[yellow]No continuous-ping services found.[/yellow]")
        return
    render_units(console, states)


@app.command()
def add(
    ctx: typer.Context,
    identity: str = typer.Argument(..., help="IPv4 or IPv6 address to ping continuously."),
    dry_run: bool = DRY_RUN_OPTION,
) -> None:
    """Create, enable and start a ping service for IDENTITY."""
    runtime = _get_runtime(ctx)
    systemctl = runtime.config.systemd.systemctl_bin
    try:
        result = runtime.orchestrator.create(identity, dry_run=dry_run)
    except InvalidIdentityError as exc:
        _fail(str(exc), rc=ExitCode.VALIDATION)
    except LifecycleError as exc:
        render_create_error(console, exc, systemctl)
        raise typer.Exit(code=int(ExitCode.PROVIDER)) from exc
    if result.dry_run:
        console.print(
            f"[yellow]Dry run[/yellow]: would write {result.path} and enable/start "
            f"{result.unit_name}."
        )
        return
    render_created(console, result, systemctl)


@app.command()
def delete(
    ctx: typer.Context,
    target: str = TARGET_ARGUMENT,
    yes: bool = typer.Option(
        False,
        "--yes",
        help="Skip the confirmation prompt (non-interactive mode).",
    ),
    dry_run: bool = DRY_RUN_OPTION,
) -> None:
    """Stop, disable and remove a ping service."""
    runtime = _get_runtime(ctx)
    unit_name = _resolve_target(target)
    if not yes and not dry_run:
        answer = Confirmer().ask(f"Are you sure you want to delete service '{unit_name}'?")
        if answer is not Confirmation.CONFIRMED:
            console.print("[blue]Deletion aborted.[/blue]")
            return
    result = runtime.orchestrator.delete(unit_name, dry_run=dry_run)
    if result.dry_run:
        console.print(f"[yellow]Dry run[/yellow]: service '{unit_name}' would be deleted.")
        return
    render_deleted(console, result)


@app.command()
def status(ctx: typer.Context, target: str = TARGET_ARGUMENT) -> None:
    """Show systemd's status report for a ping service."""
    runtime = _get_runtime(ctx)
    unit_name = _require_unit(runtime, target)
    try:
        result = runtime.orchestrator.status(unit_name)
    except SystemdError as exc:
        _fail(f"systemd status failed: {exc}", rc=ExitCode.PROVIDER)
    print_process_output(console, result)


@app.command()
def logs(
    ctx: typer.Context,
    target: str = TARGET_ARGUMENT,
    lines: int | None = typer.Option(
        None,
        "--lines",
        "-n",
        min=1,
        help="Show the last N log lines (default: systemd journal default).",
    ),
    since: str | None = typer.Option(
        None,
        "--since",
        help="Show logs since the given timestamp (passed to journalctl).",
    ),
    follow: bool = typer.Option(
        False,
        "--follow",
        "-f",
        help="Keep streaming new entries until interrupted with Ctrl+C.",
    ),
) -> None:
    """Print the systemd journal for a ping service."""
    runtime = _get_runtime(ctx)
    unit_name = _require_unit(runtime, target)
    try:
        result = runtime.orchestrator.logs(unit_name, lines=lines, since=since, follow=follow)
    except SystemdError as exc:
        _fail(f"systemd logs failed: {exc}", rc=ExitCode.PROVIDER)
    if result is not None and not follow:
        print_process_output(console, result)


@app.command()
def edit(ctx: typer.Context, target: str = TARGET_ARGUMENT) -> None:
    """Explain how to edit a ping service's unit file by hand."""
    runtime = _get_runtime(ctx)
    unit_name = _require_unit(runtime, target)
    render_guidance(console, runtime.orchestrator.edit_guidance(unit_name))


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit configuration as JSON.",
    ),
) -> None:
    """Display the effective configuration."""
    runtime = _get_runtime(ctx)
    data = runtime.config.to_dict()
    if json_output:
        console.print_json(data=data)
        return
    for key, value in data.items():
        console.print(f"[bold]{key}[/bold]: {value}")


def main() -> None:
    """Console script entry point."""
    app()


__all__ = ["RuntimeContext", "app", "build_runtime", "main"]
