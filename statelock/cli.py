"""
Statelock CLI - provision infrastructure with remote state and locking.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional

import typer
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .backend import apply_overrides, create_backend
from .bootstrap import bootstrap_s3_backend
from .config import Configuration, load_configuration
from .differ import Plan
from .errors import ApplyCancelledError, ApplyError, ConfigurationError, StatelockError
from .formatters import TerraformStyleFormatter
from .models import BackendType
from .orchestrator import Orchestrator
from .providers import default_registry
from .settings import get_settings

# Setup
app = typer.Typer(
    name="statelock",
    help="Infrastructure provisioning with locked remote state",
    add_completion=False,
)
state_app = typer.Typer(help="Inspect the state document", add_completion=False)
app.add_typer(state_app, name="state")
console = Console()
formatter = TerraformStyleFormatter()

# AWS errors not translated by the backend adapters are reported the same way
HANDLED_ERRORS = (StatelockError, ClientError, BotoCoreError)


def configure_logging():
    """Configure logging based on settings."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# Configure logging on module import
configure_logging()


ConfigOption = typer.Option(None, "--config", "-c", help="HCL configuration file (default: SL_CONFIG_FILE or main.tf)")
VarOption = typer.Option(None, "--var", help="Set a variable: NAME=VALUE (repeatable)")


# Helper functions to reduce duplication across commands
def _parse_vars(values: Optional[List[str]]) -> dict:
    overrides = {}
    for item in values or []:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise ConfigurationError(f"Invalid --var '{item}', expected NAME=VALUE")
        overrides[name] = value
    return overrides


def _load(config_file: Optional[Path], variables: Optional[List[str]] = None) -> Configuration:
    """Load configuration from the given file or the configured default."""
    path = config_file or get_settings().config_file
    return load_configuration(path, _parse_vars(variables))


def _orchestrator(configuration: Configuration) -> Orchestrator:
    backend = create_backend(configuration.backend)
    return Orchestrator(backend, default_registry(configuration.providers))


def _handle_command_error(e: Exception, command_type: str) -> None:
    """Handle command errors with appropriate formatting.

    Args:
        e: Exception that occurred
        command_type: Type of command (for error message context)

    Raises:
        SystemExit: Always exits with code 1
    """
    if isinstance(e, ApplyError):
        console.print(formatter.format_apply_error(e))
    else:
        console.print(f"\n[bold red]✗ {command_type.capitalize()} failed:[/bold red] {e}")

    raise typer.Exit(code=1)


def _create_command_panel(title: str, color: str, description: str) -> Panel:
    return Panel.fit(
        f"[bold {color}]{title}[/bold {color}]\n"
        f"Directory: {Path.cwd().name}\n"
        f"Backend: {description}",
        border_style=color,
    )


@app.command()
def init(config_file: Optional[Path] = ConfigOption):
    """Establish the backend connection. Makes no changes."""
    try:
        configuration = _load(config_file)
        backend = create_backend(configuration.backend)
        backend.check()
    except HANDLED_ERRORS as e:
        _handle_command_error(e, "init")

    console.print(f"[bold green]✓ Backend initialized:[/bold green] {backend.description}")


@app.command()
def plan(
    config_file: Optional[Path] = ConfigOption,
    variables: Optional[List[str]] = VarOption,
    destroy: bool = typer.Option(False, "--destroy", help="Plan destruction of all managed resources"),
):
    """Show the changes apply would make. Holds no lock."""
    try:
        configuration = _load(config_file, variables)
        orchestrator = _orchestrator(configuration)
        console.print(_create_command_panel("Statelock Plan", "cyan", orchestrator.backend.description))
        result = orchestrator.plan(configuration.resources, destroy=destroy)
    except HANDLED_ERRORS as e:
        _handle_command_error(e, "plan")

    console.print(formatter.format_plan(result))
    if not result.is_empty():
        console.print("[dim]Run 'statelock apply' to perform these actions.[/dim]")


def _approval(destroy: bool, auto_approve: bool) -> Callable[[Plan], bool]:
    """Build the callback that shows and confirms the plan computed under the lock."""

    def approve(plan: Plan) -> bool:
        console.print(formatter.format_plan(plan))
        if plan.is_empty() or auto_approve:
            return True
        prompt = "Do you really want to destroy all resources?" if destroy else "Do you want to perform these actions?"
        return typer.confirm(prompt)

    return approve


def _cancelled() -> None:
    console.print("[bold red]Cancelled.[/bold red]")
    raise typer.Exit(code=1)


@app.command()
def apply(
    config_file: Optional[Path] = ConfigOption,
    variables: Optional[List[str]] = VarOption,
    auto_approve: bool = typer.Option(False, "--auto-approve", help="Skip interactive approval"),
):
    """Apply the configuration under the state lock."""
    try:
        configuration = _load(config_file, variables)
        orchestrator = _orchestrator(configuration)
        console.print(_create_command_panel("Statelock Apply", "blue", orchestrator.backend.description))
        result = orchestrator.apply(
            configuration.resources, configuration.outputs, approve=_approval(False, auto_approve)
        )
    except ApplyCancelledError:
        _cancelled()
    except HANDLED_ERRORS as e:
        _handle_command_error(e, "apply")

    console.print(formatter.format_apply(result))


@app.command()
def destroy(
    config_file: Optional[Path] = ConfigOption,
    variables: Optional[List[str]] = VarOption,
    auto_approve: bool = typer.Option(False, "--auto-approve", help="Skip interactive approval"),
):
    """Destroy every resource recorded in state."""
    try:
        configuration = _load(config_file, variables)
        orchestrator = _orchestrator(configuration)
        console.print(_create_command_panel("Statelock Destroy", "red", orchestrator.backend.description))
        result = orchestrator.destroy(configuration.resources, approve=_approval(True, auto_approve))
    except ApplyCancelledError:
        _cancelled()
    except HANDLED_ERRORS as e:
        _handle_command_error(e, "destroy")

    console.print(formatter.format_apply(result))


@app.command()
def output(
    name: Optional[str] = typer.Argument(None, help="Output name (all outputs when omitted)"),
    config_file: Optional[Path] = ConfigOption,
):
    """Read outputs from the last written state."""
    try:
        configuration = _load(config_file)
        value = _orchestrator(configuration).output(name)
    except HANDLED_ERRORS as e:
        _handle_command_error(e, "output")

    if name is None:
        sensitive = [o.name for o in configuration.outputs if o.sensitive]
        console.print(formatter.format_outputs(value, sensitive))
    else:
        console.print(value if isinstance(value, str) else formatter.format_value(value))


@app.command("force-unlock")
def force_unlock(
    config_file: Optional[Path] = ConfigOption,
    force: bool = typer.Option(False, "--force", "-f", help="Do not ask for confirmation"),
):
    """Remove the state lock regardless of who holds it."""
    try:
        orchestrator = _orchestrator(_load(config_file))
        record = orchestrator.lock_info()
        console.print(formatter.format_lock(record))
        if record is None:
            return
        if not force and not typer.confirm(
            "Force-unlocking bypasses mutual exclusion. Only continue if no operation is running. Unlock?"
        ):
            console.print("[bold red]Cancelled.[/bold red]")
            raise typer.Exit(code=1)
        orchestrator.force_unlock()
    except HANDLED_ERRORS as e:
        _handle_command_error(e, "force-unlock")

    console.print("[bold yellow]⚠ State lock removed.[/bold yellow]")


@app.command("lock-info")
def lock_info(config_file: Optional[Path] = ConfigOption):
    """Show the current lock record, if any."""
    try:
        record = _orchestrator(_load(config_file)).lock_info()
    except HANDLED_ERRORS as e:
        _handle_command_error(e, "lock-info")

    console.print(formatter.format_lock(record))


@state_app.command("list")
def state_list(config_file: Optional[Path] = ConfigOption):
    """List resource addresses recorded in state."""
    try:
        addresses = _orchestrator(_load(config_file)).state_list()
    except HANDLED_ERRORS as e:
        _handle_command_error(e, "state list")

    for address in addresses:
        console.print(address)


@state_app.command("show")
def state_show(
    address: str = typer.Argument(..., help="Resource address, e.g. aws_instance.web"),
    config_file: Optional[Path] = ConfigOption,
):
    """Show one resource recorded in state."""
    try:
        descriptor = _orchestrator(_load(config_file)).state_show(address)
    except HANDLED_ERRORS as e:
        _handle_command_error(e, "state show")

    if descriptor is None:
        console.print(f"[bold red]✗ No resource '{address}' in state[/bold red]")
        raise typer.Exit(code=1)
    console.print(formatter.format_resource(descriptor))


@state_app.command("versions")
def state_versions(config_file: Optional[Path] = ConfigOption):
    """List retained versions of the state document, oldest first."""
    try:
        versions = _orchestrator(_load(config_file)).state_versions()
    except HANDLED_ERRORS as e:
        _handle_command_error(e, "state versions")

    table = Table("Version", "Modified", "Size", "Latest")
    for v in versions:
        table.add_row(v.version_id, v.modified.isoformat(), str(v.size), "*" if v.is_latest else "")
    console.print(table)


@app.command()
def bootstrap(config_file: Optional[Path] = ConfigOption):
    """Create the S3 state bucket and DynamoDB lock table for the configured backend."""
    try:
        configuration = _load(config_file)
        backend_config = apply_overrides(configuration.backend, get_settings())
        if backend_config.type != BackendType.S3:
            raise ConfigurationError("bootstrap requires an s3 backend block or SL_BACKEND_BUCKET")
        created = bootstrap_s3_backend(backend_config)
    except HANDLED_ERRORS as e:
        _handle_command_error(e, "bootstrap")

    if created:
        for item in created:
            console.print(f"[green]+ created {item}[/green]")
    else:
        console.print("[dim]Backend resources already exist.[/dim]")


@app.command()
def version():
    """Show Statelock version."""
    from . import __version__

    console.print(f"Statelock version: [bold]{__version__}[/bold]")


if __name__ == "__main__":
    app()
