"""Main CLI application."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Optional, Tuple, TypeVar

import structlog
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from idsync.cli.factory import ComponentFactory
from idsync.cli.formatters import (
    ConfigFormatter,
    GroupFormatter,
    MappingFormatter,
    SyncLogFormatter,
    SyncResultFormatter,
)
from idsync.config.loader import ConfigLoader, find_config_file
from idsync.config.models import SyncConfig
from idsync.core.models import CreateMappingInput, SyncDirection, TargetType
from idsync.core.service import IdentitySyncService
from idsync.core.state import JsonFileStore
from idsync.security.validation import (
    sanitize_log_input,
    validate_cli_string_input,
    validate_file_path,
)

T = TypeVar("T")

console = Console()

app = typer.Typer(
    name="identity-sync",
    help="Synchronize external identity provider groups with local groups and roles.",
    rich_markup_mode="rich",
)

mappings_app = typer.Typer(help="Manage group mappings.")
app.add_typer(mappings_app, name="mappings")


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Setup structured logging.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_format: Log format (json or text).
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format.lower() == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def load_configuration(config_file: Optional[Path] = None) -> Tuple[SyncConfig, Optional[Path]]:
    """Load and validate configuration, then configure logging.

    Without ``--config`` the nearest config file is used; when there is none
    the built-in defaults apply.

    Returns:
        Validated configuration and the file it came from

    Raises:
        typer.Exit: If configuration loading fails
    """
    load_dotenv()

    try:
        if config_file is None:
            config_file = find_config_file()

        if config_file is None:
            config = SyncConfig()
        else:
            if not validate_file_path(str(config_file)):
                console.print(
                    f"[red]Error: Invalid or unsafe configuration file path: "
                    f"{sanitize_log_input(str(config_file))}[/red]"
                )
                raise typer.Exit(1)
            config = ConfigLoader().load_config(config_file)
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Error loading configuration: {sanitize_log_input(str(e))}[/red]")
        raise typer.Exit(1)

    configure_logging(config.audit.log_level.value, config.audit.log_format.value)
    return config, config_file


def _check_org(org: str) -> str:
    if not validate_cli_string_input(org, max_length=255):
        console.print(f"[red]Error: Invalid organization id: {sanitize_log_input(org)}[/red]")
        raise typer.Exit(1)
    return org


def _open_service(
    config_file: Optional[Path],
    state_file: Optional[Path],
) -> Tuple[JsonFileStore, IdentitySyncService]:
    config, _ = load_configuration(config_file)
    try:
        store = ComponentFactory.create_store(config, state_file)
    except Exception as e:
        console.print(f"[red]Error opening state: {sanitize_log_input(str(e))}[/red]")
        raise typer.Exit(1)
    return store, ComponentFactory.create_service(config, store)


def _run(operation: Awaitable[T]) -> T:
    try:
        return asyncio.run(operation)
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Error: {sanitize_log_input(str(e))}[/red]")
        raise typer.Exit(1)


def _run_and_save(store: JsonFileStore, operation: Awaitable[T]) -> T:
    """Run a mutating operation and persist the state, including audit entries of a failure."""
    try:
        return _run(operation)
    finally:
        try:
            store.save()
        except Exception as e:
            console.print(f"[red]Error saving state: {sanitize_log_input(str(e))}[/red]")
            raise typer.Exit(1)


ConfigOption = typer.Option(None, "--config", "-c", help="Path to configuration file")
StateFileOption = typer.Option(None, "--state-file", "-s", help="Override the configured state file")
OrgOption = typer.Option(..., "--org", "-o", help="Organization id")


@app.command()
def validate(
    config_file: Optional[Path] = ConfigOption,
    state_file: Optional[Path] = StateFileOption,
) -> None:
    """Validate configuration and state files."""
    console.print("[blue]Validating configuration...[/blue]")

    config, source = load_configuration(config_file)
    ConfigFormatter(console).format_config_summary(config, str(source) if source else None)

    try:
        store = ComponentFactory.create_store(config, state_file)
    except Exception as e:
        console.print(f"[red]Validation failed: {sanitize_log_input(str(e))}[/red]")
        raise typer.Exit(1)

    console.print(
        f"[green]✓[/green] State file OK ({len(store.mappings)} mappings, "
        f"{len(store.users)} users)"
    )
    console.print("[green]✓ Configuration is valid[/green]")


@app.command()
def groups(
    org: str = OrgOption,
    search: Optional[str] = typer.Option(None, "--search", help="Filter by name or description"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Maximum groups to list"),
    config_file: Optional[Path] = ConfigOption,
    state_file: Optional[Path] = StateFileOption,
) -> None:
    """List groups available in the identity provider."""
    _check_org(org)
    if search is not None and not validate_cli_string_input(search, max_length=255):
        console.print("[red]Error: Invalid search string[/red]")
        raise typer.Exit(1)

    _, service = _open_service(config_file, state_file)
    result = _run(service.list_groups(org, search=search, limit=limit))
    GroupFormatter(console).format_groups(result)


@mappings_app.command("list")
def list_mappings(
    org: str = OrgOption,
    config_file: Optional[Path] = ConfigOption,
    state_file: Optional[Path] = StateFileOption,
) -> None:
    """List the organization's mappings, newest first."""
    _check_org(org)
    _, service = _open_service(config_file, state_file)
    MappingFormatter(console).format_mappings(_run(service.list_mappings(org)))


@mappings_app.command("create")
def create_mapping(
    org: str = OrgOption,
    group_id: str = typer.Option(..., "--group-id", help="External group id"),
    group_name: str = typer.Option(..., "--group-name", help="External group name"),
    target_type: TargetType = typer.Option(..., "--target-type", help="Kind of local target"),
    target_id: str = typer.Option(..., "--target-id", help="Local target id (role name for organizationRole)"),
    role_name: Optional[str] = typer.Option(None, "--role-name", help="Descriptive label"),
    direction: SyncDirection = typer.Option(SyncDirection.PULL, "--direction", help="Sync direction"),
    config_file: Optional[Path] = ConfigOption,
    state_file: Optional[Path] = StateFileOption,
) -> None:
    """Map an external group to a local group, project role or organization role."""
    _check_org(org)
    for value in (group_id, group_name, target_id):
        if not validate_cli_string_input(value, max_length=255):
            console.print(f"[red]Error: Invalid value: {sanitize_log_input(value)}[/red]")
            raise typer.Exit(1)

    store, service = _open_service(config_file, state_file)
    mapping_input = CreateMappingInput(
        external_group_id=group_id,
        external_group_name=group_name,
        target_type=target_type,
        target_id=target_id,
        role_name=role_name,
        sync_direction=direction,
    )
    mapping = _run_and_save(store, service.create_mapping(org, mapping_input))
    MappingFormatter(console).format_mapping_created(mapping)


@mappings_app.command("delete")
def delete_mapping(
    mapping_id: str = typer.Argument(..., help="Mapping id"),
    org: str = OrgOption,
    config_file: Optional[Path] = ConfigOption,
    state_file: Optional[Path] = StateFileOption,
) -> None:
    """Delete a mapping."""
    _check_org(org)
    store, service = _open_service(config_file, state_file)
    _run_and_save(store, service.delete_mapping(org, mapping_id))
    console.print(f"[green]✓[/green] Deleted mapping {sanitize_log_input(mapping_id)}")


@app.command()
def sync(
    org: str = OrgOption,
    mapping_id: Optional[str] = typer.Option(None, "--mapping", "-m", help="Sync only this mapping"),
    config_file: Optional[Path] = ConfigOption,
    state_file: Optional[Path] = StateFileOption,
) -> None:
    """Reconcile one mapping, or every mapping of the organization."""
    _check_org(org)
    store, service = _open_service(config_file, state_file)
    formatter = SyncResultFormatter(console)

    if mapping_id is not None:
        result = _run_and_save(store, service.sync_mapping(org, mapping_id))
        formatter.format_reconcile_result(mapping_id, result)
        return

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("Synchronizing mappings...", total=None)
        full_result = _run_and_save(store, service.sync_all(org))

    formatter.format_full_sync_result(full_result)
    if full_result.errors:
        raise typer.Exit(1)


@app.command()
def logs(
    org: str = OrgOption,
    mapping_id: Optional[str] = typer.Option(None, "--mapping", "-m", help="Only entries of this mapping"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, max=500, help="Page size"),
    cursor: Optional[str] = typer.Option(None, "--cursor", help="Id of the last entry of the previous page"),
    config_file: Optional[Path] = ConfigOption,
    state_file: Optional[Path] = StateFileOption,
) -> None:
    """Show sync log entries, newest first."""
    _check_org(org)
    _, service = _open_service(config_file, state_file)
    page = _run(service.get_sync_logs(org, mapping_id=mapping_id, limit=limit, cursor=cursor))
    SyncLogFormatter(console).format_sync_logs(page)


@app.command()
def event(
    org: str = OrgOption,
    payload_file: Path = typer.Option(..., "--payload", "-p", help="JSON file with the event payload"),
    config_file: Optional[Path] = ConfigOption,
    state_file: Optional[Path] = StateFileOption,
) -> None:
    """Apply an approve/revoke event from a JSON payload file."""
    _check_org(org)
    try:
        with open(payload_file, "r", encoding="utf-8") as f:
            payload: Any = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Error reading payload: {sanitize_log_input(str(e))}[/red]")
        raise typer.Exit(1)

    if not isinstance(payload, dict):
        console.print("[red]Error: Payload must be a JSON object[/red]")
        raise typer.Exit(1)

    store, service = _open_service(config_file, state_file)
    result = _run_and_save(store, service.handle_event(org, payload))
    SyncResultFormatter(console).format_event_result(result)


if __name__ == "__main__":
    app()
