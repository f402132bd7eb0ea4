"""Output formatters for CLI commands."""

from typing import List, Optional

from rich.console import Console
from rich.table import Table

from idsync.config.models import SyncConfig
from idsync.core.models import (
    EventResult,
    ExternalGroup,
    FullSyncResult,
    Mapping,
    ReconcileResult,
    SyncLogPage,
    SyncStatus,
)
from idsync.security.validation import sanitize_log_input


def _format_timestamp(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "never"


class GroupFormatter:
    """Formats identity provider groups for display."""

    def __init__(self, console: Console):
        self.console = console

    def format_groups(self, groups: List[ExternalGroup]) -> None:
        if not groups:
            self.console.print("[yellow]No groups found[/yellow]")
            return

        table = Table(title="Identity Provider Groups")
        table.add_column("ID", style="cyan")
        table.add_column("Name", style="green")
        table.add_column("Type", style="magenta")
        table.add_column("Members", justify="right")
        table.add_column("Description", style="white")

        for group in groups:
            table.add_row(
                sanitize_log_input(group.id),
                sanitize_log_input(group.name),
                sanitize_log_input(group.type),
                str(group.member_count),
                sanitize_log_input(group.description),
            )

        self.console.print(table)


class MappingFormatter:
    """Formats mappings for display."""

    def __init__(self, console: Console):
        self.console = console

    def format_mappings(self, mappings: List[Mapping]) -> None:
        if not mappings:
            self.console.print("[yellow]No mappings configured[/yellow]")
            return

        table = Table(title="Group Mappings")
        table.add_column("Mapping ID", style="cyan")
        table.add_column("External Group", style="green")
        table.add_column("Target", style="magenta")
        table.add_column("Role Name", style="white")
        table.add_column("Direction", style="blue")
        table.add_column("Last Sync", style="dim")

        for mapping in mappings:
            table.add_row(
                mapping.id,
                f"{sanitize_log_input(mapping.external_group_name)} ({sanitize_log_input(mapping.external_group_id)})",
                f"{mapping.target_type.value}: {sanitize_log_input(mapping.target_id)}",
                sanitize_log_input(mapping.role_name or ""),
                mapping.sync_direction.value,
                _format_timestamp(mapping.last_sync_at),
            )

        self.console.print(table)

    def format_mapping_created(self, mapping: Mapping) -> None:
        self.console.print(f"[green]✓[/green] Created mapping {mapping.id}")
        self.console.print(
            f"  {sanitize_log_input(mapping.external_group_name)} → "
            f"{mapping.target_type.value}: {sanitize_log_input(mapping.target_id)}"
        )


class SyncResultFormatter:
    """Formats reconciliation results."""

    def __init__(self, console: Console):
        self.console = console

    def format_reconcile_result(self, mapping_id: str, result: ReconcileResult) -> None:
        self.console.print(f"[green]✓[/green] Synced mapping {mapping_id}")
        self.console.print(f"  Added: [green]{result.added}[/green]  Removed: [red]{result.removed}[/red]")

    def format_full_sync_result(self, result: FullSyncResult) -> None:
        table = Table(title="Full Sync Summary")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Total Added", str(result.total_added))
        table.add_row("Total Removed", str(result.total_removed))
        table.add_row("Errors", str(len(result.errors)))
        self.console.print(table)

        if result.errors:
            self.console.print("[red]Errors:[/red]")
            for i, error in enumerate(result.errors, 1):
                self.console.print(f"  {i}. {sanitize_log_input(error)}")

    def format_event_result(self, result: EventResult) -> None:
        if result.processed:
            self.console.print(f"[green]✓[/green] Event processed (action: {sanitize_log_input(result.action)})")
        else:
            self.console.print("[yellow]Event not processed[/yellow]")


class SyncLogFormatter:
    """Formats sync log pages."""

    def __init__(self, console: Console):
        self.console = console

    def format_sync_logs(self, page: SyncLogPage) -> None:
        if not page.items:
            self.console.print("[yellow]No sync log entries[/yellow]")
            return

        table = Table(title="Sync Log")
        table.add_column("Time", style="dim")
        table.add_column("Action", style="cyan")
        table.add_column("Status")
        table.add_column("Mapping", style="magenta")
        table.add_column("Details", style="white")
        table.add_column("Error", style="red")

        for entry in page.items:
            status_style = "green" if entry.status == SyncStatus.SUCCESS else "red"
            details = ", ".join(f"{k}={v}" for k, v in entry.details.items())
            table.add_row(
                _format_timestamp(entry.created_at),
                entry.action.value,
                f"[{status_style}]{entry.status.value}[/{status_style}]",
                entry.mapping_id or "-",
                sanitize_log_input(details),
                sanitize_log_input(entry.error or ""),
            )

        self.console.print(table)
        if page.next_cursor:
            self.console.print(f"[dim]More entries available: --cursor {page.next_cursor}[/dim]")


class ConfigFormatter:
    """Formats configuration information for display."""

    def __init__(self, console: Console):
        self.console = console

    def format_config_summary(self, config: SyncConfig, source: Optional[str] = None) -> None:
        """Display configuration summary."""
        table = Table(title="Configuration Summary")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Config Source", sanitize_log_input(source or "defaults"))
        table.add_row("Credential Provider", sanitize_log_input(config.provider.credential_provider))
        table.add_row("Provider Rate Limit", str(config.provider.rate_limit_per_minute))
        table.add_row("Provider Page Size", str(config.provider.page_size))
        table.add_row("Webhook Secret", "Configured" if config.webhook.secret else "Not configured")
        table.add_row("Log Level", config.audit.log_level.value)
        table.add_row("Log Format", config.audit.log_format.value)
        table.add_row("State File", sanitize_log_input(str(config.state.state_file)))

        self.console.print(table)
