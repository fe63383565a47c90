"""Rich rendering of command results."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..analysis.inspection import SettingDrift
from ..models.data_models import (
    TIMESTAMP_FORMAT, AllocationPlan, BackupResult, ReconfigureSummary, RenderResult,
    ResourceSnapshot, SiteProvisionResult, SiteRecord,
)

console = Console()


def display_banner(subtitle: str = "WordPress server provisioning and site management"):
    console.print(Panel.fit(
        "[bold blue]WordPress Server Manager[/bold blue]\n" + subtitle,
        border_style="blue"
    ))


def display_error(message: str):
    console.print(f"[red]Error: {message}[/red]")


def display_allocation(snapshot: ResourceSnapshot, plan: AllocationPlan,
                       rows: List[Tuple[str, str]]):
    """Show host resources and the computed plan."""
    console.print(
        f"\n[bold]Host:[/bold] {snapshot.cpu_cores} CPU cores, "
        f"{snapshot.total_ram_mb}MB RAM (~{snapshot.total_ram_gb}GB), "
        f"{snapshot.available_disk_gb}GB free disk"
    )

    table = Table(title="Resource Allocation")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for label, value in rows:
        table.add_row(label, value)
    console.print(table)


def display_sites(records: List[SiteRecord]):
    if not records:
        console.print("[yellow]No sites registered yet[/yellow]")
        return

    table = Table(title="WordPress Sites")
    table.add_column("Domain", style="cyan")
    table.add_column("Database", style="green")
    table.add_column("User", style="blue")
    table.add_column("Created", style="magenta")
    for record in records:
        table.add_row(
            record.domain,
            record.database_name,
            record.database_user or "-",
            record.created_at.strftime(TIMESTAMP_FORMAT),
        )
    console.print(table)
    console.print(f"[dim]{len(records)} site(s)[/dim]")


def display_provision(result: SiteProvisionResult):
    """Summary after a site was created; secrets stay in the report file."""
    table = Table(title="WordPress Site Created", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Domain", result.domain)
    table.add_row("Site URL", f"http://{result.domain}")
    table.add_row("Admin URL", f"http://{result.domain}/wp-admin")
    if result.wordpress_installed:
        table.add_row("Admin User", result.admin_user or "")
    table.add_row("Database", result.database_name)
    table.add_row("Database User", result.database_user)
    table.add_row("Site Root", str(result.site_root))
    console.print(table)

    if result.report_path:
        console.print(f"[green]Installation report (with credentials): {result.report_path}[/green]")
    if not result.wordpress_installed:
        console.print(f"Complete the installation wizard at http://{result.domain}")


def display_backup(result: BackupResult):
    console.print(f"[green]Backup completed for {result.domain}:[/green] {result.directory}")


def display_backups(results: List[BackupResult], failures: Dict[str, str]):
    for result in results:
        display_backup(result)
    for domain, error in failures.items():
        console.print(f"[red]Backup failed for {domain}: {error}[/red]")
    console.print(f"Backed up {len(results)} site(s), {len(failures)} failed")


def display_backup_list(paths: List[Path]):
    if not paths:
        console.print("[yellow]No backups found[/yellow]")
        return
    table = Table(title="Backups")
    table.add_column("Directory", style="cyan")
    for path in paths:
        table.add_row(str(path))
    console.print(table)


def display_reconfigured(domain: str, result: RenderResult):
    if result.changed:
        console.print(f"[green]Site {domain} reconfigured[/green]")
        if result.backup_path:
            console.print(f"Backup saved to: {result.backup_path}")
    else:
        console.print(f"Site {domain} configuration already up to date")


def display_reconfigure_summary(summary: ReconfigureSummary):
    table = Table(title="Reconfiguration Summary", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green")
    table.add_row("Total sites", str(summary.total))
    table.add_row("Successfully reconfigured", str(len(summary.succeeded)))
    table.add_row("Failed", str(len(summary.failed)))
    console.print(table)

    for domain, error in summary.failed.items():
        console.print(f"[red]{domain}: {error}[/red]")
    if not summary.failed:
        console.print("[green]All sites reconfigured successfully![/green]")


def display_live_config(live: Dict[str, Dict[str, str]], drift: List[SettingDrift]):
    """Deployed tunables next to the planned value where they differ."""
    expected = {(d.subsystem, d.setting): d.expected for d in drift}

    table = Table(title="Deployed Configuration")
    table.add_column("Subsystem", style="cyan")
    table.add_column("Setting", style="blue")
    table.add_column("Deployed", style="green")
    table.add_column("Planned", style="yellow")
    for subsystem, settings in live.items():
        if not settings:
            table.add_row(subsystem, "[dim]file not found[/dim]", "", "")
            continue
        for setting, value in settings.items():
            table.add_row(subsystem, setting, value, expected.get((subsystem, setting), ""))
    console.print(table)

    if drift:
        console.print(f"[yellow]{len(drift)} setting(s) differ from the current plan; "
                      f"run 'wpserver tune' to apply it[/yellow]")
    else:
        console.print("[green]Deployed configuration matches the current plan[/green]")


def display_status(status: Dict[str, Any]):
    snapshot: ResourceSnapshot = status["snapshot"]
    usage = status["usage"]

    console.print(Panel.fit(
        f"[bold]{status['hostname']}[/bold]\n"
        f"CPU: {snapshot.cpu_cores} cores, {usage['cpu_percent']:.1f}% used\n"
        f"Memory: {snapshot.total_ram_mb}MB, {usage['memory_percent']:.1f}% used\n"
        f"Disk: {snapshot.available_disk_gb}GB free, {usage['disk_percent']:.1f}% used\n"
        f"Load: {usage['load_1']:.2f}, {usage['load_5']:.2f}, {usage['load_15']:.2f}\n"
        f"Sites: {status['sites']}  Backups: {status['backups']}",
        title="System Status",
        border_style="blue"
    ))

    table = Table(title="Services")
    table.add_column("Service", style="cyan")
    table.add_column("Installed")
    table.add_column("Active")
    table.add_column("Enabled")
    for service in status["services"]:
        table.add_row(
            service.name,
            _flag(service.installed),
            _flag(service.active),
            _flag(service.enabled),
        )
    console.print(table)


def display_text(title: str, text: Optional[str]):
    console.print(Panel(text.strip() if text else "[dim]no output[/dim]", title=title))


def _flag(value: bool) -> str:
    return "[green]yes[/green]" if value else "[red]no[/red]"
