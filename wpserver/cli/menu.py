"""Interactive operator menu."""

from typing import Callable, Dict, List, Tuple

import click
from pydantic import ValidationError
from rich.panel import Panel

from ..exceptions import WPServerError
from ..orchestrator.commands import Command
from ..utils.logging import get_logger
from ..utils.validation import validate_domain
from .context import FAILED, execute
from .display import (
    console, display_allocation, display_backup, display_backup_list, display_backups,
    display_banner, display_error, display_live_config, display_reconfigure_summary,
    display_reconfigured, display_sites, display_status, display_text,
)

logger = get_logger("cli.menu")

MenuEntry = Tuple[str, Callable[[click.Context], None]]


def _prompt_domain() -> str:
    while True:
        domain = click.prompt("Enter domain").strip()
        is_valid, error = validate_domain(domain)
        if is_valid:
            return domain
        console.print(f"[red]{error}[/red]")


def _choose(title: str, entries: List[MenuEntry]) -> int:
    """Print numbered entries plus a final 'back' entry and read a choice."""
    lines = [f"  {number}. {label}" for number, (label, _) in enumerate(entries, 1)]
    lines.append(f"  {len(entries) + 1}. Back")
    console.print(Panel("\n".join(lines), title=title, border_style="blue"))
    choices = [str(n) for n in range(1, len(entries) + 2)]
    return int(click.prompt(f"Enter choice [1-{len(entries) + 1}]", type=click.Choice(choices),
                            show_choices=False))


def _submenu(ctx: click.Context, title: str, entries: List[MenuEntry]):
    choice = _choose(title, entries)
    if choice <= len(entries):
        entries[choice - 1][1](ctx)
        click.pause()


def menu_add_site(ctx: click.Context):
    # Reuse the add-site command so prompts match the CLI
    from .commands import add_site
    domain = _prompt_domain()
    ctx.invoke(add_site, domain=domain)


def menu_list_sites(ctx: click.Context):
    sites = execute(ctx, Command.LIST_SITES, fatal=False)
    if sites is not FAILED:
        display_sites(sites)


def menu_install_ssl(ctx: click.Context):
    domain = _prompt_domain()
    email = click.prompt("Email address for SSL notifications")
    console.print("[yellow]Make sure your domain DNS is pointing to this server![/yellow]")
    if execute(ctx, Command.INSTALL_SSL, domain=domain, email=email, fatal=False) is FAILED:
        return
    console.print(f"[green]SSL certificate installed for {domain}[/green]")


def menu_backup_site(ctx: click.Context):
    result = execute(ctx, Command.BACKUP_SITE, domain=_prompt_domain(), fatal=False)
    if result is not FAILED:
        display_backup(result)


def menu_remove_site(ctx: click.Context):
    domain = _prompt_domain()
    if not click.confirm(f"Are you sure you want to remove {domain}? This cannot be undone!",
                         default=False):
        console.print("Site removal cancelled")
        return
    final_backup = execute(ctx, Command.REMOVE_SITE, domain=domain, fatal=False)
    if final_backup is FAILED:
        return
    if final_backup is not None:
        display_backup(final_backup)
    console.print(f"[green]Site {domain} removed successfully[/green]")


def menu_reconfigure_site(ctx: click.Context):
    domain = _prompt_domain()
    result = execute(ctx, Command.RECONFIGURE_SITE, domain=domain, fatal=False)
    if result is not FAILED:
        display_reconfigured(domain, result)


def menu_reconfigure_all(ctx: click.Context):
    if not click.confirm("Regenerate Nginx configuration for all sites?", default=True):
        return
    summary = execute(ctx, Command.RECONFIGURE_ALL, fatal=False)
    if summary is not FAILED:
        display_reconfigure_summary(summary)


def menu_status(ctx: click.Context):
    status = execute(ctx, Command.STATUS, fatal=False)
    if status is not FAILED:
        display_status(status)


def menu_backup_all(ctx: click.Context):
    outcome = execute(ctx, Command.BACKUP_ALL, fatal=False)
    if outcome is not FAILED:
        display_backups(*outcome)


def menu_list_backups(ctx: click.Context):
    backups = execute(ctx, Command.LIST_BACKUPS, fatal=False)
    if backups is not FAILED:
        display_backup_list(backups)


def menu_show_config(ctx: click.Context):
    outcome = execute(ctx, Command.SHOW_CONFIG, fatal=False)
    if outcome is not FAILED:
        display_live_config(*outcome)


def menu_recalculate(ctx: click.Context):
    outcome = execute(ctx, Command.SHOW_ALLOCATION, fatal=False, refresh=True)
    if outcome is FAILED:
        return
    display_allocation(*outcome)
    if click.confirm("Apply this allocation to the service configuration?", default=False):
        if execute(ctx, Command.APPLY_CONFIG, fatal=False) is not FAILED:
            console.print("[green]Configuration applied[/green]")


def menu_clear_caches(ctx: click.Context):
    if execute(ctx, Command.CLEAR_CACHES, fatal=False) is not FAILED:
        console.print("[green]Caches cleared[/green]")


def menu_firewall_status(ctx: click.Context):
    text = execute(ctx, Command.FIREWALL_STATUS, fatal=False)
    if text is not FAILED:
        display_text("Firewall Status", text)


def menu_certificates(ctx: click.Context):
    text = execute(ctx, Command.LIST_CERTIFICATES, fatal=False)
    if text is not FAILED:
        display_text("SSL Certificates", text)


def menu_renew_ssl(ctx: click.Context):
    if execute(ctx, Command.RENEW_SSL, fatal=False) is not FAILED:
        console.print("[green]Certificates renewed[/green]")


SUBMENUS: Dict[str, List[MenuEntry]] = {
    "Manage Existing Site": [
        ("Install SSL Certificate", menu_install_ssl),
        ("Backup Site", menu_backup_site),
        ("Reconfigure Site", menu_reconfigure_site),
        ("Remove Site", menu_remove_site),
    ],
    "Backup Management": [
        ("Backup All Sites", menu_backup_all),
        ("Backup Single Site", menu_backup_site),
        ("List Backups", menu_list_backups),
    ],
    "Performance Tuning": [
        ("Show Current Configuration", menu_show_config),
        ("Recalculate Resources", menu_recalculate),
        ("Reconfigure All Sites", menu_reconfigure_all),
        ("Clear All Caches", menu_clear_caches),
    ],
    "Security Management": [
        ("Show Firewall Status", menu_firewall_status),
        ("List SSL Certificates", menu_certificates),
        ("Renew SSL Certificates", menu_renew_ssl),
    ],
}


def main_menu_entries() -> List[MenuEntry]:
    """Top-level entries; the final Exit entry is added by the loop."""
    def submenu(title: str) -> Callable[[click.Context], None]:
        return lambda ctx: _submenu(ctx, title, SUBMENUS[title])

    return [
        ("Install New WordPress Site", menu_add_site),
        ("List All WordPress Sites", menu_list_sites),
        ("Manage Existing Site", submenu("Manage Existing Site")),
        ("System Status & Monitoring", menu_status),
        ("Backup Management", submenu("Backup Management")),
        ("Performance Tuning", submenu("Performance Tuning")),
        ("Security Management", submenu("Security Management")),
    ]


def run_menu(ctx: click.Context):
    """Loop over the main menu until the operator exits."""
    entries = main_menu_entries()
    exit_choice = len(entries) + 1

    while True:
        display_banner("Interactive management menu")
        lines = [f"  {number}. {label}" for number, (label, _) in enumerate(entries, 1)]
        lines.append(f"  {exit_choice}. Exit")
        console.print("\n".join(lines))

        choice = click.prompt(
            f"Enter choice [1-{exit_choice}]",
            type=click.IntRange(1, exit_choice),
        )
        if choice == exit_choice:
            console.print("Goodbye!")
            return

        handler = entries[choice - 1][1]
        try:
            handler(ctx)
        except click.exceptions.Exit:
            # add-site reports its own failure; stay in the menu
            pass
        except (WPServerError, OSError, ValidationError) as e:
            logger.error(f"Menu operation failed: {e}")
            display_error(str(e))
