"""CLI commands for the WordPress server manager."""

from pathlib import Path

import click

from .. import __version__
from ..orchestrator.commands import Command
from ..utils.config import Config
from ..utils.logging import setup_logging
from ..utils.validation import validate_email
from .context import execute, get_orchestrator
from .display import (
    console, display_allocation, display_backup, display_backup_list, display_backups,
    display_banner, display_live_config, display_provision, display_reconfigure_summary,
    display_reconfigured, display_sites, display_status, display_text,
)
from .menu import run_menu


@click.group()
@click.option('--debug', is_flag=True, help='Enable debug logging on the console')
@click.option('--config-file', type=click.Path(), help='Environment file with configuration overrides')
@click.option('--dry-run', is_flag=True, help='Log system commands instead of running them')
@click.pass_context
def cli(ctx, debug, config_file, dry_run):
    """Provision and manage a WordPress hosting server (Nginx, MariaDB, PHP-FPM, Redis)."""
    ctx.ensure_object(dict)

    config = Config(config_file)
    if dry_run:
        config.set("dry_run", True)
    ctx.obj['config'] = config

    # Everything goes to the log file; the console only shows log records with --debug
    log_level = "DEBUG" if debug else config.log_level
    setup_logging(log_level=log_level, log_file=config.log_file, console_output=debug)


def prompt_reset(site_dir: Path) -> bool:
    """Ask what to do with a leftover site directory."""
    console.print(f"[yellow]Site directory already exists at {site_dir}[/yellow]")
    console.print("This could be from an incomplete installation. Options:")
    console.print("  1. Remove and start fresh (recommended for incomplete installations)")
    console.print("  2. Cancel and keep existing files")
    choice = click.prompt("Enter choice", type=click.Choice(["1", "2"]), default="2")
    return choice == "1"


def prompt_admin_email() -> str:
    while True:
        email = click.prompt("WordPress admin email")
        is_valid, error = validate_email(email)
        if is_valid:
            return email
        console.print(f"[red]{error}[/red]")


@cli.command()
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def install(ctx, yes):
    """Install and tune the full server stack."""
    display_banner("Server installation")
    confirm = None if yes else (lambda message: click.confirm(message, default=True))

    plan = execute(ctx, Command.INSTALL, confirm=confirm)

    if plan is None:
        console.print("[yellow]Installation cancelled[/yellow]")
        return

    snapshot, plan, rows = get_orchestrator(ctx).show_allocation()
    display_allocation(snapshot, plan, rows)
    console.print("[green]Installation completed. Add a site with 'wpserver add-site <domain>'.[/green]")


@cli.command('add-site')
@click.argument('domain', required=False)
@click.option('--email', help='WordPress admin email (enables the automatic install)')
@click.option('--admin-user', default='admin', show_default=True, help='WordPress admin username')
@click.option('--title', help='Site title (defaults to the domain)')
@click.option('--reset', is_flag=True, help='Wipe a leftover site directory without asking')
@click.option('--skip-install', is_flag=True, help='Leave the WordPress install wizard to the browser')
@click.pass_context
def add_site(ctx, domain, email, admin_user, title, reset, skip_install):
    """Create a new WordPress site."""
    domain = domain or click.prompt("Enter domain name (e.g., example.com)")

    orchestrator = get_orchestrator(ctx)
    if not email and not skip_install and orchestrator.wpcli_available():
        admin_user = click.prompt("WordPress admin username", default=admin_user)
        email = prompt_admin_email()
        title = title or click.prompt("Site title", default=domain)

    reset_callback = (lambda site_dir: True) if reset else prompt_reset
    result = execute(
        ctx, Command.ADD_SITE, domain=domain, email=email,
        reset=reset_callback, admin_user=admin_user, site_title=title,
    )
    display_provision(result)


@cli.command('list-sites')
@click.pass_context
def list_sites(ctx):
    """List registered WordPress sites."""
    display_sites(execute(ctx, Command.LIST_SITES))


@cli.command('remove-site')
@click.argument('domain')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.option('--no-backup', is_flag=True, help='Skip the final backup')
@click.pass_context
def remove_site(ctx, domain, yes, no_backup):
    """Remove a site, its database and its files."""
    if not yes and not click.confirm(
        f"Are you sure you want to remove {domain}? This cannot be undone!", default=False
    ):
        console.print("Site removal cancelled")
        return

    final_backup = execute(ctx, Command.REMOVE_SITE, domain=domain, backup=not no_backup)
    if final_backup:
        display_backup(final_backup)
    console.print(f"[green]Site {domain} removed successfully[/green]")


@cli.command()
@click.argument('domain', required=False)
@click.option('--all', 'all_sites', is_flag=True, help='Back up every site and prune old backups')
@click.option('--list', 'list_only', is_flag=True, help='List existing backups')
@click.pass_context
def backup(ctx, domain, all_sites, list_only):
    """Back up one site or all sites."""
    if list_only:
        display_backup_list(execute(ctx, Command.LIST_BACKUPS))
    elif all_sites:
        results, failures = execute(ctx, Command.BACKUP_ALL)
        display_backups(results, failures)
        if failures:
            ctx.exit(1)
    elif domain:
        display_backup(execute(ctx, Command.BACKUP_SITE, domain=domain))
    else:
        raise click.UsageError("Specify a domain, --all or --list")


@cli.command()
@click.pass_context
def allocation(ctx):
    """Show detected resources and the computed allocation."""
    display_allocation(*execute(ctx, Command.SHOW_ALLOCATION))


@cli.command('show-config')
@click.pass_context
def show_config(ctx):
    """Show deployed tuning values and drift from the allocation."""
    display_live_config(*execute(ctx, Command.SHOW_CONFIG))


@cli.command()
@click.pass_context
def tune(ctx):
    """Regenerate and apply the service configuration for this host."""
    results = execute(ctx, Command.APPLY_CONFIG)
    for result in results:
        state = "[green]updated[/green]" if result.changed else "unchanged"
        console.print(f"{result.target.value}: {result.path} {state}")


@cli.command()
@click.argument('domain', required=False)
@click.option('--all', 'all_sites', is_flag=True, help='Reconfigure every registered site')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def reconfigure(ctx, domain, all_sites, yes):
    """Regenerate nginx site configuration."""
    if all_sites:
        console.print("[cyan]This will regenerate Nginx configuration for all registered sites.[/cyan]")
        console.print("[yellow]Backups will be created before making changes.[/yellow]")
        if not yes and not click.confirm("Do you want to proceed?", default=True):
            console.print("Operation cancelled")
            return
        summary = execute(ctx, Command.RECONFIGURE_ALL)
        display_reconfigure_summary(summary)
        if summary.failed:
            ctx.exit(1)
    elif domain:
        display_reconfigured(domain, execute(ctx, Command.RECONFIGURE_SITE, domain=domain))
    else:
        raise click.UsageError("Specify a domain or --all")


@cli.command()
@click.argument('domain')
@click.option('--email', help='Contact email for certificate notices')
@click.pass_context
def ssl(ctx, domain, email):
    """Install a Let's Encrypt certificate for a site."""
    email = email or click.prompt("Email address for SSL notifications")
    console.print("[yellow]Make sure your domain DNS is pointing to this server![/yellow]")
    execute(ctx, Command.INSTALL_SSL, domain=domain, email=email)
    console.print(f"[green]SSL certificate installed for {domain}. Site available at https://{domain}[/green]")


@cli.command('renew-ssl')
@click.pass_context
def renew_ssl(ctx):
    """Renew all certificates due for renewal."""
    execute(ctx, Command.RENEW_SSL)
    console.print("[green]Certificates renewed[/green]")


@cli.command()
@click.pass_context
def certificates(ctx):
    """List installed certificates."""
    display_text("SSL Certificates", execute(ctx, Command.LIST_CERTIFICATES))


@cli.command('clear-caches')
@click.pass_context
def clear_caches(ctx):
    """Flush Redis and the nginx FastCGI cache."""
    removed = execute(ctx, Command.CLEAR_CACHES)
    console.print(f"[green]Caches cleared ({removed} nginx cache entries removed)[/green]")


@cli.command()
@click.pass_context
def firewall(ctx):
    """Show the firewall rules."""
    display_text("Firewall Status", execute(ctx, Command.FIREWALL_STATUS))


@cli.command()
@click.pass_context
def status(ctx):
    """Show services, resource usage and site count."""
    display_status(execute(ctx, Command.STATUS))


@cli.command()
@click.pass_context
def menu(ctx):
    """Launch the interactive operator menu."""
    run_menu(ctx)


@cli.command()
def version():
    """Show the version."""
    console.print(f"wpserver {__version__}")
