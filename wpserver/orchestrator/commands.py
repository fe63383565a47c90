"""Closed set of operator commands and their single dispatch point."""

from enum import Enum
from typing import Any, Callable, Dict, NamedTuple, Optional

from pydantic import BaseModel, Field

from ..exceptions import InputValidationError, PreconditionError
from ..utils.logging import get_logger
from ..utils.validation import validate_domain
from .main import WordPressServerOrchestrator

logger = get_logger("commands")


class Command(str, Enum):
    """Every operation reachable from the CLI or the menu."""
    INSTALL = "install"
    ADD_SITE = "add-site"
    LIST_SITES = "list-sites"
    REMOVE_SITE = "remove-site"
    BACKUP_SITE = "backup-site"
    BACKUP_ALL = "backup-all"
    LIST_BACKUPS = "list-backups"
    SHOW_ALLOCATION = "allocation"
    SHOW_CONFIG = "show-config"
    APPLY_CONFIG = "tune"
    CLEAR_CACHES = "clear-caches"
    RECONFIGURE_SITE = "reconfigure-site"
    RECONFIGURE_ALL = "reconfigure-all"
    INSTALL_SSL = "ssl"
    RENEW_SSL = "renew-ssl"
    LIST_CERTIFICATES = "certificates"
    FIREWALL_STATUS = "firewall-status"
    STATUS = "status"


class CommandSpec(NamedTuple):
    """Preconditions declared per command."""
    requires_root: bool
    requires_domain: bool


COMMAND_SPECS: Dict[Command, CommandSpec] = {
    Command.INSTALL: CommandSpec(True, False),
    Command.ADD_SITE: CommandSpec(True, True),
    Command.LIST_SITES: CommandSpec(False, False),
    Command.REMOVE_SITE: CommandSpec(True, True),
    Command.BACKUP_SITE: CommandSpec(True, True),
    Command.BACKUP_ALL: CommandSpec(True, False),
    Command.LIST_BACKUPS: CommandSpec(False, False),
    Command.SHOW_ALLOCATION: CommandSpec(False, False),
    Command.SHOW_CONFIG: CommandSpec(False, False),
    Command.APPLY_CONFIG: CommandSpec(True, False),
    Command.CLEAR_CACHES: CommandSpec(True, False),
    Command.RECONFIGURE_SITE: CommandSpec(True, True),
    Command.RECONFIGURE_ALL: CommandSpec(True, False),
    Command.INSTALL_SSL: CommandSpec(True, True),
    Command.RENEW_SSL: CommandSpec(True, False),
    Command.LIST_CERTIFICATES: CommandSpec(True, False),
    Command.FIREWALL_STATUS: CommandSpec(True, False),
    Command.STATUS: CommandSpec(False, False),
}


class CommandRequest(BaseModel):
    """A command variant plus its arguments."""

    command: Command
    domain: Optional[str] = None
    email: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)


Handler = Callable[[WordPressServerOrchestrator, CommandRequest], Any]

HANDLERS: Dict[Command, Handler] = {
    Command.INSTALL: lambda o, r: o.run_installation(confirm=r.options.get("confirm")),
    Command.ADD_SITE: lambda o, r: o.add_site(
        r.domain,
        reset=r.options.get("reset"),
        admin_user=r.options.get("admin_user") or "admin",
        admin_email=r.email,
        site_title=r.options.get("site_title"),
    ),
    Command.LIST_SITES: lambda o, r: o.list_sites(),
    Command.REMOVE_SITE: lambda o, r: o.remove_site(r.domain, backup=r.options.get("backup", True)),
    Command.BACKUP_SITE: lambda o, r: o.backup_site(r.domain),
    Command.BACKUP_ALL: lambda o, r: o.backup_all_sites(cleanup=r.options.get("cleanup", True)),
    Command.LIST_BACKUPS: lambda o, r: o.list_backups(),
    Command.SHOW_ALLOCATION: lambda o, r: o.show_allocation(refresh=r.options.get("refresh", False)),
    Command.SHOW_CONFIG: lambda o, r: o.show_live_config(),
    Command.APPLY_CONFIG: lambda o, r: o.configure_services(),
    Command.CLEAR_CACHES: lambda o, r: o.clear_caches(),
    Command.RECONFIGURE_SITE: lambda o, r: o.reconfigure_site(r.domain),
    Command.RECONFIGURE_ALL: lambda o, r: o.reconfigure_all_sites(),
    Command.INSTALL_SSL: lambda o, r: o.install_ssl(r.domain, r.email),
    Command.RENEW_SSL: lambda o, r: o.renew_ssl(),
    Command.LIST_CERTIFICATES: lambda o, r: o.list_certificates(),
    Command.FIREWALL_STATUS: lambda o, r: o.firewall.status(),
    Command.STATUS: lambda o, r: o.system_status(),
}


def check_preconditions(orchestrator: WordPressServerOrchestrator, request: CommandRequest):
    """Enforce the declared preconditions of a command.

    Raises:
        InputValidationError: Domain missing or malformed
        PreconditionError: Command needs root and the process is not root
    """
    spec = COMMAND_SPECS[request.command]
    if spec.requires_domain:
        is_valid, error = validate_domain(request.domain)
        if not is_valid:
            raise InputValidationError(error)
    if spec.requires_root and not orchestrator.is_root():
        raise PreconditionError("This command must be run as root or with sudo")


def dispatch(orchestrator: WordPressServerOrchestrator, request: CommandRequest) -> Any:
    """Run one command after checking its preconditions.

    Args:
        orchestrator: Orchestrator doing the work
        request: Command and arguments

    Returns:
        Whatever the orchestrator operation returns
    """
    check_preconditions(orchestrator, request)
    logger.debug(f"Dispatching {request.command.value} (domain={request.domain})")
    return HANDLERS[request.command](orchestrator, request)
