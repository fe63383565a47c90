"""Shared click context helpers: orchestrator lookup and command execution."""

from typing import Any, Optional

import click

from ..exceptions import WPServerError
from ..orchestrator.commands import Command, CommandRequest, dispatch
from ..orchestrator.main import WordPressServerOrchestrator
from ..utils.logging import get_logger
from .display import display_error

logger = get_logger("cli")

# Returned by a non-fatal execute when the command failed; results may be None
FAILED = object()


def get_orchestrator(ctx: click.Context) -> WordPressServerOrchestrator:
    """Orchestrator for this invocation, created on first use."""
    obj = ctx.ensure_object(dict)
    if obj.get("orchestrator") is None:
        obj["orchestrator"] = WordPressServerOrchestrator(obj["config"])
    return obj["orchestrator"]


def execute(ctx: click.Context, command: Command, domain: Optional[str] = None,
            email: Optional[str] = None, fatal: bool = True, **options: Any) -> Any:
    """Dispatch a command and report failures.

    Args:
        ctx: Click context holding the config
        command: Command variant
        domain: Target domain, when the command takes one
        email: Contact email, when the command takes one
        fatal: Exit with status 1 on failure (False keeps the menu running)
        **options: Extra command arguments

    Returns:
        The command result, or FAILED after a non-fatal failure
    """
    request = CommandRequest(command=command, domain=domain, email=email, options=options)
    try:
        return dispatch(get_orchestrator(ctx), request)
    except WPServerError as e:
        logger.error(f"{command.value} failed: {e}")
        display_error(str(e))
        if fatal:
            ctx.exit(1)
        return FAILED
