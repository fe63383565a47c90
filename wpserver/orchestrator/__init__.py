"""Orchestration layer."""

from .commands import Command, CommandRequest, dispatch
from .main import WordPressServerOrchestrator

__all__ = ["Command", "CommandRequest", "WordPressServerOrchestrator", "dispatch"]
