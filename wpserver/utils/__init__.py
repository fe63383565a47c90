"""Utility modules."""

from .config import Config
from .logging import setup_logging, get_logger
from .validation import validate_domain, validate_email

__all__ = [
    "Config",
    "setup_logging",
    "get_logger",
    "validate_domain",
    "validate_email",
]
