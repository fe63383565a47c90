"""File-backed stores for site and credential records."""

from .credentials import CredentialStore
from .files import atomic_write, exclusive_lock
from .registry import SiteRegistry

__all__ = [
    "CredentialStore",
    "SiteRegistry",
    "atomic_write",
    "exclusive_lock",
]
