"""Configuration file rendering."""

from .renderer import ConfigRenderer, backup_file

__all__ = ["ConfigRenderer", "backup_file"]
