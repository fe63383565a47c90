"""Allocation and configuration analysis."""

from .allocation import AllocationEngine, compute_allocation, plan_summary, select_tier
from .inspection import SettingDrift, compare_with_plan, read_live_settings

__all__ = [
    "AllocationEngine",
    "compute_allocation",
    "plan_summary",
    "select_tier",
    "SettingDrift",
    "compare_with_plan",
    "read_live_settings",
]
