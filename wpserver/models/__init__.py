"""Data models."""

from .data_models import (
    AllocationPlan,
    AllocationTier,
    BackupResult,
    CommandResult,
    ConfigTarget,
    CredentialEntry,
    ReconfigureSummary,
    RenderResult,
    ResourceSnapshot,
    ServiceStatus,
    SiteProvisionResult,
    SiteRecord,
    SoftwareComponent,
    SystemInfo,
)

__all__ = [
    "AllocationPlan",
    "AllocationTier",
    "BackupResult",
    "CommandResult",
    "ConfigTarget",
    "CredentialEntry",
    "ReconfigureSummary",
    "RenderResult",
    "ResourceSnapshot",
    "ServiceStatus",
    "SiteProvisionResult",
    "SiteRecord",
    "SoftwareComponent",
    "SystemInfo",
]
