"""Data models for the WordPress server toolkit."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
REGISTRY_DELIMITER = "|"
CREDENTIAL_SEPARATOR = "---"


def now() -> datetime:
    """Current local time truncated to whole seconds (the persisted precision)."""
    return datetime.now().replace(microsecond=0)


def format_size_mb(value: int) -> str:
    """Render a megabyte count the way nginx/PHP expect it, e.g. ``256M``."""
    return f"{value}M"


class AllocationTier(str, Enum):
    """RAM-range buckets of the allocation table."""
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    XLARGE = "xlarge"


class ConfigTarget(str, Enum):
    """Generated configuration files, one per service concern."""
    NGINX_MAIN = "nginx_main"
    NGINX_SITE = "nginx_site"
    PHP_INI = "php_ini"
    PHP_FPM_POOL = "php_fpm_pool"
    MARIADB = "mariadb"
    REDIS = "redis"


class ResourceSnapshot(BaseModel):
    """Host resources captured once per invocation."""
    model_config = ConfigDict(frozen=True)

    cpu_cores: int = Field(..., ge=1)
    total_ram_mb: int = Field(..., ge=512)
    available_disk_gb: int = Field(..., ge=0)

    @property
    def total_ram_gb(self) -> int:
        return self.total_ram_mb // 1024


class AllocationPlan(BaseModel):
    """Tuning values for nginx, PHP-FPM, MariaDB and Redis.

    Derived entirely from a ResourceSnapshot. The validator rejects any
    combination that breaks the relations between the derived fields, so a
    plan that exists is always internally consistent.
    """
    model_config = ConfigDict(frozen=True)

    tier: AllocationTier
    web_worker_count: int = Field(..., ge=1)
    runtime_max_children: int = Field(..., ge=1)
    runtime_start_servers: int = Field(..., ge=2)
    runtime_min_spare: int = Field(..., ge=1)
    runtime_max_spare: int = Field(..., ge=3)
    runtime_memory_limit_mb: int = Field(..., ge=1)
    upload_max_mb: int = Field(..., ge=1)
    post_max_mb: int = Field(..., ge=1)
    db_buffer_pool_mb: int = Field(..., ge=1)
    db_log_file_mb: int = Field(..., ge=1)
    db_max_connections: int = Field(..., ge=1)
    cache_max_memory_mb: int = Field(..., ge=1)

    @model_validator(mode="after")
    def check_derived_fields(self):
        if self.post_max_mb != self.upload_max_mb + 8:
            raise ValueError("post_max_mb must equal upload_max_mb + 8")
        if self.db_log_file_mb != self.db_buffer_pool_mb // 4:
            raise ValueError("db_log_file_mb must equal db_buffer_pool_mb // 4")
        if self.db_max_connections != self.runtime_max_children + 50:
            raise ValueError("db_max_connections must equal runtime_max_children + 50")
        return self

    @property
    def memory_limit(self) -> str:
        return format_size_mb(self.runtime_memory_limit_mb)

    @property
    def upload_max(self) -> str:
        return format_size_mb(self.upload_max_mb)

    @property
    def post_max(self) -> str:
        return format_size_mb(self.post_max_mb)


class SiteRecord(BaseModel):
    """One hosted site in the registry."""

    domain: str
    database_name: str
    database_user: str
    created_at: datetime = Field(default_factory=now)

    @field_validator("domain")
    @classmethod
    def normalize_domain(cls, v):
        v = v.strip().lower()
        if not v:
            raise ValueError("domain must not be empty")
        if REGISTRY_DELIMITER in v or any(ch.isspace() for ch in v):
            raise ValueError(f"domain contains illegal characters: {v!r}")
        return v

    @field_validator("database_name", "database_user")
    @classmethod
    def reject_delimiter(cls, v):
        if REGISTRY_DELIMITER in v or "\n" in v:
            raise ValueError(f"value contains illegal characters: {v!r}")
        return v

    def to_line(self) -> str:
        """Serialize to ``domain|database_name|database_user|created_at``."""
        return REGISTRY_DELIMITER.join([
            self.domain,
            self.database_name,
            self.database_user,
            self.created_at.strftime(TIMESTAMP_FORMAT),
        ])

    @classmethod
    def from_line(cls, line: str) -> "SiteRecord":
        """Parse a registry line.

        Lines written by older tooling may lack the user column
        (``domain|database|created``); those parse with an empty user.
        """
        parts = line.rstrip("\n").split(REGISTRY_DELIMITER)
        if len(parts) == 4:
            domain, db_name, db_user, created = parts
        elif len(parts) == 3:
            domain, db_name, created = parts
            db_user = ""
        else:
            raise ValueError(f"expected 4 fields, got {len(parts)}")
        return cls(
            domain=domain,
            database_name=db_name,
            database_user=db_user,
            created_at=datetime.strptime(created.strip(), TIMESTAMP_FORMAT),
        )


class CredentialEntry(BaseModel):
    """A block in the append-only credential log."""
    model_config = ConfigDict(frozen=True)

    subject: str = Field(..., min_length=1)
    fields: Dict[str, str] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=now)

    @field_validator("subject")
    @classmethod
    def single_line_subject(cls, v):
        if "\n" in v:
            raise ValueError("subject must be a single line")
        return v

    @field_validator("fields")
    @classmethod
    def single_line_fields(cls, v):
        for label, value in v.items():
            if "\n" in label or "\n" in str(value) or ":" in label:
                raise ValueError(f"credential field {label!r} is not a single-line label/value")
        return v

    def render(self) -> str:
        """Render the block, including the trailing separator line."""
        lines = ["", f"## {self.subject}"]
        lines.extend(f"{label}: {value}" for label, value in self.fields.items())
        lines.append(f"Created: {self.created_at.strftime(TIMESTAMP_FORMAT)}")
        lines.append(CREDENTIAL_SEPARATOR)
        return "\n".join(lines) + "\n"


class CommandResult(BaseModel):
    """Outcome of one external command."""

    command: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ServiceStatus(BaseModel):
    """Service manager view of one unit."""

    name: str
    installed: bool = True
    active: bool = False
    enabled: bool = False


class SoftwareComponent(BaseModel):
    """Detected stack component."""

    name: str
    command: str
    installed: bool = False
    version: Optional[str] = None


class SystemInfo(BaseModel):
    """Operating system identity."""

    os_id: str = "unknown"
    name: str = "unknown"
    version: str = ""
    codename: str = "unknown"
    architecture: str = ""


class RenderResult(BaseModel):
    """Outcome of writing one generated configuration file."""

    target: ConfigTarget
    path: Path
    changed: bool
    backup_path: Optional[Path] = None


class BackupResult(BaseModel):
    """One site backup on disk."""

    domain: str
    directory: Path
    database_dump: Optional[Path] = None
    files_archive: Optional[Path] = None
    nginx_config: Optional[Path] = None
    manifest: Optional[Path] = None
    created_at: datetime = Field(default_factory=now)


class SiteProvisionResult(BaseModel):
    """What the add-site workflow produced."""

    domain: str
    database_name: str
    database_user: str
    site_root: Path
    admin_user: Optional[str] = None
    admin_email: Optional[str] = None
    wordpress_installed: bool = False
    report_path: Optional[Path] = None


class ReconfigureSummary(BaseModel):
    """Result of regenerating vhosts for several sites."""

    succeeded: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)
