"""Error taxonomy for wpserver operations."""

from typing import List, Optional


class WPServerError(Exception):
    """Base class for every error the CLI reports to the operator."""


class PreconditionError(WPServerError):
    """Host does not satisfy a requirement (privilege, RAM, disk, OS, network)."""


class InputValidationError(WPServerError):
    """Operator input rejected at the point of entry."""


class ExternalToolError(WPServerError):
    """An external command exited unsuccessfully."""

    def __init__(self, command: List[str], returncode: int, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(
            f"Command '{' '.join(command)}' failed with exit code {returncode}{detail}"
        )


class ConfigurationError(WPServerError):
    """Generated configuration failed validation."""


class DuplicateDomainError(WPServerError):
    """Domain already present in the site registry."""

    def __init__(self, domain: str):
        self.domain = domain
        super().__init__(f"Site already registered: {domain}")


class SiteNotFoundError(WPServerError):
    """Domain not present in the site registry."""

    def __init__(self, domain: str):
        self.domain = domain
        super().__init__(f"Site not found: {domain}")


class SiteExistsError(WPServerError):
    """Site directory left over from an earlier run and the operator kept it."""

    def __init__(self, domain: str, site_dir: Optional[str] = None):
        self.domain = domain
        self.site_dir = site_dir
        super().__init__(f"Site directory already exists for {domain}: {site_dir}")
