"""nginx configuration validation."""

from typing import Optional

from ..models.data_models import CommandResult
from .base import BaseWorker, Runner


class NginxValidator(BaseWorker):
    """Runs ``nginx -t`` against the deployed configuration."""

    def __init__(self, runner: Optional[Runner] = None, dry_run: bool = False):
        super().__init__(runner=runner, dry_run=dry_run, name="nginx")

    def test(self) -> CommandResult:
        """Full ``nginx -t`` result (its report goes to stderr)."""
        return self.run(["nginx", "-t"], check=False)

    def is_valid(self) -> bool:
        result = self.test()
        if result.ok:
            self.logger.info("Nginx configuration is valid")
        else:
            self.logger.error(f"Nginx configuration test failed: {result.stderr.strip()}")
        return result.ok
