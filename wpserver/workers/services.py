"""systemd service control."""

from typing import Optional

from ..models.data_models import ServiceStatus
from .base import BaseWorker, Runner


class ServiceManager(BaseWorker):
    """Starts, restarts and queries services through systemctl."""

    def __init__(self, runner: Optional[Runner] = None, dry_run: bool = False):
        super().__init__(runner=runner, dry_run=dry_run, name="services")

    def start(self, name: str):
        self.run(["systemctl", "start", name])
        self.logger.info(f"Started {name}")

    def enable(self, name: str):
        self.run(["systemctl", "enable", name])

    def start_enable(self, name: str):
        """Start a service now and on boot."""
        self.start(name)
        self.enable(name)
        self.logger.info(f"{name} started and enabled")

    def restart(self, name: str):
        self.run(["systemctl", "restart", name])
        self.logger.info(f"Restarted {name}")

    def reload(self, name: str):
        self.run(["systemctl", "reload", name])
        self.logger.info(f"Reloaded {name}")

    def is_active(self, name: str) -> bool:
        return self.run(["systemctl", "is-active", "--quiet", name], check=False).ok

    def is_enabled(self, name: str) -> bool:
        return self.run(["systemctl", "is-enabled", "--quiet", name], check=False).ok

    def timer_exists(self, name: str) -> bool:
        """Check whether a systemd timer with ``name`` in its unit name is scheduled."""
        result = self.run(["systemctl", "list-timers", "--all", "--no-pager"], check=False)
        return result.ok and name in result.stdout

    def status(self, name: str) -> ServiceStatus:
        """Service state as seen by systemd."""
        result = self.run(
            ["systemctl", "show", name, "--property=LoadState,ActiveState,UnitFileState"],
            check=False,
        )
        properties = dict(
            line.split("=", 1) for line in result.stdout.splitlines() if "=" in line
        )
        return ServiceStatus(
            name=name,
            installed=result.ok and properties.get("LoadState", "not-found") != "not-found",
            active=properties.get("ActiveState") == "active",
            enabled=properties.get("UnitFileState") == "enabled",
        )
