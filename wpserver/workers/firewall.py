"""Host firewall through ufw."""

from typing import Optional, Sequence

from .base import BaseWorker, Runner

DEFAULT_ALLOWED_PORTS = ("22/tcp", "80/tcp", "443/tcp")


class Firewall(BaseWorker):
    """Configures ufw to allow SSH and web traffic only."""

    def __init__(self, runner: Optional[Runner] = None, dry_run: bool = False):
        super().__init__(runner=runner, dry_run=dry_run, name="firewall")

    def configure(self, allowed_ports: Sequence[str] = DEFAULT_ALLOWED_PORTS):
        """Reset the rule set, deny inbound by default and open the given ports."""
        commands = [
            ["ufw", "--force", "reset"],
            ["ufw", "default", "deny", "incoming"],
            ["ufw", "default", "allow", "outgoing"],
        ]
        commands.extend(["ufw", "allow", port] for port in allowed_ports)
        commands.append(["ufw", "--force", "enable"])
        self.run_all(commands)
        self.logger.info(f"Firewall configured ({', '.join(allowed_ports)} allowed)")

    def status(self) -> str:
        return self.run(["ufw", "status", "verbose"], check=False).stdout
