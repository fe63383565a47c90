"""Host resource, operating system and installed software detection."""

import os
import platform
import re
from pathlib import Path
from typing import Dict, List, Optional, Union

import psutil

from ..exceptions import PreconditionError
from ..models.data_models import ResourceSnapshot, SoftwareComponent, SystemInfo
from ..utils.validation import (
    LOW_RAM_MB, MIN_RAM_MB, SUPPORTED_UBUNTU_VERSIONS, is_supported_os,
)
from .base import BaseWorker, Runner

DEFAULT_PHP_VERSION = "8.2"
SUPPORTED_PHP_VERSIONS = ("8.1", "8.2", "8.3")

# component -> (candidate commands, version argv, version pattern)
SOFTWARE_CHECKS = {
    "nginx": (("nginx",), ["-v"], r"nginx/([0-9.]+)"),
    "mariadb": (("mariadb", "mysql"), ["--version"], r"(?:Distrib\s+)?([0-9]+\.[0-9]+\.[0-9]+)"),
    "php": (("php",), ["-r", "echo PHP_VERSION;"], r"([0-9]+\.[0-9]+\.[0-9]+)"),
    "redis": (("redis-server",), ["--version"], r"v=([0-9.]+)"),
    "certbot": (("certbot",), ["--version"], r"certbot\s+([0-9.]+)"),
    "wp-cli": (("wp",), ["--version", "--allow-root"], r"WP-CLI\s+([0-9.]+)"),
}


def parse_os_release(text: str) -> Dict[str, str]:
    """Parse ``/etc/os-release`` KEY=value lines, unquoting values."""
    values = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = value.strip().strip('"').strip("'")
    return values


class ResourceProbe(BaseWorker):
    """Reads CPU, memory, disk, OS identity and installed components."""

    def __init__(self, runner: Optional[Runner] = None,
                 os_release_path: Union[str, Path] = "/etc/os-release",
                 disk_path: str = "/"):
        super().__init__(runner=runner, name="probe")
        self.os_release_path = Path(os_release_path)
        self.disk_path = disk_path

    def snapshot(self) -> ResourceSnapshot:
        """Capture host resources.

        Returns:
            Resource snapshot

        Raises:
            PreconditionError: Less than 512MB of RAM
        """
        cpu_cores = psutil.cpu_count(logical=True) or 1
        total_ram_mb = psutil.virtual_memory().total // (1024 * 1024)
        available_disk_gb = psutil.disk_usage(self.disk_path).free // (1024 ** 3)

        self.logger.info(
            f"Detected {cpu_cores} CPU cores, {total_ram_mb}MB RAM, "
            f"{available_disk_gb}GB free disk"
        )

        if total_ram_mb < MIN_RAM_MB:
            raise PreconditionError(
                f"Insufficient RAM detected ({total_ram_mb}MB). Minimum {MIN_RAM_MB}MB required."
            )
        if total_ram_mb < LOW_RAM_MB:
            self.logger.warning(
                "Low RAM detected. WordPress may run slowly with less than 1GB RAM"
            )

        return ResourceSnapshot(
            cpu_cores=cpu_cores,
            total_ram_mb=total_ram_mb,
            available_disk_gb=available_disk_gb,
        )

    def detect_os(self) -> SystemInfo:
        """Identify the operating system.

        Raises:
            PreconditionError: os-release missing or not Ubuntu
        """
        if not self.os_release_path.exists():
            raise PreconditionError(
                f"Cannot detect operating system. {self.os_release_path} not found."
            )

        values = parse_os_release(self.os_release_path.read_text(encoding="utf-8"))
        info = SystemInfo(
            os_id=values.get("ID", "unknown"),
            name=values.get("NAME", "unknown"),
            version=values.get("VERSION_ID", ""),
            codename=values.get("VERSION_CODENAME") or "unknown",
            architecture=platform.machine(),
        )

        if info.os_id != "ubuntu":
            raise PreconditionError(f"Only Ubuntu is supported. Detected: {info.name}")

        if is_supported_os(info.os_id, info.version):
            self.logger.info(f"Detected: {info.name} {info.version} ({info.codename})")
        else:
            self.logger.warning(
                f"Ubuntu {info.version} detected. Recommended: "
                f"{', '.join(v + ' LTS' for v in SUPPORTED_UBUNTU_VERSIONS)}"
            )
        return info

    def check_requirements(self, snapshot: ResourceSnapshot, min_disk_gb: int = 10) -> List[str]:
        """List the installation minimums the host does not meet."""
        problems = []
        if snapshot.total_ram_mb < MIN_RAM_MB:
            problems.append(f"Insufficient RAM: {snapshot.total_ram_mb}MB (minimum {MIN_RAM_MB}MB)")
        if snapshot.available_disk_gb < min_disk_gb:
            problems.append(
                f"Insufficient disk space. Required: {min_disk_gb}GB, "
                f"Available: {snapshot.available_disk_gb}GB"
            )
        return problems

    @staticmethod
    def is_root() -> bool:
        return os.geteuid() == 0

    def has_internet(self, host: str = "8.8.8.8") -> bool:
        """Ping a public host once."""
        return self.run(["ping", "-c", "1", "-W", "2", host], check=False, timeout=10).ok

    def detect_component(self, name: str) -> SoftwareComponent:
        """Check one stack component and read its version."""
        commands, version_args, pattern = SOFTWARE_CHECKS[name]
        for command in commands:
            if not self.command_exists(command):
                continue
            result = self.run([command] + version_args, check=False, timeout=30)
            # nginx -v prints to stderr
            match = re.search(pattern, result.stdout + result.stderr)
            component = SoftwareComponent(
                name=name,
                command=command,
                installed=True,
                version=match.group(1) if match else None,
            )
            self.logger.info(f"{name} {component.version or '(unknown version)'} is already installed")
            return component

        self.logger.info(f"{name} not installed")
        return SoftwareComponent(name=name, command=commands[0], installed=False)

    def detect_software(self) -> Dict[str, SoftwareComponent]:
        """Detect every stack component."""
        return {name: self.detect_component(name) for name in SOFTWARE_CHECKS}

    def php_major_version(self, php: Optional[SoftwareComponent] = None) -> str:
        """PHP major.minor version of the installed runtime, or the default."""
        php = php or self.detect_component("php")
        if not php.installed or not php.version:
            return DEFAULT_PHP_VERSION

        major = ".".join(php.version.split(".")[:2])
        if major not in SUPPORTED_PHP_VERSIONS:
            self.logger.warning(
                f"PHP {major} detected. Recommended: {', '.join(SUPPORTED_PHP_VERSIONS)}"
            )
        return major

    def usage(self) -> Dict[str, float]:
        """Current load figures for the status screen."""
        load_1, load_5, load_15 = psutil.getloadavg()
        return {
            "cpu_percent": psutil.cpu_percent(interval=0.5),
            "memory_percent": psutil.virtual_memory().percent,
            "disk_percent": psutil.disk_usage(self.disk_path).percent,
            "load_1": load_1,
            "load_5": load_5,
            "load_15": load_15,
        }
