"""APT package installation."""

import os
from typing import Dict, List, Optional, Sequence

from ..exceptions import ExternalToolError
from .base import BaseWorker, Runner

BASE_PACKAGES = [
    "software-properties-common",
    "apt-transport-https",
    "ca-certificates",
    "curl",
    "wget",
    "git",
    "unzip",
    "zip",
    "gnupg",
    "lsb-release",
    "ufw",
]
NGINX_PACKAGES = ["nginx"]
MARIADB_PACKAGES = ["mariadb-server", "mariadb-client"]
REDIS_PACKAGES = ["redis-server"]
CERTBOT_PACKAGES = ["certbot", "python3-certbot-nginx"]
MONITORING_PACKAGES = ["htop", "iotop", "nethogs", "vnstat"]
PHP_EXTENSIONS = [
    "fpm", "mysql", "curl", "gd", "mbstring", "xml", "xmlrpc", "soap", "intl",
    "zip", "bcmath", "imagick", "redis", "opcache", "cli", "common",
]

PHP_PPA = "ppa:ondrej/php"
WPCLI_URL = "https://raw.githubusercontent.com/wp-cli/builds/gh-pages/phar/wp-cli.phar"


def php_packages(php_version: str) -> List[str]:
    """PHP-FPM and the extensions WordPress needs for one PHP version."""
    return [f"php{php_version}-{ext}" for ext in PHP_EXTENSIONS]


class PackageManager(BaseWorker):
    """Installs packages through apt-get."""

    def __init__(self, runner: Optional[Runner] = None, dry_run: bool = False):
        super().__init__(runner=runner, dry_run=dry_run, name="packages")

    @staticmethod
    def _env() -> Dict[str, str]:
        env = dict(os.environ)
        env["DEBIAN_FRONTEND"] = "noninteractive"
        return env

    def update(self) -> bool:
        """Refresh package lists; failures are logged, not raised."""
        result = self.run(["apt-get", "update", "-qq"], check=False, env=self._env())
        if not result.ok:
            self.logger.warning("Package list update had issues, continuing...")
        return result.ok

    def install(self, packages: Sequence[str], required: bool = True) -> bool:
        """Install a package set.

        Args:
            packages: Package names
            required: Raise on failure instead of logging a warning

        Returns:
            True if every package installed

        Raises:
            ExternalToolError: A required set failed to install
        """
        packages = list(packages)
        self.logger.info(f"Installing packages: {' '.join(packages)}")
        try:
            self.run(["apt-get", "install", "-y", "-qq"] + packages, env=self._env())
        except ExternalToolError as e:
            if required:
                raise
            self.logger.warning(f"Optional packages could not be installed: {e}")
            return False
        return True

    def add_php_repository(self) -> bool:
        """Add the PHP PPA that carries current PHP releases for Ubuntu."""
        result = self.run(["add-apt-repository", "-y", PHP_PPA], check=False, env=self._env())
        if not result.ok:
            self.logger.warning(f"Could not add {PHP_PPA}, using distribution PHP packages")
            return False
        return self.update()

    def install_wpcli(self, destination: str = "/usr/local/bin/wp") -> bool:
        """Fetch the WP-CLI phar; optional, so failures only warn."""
        try:
            self.run(["curl", "-fsSL", WPCLI_URL, "-o", destination])
            self.run(["chmod", "+x", destination])
        except ExternalToolError as e:
            self.logger.warning(f"Failed to install WP-CLI (optional, but recommended): {e}")
            return False
        self.logger.info(f"WP-CLI installed at {destination}")
        return True

    def cleanup(self):
        self.run(["apt-get", "autoremove", "-y", "-qq"], check=False, env=self._env())
        self.run(["apt-get", "autoclean", "-y", "-qq"], check=False, env=self._env())
