"""WordPress download, configuration and installation."""

import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Union

from ..exceptions import ConfigurationError, ExternalToolError
from ..stores.files import atomic_write
from .base import BaseWorker, Runner

WORDPRESS_ARCHIVE_URL = "https://wordpress.org/latest.tar.gz"
SALT_API_URL = "https://api.wordpress.org/secret-key/1.1/salt/"
WEB_USER = "www-data"

SALT_KEYS = (
    "AUTH_KEY", "SECURE_AUTH_KEY", "LOGGED_IN_KEY", "NONCE_KEY",
    "AUTH_SALT", "SECURE_AUTH_SALT", "LOGGED_IN_SALT", "NONCE_SALT",
)
SALT_LINE = re.compile(r"^\s*define\(\s*'(%s)'" % "|".join(SALT_KEYS))
STOP_EDITING_MARKER = "/* That's all, stop editing!"

EXTRA_SETTINGS = """
// Redis Object Cache Configuration
define('WP_REDIS_HOST', '127.0.0.1');
define('WP_REDIS_PORT', 6379);
define('WP_CACHE', true);

// Security
define('DISALLOW_FILE_EDIT', true);
define('FORCE_SSL_ADMIN', true);

// WordPress Auto-Updates
define('WP_AUTO_UPDATE_CORE', 'minor');
"""


def php_quote(value: str) -> str:
    """Escape a value for a single-quoted PHP string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def replace_salts(config_text: str, salts: str) -> str:
    """Drop existing key/salt defines and insert ``salts`` after DB_COLLATE."""
    lines = [line for line in config_text.splitlines() if not SALT_LINE.match(line)]
    for index, line in enumerate(lines):
        if "DB_COLLATE" in line:
            lines[index + 1:index + 1] = [""] + salts.strip().splitlines() + [""]
            break
    else:
        raise ConfigurationError("DB_COLLATE not found in wp-config.php")
    return "\n".join(lines) + "\n"


def insert_extra_settings(config_text: str, settings: str = EXTRA_SETTINGS) -> str:
    """Place custom defines before WordPress bootstraps (idempotent)."""
    if "WP_REDIS_HOST" in config_text:
        return config_text

    for marker in (STOP_EDITING_MARKER, "require_once ABSPATH . 'wp-settings.php';"):
        position = config_text.find(marker)
        if position != -1:
            return config_text[:position] + settings.lstrip("\n") + "\n" + config_text[position:]
    return config_text.rstrip("\n") + "\n" + settings


class WordPressInstaller(BaseWorker):
    """Drives wp-cli, falling back to the release tarball when it is absent."""

    def __init__(self, runner: Optional[Runner] = None, dry_run: bool = False):
        super().__init__(runner=runner, dry_run=dry_run, name="wordpress")

    def has_wpcli(self) -> bool:
        return self.command_exists("wp")

    def _wp(self, site_root: Union[str, Path], *args: str, input: Optional[str] = None,
            check: bool = True):
        return self.run(
            ["wp", *args, f"--path={site_root}", "--allow-root"],
            input=input,
            check=check,
        )

    def download(self, site_root: Union[str, Path]):
        """Put the WordPress core files into ``site_root``."""
        site_root = Path(site_root)
        site_root.mkdir(parents=True, exist_ok=True)

        if self.has_wpcli():
            self._wp(site_root, "core", "download")
        else:
            fd, archive = tempfile.mkstemp(prefix="wordpress-", suffix=".tar.gz")
            os.close(fd)
            try:
                self.run(["curl", "-fsSL", WORDPRESS_ARCHIVE_URL, "-o", archive])
                self.run(["tar", "-xzf", archive, "-C", str(site_root), "--strip-components=1"])
            finally:
                os.unlink(archive)
        self.logger.info(f"WordPress downloaded to {site_root}")

    def fetch_salts(self) -> str:
        """Fresh authentication keys from the WordPress API (empty on failure)."""
        result = self.run(["curl", "-fsS", SALT_API_URL], check=False, timeout=60)
        if not result.ok:
            self.logger.warning("Could not fetch security keys from api.wordpress.org")
            return ""
        return result.stdout

    def create_config(self, site_root: Union[str, Path], db_name: str, db_user: str,
                      db_password: str, db_host: str = "localhost") -> Path:
        """Write ``wp-config.php`` with database credentials, keys and cache settings.

        Returns:
            Path of wp-config.php
        """
        site_root = Path(site_root)
        config_path = site_root / "wp-config.php"
        if self.dry_run:
            self.logger.info(f"[dry-run] would write {config_path}")
            return config_path

        if self.has_wpcli():
            self._wp(
                site_root, "config", "create",
                f"--dbname={db_name}", f"--dbuser={db_user}", f"--dbhost={db_host}",
                "--prompt=dbpass", "--skip-check", "--force",
                input=db_password + "\n",
            )
            text = config_path.read_text(encoding="utf-8") if config_path.exists() else ""
        else:
            sample = site_root / "wp-config-sample.php"
            if not sample.exists():
                raise ConfigurationError(f"wp-config-sample.php not found in {site_root}")
            text = (
                sample.read_text(encoding="utf-8")
                .replace("database_name_here", php_quote(db_name))
                .replace("username_here", php_quote(db_user))
                .replace("password_here", php_quote(db_password))
                .replace("'localhost'", f"'{php_quote(db_host)}'", 1)
            )

        salts = self.fetch_salts()
        if salts.strip():
            text = replace_salts(text, salts)
        text = insert_extra_settings(text)

        atomic_write(config_path, text, mode=0o640)
        self.logger.info(f"WordPress configured at {config_path}")
        return config_path

    def install(self, site_root: Union[str, Path], url: str, title: str,
                admin_user: str, admin_password: str, admin_email: str) -> bool:
        """Run the WordPress installer (wp-cli only).

        Returns:
            True on success; a failed install is left for the web wizard
        """
        try:
            self._wp(
                site_root, "core", "install",
                f"--url={url}", f"--title={title}", f"--admin_user={admin_user}",
                f"--admin_email={admin_email}", "--prompt=admin_password", "--skip-email",
                input=admin_password + "\n",
            )
        except ExternalToolError as e:
            self.logger.warning(f"WordPress auto-install failed, complete it manually: {e}")
            return False
        self.logger.info(f"WordPress installed for {url}")
        return True

    def enable_object_cache(self, site_root: Union[str, Path]) -> bool:
        """Install and activate the Redis Object Cache plugin."""
        try:
            self._wp(site_root, "plugin", "install", "redis-cache", "--activate")
            self._wp(site_root, "redis", "enable")
        except ExternalToolError as e:
            self.logger.warning(f"Redis Object Cache could not be enabled: {e}")
            return False
        self.logger.info("Redis Object Cache enabled")
        return True

    def core_version(self, site_root: Union[str, Path]) -> Optional[str]:
        if not self.has_wpcli():
            return None
        result = self._wp(site_root, "core", "version", check=False)
        return result.stdout.strip() if result.ok else None

    def set_permissions(self, site_root: Union[str, Path]):
        """www-data ownership, 755 directories, 644 files, 440 wp-config.php."""
        site_root = Path(site_root)
        self.run(["chown", "-R", f"{WEB_USER}:{WEB_USER}", str(site_root)])
        if self.dry_run:
            return

        os.chmod(site_root, 0o755)
        for root, dirs, files in os.walk(site_root):
            for name in dirs:
                os.chmod(os.path.join(root, name), 0o755)
            for name in files:
                os.chmod(os.path.join(root, name), 0o644)

        config_path = site_root / "wp-config.php"
        if config_path.exists():
            os.chmod(config_path, 0o440)
        self.logger.info(f"Permissions set under {site_root}")
