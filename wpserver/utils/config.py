"""Configuration management."""

import os
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Configuration manager."""

    def __init__(self, env_file: Optional[str] = None):
        """Initialize configuration.

        Args:
            env_file: Path to .env file
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self):
        """Load configuration from environment variables."""
        # Installation layout
        base_dir = os.getenv("WPSERVER_BASE_DIR", "/opt/wpserver")
        self._config["base_dir"] = base_dir
        self._config["registry_file"] = os.getenv(
            "WPSERVER_REGISTRY_FILE", os.path.join(base_dir, "config", "wpserver.conf")
        )
        self._config["credentials_file"] = os.getenv(
            "WPSERVER_CREDENTIALS_FILE", "/root/.wpserver-credentials"
        )
        self._config["web_root"] = os.getenv("WPSERVER_WEB_ROOT", "/var/www")
        self._config["cron_file"] = os.getenv(
            "WPSERVER_CRON_FILE", "/etc/cron.d/wpserver-backup"
        )
        self._config["mysql_client_config"] = os.getenv(
            "MYSQL_CLIENT_CONFIG", "/root/.my.cnf"
        )

        # Service configuration paths
        self._config["nginx_conf_dir"] = os.getenv("NGINX_CONF_DIR", "/etc/nginx")
        self._config["nginx_cache_dir"] = os.getenv("NGINX_CACHE_DIR", "/var/cache/nginx")
        self._config["php_version"] = os.getenv("PHP_VERSION", "")
        self._config["php_conf_root"] = os.getenv("PHP_CONF_ROOT", "/etc/php")
        self._config["mariadb_conf_file"] = os.getenv(
            "MARIADB_CONF_FILE", "/etc/mysql/mariadb.conf.d/99-custom.cnf"
        )
        self._config["redis_conf_file"] = os.getenv(
            "REDIS_CONF_FILE", "/etc/redis/redis.conf"
        )

        # Logging Configuration
        self._config["log_level"] = os.getenv("LOG_LEVEL", "INFO")
        self._config["log_file"] = os.getenv(
            "LOG_FILE", os.path.join(base_dir, "logs", "install.log")
        )

        # Operational policy
        self._config["backup_retention_days"] = int(
            os.getenv("BACKUP_RETENTION_DAYS", "7")
        )
        self._config["min_disk_gb"] = int(os.getenv("MIN_DISK_GB", "10"))
        self._config["auto_confirm"] = _env_flag("AUTO_CONFIRM")
        self._config["dry_run"] = _env_flag("DRY_RUN")

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value
        """
        return self._config.get(key, default)

    def set(self, key: str, value: Any):
        """Set configuration value.

        Args:
            key: Configuration key
            value: Configuration value
        """
        self._config[key] = value

    @property
    def base_dir(self) -> Path:
        """Get installation base directory."""
        return Path(self._config["base_dir"])

    @property
    def registry_file(self) -> Path:
        """Get site registry path."""
        return Path(self._config["registry_file"])

    @property
    def credentials_file(self) -> Path:
        """Get credential log path."""
        return Path(self._config["credentials_file"]).expanduser()

    @property
    def web_root(self) -> Path:
        """Get directory holding one folder per hosted site."""
        return Path(self._config["web_root"])

    @property
    def backup_dir(self) -> Path:
        return self.base_dir / "backups"

    @property
    def reports_dir(self) -> Path:
        return self.base_dir / "logs"

    @property
    def nginx_conf_dir(self) -> Path:
        return Path(self._config["nginx_conf_dir"])

    @property
    def nginx_main_conf(self) -> Path:
        return self.nginx_conf_dir / "nginx.conf"

    def nginx_site_available(self, domain: str) -> Path:
        """Path of the vhost file for a domain."""
        return self.nginx_conf_dir / "sites-available" / domain

    def nginx_site_enabled(self, domain: str) -> Path:
        """Path of the enabled-site symlink for a domain."""
        return self.nginx_conf_dir / "sites-enabled" / domain

    @property
    def php_version(self) -> str:
        """Get configured PHP major.minor version (empty when auto-detected)."""
        return self._config["php_version"]

    def php_ini_override(self, php_version: str) -> Path:
        """Path of the generated php.ini override for the FPM SAPI."""
        return Path(self._config["php_conf_root"]) / php_version / "fpm" / "conf.d" / "99-wpserver.ini"

    def php_fpm_pool(self, php_version: str) -> Path:
        """Path of the generated default FPM pool."""
        return Path(self._config["php_conf_root"]) / php_version / "fpm" / "pool.d" / "www.conf"

    @property
    def mariadb_conf_file(self) -> Path:
        return Path(self._config["mariadb_conf_file"])

    @property
    def redis_conf_file(self) -> Path:
        return Path(self._config["redis_conf_file"])

    @property
    def log_level(self) -> str:
        """Get log level."""
        return self._config["log_level"]

    @property
    def log_file(self) -> str:
        """Get log file path."""
        return self._config["log_file"]

    @property
    def backup_retention_days(self) -> int:
        return self._config["backup_retention_days"]

    @property
    def min_disk_gb(self) -> int:
        return self._config["min_disk_gb"]

    @property
    def auto_confirm(self) -> bool:
        return self._config["auto_confirm"]

    @property
    def dry_run(self) -> bool:
        return self._config["dry_run"]

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self._config.copy()
