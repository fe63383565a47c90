"""Read deployed service configuration back and compare it with a plan."""

import re
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

from ..models.data_models import AllocationPlan
from ..utils.config import Config
from ..utils.logging import get_logger

logger = get_logger("inspection")

# subsystem -> setting -> pattern capturing the value
SETTING_PATTERNS: Dict[str, Dict[str, str]] = {
    "nginx": {
        "worker_processes": r"^\s*worker_processes\s+([^;\s]+)\s*;",
        "client_max_body_size": r"^\s*client_max_body_size\s+([^;\s]+)\s*;",
    },
    "php": {
        "memory_limit": r"^\s*memory_limit\s*=\s*(\S+)",
        "upload_max_filesize": r"^\s*upload_max_filesize\s*=\s*(\S+)",
        "post_max_size": r"^\s*post_max_size\s*=\s*(\S+)",
    },
    "php_fpm": {
        "pm.max_children": r"^\s*pm\.max_children\s*=\s*(\S+)",
        "pm.start_servers": r"^\s*pm\.start_servers\s*=\s*(\S+)",
        "pm.min_spare_servers": r"^\s*pm\.min_spare_servers\s*=\s*(\S+)",
        "pm.max_spare_servers": r"^\s*pm\.max_spare_servers\s*=\s*(\S+)",
    },
    "mariadb": {
        "innodb_buffer_pool_size": r"^\s*innodb_buffer_pool_size\s*=\s*(\S+)",
        "innodb_log_file_size": r"^\s*innodb_log_file_size\s*=\s*(\S+)",
        "max_connections": r"^\s*max_connections\s*=\s*(\S+)",
    },
    "redis": {
        "maxmemory": r"^\s*maxmemory\s+(\S+)",
        "maxmemory-policy": r"^\s*maxmemory-policy\s+(\S+)",
    },
}


class SettingDrift(NamedTuple):
    """A deployed setting that does not match the plan."""
    subsystem: str
    setting: str
    expected: str
    actual: Optional[str]


def _extract(path: Path, patterns: Dict[str, str]) -> Dict[str, str]:
    if not path.exists():
        logger.debug(f"Configuration file not found: {path}")
        return {}

    text = path.read_text(encoding="utf-8", errors="replace")
    values = {}
    for setting, pattern in patterns.items():
        match = re.search(pattern, text, re.MULTILINE)
        if match:
            values[setting] = match.group(1)
    return values


def live_config_paths(config: Config, php_version: str) -> Dict[str, Path]:
    """Deployed file inspected for each subsystem."""
    return {
        "nginx": config.nginx_main_conf,
        "php": config.php_ini_override(php_version),
        "php_fpm": config.php_fpm_pool(php_version),
        "mariadb": config.mariadb_conf_file,
        "redis": config.redis_conf_file,
    }


def read_live_settings(config: Config, php_version: str) -> Dict[str, Dict[str, str]]:
    """Extract the tunables from the deployed configuration files.

    Args:
        config: Configuration with the service file locations
        php_version: PHP major.minor version whose FPM files are read

    Returns:
        Settings per subsystem; a missing file yields an empty section
    """
    paths = live_config_paths(config, php_version)
    return {
        subsystem: _extract(paths[subsystem], patterns)
        for subsystem, patterns in SETTING_PATTERNS.items()
    }


def planned_settings(plan: AllocationPlan) -> Dict[str, Dict[str, str]]:
    """Values the generated files carry for a plan, keyed like read_live_settings."""
    return {
        "nginx": {
            "worker_processes": str(plan.web_worker_count),
            "client_max_body_size": plan.upload_max,
        },
        "php": {
            "memory_limit": plan.memory_limit,
            "upload_max_filesize": plan.upload_max,
            "post_max_size": plan.post_max,
        },
        "php_fpm": {
            "pm.max_children": str(plan.runtime_max_children),
            "pm.start_servers": str(plan.runtime_start_servers),
            "pm.min_spare_servers": str(plan.runtime_min_spare),
            "pm.max_spare_servers": str(plan.runtime_max_spare),
        },
        "mariadb": {
            "innodb_buffer_pool_size": f"{plan.db_buffer_pool_mb}M",
            "innodb_log_file_size": f"{plan.db_log_file_mb}M",
            "max_connections": str(plan.db_max_connections),
        },
        "redis": {
            "maxmemory": f"{plan.cache_max_memory_mb}mb",
            "maxmemory-policy": "allkeys-lru",
        },
    }


def compare_with_plan(live: Dict[str, Dict[str, str]],
                      plan: AllocationPlan) -> List[SettingDrift]:
    """List every setting whose deployed value differs from the plan.

    Size suffixes are compared case-insensitively (``256M`` == ``256m``).
    Settings absent from the deployed files are reported with actual=None.
    """
    drift = []
    for subsystem, expected_values in planned_settings(plan).items():
        section = live.get(subsystem, {})
        for setting, expected in expected_values.items():
            actual = section.get(setting)
            if actual is None or actual.lower() != expected.lower():
                drift.append(SettingDrift(subsystem, setting, expected, actual))
    return drift
