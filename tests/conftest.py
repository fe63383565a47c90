"""Pytest configuration and fixtures."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from wpserver.analysis.allocation import compute_allocation
from wpserver.models.data_models import ResourceSnapshot
from wpserver.orchestrator.main import WordPressServerOrchestrator
from wpserver.utils.config import Config

WP_CONFIG_SAMPLE = """<?php
define( 'DB_NAME', 'database_name_here' );
define( 'DB_USER', 'username_here' );
define( 'DB_PASSWORD', 'password_here' );
define( 'DB_HOST', 'localhost' );
define( 'DB_CHARSET', 'utf8' );
define( 'DB_COLLATE', '' );

define( 'AUTH_KEY',         'put your unique phrase here' );
define( 'SECURE_AUTH_KEY',  'put your unique phrase here' );

$table_prefix = 'wp_';

/* That's all, stop editing! Happy publishing. */

require_once ABSPATH . 'wp-settings.php';
"""

SALTS = "\n".join(
    f"define('{key}', 'generated-{key.lower()}');"
    for key in ("AUTH_KEY", "SECURE_AUTH_KEY", "LOGGED_IN_KEY", "NONCE_KEY",
                "AUTH_SALT", "SECURE_AUTH_SALT", "LOGGED_IN_SALT", "NONCE_SALT")
) + "\n"


def completed(returncode=0, stdout="", stderr=""):
    """A finished process as subprocess.run returns it."""
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch, tmp_path):
    """Point every host path into a temporary directory."""
    host = tmp_path / "host"
    monkeypatch.setenv("LOG_LEVEL", "ERROR")  # Reduce log noise in tests
    monkeypatch.setenv("WPSERVER_BASE_DIR", str(host / "opt" / "wpserver"))
    monkeypatch.delenv("WPSERVER_REGISTRY_FILE", raising=False)
    monkeypatch.setenv("WPSERVER_CREDENTIALS_FILE", str(host / "root" / ".wpserver-credentials"))
    monkeypatch.setenv("WPSERVER_WEB_ROOT", str(host / "var" / "www"))
    monkeypatch.setenv("WPSERVER_CRON_FILE", str(host / "etc" / "cron.d" / "wpserver-backup"))
    monkeypatch.setenv("MYSQL_CLIENT_CONFIG", str(host / "root" / ".my.cnf"))
    monkeypatch.setenv("NGINX_CONF_DIR", str(host / "etc" / "nginx"))
    monkeypatch.setenv("NGINX_CACHE_DIR", str(host / "var" / "cache" / "nginx"))
    monkeypatch.setenv("PHP_VERSION", "8.2")
    monkeypatch.setenv("PHP_CONF_ROOT", str(host / "etc" / "php"))
    monkeypatch.setenv("MARIADB_CONF_FILE", str(host / "etc" / "mysql" / "mariadb.conf.d" / "99-custom.cnf"))
    monkeypatch.setenv("REDIS_CONF_FILE", str(host / "etc" / "redis" / "redis.conf"))
    monkeypatch.setenv("LOG_FILE", str(host / "opt" / "wpserver" / "logs" / "install.log"))
    monkeypatch.setenv("BACKUP_RETENTION_DAYS", "7")
    monkeypatch.setenv("MIN_DISK_GB", "10")
    monkeypatch.setenv("AUTO_CONFIRM", "0")
    monkeypatch.setenv("DRY_RUN", "0")
    return host


@pytest.fixture
def config():
    """Configuration built from the test environment."""
    return Config()


@pytest.fixture
def small_snapshot():
    """2 cores, 1GB RAM."""
    return ResourceSnapshot(cpu_cores=2, total_ram_mb=1024, available_disk_gb=40)


@pytest.fixture
def large_snapshot():
    """4 cores, 8GB RAM."""
    return ResourceSnapshot(cpu_cores=4, total_ram_mb=8192, available_disk_gb=160)


@pytest.fixture
def small_plan(small_snapshot):
    return compute_allocation(small_snapshot)


@pytest.fixture
def large_plan(large_snapshot):
    return compute_allocation(large_snapshot)


@pytest.fixture
def fake_runner():
    """Stand-in for subprocess.run where every command succeeds silently."""
    return MagicMock(return_value=completed())


def simulate_host(argv, **kwargs):
    """Runner side effect that fakes the file effects of a few commands."""
    if argv[0] == "tar" and "-xzf" in argv:
        target = Path(argv[argv.index("-C") + 1])
        (target / "wp-config-sample.php").write_text(WP_CONFIG_SAMPLE)
        (target / "index.php").write_text("<?php\n")
    elif argv[0] == "tar" and "-czf" in argv:
        Path(argv[2]).write_bytes(b"archive")
    elif argv[0] == "curl" and "-o" not in argv:
        return completed(stdout=SALTS)
    return completed()


@pytest.fixture
def host_runner():
    """Fake runner that also creates the files tar would produce."""
    return MagicMock(side_effect=simulate_host)


@pytest.fixture
def orchestrator(config, host_runner, small_snapshot, monkeypatch):
    """Orchestrator on a fake host: fixed snapshot, PHP 8.2, no wp-cli."""
    monkeypatch.setattr("wpserver.workers.wordpress.WordPressInstaller.has_wpcli", lambda self: False)
    orch = WordPressServerOrchestrator(config, runner=host_runner)
    orch._snapshot = small_snapshot
    return orch
